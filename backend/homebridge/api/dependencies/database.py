# backend/homebridge/api/dependencies/database.py
"""Request-scoped session dependency; tests override this one."""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as session_scope


def get_db() -> Generator[Session, None, None]:
    yield from session_scope()
