# backend/homebridge/repositories/base_repository.py
"""
Base Repository

Generic primary-key and exact-match access shared by the aggregate
repositories. Repositories flush but never commit: the service that calls
them owns the transaction.
"""

import logging
from typing import Any, Generic, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from homebridge.core.exceptions import RepositoryException

T = TypeVar("T")


class BaseRepository(Generic[T]):
    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def _fail(self, action: str, exc: SQLAlchemyError) -> NoReturn:
        name = self.model.__name__
        self.logger.error(f"Error trying to {action} {name}: {str(exc)}")
        if isinstance(exc, IntegrityError):
            raise RepositoryException(f"Integrity constraint violated for {name}: {exc}") from exc
        raise RepositoryException(f"Failed to {action} {name}: {str(exc)}") from exc

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self._fail("load", e)

    def create(self, **kwargs: Any) -> T:
        """Add and flush a new row so its defaults (id, timestamps) are populated."""
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except SQLAlchemyError as e:
            self._fail("create", e)

    def delete(self, id: str) -> bool:
        """Delete by primary key; False if there was nothing to delete."""
        entity = self.get_by_id(id)
        if entity is None:
            return False
        try:
            self.db.delete(entity)
            self.db.flush()
        except SQLAlchemyError as e:
            self._fail("delete", e)
        return True

    def flush(self) -> None:
        self.db.flush()

    def exists(self, **criteria: Any) -> bool:
        return self.find_one_by(**criteria) is not None

    def find_one_by(self, **criteria: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**criteria).first()
        except SQLAlchemyError as e:
            self._fail("query", e)
