"""
FastAPI dependencies: database session, authenticated principal and
service factories.
"""

from .auth import get_current_principal, require_roles
from .database import get_db

__all__ = ["get_current_principal", "get_db", "require_roles"]
