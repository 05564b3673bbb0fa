# backend/homebridge/repositories/__init__.py
"""
Repository layer: data access only, no commits, no business rules.
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory

__all__ = ["BaseRepository", "RepositoryFactory"]
