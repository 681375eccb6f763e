"""
Database package for the BookNav library service.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Repositories for the catalog, roster, staff accounts, settings and
  circulation ledger

Every repository takes a plain SQLAlchemy Session; the HTTP layer opens one
session per request from the application's DatabaseManager.
"""

from .book_repository import (
    BookCreateSchema,
    BookRepository,
    BookSearchParams,
    BookUpdateSchema,
    CopyStatusUpdate,
)
from .circulation_repository import CirculationRepository
from .class_repository import ClassCreateSchema, ClassRepository, ClassUpdateSchema
from .exceptions import (
    ConflictError,
    DuplicateError,
    InvalidInputError,
    NotFoundError,
    RepositoryException,
)
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import Base
from .session import DatabaseManager, safe_commit, safe_query
from .settings_repository import SettingsRepository, SettingsUpdateSchema
from .student_repository import (
    BulkCreateResult,
    StudentCreateSchema,
    StudentRepository,
    StudentUpdateSchema,
)
from .user_repository import UserCreateSchema, UserRepository

__all__ = [
    "Base",
    "BaseRepository",
    "BookCreateSchema",
    "BookRepository",
    "BookSearchParams",
    "BookUpdateSchema",
    "BulkCreateResult",
    "CirculationRepository",
    "ClassCreateSchema",
    "ClassRepository",
    "ClassUpdateSchema",
    "ConflictError",
    "CopyStatusUpdate",
    "DatabaseManager",
    "DuplicateError",
    "InvalidInputError",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "SettingsRepository",
    "SettingsUpdateSchema",
    "StudentCreateSchema",
    "StudentRepository",
    "StudentUpdateSchema",
    "UserCreateSchema",
    "UserRepository",
    "safe_commit",
    "safe_query",
]
