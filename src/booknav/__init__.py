"""
BookNav school library service.

This package implements a library management API for schools: a catalog of
books and their physical copies, a roster of classes and students, and a
circulation ledger that lends copies to students.

Key Components:
- models: Pydantic models for data validation and serialization
- database: SQLAlchemy schema, session management and repositories
- config: Configuration management with pydantic-settings
- auth: Credential parsing, authentication and role checks
- api: FastAPI application and routers
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]
