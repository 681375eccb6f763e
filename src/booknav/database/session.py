"""
Database session management for the BookNav library service.

This module provides connection management and session handling for
SQLAlchemy:

1. Explicit ownership: the application constructs one DatabaseManager and
   disposes it on shutdown; nothing here is process-global
2. Transaction Management: circulation writes commit or roll back as a unit
3. Connection Pooling: each session checks out its own connection; only
   in-memory SQLite shares a single one
4. Error Wrapping: store failures surface as RepositoryException
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .exceptions import RepositoryException
from .schema import Base

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT = 15


def _is_memory_url(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


class DatabaseManager:
    """
    Owns the engine and session factory for one database.

    Typical lifecycle::

        manager = DatabaseManager(config.get_database_url())
        manager.init_database()
        with manager.session_scope() as session:
            ...
        manager.close()
    """

    def __init__(self, database_url: str):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        Every SQLite connection turns on foreign key enforcement. File databases
        give each session its own connection and wait up to
        ``SQLITE_BUSY_TIMEOUT`` seconds for a competing writer; in-memory
        databases keep one shared connection.
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                if _is_memory_url(self.database_url):
                    self._engine = create_engine(
                        self.database_url,
                        poolclass=StaticPool,
                        connect_args={"check_same_thread": False},
                        echo=False,
                    )
                else:
                    self._engine = create_engine(
                        self.database_url,
                        connect_args={
                            "check_same_thread": False,
                            "timeout": SQLITE_BUSY_TIMEOUT,
                        },
                        echo=False,
                    )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """
        Create a new database session.

        The caller owns the session and must close it.
        """
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        Commits on success, rolls back and re-raises on any error, and
        always closes the session.
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except Exception:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Create the schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """
        Verify the database connection is working.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.debug("Database connection verified")
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Dispose of the engine and forget the session factory."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


def safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, rolling back on failure.

    Args:
        session: The database session
        operation: Description of the operation (for error messages)

    Raises:
        IntegrityError: If a constraint is violated (session rolled back)
        RepositoryException: If the commit fails for any other reason
    """
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryException(f"Database operation '{operation}' failed: {e!s}") from e


def safe_query[T](session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, converting driver errors into RepositoryException.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Error message prefix

    Returns:
        Query result

    Raises:
        RepositoryException: If the query fails
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise RepositoryException(f"{error_msg}: database query failed") from e
