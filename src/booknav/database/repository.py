"""
Repository pattern implementation for the BookNav library service.

Repositories sit between the HTTP routers and SQLAlchemy:

1. **Separation**: routers deal with requests and principals, repositories
   with queries and transactions
2. **Testability**: every repository takes a plain Session, so tests can
   drive them without an HTTP client
3. **Consistency**: methods return Pydantic models and raise the exceptions
   from ``database.exceptions``

The base repository provides common CRUD operations; the specialized
repositories add domain rules (copy bookkeeping, roster constraints,
circulation transitions).
"""

import uuid
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .exceptions import (
    ConflictError,
    DuplicateError,
    InvalidInputError,
    NotFoundError,
    RepositoryException,
)
from .schema import Base
from .session import safe_commit, safe_query

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

__all__ = [
    "BaseRepository",
    "ConflictError",
    "DuplicateError",
    "InvalidInputError",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "UpdateSchema",
    "new_id",
]


def new_id(prefix: str) -> str:
    """Generate a prefixed identifier such as ``book_1a2b3c4d5e6f``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class UpdateSchema(BaseModel):
    """Base for partial-update payloads: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise InvalidInputError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise InvalidInputError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """Standard paginated response for list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BaseRepository(
    ABC, Generic[ModelType, CreateSchemaType, UpdateSchemaType, ResponseSchemaType]
):
    """
    Abstract base repository providing common CRUD operations.

    Subclasses name their SQLAlchemy model, their response schema and the
    prefix used for new identifiers.
    """

    id_prefix: str = ""

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_db_object(self, id: str) -> ModelType:
        """
        Load a row by primary key.

        Raises:
            NotFoundError: If no row has this ID
        """
        query = select(self.model_class).where(self.model_class.id == str(id))
        db_obj = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.entity_name}",
        )
        if db_obj is None:
            raise NotFoundError(f"{self.entity_name} {id} not found")
        return db_obj

    def get_by_id(self, id: str) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Returns:
            Pydantic model or None if not found
        """
        try:
            return self._to_response_model(self._get_db_object(id))
        except NotFoundError:
            return None

    def get(self, id: str) -> ResponseSchemaType:
        """
        Get entity by ID.

        Raises:
            NotFoundError: If the entity does not exist
        """
        return self._to_response_model(self._get_db_object(id))

    def get_all(
        self,
        pagination: PaginationParams | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> list[ResponseSchemaType] | PaginatedResponse[ResponseSchemaType]:
        """
        Get all entities with optional pagination and sorting.

        Args:
            pagination: Pagination parameters
            order_by: Field name to order by
            order_desc: Whether to order descending

        Returns:
            List of entities or paginated response
        """
        query = select(self.model_class)

        if order_by and hasattr(self.model_class, order_by):
            order_field = getattr(self.model_class, order_by)
            query = query.order_by(desc(order_field) if order_desc else asc(order_field))

        if pagination:
            return self._paginate(query, pagination)

        results = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get all results"
        )
        return [self._to_response_model(item) for item in results]

    def _paginate(self, query, pagination: PaginationParams) -> PaginatedResponse:
        """Run ``query`` for one page and wrap the result."""
        pagination.validate_params()

        count_query = select(func.count()).select_from(query.subquery())
        total = (
            safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                "Failed to get total count",
            )
            or 0
        )

        page_query = query.offset(pagination.offset).limit(pagination.page_size)
        results = safe_query(
            self.session,
            lambda s: s.execute(page_query).unique().scalars().all(),
            "Failed to get paginated results",
        )

        return PaginatedResponse[self.response_schema](
            items=[self._to_response_model(item) for item in results],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )

    def create(self, data: CreateSchemaType) -> ResponseSchemaType:
        """
        Create new entity with a generated ID.

        Raises:
            DuplicateError: If a unique constraint is violated
            RepositoryException: On other database errors
        """
        db_obj = self.model_class(id=new_id(self.id_prefix), **data.model_dump())
        self.session.add(db_obj)
        self._commit(f"create {self.entity_name}")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def update(self, id: str, data: UpdateSchemaType) -> ResponseSchemaType:
        """
        Apply the fields that were explicitly set on ``data``.

        Raises:
            NotFoundError: If the entity does not exist
            DuplicateError: If the update violates a unique constraint
        """
        db_obj = self._get_db_object(id)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(db_obj, field, value)

        self._commit(f"update {self.entity_name}")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def delete(self, id: str) -> None:
        """
        Delete entity by ID.

        Raises:
            NotFoundError: If the entity does not exist
        """
        db_obj = self._get_db_object(id)
        self.session.delete(db_obj)
        self._commit(f"delete {self.entity_name}")

    def exists(self, id: str) -> bool:
        """Check if entity exists by ID."""
        query = (
            select(func.count()).select_from(self.model_class).where(self.model_class.id == str(id))
        )
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check existence"
        )
        return count > 0

    def _commit(self, operation: str) -> None:
        """Commit, translating constraint violations into DuplicateError."""
        try:
            safe_commit(self.session, operation)
        except IntegrityError as e:
            raise DuplicateError(f"{operation} failed: {e.orig!s}") from e

