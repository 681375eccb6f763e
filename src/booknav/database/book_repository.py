"""
Book repository implementation for the BookNav library service.

This repository owns the catalog:

1. **Books**: create, search, whitelisted update and delete
2. **Copies**: every book has ``copies`` BookCopy rows, numbered from 1
3. **Side states**: staff can move idle copies between available, in repair
   and lost; ``checked out`` is reserved for the circulation repository
"""

import logging
from datetime import date

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.orm import selectinload

from ..models.book import Book as BookModel
from ..models.book import BookCopy as BookCopyModel
from ..models.book import CopyCondition, CopyStatus, normalize_isbn
from .exceptions import ConflictError, InvalidInputError, NotFoundError
from .repository import (
    BaseRepository,
    PaginatedResponse,
    PaginationParams,
    UpdateSchema,
    new_id,
)
from .schema import Book as BookDB
from .schema import BookCopy as BookCopyDB
from .session import safe_query

logger = logging.getLogger(__name__)

MAX_COPIES_PER_REQUEST = 200


class BookCreateSchema(BaseModel):
    """Schema for cataloguing a new book."""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=200)
    genre: str | None = Field(None, max_length=100)
    subject: str | None = Field(None, max_length=100)
    isbn: str | None = Field(None, pattern=r"^(\d{9}[\dX]|\d{13})$")
    published_date: date | None = None
    pages: int | None = Field(None, ge=1)
    reading_level: str | None = Field(None, max_length=20)
    lexile_score: int | None = Field(None, ge=0, le=2000)
    ar_points: float | None = Field(None, ge=0.0)
    cover_image: str | None = Field(None, max_length=500)
    copies: int = Field(1, ge=1, le=MAX_COPIES_PER_REQUEST)

    @field_validator("isbn", mode="before")
    @classmethod
    def clean_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v)


class BookUpdateSchema(UpdateSchema):
    """Fields staff may change on a book. Copy count changes via add_copies."""

    title: str | None = Field(None, min_length=1, max_length=500)
    author: str | None = Field(None, min_length=1, max_length=200)
    genre: str | None = Field(None, max_length=100)
    subject: str | None = Field(None, max_length=100)
    isbn: str | None = Field(None, pattern=r"^(\d{9}[\dX]|\d{13})$")
    published_date: date | None = None
    pages: int | None = Field(None, ge=1)
    reading_level: str | None = Field(None, max_length=20)
    lexile_score: int | None = Field(None, ge=0, le=2000)
    ar_points: float | None = Field(None, ge=0.0)
    cover_image: str | None = Field(None, max_length=500)

    @field_validator("isbn", mode="before")
    @classmethod
    def clean_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v)

    @field_validator("title", "author")
    @classmethod
    def not_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class CopyStatusUpdate(UpdateSchema):
    """Manual status change for one copy."""

    status: CopyStatus
    condition: CopyCondition | None = None


class BookSearchParams(BaseModel):
    """Search parameters for finding books."""

    query: str | None = None  # Title, author, ISBN, genre or subject contains
    title: str | None = None
    author: str | None = None
    genre: str | None = None  # Exact genre match
    isbn: str | None = None
    available_only: bool = False


class BookRepository(BaseRepository[BookDB, BookCreateSchema, BookUpdateSchema, BookModel]):
    """Repository for the catalog."""

    id_prefix = "book"

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookModel

    def create(self, data: BookCreateSchema, owner_id: str | None = None) -> BookModel:
        """
        Catalogue a book together with its physical copies.

        Args:
            data: Book metadata and number of copies
            owner_id: Staff user cataloguing the book

        Returns:
            Created book
        """
        book = BookDB(id=new_id(self.id_prefix), owner_id=owner_id, **data.model_dump())
        for number in range(1, data.copies + 1):
            book.copy_records.append(BookCopyDB(id=new_id("copy"), copy_number=number))

        self.session.add(book)
        self._commit("create Book")
        self.session.refresh(book)
        logger.info("Catalogued book %s with %d copies", book.id, data.copies)
        return self._to_response_model(book)

    def search(
        self,
        search_params: BookSearchParams,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResponse[BookModel]:
        """
        Search for books with various filters, ordered by title.

        Args:
            search_params: Search and filter criteria
            pagination: Pagination parameters

        Returns:
            Paginated response with matching books
        """
        query = select(BookDB).options(selectinload(BookDB.copy_records))
        filters = []

        if search_params.query:
            term = f"%{search_params.query}%"
            filters.append(
                or_(
                    BookDB.title.ilike(term),
                    BookDB.author.ilike(term),
                    BookDB.isbn.ilike(f"%{normalize_isbn(search_params.query)}%"),
                    BookDB.genre.ilike(term),
                    BookDB.subject.ilike(term),
                )
            )

        if search_params.title:
            filters.append(BookDB.title.ilike(f"%{search_params.title}%"))

        if search_params.author:
            filters.append(BookDB.author.ilike(f"%{search_params.author}%"))

        if search_params.genre:
            filters.append(func.lower(BookDB.genre) == search_params.genre.lower())

        if search_params.isbn:
            filters.append(BookDB.isbn.like(f"%{normalize_isbn(search_params.isbn)}%"))

        if search_params.available_only:
            filters.append(
                exists().where(
                    and_(
                        BookCopyDB.book_id == BookDB.id,
                        BookCopyDB.status == CopyStatus.AVAILABLE,
                    )
                )
            )

        if filters:
            query = query.where(and_(*filters))

        query = query.order_by(BookDB.title, BookDB.id)
        return self._paginate(query, pagination or PaginationParams())

    def find_by_isbn(self, isbn: str) -> BookModel | None:
        """Find the first book with this ISBN (separators ignored)."""
        book = self._find_db_by_isbn(isbn)
        return self._to_response_model(book) if book else None

    def _find_db_by_isbn(self, isbn: str) -> BookDB | None:
        normalized = normalize_isbn(isbn)
        if not normalized:
            return None
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(BookDB).where(BookDB.isbn == normalized).order_by(BookDB.created_at)
            )
            .scalars()
            .first(),
            "Failed to look up book by ISBN",
        )

    def delete(self, id: str) -> None:
        """
        Delete a book, its copies and their closed ledger entries.

        Raises:
            NotFoundError: If the book does not exist
            ConflictError: If any copy is currently checked out
        """
        book = self._get_db_object(id)
        if any(copy.status == CopyStatus.CHECKED_OUT for copy in book.copy_records):
            raise ConflictError(f"Cannot delete '{book.title}' while copies are checked out")

        self.session.delete(book)
        self._commit("delete Book")
        logger.info("Deleted book %s", id)

    # === Copies ===

    def add_copies(self, book_id: str, count: int = 1) -> BookModel:
        """
        Add physical copies to an existing book.

        Raises:
            NotFoundError: If the book does not exist
            InvalidInputError: If count is out of range
        """
        if count < 1 or count > MAX_COPIES_PER_REQUEST:
            raise InvalidInputError(f"Copy count must be between 1 and {MAX_COPIES_PER_REQUEST}")

        book = self._get_db_object(book_id)
        next_number = max((c.copy_number or 0 for c in book.copy_records), default=0) + 1
        for offset in range(count):
            book.copy_records.append(
                BookCopyDB(id=new_id("copy"), copy_number=next_number + offset)
            )
        book.copies = len(book.copy_records)

        self._commit("add copies")
        self.session.refresh(book)
        return self._to_response_model(book)

    def list_copies(self, book_id: str) -> list[BookCopyModel]:
        """List the copies of a book in shelf order."""
        book = self._get_db_object(book_id)
        return [BookCopyModel.model_validate(copy) for copy in book.copy_records]

    def get_copy(self, copy_id: str) -> BookCopyModel:
        """
        Get one copy.

        Raises:
            NotFoundError: If the copy does not exist
        """
        return BookCopyModel.model_validate(self._get_copy_db(copy_id))

    def _get_copy_db(self, copy_id: str) -> BookCopyDB:
        copy = safe_query(
            self.session,
            lambda s: s.get(BookCopyDB, copy_id),
            "Failed to get book copy",
        )
        if copy is None:
            raise NotFoundError(f"Book copy {copy_id} not found")
        return copy

    def set_copy_status(self, copy_id: str, data: CopyStatusUpdate) -> BookCopyModel:
        """
        Move an idle copy between the manual states.

        Raises:
            NotFoundError: If the copy does not exist
            ConflictError: If the copy is checked out, or the target state is
                ``checked out``
        """
        if data.status == CopyStatus.CHECKED_OUT:
            raise ConflictError("Copies are checked out through circulation, not set manually")

        copy = self._get_copy_db(copy_id)
        if copy.status == CopyStatus.CHECKED_OUT:
            raise ConflictError(f"Copy {copy_id} is checked out; return it first")

        copy.status = data.status
        if data.condition is not None:
            copy.condition = data.condition

        self._commit("set copy status")
        self.session.refresh(copy)
        logger.info("Copy %s set to %s", copy_id, data.status.value)
        return BookCopyModel.model_validate(copy)
