"""Catalog routes: books and their physical copies."""

from fastapi import APIRouter, Query, status

from ...database import (
    BookCreateSchema,
    BookRepository,
    BookSearchParams,
    BookUpdateSchema,
    CopyStatusUpdate,
    PaginatedResponse,
    PaginationParams,
)
from ...models.book import Book, BookCopy
from ..dependencies import AnyPrincipal, SessionDep, StaffPrincipal
from ..schemas import AddCopiesRequest

router = APIRouter(tags=["catalog"])


@router.get("/books", response_model=PaginatedResponse[Book])
def search_books(
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
    q: str | None = Query(None, description="Matches title, author, ISBN, genre or subject"),
    title: str | None = None,
    author: str | None = None,
    genre: str | None = None,
    isbn: str | None = None,
    available: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[Book]:
    params = BookSearchParams(
        query=q, title=title, author=author, genre=genre, isbn=isbn, available_only=available
    )
    return BookRepository(session).search(params, PaginationParams(page=page, page_size=page_size))


@router.post("/books", response_model=Book, status_code=status.HTTP_201_CREATED)
def create_book(data: BookCreateSchema, principal: StaffPrincipal, session: SessionDep) -> Book:
    return BookRepository(session).create(data, owner_id=principal.id)


@router.get("/books/{book_id}", response_model=Book)
def get_book(book_id: str, principal: AnyPrincipal, session: SessionDep) -> Book:  # noqa: ARG001
    return BookRepository(session).get(book_id)


@router.patch("/books/{book_id}", response_model=Book)
def update_book(
    book_id: str,
    data: BookUpdateSchema,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
) -> Book:
    return BookRepository(session).update(book_id, data)


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(book_id: str, principal: StaffPrincipal, session: SessionDep) -> None:  # noqa: ARG001
    BookRepository(session).delete(book_id)


@router.get("/books/{book_id}/copies", response_model=list[BookCopy])
def list_copies(
    book_id: str,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
) -> list[BookCopy]:
    return BookRepository(session).list_copies(book_id)


@router.post("/books/{book_id}/copies", response_model=Book, status_code=status.HTTP_201_CREATED)
def add_copies(
    book_id: str,
    data: AddCopiesRequest,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
) -> Book:
    return BookRepository(session).add_copies(book_id, data.count)


@router.patch("/copies/{copy_id}/status", response_model=BookCopy)
def set_copy_status(
    copy_id: str,
    data: CopyStatusUpdate,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
) -> BookCopy:
    """Move an idle copy to available, in repair or lost."""
    return BookRepository(session).set_copy_status(copy_id, data)
