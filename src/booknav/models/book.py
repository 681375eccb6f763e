"""
Catalog models for the BookNav library service.

A Book holds bibliographic metadata; every physical item on the shelf is a
BookCopy with its own status. Circulation always works on copies, never on
books directly.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CopyStatus(str, Enum):
    """Shelf status of a single physical copy."""

    AVAILABLE = "available"
    CHECKED_OUT = "checked out"
    IN_REPAIR = "in repair"
    LOST = "lost"


class CopyCondition(str, Enum):
    """Physical condition of a copy."""

    NEW = "new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def normalize_isbn(value: str | None) -> str | None:
    """Strip hyphens and whitespace from an ISBN; empty strings become None."""
    if value is None:
        return None
    cleaned = value.replace("-", "").replace(" ", "").strip().upper()
    return cleaned or None


class BookCopy(BaseModel):
    """One physical copy of a book."""

    id: str = Field(
        ...,
        description="Unique identifier for the copy",
        pattern=r"^copy_[a-zA-Z0-9]{6,}$",
        examples=["copy_3f9a1c2b7d10"],
    )

    book_id: str = Field(
        ...,
        description="Book this copy belongs to",
        pattern=r"^book_[a-zA-Z0-9]{6,}$",
    )

    copy_number: int | None = Field(
        None,
        description="Shelf number of the copy within its book",
        ge=1,
    )

    status: CopyStatus = Field(
        default=CopyStatus.AVAILABLE,
        description="Current shelf status",
    )

    condition: CopyCondition = Field(
        default=CopyCondition.GOOD,
        description="Physical condition",
    )

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_available(self) -> bool:
        return self.status == CopyStatus.AVAILABLE

    model_config = ConfigDict(
        use_enum_values=True,
        validate_default=True,
        from_attributes=True,
    )


class Book(BaseModel):
    """
    Represents a title in the school catalog.

    ``copies`` is the number of physical copies owned and always matches the
    number of BookCopy records for the book. ``available_copies`` is derived
    from the copies' statuses.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the book",
        pattern=r"^book_[a-zA-Z0-9]{6,}$",
        examples=["book_8c1d2e3f4a5b"],
    )

    title: str = Field(
        ...,
        description="Title of the book",
        min_length=1,
        max_length=500,
        examples=["Charlotte's Web", "Holes"],
    )

    author: str = Field(
        ...,
        description="Author as printed on the cover",
        min_length=1,
        max_length=200,
        examples=["E. B. White", "Louis Sachar"],
    )

    genre: str | None = Field(None, max_length=100, examples=["Fiction"])
    subject: str | None = Field(None, max_length=100, examples=["Friendship"])

    isbn: str | None = Field(
        None,
        description="ISBN-10 or ISBN-13 without separators",
        pattern=r"^(\d{9}[\dX]|\d{13})$",
        examples=["9780064400558"],
    )

    published_date: date | None = None
    pages: int | None = Field(None, ge=1)
    reading_level: str | None = Field(None, max_length=20, examples=["3.5", "M"])
    lexile_score: int | None = Field(None, ge=0, le=2000)
    ar_points: float | None = Field(None, ge=0.0)
    cover_image: str | None = Field(None, max_length=500)

    copies: int = Field(
        default=1,
        description="Number of physical copies owned",
        ge=1,
    )

    available_copies: int = Field(
        default=0,
        description="Copies currently on the shelf",
        ge=0,
    )

    owner_id: str | None = Field(
        None,
        description="Staff user who catalogued the book",
    )

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("isbn", mode="before")
    @classmethod
    def clean_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v)

    model_config = ConfigDict(
        use_enum_values=True,
        validate_default=True,
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "book_8c1d2e3f4a5b",
                "title": "Charlotte's Web",
                "author": "E. B. White",
                "genre": "Fiction",
                "isbn": "9780064400558",
                "copies": 2,
                "available_copies": 1,
            }
        },
    )
