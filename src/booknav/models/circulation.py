"""
Circulation models for the BookNav library service.

These models represent the circulation ledger:
- CheckoutRecord: one copy lent to one student for an interval
- CheckoutDetail: a ledger entry joined with student and book data
- ReadingHistoryEntry: a returned loan as shown in a student's history
- CheckoutAction: whether scanning a book should check it out or return it
- LibrarySettings: loan period and per-student checkout cap

A record is *open* while its status is ``checked out`` or ``overdue``; each
copy has at most one open record at a time.
"""

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CheckoutStatus(str, Enum):
    """Status of a ledger entry."""

    CHECKED_OUT = "checked out"
    RETURNED = "returned"
    OVERDUE = "overdue"


OPEN_STATUSES = (CheckoutStatus.CHECKED_OUT, CheckoutStatus.OVERDUE)


class CheckoutRecord(BaseModel):
    """Represents one loan of a book copy to a student."""

    id: str = Field(
        ...,
        description="Unique identifier for the checkout record",
        pattern=r"^checkout_[a-zA-Z0-9]{6,}$",
        examples=["checkout_5e0c7a91b2d4"],
    )

    book_copy_id: str = Field(
        ...,
        description="Copy that was lent",
        pattern=r"^copy_[a-zA-Z0-9]{6,}$",
    )

    student_id: str = Field(
        ...,
        description="Student who borrowed the copy",
        pattern=r"^student_[a-zA-Z0-9]{6,}$",
    )

    checkout_date: datetime = Field(
        default_factory=datetime.now,
        description="When the copy was lent",
    )

    due_date: date = Field(
        ...,
        description="Date the copy should be back",
        examples=["2024-12-31"],
    )

    return_date: datetime | None = Field(
        None,
        description="When the copy came back",
    )

    status: CheckoutStatus = Field(
        default=CheckoutStatus.CHECKED_OUT,
        description="Current status of the loan",
    )

    @model_validator(mode="after")
    def validate_dates(self) -> "CheckoutRecord":
        """Return date cannot precede the checkout day."""
        if self.return_date and self.return_date.date() < self.checkout_date.date():
            raise ValueError("Return date cannot be before checkout date")
        return self

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def is_overdue(self, as_of: date | None = None) -> bool:
        """Check whether an open loan is past its due date."""
        if not self.is_open:
            return False
        return (as_of or date.today()) > self.due_date

    @property
    def loan_period_days(self) -> int:
        return (self.due_date - self.checkout_date.date()).days

    model_config = ConfigDict(
        use_enum_values=True,
        validate_default=True,
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "checkout_5e0c7a91b2d4",
                "book_copy_id": "copy_3f9a1c2b7d10",
                "student_id": "student_a1b2c3d4e5f6",
                "checkout_date": "2024-12-01T09:30:00",
                "due_date": "2024-12-31",
                "status": "checked out",
            }
        },
    )


class CheckoutDetail(CheckoutRecord):
    """Ledger entry joined with the student and book it refers to."""

    student_name: str
    book_id: str
    book_title: str
    book_author: str
    copy_number: int | None = None


class ReadingHistoryEntry(BaseModel):
    """A returned loan in a student's reading history."""

    checkout_id: str
    book_title: str
    checkout_date: datetime
    return_date: datetime
    days_kept: int = Field(..., ge=0)


class CheckoutAction(BaseModel):
    """What the circulation desk should do when a student scans a book."""

    action: Literal["checkout", "return"]
    title: str
    book_id: str


class LibrarySettings(BaseModel):
    """Library-wide circulation settings."""

    default_due_days: int = Field(14, ge=1, le=365)
    max_checkout_books: int = Field(5, ge=1, le=100)

    model_config = ConfigDict(from_attributes=True)
