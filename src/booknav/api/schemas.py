"""Request and response bodies that exist only at the HTTP boundary."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..models.user import StaffUser


class ApiModel(BaseModel):
    """Accepts camelCase (as sent by the web client) or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CheckoutRequest(ApiModel):
    """Lend a specific copy, or any available copy of a book."""

    copy_id: str | None = None
    book_id: str | None = None
    student_id: str | None = None
    due_date: date | None = None

    @model_validator(mode="after")
    def one_target(self) -> "CheckoutRequest":
        if bool(self.copy_id) == bool(self.book_id):
            raise ValueError("Provide exactly one of copyId or bookId")
        return self


class ReturnRequest(ApiModel):
    returned_on: datetime | date | None = None


class ReturnByIsbnRequest(ApiModel):
    isbn: str = Field(..., min_length=1)
    student_id: str | None = None
    returned_on: datetime | date | None = None


class MarkOverdueRequest(ApiModel):
    as_of: date | None = None


class MarkOverdueResponse(BaseModel):
    updated: int


class AddCopiesRequest(ApiModel):
    count: int = Field(1, ge=1, le=200)


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: StaffUser
