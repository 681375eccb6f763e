"""
Roster models for the BookNav library service.

Classes belong to a teacher; students belong to exactly one class and take
their grade from it. Students sign in with a 4-digit PIN instead of an
account.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

PIN_PATTERN = r"^\d{4}$"


class Student(BaseModel):
    """A student on a class roster."""

    id: str = Field(
        ...,
        description="Unique identifier for the student",
        pattern=r"^student_[a-zA-Z0-9]{6,}$",
    )

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    grade: str = Field(
        ...,
        description="Grade, copied from the student's class",
        min_length=1,
        max_length=20,
        examples=["3", "K"],
    )

    class_id: str = Field(
        ...,
        description="Class the student belongs to",
        pattern=r"^class_[a-zA-Z0-9]{6,}$",
    )

    reading_level: str | None = Field(None, max_length=20)

    pin: str = Field(
        ...,
        description="4-digit sign-in PIN",
        pattern=PIN_PATTERN,
        examples=["0423"],
    )

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    model_config = ConfigDict(from_attributes=True)


class SchoolClass(BaseModel):
    """A class taught by one staff member."""

    id: str = Field(
        ...,
        description="Unique identifier for the class",
        pattern=r"^class_[a-zA-Z0-9]{6,}$",
    )

    name: str = Field(..., min_length=1, max_length=100, examples=["Room 12"])
    grade: str = Field(..., min_length=1, max_length=20)

    teacher_id: str = Field(
        ...,
        description="Staff user who owns the class",
        pattern=r"^user_[a-zA-Z0-9]{6,}$",
    )

    school_year: str | None = Field(None, max_length=20, examples=["2024-2025"])

    student_ids: list[str] = Field(
        default_factory=list,
        description="Students currently on the roster",
    )

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(from_attributes=True)
