"""Staff account model."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, Enum):
    """Roles understood by the access-control layer."""

    TEACHER = "teacher"
    STUDENT = "student"


class StaffUser(BaseModel):
    """A staff account. The password hash never leaves the repository."""

    id: str = Field(..., pattern=r"^user_[a-zA-Z0-9]{6,}$")
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    role: Role = Role.TEACHER
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)
