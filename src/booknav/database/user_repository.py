"""
Staff user repository for the BookNav library service.

Passwords are hashed with bcrypt on the way in and never leave this module;
callers only ever see StaffUser models.
"""

import logging

import bcrypt
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import exists, or_, select

from ..models.circulation import OPEN_STATUSES
from ..models.user import Role
from ..models.user import StaffUser as StaffUserModel
from .exceptions import ConflictError, DuplicateError
from .repository import BaseRepository, UpdateSchema, new_id
from .schema import CheckoutRecord as CheckoutDB
from .schema import SchoolClass as SchoolClassDB
from .schema import Student as StudentDB
from .schema import User as UserDB
from .session import safe_query

logger = logging.getLogger(__name__)


class UserCreateSchema(BaseModel):
    """Registration payload. Every registered account is a teacher."""

    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)

    model_config = ConfigDict(extra="forbid")


class UserUpdateSchema(UpdateSchema):
    email: EmailStr | None = None


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class UserRepository(BaseRepository[UserDB, UserCreateSchema, UserUpdateSchema, StaffUserModel]):
    """Repository for staff accounts."""

    id_prefix = "user"

    @property
    def model_class(self):
        return UserDB

    @property
    def response_schema(self):
        return StaffUserModel

    def create(self, data: UserCreateSchema) -> StaffUserModel:
        """
        Register a staff user.

        Raises:
            DuplicateError: If the username or email is taken
        """
        taken = safe_query(
            self.session,
            lambda s: s.execute(
                select(UserDB.id).where(
                    or_(UserDB.username == data.username, UserDB.email == data.email)
                )
            ).first(),
            "Failed to check existing users",
        )
        if taken:
            raise DuplicateError("Username or email already registered")

        user = UserDB(
            id=new_id(self.id_prefix),
            username=data.username,
            email=data.email,
            password_hash=hash_password(data.password),
            role=Role.TEACHER,
        )
        self.session.add(user)
        self._commit("create User")
        self.session.refresh(user)
        logger.info("Registered user %s (%s)", user.username, user.id)
        return self._to_response_model(user)

    def authenticate(self, username: str, password: str) -> StaffUserModel | None:
        """Return the user if the password matches, otherwise None."""
        user = safe_query(
            self.session,
            lambda s: s.execute(
                select(UserDB).where(UserDB.username == username)
            ).scalar_one_or_none(),
            "Failed to look up user",
        )
        if user is None or not check_password(password, user.password_hash):
            logger.info("Failed login for %s", username)
            return None
        return self._to_response_model(user)

    def list_all(self) -> list[StaffUserModel]:
        users = safe_query(
            self.session,
            lambda s: s.execute(select(UserDB).order_by(UserDB.username)).scalars().all(),
            "Failed to list users",
        )
        return [self._to_response_model(u) for u in users]

    def delete(self, id: str) -> None:
        """
        Delete a staff account together with its classes and their students.

        Books the user catalogued stay in the catalog without an owner.

        Raises:
            NotFoundError: If the user does not exist
            ConflictError: If a student in one of the user's classes has a
                book checked out
        """
        user = self._get_db_object(id)
        has_open = safe_query(
            self.session,
            lambda s: s.execute(
                select(
                    exists().where(
                        CheckoutDB.student_id == StudentDB.id,
                        StudentDB.class_id == SchoolClassDB.id,
                        SchoolClassDB.teacher_id == id,
                        CheckoutDB.status.in_(OPEN_STATUSES),
                    )
                )
            ).scalar(),
            "Failed to check open checkouts",
        )
        if has_open:
            raise ConflictError("Students in your classes still have books checked out")

        self.session.delete(user)
        self._commit("delete User")
        logger.info("Deleted user %s", id)
