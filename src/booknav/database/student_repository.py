"""
Student repository implementation for the BookNav library service.

This repository manages the roster:

1. **Enrollment**: students join exactly one class and take its grade
2. **Bulk import**: a class list can be loaded in one call; bad rows are
   reported without stopping the rest
3. **PIN lookup**: the access-control layer finds students by PIN
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import exists, select

from ..models.circulation import OPEN_STATUSES
from ..models.roster import PIN_PATTERN
from ..models.roster import Student as StudentModel
from .exceptions import ConflictError, InvalidInputError, RepositoryException
from .repository import BaseRepository, UpdateSchema, new_id
from .schema import CheckoutRecord as CheckoutDB
from .schema import SchoolClass as SchoolClassDB
from .schema import Student as StudentDB
from .session import safe_query

logger = logging.getLogger(__name__)


class StudentCreateSchema(BaseModel):
    """Schema for enrolling a student. Grade comes from the class."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    class_id: str
    reading_level: str | None = Field(None, max_length=20)
    pin: str = Field(..., pattern=PIN_PATTERN)


class StudentUpdateSchema(UpdateSchema):
    """Fields staff may change on a student."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    class_id: str | None = None
    reading_level: str | None = Field(None, max_length=20)
    pin: str | None = Field(None, pattern=PIN_PATTERN)

    @field_validator("first_name", "last_name", "class_id", "pin")
    @classmethod
    def not_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class BulkCreateResult(BaseModel):
    """Outcome of a bulk enrollment."""

    success: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class StudentRepository(
    BaseRepository[StudentDB, StudentCreateSchema, StudentUpdateSchema, StudentModel]
):
    """Repository for students."""

    id_prefix = "student"

    @property
    def model_class(self):
        return StudentDB

    @property
    def response_schema(self):
        return StudentModel

    def _get_class(self, class_id: str) -> SchoolClassDB:
        school_class = safe_query(
            self.session,
            lambda s: s.get(SchoolClassDB, class_id),
            "Failed to get class",
        )
        if school_class is None:
            raise InvalidInputError(f"Class {class_id} does not exist")
        return school_class

    def create(self, data: StudentCreateSchema) -> StudentModel:
        """
        Enroll a student in a class.

        Raises:
            InvalidInputError: If the class does not exist
            DuplicateError: If the class already has a student with this name
        """
        school_class = self._get_class(data.class_id)
        student = StudentDB(
            id=new_id(self.id_prefix),
            grade=school_class.grade,
            created_at=datetime.now(),
            **data.model_dump(),
        )
        self.session.add(student)
        self._commit("create Student")
        self.session.refresh(student)
        logger.info("Enrolled student %s in class %s", student.id, data.class_id)
        return self._to_response_model(student)

    def bulk_create(self, rows: list[dict[str, Any]]) -> BulkCreateResult:
        """
        Enroll many students, one transaction per row.

        Rows that fail validation or clash with the roster are counted in
        ``failed`` with a message naming the row; the rest are created.
        """
        result = BulkCreateResult()

        for index, row in enumerate(rows, start=1):
            try:
                self.create(StudentCreateSchema.model_validate(row))
                result.success += 1
            except ValidationError as e:
                result.failed += 1
                first = e.errors()[0]
                field = ".".join(str(part) for part in first["loc"])
                result.errors.append(f"Row {index}: {field}: {first['msg']}")
            except RepositoryException as e:
                result.failed += 1
                result.errors.append(f"Row {index}: {e}")

        logger.info("Bulk enrollment: %d created, %d failed", result.success, result.failed)
        return result

    def update(self, id: str, data: StudentUpdateSchema) -> StudentModel:
        """
        Update a student. Moving to another class also takes that class's grade.

        Raises:
            NotFoundError: If the student does not exist
            InvalidInputError: If the new class does not exist
            DuplicateError: If the new name clashes within the class
        """
        student = self._get_db_object(id)
        changes = data.model_dump(exclude_unset=True)

        if "class_id" in changes:
            student.grade = self._get_class(changes["class_id"]).grade

        for field, value in changes.items():
            setattr(student, field, value)

        self._commit("update Student")
        self.session.refresh(student)
        return self._to_response_model(student)

    def delete(self, id: str) -> None:
        """
        Remove a student and their closed ledger entries.

        Raises:
            NotFoundError: If the student does not exist
            ConflictError: If the student still has books checked out
        """
        student = self._get_db_object(id)
        if self.has_open_checkouts(id):
            raise ConflictError(f"{student.full_name} still has books checked out")

        self.session.delete(student)
        self._commit("delete Student")

    def has_open_checkouts(self, student_id: str) -> bool:
        return bool(
            safe_query(
                self.session,
                lambda s: s.execute(
                    select(
                        exists().where(
                            CheckoutDB.student_id == student_id,
                            CheckoutDB.status.in_(OPEN_STATUSES),
                        )
                    )
                ).scalar(),
                "Failed to check open checkouts",
            )
        )

    def list_all(self) -> list[StudentModel]:
        """List every student by last name, then first name."""
        students = safe_query(
            self.session,
            lambda s: s.execute(
                select(StudentDB).order_by(StudentDB.last_name, StudentDB.first_name)
            )
            .scalars()
            .all(),
            "Failed to list students",
        )
        return [self._to_response_model(s) for s in students]

    def list_by_class(self, class_id: str) -> list[StudentModel]:
        """List a class roster by last name, then first name."""
        students = safe_query(
            self.session,
            lambda s: s.execute(
                select(StudentDB)
                .where(StudentDB.class_id == class_id)
                .order_by(StudentDB.last_name, StudentDB.first_name)
            )
            .scalars()
            .all(),
            "Failed to list class roster",
        )
        return [self._to_response_model(s) for s in students]

    def find_by_pin(self, pin: str) -> StudentModel | None:
        """
        Find the student signing in with ``pin``.

        PINs are not unique across the school; the earliest enrolled
        student with the PIN wins.
        """
        student = safe_query(
            self.session,
            lambda s: s.execute(
                select(StudentDB)
                .where(StudentDB.pin == pin)
                .order_by(StudentDB.created_at, StudentDB.id)
                .limit(1)
            ).scalar_one_or_none(),
            "Failed to look up student by PIN",
        )
        return self._to_response_model(student) if student else None
