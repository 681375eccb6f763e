"""
Class repository implementation for the BookNav library service.

Classes belong to the staff user who created them. Every lookup here is
scoped to that owner: another teacher's class behaves as if it did not
exist.
"""

import logging

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import exists, select

from ..models.circulation import OPEN_STATUSES
from ..models.roster import SchoolClass as SchoolClassModel
from .exceptions import ConflictError, NotFoundError
from .repository import BaseRepository, UpdateSchema, new_id
from .schema import CheckoutRecord as CheckoutDB
from .schema import SchoolClass as SchoolClassDB
from .schema import Student as StudentDB
from .session import safe_query

logger = logging.getLogger(__name__)


class ClassCreateSchema(BaseModel):
    """Schema for creating a class."""

    name: str = Field(..., min_length=1, max_length=100)
    grade: str = Field(..., min_length=1, max_length=20)
    school_year: str | None = Field(None, max_length=20)


class ClassUpdateSchema(UpdateSchema):
    """Fields a teacher may change on their class."""

    name: str | None = Field(None, min_length=1, max_length=100)
    grade: str | None = Field(None, min_length=1, max_length=20)
    school_year: str | None = Field(None, max_length=20)

    @field_validator("name", "grade")
    @classmethod
    def not_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class ClassRepository(
    BaseRepository[SchoolClassDB, ClassCreateSchema, ClassUpdateSchema, SchoolClassModel]
):
    """Repository for classes, scoped by owning teacher."""

    id_prefix = "class"

    @property
    def model_class(self):
        return SchoolClassDB

    @property
    def response_schema(self):
        return SchoolClassModel

    @property
    def entity_name(self) -> str:
        return "Class"

    def _to_response_model(self, db_obj: SchoolClassDB) -> SchoolClassModel:
        # Students are added through their own repository; reload the roster.
        self.session.expire(db_obj, ["students"])
        return super()._to_response_model(db_obj)

    def create(self, data: ClassCreateSchema, teacher_id: str) -> SchoolClassModel:
        """Create a class owned by ``teacher_id``."""
        school_class = SchoolClassDB(
            id=new_id(self.id_prefix), teacher_id=teacher_id, **data.model_dump()
        )
        self.session.add(school_class)
        self._commit("create Class")
        self.session.refresh(school_class)
        logger.info("Teacher %s created class %s", teacher_id, school_class.id)
        return self._to_response_model(school_class)

    def list_for_teacher(self, teacher_id: str) -> list[SchoolClassModel]:
        """List a teacher's classes by name."""
        classes = safe_query(
            self.session,
            lambda s: s.execute(
                select(SchoolClassDB)
                .where(SchoolClassDB.teacher_id == teacher_id)
                .order_by(SchoolClassDB.name, SchoolClassDB.id)
            )
            .scalars()
            .all(),
            "Failed to list classes",
        )
        return [self._to_response_model(c) for c in classes]

    def _get_owned(self, class_id: str, teacher_id: str) -> SchoolClassDB:
        school_class = self._get_db_object(class_id)
        if school_class.teacher_id != teacher_id:
            raise NotFoundError(f"Class {class_id} not found")
        self.session.expire(school_class, ["students"])
        return school_class

    def get_owned(self, class_id: str, teacher_id: str) -> SchoolClassModel:
        """
        Get a class the teacher owns.

        Raises:
            NotFoundError: If the class does not exist or belongs to someone else
        """
        return self._to_response_model(self._get_owned(class_id, teacher_id))

    def update_owned(
        self, class_id: str, data: ClassUpdateSchema, teacher_id: str
    ) -> SchoolClassModel:
        """
        Update a class. A grade change is copied to every student on the roster.

        Raises:
            NotFoundError: If the class does not exist or belongs to someone else
        """
        school_class = self._get_owned(class_id, teacher_id)
        changes = data.model_dump(exclude_unset=True)

        for field, value in changes.items():
            setattr(school_class, field, value)

        if "grade" in changes:
            for student in school_class.students:
                student.grade = changes["grade"]

        self._commit("update Class")
        self.session.refresh(school_class)
        return self._to_response_model(school_class)

    def delete_owned(self, class_id: str, teacher_id: str) -> None:
        """
        Delete a class and its students.

        Raises:
            NotFoundError: If the class does not exist or belongs to someone else
            ConflictError: If any student still has a book checked out
        """
        school_class = self._get_owned(class_id, teacher_id)

        has_open = safe_query(
            self.session,
            lambda s: s.execute(
                select(
                    exists().where(
                        CheckoutDB.student_id == StudentDB.id,
                        StudentDB.class_id == class_id,
                        CheckoutDB.status.in_(OPEN_STATUSES),
                    )
                )
            ).scalar(),
            "Failed to check open checkouts",
        )
        if has_open:
            raise ConflictError(
                f"Class '{school_class.name}' has students with books checked out"
            )

        self.session.delete(school_class)
        self._commit("delete Class")
        logger.info("Teacher %s deleted class %s", teacher_id, class_id)
