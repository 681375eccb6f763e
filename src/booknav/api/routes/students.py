"""Student routes."""

from typing import Any

from fastapi import APIRouter, Body, status

from ...database import (
    BulkCreateResult,
    StudentCreateSchema,
    StudentRepository,
    StudentUpdateSchema,
)
from ...models.roster import Student
from ..dependencies import SessionDep, StaffPrincipal

router = APIRouter(prefix="/students", tags=["roster"])


@router.get("", response_model=list[Student])
def list_students(principal: StaffPrincipal, session: SessionDep) -> list[Student]:  # noqa: ARG001
    return StudentRepository(session).list_all()


@router.post("", response_model=Student, status_code=status.HTTP_201_CREATED)
def create_student(
    data: StudentCreateSchema,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
) -> Student:
    return StudentRepository(session).create(data)


@router.post("/bulk", response_model=BulkCreateResult)
def bulk_create_students(
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
    rows: list[dict[str, Any]] = Body(...),
) -> BulkCreateResult:
    """Enroll a list of students; invalid rows are reported, not fatal."""
    return StudentRepository(session).bulk_create(rows)


@router.get("/class/{class_id}", response_model=list[Student])
def list_class_students(
    class_id: str,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
) -> list[Student]:
    return StudentRepository(session).list_by_class(class_id)


@router.get("/{student_id}", response_model=Student)
def get_student(student_id: str, principal: StaffPrincipal, session: SessionDep) -> Student:  # noqa: ARG001
    return StudentRepository(session).get(student_id)


@router.put("/{student_id}", response_model=Student)
def update_student(
    student_id: str,
    data: StudentUpdateSchema,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
) -> Student:
    return StudentRepository(session).update(student_id, data)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str, principal: StaffPrincipal, session: SessionDep) -> None:  # noqa: ARG001
    StudentRepository(session).delete(student_id)
