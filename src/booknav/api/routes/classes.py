"""Class routes. Teachers only see and change their own classes."""

from fastapi import APIRouter, status

from ...database import ClassCreateSchema, ClassRepository, ClassUpdateSchema
from ...models.roster import SchoolClass
from ..dependencies import SessionDep, StaffPrincipal

router = APIRouter(prefix="/classes", tags=["roster"])


@router.get("", response_model=list[SchoolClass])
def list_classes(principal: StaffPrincipal, session: SessionDep) -> list[SchoolClass]:
    return ClassRepository(session).list_for_teacher(principal.id)


@router.post("", response_model=SchoolClass, status_code=status.HTTP_201_CREATED)
def create_class(
    data: ClassCreateSchema, principal: StaffPrincipal, session: SessionDep
) -> SchoolClass:
    return ClassRepository(session).create(data, teacher_id=principal.id)


@router.get("/{class_id}", response_model=SchoolClass)
def get_class(class_id: str, principal: StaffPrincipal, session: SessionDep) -> SchoolClass:
    return ClassRepository(session).get_owned(class_id, principal.id)


@router.put("/{class_id}", response_model=SchoolClass)
def update_class(
    class_id: str, data: ClassUpdateSchema, principal: StaffPrincipal, session: SessionDep
) -> SchoolClass:
    """Update a class; a new grade is applied to every student in it."""
    return ClassRepository(session).update_owned(class_id, data, principal.id)


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class(class_id: str, principal: StaffPrincipal, session: SessionDep) -> None:
    ClassRepository(session).delete_owned(class_id, principal.id)
