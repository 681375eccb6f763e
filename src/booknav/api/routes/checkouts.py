"""
Circulation routes.

Staff can act for any student. A student signed in with a PIN acts only for
themselves: their checkouts go to their own record and they may only
return loans they hold.
"""

import logging

from fastapi import APIRouter, Body, Query, status

from ...auth import AuthorizationError, Principal
from ...database import InvalidInputError
from ...models.circulation import (
    CheckoutAction,
    CheckoutDetail,
    CheckoutRecord,
    ReadingHistoryEntry,
)
from ...models.user import Role
from ..dependencies import CirculationDep, CirculationPrincipal, StaffPrincipal
from ..schemas import (
    CheckoutRequest,
    MarkOverdueRequest,
    MarkOverdueResponse,
    ReturnByIsbnRequest,
    ReturnRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkouts", tags=["circulation"])


def _acting_student(principal: Principal, student_id: str | None) -> str:
    """Resolve whose record an operation touches."""
    if principal.role == Role.STUDENT:
        if student_id and student_id != principal.id:
            raise AuthorizationError("Students can only act on their own checkouts")
        return principal.id
    if not student_id:
        raise InvalidInputError("studentId is required")
    return student_id


@router.post("", response_model=CheckoutRecord, status_code=status.HTTP_201_CREATED)
def create_checkout(
    data: CheckoutRequest, principal: CirculationPrincipal, circulation: CirculationDep
) -> CheckoutRecord:
    """Check out a copy (``copyId``) or any available copy of a book (``bookId``)."""
    student_id = _acting_student(principal, data.student_id)
    if data.copy_id:
        return circulation.checkout(data.copy_id, student_id, due_date=data.due_date)
    return circulation.checkout_by_book(data.book_id, student_id, due_date=data.due_date)


@router.get("", response_model=list[CheckoutDetail])
def list_checkouts(principal: StaffPrincipal, circulation: CirculationDep) -> list[CheckoutDetail]:  # noqa: ARG001
    return circulation.list_all()


@router.put("/return-by-isbn", response_model=CheckoutRecord)
def return_by_isbn(
    data: ReturnByIsbnRequest, principal: CirculationPrincipal, circulation: CirculationDep
) -> CheckoutRecord:
    student_id = data.student_id
    if principal.role == Role.STUDENT:
        student_id = _acting_student(principal, student_id)
    return circulation.return_by_isbn(data.isbn, student_id=student_id, returned_on=data.returned_on)


@router.put("/{checkout_id}/return", response_model=CheckoutRecord)
def return_checkout(
    checkout_id: str,
    principal: CirculationPrincipal,
    circulation: CirculationDep,
    data: ReturnRequest | None = Body(None),
) -> CheckoutRecord:
    """Return a loan. Returning an already returned loan changes nothing."""
    record = circulation.get(checkout_id)
    if principal.role == Role.STUDENT and record.student_id != principal.id:
        raise AuthorizationError("Students can only return their own checkouts")
    returned_on = data.returned_on if data else None
    return circulation.return_checkout(checkout_id, returned_on=returned_on)


@router.get("/status", response_model=CheckoutAction)
def checkout_status(
    principal: CirculationPrincipal,
    circulation: CirculationDep,
    isbn: str = Query(..., min_length=1),
    student_id: str | None = Query(None, alias="studentId"),
) -> CheckoutAction:
    """Tell the desk whether scanning this book should check it out or return it."""
    return circulation.checkout_status(isbn, _acting_student(principal, student_id))


@router.post("/mark-overdue", response_model=MarkOverdueResponse)
def mark_overdue(
    principal: StaffPrincipal,  # noqa: ARG001
    circulation: CirculationDep,
    data: MarkOverdueRequest | None = Body(None),
) -> MarkOverdueResponse:
    return MarkOverdueResponse(updated=circulation.mark_overdue(data.as_of if data else None))


@router.get("/student/{student_id}/history", response_model=list[CheckoutDetail])
def student_history(
    student_id: str,
    principal: StaffPrincipal,  # noqa: ARG001
    circulation: CirculationDep,
) -> list[CheckoutDetail]:
    return circulation.student_history(student_id)


@router.get("/student/{student_id}/current", response_model=list[CheckoutDetail])
def student_current(
    student_id: str,
    principal: StaffPrincipal,  # noqa: ARG001
    circulation: CirculationDep,
) -> list[CheckoutDetail]:
    return circulation.student_current(student_id)


@router.get("/student/{student_id}/reading-history", response_model=list[ReadingHistoryEntry])
def reading_history(
    student_id: str, principal: CirculationPrincipal, circulation: CirculationDep
) -> list[ReadingHistoryEntry]:
    return circulation.reading_history(_acting_student(principal, student_id))


@router.get("/copy/{copy_id}", response_model=list[CheckoutRecord])
def copy_history(
    copy_id: str,
    principal: StaffPrincipal,  # noqa: ARG001
    circulation: CirculationDep,
) -> list[CheckoutRecord]:
    return circulation.copy_history(copy_id)


@router.get("/book/{book_id}/current", response_model=list[CheckoutDetail])
def book_current(
    book_id: str,
    principal: StaffPrincipal,  # noqa: ARG001
    circulation: CirculationDep,
) -> list[CheckoutDetail]:
    return circulation.book_current(book_id)
