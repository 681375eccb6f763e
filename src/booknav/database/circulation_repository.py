"""
Circulation repository implementation for the BookNav library service.

This repository manages all circulation operations:

1. **Checkouts**: lending one available copy to one student
2. **Returns**: putting the copy back on the shelf (repeat returns are no-ops)
3. **Overdue management**: flagging loans past their due date
4. **Reporting**: per-student, per-copy and per-book views of the ledger

Checkout and return each write the ledger entry and the copy status in one
transaction. The copy flip is a compare-and-set on ``status = available``,
and the partial unique index on open records backs it up, so two desks
scanning the same copy cannot both win. Return closes the record only while
it is still open, so a late duplicate return never touches the copy.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..models.book import CopyStatus, normalize_isbn
from ..models.circulation import OPEN_STATUSES, CheckoutStatus
from ..models.circulation import CheckoutAction as CheckoutActionModel
from ..models.circulation import CheckoutDetail as CheckoutDetailModel
from ..models.circulation import CheckoutRecord as CheckoutModel
from ..models.circulation import LibrarySettings as LibrarySettingsModel
from ..models.circulation import ReadingHistoryEntry as ReadingHistoryModel
from ..observability import traced
from .exceptions import ConflictError, InvalidInputError, NotFoundError
from .repository import new_id
from .schema import Book as BookDB
from .schema import BookCopy as BookCopyDB
from .schema import CheckoutRecord as CheckoutDB
from .schema import Student as StudentDB
from .session import safe_commit, safe_query
from .settings_repository import SettingsRepository

logger = logging.getLogger(__name__)


class CirculationRepository:
    """
    Repository for the circulation ledger.

    Args:
        session: Database session; each public write commits or rolls back
        defaults: Settings used if the library settings row does not exist yet
        clock: Source of "now"; tests pass a fixed clock
    """

    def __init__(
        self,
        session: Session,
        defaults: LibrarySettingsModel | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session = session
        self.settings_repo = SettingsRepository(session, defaults)
        self.clock = clock

    # === Writes ===

    @traced("checkout")
    def checkout(
        self, copy_id: str, student_id: str, due_date: date | None = None
    ) -> CheckoutModel:
        """
        Lend a copy to a student.

        Args:
            copy_id: Copy being lent
            student_id: Borrowing student
            due_date: Defaults to today plus the library's loan period

        Returns:
            The new open ledger entry

        Raises:
            NotFoundError: If the copy or the student does not exist
            ConflictError: If the copy is not available, or the student is
                at the checkout limit
            InvalidInputError: If the due date is before today
        """
        copy = self._get_copy(copy_id)
        student = self._get_student(student_id)

        if copy.status != CopyStatus.AVAILABLE:
            raise ConflictError(f"Copy {copy_id} is not available ({copy.status.value})")

        settings = self.settings_repo.get()
        open_count = self._count_open_for_student(student_id)
        if open_count >= settings.max_checkout_books:
            raise ConflictError(
                f"{student.full_name} already has {open_count} books checked out "
                f"(limit {settings.max_checkout_books})"
            )

        now = self.clock()
        due = due_date or (now.date() + timedelta(days=settings.default_due_days))
        if due < now.date():
            raise InvalidInputError("Due date cannot be before the checkout date")

        flipped = self.session.execute(
            update(BookCopyDB)
            .where(BookCopyDB.id == copy_id, BookCopyDB.status == CopyStatus.AVAILABLE)
            .values(status=CopyStatus.CHECKED_OUT, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        if flipped.rowcount != 1:
            self.session.rollback()
            raise ConflictError(f"Copy {copy_id} was checked out by another request")

        record = CheckoutDB(
            id=new_id("checkout"),
            book_copy_id=copy_id,
            student_id=student_id,
            checkout_date=now,
            due_date=due,
            status=CheckoutStatus.CHECKED_OUT,
        )
        self.session.add(record)

        try:
            safe_commit(self.session, "checkout")
        except IntegrityError as e:
            raise ConflictError(f"Copy {copy_id} already has an open checkout") from e

        self.session.refresh(record)
        logger.info("Checked out %s to %s, due %s", copy_id, student_id, due)
        return CheckoutModel.model_validate(record)

    @traced("checkout_by_book")
    def checkout_by_book(
        self, book_id: str, student_id: str, due_date: date | None = None
    ) -> CheckoutModel:
        """
        Lend any available copy of a book.

        Raises:
            NotFoundError: If the book or the student does not exist
            ConflictError: If no copy of the book is on the shelf
        """
        book = self._get_book(book_id)
        copy = safe_query(
            self.session,
            lambda s: s.execute(
                select(BookCopyDB)
                .where(BookCopyDB.book_id == book_id, BookCopyDB.status == CopyStatus.AVAILABLE)
                .order_by(BookCopyDB.copy_number)
                .limit(1)
            ).scalar_one_or_none(),
            "Failed to find an available copy",
        )
        if copy is None:
            self._get_student(student_id)
            raise ConflictError(f"No copies of '{book.title}' are available")

        return self.checkout(copy.id, student_id, due_date)

    @traced("return")
    def return_checkout(
        self, checkout_id: str, returned_on: datetime | date | None = None
    ) -> CheckoutModel:
        """
        Close a loan and put the copy back on the shelf.

        Returning a loan that is already closed changes nothing and returns
        the record as stored.

        Raises:
            NotFoundError: If the ledger entry does not exist
            InvalidInputError: If ``returned_on`` is before the checkout date
        """
        record = self._get_record(checkout_id)

        if record.status == CheckoutStatus.RETURNED:
            logger.info("Checkout %s already returned; nothing to do", checkout_id)
            return CheckoutModel.model_validate(record)

        returned = self._as_datetime(returned_on) if returned_on else self.clock()
        if returned.date() < record.checkout_date.date():
            raise InvalidInputError("Return date cannot be before the checkout date")

        closed = self.session.execute(
            update(CheckoutDB)
            .where(CheckoutDB.id == checkout_id, CheckoutDB.status.in_(OPEN_STATUSES))
            .values(status=CheckoutStatus.RETURNED, return_date=returned)
            .execution_options(synchronize_session="evaluate")
        )
        if closed.rowcount != 1:
            # Closed by another request in the meantime.
            self.session.rollback()
            logger.info("Checkout %s was returned concurrently; nothing to do", checkout_id)
            return CheckoutModel.model_validate(self._get_record(checkout_id))

        self.session.execute(
            update(BookCopyDB)
            .where(BookCopyDB.id == record.book_copy_id)
            .values(status=CopyStatus.AVAILABLE)
            .execution_options(synchronize_session="evaluate")
        )

        safe_commit(self.session, "return")
        self.session.refresh(record)
        logger.info("Returned %s (copy %s)", checkout_id, record.book_copy_id)
        return CheckoutModel.model_validate(record)

    @traced("return_by_isbn")
    def return_by_isbn(
        self,
        isbn: str,
        student_id: str | None = None,
        returned_on: datetime | date | None = None,
    ) -> CheckoutModel:
        """
        Return the open loan of a book identified by ISBN.

        Args:
            isbn: ISBN as scanned; hyphens and spaces are ignored
            student_id: Only consider this student's loans
            returned_on: Defaults to now

        Raises:
            NotFoundError: If no book has the ISBN or no matching loan is open
        """
        normalized = normalize_isbn(isbn)
        self._get_book_by_isbn(normalized)

        query = (
            select(CheckoutDB)
            .join(BookCopyDB, CheckoutDB.book_copy_id == BookCopyDB.id)
            .join(BookDB, BookCopyDB.book_id == BookDB.id)
            .where(BookDB.isbn == normalized, CheckoutDB.status.in_(OPEN_STATUSES))
            .order_by(CheckoutDB.checkout_date)
            .limit(1)
        )
        if student_id:
            query = query.where(CheckoutDB.student_id == student_id)

        record = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to find open checkout",
        )
        if record is None:
            raise NotFoundError(f"No open checkout for ISBN {normalized}")

        return self.return_checkout(record.id, returned_on)

    @traced("mark_overdue")
    def mark_overdue(self, as_of: date | None = None) -> int:
        """
        Flag every checked-out loan due before ``as_of`` (default today) as overdue.

        Returns:
            Number of loans flagged
        """
        cutoff = as_of or self.clock().date()
        result = self.session.execute(
            update(CheckoutDB)
            .where(
                CheckoutDB.status == CheckoutStatus.CHECKED_OUT,
                CheckoutDB.due_date < cutoff,
            )
            .values(status=CheckoutStatus.OVERDUE)
            .execution_options(synchronize_session=False)
        )
        safe_commit(self.session, "mark overdue")
        self.session.expire_all()
        logger.info("Marked %d checkouts overdue as of %s", result.rowcount, cutoff)
        return result.rowcount

    # === Queries ===

    def get(self, checkout_id: str) -> CheckoutModel:
        """
        Get one ledger entry.

        Raises:
            NotFoundError: If it does not exist
        """
        return CheckoutModel.model_validate(self._get_record(checkout_id))

    def list_all(self) -> list[CheckoutDetailModel]:
        """Every ledger entry with student and book details, newest first."""
        return self._details(self._detail_query())

    @traced("student_history")
    def student_history(self, student_id: str) -> list[CheckoutDetailModel]:
        self._get_student(student_id)
        return self._details(self._detail_query().where(CheckoutDB.student_id == student_id))

    @traced("student_current")
    def student_current(self, student_id: str) -> list[CheckoutDetailModel]:
        """A student's open loans, newest first."""
        self._get_student(student_id)
        return self._details(
            self._detail_query().where(
                CheckoutDB.student_id == student_id, CheckoutDB.status.in_(OPEN_STATUSES)
            )
        )

    @traced("reading_history")
    def reading_history(self, student_id: str) -> list[ReadingHistoryModel]:
        """Books a student has returned, most recent return first."""
        self._get_student(student_id)
        records = safe_query(
            self.session,
            lambda s: s.execute(
                select(CheckoutDB)
                .options(joinedload(CheckoutDB.book_copy).joinedload(BookCopyDB.book))
                .where(
                    CheckoutDB.student_id == student_id,
                    CheckoutDB.status == CheckoutStatus.RETURNED,
                )
                .order_by(desc(CheckoutDB.return_date))
            )
            .unique()
            .scalars()
            .all(),
            "Failed to load reading history",
        )
        return [
            ReadingHistoryModel(
                checkout_id=r.id,
                book_title=r.book_copy.book.title,
                checkout_date=r.checkout_date,
                return_date=r.return_date,
                days_kept=(r.return_date.date() - r.checkout_date.date()).days,
            )
            for r in records
        ]

    def copy_history(self, copy_id: str) -> list[CheckoutModel]:
        """All loans of one copy, newest first."""
        self._get_copy(copy_id)
        records = safe_query(
            self.session,
            lambda s: s.execute(
                select(CheckoutDB)
                .where(CheckoutDB.book_copy_id == copy_id)
                .order_by(desc(CheckoutDB.checkout_date))
            )
            .scalars()
            .all(),
            "Failed to load copy history",
        )
        return [CheckoutModel.model_validate(r) for r in records]

    def book_current(self, book_id: str) -> list[CheckoutDetailModel]:
        """Open loans across all copies of a book."""
        self._get_book(book_id)
        return self._details(
            self._detail_query().where(
                BookCopyDB.book_id == book_id, CheckoutDB.status.in_(OPEN_STATUSES)
            )
        )

    @traced("checkout_status")
    def checkout_status(self, isbn: str, student_id: str) -> CheckoutActionModel:
        """
        Decide what scanning a book means for a student.

        Returns ``return`` if the student holds an open loan of a book with
        this ISBN, otherwise ``checkout``.

        Raises:
            NotFoundError: If no book has the ISBN or the student does not exist
        """
        normalized = normalize_isbn(isbn)
        book = self._get_book_by_isbn(normalized)
        self._get_student(student_id)

        holding = safe_query(
            self.session,
            lambda s: s.execute(
                select(BookDB)
                .join(BookCopyDB, BookCopyDB.book_id == BookDB.id)
                .join(CheckoutDB, CheckoutDB.book_copy_id == BookCopyDB.id)
                .where(
                    BookDB.isbn == normalized,
                    CheckoutDB.student_id == student_id,
                    CheckoutDB.status.in_(OPEN_STATUSES),
                )
                .limit(1)
            ).scalar_one_or_none(),
            "Failed to check checkout status",
        )
        if holding is not None:
            return CheckoutActionModel(action="return", title=holding.title, book_id=holding.id)
        return CheckoutActionModel(action="checkout", title=book.title, book_id=book.id)

    # === Helpers ===

    def _as_datetime(self, value: datetime | date) -> datetime:
        if isinstance(value, datetime):
            return value
        return datetime.combine(value, time())

    def _count_open_for_student(self, student_id: str) -> int:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count(CheckoutDB.id)).where(
                    CheckoutDB.student_id == student_id,
                    CheckoutDB.status.in_(OPEN_STATUSES),
                )
            ).scalar(),
            "Failed to count open checkouts",
        )

    def _get_record(self, checkout_id: str) -> CheckoutDB:
        record = safe_query(
            self.session,
            lambda s: s.get(CheckoutDB, checkout_id),
            "Failed to get checkout",
        )
        if record is None:
            raise NotFoundError(f"Checkout {checkout_id} not found")
        return record

    def _get_copy(self, copy_id: str) -> BookCopyDB:
        copy = safe_query(
            self.session, lambda s: s.get(BookCopyDB, copy_id), "Failed to get book copy"
        )
        if copy is None:
            raise NotFoundError(f"Book copy {copy_id} not found")
        return copy

    def _get_book(self, book_id: str) -> BookDB:
        book = safe_query(self.session, lambda s: s.get(BookDB, book_id), "Failed to get book")
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return book

    def _get_book_by_isbn(self, normalized: str | None) -> BookDB:
        book = None
        if normalized:
            book = safe_query(
                self.session,
                lambda s: s.execute(
                    select(BookDB).where(BookDB.isbn == normalized).order_by(BookDB.created_at)
                )
                .scalars()
                .first(),
                "Failed to look up book by ISBN",
            )
        if book is None:
            raise NotFoundError(f"No book with ISBN {normalized}")
        return book

    def _get_student(self, student_id: str) -> StudentDB:
        student = safe_query(
            self.session, lambda s: s.get(StudentDB, student_id), "Failed to get student"
        )
        if student is None:
            raise NotFoundError(f"Student {student_id} not found")
        return student

    def _detail_query(self):
        return (
            select(CheckoutDB)
            .join(BookCopyDB, CheckoutDB.book_copy_id == BookCopyDB.id)
            .options(
                joinedload(CheckoutDB.book_copy).joinedload(BookCopyDB.book),
                joinedload(CheckoutDB.student),
            )
            .order_by(desc(CheckoutDB.checkout_date), CheckoutDB.id)
        )

    def _details(self, query) -> list[CheckoutDetailModel]:
        records = safe_query(
            self.session,
            lambda s: s.execute(query).unique().scalars().all(),
            "Failed to load checkouts",
        )
        return [self._to_detail(r) for r in records]

    def _to_detail(self, record: CheckoutDB) -> CheckoutDetailModel:
        copy = record.book_copy
        return CheckoutDetailModel(
            id=record.id,
            book_copy_id=record.book_copy_id,
            student_id=record.student_id,
            checkout_date=record.checkout_date,
            due_date=record.due_date,
            return_date=record.return_date,
            status=record.status,
            student_name=record.student.full_name,
            book_id=copy.book_id,
            book_title=copy.book.title,
            book_author=copy.book.author,
            copy_number=copy.copy_number,
        )
