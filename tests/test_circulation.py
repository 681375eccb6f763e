"""
Tests for the circulation repository.

Checkout and return must keep the ledger and the copy status in step:
a copy is "checked out" exactly while it has one open ledger entry.
"""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from booknav.database import circulation_repository as circulation_module
from booknav.database import (
    BookRepository,
    CirculationRepository,
    ConflictError,
    CopyStatusUpdate,
    InvalidInputError,
    NotFoundError,
    SettingsRepository,
    SettingsUpdateSchema,
)
from booknav.database.schema import BookCopy as BookCopyDB
from booknav.database.schema import CheckoutRecord as CheckoutDB
from booknav.models import CheckoutStatus, CopyStatus

CHECKOUT_TIME = datetime(2024, 12, 1, 9, 30)


@pytest.fixture
def circulation(test_db_session):
    return CirculationRepository(test_db_session, clock=lambda: CHECKOUT_TIME)


@pytest.fixture
def books(test_db_session):
    return BookRepository(test_db_session)


@pytest.fixture
def copy_id(books, library):
    return books.list_copies(library.single_copy_book.id)[0].id


class TestCheckout:
    def test_checkout_available_copy(self, circulation, books, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id, due_date=date(2024, 12, 31))

        assert record.id.startswith("checkout_")
        assert record.status == CheckoutStatus.CHECKED_OUT
        assert record.is_open
        assert record.checkout_date == CHECKOUT_TIME
        assert record.due_date == date(2024, 12, 31)
        assert record.return_date is None
        assert books.get_copy(copy_id).status == CopyStatus.CHECKED_OUT

    def test_default_due_date_uses_loan_period(self, circulation, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id)
        assert record.due_date == CHECKOUT_TIME.date() + timedelta(days=14)

    def test_loan_period_follows_settings(self, circulation, test_db_session, library, copy_id):
        SettingsRepository(test_db_session).update(SettingsUpdateSchema(default_due_days=7))

        record = circulation.checkout(copy_id, library.student.id)
        assert record.due_date == date(2024, 12, 8)

    def test_unavailable_copy_conflicts_and_creates_nothing(
        self, circulation, library, copy_id
    ):
        circulation.checkout(copy_id, library.student.id)

        with pytest.raises(ConflictError):
            circulation.checkout(copy_id, library.other_student.id)

        history = circulation.copy_history(copy_id)
        assert len(history) == 1
        assert history[0].student_id == library.student.id

    def test_copy_in_repair_conflicts(self, circulation, books, library, copy_id):
        books.set_copy_status(copy_id, CopyStatusUpdate(status=CopyStatus.IN_REPAIR))

        with pytest.raises(ConflictError):
            circulation.checkout(copy_id, library.student.id)
        assert circulation.copy_history(copy_id) == []

    def test_missing_copy_or_student(self, circulation, library, copy_id):
        with pytest.raises(NotFoundError):
            circulation.checkout("copy_missing000", library.student.id)
        with pytest.raises(NotFoundError):
            circulation.checkout(copy_id, "student_missing000")

    def test_due_date_before_checkout_rejected(self, circulation, books, library, copy_id):
        with pytest.raises(InvalidInputError):
            circulation.checkout(copy_id, library.student.id, due_date=date(2024, 11, 30))
        assert books.get_copy(copy_id).status == CopyStatus.AVAILABLE

    def test_checkout_limit(self, circulation, test_db_session, library):
        SettingsRepository(test_db_session).update(SettingsUpdateSchema(max_checkout_books=1))
        circulation.checkout_by_book(library.book.id, library.student.id)

        with pytest.raises(ConflictError, match="limit 1"):
            circulation.checkout_by_book(library.single_copy_book.id, library.student.id)

    def test_lost_race_reports_conflict(self, circulation, test_db_session, library, copy_id):
        # Load the copy, then let another writer take it behind this session's back.
        test_db_session.get(BookCopyDB, copy_id)
        test_db_session.execute(
            text("UPDATE book_copies SET status = 'CHECKED_OUT' WHERE id = :id"), {"id": copy_id}
        )
        test_db_session.commit()

        with pytest.raises(ConflictError):
            circulation.checkout(copy_id, library.student.id)
        assert circulation.copy_history(copy_id) == []

    def test_one_open_record_per_copy_enforced_by_index(
        self, circulation, test_db_session, library, copy_id
    ):
        circulation.checkout(copy_id, library.student.id)

        test_db_session.add(
            CheckoutDB(
                id="checkout_duplicate01",
                book_copy_id=copy_id,
                student_id=library.other_student.id,
                due_date=date(2024, 12, 31),
                status=CheckoutStatus.CHECKED_OUT,
            )
        )
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()


class TestCheckoutByBook:
    def test_picks_an_available_copy(self, circulation, books, library):
        first = circulation.checkout_by_book(library.book.id, library.student.id)
        second = circulation.checkout_by_book(library.book.id, library.other_student.id)

        assert first.book_copy_id != second.book_copy_id
        assert books.get(library.book.id).available_copies == 0

    def test_no_copy_available(self, circulation, library):
        circulation.checkout_by_book(library.single_copy_book.id, library.student.id)

        with pytest.raises(ConflictError, match="No copies"):
            circulation.checkout_by_book(library.single_copy_book.id, library.other_student.id)

    def test_missing_book(self, circulation, library):
        with pytest.raises(NotFoundError):
            circulation.checkout_by_book("book_missing000", library.student.id)


class TestReturn:
    def test_return_restores_copy(self, circulation, books, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id)

        returned = circulation.return_checkout(record.id, datetime(2024, 12, 10, 14, 0))

        assert returned.status == CheckoutStatus.RETURNED
        assert returned.return_date == datetime(2024, 12, 10, 14, 0)
        assert not returned.is_open
        assert books.get_copy(copy_id).status == CopyStatus.AVAILABLE

    def test_return_defaults_to_now(self, circulation, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id)
        assert circulation.return_checkout(record.id).return_date == CHECKOUT_TIME

    def test_return_unknown_record(self, circulation, books, library, copy_id):
        circulation.checkout(copy_id, library.student.id)

        with pytest.raises(NotFoundError):
            circulation.return_checkout("checkout_missing000")

        assert books.get_copy(copy_id).status == CopyStatus.CHECKED_OUT
        assert len(circulation.student_current(library.student.id)) == 1

    def test_return_before_checkout_rejected(self, circulation, books, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id)

        with pytest.raises(InvalidInputError):
            circulation.return_checkout(record.id, date(2024, 11, 30))
        assert books.get_copy(copy_id).status == CopyStatus.CHECKED_OUT

    def test_second_return_is_a_no_op(self, circulation, test_db_session, books, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id)
        first = circulation.return_checkout(record.id, datetime(2024, 12, 5, 10, 0))

        # Someone checks the copy out again before the duplicate return arrives.
        again = circulation.checkout(copy_id, library.other_student.id)
        second = circulation.return_checkout(record.id, datetime(2024, 12, 20, 10, 0))

        assert second == first
        assert books.get_copy(copy_id).status == CopyStatus.CHECKED_OUT
        assert circulation.get(again.id).is_open

    def test_example_scenario(self, circulation, books, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id, date(2024, 12, 31))
        assert record.status == "checked out"
        assert books.get_copy(copy_id).status == "checked out"

        returned = circulation.return_checkout(record.id, date(2024, 12, 15))
        assert returned.status == "returned"
        assert returned.return_date == datetime(2024, 12, 15)
        assert books.get_copy(copy_id).status == "available"

    def test_return_by_isbn(self, circulation, books, library):
        record = circulation.checkout_by_book(library.book.id, library.student.id)

        returned = circulation.return_by_isbn("978-0-06-440055-8")

        assert returned.id == record.id
        assert returned.status == CheckoutStatus.RETURNED
        assert books.get(library.book.id).available_copies == 2

    def test_return_by_isbn_scoped_to_student(self, circulation, library):
        circulation.checkout_by_book(library.book.id, library.student.id)
        theirs = circulation.checkout_by_book(library.book.id, library.other_student.id)

        returned = circulation.return_by_isbn("9780064400558", student_id=library.other_student.id)
        assert returned.id == theirs.id

    def test_return_by_isbn_without_open_checkout(self, circulation, library):  # noqa: ARG002
        with pytest.raises(NotFoundError):
            circulation.return_by_isbn("9780064400558")
        with pytest.raises(NotFoundError):
            circulation.return_by_isbn("0000000000")


class TestOverdue:
    def test_mark_overdue(self, circulation, library):
        late = circulation.checkout_by_book(
            library.book.id, library.student.id, due_date=date(2024, 12, 5)
        )
        on_time = circulation.checkout_by_book(
            library.book.id, library.other_student.id, due_date=date(2024, 12, 31)
        )

        assert circulation.mark_overdue(as_of=date(2024, 12, 10)) == 1
        assert circulation.get(late.id).status == CheckoutStatus.OVERDUE
        assert circulation.get(on_time.id).status == CheckoutStatus.CHECKED_OUT

        # Already overdue records are not counted again.
        assert circulation.mark_overdue(as_of=date(2024, 12, 10)) == 0

    def test_overdue_record_is_returnable(self, circulation, books, library, copy_id):
        record = circulation.checkout(copy_id, library.student.id, due_date=date(2024, 12, 5))
        circulation.mark_overdue(as_of=date(2024, 12, 10))

        with pytest.raises(ConflictError):
            circulation.checkout(copy_id, library.other_student.id)

        returned = circulation.return_checkout(record.id, date(2024, 12, 12))
        assert returned.status == CheckoutStatus.RETURNED
        assert books.get_copy(copy_id).status == CopyStatus.AVAILABLE


class TestQueries:
    def test_list_all_joins_student_and_book(self, circulation, library, copy_id):
        circulation.checkout(copy_id, library.student.id)

        [detail] = circulation.list_all()
        assert detail.student_name == "Ava Lopez"
        assert detail.book_title == "Holes"
        assert detail.book_author == "Louis Sachar"
        assert detail.book_id == library.single_copy_book.id
        assert detail.copy_number == 1

    def test_student_history_and_current(self, circulation, library, copy_id):
        first = circulation.checkout(copy_id, library.student.id)
        circulation.return_checkout(first.id, date(2024, 12, 3))
        current = circulation.checkout_by_book(library.book.id, library.student.id)

        assert {r.id for r in circulation.student_history(library.student.id)} == {
            first.id,
            current.id,
        }
        assert [r.id for r in circulation.student_current(library.student.id)] == [current.id]

        with pytest.raises(NotFoundError):
            circulation.student_history("student_missing000")

    def test_reading_history(self, test_db_session, library):
        clock_times = iter([datetime(2024, 11, 1, 9, 0), datetime(2024, 11, 20, 9, 0)])
        circulation = CirculationRepository(test_db_session, clock=lambda: next(clock_times))

        early = circulation.checkout_by_book(library.book.id, library.student.id)
        circulation.return_checkout(early.id, datetime(2024, 11, 8, 15, 0))
        later = circulation.checkout_by_book(library.single_copy_book.id, library.student.id)
        circulation.return_checkout(later.id, datetime(2024, 11, 21, 15, 0))

        history = circulation.reading_history(library.student.id)

        assert [h.book_title for h in history] == ["Holes", "Charlotte's Web"]
        assert [h.days_kept for h in history] == [1, 7]

    def test_book_current(self, circulation, library):
        record = circulation.checkout_by_book(library.book.id, library.student.id)

        assert [r.id for r in circulation.book_current(library.book.id)] == [record.id]
        assert circulation.book_current(library.single_copy_book.id) == []

    def test_checkout_status(self, circulation, library):
        action = circulation.checkout_status("978-0-06-440055-8", library.student.id)
        assert action.action == "checkout"
        assert action.title == "Charlotte's Web"
        assert action.book_id == library.book.id

        circulation.checkout_by_book(library.book.id, library.student.id)

        assert circulation.checkout_status("9780064400558", library.student.id).action == "return"
        assert (
            circulation.checkout_status("9780064400558", library.other_student.id).action
            == "checkout"
        )

    def test_checkout_status_unknown_isbn(self, circulation, library):
        with pytest.raises(NotFoundError):
            circulation.checkout_status("9999999999", library.student.id)


class TestConcurrentSessions:
    """Two desks working through separate sessions on the same database."""

    def test_other_request_ending_mid_checkout_keeps_copy_flip(
        self, db_manager, library, copy_id, monkeypatch
    ):
        real_commit = circulation_module.safe_commit

        def commit_after_other_request(session, operation):
            # A read-only request finishes between the copy flip and the commit.
            other = db_manager.create_session()
            other.execute(select(1))
            other.rollback()
            other.close()
            real_commit(session, operation)

        monkeypatch.setattr(circulation_module, "safe_commit", commit_after_other_request)

        with db_manager.session_scope() as session:
            record = CirculationRepository(session).checkout(copy_id, library.student.id)

        with db_manager.session_scope() as session:
            assert session.get(BookCopyDB, copy_id).status == CopyStatus.CHECKED_OUT
            assert session.get(CheckoutDB, record.id).status == CheckoutStatus.CHECKED_OUT

    def test_late_duplicate_return_leaves_new_loan_alone(self, db_manager, library, copy_id):
        first_desk = db_manager.create_session()
        second_desk = db_manager.create_session()
        try:
            record = CirculationRepository(first_desk).checkout(copy_id, library.student.id)

            second = CirculationRepository(second_desk)
            second.return_checkout(record.id)
            relent = second.checkout(copy_id, library.other_student.id)

            # The first desk still sees its loan as open.
            late = CirculationRepository(first_desk).return_checkout(record.id)
            assert late.status == CheckoutStatus.RETURNED
        finally:
            first_desk.close()
            second_desk.close()

        with db_manager.session_scope() as session:
            assert session.get(BookCopyDB, copy_id).status == CopyStatus.CHECKED_OUT
            assert session.get(CheckoutDB, relent.id).status == CheckoutStatus.CHECKED_OUT
