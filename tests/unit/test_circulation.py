"""
Unit tests for the borrow/return lifecycle and loan policy.
"""

import threading
from datetime import date, timedelta

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from bookledger.circulation import LoanPolicy
from bookledger.exceptions import (
    BusinessRuleViolation,
    InvariantViolation,
    NotFoundError,
)
from bookledger.storage import BookModel, BorrowRecordModel, BorrowStatus


def active_records(database, user_id, book_id):
    with database.transaction() as session:
        return session.execute(
            select(BorrowRecordModel).where(
                BorrowRecordModel.user_id == user_id,
                BorrowRecordModel.book_id == book_id,
                BorrowRecordModel.status == BorrowStatus.BORROWED.value,
            )
        ).scalars().all()


def counters(catalog, book_id):
    book = catalog.get_book(book_id)
    return book.available_copies, book.total_copies


# =============================================================================
# Loan Policy
# =============================================================================

class TestLoanPolicy:
    """Tests for due dates and overdue state."""

    @pytest.mark.parametrize(
        "borrow_date, expected_due",
        [
            (date(2024, 3, 11), date(2024, 3, 18)),
            (date(2024, 1, 28), date(2024, 2, 4)),    # month rollover
            (date(2024, 2, 25), date(2024, 3, 3)),    # leap February
            (date(2023, 2, 25), date(2023, 3, 4)),
            (date(2024, 12, 28), date(2025, 1, 4)),   # year rollover
        ],
    )
    def test_due_date_is_seven_calendar_days(self, borrow_date, expected_due):
        assert LoanPolicy().due_date(borrow_date) == expected_due

    def test_custom_loan_period(self):
        assert LoanPolicy(loan_days=14).due_date(date(2024, 3, 1)) == date(2024, 3, 15)

    def test_rejects_non_positive_loan_period(self):
        with pytest.raises(ValueError):
            LoanPolicy(loan_days=0)

    def test_overdue_only_after_due_date(self):
        policy = LoanPolicy()
        due = date(2024, 3, 18)

        assert not policy.is_overdue("BORROWED", due, today=due)
        assert policy.is_overdue("BORROWED", due, today=due + timedelta(days=1))

    def test_returned_record_is_never_overdue(self):
        policy = LoanPolicy()
        assert not policy.is_overdue("RETURNED", date(2024, 1, 1), today=date(2024, 6, 1))

    def test_uses_injected_clock(self, policy, clock):
        assert policy.today() == clock.today


# =============================================================================
# Borrow
# =============================================================================

class TestBorrow:
    """Tests for borrowing."""

    def test_borrow_creates_record_and_takes_a_copy(self, circulation, catalog, make_book, make_user, clock):
        book = make_book(total_copies=3)
        user = make_user()

        record = circulation.borrow_book(user.id, book.id)

        assert record.status == BorrowStatus.BORROWED.value
        assert record.borrow_date == clock.today
        assert record.due_date == clock.today + timedelta(days=7)
        assert record.return_date is None
        assert record.is_overdue is False
        assert record.book_title == book.title
        assert counters(catalog, book.id) == (2, 3)

    def test_due_date_across_year_boundary(self, circulation, make_book, make_user, clock):
        clock.today = date(2024, 12, 30)
        book = make_book()
        user = make_user()

        record = circulation.borrow_book(user.id, book.id)

        assert record.due_date == date(2025, 1, 6)

    def test_borrow_unavailable_book_fails_without_record(self, circulation, catalog, database, make_book, make_user):
        book = make_book(total_copies=1)
        first, second = make_user(), make_user()
        circulation.borrow_book(first.id, book.id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            circulation.borrow_book(second.id, book.id)

        assert "not available" in exc_info.value.message
        assert counters(catalog, book.id) == (0, 1)
        assert active_records(database, second.id, book.id) == []

    def test_borrow_twice_fails_already_borrowed(self, circulation, catalog, make_book, make_user):
        book = make_book(total_copies=3)
        user = make_user()
        circulation.borrow_book(user.id, book.id)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            circulation.borrow_book(user.id, book.id)

        assert exc_info.value.message == "You have already borrowed this book"
        assert counters(catalog, book.id) == (2, 3)

    def test_borrow_unknown_user(self, circulation, make_book):
        book = make_book()

        with pytest.raises(NotFoundError) as exc_info:
            circulation.borrow_book(999, book.id)

        assert exc_info.value.resource == "User"

    def test_borrow_unknown_book(self, circulation, make_user):
        user = make_user()

        with pytest.raises(NotFoundError) as exc_info:
            circulation.borrow_book(user.id, 999)

        assert exc_info.value.resource == "Book"

    def test_borrow_deleted_book(self, circulation, catalog, make_book, make_user):
        book = make_book()
        catalog.delete_book(book.id)

        with pytest.raises(NotFoundError):
            circulation.borrow_book(make_user().id, book.id)

    def test_index_rejects_race_past_precheck(self, circulation, catalog, database, make_book, make_user, monkeypatch):
        """A duplicate that slips past the existence check is stopped by the unique index."""
        book = make_book(total_copies=3)
        user = make_user()
        circulation.borrow_book(user.id, book.id)

        monkeypatch.setattr(circulation.records, "find_active", lambda *args, **kwargs: None)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            circulation.borrow_book(user.id, book.id)

        assert exc_info.value.message == "You have already borrowed this book"
        assert isinstance(exc_info.value.__cause__, IntegrityError)
        # The decrement was rolled back with the failed insert
        assert counters(catalog, book.id) == (2, 3)
        assert len(active_records(database, user.id, book.id)) == 1

    def test_stale_read_cannot_take_last_copy(self, circulation, catalog, database, make_book, make_user):
        """A caller that saw a copy on the shelf still loses once another borrow took it."""
        book = make_book(total_copies=1)
        late_session = database.get_session()
        try:
            stale = circulation.books.get(late_session, book.id)
            assert stale.available_copies == 1

            circulation.borrow_book(make_user().id, book.id)

            assert circulation.books.decrement_available(late_session, book.id) is False
            late_session.rollback()
        finally:
            late_session.close()

        assert counters(catalog, book.id) == (0, 1)


# =============================================================================
# Concurrency
# =============================================================================

def race(workers, action):
    """Run ``action(i)`` on ``workers`` threads released together; collect outcomes."""
    barrier = threading.Barrier(workers)
    outcomes = [None] * workers

    def run(i):
        barrier.wait(timeout=10)
        try:
            action(i)
            outcomes[i] = "ok"
        except BusinessRuleViolation as e:
            outcomes[i] = e.message

    threads = [threading.Thread(target=run, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


class TestConcurrentBorrows:
    """Simultaneous borrows against one SQLite file."""

    def test_last_copy_goes_to_exactly_one_borrower(self, circulation, catalog, database, make_book, make_user):
        book = make_book(total_copies=1)
        users = [make_user() for _ in range(4)]

        outcomes = race(4, lambda i: circulation.borrow_book(users[i].id, book.id))

        assert outcomes.count("ok") == 1
        assert all("not available" in o for o in outcomes if o != "ok")
        assert counters(catalog, book.id) == (0, 1)
        holders = [u for u in users if active_records(database, u.id, book.id)]
        assert len(holders) == 1

    def test_same_user_racing_gets_one_loan(self, circulation, catalog, database, make_book, make_user):
        book = make_book(total_copies=3)
        user = make_user()

        outcomes = race(3, lambda i: circulation.borrow_book(user.id, book.id))

        assert outcomes.count("ok") == 1
        assert all(o == "You have already borrowed this book" for o in outcomes if o != "ok")
        assert counters(catalog, book.id) == (2, 3)
        assert len(active_records(database, user.id, book.id)) == 1


# =============================================================================
# Return
# =============================================================================

class TestReturn:
    """Tests for returning."""

    def test_return_restores_available_copies(self, circulation, catalog, make_book, make_user, clock):
        book = make_book(total_copies=2)
        user = make_user()
        before = counters(catalog, book.id)

        circulation.borrow_book(user.id, book.id)
        clock.advance(3)
        record = circulation.return_book(user.id, book.id)

        assert record.status == BorrowStatus.RETURNED.value
        assert record.return_date == clock.today
        assert record.is_overdue is False
        assert counters(catalog, book.id) == before

    def test_return_without_active_borrow(self, circulation, catalog, make_book, make_user):
        book = make_book(total_copies=2)
        user = make_user()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            circulation.return_book(user.id, book.id)

        assert "not borrowed" in exc_info.value.message
        assert counters(catalog, book.id) == (2, 2)

    def test_return_unknown_user(self, circulation, make_book):
        with pytest.raises(NotFoundError):
            circulation.return_book(999, make_book().id)

    def test_late_return_is_recorded(self, circulation, make_book, make_user, clock):
        book = make_book()
        user = make_user()
        borrowed = circulation.borrow_book(user.id, book.id)

        clock.advance(10)
        returned = circulation.return_book(user.id, book.id)

        assert returned.return_date > borrowed.due_date
        # Overdue describes active loans only
        assert returned.is_overdue is False

    def test_counter_at_total_raises_invariant_violation(self, circulation, catalog, database, make_book, make_user):
        book = make_book(total_copies=2)
        user = make_user()
        circulation.borrow_book(user.id, book.id)

        # Corrupt the counter behind the service's back
        with database.transaction() as session:
            session.execute(
                update(BookModel)
                .where(BookModel.id == book.id)
                .values(available_copies=BookModel.total_copies)
            )

        with pytest.raises(InvariantViolation):
            circulation.return_book(user.id, book.id)

        # Rolled back: the record is still active and the counter untouched
        assert len(active_records(database, user.id, book.id)) == 1
        assert counters(catalog, book.id) == (2, 2)


# =============================================================================
# Queries
# =============================================================================

class TestCirculationQueries:
    """Tests for borrow status, history and overdue listing."""

    def test_has_user_borrowed_book(self, circulation, make_book, make_user):
        book = make_book()
        user = make_user()

        assert circulation.has_user_borrowed_book(user.id, book.id) is False
        circulation.borrow_book(user.id, book.id)
        assert circulation.has_user_borrowed_book(user.id, book.id) is True
        circulation.return_book(user.id, book.id)
        assert circulation.has_user_borrowed_book(user.id, book.id) is False

    def test_history_filters_by_status(self, circulation, make_book, make_user, clock):
        user = make_user()
        first, second = make_book(), make_book()

        circulation.borrow_book(user.id, first.id)
        clock.advance(1)
        circulation.borrow_book(user.id, second.id)
        circulation.return_book(user.id, first.id)

        records, total = circulation.get_user_borrow_records(user.id)
        assert total == 2
        # Newest borrow first
        assert [r.book_id for r in records] == [second.id, first.id]

        active, active_total = circulation.get_user_borrow_records(user.id, status=BorrowStatus.BORROWED)
        assert active_total == 1
        assert active[0].book_id == second.id

    def test_history_pagination(self, circulation, make_book, make_user):
        user = make_user()
        for _ in range(5):
            circulation.borrow_book(user.id, make_book().id)

        page_two, total = circulation.get_user_borrow_records(user.id, page=2, limit=2)

        assert total == 5
        assert len(page_two) == 2

    def test_history_for_unknown_user(self, circulation):
        with pytest.raises(NotFoundError):
            circulation.get_user_borrow_records(999)

    def test_overdue_is_computed_on_read(self, circulation, make_book, make_user, clock):
        user = make_user()
        book = make_book()
        circulation.borrow_book(user.id, book.id)

        clock.advance(7)
        assert circulation.list_overdue() == []

        clock.advance(1)
        overdue = circulation.list_overdue()
        assert [r.book_id for r in overdue] == [book.id]
        assert overdue[0].is_overdue is True

        records, _ = circulation.get_user_borrow_records(user.id)
        assert records[0].is_overdue is True


# =============================================================================
# Scenario
# =============================================================================

class TestLendingScenario:
    """Two members sharing a three-copy book."""

    def test_full_lifecycle(self, circulation, catalog, make_book, make_user, clock):
        book = make_book(total_copies=3)
        user_one, user_two = make_user(), make_user()

        record = circulation.borrow_book(user_one.id, book.id)
        assert counters(catalog, book.id) == (2, 3)
        assert record.status == "BORROWED"
        assert record.due_date == record.borrow_date + timedelta(days=7)

        with pytest.raises(BusinessRuleViolation, match="already borrowed"):
            circulation.borrow_book(user_one.id, book.id)
        assert counters(catalog, book.id) == (2, 3)

        circulation.borrow_book(user_two.id, book.id)
        assert counters(catalog, book.id) == (1, 3)

        returned = circulation.return_book(user_one.id, book.id)
        assert counters(catalog, book.id) == (2, 3)
        assert returned.status == "RETURNED"
        assert returned.return_date == clock.today

        with pytest.raises(BusinessRuleViolation, match="not borrowed"):
            circulation.return_book(user_one.id, book.id)
        assert counters(catalog, book.id) == (2, 3)

    def test_borrow_again_after_return(self, circulation, catalog, make_book, make_user):
        book = make_book(total_copies=1)
        user = make_user()

        circulation.borrow_book(user.id, book.id)
        circulation.return_book(user.id, book.id)
        record = circulation.borrow_book(user.id, book.id)

        assert record.status == "BORROWED"
        assert counters(catalog, book.id) == (0, 1)
