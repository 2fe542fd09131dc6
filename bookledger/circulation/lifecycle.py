"""
Borrow/Return Lifecycle for BookLedger

Business logic for lending copies:
- Borrowing a book (one copy off the shelf, new BORROWED record)
- Returning a book (record -> RETURNED, copy back on the shelf)
- Active-borrow checks and per-user history
- Overdue listing

Each operation is one transaction. Counters move through conditional
UPDATEs; the partial unique index on borrow_records is the final word on
duplicate active borrows.
"""

from datetime import date
from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookledger.exceptions import (
    BusinessRuleViolation,
    InvariantViolation,
    NotFoundError,
)
from bookledger.storage.book_repository import BookRepository
from bookledger.storage.borrow_repository import (
    BorrowRecordRepository,
    StoredBorrowRecord,
)
from bookledger.storage.database import Database, violates_unique
from bookledger.storage.models import ACTIVE_BORROW_INDEX, BorrowStatus
from bookledger.storage.user_repository import UserRepository

from .policy import LoanPolicy


def _is_active_borrow_conflict(exc: IntegrityError) -> bool:
    """True if the integrity error came from the one-active-borrow index."""
    return violates_unique(
        exc, ACTIVE_BORROW_INDEX, "borrow_records.user_id, borrow_records.book_id"
    )


class CirculationService:
    """
    Borrow and return books.

    Usage:
        service = CirculationService(db)
        record = service.borrow_book(user_id=1, book_id=42)
        service.return_book(user_id=1, book_id=42)
    """

    def __init__(
        self,
        db: Database,
        policy: Optional[LoanPolicy] = None,
        books: Optional[BookRepository] = None,
        users: Optional[UserRepository] = None,
        records: Optional[BorrowRecordRepository] = None,
    ):
        self.db = db
        self.policy = policy or LoanPolicy()
        self.books = books or BookRepository()
        self.users = users or UserRepository()
        self.records = records or BorrowRecordRepository()

    # =========================================================================
    # State transitions
    # =========================================================================

    def borrow_book(self, user_id: int, book_id: int) -> StoredBorrowRecord:
        """
        Lend one copy of a book to a user.

        Args:
            user_id: Borrower
            book_id: Book to borrow

        Returns:
            The new BORROWED record, due ``loan_days`` after today

        Raises:
            NotFoundError: user or book does not exist
            BusinessRuleViolation: user already holds this book, or no copy is available
        """
        logger.debug(f"User {user_id} attempting to borrow book {book_id}")

        try:
            with self.db.transaction() as session:
                self._require_user(session, user_id)
                book = self.books.get(session, book_id)
                if book is None:
                    raise NotFoundError("Book", book_id)

                if self.records.find_active(session, user_id, book_id) is not None:
                    logger.warning(f"User {user_id} already has book {book_id} borrowed")
                    raise BusinessRuleViolation.already_borrowed(user_id, book_id)

                if not self.books.decrement_available(session, book_id):
                    logger.warning(f"Book '{book.title}' (ID: {book_id}) is not available for borrowing")
                    raise BusinessRuleViolation.book_not_available(book.title, book_id)

                borrow_date = self.policy.today()
                record = self.records.add(
                    session,
                    user_id=user_id,
                    book_id=book_id,
                    borrow_date=borrow_date,
                    due_date=self.policy.due_date(borrow_date),
                )
                stored = self._view(session, record.id, borrow_date)

        except IntegrityError as e:
            if _is_active_borrow_conflict(e):
                logger.warning(f"Concurrent borrow of book {book_id} by user {user_id} rejected by index")
                raise BusinessRuleViolation.already_borrowed(user_id, book_id) from e
            raise

        logger.info(f"User {user_id} successfully borrowed book {book_id} (due: {stored.due_date})")
        return stored

    def return_book(self, user_id: int, book_id: int) -> StoredBorrowRecord:
        """
        Close the user's active borrow of a book.

        Args:
            user_id: Borrower
            book_id: Book being returned

        Returns:
            The record, now RETURNED with today's return date

        Raises:
            NotFoundError: user or book does not exist
            BusinessRuleViolation: no active borrow for this pair
            InvariantViolation: the book already shows every copy available
        """
        logger.debug(f"User {user_id} attempting to return book {book_id}")

        with self.db.transaction() as session:
            self._require_user(session, user_id)
            # Deleted books cannot have active borrows, but history may still be looked up
            book = self.books.get(session, book_id, include_deleted=True)
            if book is None:
                raise NotFoundError("Book", book_id)

            record = self.records.find_active(session, user_id, book_id, for_update=True)
            if record is None:
                logger.warning(f"User {user_id} has no active borrow of book {book_id}")
                raise BusinessRuleViolation.not_currently_borrowed(user_id, book_id)

            today = self.policy.today()
            if not self.records.mark_returned(session, record.id, today):
                logger.warning(f"Borrow record {record.id} was returned concurrently")
                raise BusinessRuleViolation.not_currently_borrowed(user_id, book_id)

            if not self.books.increment_available(session, book_id):
                logger.error(
                    f"Copy bookkeeping broken for book {book_id}: return would exceed "
                    f"total copies (available={book.available_copies}, total={book.total_copies})"
                )
                raise InvariantViolation(
                    f"Cannot return book '{book.title}': all copies are already available",
                    detail=(
                        f"book_id={book_id} available_copies={book.available_copies} "
                        f"total_copies={book.total_copies}"
                    ),
                )

            stored = self._view(session, record.id, today)

        was_overdue = today > stored.due_date
        logger.info(f"User {user_id} returned book {book_id} (overdue: {was_overdue})")
        return stored

    # =========================================================================
    # Queries
    # =========================================================================

    def has_user_borrowed_book(self, user_id: int, book_id: int) -> bool:
        """True if the user currently holds a copy of the book."""
        with self.db.transaction() as session:
            self._require_user(session, user_id)
            if not self.books.exists(session, book_id):
                raise NotFoundError("Book", book_id)
            return self.records.find_active(session, user_id, book_id) is not None

    def get_user_borrow_records(
        self,
        user_id: int,
        status: Optional[BorrowStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[StoredBorrowRecord], int]:
        """
        A user's borrow history.

        Args:
            user_id: Borrower
            status: Optional status filter
            page: Page number (1-based)
            limit: Items per page

        Returns:
            (records newest first, total_count)
        """
        today = self.policy.today()
        with self.db.transaction() as session:
            self._require_user(session, user_id)
            records, total = self.records.list_by_user(
                session,
                user_id,
                status=status.value if status else None,
                page=page,
                limit=limit,
            )
            return [self._to_stored(r, today) for r in records], total

    def list_overdue(self) -> list[StoredBorrowRecord]:
        """All active records past their due date."""
        today = self.policy.today()
        with self.db.transaction() as session:
            records = self.records.list_overdue(session, today)
            return [self._to_stored(r, today) for r in records]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_user(self, session: Session, user_id: int) -> None:
        if not self.users.exists(session, user_id):
            raise NotFoundError("User", user_id)

    def _to_stored(self, record, today: date) -> StoredBorrowRecord:
        return StoredBorrowRecord.from_model(
            record,
            is_overdue=self.policy.is_overdue(record.status, record.due_date, today),
        )

    def _view(self, session: Session, record_id: int, today: date) -> StoredBorrowRecord:
        # Reload so conditional UPDATEs are reflected
        return self._to_stored(self.records.get(session, record_id), today)
