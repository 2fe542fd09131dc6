"""
Borrow Record Repository for BookLedger

Permanent lending history:
- Insert new BORROWED records
- Locate the active record for a (user, book) pair
- Conditional BORROWED -> RETURNED transition
- Per-user history with status filter and pagination
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from .models import BorrowRecordModel, BorrowStatus


@dataclass
class StoredBorrowRecord:
    """Data class for borrow record transfer, with book summary fields."""

    id: int
    user_id: int
    book_id: int
    borrow_date: date
    due_date: date
    status: str
    return_date: Optional[date] = None

    book_title: Optional[str] = None
    book_author: Optional[str] = None
    book_isbn: Optional[str] = None

    is_overdue: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(
        cls,
        model: BorrowRecordModel,
        is_overdue: bool = False,
    ) -> "StoredBorrowRecord":
        """Create from SQLAlchemy model. Overdue state is computed by the caller."""
        book = model.book
        return cls(
            id=model.id,
            user_id=model.user_id,
            book_id=model.book_id,
            borrow_date=model.borrow_date,
            due_date=model.due_date,
            status=model.status,
            return_date=model.return_date,
            book_title=book.title if book is not None else None,
            book_author=book.author if book is not None else None,
            book_isbn=book.isbn if book is not None else None,
            is_overdue=is_overdue,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class BorrowRecordRepository:
    """Repository for borrow_records rows. Rows are never deleted."""

    def add(
        self,
        session: Session,
        user_id: int,
        book_id: int,
        borrow_date: date,
        due_date: date,
    ) -> BorrowRecordModel:
        """
        Insert a BORROWED record and flush.

        Raises:
            sqlalchemy.exc.IntegrityError: the pair already has an active record
        """
        record = BorrowRecordModel(
            user_id=user_id,
            book_id=book_id,
            borrow_date=borrow_date,
            due_date=due_date,
            status=BorrowStatus.BORROWED.value,
        )
        session.add(record)
        session.flush()
        return record

    def get(self, session: Session, record_id: int) -> Optional[BorrowRecordModel]:
        return session.execute(
            select(BorrowRecordModel)
            .options(joinedload(BorrowRecordModel.book))
            .where(BorrowRecordModel.id == record_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def find_active(
        self,
        session: Session,
        user_id: int,
        book_id: int,
        for_update: bool = False,
    ) -> Optional[BorrowRecordModel]:
        """
        Active (BORROWED) record for the pair, if any.

        Args:
            session: Open session
            user_id: Borrower
            book_id: Book
            for_update: Lock the row (ignored by SQLite)
        """
        query = select(BorrowRecordModel).where(
            BorrowRecordModel.user_id == user_id,
            BorrowRecordModel.book_id == book_id,
            BorrowRecordModel.status == BorrowStatus.BORROWED.value,
        )
        if for_update:
            query = query.with_for_update()
        return session.execute(query).scalar_one_or_none()

    def mark_returned(self, session: Session, record_id: int, return_date: date) -> bool:
        """
        BORROWED -> RETURNED, only if the record is still BORROWED.

        Returns:
            False if the record was already returned (nothing changed)
        """
        result = session.execute(
            update(BorrowRecordModel)
            .where(
                BorrowRecordModel.id == record_id,
                BorrowRecordModel.status == BorrowStatus.BORROWED.value,
            )
            .values(
                status=BorrowStatus.RETURNED.value,
                return_date=return_date,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_by_user(
        self,
        session: Session,
        user_id: int,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[BorrowRecordModel], int]:
        """
        A user's records, newest borrow first.

        Args:
            session: Open session
            user_id: Borrower
            status: Optional BORROWED / RETURNED filter
            page: Page number (1-based)
            limit: Items per page

        Returns:
            (List of records, total_count)
        """
        query = select(BorrowRecordModel).where(BorrowRecordModel.user_id == user_id)
        if status:
            query = query.where(BorrowRecordModel.status == status)

        total = session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        records = session.execute(
            query.options(joinedload(BorrowRecordModel.book))
            .order_by(BorrowRecordModel.borrow_date.desc(), BorrowRecordModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return list(records), total

    def list_overdue(self, session: Session, today: date) -> list[BorrowRecordModel]:
        """Active records whose due date is before ``today``."""
        return list(session.execute(
            select(BorrowRecordModel)
            .options(joinedload(BorrowRecordModel.book))
            .where(
                BorrowRecordModel.status == BorrowStatus.BORROWED.value,
                BorrowRecordModel.due_date < today,
            )
            .order_by(BorrowRecordModel.due_date.asc(), BorrowRecordModel.id.asc())
        ).scalars().all())

