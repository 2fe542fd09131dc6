"""
Database models for BookLedger.

Three tables: users, books, borrow_records. Counter bounds and the
one-active-borrow-per-pair rule live here as table constraints so the
database rejects anything the service layer lets slip through.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    Date,
    DateTime,
    Boolean,
    ForeignKey,
    Index,
    CheckConstraint,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Constraint names are matched when translating IntegrityError
USER_EMAIL_UNIQUE = "uq_users_email"
BOOK_ISBN_UNIQUE = "uq_books_isbn"
ACTIVE_BORROW_INDEX = "idx_unique_active_borrow"


class UserRole(str, Enum):
    """Library user role."""
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"


class BookGenre(str, Enum):
    """Catalog genre."""
    FICTION = "FICTION"
    NON_FICTION = "NON_FICTION"
    SCIENCE = "SCIENCE"
    TECHNOLOGY = "TECHNOLOGY"
    HISTORY = "HISTORY"
    BIOGRAPHY = "BIOGRAPHY"
    MYSTERY = "MYSTERY"
    ROMANCE = "ROMANCE"
    FANTASY = "FANTASY"


class BorrowStatus(str, Enum):
    """Borrow record state. BORROWED -> RETURNED is the only transition."""
    BORROWED = "BORROWED"
    RETURNED = "RETURNED"


class UserModel(Base):
    """Library member or administrator."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(100), index=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone = Column(String(20))
    role = Column(String(20), nullable=False, default=UserRole.MEMBER.value, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    borrow_records = relationship("BorrowRecordModel", back_populates="user")

    __table_args__ = (
        UniqueConstraint("email", name=USER_EMAIL_UNIQUE),
        CheckConstraint("role IN ('MEMBER', 'ADMIN')", name="users_role_check"),
        CheckConstraint("LENGTH(first_name) > 0", name="users_first_name_check"),
        CheckConstraint("LENGTH(last_name) > 0", name="users_last_name_check"),
        Index("idx_users_name", "last_name", "first_name"),
    )


class BookModel(Base):
    """Catalog entry with copy counters."""
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    isbn = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False, index=True)
    author = Column(String(100), nullable=False, index=True)
    description = Column(Text)
    genre = Column(String(50), nullable=False, index=True)

    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)

    publication_date = Column(Date)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Soft delete keeps borrow history pointing at a real row
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime)

    borrow_records = relationship("BorrowRecordModel", back_populates="book")

    __table_args__ = (
        UniqueConstraint("isbn", name=BOOK_ISBN_UNIQUE),
        CheckConstraint("LENGTH(isbn) >= 10 AND LENGTH(isbn) <= 20", name="books_isbn_check"),
        CheckConstraint("total_copies >= 1", name="books_total_copies_check"),
        CheckConstraint("available_copies >= 0", name="books_available_copies_check"),
        CheckConstraint("available_copies <= total_copies", name="books_copies_logic_check"),
        CheckConstraint(
            "genre IN ('FICTION', 'NON_FICTION', 'SCIENCE', 'TECHNOLOGY', 'HISTORY', "
            "'BIOGRAPHY', 'MYSTERY', 'ROMANCE', 'FANTASY')",
            name="books_genre_check",
        ),
        Index("idx_books_available_copies", "available_copies"),
    )


class BorrowRecordModel(Base):
    """One lending of one copy to one user. Never deleted."""
    __tablename__ = "borrow_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)

    borrow_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    return_date = Column(Date)
    status = Column(String(20), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("UserModel", back_populates="borrow_records")
    book = relationship("BookModel", back_populates="borrow_records")

    __table_args__ = (
        CheckConstraint("status IN ('BORROWED', 'RETURNED')", name="chk_status"),
        CheckConstraint("due_date >= borrow_date", name="chk_dates"),
        CheckConstraint(
            "return_date IS NULL OR return_date >= borrow_date",
            name="chk_return_date",
        ),
        Index("idx_borrow_user_status_due", "user_id", "status", "due_date"),
        # Authoritative guard: one active borrow per (user, book)
        Index(
            ACTIVE_BORROW_INDEX,
            "user_id",
            "book_id",
            unique=True,
            postgresql_where=text("status = 'BORROWED'"),
            sqlite_where=text("status = 'BORROWED'"),
        ),
    )
