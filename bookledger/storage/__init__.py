"""
Storage Module for BookLedger

Relational persistence for the library:
- SQLAlchemy models with counter CHECK constraints
- Partial unique index for one active borrow per (user, book)
- Engine/session management and per-call transactions
- Repositories for books, users and borrow records
"""

from bookledger.storage.models import (
    Base,
    UserModel,
    BookModel,
    BorrowRecordModel,
    UserRole,
    BookGenre,
    BorrowStatus,
    USER_EMAIL_UNIQUE,
    BOOK_ISBN_UNIQUE,
    ACTIVE_BORROW_INDEX,
)
from bookledger.storage.database import Database, violates_unique
from bookledger.storage.book_repository import (
    BookRepository,
    StoredBook,
)
from bookledger.storage.user_repository import (
    UserRepository,
    StoredUser,
)
from bookledger.storage.borrow_repository import (
    BorrowRecordRepository,
    StoredBorrowRecord,
)

__all__ = [
    # Models
    "Base",
    "UserModel",
    "BookModel",
    "BorrowRecordModel",
    "UserRole",
    "BookGenre",
    "BorrowStatus",
    "USER_EMAIL_UNIQUE",
    "BOOK_ISBN_UNIQUE",
    "ACTIVE_BORROW_INDEX",
    # Database
    "Database",
    "violates_unique",
    # Repositories
    "BookRepository",
    "StoredBook",
    "UserRepository",
    "StoredUser",
    "BorrowRecordRepository",
    "StoredBorrowRecord",
]
