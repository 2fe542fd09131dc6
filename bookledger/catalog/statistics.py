"""
Book statistics: catalog-wide counts and availability.
"""

from typing import Optional, Union

from loguru import logger

from bookledger.storage.book_repository import BookRepository, StoredBook
from bookledger.storage.database import Database
from bookledger.storage.models import BookGenre

from .service import genre_value


class BookStatisticsService:
    """Read-only aggregate queries over the active catalog."""

    def __init__(self, db: Database, books: Optional[BookRepository] = None):
        self.db = db
        self.books = books or BookRepository()

    def count_all(self) -> int:
        with self.db.transaction() as session:
            return self.books.count_all(session)

    def count_available(self) -> int:
        """Books with at least one copy on the shelf."""
        with self.db.transaction() as session:
            return self.books.count_available(session)

    def books_with_borrowed_copies(self) -> list[StoredBook]:
        with self.db.transaction() as session:
            return [StoredBook.from_model(b) for b in self.books.find_with_borrowed_copies(session)]

    def count_available_by_genre(self, genre: Union[BookGenre, str]) -> int:
        with self.db.transaction() as session:
            return self.books.count_available_by_genre(session, genre_value(genre))

    def availability_percentage(self) -> float:
        """
        Share of books with an available copy, as a percentage.

        Returns:
            Percentage rounded to 2 decimals; 0.0 for an empty catalog
        """
        with self.db.transaction() as session:
            total = self.books.count_all(session)
            if total == 0:
                return 0.0
            available = self.books.count_available(session)

        percentage = round(available * 100.0 / total, 2)
        logger.debug(f"Availability: {available}/{total} books ({percentage}%)")
        return percentage
