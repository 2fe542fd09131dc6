"""
Catalog Service for BookLedger

Book management:
- Create books with unique ISBNs
- Descriptive updates and guarded copy-count changes
- Guarded soft delete
- Search, relevance-ranked full-text search, filtered listings and genre lookup

Design Decisions:
1. ``total_copies`` only moves through ``set_total_copies`` so the borrowed
   count (total - available) never changes behind a borrower's back
2. A rejected conditional UPDATE is re-read to tell "missing" from "guarded"
3. ISBNs stay reserved after soft delete
"""

from datetime import date
from typing import Optional, Union

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookledger.exceptions import (
    BusinessRuleViolation,
    DuplicateResourceError,
    InvalidInputError,
    NotFoundError,
)
from bookledger.storage.book_repository import BookRepository, StoredBook
from bookledger.storage.database import Database, violates_unique
from bookledger.storage.models import BOOK_ISBN_UNIQUE, BookGenre, BookModel

DESCRIPTIVE_FIELDS = ("isbn", "title", "author", "genre", "description", "publication_date")


def genre_value(genre: Union[BookGenre, str]) -> str:
    """Normalize a genre argument to its stored value."""
    if isinstance(genre, BookGenre):
        return genre.value
    return BookGenre(genre.strip().upper()).value


def _clean_text(field: str, value: str) -> str:
    value = value.strip()
    if not value:
        raise InvalidInputError.blank(field)
    if field == "isbn" and not 10 <= len(value) <= 20:
        raise InvalidInputError.isbn_length(value)
    return value


def _is_isbn_conflict(exc: IntegrityError) -> bool:
    return violates_unique(exc, BOOK_ISBN_UNIQUE, "books.isbn")


class CatalogService:
    """
    Book catalog operations.

    Usage:
        catalog = CatalogService(db)
        book = catalog.create_book(
            isbn="9780441172719", title="Dune", author="Frank Herbert",
            genre=BookGenre.FICTION, total_copies=3,
        )
        catalog.set_total_copies(book.id, 5)
    """

    def __init__(self, db: Database, books: Optional[BookRepository] = None):
        self.db = db
        self.books = books or BookRepository()

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_book(
        self,
        isbn: str,
        title: str,
        author: str,
        genre: Union[BookGenre, str],
        total_copies: int,
        description: Optional[str] = None,
        publication_date: Optional[date] = None,
    ) -> StoredBook:
        """
        Add a book to the catalog with every copy on the shelf.

        Raises:
            BusinessRuleViolation: total_copies < 1
            DuplicateResourceError: ISBN already used, including by a deleted book
            InvalidInputError: blank title or author, ISBN outside 10-20 characters
        """
        if total_copies < 1:
            raise BusinessRuleViolation.minimum_copies_required()

        isbn = _clean_text("isbn", isbn)
        title = _clean_text("title", title)
        author = _clean_text("author", author)
        logger.debug(f"Creating book with ISBN: {isbn}")

        try:
            with self.db.transaction() as session:
                if self.books.get_by_isbn(session, isbn, include_deleted=True) is not None:
                    logger.warning(f"Book with ISBN {isbn} already exists")
                    raise DuplicateResourceError.for_book_isbn(isbn)

                book = self.books.add(
                    session,
                    isbn=isbn,
                    title=title,
                    author=author,
                    genre=genre_value(genre),
                    description=description,
                    publication_date=publication_date,
                    total_copies=total_copies,
                    available_copies=total_copies,
                )
                stored = StoredBook.from_model(book)
        except IntegrityError as e:
            if _is_isbn_conflict(e):
                # Lost a race on the ISBN unique constraint
                raise DuplicateResourceError.for_book_isbn(isbn) from e
            raise

        logger.info(f"Book created: '{stored.title}' (ID: {stored.id})")
        return stored

    def update_book(self, book_id: int, **updates) -> StoredBook:
        """
        Update descriptive fields and, optionally, the total copy count.

        Args:
            book_id: Book to update
            **updates: Any of isbn, title, author, genre, description,
                publication_date, total_copies. ``None`` values are ignored.

        Raises:
            NotFoundError: book does not exist
            DuplicateResourceError: new ISBN belongs to another book
            BusinessRuleViolation: copy-count guard rejected the change
            InvalidInputError: blank title or author, ISBN outside 10-20 characters
        """
        updates = {k: v for k, v in updates.items() if v is not None}
        new_total = updates.pop("total_copies", None)
        fields = {k: v for k, v in updates.items() if k in DESCRIPTIVE_FIELDS}
        for key in ("isbn", "title", "author"):
            if key in fields:
                fields[key] = _clean_text(key, fields[key])

        logger.debug(f"Updating book {book_id}: {sorted(fields)}{' +total_copies' if new_total is not None else ''}")

        try:
            with self.db.transaction() as session:
                book = self._require_book(session, book_id)

                if "isbn" in fields and fields["isbn"] != book.isbn:
                    clash = self.books.get_by_isbn(session, fields["isbn"], include_deleted=True)
                    if clash is not None:
                        raise DuplicateResourceError.for_book_isbn(fields["isbn"])
                if "genre" in fields:
                    fields["genre"] = genre_value(fields["genre"])

                if fields:
                    self.books.update_fields(session, book, **fields)

                if new_total is not None and new_total != book.total_copies:
                    self._apply_total_copies(session, book, new_total)

                stored = StoredBook.from_model(self.books.get(session, book_id))
        except IntegrityError as e:
            if "isbn" in fields and _is_isbn_conflict(e):
                raise DuplicateResourceError.for_book_isbn(fields["isbn"]) from e
            raise

        logger.info(f"Book updated: '{stored.title}' (ID: {book_id})")
        return stored

    def set_total_copies(self, book_id: int, new_total_copies: int) -> StoredBook:
        """
        Change how many copies the library owns.

        Available copies shift by the same delta, so borrowed copies stay
        accounted for.

        Raises:
            NotFoundError: book does not exist
            BusinessRuleViolation: new total < 1 or below the borrowed count
        """
        logger.debug(f"Setting total copies of book {book_id} to {new_total_copies}")

        with self.db.transaction() as session:
            book = self._require_book(session, book_id)
            self._apply_total_copies(session, book, new_total_copies)
            stored = StoredBook.from_model(self.books.get(session, book_id))

        logger.info(
            f"Book {book_id} now has {stored.total_copies} copies "
            f"({stored.available_copies} available)"
        )
        return stored

    def delete_book(self, book_id: int) -> None:
        """
        Soft-delete a book with no copies out.

        Raises:
            NotFoundError: book does not exist
            BusinessRuleViolation: some copies are still borrowed
        """
        logger.debug(f"Deleting book {book_id}")

        with self.db.transaction() as session:
            book = self._require_book(session, book_id)

            if not self.books.soft_delete_if_all_returned(session, book_id):
                current = self._require_book(session, book_id)
                logger.warning(
                    f"Refusing to delete book {book_id}: "
                    f"{current.total_copies - current.available_copies} copies borrowed"
                )
                raise BusinessRuleViolation.cannot_delete_book_with_borrowed_copies(
                    current.title, current.available_copies, current.total_copies
                )

        logger.info(f"Book deleted: '{book.title}' (ID: {book_id})")

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_book(self, book_id: int) -> StoredBook:
        with self.db.transaction() as session:
            return StoredBook.from_model(self._require_book(session, book_id))

    def get_by_isbn(self, isbn: str) -> StoredBook:
        with self.db.transaction() as session:
            book = self.books.get_by_isbn(session, isbn)
            if book is None:
                raise NotFoundError("Book", isbn)
            return StoredBook.from_model(book)

    def search_books(
        self,
        term: Optional[str] = None,
        genre: Optional[Union[BookGenre, str]] = None,
        available_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[StoredBook], int]:
        """
        Search the catalog.

        Args:
            term: Fragment of title or author
            genre: Restrict to a genre
            available_only: Only books with a copy on the shelf
            page: Page number (1-based)
            limit: Items per page

        Returns:
            (books ordered by title, total_count)
        """
        with self.db.transaction() as session:
            books, total = self.books.search(
                session,
                term=term,
                genre=genre_value(genre) if genre else None,
                available_only=available_only,
                page=page,
                limit=limit,
            )
            return [StoredBook.from_model(b) for b in books], total

    def full_text_search(self, term: str, limit: int = 50) -> list[StoredBook]:
        """Books matching every word of ``term`` in title or author, most relevant first."""
        logger.debug(f"Full-text search: {term!r}")
        with self.db.transaction() as session:
            return self._views(self.books.full_text_search(session, term, limit=limit))

    def find_by_genre(self, genre: Union[BookGenre, str]) -> list[StoredBook]:
        with self.db.transaction() as session:
            return self._views(self.books.find_by_genre(session, genre_value(genre)))

    def find_available(self) -> list[StoredBook]:
        with self.db.transaction() as session:
            return self._views(self.books.find_available(session))

    def find_by_title(self, title: str) -> list[StoredBook]:
        with self.db.transaction() as session:
            return self._views(self.books.find_by_title(session, title.strip()))

    def find_by_author(self, author: str) -> list[StoredBook]:
        with self.db.transaction() as session:
            return self._views(self.books.find_by_author(session, author.strip()))

    @staticmethod
    def list_genres() -> list[str]:
        return [g.value for g in BookGenre]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_book(self, session: Session, book_id: int) -> BookModel:
        book = self.books.get(session, book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    def _apply_total_copies(self, session: Session, book: BookModel, new_total: int) -> None:
        if new_total < 1:
            raise BusinessRuleViolation.minimum_copies_required()

        if not self.books.set_total_copies(session, book.id, new_total):
            current = self._require_book(session, book.id)
            borrowed = current.total_copies - current.available_copies
            logger.warning(
                f"Refusing to set total copies of book {book.id} to {new_total}: "
                f"{borrowed} copies borrowed"
            )
            raise BusinessRuleViolation.cannot_reduce_copies_below_borrowed(borrowed, new_total)

    @staticmethod
    def _views(books: list[BookModel]) -> list[StoredBook]:
        return [StoredBook.from_model(b) for b in books]
