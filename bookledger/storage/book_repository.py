"""
Book Repository for BookLedger

Structured storage for the book catalog using SQLAlchemy:
- PostgreSQL for production
- SQLite for development/testing
- Filtering and pagination
- Atomic copy-counter updates

Design Decisions:
1. Counter changes are single conditional UPDATEs; rowcount decides success
2. Soft deletes: borrow history keeps pointing at a real row
3. Callers own the session; every method runs inside their transaction
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from loguru import logger
from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.orm import Session

from .models import BookModel


@dataclass
class StoredBook:
    """Data class for book data transfer."""

    id: int
    isbn: str
    title: str
    author: str
    genre: str
    total_copies: int
    available_copies: int

    description: Optional[str] = None
    publication_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def borrowed_copies(self) -> int:
        return self.total_copies - self.available_copies

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    @classmethod
    def from_model(cls, model: BookModel) -> "StoredBook":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            isbn=model.isbn,
            title=model.title,
            author=model.author,
            genre=model.genre,
            total_copies=model.total_copies,
            available_copies=model.available_copies,
            description=model.description,
            publication_date=model.publication_date,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class BookRepository:
    """
    Repository for book catalog rows.

    Usage:
        repo = BookRepository()

        with db.transaction() as session:
            book = repo.add(session, isbn="9780441172719", title="Dune", ...)
            repo.decrement_available(session, book.id)
    """

    def _active(self):
        return BookModel.is_deleted == False  # noqa: E712

    def add(self, session: Session, **fields) -> BookModel:
        """
        Insert a book row and flush to obtain its id.

        Args:
            session: Open session
            **fields: Column values

        Returns:
            Persisted BookModel
        """
        book = BookModel(**fields)
        session.add(book)
        session.flush()
        session.refresh(book)
        return book

    def get(
        self,
        session: Session,
        book_id: int,
        include_deleted: bool = False,
    ) -> Optional[BookModel]:
        """
        Get book by ID.

        Args:
            session: Open session
            book_id: Book ID
            include_deleted: Also return soft-deleted rows

        Returns:
            BookModel or None
        """
        query = select(BookModel).where(BookModel.id == book_id)
        if not include_deleted:
            query = query.where(self._active())
        return session.execute(
            query.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_by_isbn(
        self,
        session: Session,
        isbn: str,
        include_deleted: bool = False,
    ) -> Optional[BookModel]:
        """
        Get book by ISBN.

        Args:
            session: Open session
            isbn: ISBN as stored
            include_deleted: Also match soft-deleted rows

        Returns:
            BookModel or None
        """
        query = select(BookModel).where(BookModel.isbn == isbn.strip())
        if not include_deleted:
            query = query.where(self._active())
        return session.execute(query).scalar_one_or_none()

    def exists(self, session: Session, book_id: int) -> bool:
        return session.execute(
            select(BookModel.id).where(BookModel.id == book_id, self._active())
        ).first() is not None

    def update_fields(self, session: Session, book: BookModel, **updates) -> BookModel:
        """
        Update plain descriptive fields.

        Copy counters are not touched here; use ``set_total_copies``.
        """
        for key, value in updates.items():
            if key in ("total_copies", "available_copies"):
                continue
            if hasattr(book, key):
                setattr(book, key, value)

        book.updated_at = datetime.utcnow()
        session.flush()
        return book

    # =========================================================================
    # Copy counters
    # =========================================================================

    def decrement_available(self, session: Session, book_id: int) -> bool:
        """
        Take one copy off the shelf.

        Returns:
            False if no copy was available (nothing changed)
        """
        result = session.execute(
            update(BookModel)
            .where(
                BookModel.id == book_id,
                self._active(),
                BookModel.available_copies > 0,
            )
            .values(available_copies=BookModel.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def increment_available(self, session: Session, book_id: int) -> bool:
        """
        Put one copy back on the shelf.

        Returns:
            False if all copies were already available (nothing changed)
        """
        result = session.execute(
            update(BookModel)
            .where(
                BookModel.id == book_id,
                BookModel.available_copies < BookModel.total_copies,
            )
            .values(available_copies=BookModel.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_total_copies(self, session: Session, book_id: int, new_total: int) -> bool:
        """
        Change the owned copy count, shifting available copies by the same delta.

        The borrowed count (total - available) is preserved. The update only
        applies when the new total still covers every borrowed copy.

        Returns:
            False if the guard rejected the change (nothing changed)
        """
        result = session.execute(
            update(BookModel)
            .where(
                BookModel.id == book_id,
                self._active(),
                BookModel.total_copies - BookModel.available_copies <= new_total,
            )
            .values(
                available_copies=BookModel.available_copies + (new_total - BookModel.total_copies),
                total_copies=new_total,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def soft_delete_if_all_returned(self, session: Session, book_id: int) -> bool:
        """
        Mark the book deleted only if no copy is out.

        Returns:
            False if the book has borrowed copies (nothing changed)
        """
        now = datetime.utcnow()
        result = session.execute(
            update(BookModel)
            .where(
                BookModel.id == book_id,
                self._active(),
                BookModel.available_copies == BookModel.total_copies,
            )
            .values(is_deleted=True, deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # =========================================================================
    # Queries
    # =========================================================================

    def search(
        self,
        session: Session,
        term: Optional[str] = None,
        genre: Optional[str] = None,
        available_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[BookModel], int]:
        """
        Search books with filtering and pagination.

        Args:
            session: Open session
            term: Case-insensitive fragment of title or author
            genre: Exact genre
            available_only: Only books with available copies
            page: Page number (1-based)
            limit: Items per page

        Returns:
            (List of BookModels ordered by title, total_count)
        """
        query = select(BookModel).where(self._active())

        if term:
            pattern = f"%{term.strip()}%"
            query = query.where(
                or_(
                    BookModel.title.ilike(pattern),
                    BookModel.author.ilike(pattern),
                )
            )

        if genre:
            query = query.where(BookModel.genre == genre)

        if available_only:
            query = query.where(BookModel.available_copies > 0)

        total = session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        offset = (page - 1) * limit
        books = session.execute(
            query.order_by(BookModel.title.asc(), BookModel.id.asc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()

        logger.debug(f"Book search term={term!r} genre={genre} available_only={available_only}: {total} hits")
        return list(books), total

    def full_text_search(self, session: Session, term: str, limit: int = 50) -> list[BookModel]:
        """
        Relevance-ranked search over title and author.

        PostgreSQL matches English stems with ``to_tsvector`` / ``plainto_tsquery``
        and orders by ``ts_rank``. Other engines require every word of the
        term in the title or author and rank title hits first.

        Args:
            session: Open session
            term: Free text, e.g. "machine learning"
            limit: Maximum number of results

        Returns:
            BookModels, most relevant first
        """
        words = term.split()
        if not words:
            return []

        if session.get_bind().dialect.name == "postgresql":
            query = func.plainto_tsquery("english", term)
            title_matches = func.to_tsvector("english", BookModel.title).bool_op("@@")(query)
            author_matches = func.to_tsvector("english", BookModel.author).bool_op("@@")(query)
            document = func.to_tsvector("english", BookModel.title + " " + BookModel.author)
            statement = (
                select(BookModel)
                .where(self._active(), or_(title_matches, author_matches))
                .order_by(func.ts_rank(document, query).desc(), BookModel.title)
            )
        else:
            every_word = and_(*[
                or_(BookModel.title.ilike(f"%{w}%"), BookModel.author.ilike(f"%{w}%"))
                for w in words
            ])
            title_hits = sum(case((BookModel.title.ilike(f"%{w}%"), 1), else_=0) for w in words)
            statement = (
                select(BookModel)
                .where(self._active(), every_word)
                .order_by(title_hits.desc(), BookModel.title)
            )

        books = list(session.execute(statement.limit(limit)).scalars().all())
        logger.debug(f"Full-text search {term!r}: {len(books)} hits")
        return books

    def find_by_genre(self, session: Session, genre: str) -> list[BookModel]:
        return list(session.execute(
            select(BookModel)
            .where(self._active(), BookModel.genre == genre)
            .order_by(BookModel.title)
        ).scalars().all())

    def find_available(self, session: Session) -> list[BookModel]:
        return list(session.execute(
            select(BookModel)
            .where(self._active(), BookModel.available_copies > 0)
            .order_by(BookModel.title)
        ).scalars().all())

    def find_by_title(self, session: Session, title: str) -> list[BookModel]:
        return list(session.execute(
            select(BookModel)
            .where(self._active(), BookModel.title.ilike(f"%{title}%"))
            .order_by(BookModel.title)
        ).scalars().all())

    def find_by_author(self, session: Session, author: str) -> list[BookModel]:
        return list(session.execute(
            select(BookModel)
            .where(self._active(), BookModel.author.ilike(f"%{author}%"))
            .order_by(BookModel.title)
        ).scalars().all())

    def find_with_borrowed_copies(self, session: Session) -> list[BookModel]:
        return list(session.execute(
            select(BookModel)
            .where(self._active(), BookModel.available_copies < BookModel.total_copies)
            .order_by(BookModel.title)
        ).scalars().all())

    # =========================================================================
    # Counts
    # =========================================================================

    def count_all(self, session: Session) -> int:
        return session.execute(
            select(func.count(BookModel.id)).where(self._active())
        ).scalar_one()

    def count_available(self, session: Session) -> int:
        return session.execute(
            select(func.count(BookModel.id)).where(
                self._active(),
                BookModel.available_copies > 0,
            )
        ).scalar_one()

    def count_available_by_genre(self, session: Session, genre: str) -> int:
        return session.execute(
            select(func.count(BookModel.id)).where(
                self._active(),
                BookModel.genre == genre,
                BookModel.available_copies > 0,
            )
        ).scalar_one()
