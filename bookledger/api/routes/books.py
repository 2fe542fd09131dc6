"""
Book API Routes

Catalog management: create, read, update, copy-count changes, delete, search
and full-text search.
"""

from typing import Optional

from fastapi import APIRouter, Query, Depends, Response, status
from loguru import logger

from bookledger.api.dependencies import (
    Settings,
    clamp_page_size,
    get_catalog_service,
    get_settings,
)
from bookledger.api.schemas import (
    BookCreate,
    BookUpdate,
    CopiesUpdate,
    BookResponse,
    BookListResponse,
    ErrorResponse,
)
from bookledger.catalog import CatalogService
from bookledger.storage.models import BookGenre


router = APIRouter(prefix="/books", tags=["books"])


# =============================================================================
# Listing & Search
# =============================================================================

@router.get(
    "",
    response_model=BookListResponse,
)
def search_books(
    q: Optional[str] = Query(None, max_length=255, description="Title or author fragment"),
    genre: Optional[BookGenre] = Query(None, description="Filter by genre"),
    available_only: bool = Query(False, description="Only books with a copy on the shelf"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: Optional[int] = Query(None, ge=1, description="Items per page"),
    catalog: CatalogService = Depends(get_catalog_service),
    settings: Settings = Depends(get_settings),
):
    """Search the catalog with pagination, ordered by title."""
    page_size = clamp_page_size(page_size, settings)
    logger.debug(f"Searching books: q={q!r}, genre={genre}, page={page}, size={page_size}")

    books, total = catalog.search_books(
        term=q,
        genre=genre,
        available_only=available_only,
        page=page,
        limit=page_size,
    )

    return BookListResponse(
        books=[BookResponse.model_validate(b) for b in books],
        total=total,
        page=page,
        page_size=page_size,
        has_more=(page * page_size) < total,
    )


@router.get("/search/full-text", response_model=list[BookResponse])
def full_text_search(
    q: str = Query(..., min_length=1, max_length=255, description="Free-text query"),
    limit: int = Query(50, ge=1, le=100, description="Maximum results"),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Relevance-ranked search over title and author."""
    return [BookResponse.model_validate(b) for b in catalog.full_text_search(q, limit=limit)]


@router.get("/genres", response_model=list[str])
def list_genres():
    """All genre values accepted by the catalog."""
    return CatalogService.list_genres()


@router.get("/available", response_model=list[BookResponse])
def list_available_books(
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Books with at least one copy on the shelf."""
    return [BookResponse.model_validate(b) for b in catalog.find_available()]


@router.get("/genre/{genre}", response_model=list[BookResponse])
def list_books_by_genre(
    genre: BookGenre,
    catalog: CatalogService = Depends(get_catalog_service),
):
    return [BookResponse.model_validate(b) for b in catalog.find_by_genre(genre)]


@router.get("/title/{title}", response_model=list[BookResponse])
def find_books_by_title(
    title: str,
    catalog: CatalogService = Depends(get_catalog_service),
):
    return [BookResponse.model_validate(b) for b in catalog.find_by_title(title)]


@router.get("/author/{author}", response_model=list[BookResponse])
def find_books_by_author(
    author: str,
    catalog: CatalogService = Depends(get_catalog_service),
):
    return [BookResponse.model_validate(b) for b in catalog.find_by_author(author)]


@router.get(
    "/isbn/{isbn}",
    response_model=BookResponse,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
)
def get_book_by_isbn(
    isbn: str,
    catalog: CatalogService = Depends(get_catalog_service),
):
    return BookResponse.model_validate(catalog.get_by_isbn(isbn))


# =============================================================================
# CRUD Endpoints
# =============================================================================

@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "ISBN already in use"},
        422: {"model": ErrorResponse, "description": "Total copies below 1"},
    },
)
def create_book(
    book: BookCreate,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Add a book to the catalog with all copies available."""
    logger.info(f"Creating book: {book.title} by {book.author}")

    created = catalog.create_book(
        isbn=book.isbn,
        title=book.title,
        author=book.author,
        genre=book.genre,
        total_copies=book.total_copies,
        description=book.description,
        publication_date=book.publication_date,
    )
    return BookResponse.model_validate(created)


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
)
def get_book(
    book_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Get a book by ID."""
    return BookResponse.model_validate(catalog.get_book(book_id))


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Book not found"},
        409: {"model": ErrorResponse, "description": "ISBN already in use"},
        422: {"model": ErrorResponse, "description": "Copy count guard rejected the change"},
    },
)
def update_book(
    book_id: int,
    book: BookUpdate,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Update a book.

    Supports partial updates - only provided fields are modified. A new
    ``total_copies`` shifts available copies by the same amount and may
    not drop below the number currently borrowed.
    """
    logger.info(f"Updating book: {book_id}")
    updated = catalog.update_book(book_id, **book.model_dump(exclude_unset=True))
    return BookResponse.model_validate(updated)


@router.patch(
    "/{book_id}/copies",
    response_model=BookResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Book not found"},
        422: {"model": ErrorResponse, "description": "Copy count guard rejected the change"},
    },
)
def set_total_copies(
    book_id: int,
    body: CopiesUpdate,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Change how many copies the library owns."""
    logger.info(f"Setting total copies of book {book_id} to {body.total_copies}")
    return BookResponse.model_validate(catalog.set_total_copies(book_id, body.total_copies))


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"model": ErrorResponse, "description": "Book not found"},
        422: {"model": ErrorResponse, "description": "Copies still borrowed"},
    },
)
def delete_book(
    book_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Remove a book from the catalog once every copy is back."""
    logger.info(f"Deleting book: {book_id}")
    catalog.delete_book(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
