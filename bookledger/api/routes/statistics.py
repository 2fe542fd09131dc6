"""
Statistics API Routes

Catalog counts and availability figures.
"""

from fastapi import APIRouter, Depends

from bookledger.api.dependencies import get_statistics_service
from bookledger.api.schemas import (
    AvailabilityResponse,
    BookResponse,
    CountResponse,
)
from bookledger.catalog import BookStatisticsService
from bookledger.storage.models import BookGenre


router = APIRouter(prefix="/statistics", tags=["statistics"])


@router.get("/books/count", response_model=CountResponse)
def count_books(stats: BookStatisticsService = Depends(get_statistics_service)):
    return CountResponse(count=stats.count_all())


@router.get("/books/available/count", response_model=CountResponse)
def count_available_books(stats: BookStatisticsService = Depends(get_statistics_service)):
    """Books with at least one copy on the shelf."""
    return CountResponse(count=stats.count_available())


@router.get("/books/borrowed", response_model=list[BookResponse])
def books_with_borrowed_copies(stats: BookStatisticsService = Depends(get_statistics_service)):
    """Books with at least one copy out."""
    return [BookResponse.model_validate(b) for b in stats.books_with_borrowed_copies()]


@router.get("/books/genre/{genre}/count", response_model=CountResponse)
def count_available_books_by_genre(
    genre: BookGenre,
    stats: BookStatisticsService = Depends(get_statistics_service),
):
    """Available books in a genre."""
    return CountResponse(count=stats.count_available_by_genre(genre))


@router.get("/books/availability/percentage", response_model=AvailabilityResponse)
def availability_percentage(stats: BookStatisticsService = Depends(get_statistics_service)):
    return AvailabilityResponse(percentage=stats.availability_percentage())
