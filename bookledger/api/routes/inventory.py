"""
Inventory API Routes

Borrowing and returning books, plus circulation queries.
"""

from typing import Optional

from fastapi import APIRouter, Query, Depends
from loguru import logger

from bookledger.api.dependencies import (
    Settings,
    clamp_page_size,
    get_circulation_service,
    get_settings,
)
from bookledger.api.schemas import (
    BorrowRequest,
    BorrowRecordResponse,
    BorrowRecordListResponse,
    BorrowStatusResponse,
    ErrorResponse,
)
from bookledger.circulation import CirculationService
from bookledger.storage.models import BorrowStatus


router = APIRouter(prefix="/inventory", tags=["inventory"])


# =============================================================================
# Borrow / Return
# =============================================================================

@router.post(
    "/books/{book_id}/borrow",
    response_model=BorrowRecordResponse,
    responses={
        404: {"model": ErrorResponse, "description": "User or book not found"},
        422: {"model": ErrorResponse, "description": "Not available or already borrowed"},
    },
)
def borrow_book(
    book_id: int,
    body: BorrowRequest,
    circulation: CirculationService = Depends(get_circulation_service),
):
    """Borrow one copy of a book. The loan is due after the configured period."""
    logger.info(f"Borrow request: user {body.user_id}, book {book_id}")
    return BorrowRecordResponse.model_validate(circulation.borrow_book(body.user_id, book_id))


@router.post(
    "/books/{book_id}/return",
    response_model=BorrowRecordResponse,
    responses={
        404: {"model": ErrorResponse, "description": "User or book not found"},
        422: {"model": ErrorResponse, "description": "No active borrow to return"},
        500: {"model": ErrorResponse, "description": "Copy bookkeeping is inconsistent"},
    },
)
def return_book(
    book_id: int,
    body: BorrowRequest,
    circulation: CirculationService = Depends(get_circulation_service),
):
    """Return a borrowed copy."""
    logger.info(f"Return request: user {body.user_id}, book {book_id}")
    return BorrowRecordResponse.model_validate(circulation.return_book(body.user_id, book_id))


# =============================================================================
# Queries
# =============================================================================

@router.get(
    "/books/{book_id}/status",
    response_model=BorrowStatusResponse,
    responses={404: {"model": ErrorResponse, "description": "User or book not found"}},
)
def borrow_status(
    book_id: int,
    user_id: int = Query(..., ge=1),
    circulation: CirculationService = Depends(get_circulation_service),
):
    """Whether the user currently holds a copy of the book."""
    return BorrowStatusResponse(
        user_id=user_id,
        book_id=book_id,
        has_borrowed=circulation.has_user_borrowed_book(user_id, book_id),
    )


@router.get(
    "/users/{user_id}/borrows",
    response_model=BorrowRecordListResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
def user_borrow_records(
    user_id: int,
    record_status: Optional[BorrowStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    circulation: CirculationService = Depends(get_circulation_service),
    settings: Settings = Depends(get_settings),
):
    """A user's borrow history, newest first."""
    page_size = clamp_page_size(page_size, settings)
    records, total = circulation.get_user_borrow_records(
        user_id,
        status=record_status,
        page=page,
        limit=page_size,
    )
    return BorrowRecordListResponse(
        records=[BorrowRecordResponse.model_validate(r) for r in records],
        total=total,
        page=page,
        page_size=page_size,
        has_more=(page * page_size) < total,
    )


@router.get("/overdue", response_model=list[BorrowRecordResponse])
def overdue_records(
    circulation: CirculationService = Depends(get_circulation_service),
):
    """Active borrows past their due date, oldest due date first."""
    return [BorrowRecordResponse.model_validate(r) for r in circulation.list_overdue()]
