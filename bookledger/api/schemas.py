"""
API Schemas for BookLedger

Pydantic models for request validation and response serialization:
- Book models
- Borrow/return models
- User models
- Statistics models

Design Decisions:
1. Separate Request/Response: Clear distinction between inputs and outputs
2. Responses validate straight from the Stored* dataclasses (from_attributes)
3. Copy-count rules are left to the service so clients get the library's
   own messages instead of generic range errors
4. Request strings are stripped before length checks, so blank names and
   titles fail validation (400)
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ConfigDict

from ..storage.models import BookGenre, BorrowStatus, UserRole


# =============================================================================
# Book Schemas
# =============================================================================

class BookBase(BaseModel):
    """Base book fields."""

    model_config = ConfigDict(str_strip_whitespace=True)

    isbn: str = Field(..., min_length=10, max_length=20)
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    genre: BookGenre
    description: Optional[str] = None
    publication_date: Optional[date] = None


class BookCreate(BookBase):
    """Book creation request. Every copy starts on the shelf."""

    total_copies: int

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "isbn": "9780441172719",
                "title": "Dune",
                "author": "Frank Herbert",
                "genre": "FICTION",
                "total_copies": 3,
                "publication_date": "1965-08-01",
            }
        }
    )


class BookUpdate(BaseModel):
    """Book update request (partial)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    isbn: Optional[str] = Field(None, min_length=10, max_length=20)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    genre: Optional[BookGenre] = None
    description: Optional[str] = None
    publication_date: Optional[date] = None
    total_copies: Optional[int] = None


class CopiesUpdate(BaseModel):
    """Change the number of owned copies."""

    total_copies: int


class BookResponse(BookBase):
    """Book response model."""

    id: int
    total_copies: int
    available_copies: int
    borrowed_copies: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookListResponse(BaseModel):
    """Paginated book list response."""

    books: list[BookResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


# =============================================================================
# Circulation Schemas
# =============================================================================

class BorrowRequest(BaseModel):
    """Borrow or return request."""

    user_id: int = Field(..., ge=1)


class BorrowRecordResponse(BaseModel):
    """Borrow record with book summary and computed overdue flag."""

    id: int
    user_id: int
    book_id: int
    book_title: Optional[str] = None
    book_author: Optional[str] = None
    book_isbn: Optional[str] = None
    status: BorrowStatus
    borrow_date: date
    due_date: date
    return_date: Optional[date] = None
    is_overdue: bool = False

    model_config = ConfigDict(from_attributes=True)


class BorrowRecordListResponse(BaseModel):
    """Paginated borrow history."""

    records: list[BorrowRecordResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class BorrowStatusResponse(BaseModel):
    """Whether a user currently holds a book."""

    user_id: int
    book_id: int
    has_borrowed: bool


# =============================================================================
# User Schemas
# =============================================================================

class UserCreate(BaseModel):
    """User registration request."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    role: UserRole = UserRole.MEMBER

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "email": "ada@example.com",
                "first_name": "Ada",
                "last_name": "Lovelace",
                "phone": "+44 20 7946 0000",
            }
        }
    )


class UserUpdate(BaseModel):
    """Profile update request (partial)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)


class RoleUpdate(BaseModel):
    """Role change request."""

    role: UserRole


class UserResponse(BaseModel):
    """User response model."""

    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Statistics Schemas
# =============================================================================

class CountResponse(BaseModel):
    """A single count."""

    count: int


class AvailabilityResponse(BaseModel):
    """Share of books with at least one available copy."""

    percentage: float


# =============================================================================
# Error Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    detail: Optional[str] = None
    path: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Book 'Dune' is not available for borrowing",
                "code": "BUSINESS_RULE_VIOLATION",
                "detail": "book_id=42 available_copies=0",
                "path": "/api/v1/inventory/books/42/borrow",
                "timestamp": "2025-01-20T12:00:00",
            }
        }
    )


# =============================================================================
# Health Check
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    environment: str
    database: str = "connected"
