"""
BookLedger - FastAPI Backend.

HTTP surface for the library catalog, users and lending.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_service_container,
    ServiceContainer,
)
from .schemas import (
    BookCreate,
    BookUpdate,
    BookResponse,
    BookListResponse,
    BorrowRequest,
    BorrowRecordResponse,
    UserCreate,
    UserResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_service_container",
    "ServiceContainer",
    # Schemas
    "BookCreate",
    "BookUpdate",
    "BookResponse",
    "BookListResponse",
    "BorrowRequest",
    "BorrowRecordResponse",
    "UserCreate",
    "UserResponse",
    "HealthResponse",
    "ErrorResponse",
]
