"""
Error Handling Middleware for BookLedger

Centralized error handling:
- Structured error responses
- Logging of errors
- Domain exception -> HTTP status translation
"""

import traceback
from datetime import datetime
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from .logging import get_request_id
from ...exceptions import (
    BusinessRuleViolation,
    DuplicateResourceError,
    InvariantViolation,
    LibraryError,
    NotFoundError,
)


# Most specific class first; LibraryError is the catch-all
STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateResourceError, status.HTTP_409_CONFLICT),
    # Literal: Starlette renamed the 422 constant between releases
    (BusinessRuleViolation, 422),
    (InvariantViolation, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (LibraryError, status.HTTP_400_BAD_REQUEST),
)


def status_code_for(exc: LibraryError) -> int:
    """HTTP status for a domain exception."""
    for exc_type, code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_error_response(
    error: str,
    code: str,
    status_code: int,
    detail: Optional[str] = None,
    path: Optional[str] = None,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "detail": detail,
            "path": path,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


def _validation_detail(errors) -> str:
    parts = []
    for err in errors:
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(LibraryError)
    async def library_exception_handler(request: Request, exc: LibraryError):
        status_code = status_code_for(exc)
        if isinstance(exc, InvariantViolation):
            logger.error(
                f"[{get_request_id()}] Invariant violation on {request.url.path}: "
                f"{exc.message} ({exc.detail})"
            )
        else:
            logger.warning(f"[{get_request_id()}] BookLedger error: {exc.code} - {exc.message}")
        return create_error_response(
            error=exc.message,
            code=exc.code,
            status_code=status_code,
            detail=exc.detail,
            path=request.url.path,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        detail = _validation_detail(exc.errors())
        logger.warning(f"Request validation failed on {request.url.path}: {detail}")
        return create_error_response(
            error="Validation Error",
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            path=request.url.path,
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        logger.warning(f"Validation error: {str(exc)}")
        return create_error_response(
            error="Validation Error",
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_validation_detail(exc.errors()),
            path=request.url.path,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"[{get_request_id()}] Unhandled exception: {type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
        )
        # Internal details stay in the log
        return create_error_response(
            error="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred",
            path=request.url.path,
        )
