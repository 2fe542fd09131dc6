"""
Exceptions for BookLedger

Closed set of failures raised by the service layer:
- NotFoundError: referenced user or book does not exist
- BusinessRuleViolation: deterministic rule failure (availability, duplicates, guards)
- DuplicateResourceError: unique key already taken (ISBN, email)
- InvariantViolation: bookkeeping would break a counter invariant
- InvalidInputError: a value the tables cannot hold (blank name, bad ISBN)

None of these know about HTTP. The API layer maps them to status codes.
"""

from typing import Optional


class LibraryError(Exception):
    """Base exception for BookLedger errors."""

    def __init__(
        self,
        message: str,
        code: str = "LIBRARY_ERROR",
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)


class NotFoundError(LibraryError):
    """Resource not found."""

    def __init__(self, resource: str, identifier):
        super().__init__(
            message=f"{resource} not found",
            code="RESOURCE_NOT_FOUND",
            detail=f"No {resource.lower()} with identifier '{identifier}' exists",
        )
        self.resource = resource
        self.identifier = identifier


class DuplicateResourceError(LibraryError):
    """Unique key already in use."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message=message, code="DUPLICATE_RESOURCE", detail=detail)

    @classmethod
    def for_book_isbn(cls, isbn: str) -> "DuplicateResourceError":
        return cls(f"Book with ISBN {isbn} already exists")

    @classmethod
    def for_user_email(cls, email: str) -> "DuplicateResourceError":
        return cls(f"User with email {email} already exists")


class BusinessRuleViolation(LibraryError):
    """A library rule rejected the operation."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message=message, code="BUSINESS_RULE_VIOLATION", detail=detail)

    @classmethod
    def book_not_available(cls, title: str, book_id: int) -> "BusinessRuleViolation":
        return cls(
            f"Book '{title}' is not available for borrowing",
            detail=f"book_id={book_id} available_copies=0",
        )

    @classmethod
    def already_borrowed(cls, user_id: int, book_id: int) -> "BusinessRuleViolation":
        return cls(
            "You have already borrowed this book",
            detail=f"user_id={user_id} book_id={book_id}",
        )

    @classmethod
    def not_currently_borrowed(cls, user_id: int, book_id: int) -> "BusinessRuleViolation":
        return cls(
            "You have not borrowed this book or it has already been returned",
            detail=f"user_id={user_id} book_id={book_id}",
        )

    @classmethod
    def minimum_copies_required(cls) -> "BusinessRuleViolation":
        return cls("Total copies must be at least 1")

    @classmethod
    def cannot_reduce_copies_below_borrowed(
        cls, borrowed_copies: int, new_total_copies: int
    ) -> "BusinessRuleViolation":
        return cls(
            f"Cannot set total copies to {new_total_copies} when "
            f"{borrowed_copies} copies are currently borrowed",
            detail=f"borrowed_copies={borrowed_copies} new_total_copies={new_total_copies}",
        )

    @classmethod
    def cannot_delete_book_with_borrowed_copies(
        cls, title: str, available_copies: int, total_copies: int
    ) -> "BusinessRuleViolation":
        return cls(
            f"Cannot delete book '{title}' with borrowed copies. "
            "Please ensure all copies are returned first.",
            detail=f"available_copies={available_copies} total_copies={total_copies}",
        )


class InvariantViolation(LibraryError):
    """Copy bookkeeping would leave the 0 <= available <= total range."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message=message, code="INVARIANT_VIOLATION", detail=detail)


class InvalidInputError(LibraryError):
    """A field value the catalog or user registry cannot store."""

    def __init__(self, field: str, message: str):
        super().__init__(message=message, code="INVALID_INPUT", detail=f"field={field}")
        self.field = field

    @classmethod
    def blank(cls, field: str) -> "InvalidInputError":
        return cls(field, f"{field.replace('_', ' ').capitalize()} must not be blank")

    @classmethod
    def isbn_length(cls, isbn: str) -> "InvalidInputError":
        return cls("isbn", f"ISBN must be 10 to 20 characters, got {len(isbn)}")
