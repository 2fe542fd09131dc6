"""
Request/Response logging middleware.

One access log line per API request on the ``bookledger.api`` logger:
- Request IDs (taken from X-Request-ID or generated) echoed on the response
  and shared with the error handlers through a contextvar
- Timing, with slow requests flagged
- Member contact details redacted from logged bodies
"""

import time
import uuid
import json
import logging
from typing import Optional, Callable, Set, Any
from dataclasses import dataclass, field
from contextvars import ContextVar

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

logger = logging.getLogger("bookledger.api")


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    # Registration and profile bodies carry contact details; see redacted_fields
    log_request_body: bool = False
    max_body_log_size: int = 4096

    excluded_paths: Set[str] = field(default_factory=lambda: {"/health", "/favicon.ico"})

    redacted_fields: Set[str] = field(default_factory=lambda: {
        "email",
        "phone",
        "first_name",
        "last_name",
    })

    slow_request_threshold: float = 1.0

    request_id_header: str = "X-Request-ID"


class StructuredLogFormatter(logging.Formatter):
    """JSON lines for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "request_id": request_id_var.get(),
            "message": record.getMessage(),
        }
        for key in ("request_data", "status_code", "duration_ms"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def redact_sensitive_data(data: Any, redacted_fields: Set[str]) -> Any:
    """Recursively replace redacted keys in a JSON-like structure."""
    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if key.lower() in redacted_fields else redact_sensitive_data(value, redacted_fields)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, redacted_fields) for item in data]
    return data


def get_request_id() -> str:
    """ID of the request being served, or "-" outside a request."""
    return request_id_var.get()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log middleware."""

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    async def _body_for_log(self, request: Request) -> Optional[str]:
        body = await request.body()
        if not body:
            return None
        if len(body) > self.config.max_body_log_size:
            return f"[{len(body)} bytes]"
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return "[non-JSON body]"
        return json.dumps(redact_sensitive_data(payload, self.config.redacted_fields))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.config.request_id_header) or uuid.uuid4().hex[:8]
        request_id_var.set(request_id)

        if request.url.path in self.config.excluded_paths:
            response = await call_next(request)
            response.headers[self.config.request_id_header] = request_id
            return response

        request_data = {
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "client_ip": request.client.host if request.client else None,
        }
        if self.config.log_request_body and request.method in ("POST", "PUT", "PATCH"):
            body = await self._body_for_log(request)
            if body:
                request_data["body"] = body

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time
        duration_ms = round(duration * 1000, 2)

        response.headers[self.config.request_id_header] = request_id

        slow = duration > self.config.slow_request_threshold
        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400 or slow:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        message = f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"
        if slow:
            message = f"[SLOW] {message}"

        logger.log(
            log_level,
            message,
            extra={
                "request_data": request_data,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
    structured: bool = True,
) -> None:
    """
    Install the access log middleware.

    Args:
        app: FastAPI application instance.
        config: Logging configuration.
        structured: Emit JSON lines from the ``bookledger`` logger.
    """
    if structured:
        bookledger_logger = logging.getLogger("bookledger")
        if not any(isinstance(h.formatter, StructuredLogFormatter) for h in bookledger_logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredLogFormatter())
            bookledger_logger.addHandler(handler)
        bookledger_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config or LoggingConfig())
