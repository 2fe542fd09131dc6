"""
CORS Configuration

Cross-Origin Resource Sharing for the library's browser frontend.
"""

from typing import List, Optional
from dataclasses import dataclass, field, replace
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


@dataclass
class CORSConfig:
    """CORS configuration settings."""

    allowed_origins: List[str] = field(default_factory=list)

    allow_credentials: bool = True

    allowed_methods: List[str] = field(default_factory=lambda: [
        "GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"
    ])

    allowed_headers: List[str] = field(default_factory=lambda: [
        "Accept",
        "Accept-Language",
        "Content-Type",
        "Content-Language",
        "X-Request-ID",
    ])

    expose_headers: List[str] = field(default_factory=lambda: [
        "X-Request-ID",
    ])

    # Preflight cache (seconds)
    max_age: int = 3600

    # Development only
    allow_all_origins: bool = False


CORS_CONFIGS = {
    "development": CORSConfig(
        allowed_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        allow_all_origins=True,
    ),
    "test": CORSConfig(
        allowed_origins=["http://testserver"],
    ),
    "staging": CORSConfig(
        allowed_origins=[
            "https://staging.bookledger.example.com",
        ],
    ),
    "production": CORSConfig(
        allowed_origins=[
            "https://bookledger.example.com",
            "https://library.bookledger.example.com",
        ],
        max_age=7200,
    ),
}


def get_cors_config(
    environment: str = "development",
    extra_origins: Optional[List[str]] = None,
) -> CORSConfig:
    """
    CORS configuration for an environment.

    Args:
        environment: development, test, staging or production. Unknown
            names fall back to development.
        extra_origins: Origins allowed on top of the environment's list.

    Returns:
        A fresh CORSConfig; the module-level presets are never mutated.
    """
    base = CORS_CONFIGS.get(environment, CORS_CONFIGS["development"])
    origins = list(base.allowed_origins)
    for origin in extra_origins or []:
        if origin not in origins:
            origins.append(origin)
    return replace(base, allowed_origins=origins)


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    """
    Configure CORS middleware for the FastAPI application.

    Args:
        app: FastAPI application instance.
        config: CORS configuration. Defaults to the development preset.
    """
    if config is None:
        config = get_cors_config()

    if config.allow_all_origins:
        allow_origins = ["*"]
    else:
        allow_origins = config.allowed_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials=config.allow_credentials if not config.allow_all_origins else False,
        allow_methods=config.allowed_methods,
        allow_headers=config.allowed_headers,
        expose_headers=config.expose_headers,
        max_age=config.max_age,
    )
