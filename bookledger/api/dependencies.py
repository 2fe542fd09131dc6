"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Database and repositories
- Catalog, user, statistics and circulation services
"""

import os
from typing import Optional
from functools import lru_cache
from dataclasses import dataclass

from fastapi import Depends

from ..catalog import BookStatisticsService, CatalogService
from ..circulation import DEFAULT_LOAN_DAYS, CirculationService, LoanPolicy
from ..storage import (
    BookRepository,
    BorrowRecordRepository,
    Database,
    UserRepository,
)
from ..users import UserService


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite:///./bookledger.db"
    database_echo: bool = False

    # Lending
    loan_period_days: int = DEFAULT_LOAN_DAYS

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # CORS (comma separated, overrides the per-environment defaults)
    cors_allowed_origins: Optional[str] = None

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            loan_period_days=int(os.getenv("LOAN_PERIOD_DAYS", cls.loan_period_days)),
            default_page_size=int(os.getenv("DEFAULT_PAGE_SIZE", cls.default_page_size)),
            max_page_size=int(os.getenv("MAX_PAGE_SIZE", cls.max_page_size)),
            cors_allowed_origins=os.getenv("CORS_ALLOWED_ORIGINS"),
            environment=os.getenv("BOOKLEDGER_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )

    @property
    def cors_origins(self) -> list[str]:
        if not self.cors_allowed_origins:
            return []
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Service Container (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    The database engine is created on first access. Repositories are
    stateless and shared by every service.
    """

    def __init__(self, settings: Settings, database: Optional[Database] = None):
        self.settings = settings
        self._database = database
        self._book_repository = None
        self._user_repository = None
        self._borrow_record_repository = None
        self._loan_policy = None
        self._catalog = None
        self._statistics = None
        self._users = None
        self._circulation = None

    @property
    def database(self) -> Database:
        """Get database instance."""
        if self._database is None:
            self._database = Database(
                database_url=self.settings.database_url,
                echo=self.settings.database_echo,
            )
        return self._database

    @property
    def book_repository(self) -> BookRepository:
        if self._book_repository is None:
            self._book_repository = BookRepository()
        return self._book_repository

    @property
    def user_repository(self) -> UserRepository:
        if self._user_repository is None:
            self._user_repository = UserRepository()
        return self._user_repository

    @property
    def borrow_record_repository(self) -> BorrowRecordRepository:
        if self._borrow_record_repository is None:
            self._borrow_record_repository = BorrowRecordRepository()
        return self._borrow_record_repository

    @property
    def loan_policy(self) -> LoanPolicy:
        """Get loan policy. Assign a policy to inject a different clock."""
        if self._loan_policy is None:
            self._loan_policy = LoanPolicy(loan_days=self.settings.loan_period_days)
        return self._loan_policy

    @loan_policy.setter
    def loan_policy(self, policy: LoanPolicy) -> None:
        self._loan_policy = policy
        self._circulation = None

    @property
    def catalog(self) -> CatalogService:
        """Get catalog service instance."""
        if self._catalog is None:
            self._catalog = CatalogService(self.database, books=self.book_repository)
        return self._catalog

    @property
    def statistics(self) -> BookStatisticsService:
        """Get book statistics service instance."""
        if self._statistics is None:
            self._statistics = BookStatisticsService(self.database, books=self.book_repository)
        return self._statistics

    @property
    def users(self) -> UserService:
        """Get user service instance."""
        if self._users is None:
            self._users = UserService(self.database, users=self.user_repository)
        return self._users

    @property
    def circulation(self) -> CirculationService:
        """Get circulation service instance."""
        if self._circulation is None:
            self._circulation = CirculationService(
                self.database,
                policy=self.loan_policy,
                books=self.book_repository,
                users=self.user_repository,
                records=self.borrow_record_repository,
            )
        return self._circulation

    def close(self) -> None:
        """Release database connections."""
        if self._database is not None:
            self._database.dispose()


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        # Auto-initialize with default settings if not explicitly initialized
        return init_services(get_settings())
    return _service_container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_catalog_service(
    container: ServiceContainer = Depends(get_service_container),
) -> CatalogService:
    """Dependency for catalog service."""
    return container.catalog


def get_statistics_service(
    container: ServiceContainer = Depends(get_service_container),
) -> BookStatisticsService:
    """Dependency for book statistics service."""
    return container.statistics


def get_user_service(
    container: ServiceContainer = Depends(get_service_container),
) -> UserService:
    """Dependency for user service."""
    return container.users


def get_circulation_service(
    container: ServiceContainer = Depends(get_service_container),
) -> CirculationService:
    """Dependency for circulation service."""
    return container.circulation


# =============================================================================
# Pagination
# =============================================================================

def clamp_page_size(
    page_size: Optional[int],
    settings: Settings,
) -> int:
    """Apply the configured default and ceiling to a requested page size."""
    if page_size is None:
        return settings.default_page_size
    return max(1, min(page_size, settings.max_page_size))

