"""
Pytest configuration and fixtures for BookLedger tests.
"""

from datetime import date, timedelta
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from bookledger.api.main import create_app
from bookledger.api.dependencies import (
    ServiceContainer,
    Settings,
    get_service_container,
    get_settings,
)
from bookledger.catalog import BookStatisticsService, CatalogService
from bookledger.circulation import CirculationService, LoanPolicy
from bookledger.storage import BookGenre, Database
from bookledger.users import UserService


# =============================================================================
# Clock
# =============================================================================

class FixedClock:
    """Controllable stand-in for ``date.today``."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int) -> date:
        self.today = self.today + timedelta(days=days)
        return self.today


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(date(2024, 3, 11))


@pytest.fixture
def policy(clock) -> LoanPolicy:
    return LoanPolicy(loan_days=7, clock=clock)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "bookledger-test.db"


@pytest.fixture
def database(db_path):
    """Fresh SQLite file database per test."""
    db = Database(sqlite_path=db_path)
    yield db
    db.dispose()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def catalog(database) -> CatalogService:
    return CatalogService(database)


@pytest.fixture
def statistics(database) -> BookStatisticsService:
    return BookStatisticsService(database)


@pytest.fixture
def user_service(database) -> UserService:
    return UserService(database)


@pytest.fixture
def circulation(database, policy) -> CirculationService:
    return CirculationService(database, policy=policy)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def sample_book_data() -> dict:
    """Sample book data for testing."""
    return {
        "isbn": "9780743273565",
        "title": "The Great Gatsby",
        "author": "F. Scott Fitzgerald",
        "genre": "FICTION",
        "total_copies": 3,
        "description": "A story of decadence and excess in the Jazz Age.",
        "publication_date": "1925-04-10",
    }


@pytest.fixture
def sample_books_batch() -> list[dict]:
    """Multiple sample books for search and statistics tests."""
    return [
        {
            "isbn": "9780451524935",
            "title": "1984",
            "author": "George Orwell",
            "genre": "FICTION",
            "total_copies": 2,
        },
        {
            "isbn": "9780061120084",
            "title": "To Kill a Mockingbird",
            "author": "Harper Lee",
            "genre": "FICTION",
            "total_copies": 1,
        },
        {
            "isbn": "9780553380163",
            "title": "A Brief History of Time",
            "author": "Stephen Hawking",
            "genre": "SCIENCE",
            "total_copies": 4,
        },
        {
            "isbn": "9780307465351",
            "title": "The Code Book",
            "author": "Simon Singh",
            "genre": "TECHNOLOGY",
            "total_copies": 1,
        },
    ]


@pytest.fixture
def make_book(catalog):
    """Factory creating books with unique ISBNs."""
    counter = {"n": 0}

    def _make(total_copies: int = 3, title: str = None, genre=BookGenre.FICTION, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        return catalog.create_book(
            isbn=kwargs.pop("isbn", f"97800000{n:05d}"),
            title=title or f"Test Book {n}",
            author=kwargs.pop("author", f"Author {n}"),
            genre=genre,
            total_copies=total_copies,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_user(user_service):
    """Factory creating members with unique emails."""
    counter = {"n": 0}

    def _make(first_name: str = "Test", last_name: str = None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        return user_service.create_user(
            email=kwargs.pop("email", f"user{n}@example.com"),
            first_name=first_name,
            last_name=last_name or f"User{n}",
            **kwargs,
        )

    return _make


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def test_settings(db_path) -> Settings:
    """Settings configured for testing."""
    return Settings(
        database_url=f"sqlite:///{db_path}",
        database_echo=False,
        loan_period_days=7,
        default_page_size=20,
        max_page_size=50,
        environment="test",
        debug=True,
    )


@pytest.fixture
def container(test_settings, database, policy) -> ServiceContainer:
    services = ServiceContainer(test_settings, database=database)
    services.loan_policy = policy
    return services


@pytest_asyncio.fixture
async def app(test_settings, container):
    """Create FastAPI application for testing."""
    application = create_app(test_settings)

    application.dependency_overrides[get_settings] = lambda: test_settings
    application.dependency_overrides[get_service_container] = lambda: container

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
