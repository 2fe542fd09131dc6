"""
API Routes for BookLedger

Route modules:
- books: Catalog CRUD, copy counts and search
- inventory: Borrow, return and circulation queries
- users: Registration and profiles
- statistics: Catalog counts and availability
"""

from bookledger.api.routes.books import router as books_router
from bookledger.api.routes.inventory import router as inventory_router
from bookledger.api.routes.users import router as users_router
from bookledger.api.routes.statistics import router as statistics_router

__all__ = [
    "books_router",
    "inventory_router",
    "users_router",
    "statistics_router",
]
