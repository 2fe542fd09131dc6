"""
Catalog Module for BookLedger

Book management and reporting:
- CatalogService: create, update, guarded copy changes, soft delete, search
- BookStatisticsService: counts and availability
"""

from bookledger.catalog.service import (
    CatalogService,
    genre_value,
)
from bookledger.catalog.statistics import BookStatisticsService

__all__ = [
    "CatalogService",
    "BookStatisticsService",
    "genre_value",
]
