"""SQLAlchemy models."""

from storesearch.models.base import Base
from storesearch.models.product import Product
from storesearch.models.search_history import SearchHistory

__all__ = [
    "Base",
    "Product",
    "SearchHistory",
]
