"""Listing Store implementations"""

from typing import Optional

from .db import Database, is_postgres_url
from .memory import MemoryListingStore
from .store import ListingStore


def open_store(database_url: Optional[str] = None) -> ListingStore:
    """
    Open the store a DATABASE_URL points at.

    "memory://" selects the in-process store; anything else is handed to
    the SQL Database (sqlite:///path or postgresql://...).
    """
    if database_url == "memory://":
        return MemoryListingStore()
    return Database(database_url)


__all__ = [
    "Database",
    "ListingStore",
    "MemoryListingStore",
    "is_postgres_url",
    "open_store",
]
