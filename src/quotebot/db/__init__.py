"""
Database Package

Provides SQLAlchemy async session management, model definitions and the
quote/collection stores for PostgreSQL full-text search.
"""

from .session import get_async_session, async_engine, AsyncSessionLocal, init_models
from .models import Base, Collection, Quote
from .collections import CollectionResolver, CollectionInfo
from .quote_store import QuoteStore

__all__ = [
    "get_async_session",
    "async_engine",
    "AsyncSessionLocal",
    "init_models",
    "Base",
    "Collection",
    "Quote",
    "CollectionResolver",
    "CollectionInfo",
    "QuoteStore",
]
