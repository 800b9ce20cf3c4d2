"""
Search Service

Read-side API over the quote corpus: exact-ID fetch, cursor-paginated text
search and random sampling, each scoped to one collection.

Every operation resolves the collection first, so an unknown collection is
always reported as CollectionNotFoundError, never as QuoteNotFoundError.

Falling back to a random quote when a search has no result is left to the
caller.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import QuoteNotFoundError
from ..db import CollectionInfo, CollectionResolver, QuoteStore
from ..indexer.sanitizer import query_terms
from ..quotes.models import Quote

logger = logging.getLogger("quotebot.search")


class SearchService:
    """
    Collection-scoped quote lookups.
    """

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        resolver: Optional[CollectionResolver] = None,
        store: Optional[QuoteStore] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Build from a session, or from an explicit resolver and store.
        """
        if session is None and (resolver is None or store is None):
            raise ValueError("SearchService needs a session or both a resolver and a store")

        self._resolver = resolver or CollectionResolver(session, timeout)
        self._store = store or QuoteStore(session, timeout)

    @staticmethod
    def _attach(collection: CollectionInfo, quote: Optional[Quote]) -> Optional[Quote]:
        if quote is None:
            return None

        return quote.model_copy(
            update={"collection": collection.name, "language": collection.language}
        )

    async def has_collection(self, name: str) -> bool:
        return await self._resolver.exists(name)

    async def list_collections(self) -> List[str]:
        return await self._resolver.list_names()

    async def get_by_id(self, collection_name: str, quote_id: str) -> Quote:
        """
        Exact fetch of a quote.

        Raises
        ------
        CollectionNotFoundError
        QuoteNotFoundError
        """
        collection = await self._resolver.get(collection_name)

        quote = self._attach(collection, await self._store.find_by_id(collection.id, quote_id))
        if quote is None:
            raise QuoteNotFoundError(collection_name, f"no quote with id `{quote_id}`")

        return quote

    async def search(
        self,
        collection_name: str,
        query: str,
        cursor: Optional[str] = None,
    ) -> Quote:
        """
        Return the next quote matching every term of `query` after `cursor`.

        Feeding back the returned ID as the next cursor enumerates all
        matches once, in increasing ID order.

        Raises
        ------
        CollectionNotFoundError
        QuoteNotFoundError
            When nothing (more) matches.
        MalformedInputError
            When the query cannot be sanitized.
        """
        collection = await self._resolver.get(collection_name)
        terms = query_terms(query)

        quote = self._attach(
            collection,
            await self._store.search(collection.id, collection.language, terms, cursor or None),
        )
        if quote is None:
            logger.debug(
                "No result in `%s` for terms=%s cursor=%s",
                collection_name,
                terms,
                cursor,
            )
            raise QuoteNotFoundError(collection_name)

        return quote

    async def random(self, collection_name: str) -> Quote:
        """
        Return a random quote of the collection.

        Raises
        ------
        CollectionNotFoundError
        QuoteNotFoundError
            When the collection is empty.
        """
        collection = await self._resolver.get(collection_name)

        quote = self._attach(collection, await self._store.random_sample(collection.id))
        if quote is None:
            raise QuoteNotFoundError(collection_name, "empty collection")

        return quote
