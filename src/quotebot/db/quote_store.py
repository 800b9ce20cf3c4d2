"""
Quote Store

PostgreSQL full-text search backed storage for quotes, keyed by
(collection_id, id).

Ordering is always by quote ID under the binary "C" collation, which gives
cursor pagination a total and reproducible order independent of the
database locale.

This class never commits: write operations run inside the caller's
transaction so a full replacement or an enrichment batch is applied
atomically, and concurrent readers see either the old or the new state.
"""

from __future__ import annotations

import random
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, delete, update, insert, func, cast, literal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import REGCONFIG, insert as pg_insert

from .execution import run_query
from .models import Quote as QuoteRow
from ..config import settings
from ..core.errors import MalformedInputError
from ..indexer.sanitizer import SanitizeMode, sanitize
from ..quotes.models import Quote


_QUOTE_COLUMNS = (
    QuoteRow.id,
    QuoteRow.value,
    QuoteRow.character,
    QuoteRow.context,
    QuoteRow.url,
    QuoteRow.image,
)


# ---------------------------------------------------------------------
# Query Construction
# ---------------------------------------------------------------------

def _ordered_id():
    return QuoteRow.id.collate("C")


def _text_search_config(language: str):
    return cast(literal(language), REGCONFIG)


def searchable_text(quote: Quote) -> str:
    """
    Id, value, character and context folded the way search queries are,
    so accented words match their unaccented query terms.
    """
    fields = [quote.id, quote.value, quote.character, quote.context]
    return sanitize(" ".join(field for field in fields if field), SanitizeMode.MATCH)


def search_vector_expression(language: str):
    """
    Search vector over the folded `search_text` column.
    """
    return func.to_tsvector(_text_search_config(language), QuoteRow.search_text)


def build_search_query(
    collection_id: int,
    language: str,
    terms: Sequence[str],
    cursor: Optional[str] = None,
):
    """
    Select the first quote, by ID, matching all `terms` after `cursor`.

    An empty term list matches every quote of the collection.
    """
    stmt = select(*_QUOTE_COLUMNS).where(QuoteRow.collection_id == collection_id)

    if terms:
        # plainto_tsquery ANDs every word
        tsquery = func.plainto_tsquery(_text_search_config(language), " ".join(terms))
        stmt = stmt.where(QuoteRow.search_vector.op("@@")(tsquery))

    if cursor:
        stmt = stmt.where(_ordered_id() > cursor)

    return stmt.order_by(_ordered_id()).limit(1)


def _storage_row(collection_id: int, quote: Quote) -> dict:
    row = quote.storage_row(collection_id)
    row["search_text"] = searchable_text(quote)
    return row


def _to_quote(row) -> Quote:
    return Quote(
        id=row.id,
        value=row.value,
        character=row.character,
        context=row.context,
        url=row.url,
        image=row.image,
    )


def _ensure_unique(quotes: Iterable[Quote]) -> None:
    seen = set()
    for quote in quotes:
        if quote.id in seen:
            raise MalformedInputError(f"duplicate quote id `{quote.id}` in batch")
        seen.add(quote.id)


# ---------------------------------------------------------------------
# Quote Store
# ---------------------------------------------------------------------

class QuoteStore:
    """
    Text-searchable quote storage scoped by collection.
    """

    def __init__(
        self,
        session: AsyncSession,
        timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Initialize with an async database session.

        Parameters
        ----------
        session : AsyncSession
            SQLAlchemy async session for database operations.
        timeout : Optional[float]
            Deadline for each query, settings.query_timeout_seconds by default.
        rng : Optional[random.Random]
            Source of randomness for sampling.
        """
        self._session = session
        self._timeout = timeout if timeout is not None else settings.query_timeout_seconds
        self._rng = rng or random.Random()

    async def _execute(self, stmt, operation: str, params=None):
        if params is None:
            call = self._session.execute(stmt)
        else:
            call = self._session.execute(stmt, params)

        return await run_query(call, self._timeout, operation)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _refresh_search_vectors(
        self,
        collection_id: int,
        language: str,
        ids: Optional[List[str]] = None,
    ) -> None:
        stmt = (
            update(QuoteRow)
            .where(QuoteRow.collection_id == collection_id)
            .values(search_vector=search_vector_expression(language))
            .execution_options(synchronize_session=False)
        )

        if ids is not None:
            stmt = stmt.where(QuoteRow.id.in_(ids))

        await self._execute(stmt, "create search vector")

    async def replace_all(
        self,
        collection_id: int,
        language: str,
        quotes: List[Quote],
    ) -> int:
        """
        Delete every quote of a collection and insert `quotes` instead.

        Returns the number of inserted quotes.

        Raises
        ------
        MalformedInputError
            If two quotes of the batch share an ID.
        """
        _ensure_unique(quotes)

        await self._execute(
            delete(QuoteRow)
            .where(QuoteRow.collection_id == collection_id)
            .execution_options(synchronize_session=False),
            "delete collection quotes",
        )

        if not quotes:
            return 0

        await self._execute(
            insert(QuoteRow),
            "insert quotes",
            [_storage_row(collection_id, quote) for quote in quotes],
        )

        await self._refresh_search_vectors(collection_id, language)
        await self._session.flush()

        return len(quotes)

    async def _upsert_rows(self, collection_id: int, quotes: List[Quote]) -> None:
        stmt = pg_insert(QuoteRow).values(
            [_storage_row(collection_id, quote) for quote in quotes]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[QuoteRow.collection_id, QuoteRow.id],
            set_={
                "image": func.coalesce(stmt.excluded.image, QuoteRow.image),
                "url": func.coalesce(stmt.excluded.url, QuoteRow.url),
            },
        )

        await self._execute(stmt, "upsert quotes")

    async def upsert(self, collection_id: int, language: str, quote: Quote) -> None:
        """
        Insert `quote`, or update the image and url of the stored quote with
        the same ID.
        """
        await self._upsert_rows(collection_id, [quote])
        await self._refresh_search_vectors(collection_id, language, [quote.id])
        await self._session.flush()

    async def apply_enrichment(
        self,
        collection_id: int,
        language: str,
        updates: List[Quote],
        inserts: List[Quote],
    ) -> Tuple[int, int]:
        """
        Apply an enrichment batch: image updates first, then insertions.

        Returns
        -------
        Tuple[int, int]
            (updated, inserted) counts.
        """
        _ensure_unique(updates)
        _ensure_unique(inserts)

        if updates:
            await self._execute(
                update(QuoteRow),
                "update quotes",
                [
                    {"collection_id": collection_id, "id": quote.id, "image": quote.image}
                    for quote in updates
                ],
            )

        if inserts:
            await self._upsert_rows(collection_id, inserts)
            await self._refresh_search_vectors(
                collection_id, language, [quote.id for quote in inserts]
            )

        await self._session.flush()

        return len(updates), len(inserts)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, collection_id: int, quote_id: str) -> Optional[Quote]:
        """
        Exact lookup by quote ID.
        """
        stmt = select(*_QUOTE_COLUMNS).where(
            QuoteRow.collection_id == collection_id,
            QuoteRow.id == quote_id,
        )
        result = await self._execute(stmt, "get quote")
        row = result.one_or_none()

        return _to_quote(row) if row is not None else None

    async def search(
        self,
        collection_id: int,
        language: str,
        terms: Sequence[str],
        cursor: Optional[str] = None,
    ) -> Optional[Quote]:
        """
        Return the quote with the smallest ID greater than `cursor` whose
        search vector matches all `terms`, or None.
        """
        stmt = build_search_query(collection_id, language, terms, cursor)
        result = await self._execute(stmt, "search quote")
        row = result.first()

        return _to_quote(row) if row is not None else None

    async def count(self, collection_id: int) -> int:
        """
        Number of quotes in a collection.
        """
        stmt = select(func.count()).select_from(QuoteRow).where(
            QuoteRow.collection_id == collection_id
        )
        result = await self._execute(stmt, "count quotes")
        return result.scalar() or 0

    async def random_sample(self, collection_id: int) -> Optional[Quote]:
        """
        Return one quote picked approximately uniformly, None when the
        collection is empty.

        The offset is drawn from the count read just before, so a concurrent
        shrink can overshoot; the first quote is returned in that case.
        """
        total = await self.count(collection_id)
        if total == 0:
            return None

        offset = self._rng.randrange(total)
        candidate_offsets = [offset] if offset == 0 else [offset, 0]

        for candidate_offset in candidate_offsets:
            stmt = (
                select(*_QUOTE_COLUMNS)
                .where(QuoteRow.collection_id == collection_id)
                .order_by(_ordered_id())
                .offset(candidate_offset)
                .limit(1)
            )
            result = await self._execute(stmt, "random quote")
            row = result.first()
            if row is not None:
                return _to_quote(row)

        return None

    async def list_all(self, collection_id: int) -> List[Quote]:
        """
        Every quote of a collection, ordered by ID.
        """
        stmt = (
            select(*_QUOTE_COLUMNS)
            .where(QuoteRow.collection_id == collection_id)
            .order_by(_ordered_id())
        )
        result = await self._execute(stmt, "list quotes")

        return [_to_quote(row) for row in result.all()]
