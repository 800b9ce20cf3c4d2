"""
Indexing Pipeline

Runs a batch indexing job for one collection:

1. Resolve (or create) the collection.
2. Assign identifiers to the raw quotes.
3. Replace the whole collection with the new quotes, and/or
4. Merge an enrichment batch into the collection.

Everything runs in a single transaction: on any failure nothing is
committed and readers keep seeing the previous state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .enrichment import EnrichmentMerger, load_aliases
from .identifiers import assign_ids
from .loader import find_batches, read_quotes, validate_collection_name
from ..config import settings
from ..core.errors import MalformedInputError
from ..db import AsyncSessionLocal, CollectionResolver, QuoteStore
from ..quotes.models import Quote, QuoteRecord

logger = logging.getLogger("quotebot.indexer")


@dataclass
class IndexReport:
    """Outcome of an indexing run."""
    collection: str
    collection_id: int
    replaced: Optional[int] = None
    updated: int = 0
    inserted: int = 0


async def index_collection(
    session: AsyncSession,
    name: str,
    language: Optional[str] = None,
    quotes: Optional[List[QuoteRecord]] = None,
    enrichment: Optional[List[QuoteRecord]] = None,
    aliases: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> IndexReport:
    """
    Index `quotes` and/or merge `enrichment` into collection `name`.

    This function does not commit; wrap it in a transaction.

    Parameters
    ----------
    session : AsyncSession
        Session whose transaction scopes the whole run.
    name : str
        Collection slug.
    language : Optional[str]
        Text search configuration for a new collection. Ignored when the
        collection already exists.
    quotes : Optional[List[QuoteRecord]]
        Full batch; replaces the collection when given.
    enrichment : Optional[List[QuoteRecord]]
        Enrichment batch, merged after the replacement if any.
    aliases : Optional[Mapping[str, str]]
        Character alias table for the merger.
    timeout : Optional[float]
        Deadline for each store call.
    """
    validate_collection_name(name)

    if quotes is None and enrichment is None:
        raise MalformedInputError(f"nothing to index for `{name}`")

    resolver = CollectionResolver(session, timeout)
    store = QuoteStore(session, timeout)

    collection_id = await resolver.resolve(name, language)
    collection = await resolver.get(name)

    report = IndexReport(collection=name, collection_id=collection_id)

    existing: Optional[List[Quote]] = None

    if quotes is not None:
        existing = assign_ids(quotes)
        if len(existing) != len(quotes):
            logger.info(
                "%d duplicate quote(s) collapsed in `%s`",
                len(quotes) - len(existing),
                name,
            )

        report.replaced = await store.replace_all(collection_id, collection.language, existing)
        logger.info("Collection `%s` replaced with %d quote(s)", name, report.replaced)

    if enrichment is not None:
        if existing is None:
            existing = await store.list_all(collection_id)

        plan = EnrichmentMerger(aliases).merge(existing, enrichment)
        report.updated, report.inserted = await store.apply_enrichment(
            collection_id,
            collection.language,
            plan.updates,
            plan.inserts,
        )
        logger.info(
            "Collection `%s` enriched: %d updated, %d inserted",
            name,
            report.updated,
            report.inserted,
        )

    return report


async def run_indexing(
    name: str,
    language: Optional[str] = None,
    quotes: Optional[List[QuoteRecord]] = None,
    enrichment: Optional[List[QuoteRecord]] = None,
    aliases: Optional[Mapping[str, str]] = None,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
) -> IndexReport:
    """
    Run `index_collection` in a fresh session and transaction.
    """
    async with session_factory() as session:
        async with session.begin():
            return await index_collection(
                session,
                name,
                language=language,
                quotes=quotes,
                enrichment=enrichment,
                aliases=aliases,
            )


async def index_from_directory(
    name: str,
    directory: Optional[str] = None,
    language: Optional[str] = None,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
) -> IndexReport:
    """
    Index collection `name` from its batch files in `directory`
    (settings.indexes_dir by default).

    `{name}.json` replaces the collection, `{name}_next.json` is then merged
    as enrichment when present.
    """
    batches = find_batches(directory or settings.indexes_dir, name)
    if batches.quotes is None and batches.enrichment is None:
        raise MalformedInputError(f"no batch file for `{name}`")

    quotes = read_quotes(batches.quotes)[0] if batches.quotes else None

    enrichment = None
    if batches.enrichment is not None:
        enrichment = read_quotes(batches.enrichment)[0]
    else:
        logger.warning("No enrichment batch for `%s`", name)

    return await run_indexing(
        name,
        language=language,
        quotes=quotes,
        enrichment=enrichment,
        aliases=load_aliases(settings.aliases_path),
        session_factory=session_factory,
    )


# ---------------------------------------------------------------------
# Out-of-band Re-indexing
# ---------------------------------------------------------------------

class ReindexScheduler:
    """
    Starts background indexing of collections that are requested but
    missing, when a batch file exists for them.

    At most one run per collection is in flight.
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        runner: Callable[..., Awaitable[IndexReport]] = index_from_directory,
    ) -> None:
        self._directory = directory
        self._runner = runner
        self._pending: Dict[str, asyncio.Task] = {}

    def is_pending(self, name: str) -> bool:
        return name in self._pending

    def schedule(self, name: str) -> bool:
        """
        Start indexing `name` in the background.

        Returns True if a run is in flight for `name` after the call.
        """
        if name in self._pending:
            return True

        try:
            batches = find_batches(self._directory or settings.indexes_dir, name)
        except MalformedInputError:
            return False

        if batches.quotes is None:
            return False

        task = asyncio.create_task(self._run(name))
        self._pending[name] = task
        task.add_done_callback(lambda _: self._pending.pop(name, None))

        logger.info("Background indexing of `%s` started", name)
        return True

    async def _run(self, name: str) -> None:
        try:
            report = await self._runner(name, directory=self._directory)
            logger.info("Background indexing of `%s` done: %d quote(s)", name, report.replaced or 0)
        except Exception:
            logger.exception("Fail to index `%s`", name)
