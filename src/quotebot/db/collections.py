"""
Collection Resolver

Maps user-facing collection names (command names) to internal collection
identifiers and their text search language. Collections are created on
first sight and never deleted.
"""

from __future__ import annotations

import logging
from typing import List, NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert as pg_insert

from .execution import run_query
from .models import Collection
from ..config import settings
from ..core.errors import CollectionNotFoundError

logger = logging.getLogger("quotebot.db")


class CollectionInfo(NamedTuple):
    """Resolved collection, as needed by the read path."""
    id: int
    name: str
    language: str


class CollectionResolver:
    """
    Get-or-create access to the `collection` table.

    Name uniqueness is enforced by the database: concurrent creations of the
    same name converge on a single row.
    """

    def __init__(self, session: AsyncSession, timeout: Optional[float] = None) -> None:
        """
        Parameters
        ----------
        session : AsyncSession
            SQLAlchemy async session for database operations.
        timeout : Optional[float]
            Deadline for each query, settings.query_timeout_seconds by default.
        """
        self._session = session
        self._timeout = timeout if timeout is not None else settings.query_timeout_seconds

    async def _lookup(self, name: str) -> Optional[CollectionInfo]:
        result = await run_query(
            self._session.execute(
                select(Collection.id, Collection.name, Collection.language).where(
                    Collection.name == name
                )
            ),
            self._timeout,
            "get collection",
        )
        row = result.one_or_none()
        if row is None:
            return None

        return CollectionInfo(id=row.id, name=row.name, language=row.language)

    async def resolve(self, name: str, language: Optional[str] = None) -> int:
        """
        Return the ID of collection `name`, creating it with `language` if
        it does not exist yet.

        The language of an existing collection is never changed.
        """
        existing = await self._lookup(name)
        if existing is not None:
            return existing.id

        stmt = (
            pg_insert(Collection)
            .values(name=name, language=language or settings.default_language)
            .on_conflict_do_nothing(index_elements=[Collection.name])
            .returning(Collection.id)
        )
        result = await run_query(self._session.execute(stmt), self._timeout, "create collection")
        created_id = result.scalar_one_or_none()

        if created_id is not None:
            logger.info("Collection `%s` created with id %d", name, created_id)
            return created_id

        # Lost a creation race, the other writer's row is the one
        existing = await self._lookup(name)
        if existing is None:
            raise CollectionNotFoundError(name)

        return existing.id

    async def get(self, name: str) -> CollectionInfo:
        """
        Return the collection named `name`.

        Raises
        ------
        CollectionNotFoundError
            If no collection has this name.
        """
        existing = await self._lookup(name)
        if existing is None:
            raise CollectionNotFoundError(name)

        return existing

    async def exists(self, name: str) -> bool:
        """
        Cheap existence check used to validate inbound commands.
        """
        return await self._lookup(name) is not None

    async def list_names(self) -> List[str]:
        """
        Return all collection names, sorted.
        """
        result = await run_query(
            self._session.execute(select(Collection.name).order_by(Collection.name)),
            self._timeout,
            "list collections",
        )
        return [row[0] for row in result.all()]
