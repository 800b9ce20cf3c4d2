from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..indexer.pipeline import ReindexScheduler
from ..render.registry import RendererRegistry, default_registry
from ..search.service import SearchService


def get_search_service(
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> SearchService:
    return SearchService(session)


@lru_cache
def get_renderers() -> RendererRegistry:
    return default_registry()


@lru_cache
def get_reindex_scheduler() -> ReindexScheduler:
    return ReindexScheduler()
