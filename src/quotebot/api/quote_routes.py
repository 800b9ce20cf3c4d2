"""
Quote Routes

Read-only endpoints exposing the Search Service to chat-platform webhook
handlers: exact fetch, cursor-paginated search and random pick, each
returning the quote and its collection-specific embed.

Errors are rendered by the global exception handlers registered in
`create_app()`.
"""

from fastapi import APIRouter, Depends, Query
from typing import Annotated, Optional

from .models import CollectionsResponse, QuoteResponse
from .dependencies import get_reindex_scheduler, get_renderers, get_search_service
from ..core.errors import CollectionNotFoundError, QuoteNotFoundError
from ..indexer.pipeline import ReindexScheduler
from ..quotes.models import Quote
from ..render.registry import RendererRegistry
from ..search.service import SearchService

router = APIRouter(prefix="/collections", tags=["quotes"])


def _respond(renderers: RendererRegistry, quote: Quote) -> QuoteResponse:
    return QuoteResponse(quote=quote, embed=renderers.render(quote))


@router.get(
    "",
    response_model=CollectionsResponse,
    summary="List indexed collections",
)
async def list_collections(
    service: Annotated[SearchService, Depends(get_search_service)],
) -> CollectionsResponse:
    return CollectionsResponse(collections=await service.list_collections())


@router.get(
    "/{collection}/quotes/{quote_id:path}",
    response_model=QuoteResponse,
    summary="Fetch a quote by ID",
)
async def get_quote(
    collection: str,
    quote_id: str,
    service: Annotated[SearchService, Depends(get_search_service)],
    renderers: Annotated[RendererRegistry, Depends(get_renderers)],
) -> QuoteResponse:
    quote = await service.get_by_id(collection, quote_id)
    return _respond(renderers, quote)


@router.get(
    "/{collection}/search",
    response_model=QuoteResponse,
    summary="Next quote matching a query",
)
async def search_quote(
    collection: str,
    service: Annotated[SearchService, Depends(get_search_service)],
    renderers: Annotated[RendererRegistry, Depends(get_renderers)],
    scheduler: Annotated[ReindexScheduler, Depends(get_reindex_scheduler)],
    q: Annotated[str, Query(max_length=512)] = "",
    cursor: Optional[str] = None,
    fallback: bool = False,
) -> QuoteResponse:
    """
    Return the first quote after `cursor` matching every word of `q`.

    Pass the returned quote ID as `cursor` to get the next match. With
    `fallback`, a random quote is returned when nothing matches.

    A missing collection that has a batch file on disk is re-indexed in the
    background; the request itself still fails with `collection_not_found`.
    """
    try:
        quote = await service.search(collection, q, cursor)
    except QuoteNotFoundError:
        if not fallback:
            raise
        quote = await service.random(collection)
    except CollectionNotFoundError:
        scheduler.schedule(collection)
        raise

    return _respond(renderers, quote)


@router.get(
    "/{collection}/random",
    response_model=QuoteResponse,
    summary="Random quote of a collection",
)
async def random_quote(
    collection: str,
    service: Annotated[SearchService, Depends(get_search_service)],
    renderers: Annotated[RendererRegistry, Depends(get_renderers)],
) -> QuoteResponse:
    quote = await service.random(collection)
    return _respond(renderers, quote)
