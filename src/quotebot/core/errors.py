"""
Error Taxonomy and Global Error Handling

This module defines the exceptions raised by the indexing and search layers
and the FastAPI handlers that turn them into HTTP responses.

Taxonomy
--------
- QuoteNotFoundError       no quote matches an ID, search or cursor query
- CollectionNotFoundError  the collection name has never been indexed
- MalformedInputError      a batch or a piece of text cannot be processed
- StoreFailureError        the database is unreachable or a query failed

Design Goals
------------
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for unexpected failures only
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("quotebot.errors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class QuotebotError(Exception):
    """Base error for the quote corpus."""


class QuoteNotFoundError(QuotebotError):
    """Raised when no quote matches a lookup. Expected, not a failure."""

    def __init__(self, collection: str, detail: str = "no result found") -> None:
        super().__init__(f"{detail} in `{collection}`")
        self.collection = collection


class CollectionNotFoundError(QuotebotError):
    """Raised when a collection name has no record."""

    def __init__(self, name: str) -> None:
        super().__init__(f"collection `{name}` not found")
        self.name = name


class MalformedInputError(QuotebotError, ValueError):
    """Raised when an ingestion batch or a text cannot be processed."""


class SanitizeError(MalformedInputError):
    """Raised when text normalization fails on an invalid encoding."""


class StoreFailureError(QuotebotError):
    """Raised when the underlying storage fails."""


class StoreTimeoutError(StoreFailureError):
    """Raised when a storage call exceeds its deadline."""


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    payload: Dict[str, Any] = {
        "error": error,
        "detail": detail,
    }

    return JSONResponse(
        status_code=status_code,
        content=payload,
    )


async def quote_not_found_handler(
    request: Request,
    exc: QuoteNotFoundError,
) -> JSONResponse:
    """
    No matching quote. This is an expected outcome and is not logged as an
    error.
    """
    logger.debug("No quote for %s %s", request.method, request.url.path)
    return _error_response(404, "not_found", str(exc))


async def collection_not_found_handler(
    request: Request,
    exc: CollectionNotFoundError,
) -> JSONResponse:
    logger.info("Unknown collection `%s` requested", exc.name)
    return _error_response(404, "collection_not_found", str(exc))


async def malformed_input_handler(
    request: Request,
    exc: MalformedInputError,
) -> JSONResponse:
    logger.warning("Malformed input on %s: %s", request.url.path, exc)
    return _error_response(400, "malformed_input", str(exc))


async def store_failure_handler(
    request: Request,
    exc: StoreFailureError,
) -> JSONResponse:
    """
    Storage failures are surfaced to the caller and never retried here.

    Timeouts map to 504, every other store failure to 503.
    """
    logger.error(
        "Store failure during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )

    if isinstance(exc, StoreTimeoutError):
        return _error_response(504, "store_timeout", "Storage query timed out")

    return _error_response(503, "store_unavailable", "Storage is unavailable")


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    This handler should be registered with FastAPI as the final safety net
    for any exception not otherwise handled by route-level or framework-level
    handlers.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    return _error_response(500, "internal_server_error", "Internal server error")
