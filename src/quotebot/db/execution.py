"""
Store Call Execution

Every database round-trip of the store layer goes through `run_query`, which
bounds it with a deadline and maps driver errors onto the store error
taxonomy. Nothing here retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ..core.errors import StoreFailureError, StoreTimeoutError

logger = logging.getLogger("quotebot.db")

T = TypeVar("T")


async def run_query(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    operation: str,
) -> T:
    """
    Await a store call under a deadline.

    Parameters
    ----------
    awaitable : Awaitable
        The database call (typically `session.execute(...)`).
    timeout : Optional[float]
        Seconds before the call is cancelled. None waits indefinitely.
    operation : str
        Short label used in errors and logs.

    Raises
    ------
    StoreTimeoutError
        When the deadline expires. The call is cancelled.
    StoreFailureError
        When SQLAlchemy or the driver reports an error.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("Store call `%s` timed out after %ss", operation, timeout)
        raise StoreTimeoutError(f"{operation}: timed out after {timeout}s") from exc
    except SQLAlchemyError as exc:
        raise StoreFailureError(f"{operation}: {type(exc).__name__}") from exc
