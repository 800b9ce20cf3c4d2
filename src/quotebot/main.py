"""
Quote Bot Application Entry Point

This module defines the FastAPI application instance, registers the
routers, configures exception handling for the quote error taxonomy, and
provides a test-friendly application factory.
"""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator

from fastapi import FastAPI

from .config import settings
from .core.errors import (
    CollectionNotFoundError,
    MalformedInputError,
    QuoteNotFoundError,
    StoreFailureError,
    collection_not_found_handler,
    malformed_input_handler,
    quote_not_found_handler,
    store_failure_handler,
    unhandled_exception_handler,
)
from .db import async_engine, init_models

from .api import (
    health_routes,
    quote_routes,
)


logger = logging.getLogger("quotebot.app")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Create missing tables on startup, release the connection pool on
    shutdown.
    """
    logger.info("Starting quotebot")
    await init_models()

    yield

    logger.info("Shutting down quotebot")
    await async_engine.dispose()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory pattern allows:
    - Clean test instantiation
    - Controlled dependency overrides in pytest

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(
        title="quotebot",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(QuoteNotFoundError, quote_not_found_handler)
    app.add_exception_handler(CollectionNotFoundError, collection_not_found_handler)
    app.add_exception_handler(MalformedInputError, malformed_input_handler)
    app.add_exception_handler(StoreFailureError, store_failure_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(quote_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
