"""
API Models

Pydantic response models of the read API consumed by chat-platform
webhook handlers.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, ConfigDict

from ..quotes.models import Quote
from ..render.registry import Embed


class QuoteResponse(BaseModel):
    """
    A quote together with its collection-specific rendering.
    """
    quote: Quote
    embed: Embed

    model_config = ConfigDict(extra="forbid")


class CollectionsResponse(BaseModel):
    collections: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class ErrorResponse(BaseModel):
    """
    Error payload returned by the global exception handlers.
    """
    error: str
    detail: str

    model_config = ConfigDict(extra="forbid")
