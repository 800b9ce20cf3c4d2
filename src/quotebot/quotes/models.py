"""
Quote Data Models

This module defines the canonical data models for quotes:

- QuoteRecord: one raw entry of an ingestion batch, as found in the JSON
  files (main corpus or enrichment dataset).
- Quote: a quote with its identifier assigned, as stored and served.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class QuoteRecord(BaseModel):
    """
    A single raw quote from an ingestion batch.

    The identifier is optional: entries without one get a content-derived
    identifier at indexing time.
    """

    id: Optional[str] = Field(
        default=None,
        description="Explicit upstream identifier, takes precedence over the content hash.",
    )

    value: str = Field(
        default="",
        description="The quote text.",
    )

    character: str = Field(
        default="",
        description="Attributed speaker(s), possibly a comma separated list.",
    )

    context: str = Field(
        default="",
        description="Scene or episode description.",
    )

    url: Optional[str] = None
    image: Optional[str] = None

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
    )

    @field_validator("value", "character", "context", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v


class Quote(BaseModel):
    """
    A quote with a resolved identifier.

    `collection` and `language` are filled on reads from the owning
    collection and are never stored on the quote itself.
    """

    id: str = Field(..., min_length=1)
    value: str = ""
    character: str = ""
    context: str = ""
    url: Optional[str] = None
    image: Optional[str] = None

    collection: Optional[str] = None
    language: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def storage_row(self, collection_id: int) -> dict:
        """
        Column values for the `quote` table.
        """
        return {
            "collection_id": collection_id,
            "id": self.id,
            "value": self.value,
            "character": self.character,
            "context": self.context,
            "url": self.url,
            "image": self.image,
        }
