"""
Identifier Assignment

Every stored quote needs an identifier unique within its collection.
Upstream sources may provide one; otherwise it is derived from the quote
text so that re-indexing the same source always yields the same IDs.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, List

from ..quotes.models import Quote, QuoteRecord


def content_id(value: str) -> str:
    """
    Deterministic, fixed-width hex identifier for a quote text.
    """
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def assign_id(record: QuoteRecord) -> Quote:
    """
    Build a Quote from a raw record, keeping an explicit non-empty ID and
    hashing the value otherwise.
    """
    quote_id = record.id.strip() if record.id else ""

    return Quote(
        id=quote_id or content_id(record.value),
        value=record.value,
        character=record.character,
        context=record.context,
        url=record.url,
        image=record.image,
    )


def assign_ids(records: Iterable[QuoteRecord]) -> List[Quote]:
    """
    Assign identifiers to a whole batch.

    Records that end up with the same identifier (identical text without an
    explicit ID) collapse into the first one seen.
    """
    seen = set()
    quotes: List[Quote] = []

    for record in records:
        quote = assign_id(record)
        if quote.id in seen:
            continue

        seen.add(quote.id)
        quotes.append(quote)

    return quotes
