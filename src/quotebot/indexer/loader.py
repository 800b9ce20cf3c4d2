"""
Quote Batch Loader

Reads quote batches from JSON files. A batch file holds a JSON array of
quote records; the collection it belongs to is named after the file stem
(`kaamelott.json` -> `kaamelott`). An enrichment batch for a collection
lives next to it as `{name}_next.json`.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from ..core.errors import MalformedInputError
from ..quotes.models import QuoteRecord

ENRICHMENT_SUFFIX = "_next"

COLLECTION_NAME_PATTERN = re.compile(r"^[a-z0-9_-]{1,64}$")

_records_adapter = TypeAdapter(List[QuoteRecord])


def validate_collection_name(name: str) -> str:
    """
    Reject collection names that are not slugs.

    Names end up in file paths, so anything path-like is refused.
    """
    if not name or not COLLECTION_NAME_PATTERN.match(name):
        raise MalformedInputError(
            f"invalid collection name `{name}`: must be 1-64 lowercase alphanumeric chars, hyphens, or underscores"
        )

    return name


class BatchFiles(NamedTuple):
    """Batch files found for a collection."""
    quotes: Optional[Path]
    enrichment: Optional[Path]


def parse_quotes(raw: bytes | str, source: str = "<batch>") -> List[QuoteRecord]:
    """
    Parse a JSON array of quote records.

    Raises
    ------
    MalformedInputError
        On invalid JSON or records that do not match the quote shape.
    """
    try:
        return _records_adapter.validate_json(raw)
    except ValidationError as exc:
        raise MalformedInputError(
            f"load quotes from `{source}`: {exc.error_count()} invalid field(s)"
        ) from exc


def read_quotes(path: str | Path) -> Tuple[List[QuoteRecord], str]:
    """
    Read a batch file.

    Returns
    -------
    Tuple[List[QuoteRecord], str]
        The records and the collection name derived from the file name.
    """
    path = Path(path)

    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise MalformedInputError(f"open file `{path}`: {exc.strerror}") from exc

    return parse_quotes(raw, str(path)), path.stem


def find_batches(directory: str | Path, name: str) -> BatchFiles:
    """
    Locate the main and enrichment batch files of collection `name`.
    """
    validate_collection_name(name)

    root = Path(directory)
    quotes = root / f"{name}.json"
    enrichment = root / f"{name}{ENRICHMENT_SUFFIX}.json"

    return BatchFiles(
        quotes=quotes if quotes.is_file() else None,
        enrichment=enrichment if enrichment.is_file() else None,
    )

