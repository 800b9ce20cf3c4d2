"""
Enrichment Merger

Folds a secondary dataset, authoritative for images, into an already
indexed collection. Existing quotes are never removed: matched quotes get
their image updated, unmatched enrichment entries become new quotes.

Matching
--------
Existing quotes are bucketed by canonical character token: the sanitized
character field as a whole and each of its comma separated names, every
token passed through the alias table. An enrichment entry matches the first
quote of one of its characters' buckets whose sanitized text equals its own.

The alias table reconciles historical naming inconsistencies that
sanitization alone cannot, e.g. "Attila, chef des Huns" vs "Attila".
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from .identifiers import assign_id
from .sanitizer import sanitize
from ..core.errors import MalformedInputError
from ..quotes.models import Quote, QuoteRecord

logger = logging.getLogger("quotebot.indexer")


# ---------------------------------------------------------------------
# Character Aliases
# ---------------------------------------------------------------------

DEFAULT_CHARACTER_ALIASES: Dict[str, str] = {
    "attilachefdeshuns": "attila",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def load_aliases(path: Optional[str]) -> Dict[str, str]:
    """
    Return the default aliases extended with those of a JSON object file.

    Keys and values of the file are sanitized, so they can be written as
    human names ("Attila, chef des Huns": "Attila").

    Raises
    ------
    MalformedInputError
        If the file is not a JSON object of strings.
    """
    aliases = dict(DEFAULT_CHARACTER_ALIASES)
    if not path:
        return aliases

    try:
        with Path(path).open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise MalformedInputError(f"load aliases `{path}`: {exc}") from exc

    if not isinstance(raw, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
    ):
        raise MalformedInputError(f"aliases `{path}` must be an object of strings")

    for name, canonical in raw.items():
        aliases[sanitize(name)] = sanitize(canonical)

    return aliases


# ---------------------------------------------------------------------
# Merge Plan
# ---------------------------------------------------------------------

@dataclass
class EnrichmentPlan:
    """Changes an enrichment run applies to a collection."""
    updates: List[Quote] = field(default_factory=list)
    inserts: List[Quote] = field(default_factory=list)


class EnrichmentMerger:
    """
    Computes the updates and insertions an enrichment dataset implies.

    The merger is pure: applying the plan is the store's job, in a single
    transaction.
    """

    def __init__(self, aliases: Optional[Mapping[str, str]] = None) -> None:
        """
        Parameters
        ----------
        aliases : Optional[Mapping[str, str]]
            Sanitized character name to canonical sanitized token.
            DEFAULT_CHARACTER_ALIASES when omitted.
        """
        self._aliases = dict(DEFAULT_CHARACTER_ALIASES if aliases is None else aliases)

    def canonical_character(self, name: str) -> str:
        sanitized = sanitize(name)
        return self._aliases.get(sanitized, sanitized)

    @staticmethod
    def text_key(value: str) -> str:
        """
        Comparison key of a quote text, without any punctuation.
        """
        return _NON_ALNUM.sub("", sanitize(value))

    def _character_tokens(self, character: str) -> List[str]:
        tokens = [self.canonical_character(character)]
        for name in character.split(","):
            token = self.canonical_character(name)
            if token not in tokens:
                tokens.append(token)

        return tokens

    def _bucket(self, existing: Iterable[Quote]) -> Dict[str, List[Quote]]:
        buckets: Dict[str, List[Quote]] = {}

        for quote in existing:
            for token in self._character_tokens(quote.character):
                buckets.setdefault(token, []).append(quote)

        return buckets

    def merge(
        self,
        existing: Iterable[Quote],
        enrichment: Iterable[QuoteRecord],
    ) -> EnrichmentPlan:
        """
        Match every enrichment entry against the existing quotes.

        Raises
        ------
        SanitizeError
            On the first entry that cannot be sanitized. Nothing is planned.
        """
        existing = list(existing)
        existing_ids = {quote.id for quote in existing}
        buckets = self._bucket(existing)
        text_keys: Dict[str, str] = {}

        updates: Dict[str, Quote] = {}
        inserts: Dict[str, Quote] = {}

        for entry in enrichment:
            entry_key = self.text_key(entry.value)
            match: Optional[Quote] = None

            for name in entry.character.split(","):
                for candidate in buckets.get(self.canonical_character(name), []):
                    if candidate.id not in text_keys:
                        text_keys[candidate.id] = self.text_key(candidate.value)

                    if text_keys[candidate.id] == entry_key:
                        match = candidate
                        break

                # First match wins
                if match is not None:
                    break

            if match is not None:
                updates[match.id] = match.model_copy(update={"image": entry.image})
                continue

            new_quote = assign_id(entry)
            if new_quote.id in inserts:
                continue

            if new_quote.id in existing_ids:
                logger.warning(
                    "Unmatched enrichment entry `%s` shares the id of an existing quote, "
                    "its image is applied to that quote",
                    new_quote.id,
                )

            inserts[new_quote.id] = new_quote

        plan = EnrichmentPlan(updates=list(updates.values()), inserts=list(inserts.values()))

        logger.info(
            "Enrichment planned: %d update(s), %d insertion(s)",
            len(plan.updates),
            len(plan.inserts),
        )

        return plan
