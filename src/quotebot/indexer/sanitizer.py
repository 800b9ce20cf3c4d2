"""
Name Sanitizer

Normalizes arbitrary human text (character names, quote text, search
queries) into a canonical comparable form.

Two modes share the same first passes (lower-casing, transliteration,
diacritic stripping) and differ in the residual character set:

- INDEX: whitespace is removed, quote characters are removed, only
  `[a-z0-9._/-]` survives and runs of dots are dropped. Used as a
  comparison key for names and quote text.
- MATCH: quote characters become spaces, only `[a-z0-9./ -]` survives.
  Single spaces are kept so multi-word queries can be split into terms.
"""

from __future__ import annotations

import enum
import re
import unicodedata
from typing import List, Union

from ..core.errors import SanitizeError
from ..config import settings


# ---------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------

# Letters the decompose/strip pass cannot reduce to ASCII.
# Applied after lower-casing.
TRANSLITERATIONS = {
    "ß": "ss",
    "æ": "ae",
    "ð": "d",
    "ł": "l",
    "ø": "oe",
    "þ": "th",
    "œ": "oe",
}

_QUOTE_CHARS = re.compile(r"[\"'`]")
_INDEX_SPECIAL_CHARS = re.compile(r"[^a-z0-9.\-_/]")
_MATCH_SPECIAL_CHARS = re.compile(r"[^a-z0-9.\-/ ]")
_PATH_ESCAPE = re.compile(r"\.{2,}")


class SanitizeMode(str, enum.Enum):
    INDEX = "index"
    MATCH = "match"


# ---------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------

def _as_text(text: Union[str, bytes]) -> str:
    """
    Return `text` as a valid Unicode string.

    Raises
    ------
    SanitizeError
        If bytes are not UTF-8 or the string holds lone surrogates.
    """
    if isinstance(text, bytes):
        try:
            return text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SanitizeError(f"invalid UTF-8 input: {exc.reason}") from exc

    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise SanitizeError(f"invalid text encoding: {exc.reason}") from exc

    return text


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return unicodedata.normalize("NFC", stripped)


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def sanitize(text: Union[str, bytes], mode: SanitizeMode = SanitizeMode.INDEX) -> str:
    """
    Normalize `text` into its canonical comparable form.

    Parameters
    ----------
    text : str | bytes
        Raw text. Bytes are decoded as UTF-8.
    mode : SanitizeMode
        INDEX for comparison keys, MATCH for search queries.

    Returns
    -------
    str
        The sanitized text, possibly empty.

    Raises
    ------
    SanitizeError
        On malformed input encoding. Content is never silently dropped.
    """
    lowered = _as_text(text).lower()

    for key, value in TRANSLITERATIONS.items():
        if key in lowered:
            lowered = lowered.replace(key, value)

    without_diacritics = _strip_diacritics(lowered)

    if mode is SanitizeMode.MATCH:
        without_quotes = _QUOTE_CHARS.sub(" ", without_diacritics)
        return _MATCH_SPECIAL_CHARS.sub("", without_quotes)

    without_spaces = without_diacritics.replace(" ", "")
    without_quotes = _QUOTE_CHARS.sub("", without_spaces)
    without_specials = _INDEX_SPECIAL_CHARS.sub("", without_quotes)

    return _PATH_ESCAPE.sub("", without_specials)


def query_terms(query: Union[str, bytes], min_length: int = 0) -> List[str]:
    """
    Split a raw search query into sanitized terms.

    Terms shorter than `min_length` (settings.min_term_length by default)
    are discarded to avoid overly broad matches. An empty result matches
    every quote of a collection.
    """
    if not query:
        return []

    min_length = min_length or settings.min_term_length

    sanitized = sanitize(query, SanitizeMode.MATCH)

    return [word for word in sanitized.split() if len(word) >= min_length]
