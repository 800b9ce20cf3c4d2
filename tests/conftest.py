"""
Shared fixtures: an in-memory stand-in for the PostgreSQL collection and
quote stores, honoring the same contracts (ID ordering, AND-of-terms
matching, atomic replacement, uniqueness).
"""

import random
import re
from typing import Dict, List, Optional, Sequence

import pytest

from quotebot.core.errors import CollectionNotFoundError, MalformedInputError
from quotebot.db import CollectionInfo
from quotebot.db.quote_store import searchable_text
from quotebot.quotes.models import Quote, QuoteRecord
from quotebot.search.service import SearchService


class FakeCorpus:
    def __init__(self) -> None:
        self.collections: Dict[str, CollectionInfo] = {}
        self.quotes: Dict[int, Dict[str, Quote]] = {}

    def ids(self, collection_id: int) -> List[str]:
        return sorted(self.quotes.get(collection_id, {}))


class FakeResolver:
    def __init__(self, corpus: FakeCorpus) -> None:
        self._corpus = corpus

    async def resolve(self, name: str, language: Optional[str] = None) -> int:
        if name not in self._corpus.collections:
            info = CollectionInfo(
                id=len(self._corpus.collections) + 1,
                name=name,
                language=language or "french",
            )
            self._corpus.collections[name] = info
            self._corpus.quotes[info.id] = {}

        return self._corpus.collections[name].id

    async def get(self, name: str) -> CollectionInfo:
        if name not in self._corpus.collections:
            raise CollectionNotFoundError(name)
        return self._corpus.collections[name]

    async def exists(self, name: str) -> bool:
        return name in self._corpus.collections

    async def list_names(self) -> List[str]:
        return sorted(self._corpus.collections)


_WORD = re.compile(r"[a-z0-9]+")


def _searchable_words(quote: Quote) -> set:
    # Words of the folded text the real store feeds to to_tsvector
    return set(_WORD.findall(searchable_text(quote)))


def _term_words(terms: Sequence[str]) -> List[str]:
    return _WORD.findall(" ".join(terms))


def _check_unique(quotes: List[Quote]) -> None:
    ids = [quote.id for quote in quotes]
    if len(ids) != len(set(ids)):
        raise MalformedInputError("duplicate quote id in batch")


class FakeQuoteStore:
    def __init__(self, corpus: FakeCorpus, rng: Optional[random.Random] = None) -> None:
        self._corpus = corpus
        self._rng = rng or random.Random(42)

    def _rows(self, collection_id: int) -> Dict[str, Quote]:
        return self._corpus.quotes.setdefault(collection_id, {})

    async def replace_all(self, collection_id: int, language: str, quotes: List[Quote]) -> int:
        _check_unique(quotes)
        self._corpus.quotes[collection_id] = {quote.id: quote for quote in quotes}
        return len(quotes)

    async def upsert(self, collection_id: int, language: str, quote: Quote) -> None:
        rows = self._rows(collection_id)
        existing = rows.get(quote.id)
        if existing is None:
            rows[quote.id] = quote
            return

        rows[quote.id] = existing.model_copy(
            update={
                "image": quote.image or existing.image,
                "url": quote.url or existing.url,
            }
        )

    async def apply_enrichment(
        self,
        collection_id: int,
        language: str,
        updates: List[Quote],
        inserts: List[Quote],
    ):
        _check_unique(updates)
        _check_unique(inserts)

        rows = self._rows(collection_id)
        for quote in updates:
            rows[quote.id] = rows[quote.id].model_copy(update={"image": quote.image})
        for quote in inserts:
            await self.upsert(collection_id, language, quote)

        return len(updates), len(inserts)

    async def find_by_id(self, collection_id: int, quote_id: str) -> Optional[Quote]:
        return self._rows(collection_id).get(quote_id)

    async def search(
        self,
        collection_id: int,
        language: str,
        terms: Sequence[str],
        cursor: Optional[str] = None,
    ) -> Optional[Quote]:
        rows = self._rows(collection_id)
        for quote_id in sorted(rows):
            if cursor and quote_id <= cursor:
                continue
            if all(word in _searchable_words(rows[quote_id]) for word in _term_words(terms)):
                return rows[quote_id]

        return None

    async def count(self, collection_id: int) -> int:
        return len(self._rows(collection_id))

    async def random_sample(self, collection_id: int) -> Optional[Quote]:
        ids = sorted(self._rows(collection_id))
        if not ids:
            return None
        return self._rows(collection_id)[ids[self._rng.randrange(len(ids))]]

    async def list_all(self, collection_id: int) -> List[Quote]:
        rows = self._rows(collection_id)
        return [rows[quote_id] for quote_id in sorted(rows)]


@pytest.fixture
def corpus():
    return FakeCorpus()


@pytest.fixture
def resolver(corpus):
    return FakeResolver(corpus)


@pytest.fixture
def quote_store(corpus):
    return FakeQuoteStore(corpus)


@pytest.fixture
def search_service(resolver, quote_store):
    return SearchService(resolver=resolver, store=quote_store)


@pytest.fixture
def kaamelott_records():
    return [
        QuoteRecord(
            value="C'est pas faux.",
            character="Perceval",
            context="Livre I, Le Code de Chevalerie",
        ),
        QuoteRecord(
            value="Ça va bien se passer.",
            character="Attila, chef des Huns",
            context="Livre I, Le Fléau de Dieu",
        ),
        QuoteRecord(
            value="Mais évidemment c'est pas de la chevalerie, c'est du sport de combat !",
            character="Arthur",
            context="Livre II, Le Tourment",
        ),
        QuoteRecord(
            value="Elle est où la poulette ?",
            character="Karadoc",
            context="Livre III, La Poulette",
        ),
        QuoteRecord(
            id="gras",
            value="Le gras, c'est la vie.",
            character="Karadoc",
            context="Livre I, Le Gras",
            url="https://kaamelott-soundboard.2ec0b4.fr/#son/gras",
        ),
    ]
