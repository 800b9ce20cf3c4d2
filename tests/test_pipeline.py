"""
Indexing Pipeline Tests

The pipeline runs against the in-memory stores of conftest, patched in
place of the PostgreSQL-backed ones.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from quotebot.core.errors import MalformedInputError
from quotebot.indexer import pipeline
from quotebot.indexer.identifiers import content_id
from quotebot.indexer.pipeline import (
    IndexReport,
    ReindexScheduler,
    index_collection,
    index_from_directory,
)
from quotebot.quotes.models import QuoteRecord

from conftest import FakeQuoteStore, FakeResolver


class FakeTransaction:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.session.committed = True
        return False


class FakeSession:
    def __init__(self):
        self.committed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def begin(self):
        return FakeTransaction(self)


@pytest.fixture(autouse=True)
def in_memory_stores(monkeypatch, corpus):
    monkeypatch.setattr(pipeline, "CollectionResolver", lambda session, timeout=None: FakeResolver(corpus))
    monkeypatch.setattr(pipeline, "QuoteStore", lambda session, timeout=None: FakeQuoteStore(corpus))


def _stored(corpus, name):
    collection = corpus.collections[name]
    return corpus.quotes[collection.id]


class TestIndexCollection:
    @pytest.mark.asyncio
    async def test_full_replacement(self, corpus, kaamelott_records):
        report = await index_collection(None, "kaamelott", "french", quotes=kaamelott_records)

        assert report.replaced == 5
        assert len(_stored(corpus, "kaamelott")) == 5
        assert corpus.collections["kaamelott"].language == "french"

    @pytest.mark.asyncio
    async def test_reindexing_is_idempotent(self, corpus, kaamelott_records):
        await index_collection(None, "kaamelott", quotes=kaamelott_records)
        first = dict(_stored(corpus, "kaamelott"))

        await index_collection(None, "kaamelott", quotes=kaamelott_records)

        assert _stored(corpus, "kaamelott") == first
        assert len(corpus.collections) == 1

    @pytest.mark.asyncio
    async def test_replacement_drops_stale_quotes(self, corpus, kaamelott_records):
        await index_collection(None, "kaamelott", quotes=kaamelott_records)
        await index_collection(None, "kaamelott", quotes=kaamelott_records[:2])

        assert set(_stored(corpus, "kaamelott")) == {
            content_id(record.value) for record in kaamelott_records[:2]
        }

    @pytest.mark.asyncio
    async def test_duplicate_values_are_collapsed(self, corpus, kaamelott_records):
        report = await index_collection(
            None, "kaamelott", quotes=kaamelott_records + kaamelott_records[:1]
        )

        assert report.replaced == 5

    @pytest.mark.asyncio
    async def test_existing_language_is_kept(self, corpus, kaamelott_records):
        await index_collection(None, "kaamelott", "french", quotes=kaamelott_records)
        await index_collection(None, "kaamelott", "english", quotes=kaamelott_records)

        assert corpus.collections["kaamelott"].language == "french"

    @pytest.mark.asyncio
    async def test_enrichment_after_replacement(self, corpus, kaamelott_records):
        enrichment = [
            QuoteRecord(character="Attila", value="ça va bien se passer", image="http://x/img.png"),
            QuoteRecord(character="Venec", value="Ah bah ça, c'est sûr.", image="http://x/v.png"),
        ]

        report = await index_collection(
            None, "kaamelott", quotes=kaamelott_records, enrichment=enrichment
        )

        stored = _stored(corpus, "kaamelott")
        assert (report.updated, report.inserted) == (1, 1)
        assert len(stored) == 6
        assert stored[content_id("Ça va bien se passer.")].image == "http://x/img.png"
        assert stored[content_id("Ah bah ça, c'est sûr.")].character == "Venec"

    @pytest.mark.asyncio
    async def test_enrichment_alone_uses_stored_quotes(self, corpus, kaamelott_records):
        await index_collection(None, "kaamelott", quotes=kaamelott_records)

        report = await index_collection(
            None,
            "kaamelott",
            enrichment=[QuoteRecord(character="Karadoc", value="Le gras c'est la vie", image="g.png")],
        )

        assert report.replaced is None
        assert report.updated == 1
        assert _stored(corpus, "kaamelott")["gras"].image == "g.png"

    @pytest.mark.asyncio
    async def test_nothing_to_index(self):
        with pytest.raises(MalformedInputError):
            await index_collection(None, "kaamelott")

    @pytest.mark.asyncio
    async def test_invalid_name(self, kaamelott_records):
        with pytest.raises(MalformedInputError):
            await index_collection(None, "../kaamelott", quotes=kaamelott_records)


class TestIndexFromDirectory:
    @pytest.mark.asyncio
    async def test_reads_batch_and_enrichment(self, tmp_path, corpus):
        (tmp_path / "oss117.json").write_text(
            json.dumps([{"value": "Comment est votre blanquette ?", "character": "OSS 117"}]),
            encoding="utf-8",
        )
        (tmp_path / "oss117_next.json").write_text(
            json.dumps(
                [{"value": "Comment est votre blanquette", "character": "OSS 117", "image": "b.png"}]
            ),
            encoding="utf-8",
        )
        session = FakeSession()

        report = await index_from_directory(
            "oss117", str(tmp_path), "french", session_factory=lambda: session
        )

        assert (report.replaced, report.updated, report.inserted) == (1, 1, 0)
        assert session.committed
        [quote] = _stored(corpus, "oss117").values()
        assert quote.image == "b.png"

    @pytest.mark.asyncio
    async def test_missing_files(self, tmp_path):
        with pytest.raises(MalformedInputError):
            await index_from_directory("oss117", str(tmp_path), session_factory=FakeSession)


class TestReindexScheduler:
    @pytest.mark.asyncio
    async def test_schedules_when_batch_exists(self, tmp_path):
        (tmp_path / "abitbol.json").write_text("[]", encoding="utf-8")
        runner = AsyncMock(return_value=IndexReport(collection="abitbol", collection_id=1, replaced=0))
        scheduler = ReindexScheduler(str(tmp_path), runner=runner)

        assert scheduler.schedule("abitbol")
        assert scheduler.is_pending("abitbol")
        # A second request joins the run in flight
        assert scheduler.schedule("abitbol")

        await scheduler._pending["abitbol"]
        await asyncio.sleep(0)

        runner.assert_awaited_once_with("abitbol", directory=str(tmp_path))
        assert not scheduler.is_pending("abitbol")

    @pytest.mark.asyncio
    async def test_no_batch_file(self, tmp_path):
        runner = AsyncMock()
        scheduler = ReindexScheduler(str(tmp_path), runner=runner)

        assert not scheduler.schedule("abitbol")
        assert not scheduler.schedule("../etc")
        runner.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_runner_failure_is_contained(self, tmp_path):
        (tmp_path / "abitbol.json").write_text("[]", encoding="utf-8")
        runner = AsyncMock(side_effect=MalformedInputError("broken batch"))
        scheduler = ReindexScheduler(str(tmp_path), runner=runner)

        scheduler.schedule("abitbol")
        await scheduler._pending["abitbol"]
        await asyncio.sleep(0)

        assert not scheduler.is_pending("abitbol")
