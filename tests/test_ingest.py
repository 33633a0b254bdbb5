"""Tests for knowledge ingestion."""

import json
from pathlib import Path

import pytest

from fakes import FakeEmbedder, WordCountEstimator
from ragent.context import ContentType, Fragment
from ragent.ingest import JsonReader, TokenTextSplitter, ingest, tag_as
from ragent.memory import InMemoryVectorStore


@pytest.fixture
def bikes_file(tmp_path: Path) -> Path:
    path = tmp_path / "bikes.json"
    path.write_text(json.dumps([
        {"name": "SpeedStar", "price": 1200, "description": "Carbon road bike.", "sku": "X1"},
        {"name": "TrailBlazer", "price": 900, "description": "Mountain bike."},
    ]))
    return path


class TestJsonReader:
    """Tests for JsonReader."""

    def test_selected_keys(self, bikes_file: Path):
        fragments = JsonReader(bikes_file, ["name", "price", "description"]).read()
        assert fragments[0].text == "name: SpeedStar\nprice: 1200\ndescription: Carbon road bike."
        assert fragments[1].metadata == {"source": "bikes.json", "index": 1}

    def test_all_keys_by_default(self, bikes_file: Path):
        fragments = JsonReader(bikes_file).read()
        assert "sku: X1" in fragments[0].text

    def test_single_object(self, tmp_path: Path):
        path = tmp_path / "one.json"
        path.write_text('{"name": "Solo"}')
        assert [f.text for f in JsonReader(path).read()] == ["name: Solo"]

    def test_non_object_item(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text('[1, 2]')
        with pytest.raises(ValueError):
            JsonReader(path).read()


class TestTokenTextSplitter:
    """Tests for TokenTextSplitter."""

    def test_splits_on_sentences(self):
        splitter = TokenTextSplitter(WordCountEstimator(), chunk_size=4)
        assert splitter.split_text("One two. Three four. Five six seven.") == [
            "One two. Three four.",
            "Five six seven.",
        ]

    def test_long_sentence_cut_between_words(self):
        splitter = TokenTextSplitter(WordCountEstimator(), chunk_size=2)
        assert splitter.split_text("A very long sentence here.") == [
            "A very",
            "long sentence",
            "here.",
        ]

    def test_chunks_never_exceed_budget(self):
        splitter = TokenTextSplitter(WordCountEstimator(), chunk_size=3)
        text = "Short one. " + " ".join(f"w{i}" for i in range(10)) + ". Tail end."

        chunks = splitter.split_text(text)

        assert all(WordCountEstimator().estimate(c) <= 3 for c in chunks)
        assert " ".join(chunks).split() == text.split()

    def test_split_keeps_metadata(self):
        splitter = TokenTextSplitter(WordCountEstimator(), chunk_size=2)
        chunks = splitter.split([Fragment("One two. Three four.", {"source": "x"})])
        assert [c.metadata for c in chunks] == [
            {"source": "x", "chunk_index": 0},
            {"source": "x", "chunk_index": 1},
        ]


class TestIngest:
    """Tests for ingest()."""

    @pytest.mark.asyncio
    async def test_ingest_tags_and_stores(self):
        store = InMemoryVectorStore()
        fragments = [Fragment("a bike"), Fragment("a tent")]

        count = await ingest(store, FakeEmbedder(), fragments)

        assert count == 2
        assert len(store) == 2
        hits = await store.query(FakeEmbedder().vector("bike"), 5, where={"content_type": "external_knowledge"})
        assert {h.record.text for h in hits} == {"a bike", "a tent"}

    @pytest.mark.asyncio
    async def test_ingest_nothing(self):
        assert await ingest(InMemoryVectorStore(), FakeEmbedder(), []) == 0

    def test_tag_as(self):
        fragments = tag_as(ContentType.LONG_TERM_MEMORY, [Fragment("x")])
        assert fragments[0].metadata["content_type"] == "long_term_memory"
