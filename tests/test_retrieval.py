"""Tests for RetrievalEngine: merging, neighbor expansion and rendering."""

from unittest.mock import Mock

import numpy as np
import pytest
from openai import OpenAIError

from maestro import KnowledgeChunk, RetrievalEngine, RetrievalResult
from maestro.models import RESULT_HEADER
from maestro.retrieval import NOTHING_FOUND


class FakeKnowledgeIndex:
    """Knowledge index double serving fixed hits and a chunk table."""

    def __init__(self, chunks, hits_by_query=None) -> None:
        self.chunks = {chunk.key: chunk for chunk in chunks}
        self.hits_by_query = hits_by_query or {}
        self.queries: list[str] = []
        self.fetched: list[str] = []

    def query(self, text, top_k=5):
        self.queries.append(text)
        hits = self.hits_by_query.get(text, [])
        if isinstance(hits, Exception):
            raise hits
        return hits[:top_k]

    def fetch(self, keys):
        self.fetched.extend(keys)
        return [self.chunks[key] for key in keys if key in self.chunks]


def _hit(page, chunk_index, content, score):
    return KnowledgeChunk(
        page=page, chunk_index=chunk_index, content=content, score=score
    )


@pytest.fixture
def page_four_chunks():
    return [
        KnowledgeChunk(page=4, chunk_index=1, content="a"),
        KnowledgeChunk(page=4, chunk_index=2, content="b"),
        KnowledgeChunk(page=4, chunk_index=3, content="c"),
    ]


def test_hit_is_expanded_with_both_neighbors(page_four_chunks):
    index = FakeKnowledgeIndex(
        page_four_chunks, {"curing time": [_hit(4, 2, "b", 0.9)]}
    )
    engine = RetrievalEngine(index, top_k=5, max_hits=8)

    result = engine.search(["curing time"])

    assert result.pages == {4: ["a b c"]}
    assert index.fetched == ["4-1", "4-2", "4-3"]


def test_missing_neighbors_are_skipped(page_four_chunks):
    index = FakeKnowledgeIndex(page_four_chunks, {"q": [_hit(4, 3, "c", 0.8)]})
    engine = RetrievalEngine(index)

    result = engine.search(["q"])

    assert result.pages == {4: ["b c"]}


def test_first_chunk_has_no_previous_neighbor(page_four_chunks):
    index = FakeKnowledgeIndex(page_four_chunks, {"q": [_hit(4, 1, "a", 0.8)]})
    engine = RetrievalEngine(index)

    result = engine.search(["q"])

    assert result.pages == {4: ["a b"]}
    assert "4-0" not in index.fetched


def test_hit_content_used_when_own_lookup_misses():
    index = FakeKnowledgeIndex([], {"q": [_hit(7, 2, "orphan", 0.5)]})
    engine = RetrievalEngine(index)

    assert engine.search(["q"]).pages == {7: ["orphan"]}


def test_duplicate_hits_across_queries_are_merged(page_four_chunks):
    index = FakeKnowledgeIndex(
        page_four_chunks,
        {
            "first": [_hit(4, 2, "b", 0.7)],
            "second": [_hit(4, 2, "b", 0.95)],
        },
    )
    engine = RetrievalEngine(index)

    result = engine.search(["first", "second"])

    assert result.pages == {4: ["a b c"]}
    assert index.fetched.count("4-2") == 1


def test_overlapping_expansions_are_deduplicated_per_page(page_four_chunks):
    index = FakeKnowledgeIndex(
        page_four_chunks,
        {"q": [_hit(4, 2, "b", 0.9), _hit(4, 3, "c", 0.8), _hit(4, 1, "a", 0.7)]},
    )
    engine = RetrievalEngine(index)

    result = engine.search(["q"])

    assert result.pages == {4: ["a b c", "b c", "a b"]}


def test_pages_ordered_by_best_hit(page_four_chunks):
    other = KnowledgeChunk(page=9, chunk_index=1, content="curing")
    index = FakeKnowledgeIndex(
        [*page_four_chunks, other],
        {"q": [_hit(4, 2, "b", 0.4), _hit(9, 1, "curing", 0.9)]},
    )
    engine = RetrievalEngine(index)

    result = engine.search(["q"])

    assert list(result.pages) == [9, 4]


def test_hits_capped_at_max_hits():
    chunks = [
        KnowledgeChunk(page=page, chunk_index=1, content=f"page {page}")
        for page in range(1, 6)
    ]
    hits = [
        _hit(chunk.page, 1, chunk.content, 1.0 - chunk.page / 10) for chunk in chunks
    ]
    index = FakeKnowledgeIndex(chunks, {"q": hits})
    engine = RetrievalEngine(index, top_k=5, max_hits=2)

    result = engine.search(["q"])

    assert list(result.pages) == [1, 2]


def test_top_k_passed_to_index():
    index = Mock()
    index.query.return_value = []
    engine = RetrievalEngine(index, top_k=3)

    engine.search(["q"])

    index.query.assert_called_once_with("q", top_k=3)


def test_blank_queries_are_ignored():
    index = FakeKnowledgeIndex([])
    engine = RetrievalEngine(index)

    result = engine.search(["", "   "])

    assert result.is_empty
    assert index.queries == []


def test_failed_query_does_not_abort_others(page_four_chunks):
    index = FakeKnowledgeIndex(
        page_four_chunks,
        {"broken": OpenAIError("embedding failed"), "ok": [_hit(4, 2, "b", 0.9)]},
    )
    engine = RetrievalEngine(index)

    result = engine.search(["broken", "ok"])

    assert result.pages == {4: ["a b c"]}


def test_failed_neighbor_lookup_is_skipped(page_four_chunks):
    index = Mock()
    index.query.return_value = [_hit(4, 2, "b", 0.9)]

    def fetch(keys):
        if keys == ["4-1"]:
            raise RuntimeError("lookup failed")
        return [chunk for chunk in page_four_chunks if chunk.key in keys]

    index.fetch.side_effect = fetch
    engine = RetrievalEngine(index)

    assert engine.search(["q"]).pages == {4: ["b c"]}


def test_search_knowledge_renders_listing(page_four_chunks):
    other = KnowledgeChunk(page=9, chunk_index=1, content="curing")
    index = FakeKnowledgeIndex(
        [*page_four_chunks, other],
        {"q": [_hit(4, 2, "b", 0.9), _hit(9, 1, "curing", 0.5)]},
    )
    engine = RetrievalEngine(index)

    listing = engine.search_knowledge(["q"])

    assert listing == f"{RESULT_HEADER}\n# Page 4\na b c\n# Page 9\ncuring"


def test_search_knowledge_nothing_found():
    engine = RetrievalEngine(FakeKnowledgeIndex([]))

    assert engine.search_knowledge(["q"]) == NOTHING_FOUND
    assert engine.search_knowledge([]) == NOTHING_FOUND


def test_search_knowledge_nothing_found_when_every_query_fails():
    index = FakeKnowledgeIndex([], {"q": OpenAIError("down")})
    engine = RetrievalEngine(index)

    assert engine.search_knowledge(["q"]) == NOTHING_FOUND


def test_search_knowledge_nothing_found_on_unexpected_error():
    index = FakeKnowledgeIndex([], {"q": AssertionError("d == self.d")})
    engine = RetrievalEngine(index)

    assert engine.search_knowledge(["q"]) == NOTHING_FOUND


def test_mismatched_embedding_model_finds_nothing(populated_knowledge_index):
    populated_knowledge_index.embedding_service = Mock(
        embed_query=Mock(return_value=np.ones(8, dtype=np.float32))
    )
    engine = RetrievalEngine(populated_knowledge_index)

    assert engine.search_knowledge(["curing time"]) == NOTHING_FOUND


def test_render_separates_blocks_on_a_page():
    result = RetrievalResult()
    result.add(2, "first block")
    result.add(2, "second block")
    result.add(2, "first block")

    assert result.render() == f"{RESULT_HEADER}\n# Page 2\nfirst block\n\nsecond block"
