"""Contextual retrieval over the knowledge index."""

import sqlite3
from typing import Protocol

import openai

from .config import config
from .models import KnowledgeChunk, RetrievalResult, chunk_key

logger = config.get_logger(__name__)

NOTHING_FOUND = "Nothing found"

# Failures of a single query or neighbor lookup; they cost that unit only.
LOOKUP_ERRORS = (
    openai.OpenAIError,
    sqlite3.Error,
    RuntimeError,
    ValueError,
    OSError,
)


class KnowledgeIndex(Protocol):
    def query(self, text: str, top_k: int = 5) -> list[KnowledgeChunk]: ...

    def fetch(self, keys: list[str]) -> list[KnowledgeChunk]: ...


class RetrievalEngine:
    """Turns search queries into deduplicated, context-expanded passages.

    Each query is run independently against the index. Hits are merged by
    ``(page, chunk_index)`` with the first occurrence keeping its score,
    ranked, capped at ``max_hits`` and expanded with their previous and next
    chunk on the same page. Expanded passages are grouped by page in
    first-seen rank order, identical passages collapsed.
    """

    def __init__(
        self,
        knowledge_index: KnowledgeIndex,
        top_k: int | None = None,
        max_hits: int | None = None,
    ) -> None:
        """Initialize the RetrievalEngine.

        Args:
            knowledge_index: Index answering ``query`` and ``fetch``.
            top_k: Hits requested per query. If None, uses config.RETRIEVAL_TOP_K.
            max_hits: Cap on merged hits expanded. If None, uses
                config.RETRIEVAL_MAX_HITS.
        """
        self.knowledge_index = knowledge_index
        self.top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K
        self.max_hits = max_hits if max_hits is not None else config.RETRIEVAL_MAX_HITS

    def search(self, queries: list[str]) -> RetrievalResult:
        """Retrieve passages relevant to any of the queries.

        Returns:
            Passages grouped by page; empty when nothing matched.
        """
        result = RetrievalResult()
        for hit in self._ranked_hits(queries):
            passage = self._expand(hit)
            if passage:
                result.add(hit.page, passage)

        logger.info(
            "Retrieved %d passages on %d pages for %d queries",
            sum(len(blocks) for blocks in result.pages.values()),
            len(result.pages),
            len(queries),
        )
        return result

    def search_knowledge(self, queries: list[str]) -> str:
        """Tool entry point: render the retrieval for the generation oracle.

        Returns:
            The rendered page listing, or ``NOTHING_FOUND``.
        """
        try:
            result = self.search(queries)
        except Exception:
            logger.exception("Error searching knowledge base")
            return NOTHING_FOUND

        if result.is_empty:
            return NOTHING_FOUND
        return result.render()

    def _ranked_hits(self, queries: list[str]) -> list[KnowledgeChunk]:
        hits: dict[tuple[int, int], KnowledgeChunk] = {}

        for query in queries:
            if not query or not query.strip():
                continue
            try:
                query_hits = self.knowledge_index.query(query, top_k=self.top_k)
            except LOOKUP_ERRORS:
                logger.exception("Knowledge query failed: %s", query)
                continue

            for hit in query_hits:
                if hit.chunk_index < 1:
                    continue
                hits.setdefault((hit.page, hit.chunk_index), hit)

        ranked = sorted(hits.values(), key=lambda hit: hit.score, reverse=True)
        return ranked[: self.max_hits]

    def _expand(self, hit: KnowledgeChunk) -> str:
        """Join a hit with its existing neighbors on the same page.

        Returns:
            Neighbor texts ordered by chunk index, separated by single spaces.
        """
        neighbors: dict[int, str] = {}
        for index in (hit.chunk_index - 1, hit.chunk_index, hit.chunk_index + 1):
            if index < 1:
                continue
            neighbor = self._fetch_one(chunk_key(hit.page, index))
            if neighbor is not None:
                neighbors[index] = neighbor.content

        neighbors.setdefault(hit.chunk_index, hit.content)
        return " ".join(neighbors[index] for index in sorted(neighbors))

    def _fetch_one(self, key: str) -> KnowledgeChunk | None:
        try:
            found = self.knowledge_index.fetch([key])
        except LOOKUP_ERRORS:
            logger.exception("Neighbor lookup failed for chunk %s", key)
            return None
        return found[0] if found else None
