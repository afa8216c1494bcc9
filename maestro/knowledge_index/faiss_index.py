"""FAISS-backed knowledge index with SQLite chunk metadata."""

from __future__ import annotations

from collections.abc import Collection
from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from maestro.config import config
from maestro.knowledge_index.base import BaseSQLiteStore

if TYPE_CHECKING:
    from maestro.embeddings import EmbeddingService
    from maestro.models import KnowledgeChunk

logger = config.get_logger(__name__)


class FaissKnowledgeIndex(BaseSQLiteStore):
    """Semantic index over knowledge chunks.

    Embeddings live in a FAISS inner-product index keyed by the SQLite row id
    of each chunk, so ``query`` maps FAISS hits straight back to their page
    and chunk index. ``fetch`` serves point lookups by chunk key for
    neighbor expansion.
    """

    def __init__(
        self,
        db_path: Path = Path("data/knowledge.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
        embedding_service: EmbeddingService | None = None,
        raw_top_k_multiplier: int = 2,
    ) -> None:
        """Configure the FAISS-backed knowledge index."""
        self.index_path = Path(index_path)
        self.index_path.parent.mkdir(exist_ok=True, parents=True)

        self.index: faiss.IndexIDMap | None = None
        self.embedding_service = embedding_service
        self.raw_top_k_multiplier = max(1, raw_top_k_multiplier)

        super().__init__(db_path)

    @staticmethod
    def _normalize_embedding(embedding: np.ndarray) -> np.ndarray:
        """Normalize embedding for cosine similarity using inner product search.

        Returns:
            Normalized embedding vector.
        """
        vector = np.array(embedding, dtype="float32")
        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector
        faiss.normalize_L2(vector.reshape(1, -1))
        return vector

    def _init_index(self, dimension: int) -> None:
        """Initialize FAISS index if missing."""
        self.index = faiss.IndexIDMap(faiss.IndexFlatIP(dimension))
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)

    def add_chunks(self, chunks: list[KnowledgeChunk]) -> int:
        """Add embedded chunks, replacing any chunk whose key is already indexed.

        Returns:
            Number of chunks written, new and replaced.

        Raises:
            ValueError: If embedding dimension mismatches the index.
        """
        if not chunks:
            return 0

        pending: dict[int, np.ndarray] = {}
        replaced_ids: list[int] = []

        with self._connect() as conn:
            cursor = conn.cursor()

            for chunk in chunks:
                if chunk.embedding is None:
                    logger.warning("Skipping chunk %s without embedding", chunk.key)
                    continue

                embedding = self._normalize_embedding(chunk.embedding)
                if self.index is None:
                    self._init_index(embedding.shape[0])
                elif embedding.shape[0] != self.index.d:
                    msg = (
                        f"Embedding dimension {embedding.shape[0]} does not match "
                        f"FAISS index dimension {self.index.d}"
                    )
                    raise ValueError(msg)

                existing = self._find_chunk_row(cursor, chunk.key)
                if existing is not None:
                    old_id, old_source = existing
                    if old_source != chunk.source:
                        logger.warning(
                            "Chunk %s from %s replaced by %s",
                            chunk.key,
                            old_source,
                            chunk.source,
                        )
                    self._delete_chunk_row(cursor, old_id)
                    if pending.pop(old_id, None) is None:
                        replaced_ids.append(old_id)

                pending[self._insert_chunk_row(cursor, chunk)] = embedding

            conn.commit()

        if self.index is None:
            return 0

        if replaced_ids:
            self.index.remove_ids(np.asarray(replaced_ids, dtype="int64"))
            logger.info("Replaced %d existing chunks", len(replaced_ids))

        if pending:
            vectors = np.vstack(list(pending.values())).astype("float32")
            ids_array = np.asarray(list(pending), dtype="int64")
            self.index.add_with_ids(vectors, ids_array)  # pyright: ignore[reportCallIssue]
            logger.info("Added %d vectors to FAISS index", len(pending))
        else:
            logger.warning("No embeddings added to FAISS index")

        return len(pending)

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 5,
        pages: Collection[int] | None = None,
    ) -> list[KnowledgeChunk]:
        """Search chunks nearest to an embedding.

        Args:
            query_embedding: Query vector.
            top_k: Maximum number of chunks to return.
            pages: Restrict hits to these pages when given.

        Returns:
            Chunks ranked by descending score, ``score`` set on each.

        Raises:
            ValueError: If the query dimension mismatches the index.
        """
        index = self.index
        if index is None or index.ntotal == 0:
            logger.warning("FAISS index is empty; returning no results")
            return []

        normalized_query = self._normalize_embedding(query_embedding)
        if normalized_query.shape[0] != index.d:
            msg = (
                f"Query dimension {normalized_query.shape[0]} does not match "
                f"FAISS index dimension {index.d}"
            )
            raise ValueError(msg)

        raw_top_k = top_k if pages is None else self.raw_top_k_multiplier * top_k
        raw_top_k = min(max(top_k, raw_top_k), index.ntotal)

        scores, vector_ids = index.search(
            normalized_query.reshape(1, -1),
            raw_top_k,
        )  # pyright: ignore[reportCallIssue]

        results: list[KnowledgeChunk] = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for score, vector_id in zip(scores[0], vector_ids[0], strict=True):
                if int(vector_id) == -1:  # faiss returns -1 for empty results
                    continue
                chunk = self._fetch_chunk_by_vector_id(
                    cursor, int(vector_id), float(score)
                )
                if chunk is None or (pages is not None and chunk.page not in pages):
                    continue
                results.append(chunk)

        return results[:top_k]

    def query(
        self,
        text: str,
        top_k: int = 5,
        pages: Collection[int] | None = None,
    ) -> list[KnowledgeChunk]:
        """Embed a free-text query and search the index.

        Returns:
            Ranked chunks as returned by ``search``.

        Raises:
            RuntimeError: If the index was built without an embedding service.
        """
        if self.embedding_service is None:
            msg = "Knowledge index has no embedding service for text queries"
            raise RuntimeError(msg)
        embedding = self.embedding_service.embed_query(text)
        return self.search(embedding, top_k=top_k, pages=pages)

    def fetch(self, keys: list[str]) -> list[KnowledgeChunk]:
        """Point lookups by ``page-chunk_index`` key; missing keys are skipped.

        Returns:
            The chunks found, in the order of ``keys``.
        """
        results: list[KnowledgeChunk] = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for key in keys:
                chunk = self._fetch_chunk_by_key(cursor, key)
                if chunk is not None:
                    results.append(chunk)
        return results

    def save(self) -> None:
        """Persist FAISS index to disk."""
        index = self.index
        if index is None:
            logger.warning("No FAISS index to save")
            return

        self.index_path.parent.mkdir(exist_ok=True, parents=True)
        faiss.write_index(index, str(self.index_path))
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Load the FAISS index from disk, starting empty when it is missing."""
        if not self.index_path.exists():
            logger.warning(
                "FAISS index not found at %s. Start with an empty index.",
                self.index_path,
            )
            self.index = None
            return

        loaded_index = faiss.read_index(str(self.index_path))
        if not isinstance(loaded_index, (faiss.IndexIDMap, faiss.IndexIDMap2)):
            logger.warning(
                "Loaded FAISS index is %s; wrapping with IndexIDMap to enable IDs",
                type(loaded_index).__name__,
            )
            loaded_index = faiss.IndexIDMap(loaded_index)
        self.index = loaded_index
        logger.info(
            "Loaded FAISS index from %s with %d vectors (%d chunks in metadata)",
            self.index_path,
            loaded_index.ntotal,
            self.count_chunks(),
        )
