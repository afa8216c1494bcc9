"""Knowledge index adapters and factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from maestro.config import config

from .faiss_index import FaissKnowledgeIndex

if TYPE_CHECKING:
    from pathlib import Path

    from maestro.embeddings import EmbeddingService


def get_knowledge_index(
    *,
    embedding_service: EmbeddingService | None = None,
    db_path: Path | None = None,
    index_path: Path | None = None,
    raw_top_k_multiplier: int | None = None,
    load: bool = True,
) -> FaissKnowledgeIndex:
    """Return a configured knowledge index, loaded from disk."""
    index = FaissKnowledgeIndex(
        db_path=db_path if db_path is not None else config.VECTOR_STORE_DB_PATH,
        index_path=(
            index_path if index_path is not None else config.FAISS_INDEX_PATH
        ),
        embedding_service=embedding_service,
        raw_top_k_multiplier=(
            raw_top_k_multiplier
            if raw_top_k_multiplier is not None
            else config.VECTOR_RAW_TOP_K_MULTIPLIER
        ),
    )
    if load:
        index.load()
    return index


__all__ = ["FaissKnowledgeIndex", "get_knowledge_index"]
