"""Corpus ingestion pipeline: Load -> Split -> Embed -> Store."""

from pathlib import Path

from .config import config
from .document_processing import DocumentLoader, PageChunker
from .embeddings import EmbeddingService
from .knowledge_index import FaissKnowledgeIndex, get_knowledge_index

logger = config.get_logger(__name__)


class KnowledgePipeline:
    """Populates the knowledge index from source documents."""

    def __init__(
        self,
        openai_api_key: str | None = None,
        chunk_size: int | None = None,
        overlap: int | None = None,
        db_path: Path | None = None,
        index_path: Path | None = None,
        knowledge_index: FaissKnowledgeIndex | None = None,
    ) -> None:
        """Initialize the ingestion pipeline.

        Args:
            openai_api_key: OpenAI API key.
            chunk_size: Size of text chunks. If None, uses config.CHUNK_SIZE.
            overlap: Overlap between chunks. If None, uses config.CHUNK_OVERLAP.
            db_path: Path of the SQLite chunk metadata. If None, uses
                config.VECTOR_STORE_DB_PATH.
            index_path: Path to FAISS index file. If None, uses
                config.FAISS_INDEX_PATH.
            knowledge_index: Pre-built index to populate; overrides the paths.
        """
        if chunk_size is None:
            chunk_size = config.CHUNK_SIZE
        if overlap is None:
            overlap = config.CHUNK_OVERLAP

        self.chunker = PageChunker(chunk_size=chunk_size, overlap=overlap)

        if knowledge_index is None:
            knowledge_index = get_knowledge_index(
                embedding_service=EmbeddingService(api_key=openai_api_key),
                db_path=db_path,
                index_path=index_path,
            )
        elif knowledge_index.embedding_service is None:
            knowledge_index.embedding_service = EmbeddingService(api_key=openai_api_key)

        self.knowledge_index = knowledge_index
        self.embedding_service = knowledge_index.embedding_service

    def process_document(self, file_path: Path) -> int:
        """Ingest one document into the knowledge index.

        Returns:
            Number of chunks written; chunks already indexed are replaced.
        """
        logger.info("Starting ingestion for document: %s", file_path)

        pages = DocumentLoader.load_pages(file_path)
        chunks = self.chunker.chunk_pages(pages, source=file_path.name)
        if not chunks:
            logger.warning("No text found in %s", file_path)
            return 0

        self.embedding_service.embed_chunks(chunks)
        added = self.knowledge_index.add_chunks(chunks)
        self.knowledge_index.save()

        logger.info(
            "Ingested %s: %d pages, %d chunks written",
            file_path.name,
            len(pages),
            added,
        )
        return added
