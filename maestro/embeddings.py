"""OpenAI embeddings for knowledge chunks and search queries."""

import numpy as np
from openai import OpenAI

from .config import config
from .models import KnowledgeChunk

logger = config.get_logger(__name__)


def prepare_text(text: str) -> str:
    """Collapse whitespace runs such as OCR line breaks."""
    return " ".join(text.split())


class EmbeddingService:
    """Turns corpus chunks and user queries into embedding vectors."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        batch_size: int = 100,
    ) -> None:
        """Initialize the EmbeddingService with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            batch_size: Number of texts sent per embeddings request.
        """
        api_key = api_key or config.get_openai_api_key()
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.EMBEDDING_MODEL
        self.batch_size = batch_size

    def embed_query(self, text: str) -> np.ndarray:
        """Embed one search query.

        Returns:
            The query vector.

        Raises:
            ValueError: If the query is blank.
        """
        prepared = prepare_text(text)
        if not prepared:
            msg = "Cannot embed an empty query"
            raise ValueError(msg)

        response = self.client.embeddings.create(model=self.model, input=prepared)
        return np.array(response.data[0].embedding, dtype="float32")

    def embed_texts(self, texts: list[str]) -> list[np.ndarray]:
        """Embed many texts, ``batch_size`` per request.

        Returns:
            One vector per input text, in input order.
        """
        embeddings: list[np.ndarray] = []

        for start in range(0, len(texts), self.batch_size):
            batch = [
                prepare_text(text) for text in texts[start : start + self.batch_size]
            ]
            try:
                response = self.client.embeddings.create(model=self.model, input=batch)
            except Exception:
                logger.exception(
                    "Error embedding batch %d", start // self.batch_size + 1
                )
                raise
            embeddings.extend(
                np.array(item.embedding, dtype="float32") for item in response.data
            )
            logger.info(
                "Embedded batch %d (%d texts)", start // self.batch_size + 1, len(batch)
            )

        return embeddings

    def embed_chunks(self, chunks: list[KnowledgeChunk]) -> list[KnowledgeChunk]:
        """Attach an embedding to every chunk in place.

        Returns:
            The same chunks, for chaining.
        """
        embeddings = self.embed_texts([chunk.content for chunk in chunks])
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            chunk.embedding = embedding
        return chunks
