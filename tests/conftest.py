"""Test configuration and fixtures for Maestro tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- In-memory Redis double for the conversation store
- Knowledge index fixtures
- Decision, generation and assistant fixtures
"""

import hashlib
import json
from unittest.mock import Mock, patch

import numpy as np
import pytest

from maestro import (
    Assistant,
    ConversationMessage,
    ConversationStore,
    FaissKnowledgeIndex,
    KnowledgeChunk,
    ResponseGenerator,
    TurnDecisionEngine,
)

BASE_TIME_MS = 1_700_000_000_000


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    DEFAULT_EMBEDDING_DIMENSION = 64

    # Conversation Configuration
    WINDOW_SIZE = 10
    TTL_SECONDS = 604800


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension

    def embed_query(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def embed_texts(self, texts: list[str]) -> list[np.ndarray]:
        return [self.embed_query(text) for text in texts]

    def embed_chunks(self, chunks: list[KnowledgeChunk]) -> list[KnowledgeChunk]:
        for chunk in chunks:
            chunk.embedding = self.embed_query(chunk.content)
        return chunks


class InMemoryRedis:
    """Minimal Redis list double covering the commands the store issues."""

    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}
        self.ttls: dict[str, int] = {}

    def lpush(self, key: str, *values: str) -> int:
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    def ltrim(self, key: str, start: int, end: int) -> bool:
        if key in self.lists:
            self.lists[key] = self.lists[key][start : end + 1]
        return True

    def lrange(self, key: str, start: int, end: int) -> list[str]:
        return list(self.lists.get(key, [])[start : end + 1])

    def expire(self, key: str, seconds: int) -> bool:
        if key not in self.lists:
            return False
        self.ttls[key] = seconds
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.lists.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(
    content: str | None, tool_calls: list | None = None
) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.
        tool_calls: Tool calls requested by the model, if any.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [
        Mock(message=Mock(content=content, tool_calls=tool_calls))
    ]
    return mock_response


def create_mock_tool_call(
    queries: list[str], call_id: str = "call_1", name: str = "searchKnowledge"
) -> Mock:
    """Create a mock tool call as returned on a chat completion message.

    Returns:
        Mock object with ``id`` and ``function.name``/``function.arguments``.
    """
    call = Mock()
    call.id = call_id
    call.function.name = name
    call.function.arguments = json.dumps({"queries": queries})
    return call


def create_decision_response(label: str) -> Mock:
    """Create a mock classification response carrying a decision label.

    Returns:
        Mock chat completion whose content is the decision JSON.
    """
    return create_mock_chat_response(json.dumps({"decision": label}))


def make_message(
    content: str,
    role: str = "user",
    offset_seconds: int = 0,
    image_id: str | None = None,
) -> ConversationMessage:
    """Build a message timestamped relative to BASE_TIME_MS.

    Returns:
        A ConversationMessage.
    """
    return ConversationMessage(
        role=role,
        content=content,
        timestamp=BASE_TIME_MS + offset_seconds * 1000,
        image_id=image_id,
    )


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch the OpenAI embeddings.create method."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


@pytest.fixture
def redis_client():
    return InMemoryRedis()


@pytest.fixture
def conversation_store(redis_client):
    return ConversationStore(
        redis_client,
        max_messages=TestConstants.WINDOW_SIZE,
        ttl_seconds=TestConstants.TTL_SECONDS,
        key_prefix="conversation:",
    )


@pytest.fixture
def temp_knowledge_index(tmp_path, mock_embedding_service):
    """Knowledge index on temporary files with mock embeddings."""
    return FaissKnowledgeIndex(
        db_path=tmp_path / "knowledge.db",
        index_path=tmp_path / "faiss" / "index.faiss",
        embedding_service=mock_embedding_service,
    )


@pytest.fixture
def sample_chunks():
    """Three consecutive chunks on page 4 plus one on page 9."""
    return [
        KnowledgeChunk(page=4, chunk_index=1, content="a", source="manual.pdf"),
        KnowledgeChunk(page=4, chunk_index=2, content="b", source="manual.pdf"),
        KnowledgeChunk(page=4, chunk_index=3, content="c", source="manual.pdf"),
        KnowledgeChunk(
            page=9,
            chunk_index=1,
            content="Concrete must cure for seven days before loading.",
            source="manual.pdf",
        ),
    ]


@pytest.fixture
def sample_embedded_chunks(sample_chunks, mock_embedding_service):
    return mock_embedding_service.embed_chunks(sample_chunks)


@pytest.fixture
def populated_knowledge_index(temp_knowledge_index, sample_embedded_chunks):
    temp_knowledge_index.add_chunks(sample_embedded_chunks)
    return temp_knowledge_index


@pytest.fixture
def decision_client():
    """OpenAI client double for the turn decision engine."""
    client = Mock()
    client.chat.completions.create.return_value = create_decision_response(
        "respond_now"
    )
    return client


@pytest.fixture
def decision_engine(decision_client):
    return TurnDecisionEngine(
        model="gpt-4o-mini",
        window_seconds=300,
        max_context_messages=10,
        question_fast_path=False,
        client=decision_client,
    )


@pytest.fixture
def generation_client():
    """OpenAI client double for the response generator."""
    client = Mock()
    client.chat.completions.create.return_value = create_mock_chat_response(
        "Here is the answer."
    )
    return client


@pytest.fixture
def search_knowledge():
    return Mock(return_value="Nothing found")


@pytest.fixture
def response_generator(generation_client, search_knowledge):
    return ResponseGenerator(
        search_knowledge,
        model="gpt-4.1",
        max_steps=10,
        max_tokens=800,
        temperature=0.3,
        client=generation_client,
    )


@pytest.fixture
def clock():
    """Deterministic clock advancing one second per call."""
    ticks = iter(range(BASE_TIME_MS, BASE_TIME_MS + 10_000_000, 1000))
    return lambda: next(ticks)


@pytest.fixture
def sink():
    return Mock()


@pytest.fixture
def assistant(conversation_store, decision_engine, response_generator, sink, clock):
    return Assistant(
        store=conversation_store,
        decision_engine=decision_engine,
        generator=response_generator,
        sink=sink,
        clock=clock,
    )


@pytest.fixture
def message_factory():
    """Factory for timestamped conversation messages."""
    return make_message


@pytest.fixture
def chat_response_factory():
    """Factory for mock chat completion responses."""
    return create_mock_chat_response


@pytest.fixture
def tool_call_factory():
    """Factory for mock searchKnowledge tool calls."""
    return create_mock_tool_call


@pytest.fixture
def decision_response_factory():
    """Factory for mock turn decision responses."""
    return create_decision_response


@pytest.fixture
def embeddings_response_factory():
    """Factory for mock embeddings API responses."""
    return create_mock_openai_response
