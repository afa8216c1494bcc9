"""Tests for EmbeddingService class."""

import os
from unittest.mock import patch

import httpx
import numpy as np
import pytest
from openai import APIConnectionError

from maestro import EmbeddingService, KnowledgeChunk
from maestro.config import config
from maestro.embeddings import prepare_text


@pytest.fixture
def embedding_service():
    return EmbeddingService(api_key="test-key", model="text-embedding-3-small")


def test_init_with_api_key(embedding_service):
    assert embedding_service.model == "text-embedding-3-small"
    assert embedding_service.client.api_key == "test-key"


def test_init_with_env_api_key():
    with patch.dict(os.environ, {"OPENAI_API_KEY": "env-key"}):
        service = EmbeddingService()

    assert service.client.api_key == "env-key"
    assert service.model == config.EMBEDDING_MODEL


def test_prepare_text_collapses_whitespace():
    assert prepare_text("  Load\n\nbearing   walls\t") == "Load bearing walls"


def test_embed_query_success(
    openai_embeddings_api_mock, embedding_service, embeddings_response_factory
):
    openai_embeddings_api_mock.return_value = embeddings_response_factory(
        [[0.1, 0.2, 0.3]]
    )

    result = embedding_service.embed_query("slab  thickness\n")

    openai_embeddings_api_mock.assert_called_once_with(
        model="text-embedding-3-small", input="slab thickness"
    )
    assert result.dtype == np.float32
    np.testing.assert_allclose(result, np.array([0.1, 0.2, 0.3], dtype=np.float32))


def test_embed_query_rejects_blank_text(openai_embeddings_api_mock, embedding_service):
    with pytest.raises(ValueError, match="empty query"):
        embedding_service.embed_query("   ")

    openai_embeddings_api_mock.assert_not_called()


def test_embed_texts_batches_requests(
    openai_embeddings_api_mock, embeddings_response_factory
):
    service = EmbeddingService(api_key="test-key", batch_size=2)
    openai_embeddings_api_mock.side_effect = [
        embeddings_response_factory([[0.1, 0.2], [0.3, 0.4]]),
        embeddings_response_factory([[0.5, 0.6]]),
    ]

    result = service.embed_texts(["one", "two", "three"])

    assert openai_embeddings_api_mock.call_count == 2
    assert openai_embeddings_api_mock.call_args_list[1].kwargs["input"] == ["three"]
    assert len(result) == 3
    np.testing.assert_allclose(result[2], np.array([0.5, 0.6], dtype=np.float32))


def test_embed_texts_propagates_api_error(
    openai_embeddings_api_mock, embedding_service
):
    openai_embeddings_api_mock.side_effect = APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    )

    with pytest.raises(APIConnectionError):
        embedding_service.embed_texts(["text"])


def test_embed_chunks_sets_embeddings_in_place(
    openai_embeddings_api_mock, embedding_service, embeddings_response_factory
):
    openai_embeddings_api_mock.return_value = embeddings_response_factory(
        [[1.0, 0.0], [0.0, 1.0]]
    )
    chunks = [
        KnowledgeChunk(page=1, chunk_index=1, content="first"),
        KnowledgeChunk(page=1, chunk_index=2, content="second"),
    ]

    result = embedding_service.embed_chunks(chunks)

    assert result is chunks
    np.testing.assert_allclose(chunks[0].embedding, [1.0, 0.0])
    np.testing.assert_allclose(chunks[1].embedding, [0.0, 1.0])
