"""
Unit tests for EmbeddingClient and its factory.

Dependencies: pytest, openai (error types), newsrag.embedding
System role: Embedding client contract validation
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import api_status_error, api_timeout_error, embeddings_response
from newsrag.config import Settings
from newsrag.embedding import EmbeddingClient, build_embedding_client
from newsrag.errors import ConfigurationError, EmbeddingServiceError


def _client(**create_kwargs) -> SimpleNamespace:
    return SimpleNamespace(embeddings=SimpleNamespace(create=MagicMock(**create_kwargs)))


class TestEmbed:
    """Test suite for EmbeddingClient.embed."""

    def test_one_call_per_batch_in_input_order(self):
        # Arrange: provider returns items out of order
        vectors = [[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]]
        client = _client(return_value=embeddings_response(vectors, order=[2, 0, 1]))
        embedder = EmbeddingClient(client, "jina-embeddings-v3")

        # Act
        out = embedder.embed(["a", "b", "c"])

        # Assert
        assert out == vectors
        client.embeddings.create.assert_called_once_with(
            model="jina-embeddings-v3", input=["a", "b", "c"], encoding_format="float"
        )

    def test_empty_input_makes_no_call(self):
        client = _client()
        assert EmbeddingClient(client, "m").embed([]) == []
        client.embeddings.create.assert_not_called()

    def test_http_error_carries_status(self):
        client = _client(side_effect=api_status_error(429))
        with pytest.raises(EmbeddingServiceError) as exc:
            EmbeddingClient(client, "m").embed(["a"])
        assert exc.value.status_code == 429

    def test_timeout_is_wrapped(self):
        client = _client(side_effect=api_timeout_error())
        with pytest.raises(EmbeddingServiceError) as exc:
            EmbeddingClient(client, "m").embed(["a"])
        assert exc.value.status_code is None

    def test_short_response_is_rejected(self):
        client = _client(return_value=embeddings_response([[1.0]]))
        with pytest.raises(EmbeddingServiceError, match="1 vectors for 2 inputs"):
            EmbeddingClient(client, "m").embed(["a", "b"])

    def test_empty_vector_is_rejected(self):
        client = _client(return_value=embeddings_response([[]]))
        with pytest.raises(EmbeddingServiceError):
            EmbeddingClient(client, "m").embed(["a"])

    def test_embed_query_returns_single_vector(self):
        client = _client(return_value=embeddings_response([[0.1, 0.2]]))
        assert EmbeddingClient(client, "m").embed_query("q") == [0.1, 0.2]
        assert client.embeddings.create.call_args.kwargs["input"] == ["q"]


class TestBuildEmbeddingClient:
    """Test suite for build_embedding_client."""

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="JINA_API_KEY"):
            build_embedding_client(Settings(JINA_API_KEY=""))

    def test_builds_sdk_client_without_retries(self):
        embedder = build_embedding_client(Settings(JINA_API_KEY="k", EMBEDDING_TIMEOUT_SECONDS=12))
        assert embedder.model == "jina-embeddings-v3"
        assert embedder._client.max_retries == 0
        assert str(embedder._client.base_url).startswith("https://api.jina.ai/v1")

    def test_injected_client_skips_key_check(self):
        client = _client()
        embedder = build_embedding_client(Settings(JINA_API_KEY=""), client=client)
        assert embedder._client is client
