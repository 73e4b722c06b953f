"""Embedding client wrapping an OpenAI-compatible embeddings API.

Provides:
- EmbeddingClient.embed: one remote call for a batch of strings, order-preserving.
- EmbeddingClient.embed_query: convenience helper to embed a single query string.
- build_embedding_client: construct the client from settings (fails fast without a key).

The default endpoint is Jina's OpenAI-compatible /v1/embeddings. SDK-level retries
are disabled: callers own batch sizing and retry policy.
"""
import logging
from typing import List, Optional, Sequence

import openai
from openai import OpenAI

from newsrag.config import Settings
from newsrag.errors import ConfigurationError, EmbeddingServiceError

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Converts text into fixed-dimension vectors through a remote service."""

    def __init__(self, client: OpenAI, model: str):
        self._client = client
        self.model = model

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed a batch of texts with a single remote call.

        Args:
            texts: Input strings; one vector is returned per string, in order.

        Returns:
            List[List[float]]: One embedding vector per input text.

        Raises:
            EmbeddingServiceError: On a non-2xx response, transport failure, or a
                response with fewer vectors than inputs.
        """
        if not texts:
            return []
        try:
            resp = self._client.embeddings.create(
                model=self.model,
                input=list(texts),
                encoding_format="float",
            )
        except openai.APIStatusError as e:
            logger.warning("Embedding call failed: HTTP %d (%d texts)", e.status_code, len(texts))
            raise EmbeddingServiceError(f"embedding service returned HTTP {e.status_code}", e.status_code) from e
        except openai.APIError as e:
            logger.warning("Embedding call failed: %s (%d texts)", e, len(texts))
            raise EmbeddingServiceError(f"embedding service call failed: {e}") from e

        data = list(resp.data or [])
        if len(data) < len(texts):
            raise EmbeddingServiceError(
                f"embedding service returned {len(data)} vectors for {len(texts)} inputs"
            )
        # Order by the response index; some providers do not guarantee order.
        data.sort(key=lambda d: d.index)
        vectors = [list(d.embedding or []) for d in data[: len(texts)]]
        if any(not v for v in vectors):
            raise EmbeddingServiceError("embedding service returned an empty vector")
        return vectors

    def embed_query(self, text: str) -> List[float]:
        """Embed a single query string and return its embedding vector."""
        return self.embed([text])[0]


def build_embedding_client(s: Settings, client: Optional[OpenAI] = None) -> EmbeddingClient:
    """Create an EmbeddingClient from settings.

    Raises:
        ConfigurationError: If JINA_API_KEY is not configured.
    """
    if client is None:
        if not s.JINA_API_KEY:
            raise ConfigurationError("Missing JINA_API_KEY")
        client = OpenAI(
            api_key=s.JINA_API_KEY,
            base_url=s.EMBEDDING_BASE_URL,
            timeout=s.EMBEDDING_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return EmbeddingClient(client, s.EMBEDDING_MODEL)
