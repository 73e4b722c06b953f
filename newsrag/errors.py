"""Exception hierarchy shared by ingestion, retrieval and generation.

- RagError: base class for every error raised by the pipeline.
- ConfigurationError: missing/invalid settings; fatal, never retried.
- EmbeddingServiceError: embedding endpoint failed or returned a malformed body.
- VectorStoreError: pgvector collection/upsert/search failure.
- GenerationError: every candidate model exhausted its attempts.
"""
from typing import Optional


class RagError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(RagError):
    """Raised when required configuration is missing or inconsistent."""


class EmbeddingServiceError(RagError):
    """Raised when the embedding service call fails.

    Attributes:
        status_code: HTTP status of the failed response, if one was received.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class VectorStoreError(RagError):
    """Raised when a vector store operation fails."""


class GenerationError(RagError):
    """Raised after all generation attempts on all candidate models failed.

    The last observed error is chained as ``__cause__``.

    Attributes:
        status_code: HTTP status of the last failed attempt, if any.
        model: Model used by the last failed attempt.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, model: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.model = model
