"""Application configuration and environment-driven settings.

Defines:
- Settings: pydantic-settings class centralizing configuration for
  - API keys, endpoints and model names (embedding + generation)
  - Data stores (PostgreSQL/pgvector, Redis) and session TTL
  - Ingestion parameters (feeds, sitemap, chunking, batching)
  - Retrieval/generation knobs (top-k, threshold, retry schedule)
  - Optional observability (Langfuse, OpenTelemetry console export)
- RagConfig: frozen struct of the pipeline tunables, validated once and passed
  explicitly into the components that need it.

A warning is logged if API keys are missing when not running in Docker.
"""
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from newsrag.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Strongly-typed application settings loaded from environment variables.

    Uses pydantic-settings to populate fields from a .env file or process env.
    See individual field names for semantics and safe defaults.
    """
    # Required
    JINA_API_KEY: str = Field(default="", description="Embedding service API key")
    GEMINI_API_KEY: str = Field(default="", description="Generation service API key")

    # Embedding (OpenAI-compatible endpoint)
    EMBEDDING_BASE_URL: str = "https://api.jina.ai/v1"
    EMBEDDING_MODEL: str = "jina-embeddings-v3"
    EMBEDDING_DIM: int = 1024  # jina-embeddings-v3 output size
    EMBEDDING_TIMEOUT_SECONDS: float = 30.0

    # Generation (OpenAI-compatible endpoint)
    GENERATION_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_FALLBACK_MODEL: str = "gemini-1.5-flash-8b"
    GENERATION_TIMEOUT_SECONDS: float = 60.0
    TEMPERATURE: float = 0.2
    MAX_OUTPUT_TOKENS: int = 512
    GEN_MAX_ATTEMPTS: int = 4
    GEN_RETRY_DELAYS_MS: List[int] = [400, 800, 1600, 3200]

    # Data stores
    DATABASE_URL: str = "postgresql+psycopg2://rag_user:rag_pass@db:5432/rag_db"
    VECTOR_COLLECTION: str = "news_articles_v1"
    DB_STATEMENT_TIMEOUT_MS: int = 15000
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_TIMEOUT_SECONDS: float = 5.0
    SESSION_TTL_SECONDS: int = 86400

    # Ingestion
    NEWS_RSS_LIST: str = ""
    NEWS_SITEMAP: str = ""
    ARTICLE_LIMIT: int = 50
    CHUNK_SIZE: int = 800
    CHUNK_OVERLAP: int = 80
    MAX_CHUNKS: int = 80
    EMBED_BATCH_SIZE: int = 32
    MAX_DOC_CHARS: int = 60000
    FETCH_TIMEOUT_SECONDS: float = 25.0
    READER_BASE_URL: str = "https://r.jina.ai/"

    # Retrieval
    TOP_K: int = 5
    SCORE_THRESHOLD: float = 0.0

    # Observability (optional)
    LANGFUSE_HOST: str = ""
    LANGFUSE_PUBLIC_KEY: str = ""
    LANGFUSE_SECRET_KEY: str = ""
    OTEL_CONSOLE_EXPORT: bool = False

    # Server
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def rss_feeds(self) -> List[str]:
        """Configured feed URLs, in order, with blanks removed."""
        return [u.strip() for u in self.NEWS_RSS_LIST.split(",") if u.strip()]

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@dataclass(frozen=True)
class RagConfig:
    """Pipeline tunables shared by ingestion, retrieval and generation.

    Attributes:
        chunk_size: Characters per chunk window.
        overlap: Characters shared by consecutive windows (must be < chunk_size).
        max_chunks: Hard cap on chunks per document.
        batch_size: Chunks per embed/upsert batch.
        max_attempts: Generation attempts per candidate model.
        retry_delays_ms: Wait schedule indexed by attempt; last entry reused.
        top_k: Results returned by retrieval.
        score_threshold: Minimum similarity (<= 0 disables the floor).
        embedding_dimension: Vector size of the collection.
        max_doc_chars: Per-document character cap applied before chunking.
    """
    chunk_size: int = 800
    overlap: int = 80
    max_chunks: int = 80
    batch_size: int = 32
    max_attempts: int = 4
    retry_delays_ms: Tuple[int, ...] = (400, 800, 1600, 3200)
    top_k: int = 5
    score_threshold: float = 0.0
    embedding_dimension: int = 1024
    max_doc_chars: int = 60000

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Reject inconsistent tunables.

        Raises:
            ConfigurationError: On any out-of-range value.
        """
        if self.chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.overlap < 0 or self.overlap >= self.chunk_size:
            raise ConfigurationError(
                f"overlap must be in [0, chunk_size); got overlap={self.overlap}, chunk_size={self.chunk_size}"
            )
        if self.max_chunks <= 0:
            raise ConfigurationError(f"max_chunks must be positive, got {self.max_chunks}")
        if self.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_attempts <= 0:
            raise ConfigurationError(f"max_attempts must be positive, got {self.max_attempts}")
        if not self.retry_delays_ms or any(d < 0 for d in self.retry_delays_ms):
            raise ConfigurationError("retry_delays_ms must be a non-empty list of non-negative delays")
        if self.top_k <= 0:
            raise ConfigurationError(f"top_k must be positive, got {self.top_k}")
        if self.embedding_dimension <= 0:
            raise ConfigurationError(f"embedding_dimension must be positive, got {self.embedding_dimension}")
        if self.max_doc_chars <= 0:
            raise ConfigurationError(f"max_doc_chars must be positive, got {self.max_doc_chars}")

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "RagConfig":
        """Build the tunables struct from environment settings."""
        s = s or settings
        return cls(
            chunk_size=s.CHUNK_SIZE,
            overlap=s.CHUNK_OVERLAP,
            max_chunks=s.MAX_CHUNKS,
            batch_size=s.EMBED_BATCH_SIZE,
            max_attempts=s.GEN_MAX_ATTEMPTS,
            retry_delays_ms=tuple(s.GEN_RETRY_DELAYS_MS),
            top_k=s.TOP_K,
            score_threshold=s.SCORE_THRESHOLD,
            embedding_dimension=s.EMBEDDING_DIM,
            max_doc_chars=s.MAX_DOC_CHARS,
        )


settings = Settings()

# Safety check for local dev (inside the API container these must be set)
if os.environ.get("RUNNING_IN_DOCKER", "0") == "0":
    if not settings.JINA_API_KEY:
        logger.warning("JINA_API_KEY not set. Set it in .env before running ingestion or /api/chat.")
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set. Set it in .env before running /api/chat.")
