"""News RAG service: ingestion, retrieval, cited generation and a chat API.

Submodules overview:
- main: FastAPI application, chat and session routes.
- dependencies: Service container built once at startup.
- config: Environment settings and the validated pipeline tunables.
- errors: Exception hierarchy shared by every component.
- db / models: SQLAlchemy engine helpers and pgvector table definitions.
- vector_store: Collection-scoped upsert and similarity search on pgvector.
- embedding: Embedding client for an OpenAI-compatible endpoint.
- retrieval: Query embedding + top-k search mapped to RetrievalResults.
- prompting: Grounded prompt with numbered, citable sources.
- generation: Retry-within-model and fallback-model generation.
- chat: One chat turn with a tagged success/degraded/fatal outcome.
- sessions: Redis-backed chat history with TTL.
- ingestion: Feed/sitemap acquisition, chunking pipeline and CLI.
- obs: Observability utilities (Langfuse traces, OpenTelemetry spans).
- utils: Text cleanup, chunking and id helpers.
"""
