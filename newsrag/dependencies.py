"""Service container built once per process.

build_services wires settings into concrete clients (database engine, vector
store, embedding and generation clients, Redis-backed sessions, chat service).
The FastAPI app stores the result on ``app.state.services``; handlers reach it
through get_services.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine

from newsrag.chat import ChatService
from newsrag.config import RagConfig, Settings, settings as default_settings
from newsrag.db import create_db_engine, init_db
from newsrag.embedding import EmbeddingClient, build_embedding_client
from newsrag.generation import GenerationOrchestrator, build_orchestrator
from newsrag.retrieval import Retriever
from newsrag.sessions import SessionStore, create_redis
from newsrag.vector_store import PgVectorStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    config: RagConfig
    engine: Engine
    store: PgVectorStore
    embedder: EmbeddingClient
    retriever: Retriever
    generator: GenerationOrchestrator
    sessions: SessionStore
    chat: ChatService


def build_services(s: Optional[Settings] = None, init_schema: bool = True) -> Services:
    """Construct every long-lived client from settings.

    Args:
        s: Settings to use; defaults to the module-level settings.
        init_schema: Create the pgvector extension and registry table.

    Returns:
        Services: The wired container.

    Raises:
        ConfigurationError: If an API key is missing or tunables are invalid.
    """
    s = s or default_settings
    config = RagConfig.from_settings(s)
    embedder = build_embedding_client(s)
    generator = build_orchestrator(s, config)

    engine = create_db_engine(s.DATABASE_URL, statement_timeout_ms=s.DB_STATEMENT_TIMEOUT_MS)
    if init_schema:
        init_db(engine)
    store = PgVectorStore(engine)
    retriever = Retriever(
        embedder,
        store,
        s.VECTOR_COLLECTION,
        top_k=config.top_k,
        score_threshold=config.score_threshold,
    )
    sessions = SessionStore(create_redis(s.REDIS_URL, s.REDIS_TIMEOUT_SECONDS), s.SESSION_TTL_SECONDS)
    chat = ChatService(retriever, generator, sessions, top_k=config.top_k)
    logger.info(
        "Services ready (collection=%s, embedding=%s, models=%s)",
        s.VECTOR_COLLECTION, s.EMBEDDING_MODEL, ", ".join(generator.models),
    )
    return Services(
        settings=s,
        config=config,
        engine=engine,
        store=store,
        embedder=embedder,
        retriever=retriever,
        generator=generator,
        sessions=sessions,
        chat=chat,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the container built at startup."""
    return request.app.state.services
