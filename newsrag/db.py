"""Database setup helpers for SQLAlchemy + pgvector.

This module centralizes engine creation, the declarative metadata base, and:
- create_db_engine: engine with pre-ping and explicit connect/statement timeouts.
- init_db: ensures the pgvector extension and the collection registry table exist.

The engine is created once at startup (see newsrag.dependencies) and passed to
the vector store; nothing here opens a connection at import time.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def create_db_engine(url: str, statement_timeout_ms: int = 15000, connect_timeout_s: int = 10) -> Engine:
    """Create a SQLAlchemy engine whose connections carry explicit timeouts.

    Args:
        url: SQLAlchemy database URL (postgresql+psycopg2://...).
        statement_timeout_ms: Server-side statement timeout for every query.
        connect_timeout_s: TCP connect timeout.

    Returns:
        Engine: A pooled engine with pre-ping enabled.
    """
    return create_engine(
        url,
        pool_pre_ping=True,
        future=True,
        connect_args={
            "connect_timeout": connect_timeout_s,
            "options": f"-c statement_timeout={int(statement_timeout_ms)}",
        },
    )


def init_db(engine: Engine) -> None:
    """Initialize the pgvector extension and the collection registry table.

    This function is idempotent and safe to run multiple times.
    """
    with engine.connect() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        conn.commit()

    # Import models after Base is defined
    from newsrag import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

