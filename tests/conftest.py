"""
Shared test fixtures and fakes for the whole suite.

Provides: in-memory vector store, deterministic embedder, OpenAI-style client
doubles and error builders, in-memory session store.
Dependencies: pytest, httpx, openai
System role: Test infrastructure; no network, database or Redis required.
"""

import math
from types import SimpleNamespace
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from newsrag.config import RagConfig
from newsrag.errors import EmbeddingServiceError, VectorStoreError
from newsrag.vector_store import CollectionInfo, SearchHit

DIM = 4


def api_status_error(status: int, message: str = "upstream error") -> openai.APIStatusError:
    """Build an openai.APIStatusError carrying ``status``."""
    request = httpx.Request("POST", "https://api.example.test/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return openai.APIStatusError(message, response=response, body=None)


def api_timeout_error() -> openai.APITimeoutError:
    return openai.APITimeoutError(request=httpx.Request("POST", "https://api.example.test/v1"))


def completion(text: str) -> SimpleNamespace:
    """Minimal chat.completions.create response."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def chat_client(*outcomes) -> SimpleNamespace:
    """OpenAI-style client whose completions return/raise ``outcomes`` in order."""
    create = MagicMock(side_effect=list(outcomes))
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def embeddings_response(vectors: List[List[float]], order: Optional[List[int]] = None) -> SimpleNamespace:
    indices = order if order is not None else list(range(len(vectors)))
    return SimpleNamespace(
        data=[SimpleNamespace(index=i, embedding=vectors[i]) for i in indices]
    )


class FakeEmbedder:
    """Deterministic embedder: vector derived from text length and first char."""

    def __init__(self, dim: int = DIM, fail_on: Optional[str] = None):
        self.dim = dim
        self.fail_on = fail_on
        self.calls: List[List[str]] = []

    def embed(self, texts):
        texts = list(texts)
        self.calls.append(texts)
        if self.fail_on is not None and any(self.fail_on in t for t in texts):
            raise EmbeddingServiceError("embedding service returned HTTP 503", 503)
        return [self._vector(t) for t in texts]

    def embed_query(self, text):
        return self.embed([text])[0]

    def _vector(self, text: str) -> List[float]:
        seed = (len(text) % 7) + 1
        first = ord(text[0]) % 5 if text else 0
        return [float(seed), float(first), 1.0, 0.5][: self.dim] + [0.0] * max(0, self.dim - 4)


class FakeVectorStore:
    """In-memory stand-in for PgVectorStore (cosine scores)."""

    def __init__(self, fail_upsert_for: Optional[str] = None, fail_on_call: Optional[int] = None):
        self.collections: Dict[str, CollectionInfo] = {}
        self.points: Dict[str, Dict[str, dict]] = {}
        self.ensure_calls: List[tuple] = []
        self.upsert_calls: List[tuple] = []
        self.fail_upsert_for = fail_upsert_for
        self.fail_on_call = fail_on_call  # 1-based upsert call number that raises
        self.search_hits: Optional[List[SearchHit]] = None

    def ensure_collection(self, name, dimension, metric="cosine"):
        self.ensure_calls.append((name, dimension, metric))
        info = self.collections.setdefault(name, CollectionInfo(name, dimension, metric))
        self.points.setdefault(name, {})
        return info

    def upsert(self, collection, points):
        self.upsert_calls.append((collection, [p.id for p in points]))
        if self.fail_on_call == len(self.upsert_calls):
            raise VectorStoreError(f"upsert into {collection!r} failed: timeout")
        if self.fail_upsert_for and any(p.payload.get("url") == self.fail_upsert_for for p in points):
            raise VectorStoreError(f"upsert into {collection!r} failed: boom")
        for p in points:
            self.points[collection][p.id] = {"vector": list(p.vector), "payload": dict(p.payload)}
        return len({p.id for p in points})

    def search(self, collection, vector, top_k, score_threshold=0.0):
        if self.search_hits is not None:
            return list(self.search_hits)[:top_k]
        hits = []
        for pid, p in self.points.get(collection, {}).items():
            score = _cosine(vector, p["vector"])
            if score_threshold is not None and score_threshold > 0 and score < score_threshold:
                continue
            hits.append(SearchHit(id=pid, score=score, payload=p["payload"]))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:top_k]

    def count(self, collection):
        return len(self.points.get(collection, {}))


def _cosine(a, b) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


class FakeSessionStore:
    """Dict-backed SessionStore with the same interface."""

    def __init__(self):
        self.data: Dict[str, List[dict]] = {}

    def get_history(self, session_id):
        return list(self.data.get(session_id, []))

    def append(self, session_id, role, content):
        self.data.setdefault(session_id, []).append({"role": role, "content": content, "ts": 1})

    def delete(self, session_id):
        self.data.pop(session_id, None)


@pytest.fixture
def rag_config():
    """Small chunks so short test texts produce several points."""
    return RagConfig(
        chunk_size=100,
        overlap=10,
        max_chunks=80,
        batch_size=3,
        embedding_dimension=DIM,
        max_doc_chars=1000,
    )


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_store():
    return FakeVectorStore()


@pytest.fixture
def fake_sessions():
    return FakeSessionStore()
