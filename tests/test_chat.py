"""
Unit tests for ChatService outcomes.

Dependencies: pytest, newsrag.chat, test fakes
System role: Chat turn orchestration and error classification
"""

from unittest.mock import MagicMock

import pytest
import redis

from conftest import FakeEmbedder, FakeSessionStore, FakeVectorStore, api_status_error, chat_client, completion
from newsrag import chat
from newsrag.chat import BUSY_REPLY, NO_CONTEXT_REPLY, ChatService, OutcomeKind, classify_error
from newsrag.errors import ConfigurationError, EmbeddingServiceError, GenerationError, VectorStoreError
from newsrag.generation import GenerationOrchestrator
from newsrag.retrieval import Retriever
from newsrag.vector_store import SearchHit

HITS = [
    SearchHit(id="a", score=0.81, payload={"title": "A", "url": "https://n/a", "text": "alpha"}),
    SearchHit(id="b", score=0.77, payload={"title": "B", "url": "https://n/b", "text": "beta"}),
    SearchHit(id="c", score=0.65, payload={"title": "C", "url": "https://n/c", "text": "gamma"}),
]


def _service(hits=None, client=None, embedder=None, sessions=None):
    store = FakeVectorStore()
    store.search_hits = hits
    retriever = Retriever(embedder or FakeEmbedder(), store, "news")
    generator = GenerationOrchestrator(
        client or chat_client(completion("Rates held [S1].")),
        ["primary", "fallback"],
        sleep=lambda s: None,
    )
    return ChatService(retriever, generator, sessions or FakeSessionStore(), top_k=5)


class TestChatService:
    """Test suite for ChatService.handle."""

    def test_success_returns_reply_and_labelled_sources(self):
        """
        Test three retrieved hits produce S1..S3 sources in order.

        Arrange: Store returning three hits, generator returning a cited reply
        Act: handle a message
        Assert: Success outcome, sources labelled S1..S3, prompt carries all three
        """
        # Arrange
        client = chat_client(completion("Rates held [S1]."))
        sessions = FakeSessionStore()
        service = _service(HITS, client, sessions=sessions)

        # Act
        outcome = service.handle("What did the bank do?", "sid")

        # Assert
        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.reply == "Rates held [S1]."
        assert [(s.id, s.title, s.url, s.score) for s in outcome.sources] == [
            ("S1", "A", "https://n/a", 0.81),
            ("S2", "B", "https://n/b", 0.77),
            ("S3", "C", "https://n/c", 0.65),
        ]
        prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Source 1 (0.810): A" in prompt and "Source 3 (0.650): C" in prompt
        assert [m["role"] for m in sessions.get_history("sid")] == ["user", "assistant"]

    def test_empty_retrieval_skips_generation(self):
        client = chat_client()
        sessions = FakeSessionStore()
        outcome = _service([], client, sessions=sessions).handle("anything?", "sid")

        assert outcome.kind is OutcomeKind.DEGRADED
        assert outcome.reply == NO_CONTEXT_REPLY
        assert outcome.sources == []
        assert outcome.error is None
        client.chat.completions.create.assert_not_called()
        assert sessions.get_history("sid")[-1]["content"] == NO_CONTEXT_REPLY

    def test_generation_failure_degrades_to_busy_reply(self):
        errors = [api_status_error(503) for _ in range(8)]
        outcome = _service(HITS, chat_client(*errors)).handle("q", "sid")

        assert outcome.kind is OutcomeKind.DEGRADED
        assert outcome.reply == BUSY_REPLY
        assert outcome.sources == []
        assert isinstance(outcome.error, GenerationError)

    def test_embedding_failure_degrades(self):
        outcome = _service(HITS, embedder=FakeEmbedder(fail_on="q")).handle("q", "sid")
        assert outcome.kind is OutcomeKind.DEGRADED
        assert isinstance(outcome.error, EmbeddingServiceError)

    def test_redis_failure_degrades(self):
        sessions = MagicMock()
        sessions.append.side_effect = redis.ConnectionError("redis down")
        outcome = _service(HITS, sessions=sessions).handle("q", "sid")
        assert outcome.kind is OutcomeKind.DEGRADED
        assert outcome.reply == BUSY_REPLY

    def test_configuration_error_is_fatal(self):
        embedder = MagicMock()
        embedder.embed_query.side_effect = ConfigurationError("Missing JINA_API_KEY")
        outcome = _service(HITS, embedder=embedder).handle("q", "sid")
        assert outcome.kind is OutcomeKind.FATAL
        assert isinstance(outcome.error, ConfigurationError)

    def test_unexpected_errors_degrade_to_busy_reply(self):
        embedder = MagicMock()
        embedder.embed_query.side_effect = KeyError("bug")
        outcome = _service(HITS, embedder=embedder).handle("q", "sid")
        assert outcome.kind is OutcomeKind.DEGRADED
        assert outcome.reply == BUSY_REPLY
        assert outcome.sources == []
        assert isinstance(outcome.error, KeyError)

    def test_trace_records_the_model_that_answered(self, monkeypatch):
        trace = MagicMock()
        monkeypatch.setattr(chat, "Trace", lambda *a, **kw: trace)
        client = chat_client(api_status_error(400), completion("From fallback [S1]."))

        outcome = _service(HITS, client).handle("q", "sid")

        assert outcome.kind is OutcomeKind.SUCCESS
        assert trace.generation.call_args.kwargs["model"] == "fallback"


class TestClassifyError:
    """Test suite for classify_error."""

    @pytest.mark.parametrize(
        "exc",
        [
            EmbeddingServiceError("x", 503),
            VectorStoreError("x"),
            GenerationError("x", 503),
            redis.TimeoutError("x"),
        ],
    )
    def test_transient_failures_are_degraded(self, exc):
        assert classify_error(exc) is OutcomeKind.DEGRADED

    def test_configuration_error_is_fatal(self):
        assert classify_error(ConfigurationError("x")) is OutcomeKind.FATAL

    def test_other_errors_are_degraded(self):
        assert classify_error(ValueError("x")) is OutcomeKind.DEGRADED
