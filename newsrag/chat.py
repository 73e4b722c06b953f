"""Chat request orchestration: history -> retrieval -> prompt -> generation.

Defines:
- OutcomeKind / ChatOutcome: tagged result (success | degraded | fatal).
- classify_error: maps backend exceptions to an outcome kind.
- ChatService.handle: runs one chat turn; every failure becomes an outcome, so
  the HTTP layer only has to map FATAL to an error status.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from newsrag.errors import ConfigurationError
from newsrag.generation import GenerationOrchestrator
from newsrag.obs import Trace, span
from newsrag.prompting import build_prompt, citation_label
from newsrag.retrieval import Retriever
from newsrag.schemas import Source
from newsrag.sessions import SessionStore

logger = logging.getLogger(__name__)

NO_CONTEXT_REPLY = (
    "No indexed news found for retrieval. Please run the ingestion job "
    "(and ensure NEWS_RSS_LIST and JINA_API_KEY are set)."
)
BUSY_REPLY = "The news model is busy right now. Please try again in a few seconds."


class OutcomeKind(str, enum.Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FATAL = "fatal"


@dataclass
class ChatOutcome:
    """Result of one chat turn.

    Attributes:
        kind: success, degraded (friendly fallback reply) or fatal.
        reply: Text to show the user.
        sources: Cited sources, S1..Sn in prompt order (empty unless success).
        error: The classified exception for degraded/fatal outcomes.
    """
    kind: OutcomeKind
    reply: str
    sources: List[Source] = field(default_factory=list)
    error: Optional[BaseException] = None


def classify_error(exc: BaseException) -> OutcomeKind:
    """Classify a failure raised while answering.

    Returns:
        FATAL for configuration errors, DEGRADED for everything else
        (embedding, vector store, generation, Redis, or an unexpected bug).
    """
    if isinstance(exc, ConfigurationError):
        return OutcomeKind.FATAL
    return OutcomeKind.DEGRADED


class ChatService:
    """Answers chat messages grounded on retrieved news chunks.

    Args:
        retriever: Retrieval engine.
        generator: Generation orchestrator.
        sessions: Session history store.
        top_k: Number of sources retrieved per message.
    """

    def __init__(
        self,
        retriever: Retriever,
        generator: GenerationOrchestrator,
        sessions: SessionStore,
        top_k: int = 5,
    ):
        self.retriever = retriever
        self.generator = generator
        self.sessions = sessions
        self.top_k = top_k

    def _answer(self, message: str, session_id: str, trace: Trace) -> ChatOutcome:
        self.sessions.append(session_id, "user", message)

        with span("retrieve", {"top_k": self.top_k}):
            results = self.retriever.retrieve(message, self.top_k)
        trace.event("retrieval_result", {
            "num_results": len(results),
            "top_score": results[0].score if results else 0.0,
        })

        if not results:
            self.sessions.append(session_id, "assistant", NO_CONTEXT_REPLY)
            trace.event("no_context")
            return ChatOutcome(kind=OutcomeKind.DEGRADED, reply=NO_CONTEXT_REPLY)

        prompt = build_prompt(message, results)
        with span("generate", {"sources": len(results)}):
            reply = self.generator.generate(prompt)
        trace.generation("answer", prompt=prompt, output=reply, model=self.generator.last_model)

        self.sessions.append(session_id, "assistant", reply)
        sources = [
            Source(id=citation_label(i), title=r.title, url=r.url, score=r.score)
            for i, r in enumerate(results, start=1)
        ]
        return ChatOutcome(kind=OutcomeKind.SUCCESS, reply=reply, sources=sources)

    def handle(self, message: str, session_id: str) -> ChatOutcome:
        """Run one chat turn for ``session_id``.

        Returns:
            ChatOutcome: success with sources; degraded with the fixed
            informational reply (empty index) or the busy reply (backend
            failure); fatal for configuration errors.
        """
        trace = Trace("chat", input={"message": message, "session_id": session_id})
        try:
            outcome = self._answer(message, session_id, trace)
        except Exception as e:
            kind = classify_error(e)
            if kind is OutcomeKind.FATAL:
                logger.error("Chat failed with configuration error: %s", e)
                outcome = ChatOutcome(kind=kind, reply="", error=e)
            else:
                logger.exception("Chat request degraded for session %s", session_id)
                outcome = ChatOutcome(kind=OutcomeKind.DEGRADED, reply=BUSY_REPLY, error=e)
        trace.end(output={"kind": outcome.kind.value, "sources": len(outcome.sources)})
        return outcome
