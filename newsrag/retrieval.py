"""Retrieval engine: embed the query, search the collection, map hits.

Defines:
- RetrievalResult: ranked, payload-annotated search result.
- Retriever.retrieve: top-k nearest chunks for a query.

Embedding and vector store errors propagate to the caller; an empty list means
the collection had nothing to return, not that retrieval failed.
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from newsrag.embedding import EmbeddingClient
from newsrag.vector_store import PgVectorStore, SearchHit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievalResult:
    """One retrieved chunk.

    Attributes:
        score: Similarity score (higher is better).
        text: Chunk text.
        url: Source document URL.
        title: Source document title.
    """
    score: float
    text: str
    url: str
    title: str


def _field(payload: Optional[dict], key: str) -> str:
    value: Any = (payload or {}).get(key)
    return "" if value is None else str(value)


def to_result(hit: SearchHit) -> RetrievalResult:
    """Map a raw hit to a result; missing payload fields become empty strings."""
    return RetrievalResult(
        score=float(hit.score),
        text=_field(hit.payload, "text"),
        url=_field(hit.payload, "url"),
        title=_field(hit.payload, "title"),
    )


class Retriever:
    """Top-k similarity retrieval over one collection.

    Args:
        embedder: Embedding client used for the query.
        store: Vector store adapter.
        collection: Collection to search.
        top_k: Default number of results.
        score_threshold: Similarity floor; 0.0 returns top_k regardless of relevance.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: PgVectorStore,
        collection: str,
        top_k: int = 5,
        score_threshold: float = 0.0,
    ):
        self.embedder = embedder
        self.store = store
        self.collection = collection
        self.top_k = top_k
        self.score_threshold = score_threshold

    def retrieve(self, query: str, top_k: Optional[int] = None) -> List[RetrievalResult]:
        """Return results for ``query`` ordered by descending score.

        Args:
            query: User query; embedded as exactly one string.
            top_k: Override for the configured result count.

        Raises:
            EmbeddingServiceError: If the query cannot be embedded.
            VectorStoreError: If the search fails.
        """
        k = top_k if top_k is not None else self.top_k
        qvec = self.embedder.embed_query(query)
        hits = self.store.search(self.collection, qvec, k, self.score_threshold)
        results = [to_result(h) for h in hits]
        # the store already orders hits; keep the contract explicit for other adapters
        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug(
            "Retrieved %d results (top=%.3f) for query of %d chars",
            len(results), results[0].score if results else 0.0, len(query),
        )
        return results
