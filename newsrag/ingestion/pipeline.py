"""Ingestion pipeline: documents -> chunks -> batched embeddings -> batched upserts.

Per document:
1. Truncate text to RagConfig.max_doc_chars (logged, not failed).
2. Chunk with RagConfig.chunk_size / overlap / max_chunks.
3. Partition chunks into batches of RagConfig.batch_size.
4. For each batch: embed -> build IndexPoints with md5("<url>#<index>") ids -> upsert.

A failing batch aborts the rest of that document only; committed batches stay,
and the run continues with the next document. Re-running is the recovery path:
ids are deterministic, so upserts overwrite instead of duplicating.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from newsrag.config import RagConfig
from newsrag.embedding import EmbeddingClient
from newsrag.errors import EmbeddingServiceError, VectorStoreError
from newsrag.utils import batched, chunk_text, stable_point_id, truncate_text
from newsrag.vector_store import IndexPoint, PgVectorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    """An acquired document; ``url`` is its unique key."""
    url: str
    title: str
    text: str


@dataclass
class IngestionReport:
    """Outcome of one pipeline run."""
    documents_seen: int = 0
    documents_indexed: int = 0
    documents_failed: int = 0
    points_upserted: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)  # (url, error)


class IngestionPipeline:
    """Turns Documents into durably indexed points in one collection.

    Args:
        embedder: Embedding client (one call per batch).
        store: Vector store adapter.
        config: Chunking/batching tunables and the embedding dimension.
        collection: Target collection name.
        metric: Similarity metric used when the collection is created.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: PgVectorStore,
        config: RagConfig,
        collection: str,
        metric: str = "cosine",
    ):
        self.embedder = embedder
        self.store = store
        self.config = config
        self.collection = collection
        self.metric = metric

    def chunks_for(self, document: Document) -> List[str]:
        """Truncate and chunk a document's text."""
        cfg = self.config
        text = truncate_text(document.text, cfg.max_doc_chars)
        if len(document.text or "") > cfg.max_doc_chars:
            logger.info(
                "Truncated %s from %d to %d chars", document.url, len(document.text), cfg.max_doc_chars
            )
        return chunk_text(text, cfg.chunk_size, cfg.overlap, cfg.max_chunks)

    def ingest_document(self, document: Document) -> int:
        """Chunk, embed and upsert one document, batch by batch.

        Returns:
            int: Number of points upserted.

        Raises:
            EmbeddingServiceError / VectorStoreError: From the failing batch;
                batches upserted before it remain committed.
        """
        chunks = self.chunks_for(document)
        logger.info("Upserting %d chunks for %s", len(chunks), document.title or document.url)

        written = 0
        for offset, batch in batched(chunks, self.config.batch_size):
            vectors = self.embedder.embed(batch)
            points = [
                IndexPoint(
                    id=stable_point_id(document.url, offset + j),
                    vector=vec,
                    payload={"url": document.url, "title": document.title, "text": batch[j]},
                )
                for j, vec in enumerate(vectors[: len(batch)])
            ]
            written += self.store.upsert(self.collection, points)
        return written

    def run(self, documents: Iterable[Document]) -> IngestionReport:
        """Ensure the collection, then ingest every document best-effort.

        Raises:
            VectorStoreError: If the collection cannot be created.
        """
        self.store.ensure_collection(self.collection, self.config.embedding_dimension, self.metric)

        report = IngestionReport()
        for doc in documents:
            report.documents_seen += 1
            try:
                n = self.ingest_document(doc)
            except (EmbeddingServiceError, VectorStoreError) as e:
                report.documents_failed += 1
                report.failures.append((doc.url, str(e)))
                logger.warning("Upsert failed for %s: %s", doc.url, e)
                continue
            report.documents_indexed += 1
            report.points_upserted += n

        logger.info(
            "Indexed %d/%d documents (%d points, %d failed)",
            report.documents_indexed, report.documents_seen, report.points_upserted, report.documents_failed,
        )
        return report
