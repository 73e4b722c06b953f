"""News ingestion job.

Collects recent articles (RSS/Atom feed list, or a news sitemap read through a
reader service when no feeds are configured), then chunks, embeds and upserts
them into the vector collection via IngestionPipeline.

Usage:
    python -m newsrag.ingestion.ingest_news [--feeds URL,...] [--sitemap URL]
        [--limit N] [--collection NAME] [--log-level LEVEL]

Configuration defaults come from newsrag.config.settings (NEWS_RSS_LIST,
NEWS_SITEMAP, ARTICLE_LIMIT, VECTOR_COLLECTION, chunking and batching knobs).
Exit status: 0 on completion (individual document failures are reported, not
fatal), 2 on configuration errors, 1 on any other failure.
"""
import argparse
import logging
import sys
from typing import List, Optional, Sequence

import requests

from newsrag.config import RagConfig, Settings, settings
from newsrag.db import create_db_engine, init_db
from newsrag.embedding import build_embedding_client
from newsrag.errors import ConfigurationError, RagError
from newsrag.ingestion.pipeline import Document, IngestionPipeline, IngestionReport
from newsrag.ingestion.sources import collect_feed_documents, collect_sitemap_documents
from newsrag.vector_store import PgVectorStore

logger = logging.getLogger(__name__)


def _split_urls(value: Optional[str]) -> List[str]:
    return [u.strip() for u in (value or "").split(",") if u.strip()]


def collect_documents(
    feeds: Sequence[str],
    sitemap: str,
    limit: int,
    s: Settings,
) -> List[Document]:
    """Acquire documents from feeds if any are configured, else from the sitemap.

    Raises:
        ConfigurationError: If neither feeds nor a sitemap is configured.
    """
    if feeds:
        logger.info("Using RSS list: %s", ", ".join(feeds))
        return collect_feed_documents(feeds, limit=limit, timeout=s.FETCH_TIMEOUT_SECONDS)
    if sitemap:
        return collect_sitemap_documents(
            sitemap,
            limit=limit,
            reader_base=s.READER_BASE_URL,
            timeout=s.FETCH_TIMEOUT_SECONDS,
        )
    raise ConfigurationError("Set NEWS_RSS_LIST (or NEWS_SITEMAP) to choose what to ingest")


def run_ingestion(
    feeds: Sequence[str],
    sitemap: str,
    limit: int,
    collection: str,
    s: Settings,
) -> IngestionReport:
    """Build the clients, acquire documents and index them.

    Raises:
        ConfigurationError: On missing keys, sources or invalid tunables.
    """
    config = RagConfig.from_settings(s)
    embedder = build_embedding_client(s)
    if not feeds and not sitemap:
        raise ConfigurationError("Set NEWS_RSS_LIST (or NEWS_SITEMAP) to choose what to ingest")

    engine = create_db_engine(s.DATABASE_URL, statement_timeout_ms=s.DB_STATEMENT_TIMEOUT_MS)
    init_db(engine)
    pipeline = IngestionPipeline(embedder, PgVectorStore(engine), config, collection)

    docs = collect_documents(feeds, sitemap, limit, s)
    logger.info("Indexing %d articles into %s", len(docs), collection)
    return pipeline.run(docs)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Ingest recent news articles into the vector store.")
    parser.add_argument("--feeds", default=None, help="Comma-separated RSS/Atom URLs (default: NEWS_RSS_LIST)")
    parser.add_argument("--sitemap", default=None, help="News sitemap index URL (default: NEWS_SITEMAP)")
    parser.add_argument("--limit", type=int, default=None, help="Max articles (default: ARTICLE_LIMIT)")
    parser.add_argument("--collection", default=None, help="Target collection (default: VECTOR_COLLECTION)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    feeds = _split_urls(args.feeds) if args.feeds is not None else settings.rss_feeds
    sitemap = args.sitemap if args.sitemap is not None else settings.NEWS_SITEMAP
    limit = args.limit if args.limit is not None else settings.ARTICLE_LIMIT
    collection = args.collection or settings.VECTOR_COLLECTION

    try:
        report = run_ingestion(feeds, sitemap, limit, collection, settings)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2
    except (RagError, requests.RequestException, ValueError):
        logger.exception("Ingestion failed")
        return 1

    for url, err in report.failures:
        logger.warning("Failed: %s (%s)", url, err)
    logger.info(
        "Done: documents=%d indexed=%d failed=%d points=%d",
        report.documents_seen, report.documents_indexed, report.documents_failed, report.points_upserted,
    )
    print(f"[INGEST-NEWS] {collection} -> {report.points_upserted} points from {report.documents_indexed} articles")
    return 0


if __name__ == "__main__":
    sys.exit(main())
