"""Ingestion package for the offline indexing job.

Contains document sources (RSS/Atom feeds, news sitemaps + reader service),
the chunk/embed/upsert pipeline, and the ingest_news CLI that ties them
together.
"""
