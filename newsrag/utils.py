"""Utility helpers for ids, URL normalization, HTML stripping, and text chunking.

This module provides:
- stable_point_id: deterministic MD5 id for a (document url, chunk index) pair
- normalize_url: normalization to make URLs consistent for deduplication
- html_to_text: HTML fragment to collapsed plain text using BeautifulSoup
- truncate_text: per-document character cap applied before chunking
- chunk_text: fixed-size character windows with overlap and a chunk cap
- batched: split a sequence into consecutive fixed-size batches
"""
import hashlib
import re
from typing import Iterator, List, Sequence, Tuple, TypeVar

from bs4 import BeautifulSoup

from newsrag.errors import ConfigurationError

T = TypeVar("T")

_WS = re.compile(r"\s+")


def stable_point_id(url: str, index: int) -> str:
    """Compute the index point id for chunk ``index`` of the document at ``url``.

    The id is the MD5 hex digest of ``"<url>#<index>"``, so re-ingesting the same
    document with the same chunking parameters overwrites rather than duplicates.

    Args:
        url: Document URL (unique document key).
        index: 0-based chunk position within the document.

    Returns:
        str: 32-char lowercase hex digest.
    """
    return hashlib.md5(f"{url}#{index}".encode("utf-8")).hexdigest()


def normalize_url(u: str) -> str:
    """Normalize URLs by removing fragments and trailing slashes.

    Args:
        u: Raw URL.

    Returns:
        str: Normalized URL suitable for stable IDs and deduplication.
    """
    u = re.sub(r"#.*$", "", u.strip())
    if len(u) > 1 and u.endswith("/"):
        u = u[:-1]
    return u


def html_to_text(html: str) -> str:
    """Convert an HTML fragment into whitespace-collapsed plain text.

    Script/style content is dropped. Plain text input passes through with its
    whitespace collapsed.

    Args:
        html: Raw HTML (e.g. an RSS description or content:encoded body).

    Returns:
        str: Visible text.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(" ", strip=True)
    return _WS.sub(" ", text).strip()


def truncate_text(text: str, max_chars: int) -> str:
    """Cap ``text`` at ``max_chars`` characters (empty string for None/empty)."""
    if not text:
        return ""
    return text[:max_chars] if len(text) > max_chars else text


def chunk_spans(text_len: int, chunk_size: int, overlap: int, max_chunks: int) -> List[Tuple[int, int]]:
    """Compute ``(start, end)`` windows over a text of length ``text_len``.

    Window i+1 starts at ``end(i) - overlap``. Iteration stops once a window
    reaches the end of the text or ``max_chunks`` windows were produced.

    Raises:
        ConfigurationError: If ``overlap >= chunk_size`` or a parameter is out of range.
    """
    if chunk_size <= 0:
        raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise ConfigurationError(f"overlap must be in [0, {chunk_size}), got {overlap}")
    if max_chunks <= 0:
        raise ConfigurationError(f"max_chunks must be positive, got {max_chunks}")

    spans: List[Tuple[int, int]] = []
    start = 0
    while start < text_len and len(spans) < max_chunks:
        end = min(start + chunk_size, text_len)
        spans.append((start, end))
        if end == text_len:
            break
        start = end - overlap
    return spans


def chunk_text(text: str, chunk_size: int, overlap: int, max_chunks: int) -> List[str]:
    """Split text into fixed-size character chunks with overlap.

    Chunks are exact substrings (not stripped); the last chunk ends at
    ``len(text)`` unless the ``max_chunks`` cap cut the document short.

    Args:
        text: Input string to split.
        chunk_size: Chunk size in characters.
        overlap: Characters shared by consecutive chunks; must be < chunk_size.
        max_chunks: Maximum number of chunks to emit.

    Returns:
        List[str]: Ordered chunks; empty only for empty input.
    """
    if not text:
        # still validate so a bad configuration fails on the first document
        chunk_spans(0, chunk_size, overlap, max_chunks)
        return []
    return [text[s:e] for s, e in chunk_spans(len(text), chunk_size, overlap, max_chunks)]


def batched(items: Sequence[T], size: int) -> Iterator[Tuple[int, Sequence[T]]]:
    """Yield ``(offset, batch)`` pairs of consecutive slices of ``items``."""
    if size <= 0:
        raise ConfigurationError(f"batch size must be positive, got {size}")
    for i in range(0, len(items), size):
        yield i, items[i : i + size]
