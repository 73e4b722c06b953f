"""Document acquisition from RSS/Atom feeds, news sitemaps, and a reader service.

Main functions:
- parse_feed: map RSS 2.0 <item> / Atom <entry> elements to Documents
- fetch_feed_documents: HTTP GET + parse one feed (failures -> [])
- collect_feed_documents: walk feeds in order until a document limit
- fetch_sitemap_urls: sitemap index -> first child sitemap -> page URLs
- fetch_reader_document: fetch a page as plain text through a reader service

Document URLs are normalized on every path so point ids agree across sources.
Items whose text is shorter than MIN_TEXT_CHARS are dropped. Every request
carries a timeout and a browser-like User-Agent; some publishers reject others.
"""
import logging
import re
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from newsrag.ingestion.pipeline import Document
from newsrag.utils import html_to_text, normalize_url

logger = logging.getLogger(__name__)

HEADERS = {"User-Agent": "Mozilla/5.0"}
MIN_TEXT_CHARS = 200
_MD_HEADING = re.compile(r"^\s*#\s+(.+)$", re.M)


def _text(el) -> str:
    return el.get_text(" ", strip=True) if el is not None else ""


def _item_link(item) -> str:
    """Link of an RSS item (<link>text</link>, else <guid>) or Atom entry (<link href>)."""
    links = item.find_all("link")
    for link in links:
        href = link.get("href")
        if href and link.get("rel", "alternate") == "alternate":
            return href.strip()
    for link in links:
        if link.get("href"):
            return link["href"].strip()
        if _text(link):
            return _text(link)
    return _text(item.find("guid")) or _text(item.find("id"))


def _item_body(item) -> str:
    # content:encoded often carries the full article; prefer it over the summary
    for name in ("content:encoded", "encoded", "content", "description", "summary"):
        el = item.find(name)
        if el is not None and el.get_text():
            return el.get_text()
    return ""


def parse_feed(xml: str) -> List[Document]:
    """Parse an RSS 2.0 or Atom document into Documents.

    Args:
        xml: Raw feed XML.

    Returns:
        List[Document]: Items with a link and at least MIN_TEXT_CHARS of text,
        in feed order. Missing titles become "Untitled".
    """
    soup = BeautifulSoup(xml, "xml")
    items = soup.find_all("item") or soup.find_all("entry")
    docs: List[Document] = []
    for item in items:
        url = normalize_url(_item_link(item))
        title = _text(item.find("title")) or "Untitled"
        text = html_to_text(_item_body(item))
        if url and text and len(text) >= MIN_TEXT_CHARS:
            docs.append(Document(url=url, title=title, text=text))
    return docs


def fetch_feed_documents(feed_url: str, timeout: float = 20.0) -> List[Document]:
    """Fetch and parse one feed; network/HTTP errors are logged and yield []."""
    try:
        resp = requests.get(feed_url, headers=HEADERS, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("RSS fetch failed: %s (%s)", feed_url, e)
        return []
    docs = parse_feed(resp.text)
    logger.info("Feed %s -> %d usable items", feed_url, len(docs))
    return docs


def collect_feed_documents(feed_urls: Sequence[str], limit: int = 50, timeout: float = 20.0) -> List[Document]:
    """Concatenate documents from feeds in order, stopping at ``limit``."""
    out: List[Document] = []
    for url in feed_urls:
        for doc in fetch_feed_documents(url, timeout=timeout):
            out.append(doc)
            if len(out) >= limit:
                return out
    return out


def fetch_sitemap_urls(sitemap_url: str, limit: int = 50, timeout: float = 20.0) -> List[str]:
    """Resolve a sitemap index to page URLs.

    Follows the first <sitemap><loc> of the index and returns up to ``limit``
    <url><loc> entries of that child sitemap.

    Raises:
        requests.RequestException: On HTTP failure.
        ValueError: If the index lists no sitemaps.
    """
    logger.info("Fetching sitemap index: %s", sitemap_url)
    resp = requests.get(sitemap_url, headers=HEADERS, timeout=timeout)
    resp.raise_for_status()
    index = BeautifulSoup(resp.text, "xml")
    sitemaps = [_text(s.find("loc")) for s in index.find_all("sitemap")]
    sitemaps = [s for s in sitemaps if s]
    if not sitemaps:
        raise ValueError(f"No sitemaps found in {sitemap_url}")

    child = sitemaps[0]
    logger.info("Using sitemap: %s", child)
    resp = requests.get(child, headers=HEADERS, timeout=timeout)
    resp.raise_for_status()
    urlset = BeautifulSoup(resp.text, "xml")
    urls = [_text(u.find("loc")) for u in urlset.find_all("url")]
    return [u for u in urls if u][:limit]


def _title_from_url(url: str) -> str:
    parts = [p for p in urlparse(url).path.split("/") if p]
    return " / ".join(parts[-2:]) or "Untitled"


def fetch_reader_document(
    url: str,
    reader_base: str = "https://r.jina.ai/",
    timeout: float = 25.0,
) -> Optional[Document]:
    """Fetch ``url`` through a reader service that returns markdown-ish text.

    The title comes from the first ``# heading``, else the last two URL path
    segments. Returns None when the fetch fails or the text is too short.
    """
    try:
        resp = requests.get(
            reader_base + url,
            headers={**HEADERS, "Accept": "text/plain"},
            timeout=timeout,
        )
        if resp.status_code >= 400:
            logger.warning("Reader fetch failed: %s (HTTP %d)", url, resp.status_code)
            return None
    except requests.RequestException as e:
        logger.warning("Reader fetch failed: %s (%s)", url, e)
        return None

    md = (resp.text or "").strip()
    if len(md) < MIN_TEXT_CHARS:
        logger.warning("Too short after reader: %s", url)
        return None
    m = _MD_HEADING.search(md)
    title = m.group(1).strip() if m else _title_from_url(url)
    return Document(url=normalize_url(url), title=title or "Untitled", text=md)


def collect_sitemap_documents(
    sitemap_url: str,
    limit: int = 50,
    reader_base: str = "https://r.jina.ai/",
    timeout: float = 25.0,
) -> List[Document]:
    """Sitemap fallback: list page URLs, then fetch each through the reader."""
    docs: List[Document] = []
    for url in fetch_sitemap_urls(sitemap_url, limit=limit, timeout=timeout):
        doc = fetch_reader_document(url, reader_base=reader_base, timeout=timeout)
        if doc is not None:
            docs.append(doc)
    return docs
