"""
Unit tests for feed, sitemap and reader document sources.

HTTP is replaced with MagicMock responses via monkeypatching requests.get.
Dependencies: pytest, requests, beautifulsoup4, newsrag.ingestion.sources
System role: Document acquisition validation
"""

from unittest.mock import MagicMock

import pytest
import requests

from newsrag.ingestion import sources
from newsrag.ingestion.sources import (
    collect_feed_documents,
    fetch_reader_document,
    fetch_sitemap_urls,
    parse_feed,
)

BODY = "Markets moved sharply today as investors weighed new data. " * 5

RSS = f"""<?xml version="1.0"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <item>
      <title>Rates hold steady</title>
      <link>https://news.example/rates</link>
      <description>short teaser</description>
      <content:encoded><![CDATA[<p>{BODY}</p>]]></content:encoded>
    </item>
    <item>
      <title>Too short</title>
      <link>https://news.example/short</link>
      <description>tiny</description>
    </item>
    <item>
      <link>https://news.example/untitled</link>
      <description><![CDATA[<div>{BODY}</div>]]></description>
    </item>
  </channel>
</rss>"""

ATOM = f"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <title>Election update</title>
    <link rel="self" href="https://news.example/api/1"/>
    <link rel="alternate" href="https://news.example/election"/>
    <summary>{BODY}</summary>
  </entry>
</feed>"""


def _response(text: str = "", status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.text = text
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    return resp


class TestParseFeed:
    """Test suite for parse_feed."""

    def test_rss_items_prefer_full_content_and_drop_short_items(self):
        docs = parse_feed(RSS)

        assert [d.url for d in docs] == ["https://news.example/rates", "https://news.example/untitled"]
        assert docs[0].title == "Rates hold steady"
        assert docs[0].text.startswith("Markets moved sharply")
        assert "<p>" not in docs[0].text

    def test_missing_title_becomes_untitled(self):
        assert parse_feed(RSS)[1].title == "Untitled"

    def test_atom_entry_uses_alternate_link(self):
        docs = parse_feed(ATOM)
        assert len(docs) == 1
        assert docs[0].url == "https://news.example/election"
        assert docs[0].title == "Election update"

    def test_feed_links_are_normalized_like_reader_urls(self, monkeypatch):
        rss = RSS.replace("https://news.example/rates<", "https://news.example/rates/#top<")
        feed_doc = parse_feed(rss)[0]

        monkeypatch.setattr(
            sources.requests, "get", lambda url, **kw: _response("# Rates hold steady\n\n" + BODY)
        )
        reader_doc = fetch_reader_document("https://news.example/rates/")

        assert feed_doc.url == "https://news.example/rates"
        assert reader_doc.url == feed_doc.url

    def test_not_a_feed(self):
        assert parse_feed("<html><body>nope</body></html>") == []


class TestCollectFeedDocuments:
    """Test suite for feed fetching and limits."""

    def test_failed_feed_is_skipped(self, monkeypatch):
        def fake_get(url, headers=None, timeout=None):
            if "broken" in url:
                raise requests.ConnectionError("down")
            return _response(RSS)

        monkeypatch.setattr(sources.requests, "get", fake_get)
        docs = collect_feed_documents(["https://broken/rss", "https://ok/rss"], limit=10)
        assert len(docs) == 2

    def test_limit_stops_across_feeds(self, monkeypatch):
        get = MagicMock(return_value=_response(RSS))
        monkeypatch.setattr(sources.requests, "get", get)
        docs = collect_feed_documents(["https://a/rss", "https://b/rss", "https://c/rss"], limit=3)
        assert len(docs) == 3
        assert get.call_count == 2

    def test_requests_carry_user_agent_and_timeout(self, monkeypatch):
        get = MagicMock(return_value=_response(RSS))
        monkeypatch.setattr(sources.requests, "get", get)
        collect_feed_documents(["https://a/rss"], limit=1, timeout=7)
        assert get.call_args.kwargs["timeout"] == 7
        assert "User-Agent" in get.call_args.kwargs["headers"]


class TestSitemapAndReader:
    """Test suite for the sitemap + reader path."""

    def test_sitemap_index_resolves_first_child(self, monkeypatch):
        index = """<sitemapindex><sitemap><loc>https://n/child.xml</loc></sitemap>
                   <sitemap><loc>https://n/other.xml</loc></sitemap></sitemapindex>"""
        child = """<urlset><url><loc>https://n/a</loc></url><url><loc>https://n/b</loc></url>
                   <url><loc>https://n/c</loc></url></urlset>"""
        pages = {"https://n/index.xml": index, "https://n/child.xml": child}
        monkeypatch.setattr(sources.requests, "get", lambda url, **kw: _response(pages[url]))

        assert fetch_sitemap_urls("https://n/index.xml", limit=2) == ["https://n/a", "https://n/b"]

    def test_empty_sitemap_index_raises(self, monkeypatch):
        monkeypatch.setattr(sources.requests, "get", lambda url, **kw: _response("<sitemapindex/>"))
        with pytest.raises(ValueError, match="No sitemaps"):
            fetch_sitemap_urls("https://n/index.xml")

    def test_reader_document_title_from_heading(self, monkeypatch):
        md = "Title: x\n\n# Central bank surprises markets\n\n" + BODY
        get = MagicMock(return_value=_response(md))
        monkeypatch.setattr(sources.requests, "get", get)

        doc = fetch_reader_document("https://n/world/bank/", reader_base="https://r.jina.ai/")

        assert doc.title == "Central bank surprises markets"
        assert doc.url == "https://n/world/bank"
        assert get.call_args.args[0] == "https://r.jina.ai/https://n/world/bank/"

    def test_reader_document_title_from_url_path(self, monkeypatch):
        monkeypatch.setattr(sources.requests, "get", lambda url, **kw: _response(BODY))
        doc = fetch_reader_document("https://n/world/markets/story-1")
        assert doc.title == "markets / story-1"

    @pytest.mark.parametrize("text,status", [("x" * 50, 200), (BODY, 451)])
    def test_reader_rejects_short_or_failed_pages(self, monkeypatch, text, status):
        monkeypatch.setattr(sources.requests, "get", lambda url, **kw: _response(text, status))
        assert fetch_reader_document("https://n/a") is None
