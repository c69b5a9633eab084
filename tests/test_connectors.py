from __future__ import annotations

import httpx
import pytest

from sources import connectors
from utils.exceptions import FeedFetchError

RSS_XML = """
<rss xmlns:media="http://search.yahoo.com/mrss/"><channel>
  <item>
    <title>Harbour cranes stop for the storm</title>
    <link>https://example.com/harbour</link>
    <description><![CDATA[<p>Cranes were <b>locked</b> overnight. <img src="https://example.com/crane.jpg"/></p>]]></description>
    <pubDate>Tue, 10 Mar 2026 08:00:00 GMT</pubDate>
  </item>
  <item>
    <title>Ferry timetable changes next week</title>
    <link>https://example.com/ferry</link>
    <media:thumbnail url="https://example.com/ferry.png"/>
  </item>
  <item><title></title></item>
</channel></rss>
""".strip()

ATOM_XML = """
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <title>Observatory spots a new comet</title>
    <link rel="alternate" href="https://example.com/comet"/>
    <summary>Visible before dawn.</summary>
    <updated>2026-03-09T22:00:00Z</updated>
  </entry>
</feed>
""".strip()


def test_parse_rss_items() -> None:
    items = connectors.parse_feed(RSS_XML)
    assert [item.title for item in items] == ["Harbour cranes stop for the storm", "Ferry timetable changes next week"]
    first, second = items
    assert first.link == "https://example.com/harbour"
    assert first.description == "Cranes were locked overnight."
    assert first.image_url == "https://example.com/crane.jpg"
    assert first.published_at.isoformat() == "2026-03-10T08:00:00+00:00"
    assert second.image_url == "https://example.com/ferry.png"


def test_parse_atom_entries() -> None:
    items = connectors.parse_feed(ATOM_XML)
    assert len(items) == 1
    assert items[0].link == "https://example.com/comet"
    assert items[0].description == "Visible before dawn."
    assert items[0].published_at.hour == 22


def test_strip_html_removes_tags_urls_and_entities() -> None:
    assert connectors.strip_html("<p>Fish &amp; chips</p> see https://x.io/a <script>x()</script>") == "Fish & chips see"


@pytest.mark.asyncio
async def test_fetch_feed_uses_http_helper(monkeypatch) -> None:
    async def _fake_get_text(url: str, *, headers=None, timeout: float = 12.0) -> str:
        assert url == "https://example.com/feed.xml"
        assert "rss" in headers["Accept"]
        return RSS_XML

    monkeypatch.setattr(connectors, "_http_get_text", _fake_get_text)
    items = await connectors.fetch_feed("https://example.com/feed.xml", max_items=1)
    assert len(items) == 1


@pytest.mark.asyncio
async def test_fetch_feed_wraps_bad_xml_and_http_errors(monkeypatch) -> None:
    async def _not_xml(url: str, **kwargs) -> str:
        return "<html><body>maintenance"

    monkeypatch.setattr(connectors, "_http_get_text", _not_xml)
    with pytest.raises(FeedFetchError) as excinfo:
        await connectors.fetch_feed("https://example.com/feed.xml")
    assert excinfo.value.source == "https://example.com/feed.xml"

    async def _down(url: str, **kwargs) -> str:
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(connectors, "_http_get_text", _down)
    with pytest.raises(FeedFetchError):
        await connectors.fetch_feed("https://example.com/feed.xml")


@pytest.mark.asyncio
async def test_fetch_article_text_keeps_paragraphs(monkeypatch) -> None:
    html = """
    <html><body>
      <nav><p>Navigation links that are long enough to count as a paragraph here</p></nav>
      <article>
        <p>The harbour authority locked every crane before the storm reached the coast.</p>
        <p>Short.</p>
      </article>
    </body></html>
    """

    async def _fake_get_text(url: str, **kwargs) -> str:
        return html

    monkeypatch.setattr(connectors, "_http_get_text", _fake_get_text)
    text = await connectors.fetch_article_text("https://example.com/harbour")
    assert text == "The harbour authority locked every crane before the storm reached the coast."
