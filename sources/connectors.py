"""Feed and article connectors used by topic intake and extraction."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
import html as html_lib
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

import httpx
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core import FeedItem
from utils.exceptions import FeedFetchError

logger = logging.getLogger(__name__)

USER_AGENT = "TopicFactory-Bot/1.0"
FEED_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/rss+xml, application/xml, text/xml, application/atom+xml",
}

_IMAGE_EXT = re.compile(r"\.(?:jpg|jpeg|png|gif|webp)(?:$|[?#])", re.IGNORECASE)
_IMG_SRC = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
_URL = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)


def _parse_datetime(value: Any) -> Optional[datetime]:
    text = str(value or "").strip()
    if not text:
        return None

    normalized = text.replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except ValueError:
        pass

    try:
        dt2 = parsedate_to_datetime(text)
        if dt2.tzinfo is None:
            dt2 = dt2.replace(tzinfo=timezone.utc)
        return dt2.astimezone(timezone.utc)
    except (TypeError, ValueError):
        return None


def _safe_truncate(text: str, max_len: int = 9000) -> str:
    value = str(text or "")
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    value = re.sub(r"[ \t\f\v]+", " ", value)
    value = re.sub(r"\n{3,}", "\n\n", value).strip()
    if len(value) <= max_len:
        return value
    return value[: max_len - 3].rstrip() + "..."


def strip_html(value: str) -> str:
    """Drop tags, scripts, URLs and entities; collapse whitespace."""
    text = str(value or "")
    text = re.sub(r"<script[^>]*>.*?</script>", " ", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<style[^>]*>.*?</style>", " ", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html_lib.unescape(text)
    text = _URL.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
async def _http_get_text(url: str, *, headers: Optional[Dict[str, str]] = None, timeout: float = 12.0) -> str:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        return str(response.text or "")


def _local(tag: Any) -> str:
    text = str(tag or "")
    return text.rsplit("}", 1)[-1] if "}" in text else text.rsplit(":", 1)[-1]


def _child(node: ET.Element, name: str) -> Optional[ET.Element]:
    for child in node:
        if _local(child.tag) == name:
            return child
    return None


def _child_text(node: ET.Element, name: str) -> str:
    child = _child(node, name)
    if child is None:
        return ""
    return "".join(child.itertext()).strip()


def _atom_link(node: ET.Element) -> str:
    fallback = ""
    for child in node:
        if _local(child.tag) != "link":
            continue
        href = str(child.attrib.get("href") or "").strip()
        if not href:
            continue
        if child.attrib.get("rel", "alternate") == "alternate":
            return href
        fallback = fallback or href
    return fallback


def _extract_image(node: ET.Element) -> Optional[str]:
    for child in node.iter():
        name = _local(child.tag)
        url = str(child.attrib.get("url") or "").strip()
        if not url:
            continue
        if name == "enclosure":
            ctype = str(child.attrib.get("type") or "")
            if ctype.startswith("image") or _IMAGE_EXT.search(url):
                return url
        elif name == "thumbnail":
            return url
        elif name == "content" and (child.attrib.get("medium") == "image" or _IMAGE_EXT.search(url)):
            return url

    for name in ("encoded", "description", "summary", "content"):
        markup = _child_text(node, name)
        for src in _IMG_SRC.findall(markup):
            if src.startswith("data:") or "pixel" in src or "1x1" in src or len(src) > 500:
                continue
            return html_lib.unescape(src)
    return None


def parse_feed(xml_text: str, *, max_items: int = 10) -> List[FeedItem]:
    """Parse RSS 2.0 items, or Atom entries when the document has no items."""
    root = ET.fromstring(str(xml_text or "").strip())
    nodes = [node for node in root.iter() if _local(node.tag) == "item"]
    atom = False
    if not nodes:
        nodes = [node for node in root.iter() if _local(node.tag) == "entry"]
        atom = True

    items: List[FeedItem] = []
    for node in nodes:
        title = strip_html(_child_text(node, "title"))
        if not title:
            continue
        link = _atom_link(node) if atom else _child_text(node, "link")
        description = (
            _child_text(node, "description")
            or _child_text(node, "summary")
            or _child_text(node, "encoded")
            or _child_text(node, "content")
        )
        published = (
            _child_text(node, "pubDate")
            or _child_text(node, "published")
            or _child_text(node, "updated")
            or _child_text(node, "date")
        )
        items.append(
            FeedItem(
                title=title,
                link=link,
                description=strip_html(description),
                image_url=_extract_image(node),
                published_at=_parse_datetime(published),
            )
        )
        if len(items) >= max(1, int(max_items)):
            break
    return items


async def fetch_feed(url: str, *, max_items: int = 10, timeout: float = 10.0) -> List[FeedItem]:
    """Download and parse one RSS/Atom feed."""
    try:
        xml_text = await _http_get_text(url, headers=FEED_HEADERS, timeout=timeout)
    except httpx.HTTPError as exc:
        raise FeedFetchError(f"feed download failed: {exc}", source=url) from exc
    try:
        return parse_feed(xml_text, max_items=max_items)
    except ET.ParseError as exc:
        raise FeedFetchError(f"feed is not valid XML: {exc}", source=url) from exc


def extract_article_text(html: str, *, max_len: int = 9000) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "header", "aside", "form"]):
        tag.decompose()
    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    text = "\n\n".join(p for p in paragraphs if len(p) > 40)
    if not text:
        text = soup.get_text(" ", strip=True)
    return _safe_truncate(text, max_len=max_len)


async def fetch_article_text(url: str, *, max_len: int = 9000) -> str:
    """Fetch a web page and return its readable paragraph text."""
    try:
        html = await _http_get_text(url, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as exc:
        raise FeedFetchError(f"article download failed: {exc}", source=url) from exc
    return extract_article_text(html, max_len=max_len)
