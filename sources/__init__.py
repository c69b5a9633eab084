"""Feed connectors, source health and discovery."""

from .connectors import fetch_article_text, fetch_feed, parse_feed, strip_html
from .discovery import discover_all, discover_for_category
from .health import check_all_sources, check_source, probe_feed

__all__ = [
    "check_all_sources",
    "check_source",
    "discover_all",
    "discover_for_category",
    "fetch_article_text",
    "fetch_feed",
    "parse_feed",
    "probe_feed",
    "strip_html",
]
