"""Auto-discovery of feed sources from a curated per-category catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

from core import SourceHealth, SourceHealthStatus, SourceType
from .health import probe_feed

logger = logging.getLogger(__name__)

MIN_SOURCES_PER_CATEGORY = 20
MAX_SOURCES_PER_CATEGORY = 30

FEED_CATALOG: Dict[str, List[str]] = {
    "world_news": [
        "https://feeds.bbci.co.uk/news/world/rss.xml",
        "https://rss.nytimes.com/services/xml/rss/nyt/World.xml",
        "https://www.theguardian.com/world/rss",
        "https://www.aljazeera.com/xml/rss/all.xml",
    ],
    "russia_news": [
        "https://lenta.ru/rss",
        "https://meduza.io/rss/all",
        "https://www.rbc.ru/rss/main",
        "https://tass.ru/rss/v2.xml",
    ],
    "gaming": [
        "https://www.ign.com/rss/articles",
        "https://kotaku.com/rss",
        "https://www.gamespot.com/feeds/mashup/",
        "https://www.polygon.com/rss/index.xml",
    ],
    "interesting": [
        "https://www.reddit.com/r/todayilearned/.rss",
        "https://www.atlasobscura.com/feeds/latest",
    ],
    "facts_research": [
        "https://www.sciencedaily.com/rss/all.xml",
        "https://www.nature.com/nature.rss",
        "https://www.newscientist.com/feed/home",
    ],
    "movies": [
        "https://www.hollywoodreporter.com/feed/",
        "https://variety.com/feed/",
        "https://www.slashfilm.com/feed/",
    ],
    "music": [
        "https://pitchfork.com/rss/news/",
        "https://www.billboard.com/feed/",
    ],
    "medicine": [
        "https://www.medicalnewstoday.com/rss",
        "https://www.health.harvard.edu/blog/feed",
    ],
}


@dataclass
class DiscoveryResult:
    category_id: str
    discovered: int = 0
    added: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def source_name_from_url(url: str) -> str:
    host = urlparse(url).hostname or ""
    host = host[4:] if host.startswith("www.") else host
    head = host.split(".")[0] if host else ""
    return head.capitalize() if head else "Unknown"


async def discover_for_category(repo, category_id: str, *, catalog: Optional[Dict[str, List[str]]] = None) -> DiscoveryResult:
    """Add healthy catalog feeds the category does not have yet, up to the category cap."""
    result = DiscoveryResult(category_id=category_id)
    existing = repo.list_sources(category_id=category_id)
    known_urls = {src.url for src in existing if src.url}
    enabled = sum(1 for src in existing if src.is_enabled)
    if enabled >= MAX_SOURCES_PER_CATEGORY:
        logger.info("discovery_skipped category=%s enabled=%s", category_id, enabled)
        return result

    for url in (catalog or FEED_CATALOG).get(category_id, []):
        if enabled + result.added >= MAX_SOURCES_PER_CATEGORY:
            break
        if url in known_urls:
            result.skipped += 1
            continue
        result.discovered += 1
        probe = await probe_feed(url)
        if not probe.healthy:
            result.errors.append(f"{url}: {probe.error or 'feed not healthy'}")
            continue
        repo.create_source(
            type=SourceType.RSS,
            name=f"{source_name_from_url(url)} (Auto)",
            category_id=category_id,
            url=url,
            priority=3,
            health=SourceHealth(status=SourceHealthStatus.OK, item_count=probe.item_count),
        )
        result.added += 1

    logger.info(
        "discovery_done category=%s discovered=%s added=%s skipped=%s",
        category_id,
        result.discovered,
        result.added,
        result.skipped,
    )
    return result


async def discover_all(repo, *, catalog: Optional[Dict[str, List[str]]] = None) -> List[DiscoveryResult]:
    """Run discovery for every catalog category below the minimum source count."""
    results: List[DiscoveryResult] = []
    for category_id in (catalog or FEED_CATALOG):
        enabled = len(repo.list_sources(enabled_only=True, category_id=category_id))
        if enabled < MIN_SOURCES_PER_CATEGORY:
            results.append(await discover_for_category(repo, category_id, catalog=catalog))
    return results
