"""Feed source health probing and auto-disable."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import httpx

from core import FeedSource, SourceHealth, SourceHealthStatus, SourceType
from .connectors import FEED_HEADERS, _parse_datetime

logger = logging.getLogger(__name__)

MAX_FAILURES_BEFORE_DISABLE = 12
PROBE_TIMEOUT = 10.0
_NETWORKABLE = {SourceType.RSS, SourceType.ATOM, SourceType.URL}

_ITEM_TAG = re.compile(r"<item[\s>]", re.IGNORECASE)
_ENTRY_TAG = re.compile(r"<entry[\s>]", re.IGNORECASE)
_DATE_TAG = re.compile(r"<(?:pubDate|updated)[^>]*>([^<]+)</", re.IGNORECASE)


@dataclass
class ProbeResult:
    healthy: bool
    http_code: Optional[int]
    latency_ms: int
    item_count: int
    error: Optional[str]
    freshness_hours: Optional[float]


async def _fetch_status_and_body(url: str, timeout: float = PROBE_TIMEOUT) -> Tuple[int, str]:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=FEED_HEADERS)
        return response.status_code, str(response.text or "")


def _freshness_hours(body: str, now: datetime) -> Optional[float]:
    match = _DATE_TAG.search(body)
    if not match:
        return None
    published = _parse_datetime(match.group(1))
    if published is None:
        return None
    return round((now - published).total_seconds() / 3600.0, 1)


async def probe_feed(url: str, *, now: Optional[datetime] = None) -> ProbeResult:
    """Fetch a feed once and count its items."""
    started = time.monotonic()
    try:
        code, body = await _fetch_status_and_body(url)
    except httpx.TimeoutException:
        return ProbeResult(False, None, int((time.monotonic() - started) * 1000), 0, "Timeout", None)
    except httpx.HTTPError as exc:
        return ProbeResult(False, None, int((time.monotonic() - started) * 1000), 0, str(exc) or "Connection failed", None)

    latency_ms = int((time.monotonic() - started) * 1000)
    if code >= 400:
        return ProbeResult(False, code, latency_ms, 0, f"HTTP {code}", None)

    item_count = max(len(_ITEM_TAG.findall(body)), len(_ENTRY_TAG.findall(body)))
    if item_count == 0:
        return ProbeResult(False, code, latency_ms, 0, "No feed items found", None)

    freshness = _freshness_hours(body, now or datetime.now(timezone.utc))
    return ProbeResult(True, code, latency_ms, item_count, None, freshness)


def next_health(result: ProbeResult, current: SourceHealth, now: datetime) -> SourceHealth:
    if not result.healthy:
        failures = current.failures_count + 1
        if failures >= 6:
            status = SourceHealthStatus.DEAD
        elif failures >= 2:
            status = SourceHealthStatus.WARNING
        else:
            status = SourceHealthStatus.PENDING
        return current.model_copy(
            update={
                "status": status,
                "http_code": result.http_code,
                "failures_count": failures,
                "last_error": result.error,
            }
        )

    status = SourceHealthStatus.OK
    if (result.freshness_hours is not None and result.freshness_hours > 72) or result.latency_ms > 5000:
        status = SourceHealthStatus.WARNING
    avg = result.latency_ms if current.avg_latency_ms is None else (current.avg_latency_ms + result.latency_ms) // 2
    return SourceHealth(
        status=status,
        http_code=result.http_code,
        avg_latency_ms=avg,
        last_success_at=now,
        failures_count=0,
        freshness_hours=result.freshness_hours if result.freshness_hours is not None else current.freshness_hours,
        last_error=None,
        item_count=result.item_count,
    )


async def check_source(repo, source_id: str) -> Optional[FeedSource]:
    """Probe one source, store its new health, disable it after repeated failures.

    Returns None when the source does not exist.
    """
    source = repo.get_source(source_id)
    if source is None:
        return None
    now = repo.now()

    if source.type not in _NETWORKABLE:
        if source.health.status == SourceHealthStatus.PENDING:
            health = source.health.model_copy(update={"status": SourceHealthStatus.OK})
            return repo.update_source(source_id, health=health, last_check_at=now)
        return source

    if not source.url:
        result = ProbeResult(False, None, 0, 0, "No URL configured", None)
    else:
        result = await probe_feed(source.url, now=now)

    health = next_health(result, source.health, now)
    fields = {"health": health, "last_check_at": now}
    if health.failures_count >= MAX_FAILURES_BEFORE_DISABLE and source.is_enabled:
        fields["is_enabled"] = False
        logger.warning("source_disabled source_id=%s name=%s failures=%s", source.id, source.name, health.failures_count)
    updated = repo.update_source(source_id, **fields)
    logger.info("health_checked source_id=%s status=%s items=%s", source_id, health.status.value, health.item_count)
    return updated


async def check_all_sources(repo, *, category_id: Optional[str] = None) -> Dict[str, int]:
    summary = {"checked": 0, "ok": 0, "warning": 0, "dead": 0, "pending": 0}
    for source in repo.list_sources(enabled_only=True, category_id=category_id):
        updated = await check_source(repo, source.id)
        if updated is None:
            continue
        summary["checked"] += 1
        summary[updated.health.status.value] += 1
    return summary
