from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from core import SourceHealth, SourceHealthStatus, SourceType
from sources import discovery, health
from sources.health import MAX_FAILURES_BEFORE_DISABLE, ProbeResult

FEED_BODY = "<rss><channel><item><title>a</title><pubDate>Tue, 10 Mar 2026 08:00:00 GMT</pubDate></item><item><title>b</title></item></channel></rss>"
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_probe_counts_items_and_freshness(monkeypatch) -> None:
    async def _fake(url, timeout=10.0):
        return 200, FEED_BODY

    monkeypatch.setattr(health, "_fetch_status_and_body", _fake)
    result = await health.probe_feed("https://example.com/rss", now=NOW)
    assert result.healthy is True
    assert result.item_count == 2
    assert result.freshness_hours == 4.0


@pytest.mark.asyncio
async def test_probe_reports_http_and_network_errors(monkeypatch) -> None:
    async def _gone(url, timeout=10.0):
        return 404, "not found"

    monkeypatch.setattr(health, "_fetch_status_and_body", _gone)
    result = await health.probe_feed("https://example.com/rss")
    assert result.healthy is False
    assert result.error == "HTTP 404"

    async def _slow(url, timeout=10.0):
        raise httpx.ReadTimeout("timed out")

    monkeypatch.setattr(health, "_fetch_status_and_body", _slow)
    result = await health.probe_feed("https://example.com/rss")
    assert result.error == "Timeout"


def test_next_health_escalates_failures() -> None:
    failed = ProbeResult(False, 500, 10, 0, "HTTP 500", None)
    state = SourceHealth()
    statuses = []
    for _ in range(6):
        state = health.next_health(failed, state, NOW)
        statuses.append(state.status)
    assert statuses[0] == SourceHealthStatus.PENDING
    assert statuses[1] == SourceHealthStatus.WARNING
    assert statuses[5] == SourceHealthStatus.DEAD

    recovered = health.next_health(ProbeResult(True, 200, 100, 3, None, 1.0), state, NOW)
    assert recovered.status == SourceHealthStatus.OK
    assert recovered.failures_count == 0
    assert recovered.last_success_at == NOW


@pytest.mark.asyncio
async def test_check_source_disables_after_repeated_failures(repo, monkeypatch) -> None:
    async def _down(url, **kwargs):
        return ProbeResult(False, None, 5, 0, "Connection failed", None)

    monkeypatch.setattr(health, "probe_feed", _down)
    source = repo.create_source(
        name="Flaky",
        url="https://flaky.example.com/rss",
        health=SourceHealth(failures_count=MAX_FAILURES_BEFORE_DISABLE - 1),
    )

    updated = await health.check_source(repo, source.id)

    assert updated.is_enabled is False
    assert updated.health.status == SourceHealthStatus.DEAD
    assert await health.check_source(repo, "src_missing") is None


@pytest.mark.asyncio
async def test_manual_sources_are_marked_ok_without_probing(repo, monkeypatch) -> None:
    async def _never(url, **kwargs):
        raise AssertionError("manual sources are not probed")

    monkeypatch.setattr(health, "probe_feed", _never)
    source = repo.create_source(type=SourceType.MANUAL, name="Notes")
    summary = await health.check_all_sources(repo)
    assert summary["checked"] == 1
    assert summary["ok"] == 1
    assert repo.get_source(source.id).health.status == SourceHealthStatus.OK


@pytest.mark.asyncio
async def test_discovery_adds_healthy_unknown_feeds(repo, monkeypatch) -> None:
    catalog = {"science": ["https://known.example.com/rss", "https://www.fresh.example.com/rss", "https://dead.example.com/rss"]}
    repo.create_source(name="Known", url="https://known.example.com/rss", category_id="science")

    async def _probe(url, **kwargs):
        if "dead" in url:
            return ProbeResult(False, 500, 5, 0, "HTTP 500", None)
        return ProbeResult(True, 200, 5, 7, None, 2.0)

    monkeypatch.setattr(discovery, "probe_feed", _probe)
    result = await discovery.discover_for_category(repo, "science", catalog=catalog)

    assert result.added == 1
    assert result.skipped == 1
    assert result.errors == ["https://dead.example.com/rss: HTTP 500"]
    added = [src for src in repo.list_sources(category_id="science") if src.name.endswith("(Auto)")]
    assert added[0].name == "Fresh (Auto)"
    assert added[0].health.item_count == 7
