from __future__ import annotations

from datetime import datetime, timedelta, timezone

from config import IngestionSettings
from pipeline.throttle import QUOTA_SETTING_KEY, IngestionThrottle


class MovableClock:
    def __init__(self, value: datetime) -> None:
        self.value = value

    def __call__(self) -> datetime:
        return self.value


def _throttle(repo, clock, **overrides) -> IngestionThrottle:
    return IngestionThrottle(repo, settings=IngestionSettings(**overrides), clock=clock)


def test_fresh_state_allows_full_limits(repo) -> None:
    throttle = _throttle(repo, MovableClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)))
    check = throttle.can_admit_more()
    assert check.allowed is True
    assert check.remaining_daily == 300
    assert check.remaining_hourly == 35


def test_last_daily_slot_then_exhausted(repo) -> None:
    clock = MovableClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))
    repo.set_setting(QUOTA_SETTING_KEY, {"date": "2026-03-10", "hour": 12, "daily_count": 299, "hourly_count": 3})
    throttle = _throttle(repo, clock)

    before = throttle.can_admit_more()
    assert before.allowed is True
    assert before.remaining_daily == 1

    throttle.record_admitted(1)
    after = throttle.can_admit_more()
    assert after.allowed is False
    assert after.remaining_daily == 0
    assert after.remaining_hourly == 31


def test_hour_rollover_resets_hourly_bucket_only(repo) -> None:
    clock = MovableClock(datetime(2026, 3, 10, 12, 30, tzinfo=timezone.utc))
    throttle = _throttle(repo, clock)
    throttle.record_admitted(35)
    assert throttle.can_admit_more().allowed is False

    clock.value += timedelta(hours=1)
    check = throttle.can_admit_more()
    assert check.allowed is True
    assert check.remaining_hourly == 35
    assert check.remaining_daily == 265


def test_date_rollover_resets_both_buckets(repo) -> None:
    clock = MovableClock(datetime(2026, 3, 10, 23, 50, tzinfo=timezone.utc))
    throttle = _throttle(repo, clock)
    throttle.record_admitted(20)

    clock.value = datetime(2026, 3, 11, 0, 5, tzinfo=timezone.utc)
    state = throttle.current_state()
    assert state.date == "2026-03-11"
    assert state.daily_count == 0
    assert state.hourly_count == 0
    assert state.last_fetch_at is not None


def test_buckets_follow_configured_zone(repo) -> None:
    # 22:30 UTC is already the next calendar day in Moscow (UTC+3).
    clock = MovableClock(datetime(2026, 3, 10, 22, 30, tzinfo=timezone.utc))
    throttle = _throttle(repo, clock, quota_timezone="Europe/Moscow")
    state = throttle.record_admitted(2)
    assert state.date == "2026-03-11"
    assert state.hour == 1


def test_status_reports_limits_and_remaining(repo) -> None:
    throttle = _throttle(repo, MovableClock(datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)), daily_limit=10, hourly_limit=4)
    throttle.record_admitted(3)
    status = throttle.status()
    assert status["limits"] == {"daily": 10, "hourly": 4}
    assert status["remaining"] == {"daily": 7, "hourly": 1}
    assert status["allowed"] is True
    assert status["stats"]["daily_count"] == 3
