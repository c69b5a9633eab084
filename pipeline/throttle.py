"""Day/hour quota counters gating how many topics one fetch may admit."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo

from config import IngestionSettings, get_ingestion_settings
from core import IngestionQuotaState, QuotaCheck

logger = logging.getLogger(__name__)

QUOTA_SETTING_KEY = "topic_ingestion_stats"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionThrottle:
    """Calendar-date and hour-of-day buckets persisted as one settings record.

    Reading the state applies the roll-over rule: a different hour resets the
    hourly count, a different date resets both counts.
    """

    def __init__(
        self,
        repo,
        *,
        settings: Optional[IngestionSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repo = repo
        self._settings = settings or get_ingestion_settings()
        self._clock = clock or _utcnow
        try:
            self._tz = ZoneInfo(self._settings.quota_timezone)
        except Exception:
            logger.warning("quota_timezone_invalid tz=%s fallback=UTC", self._settings.quota_timezone)
            self._tz = ZoneInfo("UTC")

    @property
    def daily_limit(self) -> int:
        return self._settings.daily_limit

    @property
    def hourly_limit(self) -> int:
        return self._settings.hourly_limit

    def current_state(self) -> IngestionQuotaState:
        local = self._clock().astimezone(self._tz)
        date_key = local.date().isoformat()
        stored = self._load()

        if stored is None or stored.date != date_key:
            return IngestionQuotaState(
                date=date_key,
                hour=local.hour,
                last_fetch_at=stored.last_fetch_at if stored else None,
            )
        if stored.hour != local.hour:
            return stored.model_copy(update={"hour": local.hour, "hourly_count": 0})
        return stored

    def can_admit_more(self) -> QuotaCheck:
        state = self.current_state()
        remaining_daily = max(0, self.daily_limit - state.daily_count)
        remaining_hourly = max(0, self.hourly_limit - state.hourly_count)
        logger.debug(
            "quota_check daily=%s/%s hourly=%s/%s",
            state.daily_count,
            self.daily_limit,
            state.hourly_count,
            self.hourly_limit,
        )
        return QuotaCheck(
            allowed=remaining_daily > 0 and remaining_hourly > 0,
            remaining_daily=remaining_daily,
            remaining_hourly=remaining_hourly,
        )

    def record_admitted(self, n: int = 1) -> IngestionQuotaState:
        """Add ``n`` admitted topics to both buckets and stamp the fetch time."""
        count = max(0, int(n))
        state = self.current_state()
        updated = state.model_copy(
            update={
                "daily_count": state.daily_count + count,
                "hourly_count": state.hourly_count + count,
                "last_fetch_at": self._clock(),
            }
        )
        self._repo.set_setting(QUOTA_SETTING_KEY, updated.model_dump(mode="json"))
        return updated

    def status(self) -> Dict[str, Any]:
        state = self.current_state()
        check = self.can_admit_more()
        return {
            "stats": state.model_dump(mode="json"),
            "limits": {"daily": self.daily_limit, "hourly": self.hourly_limit},
            "remaining": {"daily": check.remaining_daily, "hourly": check.remaining_hourly},
            "allowed": check.allowed,
        }

    def _load(self) -> Optional[IngestionQuotaState]:
        raw = self._repo.get_setting(QUOTA_SETTING_KEY)
        if not raw:
            return None
        try:
            return IngestionQuotaState.model_validate(raw)
        except ValueError:
            logger.warning("quota_state_unreadable value=%r", raw)
            return None
