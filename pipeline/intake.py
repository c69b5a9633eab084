"""Topic intake: concurrent feed fetch, then one sequential quota/dedup/persist pass."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from config import IngestionSettings, SimilaritySettings, get_ingestion_settings, get_similarity_settings
from core import ExtractionStatus, FeedItem, FeedSource, SourceType, TopicStatus
from sources.connectors import fetch_feed, strip_html
from .similarity import check_topic_similarity
from .tags import extract_tags
from .throttle import IngestionThrottle

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int], None]
FeedFetcher = Callable[..., Awaitable[List[FeedItem]]]

SCORE_RANGE = (70, 99)
_FEED_TYPES = {SourceType.RSS, SourceType.ATOM}
_MANUAL_TYPES = {SourceType.MANUAL, SourceType.URL}


@dataclass
class IntakeReport:
    added: int = 0
    duplicates: int = 0
    thin: int = 0
    images_backfilled: int = 0
    quota_exhausted: bool = False
    failed_sources: List[str] = field(default_factory=list)
    topic_ids: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "added": self.added,
            "duplicates": self.duplicates,
            "thin": self.thin,
            "images_backfilled": self.images_backfilled,
            "quota_exhausted": self.quota_exhausted,
            "failed_sources": list(self.failed_sources),
        }


def is_thin(title: str, *, min_chars: int = 30, min_words: int = 4) -> bool:
    """Short AND few-worded titles carry too little to script from."""
    text = str(title or "").strip()
    words = [word for word in text.split() if len(word) > 1]
    return len(text) < min_chars and len(words) < min_words


class TopicIntakePipeline:
    """Turns feed items into persisted candidate topics."""

    def __init__(
        self,
        repo,
        throttle: IngestionThrottle,
        *,
        fetcher: Optional[FeedFetcher] = None,
        settings: Optional[IngestionSettings] = None,
        similarity: Optional[SimilaritySettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._repo = repo
        self._throttle = throttle
        self._fetcher = fetcher or fetch_feed
        self._settings = settings or get_ingestion_settings()
        self._similarity = similarity or get_similarity_settings()
        self._rng = rng or random.Random()

    async def run(self, progress: Optional[ProgressFn] = None) -> IntakeReport:
        report_progress = progress or (lambda _pct: None)
        report = IntakeReport()
        report_progress(5)

        quota = self._throttle.can_admit_more()
        if not quota.allowed:
            report.quota_exhausted = True
            logger.info(
                "intake_skipped reason=quota remaining_daily=%s remaining_hourly=%s",
                quota.remaining_daily,
                quota.remaining_hourly,
            )
            return report
        cap = min(quota.remaining_daily, quota.remaining_hourly, self._settings.per_run_cap)

        sources = self._repo.list_sources(enabled_only=True)
        if not sources:
            logger.info("intake_skipped reason=no_enabled_sources")
            return report

        report_progress(10)
        feeds = [src for src in sources if src.type in _FEED_TYPES and src.url]
        batches = await self._fetch_all(feeds, report)
        report_progress(50)

        candidates: List[Tuple[FeedItem, FeedSource]] = [(item, src) for src, items in batches for item in items]
        self._rng.shuffle(candidates)

        total = max(1, len(candidates))
        for index, (item, source) in enumerate(candidates, start=1):
            if report.added >= cap:
                break
            keep_going = self._admit(
                title=strip_html(item.title),
                body=strip_html(item.description)[: self._settings.description_max_chars],
                source=source,
                report=report,
                url=item.link or None,
                image_url=item.image_url,
                published_at=item.published_at,
            )
            if not keep_going:
                break
            if index % 5 == 0:
                report_progress(50 + int(40 * index / total))

        for source in sources:
            if source.type not in _MANUAL_TYPES or report.added >= cap or report.quota_exhausted:
                continue
            keep_going = self._admit(
                title=source.name,
                body=source.description or f"Content from {source.name}",
                source=source,
                report=report,
                url=source.url,
                check_thin=False,
            )
            if not keep_going:
                break

        logger.info(
            "intake_done added=%s duplicates=%s thin=%s failed_sources=%s quota_exhausted=%s",
            report.added,
            report.duplicates,
            report.thin,
            len(report.failed_sources),
            report.quota_exhausted,
        )
        return report

    async def _fetch_all(
        self, feeds: Sequence[FeedSource], report: IntakeReport
    ) -> List[Tuple[FeedSource, List[FeedItem]]]:
        semaphore = asyncio.Semaphore(max(1, self._settings.fetch_concurrency))

        async def _one(source: FeedSource) -> List[FeedItem]:
            async with semaphore:
                return await self._fetcher(
                    source.url,
                    max_items=self._settings.max_items_per_feed,
                    timeout=self._settings.fetch_timeout,
                )

        results = await asyncio.gather(*(_one(src) for src in feeds), return_exceptions=True)
        batches: List[Tuple[FeedSource, List[FeedItem]]] = []
        for source, result in zip(feeds, results):
            if isinstance(result, BaseException):
                report.failed_sources.append(source.id)
                logger.warning("feed_fetch_failed source_id=%s url=%s error=%s", source.id, source.url, result)
                continue
            logger.debug("feed_fetched source_id=%s items=%s", source.id, len(result))
            batches.append((source, list(result)[: self._settings.max_items_per_feed]))
        return batches

    def _admit(
        self,
        *,
        title: str,
        body: str,
        source: FeedSource,
        report: IntakeReport,
        url: Optional[str] = None,
        image_url: Optional[str] = None,
        published_at=None,
        check_thin: bool = True,
    ) -> bool:
        """Run one candidate through thin/quota/dedup gates. Returns False to stop the pass."""
        if check_thin and is_thin(
            title, min_chars=self._settings.min_title_chars, min_words=self._settings.min_title_words
        ):
            report.thin += 1
            return True

        if not self._throttle.can_admit_more().allowed:
            report.quota_exhausted = True
            return False

        dup = check_topic_similarity(
            self._repo,
            title,
            body,
            window_days=self._settings.dedup_window_days,
            settings=self._similarity,
        )
        if not dup.passed:
            report.duplicates += 1
            if image_url and dup.similar_id:
                existing = self._repo.get_topic(dup.similar_id)
                if existing is not None and not existing.image_url:
                    self._repo.update_topic(dup.similar_id, image_url=image_url)
                    report.images_backfilled += 1
            logger.debug("topic_duplicate similar_id=%s similarity=%s", dup.similar_id, dup.highest_similarity)
            return True

        language = source.resolved_language()
        topic = self._repo.create_topic(
            source_id=source.id,
            title=title,
            raw_text=body or None,
            url=url,
            image_url=image_url,
            tags=extract_tags(title, body, language),
            score=self._rng.randint(*SCORE_RANGE),
            language=language,
            status=TopicStatus.NEW,
            extraction_status=ExtractionStatus.PENDING,
            published_at=published_at,
        )
        self._throttle.record_admitted(1)
        report.added += 1
        report.topic_ids.append(topic.id)
        return True
