from __future__ import annotations

import random

import pytest

from config import IngestionSettings, SimilaritySettings
from core import ExtractionStatus, FeedItem, JobKind, JobStatus, SourceType, TopicStatus
from pipeline.intake import TopicIntakePipeline, is_thin
from pipeline.throttle import QUOTA_SETTING_KEY, IngestionThrottle
from utils.exceptions import FeedFetchError

from conftest import feed_items, make_fetcher

FEED_A = "https://a.example.com/rss"
FEED_B = "https://b.example.com/rss"


def _pipeline(repo, fetcher, **settings) -> TopicIntakePipeline:
    ingestion = IngestionSettings(**{"per_run_cap": 10, **settings})
    return TopicIntakePipeline(
        repo,
        IngestionThrottle(repo, settings=ingestion),
        fetcher=fetcher,
        settings=ingestion,
        similarity=SimilaritySettings(),
        rng=random.Random(7),
    )


def test_is_thin_requires_short_and_few_words() -> None:
    assert is_thin("Big news") is True
    assert is_thin("Mayor resigns after budget vote") is False
    assert is_thin("Supercalifragilisticexpialidocious-announcement") is False


@pytest.mark.asyncio
async def test_admits_feed_items_as_new_topics(repo) -> None:
    repo.create_source(name="A", url=FEED_A, description="Русские новости")
    fetcher = make_fetcher(
        {
            FEED_A: [
                FeedItem(
                    title="<b>Городской совет утвердил новый бюджет</b>",
                    link="https://a.example.com/1",
                    description="<p>Совет утвердил бюджет на транспорт http://x.io/y</p>",
                    image_url="https://a.example.com/1.jpg",
                )
            ]
        }
    )
    progress = []
    report = await _pipeline(repo, fetcher).run(progress.append)

    assert report.added == 1
    topic = repo.get_topic(report.topic_ids[0])
    assert topic.title == "Городской совет утвердил новый бюджет"
    assert topic.raw_text == "Совет утвердил бюджет на транспорт"
    assert topic.language == "ru"
    assert topic.status == TopicStatus.NEW
    assert topic.extraction_status == ExtractionStatus.PENDING
    assert 70 <= topic.score <= 99
    assert topic.image_url == "https://a.example.com/1.jpg"
    assert progress == sorted(progress)


@pytest.mark.asyncio
async def test_thin_items_are_skipped(repo) -> None:
    repo.create_source(name="A", url=FEED_A)
    fetcher = make_fetcher({FEED_A: feed_items("Breaking", "Regional airline adds three new routes this summer")})
    report = await _pipeline(repo, fetcher).run()
    assert report.thin == 1
    assert report.added == 1


@pytest.mark.asyncio
async def test_duplicate_backfills_missing_image(repo) -> None:
    source = repo.create_source(name="A", url=FEED_A)
    existing = repo.create_topic(source_id=source.id, title="Moscow court rules on the case")
    fetcher = make_fetcher(
        {FEED_A: feed_items("Moscow court rules on this case", image_url="https://a.example.com/court.jpg")}
    )

    report = await _pipeline(repo, fetcher).run()

    assert report.added == 0
    assert report.duplicates == 1
    assert report.images_backfilled == 1
    assert repo.get_topic(existing.id).image_url == "https://a.example.com/court.jpg"
    assert len(repo.list_topics()) == 1


@pytest.mark.asyncio
async def test_failing_feed_does_not_stop_the_others(repo) -> None:
    broken = repo.create_source(name="A", url=FEED_A)
    repo.create_source(name="B", url=FEED_B)
    fetcher = make_fetcher(
        {
            FEED_A: FeedFetchError("feed download failed", source=FEED_A),
            FEED_B: feed_items("Regional airline adds three new routes this summer"),
        }
    )
    report = await _pipeline(repo, fetcher).run()
    assert report.failed_sources == [broken.id]
    assert report.added == 1


@pytest.mark.asyncio
async def test_run_stops_at_per_run_cap(repo) -> None:
    repo.create_source(name="A", url=FEED_A)
    titles = [
        "Regional airline adds three new routes this summer",
        "City library opens a robotics lab for teenagers",
        "Farmers report record strawberry harvest in the valley",
        "Local startup raises funding for battery recycling plant",
    ]
    report = await _pipeline(repo, make_fetcher({FEED_A: feed_items(*titles)}), per_run_cap=2).run()
    assert report.added == 2


@pytest.mark.asyncio
async def test_manual_sources_become_topics_without_fetching(repo) -> None:
    repo.create_source(type=SourceType.MANUAL, name="Interview with a lighthouse keeper", description="Notes")

    async def _never(url, **kwargs):
        raise AssertionError("manual sources are not fetched")

    report = await _pipeline(repo, _never).run()
    assert report.added == 1
    assert repo.list_topics()[0].raw_text == "Notes"


@pytest.mark.asyncio
async def test_short_manual_source_is_admitted_once(repo) -> None:
    repo.create_source(type=SourceType.MANUAL, name="Weekly Digest", description="Curated notes")
    pipeline = _pipeline(repo, make_fetcher({}))

    first = await pipeline.run()
    second = await pipeline.run()
    third = await pipeline.run()

    assert first.added == 1
    assert (second.added, second.duplicates) == (0, 1)
    assert third.added == 0
    assert [topic.title for topic in repo.list_topics()] == ["Weekly Digest"]
    assert IngestionThrottle(repo, settings=IngestionSettings()).can_admit_more().remaining_daily == 299


@pytest.mark.asyncio
async def test_exhausted_quota_fetch_job_completes_with_no_topics(repo, runtime_factory) -> None:
    repo.create_source(name="A", url=FEED_A)
    fetcher = make_fetcher({FEED_A: feed_items("Regional airline adds three new routes this summer")})
    runtime = runtime_factory(fetcher=fetcher)

    state = runtime.throttle.current_state()
    repo.set_setting(
        QUOTA_SETTING_KEY,
        state.model_copy(update={"daily_count": 299}).model_dump(mode="json"),
    )

    first = runtime.queue.enqueue(JobKind.FETCH_TOPICS)
    done = await runtime.worker.run_next()
    assert done.id == first.id
    assert len(repo.list_topics()) == 1
    assert runtime.throttle.can_admit_more().remaining_daily == 0

    second = runtime.queue.enqueue(JobKind.FETCH_TOPICS)
    finished = await runtime.worker.run_next()
    assert finished.id == second.id
    assert finished.status == JobStatus.DONE
    assert finished.progress == 100
    assert len(repo.list_topics()) == 1
