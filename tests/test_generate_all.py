from __future__ import annotations

import pytest

from core import ErrorKind, ExtractionStatus, JobKind, JobStatus, ScriptStatus, TopicInsights
from pipeline.generate_all import STAGE_ORDER
from pipeline.tags import extract_tags

from conftest import ScriptedLLM


def _topic_and_script(repo, **script_fields):
    source = repo.create_source(name="Feed", url="https://example.com/rss", category_id="world_news")
    topic = repo.create_topic(
        source_id=source.id,
        title="City councils order electric buses for regional routes",
        tags=["electric buses", "councils"],
    )
    script = repo.create_script(topic_id=topic.id, **script_fields)
    return topic, script


@pytest.mark.asyncio
async def test_generate_all_fills_every_stage(repo, runtime_factory, scripted_llm) -> None:
    runtime = runtime_factory(scripted_llm)
    _topic, script = _topic_and_script(repo)
    progress = []

    outcome = await runtime.orchestrator.run(script.id, progress.append)

    assert outcome.ok is True
    assert outcome.detail["ran"] == [kind.value for kind, _pct in STAGE_ORDER]
    stored = repo.get_script(script.id)
    assert stored.status == ScriptStatus.READY
    assert stored.hook == "Your next bus ride might be silent."
    assert stored.voice_text.startswith("Small towns are quietly winning")
    assert stored.on_screen_text.startswith("[Hook]")
    assert stored.storyboard[0].visual == "Bus depot at dawn"
    assert stored.voice.characters == len(stored.voice_text)
    assert stored.music.genre == "News / Corporate"
    assert stored.seo.seo_title == "Towns vs cities"
    assert progress == [15, 35, 55, 65, 75, 90]


@pytest.mark.asyncio
async def test_second_run_makes_no_content_calls(repo, runtime_factory, scripted_llm) -> None:
    runtime = runtime_factory(scripted_llm)
    _topic, script = _topic_and_script(repo)

    await runtime.orchestrator.run(script.id)
    first_calls = list(scripted_llm.calls)
    before = repo.get_script(script.id)

    outcome = await runtime.orchestrator.run(script.id)

    assert first_calls == ["hook", "script", "storyboard", "seo"]
    assert scripted_llm.calls == first_calls
    assert outcome.detail["ran"] == []
    after = repo.get_script(script.id)
    assert after.voice_text == before.voice_text
    assert after.seo == before.seo
    assert after.status == ScriptStatus.READY


@pytest.mark.asyncio
async def test_resume_after_failed_stage_skips_completed_fields(repo, runtime_factory) -> None:
    _topic, script = _topic_and_script(repo)
    failing = ScriptedLLM(fail=True)
    runtime = runtime_factory(failing, strict_upstream=True)

    runtime.queue.enqueue(JobKind.GENERATE_ALL, {"script_id": script.id})
    job = await runtime.worker.run_next()
    assert job.status == JobStatus.ERROR
    assert "upstream unavailable" in job.error
    assert repo.get_script(script.id).status == ScriptStatus.ERROR

    repo.update_script(script.id, hook="A hook written by an editor.")
    healthy = ScriptedLLM()
    runtime = runtime_factory(healthy)
    runtime.queue.enqueue(JobKind.GENERATE_ALL, {"script_id": script.id})
    job = await runtime.worker.run_next()

    assert job.status == JobStatus.DONE
    assert "hook" not in healthy.calls
    stored = repo.get_script(script.id)
    assert stored.hook == "A hook written by an editor."
    assert stored.status == ScriptStatus.READY
    assert stored.error is None


@pytest.mark.asyncio
async def test_missing_script_is_not_found(repo, runtime_factory) -> None:
    runtime = runtime_factory()
    outcome = await runtime.orchestrator.run("script_missing")
    assert outcome.ok is False
    assert outcome.error_kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_template_fallback_without_llm(repo, runtime_factory) -> None:
    runtime = runtime_factory()
    topic, script = _topic_and_script(repo, duration_sec=30)

    outcome = await runtime.orchestrator.run(script.id)

    assert outcome.ok is True
    stored = repo.get_script(script.id)
    assert stored.on_screen_text.splitlines()[0] == "[Hook]"
    assert stored.on_screen_text.splitlines()[1] == f"- {stored.hook}"
    assert len(stored.storyboard) == 4
    assert not stored.voice_text.lower().startswith("city councils order electric")
    assert len(stored.seo.seo_title_options) == 3
    assert "#electricbuses" in stored.seo.hashtags


@pytest.mark.asyncio
async def test_unrelated_topics_all_pass_anticopy_without_llm(repo, runtime_factory) -> None:
    runtime = runtime_factory()
    source = repo.create_source(name="Feed", url="https://example.com/rss")
    titles = [
        ("City council approves new riverside park after long debate", "en", 60),
        ("Researchers discover unusual bacteria living in deep ocean vents", "en", 60),
        ("Local bakery wins national award for sourdough bread", "en", 120),
        ("Городской совет утвердил новый бюджет на транспорт", "ru", 45),
        ("Airline cancels winter flights across northern routes", "en", 30),
    ]
    results = []
    for title, language, duration in titles:
        topic = repo.create_topic(
            source_id=source.id, title=title, tags=extract_tags(title, "", language), language=language
        )
        script, _job = runtime.service.select_topic(topic.id, duration_sec=duration)
        job = await runtime.worker.run_next()
        results.append((job.status, job.error, repo.get_script(script.id).status))

    assert results == [(JobStatus.DONE, None, ScriptStatus.READY)] * len(titles)

    untagged = repo.create_topic(source_id=source.id, title="Volunteers restore historic lighthouse on rocky island")
    script, _job = runtime.service.select_topic(untagged.id)
    job = await runtime.worker.run_next()
    assert job.status == JobStatus.DONE
    assert repo.get_script(script.id).status == ScriptStatus.READY


@pytest.mark.asyncio
async def test_storyboard_requires_script_text(repo, runtime_factory) -> None:
    runtime = runtime_factory()
    _topic, script = _topic_and_script(repo)

    runtime.queue.enqueue(JobKind.GENERATE_STORYBOARD, {"script_id": script.id})
    job = await runtime.worker.run_next()

    assert job.status == JobStatus.ERROR
    assert "Script text is required" in job.error


@pytest.mark.asyncio
async def test_single_stage_job_leaves_script_in_draft(repo, runtime_factory, scripted_llm) -> None:
    runtime = runtime_factory(scripted_llm)
    _topic, script = _topic_and_script(repo)

    runtime.queue.enqueue(JobKind.GENERATE_HOOK, {"scriptId": script.id})
    job = await runtime.worker.run_next()

    assert job.status == JobStatus.DONE
    stored = repo.get_script(script.id)
    assert stored.status == ScriptStatus.DRAFT
    assert stored.hook == "Your next bus ride might be silent."


@pytest.mark.asyncio
async def test_export_marks_script_exported(repo, runtime_factory) -> None:
    runtime = runtime_factory()
    _topic, script = _topic_and_script(repo)
    await runtime.orchestrator.run(script.id)

    runtime.queue.enqueue(JobKind.EXPORT_PACKAGE, {"script_id": script.id})
    job = await runtime.worker.run_next()

    assert job.status == JobStatus.DONE
    stored = repo.get_script(script.id)
    assert stored.status == ScriptStatus.EXPORTED
    assert stored.assets.export_url == f"/api/scripts/{script.id}/download"


@pytest.mark.asyncio
async def test_extract_content_grounds_the_topic(repo, runtime_factory, scripted_llm) -> None:
    runtime = runtime_factory(scripted_llm)
    topic, _script = _topic_and_script(repo)
    repo.update_topic(topic.id, raw_text="Councils ordered forty buses for rural routes.")

    runtime.queue.enqueue(JobKind.EXTRACT_CONTENT, {"topic_id": topic.id})
    job = await runtime.worker.run_next()

    assert job.status == JobStatus.DONE
    stored = repo.get_topic(topic.id)
    assert stored.extraction_status == ExtractionStatus.DONE
    assert stored.full_content == "Councils ordered forty buses for rural routes."
    assert stored.insights == TopicInsights(key_facts=["Forty buses were ordered."], summary="Councils ordered buses.")
    assert stored.is_grounded


@pytest.mark.asyncio
async def test_translate_topic_stores_translation(repo, runtime_factory, scripted_llm) -> None:
    runtime = runtime_factory(scripted_llm)
    topic, _script = _topic_and_script(repo)

    runtime.queue.enqueue(JobKind.TRANSLATE_TOPIC, {"topicId": topic.id, "targetLanguage": "ru"})
    job = await runtime.worker.run_next()

    assert job.status == JobStatus.DONE
    assert repo.get_topic(topic.id).translated_title == "Маленькие города и электробусы"
