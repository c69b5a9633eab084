from __future__ import annotations

import inspect
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from core import JobKind, JobStatus, TopicStatus
from webapp.app import app, sweep_stale_jobs
from webapp.runtime import set_runtime


@pytest.fixture
def client(runtime_factory):
    runtime = runtime_factory()
    set_runtime(runtime)
    try:
        yield TestClient(app), runtime
    finally:
        set_runtime(None)


def _topic(runtime):
    source = runtime.repo.create_source(name="Feed", url="https://example.com/rss")
    return runtime.repo.create_topic(source_id=source.id, title="Harbour cranes stop for the storm", tags=["harbour"])


def test_health_reports_template_provider(client) -> None:
    api, _runtime = client
    body = api.get("/api/health").json()
    assert body["ok"] is True
    assert body["llm"] == "template"
    assert body["scheduler_running"] is False


def test_create_and_read_job(client) -> None:
    api, _runtime = client
    resp = api.post("/api/jobs", json={"kind": "extract_trends", "payload": {"categoryId": "science"}})
    assert resp.status_code == 200
    job = resp.json()["job"]
    assert job["status"] == "queued"
    assert job["payload"]["category_id"] == "science"

    fetched = api.get(f"/api/jobs/{job['id']}").json()["job"]
    assert fetched["id"] == job["id"]
    listed = api.get("/api/jobs", params={"status": "queued"}).json()
    assert listed["count"] == 1


def test_job_validation_errors(client) -> None:
    api, _runtime = client
    assert api.post("/api/jobs", json={"kind": "publish_video"}).status_code == 422
    assert api.post("/api/jobs", json={"kind": "generate_script", "payload": {}}).status_code == 422
    assert api.get("/api/jobs/job_missing").status_code == 404
    assert api.get("/api/jobs", params={"status": "paused"}).status_code == 422


def test_select_topic_creates_script_and_generate_all_job(client) -> None:
    api, runtime = client
    topic = _topic(runtime)

    resp = api.post(f"/api/topics/{topic.id}/select", json={"style_preset": "science", "duration_sec": 45})
    assert resp.status_code == 200
    body = resp.json()
    assert body["script"]["duration_sec"] == 45
    assert body["script"]["keywords"] == ["harbour"]
    assert body["job"]["kind"] == JobKind.GENERATE_ALL.value
    assert runtime.repo.get_topic(topic.id).status == TopicStatus.SELECTED

    again = api.post(f"/api/topics/{topic.id}/select", json={"generate": False}).json()
    assert again["script"]["id"] == body["script"]["id"]
    assert again["job"] is None

    assert api.post("/api/topics/topic_missing/select", json={}).status_code == 404
    fresh = _topic(runtime)
    assert api.post(f"/api/topics/{fresh.id}/select", json={"duration_sec": 90}).status_code == 422


def test_worker_endpoint_runs_generation_and_download(client) -> None:
    api, runtime = client
    topic = _topic(runtime)
    script_id = api.post(f"/api/topics/{topic.id}/select", json={}).json()["script"]["id"]

    result = api.post("/api/workers/jobs/next").json()
    assert result["processed"] is True
    assert result["job"]["status"] == JobStatus.DONE.value
    assert api.post("/api/workers/jobs/next").json() == {"processed": False}

    script = api.get(f"/api/scripts/{script_id}").json()["script"]
    assert script["status"] == "ready"

    download = api.get(f"/api/scripts/{script_id}/download")
    assert download.status_code == 200
    assert "attachment" in download.headers["content-disposition"]
    assert "## Storyboard" in download.text
    assert api.get("/api/scripts/script_missing").status_code == 404


def test_ingestion_status_and_sweep(client) -> None:
    api, _runtime = client
    status = api.get("/api/ingestion/status").json()
    assert status["limits"]["daily"] == 300
    assert status["allowed"] is True
    assert api.post("/api/workers/sweep").json() == {"reclaimed": [], "count": 0}


def test_sweep_endpoint_runs_on_the_event_loop(client) -> None:
    api, runtime = client
    assert inspect.iscoroutinefunction(sweep_stale_jobs)

    stuck = runtime.repo.create_job(JobKind.FETCH_TOPICS)
    runtime.repo.update_job(
        stuck.id, status=JobStatus.RUNNING, updated_at=runtime.repo.now() - timedelta(seconds=600)
    )

    body = api.post("/api/workers/sweep").json()
    assert body == {"reclaimed": [stuck.id], "count": 1}
    assert api.get(f"/api/jobs/{stuck.id}").json()["job"]["error"] == "Job timed out (stale)"
