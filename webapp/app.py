"""FastAPI job submission surface."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, field_validator

from config import get_worker_settings
from core import JobKind, JobStatus
from orchestrator import render_package_text
from webapp.runtime import get_runtime


logger = logging.getLogger(__name__)


class JobRequest(BaseModel):
    kind: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("kind")
    @classmethod
    def _known_kind(cls, value: str) -> str:
        text = str(value or "").strip()
        if text not in {kind.value for kind in JobKind}:
            raise ValueError(f"unknown job kind: {text or '<empty>'}")
        return text


class SelectTopicRequest(BaseModel):
    style_preset: str = "news"
    duration_sec: int = 60
    language: Optional[str] = None
    platform: str = "youtube_shorts"
    generate: bool = True


@asynccontextmanager
async def lifespan(_app: FastAPI):
    scheduler = None
    if get_worker_settings().auto_start:
        scheduler = get_runtime().scheduler
        await scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


app = FastAPI(title="Topic Factory API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
def health() -> Dict[str, Any]:
    runtime = get_runtime()
    return {
        "ok": True,
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "llm": runtime.provider.provider_name,
        "scheduler_running": runtime.scheduler.running,
        "jobs": runtime.service.queue_counts(),
    }


@app.post("/api/jobs")
def create_job(req: JobRequest) -> Dict[str, Any]:
    try:
        job = get_runtime().service.enqueue(req.kind, req.payload)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"job": job.model_dump(mode="json")}


@app.get("/api/jobs")
def list_jobs(status: Optional[str] = None, limit: int = 50) -> Dict[str, Any]:
    try:
        status_filter = JobStatus(status) if status else None
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"unknown status: {status}") from exc
    jobs = get_runtime().service.list_jobs(status=status_filter, limit=max(1, min(200, limit)))
    return {"jobs": [job.model_dump(mode="json") for job in jobs], "count": len(jobs)}


@app.get("/api/jobs/{job_id}")
def get_job(job_id: str) -> Dict[str, Any]:
    job = get_runtime().service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    return {"job": job.model_dump(mode="json")}


@app.post("/api/topics/{topic_id}/select")
def select_topic(topic_id: str, req: Optional[SelectTopicRequest] = None) -> Dict[str, Any]:
    req = req or SelectTopicRequest()
    try:
        result = get_runtime().service.select_topic(
            topic_id,
            style_preset=req.style_preset,
            duration_sec=req.duration_sec,
            language=req.language,
            platform=req.platform,
            generate=req.generate,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="topic not found")
    script, job = result
    return {"script": script.model_dump(mode="json"), "job": job.model_dump(mode="json") if job else None}


@app.get("/api/scripts/{script_id}")
def get_script(script_id: str) -> Dict[str, Any]:
    script = get_runtime().service.get_script(script_id)
    if script is None:
        raise HTTPException(status_code=404, detail="script not found")
    return {"script": script.model_dump(mode="json")}


@app.get("/api/scripts/{script_id}/download")
def download_script(script_id: str) -> PlainTextResponse:
    script = get_runtime().service.get_script(script_id)
    if script is None:
        raise HTTPException(status_code=404, detail="script not found")
    return PlainTextResponse(
        render_package_text(script),
        headers={"Content-Disposition": f'attachment; filename="{script_id}.txt"'},
    )


@app.get("/api/ingestion/status")
def ingestion_status() -> Dict[str, Any]:
    return get_runtime().service.ingestion_status()


@app.post("/api/workers/jobs/next")
async def run_worker_next() -> Dict[str, Any]:
    job = await get_runtime().worker.run_next()
    if job is None:
        return {"processed": False}
    return {"processed": True, "job": job.model_dump(mode="json")}


@app.post("/api/workers/sweep")
async def sweep_stale_jobs() -> Dict[str, Any]:
    reclaimed = get_runtime().worker.sweep_stale()
    return {"reclaimed": reclaimed, "count": len(reclaimed)}
