"""CLI entrypoint for the topic factory: one-shot runs, scheduler and API server."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import List

from core import JobKind, SourceType
from orchestrator import FactoryRuntime, render_package_text
from utils.logger import setup_logger
from webapp.runtime import get_runtime


logger = logging.getLogger(__name__)


def _add_feeds(runtime: FactoryRuntime, urls: List[str], category_id: str) -> None:
    for url in urls:
        runtime.repo.create_source(type=SourceType.RSS, name=url, url=url, category_id=category_id or None)


async def _drain(runtime: FactoryRuntime) -> int:
    """Run queued jobs one at a time until the queue is empty."""
    processed = 0
    while await runtime.worker.run_next() is not None:
        processed += 1
    return processed


async def _fetch(runtime: FactoryRuntime) -> None:
    runtime.service.enqueue(JobKind.FETCH_TOPICS)
    await _drain(runtime)
    topics = runtime.repo.list_topics()
    print(
        json.dumps(
            {
                "topics": [{"id": t.id, "title": t.title, "tags": t.tags, "score": t.score} for t in topics],
                "ingestion": runtime.service.ingestion_status(),
            },
            ensure_ascii=False,
            indent=2,
            default=str,
        )
    )


async def _generate(runtime: FactoryRuntime, args: argparse.Namespace) -> None:
    runtime.service.enqueue(JobKind.FETCH_TOPICS)
    await _drain(runtime)
    topics = sorted(runtime.repo.list_topics(), key=lambda t: t.score, reverse=True)
    if not topics:
        print(json.dumps({"error": "no topics admitted"}, ensure_ascii=False))
        return

    topic = topics[0]
    if args.extract:
        runtime.service.enqueue(JobKind.EXTRACT_CONTENT, {"topic_id": topic.id})
    script, _job = runtime.service.select_topic(
        topic.id,
        style_preset=args.style,
        duration_sec=args.duration,
        language=args.language,
    )
    await _drain(runtime)

    script = runtime.repo.get_script(script.id)
    if script.error:
        print(json.dumps({"script_id": script.id, "status": script.status.value, "error": script.error}, ensure_ascii=False))
        return
    print(render_package_text(script))


def main() -> None:
    parser = argparse.ArgumentParser(description="Topic factory CLI")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Fetch topics from feeds once")
    fetch.add_argument("--feed", action="append", default=[], required=True)
    fetch.add_argument("--category", default="")

    gen = sub.add_parser("generate", help="Fetch topics and generate a script for the best one")
    gen.add_argument("--feed", action="append", default=[], required=True)
    gen.add_argument("--category", default="")
    gen.add_argument("--style", default="news")
    gen.add_argument("--duration", type=int, default=60, choices=[30, 45, 60, 120])
    gen.add_argument("--language", default=None)
    gen.add_argument("--extract", action="store_true", help="Extract article text before generating")

    sched = sub.add_parser("scheduler", help="Run worker, stale sweep and auto-fetch loops")
    sched.add_argument("--feed", action="append", default=[])
    sched.add_argument("--category", default="")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    setup_logger(level=args.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("webapp.app:app", host=args.host, port=args.port)
        return

    runtime = get_runtime()
    _add_feeds(runtime, args.feed, args.category)

    if args.command == "fetch":
        asyncio.run(_fetch(runtime))
        return

    if args.command == "generate":
        asyncio.run(_generate(runtime, args))
        return

    if args.command == "scheduler":
        try:
            asyncio.run(runtime.scheduler.run_forever())
        except KeyboardInterrupt:
            logger.info("scheduler_interrupted")
        return


if __name__ == "__main__":
    main()
