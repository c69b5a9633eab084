"""Job queue, single-flight worker and scheduler."""

from .queue import JobQueue
from .scheduler import Scheduler
from .service import FactoryRuntime, JobService, build_runtime, render_package_text
from .worker import STALE_MESSAGE, JobWorker, ProgressReporter

__all__ = [
    "FactoryRuntime",
    "JobQueue",
    "JobService",
    "JobWorker",
    "ProgressReporter",
    "STALE_MESSAGE",
    "Scheduler",
    "build_runtime",
    "render_package_text",
]
