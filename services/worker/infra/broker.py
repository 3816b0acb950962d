"""Celery app that consumes workflow runs queued by the API.

Runs are bounded by a soft time limit (WORKFLOW_TIME_LIMIT_SECONDS) so the
worker can record the timeout before the hard limit kills the process.
"""

import os
from celery import Celery
from shared.constants import (
    WORKER_QUEUE,
    WORKFLOW_HARD_TIME_LIMIT_GRACE_SECONDS,
    WORKFLOW_SOFT_TIME_LIMIT_SECONDS,
)


def create_celery_app() -> Celery:
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    soft_limit = int(os.getenv("WORKFLOW_TIME_LIMIT_SECONDS", WORKFLOW_SOFT_TIME_LIMIT_SECONDS))

    app = Celery("task_agent_worker", broker=redis_url, backend=redis_url)

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        enable_utc=True,
        # a run holds a lock and writes progress; redeliver it if the worker dies mid-run
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        task_soft_time_limit=soft_limit,
        task_time_limit=soft_limit + WORKFLOW_HARD_TIME_LIMIT_GRACE_SECONDS,
        task_routes={f"{WORKER_QUEUE}.*": {"queue": WORKER_QUEUE}},
    )

    return app
