"""Hands stored executions to the worker queue."""

import logging
import os
from typing import Optional
from celery import Celery
from shared.constants import EXECUTE_WORKFLOW_TASK, WORKER_QUEUE
from shared.logging_config import get_correlation_id


class BrokerClient:
    """Send-only Celery client; the API never consumes tasks"""

    def __init__(self, broker_url: Optional[str] = None):
        url = broker_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.app = Celery("task_agent_api", broker=url, backend=url)
        self.app.conf.update(task_serializer="json", accept_content=["json"], enable_utc=True)

    def trigger_execution(self, execution_id: str) -> None:
        """Queue a run of the workflow stored under execution_id"""
        correlation_id = get_correlation_id()
        self.app.send_task(
            EXECUTE_WORKFLOW_TASK,
            kwargs={"execution_id": execution_id, "correlation_id": correlation_id},
            queue=WORKER_QUEUE,
        )
        logging.info("Workflow execution queued", extra={"execution_id": execution_id, "queue": WORKER_QUEUE})
