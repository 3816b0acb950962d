"""Worker service for workflow execution."""

import logging
import os
from celery.exceptions import SoftTimeLimitExceeded
from services.engine.engine import ExecutionEngine
from services.llm.factory import provider_from_env
from services.parser.workflow_parser import WorkflowParser
from services.tools.registry import build_default_registry
from services.worker.infra.broker import create_celery_app
from services.worker.infra.redis_store import RedisStore
from services.worker.progress import RedisProgressHooks
from shared.constants import EXECUTE_WORKFLOW_TASK, WORKER_QUEUE
from shared.exceptions import WorkflowError
from shared.logging_config import setup_logging, set_correlation_id

setup_logging("worker")

celery_app = create_celery_app()
redis_store = RedisStore()


def run_execution(store: RedisStore, execution_id: str, stream: bool = False) -> dict:
    """Loads the stored workflow, runs it and records progress; returns the result as JSON"""
    progress = RedisProgressHooks(store.get_client(), execution_id)

    document = store.get_document(execution_id)
    if document is None:
        raise ValueError(f"Workflow not found for execution {execution_id}")

    try:
        workflow = WorkflowParser.from_document(document)
    except WorkflowError as e:
        progress.record_failure(str(e))
        raise

    try:
        engine = ExecutionEngine(build_default_registry(), llm=provider_from_env(), stream=stream)
    except ValueError as e:
        progress.record_failure(str(e))
        raise

    progress.initialize(workflow)

    try:
        result = engine.execute(workflow, hooks=progress.hooks())
    except SoftTimeLimitExceeded:
        logging.error("Workflow execution timed out", extra={"execution_id": execution_id})
        progress.record_failure(f"Workflow {workflow.id} exceeded time limit")
        raise
    except Exception as e:
        logging.error("Workflow execution aborted", extra={"execution_id": execution_id, "error": str(e)})
        progress.record_failure(str(e))
        raise

    progress.record_result(result)
    return result.model_dump(mode="json")


@celery_app.task(name=EXECUTE_WORKFLOW_TASK, bind=True)
def execute_workflow(self, execution_id: str, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    logging.info("Starting workflow execution", extra={"execution_id": execution_id})

    if not redis_store.acquire_run_lock(execution_id):
        logging.warning("Duplicate workflow execution detected", extra={"execution_id": execution_id})
        return {}

    try:
        stream = os.getenv("LLM_STREAM", "false").lower() == "true"
        return run_execution(redis_store, execution_id, stream=stream)
    finally:
        redis_store.release_run_lock(execution_id)


if __name__ == "__main__":
    celery_app.worker_main([
        "worker",
        "--loglevel=info",
        "-Q", WORKER_QUEUE,
        "--concurrency=4"
    ])
