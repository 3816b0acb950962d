"""Execution progress recorded into Redis so the API can report status and results."""

import json
import logging
from typing import Any, Dict, Optional

from services.engine.hooks import WorkflowHooks
from shared.constants import REDIS_KEY_TTL_SECONDS
from shared.types import ExecutionResult, NodeState, WorkflowStatus
from shared.workflow import Workflow


class RedisProgressHooks:
    """Writes node states, outputs and workflow meta under exec:{execution_id}:*"""

    def __init__(self, redis_client, execution_id: str):
        self.redis = redis_client
        self.execution_id = execution_id

    def _key(self, suffix: str) -> str:
        return f"exec:{self.execution_id}:{suffix}"

    def initialize(self, workflow: Workflow) -> None:
        self.redis.delete(self._key("node_state"), self._key("outputs"), self._key("variables"))

        pipe = self.redis.pipeline()
        for node in workflow.nodes:
            pipe.hset(self._key("node_state"), node.id, NodeState.PENDING.value)
        pipe.expire(self._key("node_state"), REDIS_KEY_TTL_SECONDS)
        pipe.execute()

        self._write_meta({
            "execution_id": self.execution_id,
            "workflow_id": workflow.id,
            "status": WorkflowStatus.RUNNING.value,
            "total_nodes": len(workflow.nodes),
            "completed_nodes": 0,
        })

    def hooks(self) -> WorkflowHooks:
        return WorkflowHooks(
            before_subtask=self.on_before_subtask,
            after_subtask=self.on_after_subtask,
        )

    def on_before_subtask(self, node, context) -> None:
        self.redis.hset(self._key("node_state"), node.id, NodeState.RUNNING.value)

    def on_after_subtask(self, node, context, result: Any) -> None:
        pipe = self.redis.pipeline()
        pipe.hset(self._key("node_state"), node.id, NodeState.COMPLETED.value)
        pipe.hset(self._key("outputs"), node.id, json.dumps(result, default=str))
        pipe.expire(self._key("outputs"), REDIS_KEY_TTL_SECONDS)
        pipe.execute()

        meta = self._read_meta()
        meta["completed_nodes"] = meta.get("completed_nodes", 0) + 1
        self._write_meta(meta)

    def record_result(self, result: ExecutionResult) -> None:
        pipe = self.redis.pipeline()
        for node_id, state in result.node_states.items():
            pipe.hset(self._key("node_state"), node_id, state.value)
        pipe.set(self._key("variables"), json.dumps(result.variables, default=str))
        pipe.expire(self._key("variables"), REDIS_KEY_TTL_SECONDS)
        pipe.execute()

        meta = self._read_meta()
        meta.update({
            "status": result.status.value,
            "completed_nodes": sum(1 for state in result.node_states.values() if state == NodeState.COMPLETED),
            "error": result.error,
            "failed_node": result.failed_node,
        })
        self._write_meta(meta)

        logging.info("Execution result recorded", extra={
            "execution_id": self.execution_id,
            "status": result.status.value,
        })

    def record_failure(self, error: str, failed_node: Optional[str] = None) -> None:
        """Marks the execution FAILED when it could not run to a result"""
        meta = self._read_meta()
        meta.update({
            "execution_id": self.execution_id,
            "status": WorkflowStatus.FAILED.value,
            "error": error,
            "failed_node": failed_node,
        })
        meta.setdefault("total_nodes", 0)
        meta.setdefault("completed_nodes", 0)
        self._write_meta(meta)

    def _read_meta(self) -> Dict[str, Any]:
        data = self.redis.get(self._key("meta"))
        if data:
            return json.loads(data)
        return {}

    def _write_meta(self, meta: Dict[str, Any]) -> None:
        self.redis.set(self._key("meta"), json.dumps(meta))
        self.redis.expire(self._key("meta"), REDIS_KEY_TTL_SECONDS)
