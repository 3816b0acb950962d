"""
Redis store for API service.
"""

import redis
import json
from typing import Optional, Dict, Any
import os
from shared.constants import REDIS_KEY_TTL_SECONDS


class RedisStore:
    """Redis client wrapper for API service"""

    def __init__(self, redis_url: Optional[str] = None):
        url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.client = redis.Redis.from_url(url, decode_responses=False)

    def store_document(self, execution_id: str, document: Dict[str, Any]) -> None:
        key = f"exec:{execution_id}:workflow"
        self.client.set(key, json.dumps(document))
        self.client.expire(key, REDIS_KEY_TTL_SECONDS)

    def get_document(self, execution_id: str) -> Optional[Dict[str, Any]]:
        key = f"exec:{execution_id}:workflow"
        data = self.client.get(key)
        if data:
            return json.loads(data)
        return None

    def get_workflow_meta(self, execution_id: str) -> Optional[Dict[str, Any]]:
        key = f"exec:{execution_id}:meta"
        data = self.client.get(key)
        if data:
            return json.loads(data)
        return None

    def get_node_states(self, execution_id: str) -> Dict[str, str]:
        key = f"exec:{execution_id}:node_state"
        states = self.client.hgetall(key)
        return {
            k.decode('utf-8'): v.decode('utf-8')
            for k, v in states.items()
        }

    def get_outputs(self, execution_id: str) -> Dict[str, Any]:
        key = f"exec:{execution_id}:outputs"
        outputs = self.client.hgetall(key)
        return {
            k.decode('utf-8'): json.loads(v.decode('utf-8'))
            for k, v in outputs.items()
        }

    def get_variables(self, execution_id: str) -> Dict[str, Any]:
        data = self.client.get(f"exec:{execution_id}:variables")
        if data:
            return json.loads(data)
        return {}
