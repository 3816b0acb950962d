"""
Redis store for Worker service.
"""

import json
import os
from typing import Any, Dict, Optional

import redis

from shared.constants import REDIS_KEY_TTL_SECONDS


class RedisStore:
    """Redis client wrapper for Worker service"""

    def __init__(self, redis_url: Optional[str] = None, client=None):
        if client is None:
            url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
            client = redis.Redis.from_url(url, decode_responses=False)
        self.client = client

    def get_client(self):
        return self.client

    def get_document(self, execution_id: str) -> Optional[Dict[str, Any]]:
        data = self.client.get(f"exec:{execution_id}:workflow")
        if data:
            return json.loads(data)
        return None

    def acquire_run_lock(self, execution_id: str) -> bool:
        """Prevents two workers from running the same execution using Redis SETNX"""
        key = f"exec:{execution_id}:run_lock"
        was_set = self.client.setnx(key, "1")

        if was_set:
            self.client.expire(key, REDIS_KEY_TTL_SECONDS)
            return True

        return False

    def release_run_lock(self, execution_id: str) -> None:
        self.client.delete(f"exec:{execution_id}:run_lock")
