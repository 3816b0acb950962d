"""Retry decisions for failed node attempts."""

import logging
from typing import Optional, Tuple
from shared.exceptions import LLMApiError, ToolExecutionError, TransportError
from shared.constants import (
    MAX_RETRY_ATTEMPTS,
    INITIAL_RETRY_DELAY_SECONDS,
    MAX_RETRY_DELAY_SECONDS,
    RETRYABLE_HTTP_STATUS_CODES,
)


class RetryHandler:
    """Decides when to retry a failed node and calculates backoff delays"""

    def __init__(self, max_attempts: int = MAX_RETRY_ATTEMPTS):
        self.max_attempts = max_attempts

    def should_retry(
        self,
        node_id: str,
        error: Exception,
        retry_count: int
    ) -> Tuple[bool, Optional[float]]:
        """Checks if the node should be retried after its retry_count-th retry failed"""
        retryable, retry_after = self._classify(error)
        if not retryable:
            logging.info(
                "Node error is not retryable",
                extra={"node_id": node_id, "error_class": type(error).__name__}
            )
            return False, None

        if retry_count >= self.max_attempts:
            logging.warning(
                "Maximum retry attempts reached",
                extra={
                    "node_id": node_id,
                    "retry_count": retry_count,
                    "max_attempts": self.max_attempts
                }
            )
            return False, None

        delay = self._calculate_backoff_delay(retry_count, retry_after)

        logging.info(
            "Node will be retried",
            extra={
                "node_id": node_id,
                "retry_attempt": retry_count + 1,
                "delay_seconds": delay
            }
        )

        return True, delay

    def _classify(self, error: Exception) -> Tuple[bool, Optional[int]]:
        if isinstance(error, LLMApiError):
            return error.status_code in RETRYABLE_HTTP_STATUS_CODES, error.retry_after_seconds
        if isinstance(error, TransportError):
            return True, None
        if isinstance(error, ToolExecutionError):
            return error.task_error.is_retryable, error.task_error.retry_after_seconds
        return False, None

    def _calculate_backoff_delay(self, retry_count: int, retry_after: Optional[int]) -> float:
        """Exponential backoff with Retry-After header support"""
        if retry_after:
            # Honor Retry-After header (e.g., from 429 responses)
            delay = min(retry_after, MAX_RETRY_DELAY_SECONDS)
            logging.debug(
                f"Using Retry-After header delay: {delay}s",
                extra={"retry_after": retry_after}
            )
        else:
            # Exponential backoff: 1s, 2s, 4s, 8s, ...
            delay = min(
                INITIAL_RETRY_DELAY_SECONDS * (2 ** retry_count),
                MAX_RETRY_DELAY_SECONDS
            )
            logging.debug(
                f"Using exponential backoff delay: {delay}s",
                extra={"retry_count": retry_count}
            )

        return delay
