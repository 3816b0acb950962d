"""Built-in tools."""

import logging
from typing import Any, Dict

import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from services.tools.base import Tool
from services.tools.schemas import HttpRequestParams, WriteContextParams
from shared.constants import RETRYABLE_HTTP_STATUS_CODES, WRITE_CONTEXT_TOOL_NAME
from shared.exceptions import TaskError, ToolExecutionError
from shared.utils import decode_json_value, parse_retry_after

logger = logging.getLogger(__name__)


class WriteContextTool(Tool):
    """Lets an action write a value into the workflow's shared variables"""

    name = WRITE_CONTEXT_TOOL_NAME
    description = (
        "Write a value to the workflow context so that later steps can read it. "
        "Use a short, descriptive key."
    )
    input_schema = WriteContextParams.model_json_schema()

    def execute(self, context: Any, params: Dict[str, Any]) -> Dict[str, Any]:
        key = params.get("key")
        if not key:
            raise ToolExecutionError(TaskError(
                error_type="INVALID_TOOL_INPUT",
                error_message="write_context requires a non-empty 'key'",
            ))
        value = decode_json_value(params.get("value"))
        context.variables[key] = value
        logger.debug("Context variable written", extra={"key": key})
        return {"key": key, "value": value}


class HttpRequestTool(Tool):
    name = "http_request"
    description = "Perform an HTTP request and return the status code, headers and body."
    input_schema = HttpRequestParams.model_json_schema()

    def execute(self, context: Any, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            config = HttpRequestParams(**(params or {}))
        except ValueError as e:
            raise ToolExecutionError(TaskError(
                error_type="INVALID_TOOL_INPUT",
                error_message=f"Invalid input for tool 'http_request': {e}",
            ))

        try:
            response = requests.request(
                config.method,
                config.url,
                headers=config.headers or {},
                json=config.body,
                timeout=config.timeout
            )

            # Check for retryable HTTP errors
            if response.status_code in RETRYABLE_HTTP_STATUS_CODES:
                raise ToolExecutionError(TaskError(
                    error_type="HTTP_ERROR",
                    error_message=f"HTTP {response.status_code}: {response.reason}",
                    http_status_code=response.status_code,
                    is_retryable=True,
                    retry_after_seconds=parse_retry_after(response.headers.get("Retry-After")),
                    context={"url": config.url, "method": config.method}
                ))

            response.raise_for_status()

            if "application/json" in response.headers.get("content-type", ""):
                body = response.json()
            else:
                body = response.text
            return {
                "result": body,
                "status_code": response.status_code,
                "headers": dict(response.headers)
            }

        except (Timeout, ConnectionError) as e:
            raise ToolExecutionError(TaskError(
                error_type="NETWORK_ERROR",
                error_message=f"Network error: {str(e)}",
                is_retryable=True,
                context={"url": config.url, "error_class": type(e).__name__}
            ))

        except RequestException as e:
            # 4xx client errors are not retryable
            raise ToolExecutionError(TaskError(
                error_type="REQUEST_ERROR",
                error_message=f"Request failed: {str(e)}",
                is_retryable=False,
                context={"url": config.url}
            ))

