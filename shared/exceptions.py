"""Structured exception hierarchy for the agent."""

from typing import Optional, Dict, Any, List
from pydantic import BaseModel


class TaskError(BaseModel):
    """Structured error raised by tools"""
    error_type: str
    error_message: str
    http_status_code: Optional[int] = None
    retry_after_seconds: Optional[int] = None
    is_retryable: bool = False
    context: Dict[str, Any] = {}


class WorkflowError(Exception):
    """Base exception for workflow errors"""

    def __init__(self, message: str, workflow_id: str = "", **context):
        self.message = message
        self.workflow_id = workflow_id
        self.context = context
        super().__init__(message)


class ParseError(WorkflowError):
    """Workflow document is not valid JSON"""
    pass


class WorkflowValidationError(WorkflowError):
    """Workflow document failed validation; carries every issue found"""

    def __init__(self, message: str, errors: Optional[List[Any]] = None, **context):
        super().__init__(message, **context)
        self.errors = errors or []


class NodeExecutionError(WorkflowError):
    pass


class TemplateResolutionError(WorkflowError):
    pass


class CycleDetectedError(WorkflowError):
    pass


class WorkflowGenerationError(WorkflowError):
    pass


class ToolNotFoundError(LookupError):
    """Requested tool name is not registered"""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool with name {tool_name} not found")


class ToolExecutionError(Exception):
    """Tool failed; carries a structured TaskError"""

    def __init__(self, task_error: TaskError):
        self.task_error = task_error
        super().__init__(task_error.error_message)


class LLMError(Exception):
    """Base exception for LLM provider errors"""
    pass


class LLMApiError(LLMError):
    """Non-success response from the LLM endpoint"""

    def __init__(self, status_code: int, body: str, retry_after_seconds: Optional[int] = None):
        self.status_code = status_code
        self.body = body
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"LLM API Error ({status_code}): {body}")


class MalformedToolCallError(LLMError):
    """Tool-call arguments are not valid JSON"""

    def __init__(self, tool_name: str, arguments: str):
        self.tool_name = tool_name
        self.arguments = arguments
        super().__init__(f"Malformed arguments for tool call '{tool_name}': {arguments!r}")


class TransportError(LLMError):
    """Network failure or missing response body"""
    pass
