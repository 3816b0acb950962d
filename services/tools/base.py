"""Tool abstraction used by the registry and the engine."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from shared.exceptions import TaskError, ToolExecutionError
from shared.messages import ToolDefinition


class Tool(ABC):
    """A named, schema-described capability invocable by an action"""

    name: str = ""
    description: str = ""
    input_schema: Dict[str, Any] = {"type": "object", "properties": {}}

    @abstractmethod
    def execute(self, context: Any, params: Dict[str, Any]) -> Any:
        ...

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, input_schema=self.input_schema)


class FunctionTool(Tool):
    """Wraps a plain callable ``func(context, params)`` as a Tool.

    When ``params_model`` is given, the input schema is derived from it and
    params are validated before the call.
    """

    def __init__(
        self,
        name: str,
        description: str,
        func: Callable[[Any, Dict[str, Any]], Any],
        input_schema: Optional[Dict[str, Any]] = None,
        params_model: Optional[Type[BaseModel]] = None,
    ):
        self.name = name
        self.description = description
        self.func = func
        self.params_model = params_model
        if input_schema is not None:
            self.input_schema = input_schema
        elif params_model is not None:
            self.input_schema = params_model.model_json_schema()
        else:
            self.input_schema = {"type": "object", "properties": {}}

    def execute(self, context: Any, params: Dict[str, Any]) -> Any:
        if self.params_model is not None:
            try:
                params = self.params_model(**(params or {})).model_dump()
            except ValidationError as e:
                raise ToolExecutionError(TaskError(
                    error_type="INVALID_TOOL_INPUT",
                    error_message=f"Invalid input for tool '{self.name}': {e}",
                    is_retryable=False,
                    context={"tool": self.name},
                ))
        return self.func(context, params)
