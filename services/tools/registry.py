"""Tool registry: the capability surface offered to the planner and the engine."""

import logging
import threading
from typing import Any, Dict, Iterable, List

from services.parser.schema import build_workflow_schema
from services.tools.base import Tool
from services.tools.builtin import HttpRequestTool
from shared.exceptions import ToolNotFoundError
from shared.messages import ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Holds tools by name. Writes happen at startup; execution only reads."""

    def __init__(self):
        self._tools: Dict[str, Tool] = {}
        self._lock = threading.RLock()

    def register(self, tool: Tool) -> None:
        with self._lock:
            if tool.name in self._tools:
                logger.info("Replacing registered tool", extra={"tool": tool.name})
            self._tools[tool.name] = tool

    def unregister(self, tool_name: str) -> bool:
        with self._lock:
            return self._tools.pop(tool_name, None) is not None

    def get(self, tool_name: str) -> Tool:
        with self._lock:
            tool = self._tools.get(tool_name)
        if tool is None:
            raise ToolNotFoundError(tool_name)
        return tool

    def has_all(self, tool_names: Iterable[str]) -> bool:
        with self._lock:
            return all(name in self._tools for name in tool_names)

    def list_tools(self) -> List[Tool]:
        with self._lock:
            return list(self._tools.values())

    def tool_names(self) -> List[str]:
        with self._lock:
            return list(self._tools.keys())

    def list_definitions(self) -> List[ToolDefinition]:
        return [tool.definition() for tool in self.list_tools()]

    def build_planning_schema(self) -> Dict[str, Any]:
        """Workflow schema constrained to the tools registered right now"""
        return build_workflow_schema(self.tool_names())


def build_default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(HttpRequestTool())
    return registry
