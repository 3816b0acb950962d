"""Execution context handed to hooks and tools."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shared.messages import Message
from shared.workflow import Workflow, WorkflowNode


@dataclass
class ExecutionContext:
    workflow: Workflow
    node: WorkflowNode
    registry: Any
    llm: Optional[Any] = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    messages: List[Message] = field(default_factory=list)

    @property
    def variables(self) -> Dict[str, Any]:
        """The workflow's shared variable bag (live, not a copy)"""
        return self.workflow.variables
