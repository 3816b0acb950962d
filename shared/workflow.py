"""Runtime workflow model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from shared.constants import DEFAULT_ACTION_MAX_TOKENS
from shared.messages import LLMParameters


class ActionType(str, Enum):
    PROMPT = "prompt"
    SCRIPT = "script"
    HYBRID = "hybrid"


@dataclass
class WorkflowConfig:
    log_level: str = "info"
    include_timestamp: bool = True


@dataclass
class NodeOutput:
    name: str
    description: str = ""
    value: Any = None


@dataclass
class Action:
    type: ActionType
    name: str
    description: str = ""
    tools: List[str] = field(default_factory=list)
    llm: Optional[Any] = None  # bound LLMProvider, injected by the engine when absent
    params: LLMParameters = field(default_factory=lambda: LLMParameters(max_tokens=DEFAULT_ACTION_MAX_TOKENS))


@dataclass
class WorkflowNode:
    id: str
    name: str
    action: Action
    description: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    input: Dict[str, Any] = field(default_factory=dict)
    output: Optional[NodeOutput] = None

    def __post_init__(self):
        if self.output is None:
            self.output = NodeOutput(
                name=f"{self.name}_output",
                description=f"Output of node {self.name}",
            )


@dataclass
class Workflow:
    id: str
    name: str
    description: Optional[str] = None
    nodes: List[WorkflowNode] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    config: WorkflowConfig = field(default_factory=WorkflowConfig)

    def add_node(self, node: WorkflowNode) -> None:
        if any(existing.id == node.id for existing in self.nodes):
            raise ValueError(f"Duplicate node id: {node.id}")
        self.nodes.append(node)

    def get_node(self, node_id: str) -> WorkflowNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(f"Node {node_id} not found in workflow {self.id}")
