"""Shared types for API, Engine, and Worker services."""

from enum import Enum
from typing import Dict, List, Any, Optional
from pydantic import BaseModel, Field


class NodeState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class WorkflowStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ValidationErrorType(str, Enum):
    SCHEMA = "schema"
    TYPE = "type"
    REFERENCE = "reference"
    CYCLE = "cycle"


class ValidationIssue(BaseModel):
    type: ValidationErrorType
    message: str
    path: Optional[str] = None


class ValidationResult(BaseModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)


class ExecutionResult(BaseModel):
    """Outcome of one engine run over a workflow"""
    workflow_id: str
    status: WorkflowStatus
    node_states: Dict[str, NodeState] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    failed_node: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None


class WorkflowStatusResponse(BaseModel):
    execution_id: str
    status: WorkflowStatus
    total_nodes: int
    completed_nodes: int
    node_states: Dict[str, str]
    error: Optional[str] = None
    failed_node: Optional[str] = None


class WorkflowResultsResponse(BaseModel):
    execution_id: str
    status: WorkflowStatus
    outputs: Dict[str, Any]
    variables: Dict[str, Any] = Field(default_factory=dict)
