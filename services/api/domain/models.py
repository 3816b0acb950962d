"""API request/response models."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from shared.types import ValidationIssue


class CreateWorkflowResponse(BaseModel):
    execution_id: str
    workflow_id: str
    name: Optional[str] = None


class GenerateWorkflowRequest(BaseModel):
    """Natural-language task to plan into a workflow"""
    prompt: str = Field(..., min_length=1)


class GenerateWorkflowResponse(CreateWorkflowResponse):
    workflow: Dict[str, Any]


class TriggerWorkflowResponse(BaseModel):
    execution_id: str
    status: str
    message: str


class InvalidWorkflowDetail(BaseModel):
    message: str
    errors: List[ValidationIssue]
