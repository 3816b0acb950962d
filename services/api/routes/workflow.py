"""Workflow API routes."""

from typing import Any, Dict
from fastapi import APIRouter, Body, HTTPException, status
from services.api.domain.models import (
    CreateWorkflowResponse,
    GenerateWorkflowRequest,
    GenerateWorkflowResponse,
    InvalidWorkflowDetail,
    TriggerWorkflowResponse,
)
from services.api.infra.redis_store import RedisStore
from services.api.infra.broker import BrokerClient
from services.api.routes.tools import registry
from services.llm.factory import provider_from_env
from services.llm.generator import WorkflowGenerator
from services.parser.workflow_parser import WorkflowParser
from shared.exceptions import LLMError, WorkflowError, WorkflowValidationError
from shared.types import WorkflowStatusResponse, WorkflowResultsResponse, WorkflowStatus
import logging
import uuid


router = APIRouter()
redis_store = RedisStore()
broker = BrokerClient()


@router.post("/workflow", response_model=CreateWorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(document: Dict[str, Any] = Body(...)):
    result = WorkflowParser.validate(document)
    if not result.valid:
        detail = InvalidWorkflowDetail(message="Invalid workflow", errors=result.errors)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail.model_dump(mode="json"))

    execution_id = str(uuid.uuid4())
    redis_store.store_document(execution_id, document)

    return CreateWorkflowResponse(execution_id=execution_id, workflow_id=document["id"], name=document.get("name"))


@router.post("/workflow/generate", response_model=GenerateWorkflowResponse, status_code=status.HTTP_201_CREATED)
def generate_workflow(request: GenerateWorkflowRequest):
    llm = provider_from_env()
    if llm is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="No LLM provider configured")

    try:
        workflow = WorkflowGenerator(llm, registry).generate(request.prompt)
    except WorkflowValidationError as e:
        detail = InvalidWorkflowDetail(message=str(e), errors=e.errors)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail.model_dump(mode="json"))
    except WorkflowError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except LLMError as e:
        logging.error("Workflow generation failed", extra={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    document = WorkflowParser.to_document(workflow)
    execution_id = str(uuid.uuid4())
    redis_store.store_document(execution_id, document)

    return GenerateWorkflowResponse(
        execution_id=execution_id,
        workflow_id=workflow.id,
        name=workflow.name,
        workflow=document,
    )


@router.post("/workflow/trigger/{execution_id}", response_model=TriggerWorkflowResponse)
async def trigger_workflow(execution_id: str):
    document = redis_store.get_document(execution_id)
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail=f"Workflow {execution_id} not found")

    meta = redis_store.get_workflow_meta(execution_id)

    # Handle re-triggering based on current workflow state
    if meta:
        workflow_status = meta.get("status")

        if workflow_status == WorkflowStatus.RUNNING.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Workflow is already running. Cannot trigger again."
            )

        if workflow_status == WorkflowStatus.COMPLETED.value:
            return TriggerWorkflowResponse(
                execution_id=execution_id,
                status="ALREADY_COMPLETED",
                message=f"Workflow already completed successfully. All {meta.get('completed_nodes', 0)} node(s) completed. Use '/workflows/{execution_id}/results' to fetch results."
            )

        if workflow_status == WorkflowStatus.FAILED.value:
            broker.trigger_execution(execution_id)
            return TriggerWorkflowResponse(
                execution_id=execution_id,
                status="RETRYING",
                message=f"Re-running workflow after failure at node {meta.get('failed_node')}."
            )

    broker.trigger_execution(execution_id)
    return TriggerWorkflowResponse(execution_id=execution_id, status="TRIGGERED",
                                   message="Workflow execution initiated")


@router.get("/workflows/{execution_id}", response_model=WorkflowStatusResponse)
async def get_workflow_status(execution_id: str):
    meta = redis_store.get_workflow_meta(execution_id)

    # If meta doesn't exist, check if the workflow was stored
    if not meta:
        document = redis_store.get_document(execution_id)
        if not document:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                                detail=f"Workflow {execution_id} not found")

        # Stored but not yet started - return PENDING status
        return WorkflowStatusResponse(
            execution_id=execution_id,
            status=WorkflowStatus.PENDING,
            total_nodes=len(document.get("nodes", [])),
            completed_nodes=0,
            node_states={},
            error=None,
            failed_node=None
        )

    return WorkflowStatusResponse(
        execution_id=execution_id,
        status=WorkflowStatus(meta["status"]),
        total_nodes=meta.get("total_nodes", 0),
        completed_nodes=meta.get("completed_nodes", 0),
        node_states=redis_store.get_node_states(execution_id),
        error=meta.get("error"),
        failed_node=meta.get("failed_node")
    )


@router.get("/workflows/{execution_id}/results", response_model=WorkflowResultsResponse)
async def get_workflow_results(execution_id: str):
    meta = redis_store.get_workflow_meta(execution_id)
    if not meta:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail=f"Workflow {execution_id} not found")

    return WorkflowResultsResponse(
        execution_id=execution_id,
        status=WorkflowStatus(meta["status"]),
        outputs=redis_store.get_outputs(execution_id),
        variables=redis_store.get_variables(execution_id)
    )
