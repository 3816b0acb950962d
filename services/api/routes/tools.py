"""Tool registry API routes."""

from typing import Any, Dict, List
from fastapi import APIRouter
from services.tools.registry import build_default_registry


router = APIRouter()
registry = build_default_registry()


@router.get("/tools")
async def list_tools() -> List[Dict[str, Any]]:
    return [definition.model_dump() for definition in registry.list_definitions()]


@router.get("/tools/schema")
async def get_planning_schema() -> Dict[str, Any]:
    """Workflow schema whose tool enum matches the registry right now"""
    return registry.build_planning_schema()
