"""JSON schema for workflow documents, specialised per call with live tool names."""

import copy
from typing import Any, Dict, Iterable

from shared.constants import ACTION_TYPES


WORKFLOW_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "name", "nodes"],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "description": {"type": "string"},
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "action"],
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "dependencies": {
                        "type": "array",
                        "items": {"type": "string"},
                    },
                    "input": {
                        "type": "object",
                        "description": "Named values consumed by the node; strings may reference "
                                       "variables or earlier outputs as {{ name }}",
                    },
                    "action": {
                        "type": "object",
                        "required": ["type", "name"],
                        "properties": {
                            "type": {"type": "string", "enum": list(ACTION_TYPES)},
                            "name": {"type": "string"},
                            "description": {"type": "string"},
                            "tools": {
                                "type": "array",
                                "items": {"type": "string"},
                            },
                        },
                    },
                    "output": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "description": {"type": "string"},
                        },
                    },
                },
            },
        },
        "variables": {"type": "object"},
    },
}


def build_workflow_schema(tool_names: Iterable[str]) -> Dict[str, Any]:
    """Returns a fresh copy of the workflow schema with action tools limited to tool_names"""
    schema = copy.deepcopy(WORKFLOW_SCHEMA)
    action_properties = schema["properties"]["nodes"]["items"]["properties"]["action"]["properties"]
    action_properties["tools"] = {
        "type": "array",
        "items": {"type": "string", "enum": list(tool_names)},
    }
    return schema
