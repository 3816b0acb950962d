"""Workflow document validation, parsing and serialization."""

import json
import logging
from collections import deque
from typing import Any, Dict, List, Optional, Set

from shared.constants import (
    ACTION_TYPES,
    DEFAULT_ACTION_MAX_TOKENS,
    MAX_NODES_PER_WORKFLOW,
    REQUIRED_WORKFLOW_FIELDS,
    WORKFLOW_DOCUMENT_VERSION,
    WRITE_CONTEXT_TOOL_NAME,
)
from shared.exceptions import ParseError, WorkflowValidationError
from shared.messages import LLMParameters
from shared.types import ValidationErrorType, ValidationIssue, ValidationResult
from shared.workflow import (
    Action,
    ActionType,
    NodeOutput,
    Workflow,
    WorkflowConfig,
    WorkflowNode,
)

logger = logging.getLogger(__name__)


class WorkflowParser:
    """Converts between wire JSON documents and the runtime Workflow model"""

    @classmethod
    def parse(cls, text: str, config: Optional[WorkflowConfig] = None) -> Workflow:
        """Parses JSON text into a runtime Workflow.

        Raises ParseError if the text is not JSON and WorkflowValidationError
        listing every problem if the document is invalid.
        """
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}") from e

        return cls.from_document(document, config)

    @classmethod
    def from_document(cls, document: Any, config: Optional[WorkflowConfig] = None) -> Workflow:
        result = cls.validate(document)
        if not result.valid:
            messages = ", ".join(error.message for error in result.errors)
            logger.info("Workflow document rejected", extra={"error_count": len(result.errors)})
            raise WorkflowValidationError(f"Invalid workflow: {messages}", errors=result.errors)

        return cls._to_runtime(document, config)

    @classmethod
    def serialize(cls, workflow: Workflow) -> str:
        return json.dumps(cls.to_document(workflow), indent=2, default=str)

    @classmethod
    def validate(cls, document: Any) -> ValidationResult:
        """Collects every structural, type and reference problem in the document"""
        errors: List[ValidationIssue] = []

        if not isinstance(document, dict):
            errors.append(_issue(ValidationErrorType.SCHEMA, "Workflow must be an object"))
            return ValidationResult(valid=False, errors=errors)

        for field in REQUIRED_WORKFLOW_FIELDS:
            if field not in document:
                errors.append(_issue(
                    ValidationErrorType.SCHEMA, f"Missing required field: {field}", f"/{field}"
                ))

        variables = document.get("variables")
        if variables is not None and not isinstance(variables, dict):
            errors.append(_issue(ValidationErrorType.TYPE, "Variables must be an object", "/variables"))

        nodes = document.get("nodes")
        if "nodes" in document and not isinstance(nodes, list):
            errors.append(_issue(ValidationErrorType.TYPE, "Nodes must be an array", "/nodes"))
        elif isinstance(nodes, list) and len(nodes) > MAX_NODES_PER_WORKFLOW:
            errors.append(_issue(
                ValidationErrorType.SCHEMA, f"Workflow exceeds maximum of {MAX_NODES_PER_WORKFLOW} nodes", "/nodes"
            ))

        if isinstance(nodes, list):
            node_ids = cls._validate_nodes(nodes, errors)
            cls._validate_references(nodes, node_ids, errors)
            if not errors:
                cls._validate_acyclic(nodes, errors)

        return ValidationResult(valid=not errors, errors=errors)

    @staticmethod
    def _validate_nodes(nodes: List[Any], errors: List[ValidationIssue]) -> Set[str]:
        node_ids: Set[str] = set()

        for index, node in enumerate(nodes):
            if not isinstance(node, dict):
                errors.append(_issue(
                    ValidationErrorType.SCHEMA, f"Node at index {index} must be an object", f"/nodes/{index}"
                ))
                continue

            node_id = node.get("id")
            if not node_id:
                errors.append(_issue(
                    ValidationErrorType.SCHEMA, f"Node at index {index} missing id", f"/nodes/{index}/id"
                ))
            elif not isinstance(node_id, str):
                errors.append(_issue(
                    ValidationErrorType.TYPE, f"Node id at index {index} must be a string", f"/nodes/{index}/id"
                ))
            else:
                if node_id in node_ids:
                    errors.append(_issue(
                        ValidationErrorType.REFERENCE, f"Duplicate node id: {node_id}", f"/nodes/{index}/id"
                    ))
                node_ids.add(node_id)

            if "dependencies" in node and node["dependencies"] is not None:
                dependencies = node["dependencies"]
                if not isinstance(dependencies, list):
                    errors.append(_issue(
                        ValidationErrorType.TYPE,
                        f"Dependencies must be an array for node {node_id}",
                        f"/nodes/{index}/dependencies",
                    ))
                elif any(not isinstance(dep_id, str) for dep_id in dependencies):
                    errors.append(_issue(
                        ValidationErrorType.TYPE,
                        f"Dependency id must be a string in node {node_id}",
                        f"/nodes/{index}/dependencies",
                    ))

            if node.get("input") is not None and not isinstance(node["input"], dict):
                errors.append(_issue(
                    ValidationErrorType.TYPE, f"Input must be an object for node {node_id}", f"/nodes/{index}/input"
                ))

            action = node.get("action")
            if not action:
                errors.append(_issue(
                    ValidationErrorType.SCHEMA, f"Node {node_id} missing action", f"/nodes/{index}/action"
                ))
            elif not isinstance(action, dict):
                errors.append(_issue(
                    ValidationErrorType.TYPE, f"Action must be an object for node {node_id}", f"/nodes/{index}/action"
                ))
            else:
                if action.get("type") not in ACTION_TYPES:
                    errors.append(_issue(
                        ValidationErrorType.TYPE,
                        f"Invalid action type for node {node_id}",
                        f"/nodes/{index}/action/type",
                    ))
                tools = action.get("tools")
                if tools is not None and (
                    not isinstance(tools, list) or any(not isinstance(tool, str) for tool in tools)
                ):
                    errors.append(_issue(
                        ValidationErrorType.TYPE,
                        f"Action tools must be an array of strings for node {node_id}",
                        f"/nodes/{index}/action/tools",
                    ))

        return node_ids

    @staticmethod
    def _validate_references(nodes: List[Any], node_ids: Set[str], errors: List[ValidationIssue]) -> None:
        for index, node in enumerate(nodes):
            if not isinstance(node, dict) or not isinstance(node.get("dependencies"), list):
                continue
            for dep_id in node["dependencies"]:
                if isinstance(dep_id, str) and dep_id not in node_ids:
                    errors.append(_issue(
                        ValidationErrorType.REFERENCE,
                        f"Node {node.get('id')} references non-existent dependency: {dep_id}",
                        f"/nodes/{index}/dependencies",
                    ))

    @staticmethod
    def _validate_acyclic(nodes: List[Dict[str, Any]], errors: List[ValidationIssue]) -> None:
        """Kahn's algorithm; whatever is left unprocessed sits on or behind a cycle"""
        in_degree = {node["id"]: 0 for node in nodes}
        children: Dict[str, List[str]] = {node["id"]: [] for node in nodes}
        for node in nodes:
            for dep_id in node.get("dependencies") or []:
                children[dep_id].append(node["id"])
                in_degree[node["id"]] += 1

        queue = deque([nid for nid, deg in in_degree.items() if deg == 0])
        processed = 0
        while queue:
            node_id = queue.popleft()
            processed += 1
            for child in children[node_id]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)

        if processed != len(in_degree):
            blocked = [nid for nid, deg in in_degree.items() if deg > 0]
            errors.append(_issue(
                ValidationErrorType.CYCLE,
                f"Workflow dependencies contain a cycle involving nodes: {', '.join(blocked)}",
                "/nodes",
            ))

    @staticmethod
    def _to_runtime(document: Dict[str, Any], config: Optional[WorkflowConfig]) -> Workflow:
        workflow = Workflow(
            id=document["id"],
            name=document["name"],
            description=document.get("description"),
            variables=dict(document.get("variables") or {}),
            config=config or WorkflowConfig(),
        )

        for node_doc in document["nodes"]:
            action_doc = node_doc["action"]
            name = node_doc.get("name") or node_doc["id"]
            # Tools stay as names; they are resolved against the registry at execution time
            action = Action(
                type=ActionType(action_doc["type"]),
                name=action_doc.get("name") or name,
                description=action_doc.get("description", ""),
                tools=list(action_doc.get("tools") or []),
                llm=None,
                params=LLMParameters(max_tokens=DEFAULT_ACTION_MAX_TOKENS),
            )

            output_doc = node_doc.get("output")
            if isinstance(output_doc, dict):
                output = NodeOutput(
                    name=output_doc.get("name") or f"{name}_output",
                    description=output_doc.get("description", ""),
                    value=output_doc.get("value"),
                )
            else:
                output = NodeOutput(name=f"{name}_output", description=f"Output of node {name}")

            input_doc = node_doc.get("input")
            workflow.add_node(WorkflowNode(
                id=node_doc["id"],
                name=name,
                description=node_doc.get("description"),
                dependencies=list(node_doc.get("dependencies") or []),
                input=dict(input_doc) if isinstance(input_doc, dict) else {},
                output=output,
                action=action,
            ))

        return workflow

    @staticmethod
    def to_document(workflow: Workflow) -> Dict[str, Any]:
        nodes = []
        for node in workflow.nodes:
            node_doc: Dict[str, Any] = {
                "id": node.id,
                "name": node.name,
                "description": node.description,
                "dependencies": list(node.dependencies),
                "output": {
                    "name": node.output.name,
                    "description": node.output.description,
                    "value": node.output.value,
                },
                "action": {
                    "type": node.action.type.value,
                    "name": node.action.name,
                    "description": node.action.description,
                    "tools": [
                        tool if isinstance(tool, str) else tool.name
                        for tool in node.action.tools
                        if (tool if isinstance(tool, str) else tool.name) != WRITE_CONTEXT_TOOL_NAME
                    ],
                },
            }
            if node.input:
                node_doc["input"] = dict(node.input)
            nodes.append(node_doc)

        return {
            "version": WORKFLOW_DOCUMENT_VERSION,
            "id": workflow.id,
            "name": workflow.name,
            "description": workflow.description,
            "nodes": nodes,
            "variables": dict(workflow.variables),
        }


def _issue(error_type: ValidationErrorType, message: str, path: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(type=error_type, message=message, path=path)
