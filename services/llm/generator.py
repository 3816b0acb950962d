"""Natural-language prompt to workflow, via a forced structured tool call."""

import logging
import uuid
from typing import Any, Dict, Optional

from services.llm.provider import LLMProvider
from services.parser.workflow_parser import WorkflowParser
from services.tools.registry import ToolRegistry
from shared.exceptions import WorkflowGenerationError
from shared.messages import LLMParameters, Message, ToolChoice, ToolDefinition
from shared.utils import decode_json_value
from shared.workflow import Workflow

logger = logging.getLogger(__name__)

SUBMIT_WORKFLOW_TOOL = "submit_workflow"

SYSTEM_PROMPT = (
    "You are a task planner. Break the user's request into a workflow of small, "
    "dependent steps. Each node's action may only use the listed tools. "
    "Submit the plan by calling the submit_workflow tool."
)


class WorkflowGenerator:

    def __init__(self, llm: LLMProvider, registry: ToolRegistry):
        self.llm = llm
        self.registry = registry

    def generate_document(self, prompt: str) -> Dict[str, Any]:
        tool_descriptions = "\n".join(
            f"- {definition.name}: {definition.description}" for definition in self.registry.list_definitions()
        ) or "- (no tools registered)"

        params = LLMParameters(
            temperature=0.2,
            tools=[ToolDefinition(
                name=SUBMIT_WORKFLOW_TOOL,
                description="Submit the planned workflow document",
                input_schema=self.registry.build_planning_schema(),
            )],
            tool_choice=ToolChoice(type="tool", name=SUBMIT_WORKFLOW_TOOL),
        )
        messages = [
            Message(role="system", content=f"{SYSTEM_PROMPT}\n\nAvailable tools:\n{tool_descriptions}"),
            Message(role="user", content=prompt),
        ]

        response = self.llm.generate_text(messages, params)

        document: Optional[Any] = None
        for tool_call in response.tool_calls:
            if tool_call.name == SUBMIT_WORKFLOW_TOOL:
                document = tool_call.input
                break
        if document is None and response.text_content:
            document = decode_json_value(response.text_content)

        if not isinstance(document, dict):
            raise WorkflowGenerationError("LLM did not return a workflow document")

        document.setdefault("id", str(uuid.uuid4()))
        document.setdefault("name", prompt[:60])
        return document

    def generate(self, prompt: str) -> Workflow:
        document = self.generate_document(prompt)
        logger.info("Workflow generated", extra={
            "workflow_id": document.get("id"),
            "node_count": len(document.get("nodes") or []),
        })
        return WorkflowParser.from_document(document)
