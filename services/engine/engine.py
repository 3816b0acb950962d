"""Execution engine: walks a workflow in dependency order and drives each node's action."""

import json
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from services.engine.context import ExecutionContext
from services.engine.hooks import WorkflowHooks, combine_hooks
from services.engine.retry_handler import RetryHandler
from services.engine.template import TemplateResolver
from services.llm.provider import LLMProvider, collect_stream
from services.tools.base import Tool
from services.tools.builtin import WriteContextTool
from services.tools.registry import ToolRegistry
from shared.constants import MAX_TOOL_ITERATIONS, WRITE_CONTEXT_TOOL_NAME
from shared.exceptions import (
    CycleDetectedError,
    NodeExecutionError,
    ToolNotFoundError,
    WorkflowValidationError,
)
from shared.logging_config import resolve_log_level, set_workflow_id
from shared.messages import (
    ImageBlock,
    ImageSource,
    LLMParameters,
    LLMResponse,
    Message,
    TextBlock,
    ToolChoice,
    ToolResultBlock,
)
from shared.types import ExecutionResult, NodeState, WorkflowStatus
from shared.workflow import ActionType, Workflow, WorkflowNode

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an automation agent executing one step of the workflow \"{name}\".\n"
    "{description}\n"
    "Use the available tools when the step needs them. Call write_context to save any "
    "value that later steps will need. When the step is done, reply with its result only."
)


class ExecutionEngine:
    """Runs workflows node by node.

    Nodes run sequentially in topological order (ties keep document order),
    so hooks are observed in an order consistent with the dependencies.
    Failure policy is fail-fast: the first node that fails (after retries)
    is marked FAILED, its descendants are marked FAILED, and no further
    nodes are started.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        llm: Optional[LLMProvider] = None,
        hooks: Optional[WorkflowHooks] = None,
        retry_handler: Optional[RetryHandler] = None,
        stream: bool = False,
        max_tool_iterations: int = MAX_TOOL_ITERATIONS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.registry = registry
        self.llm = llm
        self.hooks = hooks
        self.retry_handler = retry_handler or RetryHandler()
        self.stream = stream
        self.max_tool_iterations = max_tool_iterations
        self.sleep = sleep
        self.template_resolver = TemplateResolver()
        self.write_context_tool = WriteContextTool()

    def execute(self, workflow: Workflow, hooks: Optional[WorkflowHooks] = None) -> ExecutionResult:
        order = self.execution_order(workflow)
        hooks = combine_hooks(self.hooks, hooks)

        set_workflow_id(workflow.id)
        previous_level = logger.level
        logger.setLevel(resolve_log_level(workflow.config.log_level))

        node_states = {node.id: NodeState.PENDING for node in workflow.nodes}
        outputs: Dict[str, Any] = {}
        result = ExecutionResult(workflow_id=workflow.id, status=WorkflowStatus.RUNNING)
        if workflow.config.include_timestamp:
            result.started_at = datetime.now(timezone.utc).isoformat()

        logger.info("Workflow execution started", extra={
            "workflow_id": workflow.id,
            "total_nodes": len(workflow.nodes),
        })

        try:
            hooks.fire_before_workflow(workflow)

            missing_node, missing_tools = self._find_missing_tools(workflow, order)
            if missing_tools:
                self._mark_node_failed(workflow, missing_node, node_states)
                result.status = WorkflowStatus.FAILED
                result.error = f"Workflow references unregistered tools: {', '.join(missing_tools)}"
                result.failed_node = missing_node
                logger.error("Workflow references unregistered tools", extra={
                    "workflow_id": workflow.id,
                    "node_id": missing_node,
                    "tools": missing_tools,
                })
                order = []

            for node_id in order:
                if node_states[node_id] != NodeState.PENDING:
                    continue

                node = workflow.get_node(node_id)
                node_states[node_id] = NodeState.RUNNING
                try:
                    self._run_node(workflow, node, hooks, outputs)
                except Exception as e:
                    self._mark_node_failed(workflow, node_id, node_states)
                    result.status = WorkflowStatus.FAILED
                    result.error = str(e)
                    result.failed_node = node_id
                    logger.error("Node failed", extra={
                        "workflow_id": workflow.id,
                        "node_id": node_id,
                        "error": str(e),
                        "error_class": type(e).__name__,
                    })
                    break

                node_states[node_id] = NodeState.COMPLETED

            if result.status != WorkflowStatus.FAILED:
                result.status = WorkflowStatus.COMPLETED
        finally:
            result.node_states = dict(node_states)
            result.outputs = dict(outputs)
            result.variables = dict(workflow.variables)
            if workflow.config.include_timestamp:
                result.finished_at = datetime.now(timezone.utc).isoformat()
            try:
                hooks.fire_after_workflow(workflow, workflow.variables)
            finally:
                logger.setLevel(previous_level)

        logger.info("Workflow execution finished", extra={
            "workflow_id": workflow.id,
            "status": result.status.value,
            "completed_nodes": sum(1 for s in node_states.values() if s == NodeState.COMPLETED),
        })
        return result

    @staticmethod
    def execution_order(workflow: Workflow) -> List[str]:
        """Topological order of node ids; document order breaks ties"""
        node_ids = [node.id for node in workflow.nodes]
        known = set(node_ids)
        in_degree = {node_id: 0 for node_id in node_ids}
        children: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}

        for node in workflow.nodes:
            for dep_id in node.dependencies:
                if dep_id not in known:
                    raise WorkflowValidationError(
                        f"Node {node.id} references non-existent dependency: {dep_id}",
                        workflow_id=workflow.id,
                    )
                children[dep_id].append(node.id)
                in_degree[node.id] += 1

        position = {node_id: index for index, node_id in enumerate(node_ids)}
        ready = deque(node_id for node_id in node_ids if in_degree[node_id] == 0)
        order: List[str] = []
        while ready:
            node_id = ready.popleft()
            order.append(node_id)
            released = []
            for child in children[node_id]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    released.append(child)
            ready.extend(sorted(released, key=position.get))
            ready = deque(sorted(ready, key=position.get))

        if len(order) != len(node_ids):
            raise CycleDetectedError("Workflow dependencies contain a cycle", workflow_id=workflow.id)
        return order

    def _run_node(
        self,
        workflow: Workflow,
        node: WorkflowNode,
        hooks: WorkflowHooks,
        outputs: Dict[str, Any],
    ) -> Any:
        context = ExecutionContext(
            workflow=workflow,
            node=node,
            registry=self.registry,
            llm=node.action.llm or self.llm,
            outputs=outputs,
        )

        logger.info("Starting node", extra={
            "workflow_id": workflow.id,
            "node_id": node.id,
            "action_type": node.action.type.value,
        })
        hooks.fire_before_subtask(node, context)

        retry_count = 0
        while True:
            try:
                value = self._run_action(node, context, hooks)
                break
            except Exception as e:
                should_retry, delay = self.retry_handler.should_retry(node.id, e, retry_count)
                if not should_retry:
                    raise
                retry_count += 1
                self.sleep(delay)

        node.output.value = value
        workflow.variables[node.output.name] = value
        outputs[node.id] = value

        hooks.fire_after_subtask(node, context, value)
        logger.info("Node completed", extra={"workflow_id": workflow.id, "node_id": node.id})
        return value

    def _run_action(self, node: WorkflowNode, context: ExecutionContext, hooks: WorkflowHooks) -> Any:
        inputs = self.template_resolver.resolve(node.input, self._template_context(context))
        action_type = node.action.type

        if action_type == ActionType.SCRIPT:
            script_results = self._run_script(node, context, hooks, inputs)
            return script_results[-1][1] if script_results else inputs

        if action_type == ActionType.HYBRID:
            script_results = self._run_script(node, context, hooks, inputs)
            return self._run_prompt(node, context, hooks, inputs, script_results)

        return self._run_prompt(node, context, hooks, inputs, [])

    def _run_script(
        self,
        node: WorkflowNode,
        context: ExecutionContext,
        hooks: WorkflowHooks,
        inputs: Dict[str, Any],
    ) -> List[Tuple[str, Any]]:
        results = []
        for tool_name in node.action.tools:
            tool = self._resolve_tool(tool_name)
            results.append((tool_name, self._invoke_tool(tool, context, dict(inputs), hooks)))
        return results

    def _run_prompt(
        self,
        node: WorkflowNode,
        context: ExecutionContext,
        hooks: WorkflowHooks,
        inputs: Dict[str, Any],
        script_results: List[Tuple[str, Any]],
    ) -> Optional[str]:
        if context.llm is None:
            raise NodeExecutionError(
                f"No LLM provider available for node {node.id}",
                workflow_id=context.workflow.id,
            )

        tools: Dict[str, Tool] = {
            name: self._resolve_tool(name) for name in node.action.tools if name != WRITE_CONTEXT_TOOL_NAME
        }
        tools[WRITE_CONTEXT_TOOL_NAME] = self.write_context_tool

        params = node.action.params.model_copy(update={
            "tools": [tool.definition() for tool in tools.values()],
            "tool_choice": ToolChoice(type="auto"),
        })
        context.messages = [
            Message(role="system", content=SYSTEM_PROMPT.format(
                name=context.workflow.name,
                description=context.workflow.description or "",
            )),
            Message(role="user", content=self._task_prompt(node, context, inputs, script_results)),
        ]

        for _ in range(self.max_tool_iterations):
            response = self._call_llm(context.llm, context.messages, params)
            if not response.tool_calls:
                return response.text_content

            context.messages.append(Message(role="assistant", content=response.content))
            result_blocks = []
            for tool_call in response.tool_calls:
                tool = tools.get(tool_call.name)
                if tool is None:
                    raise ToolNotFoundError(tool_call.name)
                tool_result = self._invoke_tool(tool, context, tool_call.input, hooks)
                result_blocks.append(ToolResultBlock(
                    tool_use_id=tool_call.id,
                    content=to_tool_result_content(tool_result),
                ))
            context.messages.append(Message(role="user", content=result_blocks))

        raise NodeExecutionError(
            f"Node {node.id} exceeded {self.max_tool_iterations} tool iterations",
            workflow_id=context.workflow.id,
        )

    def _call_llm(self, llm: LLMProvider, messages: List[Message], params: LLMParameters) -> LLMResponse:
        if self.stream:
            return collect_stream(llm, messages, params)
        return llm.generate_text(messages, params)

    def _find_missing_tools(self, workflow: Workflow, order: List[str]) -> Tuple[Optional[str], List[str]]:
        """Declared tools absent from the registry, with the first node (in run order) declaring one"""
        declared = {
            node.id: [name for name in node.action.tools if name != WRITE_CONTEXT_TOOL_NAME]
            for node in workflow.nodes
        }
        if self.registry.has_all(name for names in declared.values() for name in names):
            return None, []

        registered = set(self.registry.tool_names())
        first_node = None
        missing: List[str] = []
        for node_id in order:
            for name in declared[node_id]:
                if name not in registered and name not in missing:
                    first_node = first_node or node_id
                    missing.append(name)
        return first_node, missing

    def _resolve_tool(self, tool_name: str) -> Tool:
        if tool_name == WRITE_CONTEXT_TOOL_NAME:
            return self.write_context_tool
        return self.registry.get(tool_name)

    def _invoke_tool(self, tool: Tool, context: ExecutionContext, tool_input: Dict[str, Any], hooks: WorkflowHooks) -> Any:
        tool_input = hooks.fire_before_tool_use(tool, context, tool_input)
        logger.info("Invoking tool", extra={"node_id": context.node.id, "tool": tool.name})
        tool_result = tool.execute(context, tool_input)
        return hooks.fire_after_tool_use(tool, context, tool_result)

    def _task_prompt(
        self,
        node: WorkflowNode,
        context: ExecutionContext,
        inputs: Dict[str, Any],
        script_results: List[Tuple[str, Any]],
    ) -> str:
        template_context = self._template_context(context)
        sections = [f"Step: {node.name}"]
        if node.description:
            sections.append(self.template_resolver.render_text(node.description, template_context))
        if node.action.description:
            sections.append(
                "Task: " + self.template_resolver.render_text(node.action.description, template_context)
            )
        if inputs:
            sections.append("Input:\n" + json.dumps(inputs, indent=2, default=str))
        if script_results:
            sections.append("Tool results:\n" + "\n".join(
                f"- {name}: {json.dumps(value, default=str)}" for name, value in script_results
            ))
        if context.variables:
            sections.append("Workflow context:\n" + json.dumps(context.variables, indent=2, default=str))
        sections.append(f"Expected output: {node.output.description or node.output.name}")
        return "\n\n".join(sections)

    @staticmethod
    def _template_context(context: ExecutionContext) -> Dict[str, Any]:
        template_context = dict(context.variables)
        template_context["nodes"] = dict(context.outputs)
        for node_id, value in context.outputs.items():
            if node_id.isidentifier() and node_id not in template_context:
                template_context[node_id] = value
        return template_context

    def _mark_node_failed(self, workflow: Workflow, failed_node_id: str, node_states: Dict[str, NodeState]) -> None:
        """Marks the node as failed and propagates failure to every downstream node (BFS)"""
        node_states[failed_node_id] = NodeState.FAILED
        children: Dict[str, List[str]] = {node.id: [] for node in workflow.nodes}
        for node in workflow.nodes:
            for dep_id in node.dependencies:
                children[dep_id].append(node.id)

        queue = deque([failed_node_id])
        visited = set()
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            for child_id in children[current]:
                if node_states[child_id] == NodeState.PENDING:
                    node_states[child_id] = NodeState.FAILED
                    queue.append(child_id)


def to_tool_result_content(result: Any) -> Any:
    """Converts a tool result into tool_result content; image payloads become image blocks"""
    if isinstance(result, str):
        return result

    if isinstance(result, dict) and isinstance(result.get("image"), dict):
        image = result["image"]
        if image.get("data") and image.get("media_type"):
            blocks: List[Any] = [ImageBlock(source=ImageSource(
                media_type=image["media_type"],
                data=image["data"],
            ))]
            rest = {key: value for key, value in result.items() if key != "image"}
            if rest:
                blocks.append(TextBlock(text=json.dumps(rest, default=str)))
            return blocks

    return json.dumps(result, default=str)
