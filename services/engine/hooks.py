"""Lifecycle hooks fired by the execution engine."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class WorkflowHooks:
    """Optional callbacks; unset hooks are skipped.

    before_tool_use and after_tool_use may return a replacement for the
    input or result they receive; returning None keeps the original.
    """
    before_workflow: Optional[Callable[[Any], None]] = None
    before_subtask: Optional[Callable[[Any, Any], None]] = None
    before_tool_use: Optional[Callable[[Any, Any, Dict[str, Any]], Optional[Dict[str, Any]]]] = None
    after_tool_use: Optional[Callable[[Any, Any, Any], Any]] = None
    after_subtask: Optional[Callable[[Any, Any, Any], None]] = None
    after_workflow: Optional[Callable[[Any, Dict[str, Any]], None]] = None

    def fire_before_workflow(self, workflow) -> None:
        if self.before_workflow:
            self.before_workflow(workflow)

    def fire_before_subtask(self, node, context) -> None:
        if self.before_subtask:
            self.before_subtask(node, context)

    def fire_before_tool_use(self, tool, context, tool_input: Dict[str, Any]) -> Dict[str, Any]:
        if self.before_tool_use:
            replaced = self.before_tool_use(tool, context, tool_input)
            if replaced is not None:
                return replaced
        return tool_input

    def fire_after_tool_use(self, tool, context, result: Any) -> Any:
        if self.after_tool_use:
            replaced = self.after_tool_use(tool, context, result)
            if replaced is not None:
                return replaced
        return result

    def fire_after_subtask(self, node, context, result) -> None:
        if self.after_subtask:
            self.after_subtask(node, context, result)

    def fire_after_workflow(self, workflow, variables: Dict[str, Any]) -> None:
        if self.after_workflow:
            self.after_workflow(workflow, variables)


def combine_hooks(*hook_sets: Optional[WorkflowHooks]) -> WorkflowHooks:
    """Chains several hook sets in order; rewrites from one feed into the next"""
    active = [hooks for hooks in hook_sets if hooks is not None]

    def before_workflow(workflow):
        for hooks in active:
            hooks.fire_before_workflow(workflow)

    def before_subtask(node, context):
        for hooks in active:
            hooks.fire_before_subtask(node, context)

    def before_tool_use(tool, context, tool_input):
        for hooks in active:
            tool_input = hooks.fire_before_tool_use(tool, context, tool_input)
        return tool_input

    def after_tool_use(tool, context, result):
        for hooks in active:
            result = hooks.fire_after_tool_use(tool, context, result)
        return result

    def after_subtask(node, context, result):
        for hooks in active:
            hooks.fire_after_subtask(node, context, result)

    def after_workflow(workflow, variables):
        for hooks in active:
            hooks.fire_after_workflow(workflow, variables)

    return WorkflowHooks(
        before_workflow=before_workflow,
        before_subtask=before_subtask,
        before_tool_use=before_tool_use,
        after_tool_use=after_tool_use,
        after_subtask=after_subtask,
        after_workflow=after_workflow,
    )
