"""Reassembly of chat-completion streams into a canonical response.

The wire stream is line oriented: each line is an optionally ``data: ``
prefixed JSON event, blank and ``:`` comment lines are keep-alives, and a
``[DONE]`` line terminates the stream. Tool-call arguments arrive as a JSON
string split over many deltas and are only parsed once a finish_reason
closes the call.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from services.llm.provider import LLMStreamHandler
from shared.constants import STREAM_DATA_PREFIX, STREAM_DONE_SENTINEL
from shared.exceptions import MalformedToolCallError
from shared.messages import LLMResponse, ToolCall, build_response_content

logger = logging.getLogger(__name__)


@dataclass
class PartialToolUse:
    id: str
    name: str
    accumulated_json: str


def parse_tool_arguments(tool_name: str, arguments: Any) -> Dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    if arguments is None or not str(arguments).strip():
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        raise MalformedToolCallError(tool_name, arguments)
    if not isinstance(parsed, dict):
        raise MalformedToolCallError(tool_name, arguments)
    return parsed


class StreamAccumulator:
    """State machine fed one decoded line at a time"""

    def __init__(self, handler: Optional[LLMStreamHandler] = None):
        self.handler = handler or LLMStreamHandler()
        self.text_content: Optional[str] = None
        self.tool_calls: List[ToolCall] = []
        self.stop_reason: Optional[str] = None
        self.current_tool_use: Optional[PartialToolUse] = None
        self.done = False

    def feed_lines(self, lines: Iterable[Any]) -> None:
        for line in lines:
            if self.done:
                break
            self.feed_line(line)

    def feed_line(self, raw_line: Any) -> None:
        if isinstance(raw_line, bytes):
            raw_line = raw_line.decode("utf-8", errors="replace")
        line = (raw_line or "").strip()

        if not line or line.startswith(":"):
            return
        if line in (STREAM_DONE_SENTINEL, STREAM_DATA_PREFIX + STREAM_DONE_SENTINEL):
            self.done = True
            return

        json_str = line[len(STREAM_DATA_PREFIX):] if line.startswith(STREAM_DATA_PREFIX) else line
        try:
            event = json.loads(json_str)
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable stream line", extra={"line": line[:200]})
            return

        if not isinstance(event, dict):
            return
        for choice in event.get("choices") or []:
            if isinstance(choice, dict):
                self._process_choice(choice)

    def _process_choice(self, choice: Dict[str, Any]) -> None:
        delta = choice.get("delta") or {}

        text = delta.get("content")
        if text:
            self.text_content = (self.text_content or "") + text
            self.handler.content(text)

        tool_call_deltas = delta.get("tool_calls")
        if tool_call_deltas:
            self._merge_tool_call(tool_call_deltas[0])

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            self.stop_reason = finish_reason
            self._finalize_tool_call()

    def _merge_tool_call(self, tool_call: Dict[str, Any]) -> None:
        function = tool_call.get("function") or {}
        if self.current_tool_use is None:
            self.current_tool_use = PartialToolUse(
                id=tool_call.get("id") or "",
                name=function.get("name") or "",
                accumulated_json=function.get("arguments") or "",
            )
            return

        if tool_call.get("id"):
            self.current_tool_use.id = tool_call["id"]
        if function.get("name"):
            self.current_tool_use.name = function["name"]
        self.current_tool_use.accumulated_json += function.get("arguments") or ""

    def _finalize_tool_call(self) -> None:
        if self.current_tool_use is None:
            return
        partial = self.current_tool_use
        self.current_tool_use = None
        completed = ToolCall(
            id=partial.id,
            name=partial.name,
            input=parse_tool_arguments(partial.name, partial.accumulated_json),
        )
        self.tool_calls.append(completed)
        self.handler.tool_use(completed)

    def build_response(self) -> LLMResponse:
        return LLMResponse(
            text_content=self.text_content,
            content=build_response_content(self.text_content, self.tool_calls),
            tool_calls=list(self.tool_calls),
            stop_reason=self.stop_reason,
        )
