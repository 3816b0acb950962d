"""
Unit tests for stream reassembly.
"""

import json
import pytest
from unittest.mock import Mock
from services.llm.provider import LLMStreamHandler
from services.llm.streaming import StreamAccumulator, parse_tool_arguments
from shared.exceptions import MalformedToolCallError
from shared.messages import TextBlock, ToolUseBlock


def event(delta=None, finish_reason=None):
    return "data: " + json.dumps({"choices": [{"delta": delta or {}, "finish_reason": finish_reason}]})


def tool_delta(arguments, call_id=None, name=None):
    call = {"index": 0, "function": {"arguments": arguments}}
    if call_id:
        call["id"] = call_id
    if name:
        call["function"]["name"] = name
    return {"tool_calls": [call]}


def test_tool_arguments_split_across_events():
    """Argument fragments are concatenated and parsed once the call finishes"""
    on_tool_use = Mock()
    accumulator = StreamAccumulator(LLMStreamHandler(on_tool_use=on_tool_use))

    accumulator.feed_lines([
        event(tool_delta('{"a":1', call_id="call_1", name="sum")),
        event(tool_delta(',"b"')),
        event(tool_delta(':2}')),
        event(finish_reason="tool_calls"),
        "data: [DONE]",
    ])
    response = accumulator.build_response()

    assert len(response.tool_calls) == 1
    tool_call = response.tool_calls[0]
    assert tool_call.id == "call_1"
    assert tool_call.name == "sum"
    assert tool_call.input == {"a": 1, "b": 2}
    assert response.stop_reason == "tool_calls"
    assert isinstance(response.content[0], ToolUseBlock)
    on_tool_use.assert_called_once()
    assert on_tool_use.call_args[0][0].input == {"a": 1, "b": 2}


def test_undecodable_line_is_skipped():
    """A garbage line between text deltas does not interrupt the stream"""
    chunks = []
    accumulator = StreamAccumulator(LLMStreamHandler(on_content=chunks.append))

    accumulator.feed_lines([
        event({"content": "Hello"}),
        "data: {this is not json",
        event({"content": " world"}),
        event(finish_reason="stop"),
    ])
    response = accumulator.build_response()

    assert response.text_content == "Hello world"
    assert chunks == ["Hello", " world"]
    assert response.content == [TextBlock(text="Hello world")]
    assert response.tool_calls == []


def test_done_sentinel_stops_processing():
    """Nothing after [DONE] is read"""
    accumulator = StreamAccumulator()

    accumulator.feed_lines([
        event({"content": "kept"}),
        "data: [DONE]",
        event({"content": " dropped"}),
    ])

    assert accumulator.done
    assert accumulator.build_response().text_content == "kept"


def test_keepalive_and_bytes_lines():
    """Blank lines and comments are ignored; byte lines are decoded"""
    accumulator = StreamAccumulator()

    accumulator.feed_lines([
        b"",
        b": keep-alive",
        event({"content": "hi"}).encode("utf-8"),
        event(finish_reason="stop").encode("utf-8"),
    ])

    response = accumulator.build_response()
    assert response.text_content == "hi"
    assert response.stop_reason == "stop"


def test_tool_call_without_arguments():
    """A tool call that never receives argument text gets empty input"""
    accumulator = StreamAccumulator()

    accumulator.feed_lines([
        event(tool_delta("", call_id="call_1", name="now")),
        event(finish_reason="tool_calls"),
    ])

    assert accumulator.build_response().tool_calls[0].input == {}


def test_malformed_tool_arguments():
    """Unparseable argument text fails the stream"""
    accumulator = StreamAccumulator()
    accumulator.feed_line(event(tool_delta('{"a":', call_id="call_1", name="sum")))

    with pytest.raises(MalformedToolCallError, match="sum"):
        accumulator.feed_line(event(finish_reason="tool_calls"))


def test_parse_tool_arguments_rejects_non_object():
    with pytest.raises(MalformedToolCallError):
        parse_tool_arguments("sum", "[1, 2]")

    assert parse_tool_arguments("sum", {"a": 1}) == {"a": 1}
    assert parse_tool_arguments("sum", None) == {}
