"""
Unit tests for the OpenAI-compatible provider.
"""

import json
import pytest
from unittest.mock import Mock
from requests.exceptions import ChunkedEncodingError, ConnectionError
from services.llm.config import LLMConfig
from services.llm.openai_provider import OpenAIProvider
from services.llm.provider import LLMStreamHandler, collect_stream
from shared.exceptions import LLMApiError, MalformedToolCallError, TransportError
from shared.messages import (
    ImageBlock,
    ImageSource,
    LLMParameters,
    Message,
    TextBlock,
    ToolChoice,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)


def make_provider(response=None, side_effect=None):
    session = Mock()
    session.post.return_value = response
    if side_effect is not None:
        session.post.side_effect = side_effect
    config = LLMConfig(api_key="test-key", base_url="https://llm.example.com/v1/")
    return OpenAIProvider(config, session=session), session


def make_response(status_code=200, payload=None, lines=None, headers=None):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.headers = headers or {}
    response.text = json.dumps(payload) if payload is not None else "error"
    response.json.return_value = payload
    response.raw = Mock()
    response.iter_lines.return_value = iter(lines or [])
    return response


def test_build_request_defaults():
    """Missing max_tokens falls back to the default and model comes from config"""
    provider, _ = make_provider()

    payload = provider.build_request([Message(role="user", content="hi")], LLMParameters(), stream=False)

    assert payload["model"] == "gpt-4o"
    assert payload["max_tokens"] == 4096
    assert payload["stream"] is False
    assert payload["messages"] == [{"role": "user", "content": "hi"}]
    assert "temperature" not in payload
    assert "tools" not in payload
    assert "tool_choice" not in payload


def test_build_request_tools_and_tool_choice():
    provider, _ = make_provider()
    tool = ToolDefinition(name="search", description="Search", input_schema={"type": "object"})

    auto = provider.build_request([], LLMParameters(tools=[tool], tool_choice=ToolChoice(type="auto")), True)
    named = provider.build_request([], LLMParameters(tool_choice=ToolChoice(type="tool", name="search")), True)
    required = provider.build_request([], LLMParameters(tool_choice=ToolChoice(type="tool")), True)

    assert auto["tools"] == [{
        "type": "function",
        "function": {"name": "search", "description": "Search", "parameters": {"type": "object"}},
    }]
    assert auto["tool_choice"] == "auto"
    assert named["tool_choice"] == {"type": "function", "function": {"name": "search"}}
    assert required["tool_choice"] == "required"


def test_assistant_tool_use_serialized_as_tool_calls():
    provider, _ = make_provider()
    message = Message(role="assistant", content=[
        TextBlock(text="Looking it up"),
        ToolUseBlock(id="call_1", name="search", input={"q": "cats"}),
    ])

    converted = provider.build_request([message], LLMParameters(), False)["messages"]

    assert converted == [{
        "role": "assistant",
        "content": [{"type": "text", "text": "Looking it up"}],
        "tool_calls": [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "search", "arguments": json.dumps({"q": "cats"})},
        }],
    }]


def test_tool_result_with_image_is_split():
    """Images cannot ride on tool messages: acknowledge, then resend as user content"""
    provider, _ = make_provider()
    result = ToolResultBlock(tool_use_id="call_1", content=[
        TextBlock(text="screenshot taken"),
        ImageBlock(source=ImageSource(media_type="image/png", data="AAAA")),
    ])

    converted = provider.build_request([Message(role="user", content=[result])], LLMParameters(), False)["messages"]

    assert converted == [
        {"role": "tool", "content": "ok", "tool_call_id": "call_1"},
        {"role": "user", "content": [
            {"type": "text", "text": "screenshot taken"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
        ]},
    ]


def test_text_tool_result_stays_on_tool_message():
    provider, _ = make_provider()
    result = ToolResultBlock(tool_use_id="call_1", content="42")

    converted = provider.build_request([Message(role="user", content=[result])], LLMParameters(), False)["messages"]

    assert converted == [{"role": "tool", "content": "42", "tool_call_id": "call_1"}]


def test_generate_text_parses_tool_calls():
    response = make_response(payload={"choices": [{
        "message": {
            "content": "Calling",
            "tool_calls": [{"id": "call_1", "function": {"name": "search", "arguments": "{\"q\": \"cats\"}"}}],
        },
        "finish_reason": "tool_calls",
    }]})
    provider, session = make_provider(response)

    result = provider.generate_text([Message(role="user", content="find cats")], LLMParameters())

    assert result.text_content == "Calling"
    assert result.tool_calls[0].input == {"q": "cats"}
    assert result.stop_reason == "tool_calls"
    assert session.post.call_args[0][0] == "https://llm.example.com/v1/chat/completions"
    assert session.post.call_args[1]["headers"]["Authorization"] == "Bearer test-key"


def test_generate_text_api_error():
    """Non-2xx responses raise with status and Retry-After"""
    provider, _ = make_provider(make_response(status_code=429, headers={"Retry-After": "7"}))

    with pytest.raises(LLMApiError) as exc_info:
        provider.generate_text([Message(role="user", content="hi")], LLMParameters())

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after_seconds == 7


def test_generate_text_malformed_arguments():
    response = make_response(payload={"choices": [{
        "message": {"tool_calls": [{"id": "call_1", "function": {"name": "search", "arguments": "{oops"}}]},
        "finish_reason": "tool_calls",
    }]})
    provider, _ = make_provider(response)

    with pytest.raises(MalformedToolCallError):
        provider.generate_text([Message(role="user", content="hi")], LLMParameters())


def test_generate_text_non_json_body():
    """A 200 answer that is not JSON surfaces as an API error"""
    response = make_response()
    response.text = "<html>Bad gateway</html>"
    response.json.side_effect = ValueError("Expecting value")
    provider, _ = make_provider(response)

    with pytest.raises(LLMApiError) as exc_info:
        provider.generate_text([Message(role="user", content="hi")], LLMParameters())

    assert exc_info.value.status_code == 200
    assert "Bad gateway" in exc_info.value.body


def test_generate_stream_delivers_content_and_completion():
    lines = [
        b'data: {"choices": [{"delta": {"content": "Hel"}, "finish_reason": null}]}',
        b'data: {"choices": [{"delta": {"content": "lo"}, "finish_reason": "stop"}]}',
        b"data: [DONE]",
    ]
    response = make_response(lines=lines)
    provider, session = make_provider(response)
    handler = Mock(spec=LLMStreamHandler)

    provider.generate_stream([Message(role="user", content="hi")], LLMParameters(), handler)

    handler.start.assert_called_once()
    assert [c[0][0] for c in handler.content.call_args_list] == ["Hel", "lo"]
    handler.complete.assert_called_once()
    assert handler.complete.call_args[0][0].text_content == "Hello"
    handler.error.assert_not_called()
    response.close.assert_called_once()
    assert session.post.call_args[1]["stream"] is True


def test_generate_stream_api_error_goes_to_handler():
    provider, _ = make_provider(make_response(status_code=500))
    handler = Mock(spec=LLMStreamHandler)

    provider.generate_stream([Message(role="user", content="hi")], LLMParameters(), handler)

    error = handler.error.call_args[0][0]
    assert isinstance(error, LLMApiError)
    assert error.status_code == 500
    handler.start.assert_not_called()
    handler.complete.assert_not_called()


def test_generate_stream_missing_body():
    response = make_response()
    response.raw = None
    provider, _ = make_provider(response)
    handler = Mock(spec=LLMStreamHandler)

    provider.generate_stream([Message(role="user", content="hi")], LLMParameters(), handler)

    error = handler.error.call_args[0][0]
    assert isinstance(error, TransportError)
    assert "No response body" in str(error)


def test_generate_stream_connection_failure():
    provider, _ = make_provider(side_effect=ConnectionError("refused"))
    handler = Mock(spec=LLMStreamHandler)

    provider.generate_stream([Message(role="user", content="hi")], LLMParameters(), handler)

    assert isinstance(handler.error.call_args[0][0], TransportError)


def test_generate_stream_interrupted_mid_read():
    """A connection dropped after some deltas is reported once and never completes"""
    def lines():
        yield b'data: {"choices": [{"delta": {"content": "Hel"}, "finish_reason": null}]}'
        raise ChunkedEncodingError("Connection broken: IncompleteRead")

    response = make_response()
    response.iter_lines.return_value = lines()
    provider, _ = make_provider(response)
    handler = Mock(spec=LLMStreamHandler)

    provider.generate_stream([Message(role="user", content="hi")], LLMParameters(), handler)

    handler.start.assert_called_once()
    handler.content.assert_called_once_with("Hel")
    handler.error.assert_called_once()
    error = handler.error.call_args[0][0]
    assert isinstance(error, TransportError)
    assert "Stream interrupted" in str(error)
    handler.complete.assert_not_called()
    response.close.assert_called_once()


def test_collect_stream_raises_delivered_error():
    provider, _ = make_provider(make_response(status_code=503))

    with pytest.raises(LLMApiError):
        collect_stream(provider, [Message(role="user", content="hi")], LLMParameters())
