"""OpenAI-compatible chat-completions provider over plain HTTP (requests)."""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import RequestException

from services.llm.config import LLMConfig
from services.llm.provider import LLMProvider, LLMStreamHandler
from services.llm.streaming import StreamAccumulator, parse_tool_arguments
from shared.constants import DEFAULT_MAX_TOKENS
from shared.exceptions import LLMApiError, TransportError
from shared.messages import (
    ImageBlock,
    LLMParameters,
    LLMResponse,
    Message,
    TextBlock,
    ToolCall,
    ToolResultBlock,
    ToolUseBlock,
    build_response_content,
)
from shared.utils import parse_retry_after

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):

    def __init__(self, config: LLMConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.endpoint = f"{config.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }

    def build_request(self, messages: List[Message], params: LLMParameters, stream: bool) -> Dict[str, Any]:
        """Translates canonical messages and params into the chat-completions payload"""
        payload: Dict[str, Any] = {
            "model": params.model or self.config.model_name,
            "messages": self._convert_messages(messages),
            "max_tokens": params.max_tokens or DEFAULT_MAX_TOKENS,
            "stream": stream,
        }
        if params.temperature is not None:
            payload["temperature"] = params.temperature

        if params.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
                for tool in params.tools
            ]

        if params.tool_choice is not None:
            if params.tool_choice.type == "auto":
                payload["tool_choice"] = "auto"
            elif params.tool_choice.name:
                payload["tool_choice"] = {"type": "function", "function": {"name": params.tool_choice.name}}
            else:
                payload["tool_choice"] = "required"

        return payload

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        converted: List[Dict[str, Any]] = []
        for message in messages:
            if isinstance(message.content, str):
                converted.append({"role": message.role, "content": message.content})
            elif message.role == "assistant":
                converted.append(self._convert_assistant(message))
            elif message.role == "user":
                converted.extend(self._convert_user(message))
            else:
                text = "".join(block.text for block in message.content if isinstance(block, TextBlock))
                converted.append({"role": message.role, "content": text})
        return converted

    @staticmethod
    def _convert_assistant(message: Message) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = []
        tool_calls: List[Dict[str, Any]] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                content.append({"type": "text", "text": block.text})
            elif isinstance(block, ToolUseBlock):
                tool_calls.append({
                    "id": block.id,
                    "type": "function",
                    "function": {
                        "name": block.name,
                        "arguments": block.input if isinstance(block.input, str) else json.dumps(block.input),
                    },
                })

        result: Dict[str, Any] = {"role": "assistant", "content": content or None}
        if tool_calls:
            result["tool_calls"] = tool_calls
        return result

    def _convert_user(self, message: Message) -> List[Dict[str, Any]]:
        converted: List[Dict[str, Any]] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                converted.append({"role": "user", "content": block.text})
            elif isinstance(block, ImageBlock):
                converted.append({"role": "user", "content": [self._image_part(block)]})
            elif isinstance(block, ToolResultBlock):
                converted.extend(self._convert_tool_result(block))
        return converted

    def _convert_tool_result(self, block: ToolResultBlock) -> List[Dict[str, Any]]:
        if isinstance(block.content, str):
            parts = [{"type": "text", "text": block.content}]
        else:
            parts = [
                self._image_part(item) if isinstance(item, ImageBlock) else {"type": "text", "text": item.text}
                for item in block.content
            ]

        # tool-role messages cannot carry images: acknowledge, then resend as a user message
        if any(part["type"] == "image_url" for part in parts):
            return [
                {"role": "tool", "content": "ok", "tool_call_id": block.tool_use_id},
                {"role": "user", "content": parts},
            ]

        text = "\n".join(part["text"] for part in parts)
        return [{"role": "tool", "content": text, "tool_call_id": block.tool_use_id}]

    @staticmethod
    def _image_part(block: ImageBlock) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": block.source.to_data_url()}}

    def _post(self, payload: Dict[str, Any], stream: bool) -> requests.Response:
        logger.info("Calling chat completions", extra={
            "model": payload["model"],
            "stream": stream,
            "message_count": len(payload["messages"]),
            "tool_count": len(payload.get("tools", [])),
        })
        try:
            return self.session.post(
                self.endpoint,
                headers=self._headers(),
                json=payload,
                stream=stream,
                timeout=self.config.timeout_seconds,
            )
        except RequestException as e:
            raise TransportError(f"Failed to reach LLM endpoint: {e}") from e

    @staticmethod
    def _api_error(response: requests.Response) -> LLMApiError:
        return LLMApiError(
            status_code=response.status_code,
            body=response.text,
            retry_after_seconds=parse_retry_after(response.headers.get("Retry-After")),
        )

    def generate_text(self, messages: List[Message], params: LLMParameters) -> LLMResponse:
        response = self._post(self.build_request(messages, params, stream=False), stream=False)
        if not response.ok:
            raise self._api_error(response)

        try:
            data = response.json()
        except ValueError:
            # non-JSON body from a proxy or gateway
            raise self._api_error(response)

        text_content: Optional[str] = None
        tool_calls: List[ToolCall] = []
        stop_reason: Optional[str] = None

        for choice in data.get("choices", []):
            message = choice.get("message") or {}
            if message.get("content"):
                text_content = (text_content or "") + message["content"]
            for tool_call in message.get("tool_calls") or []:
                function = tool_call.get("function") or {}
                tool_calls.append(ToolCall(
                    id=tool_call.get("id", ""),
                    name=function.get("name", ""),
                    input=parse_tool_arguments(function.get("name", ""), function.get("arguments")),
                ))
            if choice.get("finish_reason"):
                stop_reason = choice["finish_reason"]

        return LLMResponse(
            text_content=text_content,
            content=build_response_content(text_content, tool_calls),
            tool_calls=tool_calls,
            stop_reason=stop_reason,
        )

    def generate_stream(self, messages: List[Message], params: LLMParameters, handler: LLMStreamHandler) -> None:
        """Streams a completion; every failure is delivered through handler.on_error"""
        try:
            response = self._post(self.build_request(messages, params, stream=True), stream=True)
        except TransportError as e:
            handler.error(e)
            return

        try:
            if not response.ok:
                handler.error(self._api_error(response))
                return
            if response.raw is None:
                handler.error(TransportError("No response body received for streaming."))
                return

            handler.start()
            accumulator = StreamAccumulator(handler)
            accumulator.feed_lines(response.iter_lines())
            handler.complete(accumulator.build_response())
        except RequestException as e:
            handler.error(TransportError(f"Stream interrupted: {e}"))
        except Exception as e:
            logger.warning("Stream processing failed", extra={"error": str(e)})
            handler.error(e)
        finally:
            response.close()
