"""Provider-neutral LLM interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

from shared.messages import LLMParameters, LLMResponse, Message, ToolCall


@dataclass
class LLMStreamHandler:
    """Callbacks for a streamed completion; any left unset is skipped"""
    on_start: Optional[Callable[[], None]] = None
    on_content: Optional[Callable[[str], None]] = None
    on_tool_use: Optional[Callable[[ToolCall], None]] = None
    on_complete: Optional[Callable[[LLMResponse], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None

    def start(self) -> None:
        if self.on_start:
            self.on_start()

    def content(self, text: str) -> None:
        if self.on_content:
            self.on_content(text)

    def tool_use(self, tool_call: ToolCall) -> None:
        if self.on_tool_use:
            self.on_tool_use(tool_call)

    def complete(self, response: LLMResponse) -> None:
        if self.on_complete:
            self.on_complete(response)

    def error(self, exc: Exception) -> None:
        if self.on_error:
            self.on_error(exc)


class LLMProvider(ABC):

    @abstractmethod
    def generate_text(self, messages: List[Message], params: LLMParameters) -> LLMResponse:
        ...

    @abstractmethod
    def generate_stream(self, messages: List[Message], params: LLMParameters, handler: LLMStreamHandler) -> None:
        ...


def collect_stream(
    provider: LLMProvider,
    messages: List[Message],
    params: LLMParameters,
    on_content: Optional[Callable[[str], None]] = None,
) -> LLMResponse:
    """Runs a streamed completion to the end and returns the assembled response.

    Errors delivered through the handler are raised here.
    """
    outcome = {}

    handler = LLMStreamHandler(
        on_content=on_content,
        on_complete=lambda response: outcome.setdefault("response", response),
        on_error=lambda exc: outcome.setdefault("error", exc),
    )
    provider.generate_stream(messages, params, handler)

    if "error" in outcome:
        raise outcome["error"]
    if "response" not in outcome:
        raise RuntimeError("Stream ended without a completion signal")
    return outcome["response"]
