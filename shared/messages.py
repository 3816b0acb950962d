"""Canonical LLM exchange types shared by providers and the engine."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageSource(BaseModel):
    type: Literal["base64"] = "base64"
    media_type: str
    data: str

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


class ImageBlock(BaseModel):
    type: Literal["image"] = "image"
    source: ImageSource


class ToolUseBlock(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


ToolResultContent = Annotated[Union[TextBlock, ImageBlock], Field(discriminator="type")]


class ToolResultBlock(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Union[str, List[ToolResultContent]]
    is_error: bool = False


ContentBlock = Annotated[
    Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock],
    Field(discriminator="type"),
]


class Message(BaseModel):
    role: Literal["user", "assistant", "system", "tool"]
    content: Union[str, List[ContentBlock]]


class ToolCall(BaseModel):
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolChoice(BaseModel):
    type: Literal["auto", "tool"] = "auto"
    name: Optional[str] = None


class LLMParameters(BaseModel):
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: List[ToolDefinition] = Field(default_factory=list)
    tool_choice: Optional[ToolChoice] = None


class LLMResponse(BaseModel):
    text_content: Optional[str] = None
    content: List[ContentBlock] = Field(default_factory=list)
    tool_calls: List[ToolCall] = Field(default_factory=list)
    stop_reason: Optional[str] = None


def build_response_content(text_content: Optional[str], tool_calls: List[ToolCall]) -> List[Any]:
    """Text block first (if any), then one tool_use block per call"""
    content: List[Any] = []
    if text_content:
        content.append(TextBlock(text=text_content))
    for tool_call in tool_calls:
        content.append(ToolUseBlock(id=tool_call.id, name=tool_call.name, input=tool_call.input))
    return content
