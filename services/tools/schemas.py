"""Pydantic schemas for built-in tool parameters."""

from typing import Dict, Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class HttpRequestParams(BaseModel):
    """Params schema for the http_request tool"""
    model_config = ConfigDict(extra="forbid")

    url: str = Field(description="Full URL to call")
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH"] = "GET"
    headers: Optional[Dict[str, str]] = None
    body: Optional[Dict[str, Any]] = None
    timeout: int = Field(default=30, ge=1, le=300)


class WriteContextParams(BaseModel):
    """Params schema for the write_context tool"""
    model_config = ConfigDict(extra="forbid")

    key: str = Field(min_length=1, description="Variable name in the shared workflow context")
    value: Any = Field(description="Value to store; JSON strings are decoded")
