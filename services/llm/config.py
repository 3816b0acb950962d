"""LLM credential/config source."""

import os
from typing import Optional
from pydantic import BaseModel, Field

from shared.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_LLM_PROVIDER,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_MODEL_NAME,
)


class LLMConfig(BaseModel):
    provider: str = DEFAULT_LLM_PROVIDER
    api_key: str = Field(min_length=1)
    model_name: str = DEFAULT_MODEL_NAME
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: int = Field(default=DEFAULT_LLM_TIMEOUT_SECONDS, ge=1, le=3600)

    @classmethod
    def from_env(cls) -> Optional["LLMConfig"]:
        """Reads LLM_* variables; returns None when no API key is configured"""
        api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
        if not api_key:
            return None
        return cls(
            provider=os.getenv("LLM_PROVIDER", DEFAULT_LLM_PROVIDER),
            api_key=api_key,
            model_name=os.getenv("LLM_MODEL_NAME", DEFAULT_MODEL_NAME),
            base_url=os.getenv("LLM_BASE_URL", DEFAULT_BASE_URL),
        )
