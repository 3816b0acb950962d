"""Provider factory.

Resolves an LLMConfig to the matching provider implementation.
"""

import logging
from typing import Optional

from services.llm.config import LLMConfig
from services.llm.openai_provider import OpenAIProvider
from services.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

# Vendors speaking the OpenAI chat-completions protocol
OPENAI_COMPATIBLE_PROVIDERS = {"openai", "openrouter", "deepseek", "ollama", "vllm"}


def create_provider(config: LLMConfig) -> LLMProvider:
    """Build the provider for config.provider.

    Raises:
        ValueError: If the provider is not supported
    """
    provider = config.provider.lower()
    if provider in OPENAI_COMPATIBLE_PROVIDERS:
        return OpenAIProvider(config)
    raise ValueError(
        f"Unknown LLM provider: '{config.provider}'. "
        f"Supported providers: {', '.join(sorted(OPENAI_COMPATIBLE_PROVIDERS))}"
    )


def provider_from_env() -> Optional[LLMProvider]:
    config = LLMConfig.from_env()
    if config is None:
        logger.warning("No LLM API key configured; prompt actions will fail")
        return None
    return create_provider(config)
