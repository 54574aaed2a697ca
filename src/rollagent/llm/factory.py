"""
LLM factory for creating provider instances.

Supports: OpenAI, Anthropic Claude, and the OpenAI-compatible endpoints of
OpenRouter, Ollama and GLM.
"""

from ..config import LLMConfig, Settings
from .anthropic import AnthropicLLM
from .base import BaseLLM
from .openai import OpenAILLM

OPENAI_COMPATIBLE = ("openai", "openrouter", "ollama", "glm")


def create_llm(config: LLMConfig | None = None, settings: Settings | None = None) -> BaseLLM:
    """Create an LLM instance based on configuration.

    Provider routing:
    - anthropic -> AnthropicLLM (native Anthropic SDK)
    - openai, openrouter, ollama, glm -> OpenAILLM with the provider's base URL
    """
    if config is None:
        if settings is None:
            from ..config import get_settings
            settings = get_settings()
        config = settings.get_llm_config()

    provider = config.provider

    if provider == "anthropic":
        return AnthropicLLM(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            context_window=config.context_window,
            safety_margin=config.safety_margin,
        )
    elif provider in OPENAI_COMPATIBLE:
        return OpenAILLM(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            context_window=config.context_window,
            safety_margin=config.safety_margin,
            provider=provider,
        )
    else:
        raise ValueError(f"Unknown LLM provider: {provider}")
