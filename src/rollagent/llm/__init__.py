"""
LLM module for multi-provider AI model support.

Providers:
- OpenAI GPT (native SDK), plus OpenRouter, Ollama and GLM through the
  OpenAI-compatible endpoint
- Anthropic Claude (native SDK)
"""

from .base import BaseLLM, LLMMessage, LLMResponse, ModelLimits, ToolCall, ToolDefinition
from .anthropic import AnthropicLLM
from .openai import OpenAILLM
from .factory import create_llm

__all__ = [
    "BaseLLM",
    "LLMMessage",
    "LLMResponse",
    "ModelLimits",
    "ToolCall",
    "ToolDefinition",
    "AnthropicLLM",
    "OpenAILLM",
    "create_llm",
]
