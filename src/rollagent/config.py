"""
Configuration management for Rollagent

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["openai", "anthropic", "openrouter", "ollama", "glm"]


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: ProviderName = "openai"
    model: str = "gpt-4o"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7

    # Context limits advertised to the window builder
    context_window: int = 128_000
    safety_margin: int = 1000


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "Rollagent"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "127.0.0.1"
    port: int = 3000

    # LLM Providers (API Keys)
    openai_api_key: str = Field(default="", description="OpenAI API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    glm_api_key: str = Field(default="", description="Zhipu GLM API key")

    # Default model settings
    default_provider: ProviderName = "openai"
    default_model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7
    context_window: int = Field(default=128_000, description="Model context capacity in tokens")
    safety_margin: int = Field(default=1000, description="Tokens held back from the window budget")

    # Execution loop
    max_steps: int = Field(default=25, description="Max model invocations per incoming message")

    # Context management
    compaction_threshold: int = Field(default=60_000, description="Transcript size that triggers compaction")
    head_anchors: int = Field(default=1, description="Leading messages never folded")
    tail_anchors: int = Field(default=4, description="Trailing messages never folded")
    tool_result_max_chars: int = Field(default=8000, description="Tool output cap under threshold")
    tool_result_min_chars: int = Field(default=300, description="Tool output cap over threshold")
    rolling_threshold: int = Field(default=10, description="Uncompressed messages before a new epoch")
    archive_min_messages: int = Field(default=6, description="Min transcript length for archival")

    # Session storage
    session_backend: Literal["file", "database"] = "file"
    sessions_dir: str = Field(default="./data/sessions", description="Directory for JSON sessions")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/rollagent.db",
        description="Database connection URL"
    )

    # Memory
    memory_dir: str = Field(default="./data/memory", description="Markdown memory root")
    profiles_dir: str = Field(default="./data/profiles", description="User/agent profile JSON root")
    memory_service_url: str = Field(default="http://127.0.0.1:3899", description="Semantic memory service")
    enable_memory_service: bool = False
    enable_summarizer: bool = True

    @field_validator("memory_service_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if v else ""

    def get_llm_config(self, provider: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.default_provider

        api_key_map = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "openrouter": self.openrouter_api_key,
            "ollama": "ollama",
            "glm": self.glm_api_key,
        }

        model_map = {
            "openai": "gpt-4o",
            "anthropic": "claude-sonnet-4-20250514",
            "openrouter": "anthropic/claude-sonnet-4",
            "ollama": "qwen2.5:7b",
            "glm": "glm-4-plus",
        }

        base_url_map = {
            "openai": None,
            "anthropic": None,
            "openrouter": "https://openrouter.ai/api/v1",
            "ollama": "http://127.0.0.1:11434/v1",
            "glm": "https://open.bigmodel.cn/api/paas/v4/",
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=self.default_model or model_map.get(provider, "gpt-4o"),
            api_key=api_key_map.get(provider, ""),
            base_url=base_url_map.get(provider),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            context_window=self.context_window,
            safety_margin=self.safety_margin,
        )

    def get_context_config(self):
        """Get the compaction configuration derived from these settings."""
        from .agent.compaction import CompactionConfig

        return CompactionConfig(
            threshold=self.compaction_threshold,
            head_anchors=self.head_anchors,
            tail_anchors=self.tail_anchors,
            tool_result_max_chars=self.tool_result_max_chars,
            tool_result_min_chars=self.tool_result_min_chars,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
