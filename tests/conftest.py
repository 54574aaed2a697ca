"""
Shared fixtures: a scripted model and isolated settings.
"""

import pytest

from rollagent.config import Settings
from rollagent.llm.base import BaseLLM, LLMMessage, LLMResponse, ToolCall, ToolDefinition


class ScriptedLLM(BaseLLM):
    """Replays canned responses and records every window it was shown.

    A script entry that is an exception is raised instead of returned.
    """

    def __init__(self, script=None, **kwargs):
        super().__init__(api_key="test", model="scripted-model", **kwargs)
        self.script = list(script or [])
        self.calls: list[list[LLMMessage]] = []
        self.tools_seen: list[list[ToolDefinition] | None] = []

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def generate(self, messages, tools=None, temperature=None):
        self.calls.append(list(messages))
        self.tools_seen.append(tools)
        if not self.script:
            return LLMResponse(content="(script exhausted)")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def reply(text: str) -> LLMResponse:
    return LLMResponse(content=text, input_tokens=5, output_tokens=5)


def call(*calls: tuple[str, str, dict]) -> LLMResponse:
    return LLMResponse(
        content="",
        tool_calls=[ToolCall(id=call_id, name=name, arguments=args) for call_id, name, args in calls],
    )


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        sessions_dir=str(tmp_path / "sessions"),
        memory_dir=str(tmp_path / "memory"),
        profiles_dir=str(tmp_path / "profiles"),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
    )


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM


@pytest.fixture
def make_reply():
    return reply


@pytest.fixture
def make_call():
    return call
