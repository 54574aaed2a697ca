"""
Tests for tools module.
"""

import json

import httpx
import pytest

from rollagent.llm.base import LLMMessage
from rollagent.memory import MarkdownMemoryStore, MemoryServiceClient, ProfileManager
from rollagent.storage import FileSessionStorage, SessionRecord
from rollagent.tools import (
    Tool,
    ToolContext,
    ToolParameter,
    ToolRegistry,
    ToolResult,
    create_memory_tools,
)


def test_tool_result_success():
    """Test successful tool result."""
    result = ToolResult(success=True, output="Test output", data={"key": "value"})

    assert result.success is True
    assert result.output == "Test output"
    assert result.data == {"key": "value"}
    assert result.error is None
    assert result.render() == "Test output"


def test_tool_result_failure():
    """Test failed tool result."""
    result = ToolResult(success=False, output="", error="Something went wrong")

    assert result.success is False
    assert result.render() == "Error: Something went wrong"


def test_tool_result_renders_data_as_json():
    result = ToolResult(success=True, data={"temperature": 21})
    assert json.loads(result.render()) == {"temperature": 21}
    assert ToolResult(success=True).render() == ""


def test_tool_parameters_schema():
    tool = Tool(
        name="search",
        description="Search things",
        parameters=[
            ToolParameter(name="query", param_type="string", description="Query"),
            ToolParameter(name="tags", param_type="array", description="Tags", required=False, items={"type": "string"}),
            ToolParameter(name="mode", param_type="string", description="Mode", required=False, enum=["a", "b"]),
        ],
        handler=None,
    )
    schema = tool.get_parameters_schema()

    assert schema["required"] == ["query"]
    assert schema["properties"]["tags"]["items"] == {"type": "string"}
    assert schema["properties"]["mode"]["enum"] == ["a", "b"]


async def _upper(text: str, context: ToolContext) -> ToolResult:
    return ToolResult(success=True, output=text.upper())


def _upper_tool() -> Tool:
    return Tool(
        name="upper",
        description="Uppercase text",
        parameters=[ToolParameter(name="text", param_type="string", description="Text")],
        handler=_upper,
    )


async def _hello(name: str) -> ToolResult:
    return ToolResult(success=True, output=f"hello {name}")


def _hello_tool() -> Tool:
    return Tool(
        name="hello",
        description="Say hello",
        parameters=[ToolParameter(name="name", param_type="string", description="Name")],
        handler=_hello,
    )


def test_registry_definitions():
    registry = ToolRegistry([_hello_tool(), _upper_tool()])

    definitions = {d.name: d for d in registry.get_definitions()}

    assert set(registry.list_tools()) == {"hello", "upper"}
    assert definitions["hello"].parameters["required"] == ["name"]
    assert definitions["upper"].parameters["required"] == ["text"]


@pytest.mark.asyncio
async def test_registry_execute():
    registry = ToolRegistry([_hello_tool(), _upper_tool()])

    assert (await registry.execute("hello", {"name": "Ada"})).output == "hello Ada"
    assert (await registry.execute("upper", {"text": "hi"})).output == "HI"


@pytest.mark.asyncio
async def test_registry_unknown_tool():
    result = await ToolRegistry().execute("nope", {})
    assert not result.success
    assert result.error == "Tool 'nope' not found"


@pytest.mark.asyncio
async def test_registry_captures_bad_arguments():
    result = await ToolRegistry([_hello_tool()]).execute("hello", {"wrong": 1})
    assert not result.success
    assert result.error.startswith("TypeError")


@pytest.mark.asyncio
async def test_registry_drops_reserved_context_argument():
    seen = {}

    async def handler(context: ToolContext) -> ToolResult:
        seen["context"] = context
        return ToolResult(success=True)

    registry = ToolRegistry([Tool(name="ctx", description="", parameters=[], handler=handler)])
    await registry.execute("ctx", {"context": "spoofed"}, ToolContext(session_id="real"))

    assert seen["context"].session_id == "real"


def test_registry_unregister():
    registry = ToolRegistry([_hello_tool()])
    registry.unregister("hello")
    assert registry.get("hello") is None


# ---------------------------------------------------------------------------
# Memory tools
# ---------------------------------------------------------------------------

@pytest.fixture
def backends(tmp_path):
    return {
        "store": MarkdownMemoryStore(str(tmp_path / "memory")),
        "profiles": ProfileManager(str(tmp_path / "profiles")),
        "storage": FileSessionStorage(str(tmp_path / "sessions")),
    }


def _memory_registry(backends, service=None) -> ToolRegistry:
    return ToolRegistry(create_memory_tools(
        backends["store"], backends["profiles"], service, backends["storage"]
    ))


def test_memory_tool_names(backends):
    assert set(_memory_registry(backends).list_tools()) == {
        "memorize_core_fact",
        "recall_past_context",
        "memorize_user_fact",
        "recall_user_memory",
        "recall_session_context",
    }


@pytest.mark.asyncio
async def test_memorize_and_recall_core_fact(backends):
    registry = _memory_registry(backends)

    saved = await registry.execute("memorize_core_fact", {"fact": "Ada is allergic to peanuts"})
    recalled = await registry.execute("recall_past_context", {"query": "peanuts"})

    assert saved.success
    assert await backends["store"].get("core", "user_profile") == "- Ada is allergic to peanuts"
    assert "[Source: core/user_profile.md]" in recalled.output


@pytest.mark.asyncio
async def test_memorize_user_fact_names(backends):
    registry = _memory_registry(backends)

    await registry.execute("memorize_user_fact", {"factType": "user_name", "content": "Ada"})
    await registry.execute("memorize_user_fact", {"factType": "agent_name", "content": "Rolly"})

    assert backends["profiles"].get_user_name() == "Ada"
    assert backends["profiles"].get_agent_name() == "Rolly"


@pytest.mark.asyncio
async def test_memorize_user_fact_rejects_unknown_type(backends):
    result = await _memory_registry(backends).execute(
        "memorize_user_fact", {"factType": "shoe_size", "content": "42"}
    )
    assert not result.success


@pytest.mark.asyncio
async def test_memorize_general_fact_goes_to_service(backends):
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"status": "success"})

    service = MemoryServiceClient("http://memory.test", transport=httpx.MockTransport(handler))
    result = await _memory_registry(backends, service).execute(
        "memorize_user_fact", {"factType": "general_memory", "content": "Ada prefers mornings"}
    )

    assert result.success
    assert bodies[0]["messages"] == [{"role": "assistant", "content": "Ada prefers mornings"}]


@pytest.mark.asyncio
async def test_recall_user_memory_requires_service(backends):
    result = await _memory_registry(backends).execute("recall_user_memory", {"query": "music"})
    assert not result.success


@pytest.mark.asyncio
async def test_recall_session_context(backends):
    record = SessionRecord(session_id="s1", messages=[
        LLMMessage(role="user", content="My budget is 500 euros"),
        LLMMessage(role="assistant", content="Noted your budget."),
        LLMMessage(role="user", content="Something else"),
    ])
    await backends["storage"].save("s1", record)
    registry = _memory_registry(backends)

    found = await registry.execute(
        "recall_session_context", {"keywords": ["budget", "yacht"]}, ToolContext(session_id="s1")
    )
    missing = await registry.execute(
        "recall_session_context", {"keywords": ["yacht"]}, ToolContext(session_id="s1")
    )
    unbound = await registry.execute("recall_session_context", {"keywords": ["budget"]})

    assert found.success
    assert found.data["budget"] == ["[0] user: My budget is 500 euros", "[1] assistant: Noted your budget."]
    assert found.data["yacht"] == []
    assert "recall_user_memory" in missing.output
    assert not unbound.success
