"""
Tests for agent module.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from rollagent.agent.background import BackgroundTasks
from rollagent.agent.compaction import FOLDED_SUMMARY_MARKER, CompactionConfig
from rollagent.agent.core import STEP_LIMIT_MESSAGE, Agent, AgentRun, LoopState
from rollagent.exceptions import LLMInvocationError
from rollagent.llm.base import LLMMessage
from rollagent.tools import Tool, ToolContext, ToolParameter, ToolRegistry, ToolResult


async def echo_handler(text: str) -> ToolResult:
    return ToolResult(success=True, output=f"echo: {text}")


async def failing_handler(text: str) -> ToolResult:
    raise ValueError("boom")


def _tool(name: str, handler) -> Tool:
    return Tool(
        name=name,
        description=f"{name} tool",
        parameters=[ToolParameter(name="text", param_type="string", description="Text")],
        handler=handler,
    )


def _registry(*tools: Tool) -> ToolRegistry:
    return ToolRegistry(list(tools) or [_tool("echo", echo_handler)])


def test_agent_run_tracks_new_messages_by_index():
    """New messages are everything past the input length."""
    user = LLMMessage(role="user", content="Hello!")
    run = AgentRun.start([user])
    run.add_assistant_message("Hi there!")

    assert run.input_length == 1
    assert run.new_messages == [LLMMessage(role="assistant", content="Hi there!")]
    assert len(run.context) == 2


def test_agent_run_tool_result():
    run = AgentRun.start([])
    run.add_tool_result(LLMMessage(role="tool", content="Result data", tool_call_id="tool_123", name="web_search"))

    assert run.transcript[0].role == "tool"
    assert run.transcript[0].tool_call_id == "tool_123"
    assert run.transcript[0].name == "web_search"


@pytest.mark.asyncio
async def test_agent_simple_reply(settings, scripted_llm, make_reply):
    """A plain reply finishes in one step with one new assistant message."""
    llm = scripted_llm([make_reply("Hello! How can I help you?")])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings)

    run = await agent.run([LLMMessage(role="user", content="hi")])

    assert run.steps == 1
    assert run.state == LoopState.DONE
    assert run.content == "Hello! How can I help you?"
    assert run.new_messages == [LLMMessage(role="assistant", content="Hello! How can I help you?")]
    assert run.input_tokens == 5
    assert run.output_tokens == 5


@pytest.mark.asyncio
async def test_agent_three_tool_steps(settings, scripted_llm, make_reply, make_call):
    """Three tool rounds then a reply: 3 tool results and 4 assistant messages."""
    llm = scripted_llm([
        make_call(("c1", "echo", {"text": "one"})),
        make_call(("c2", "echo", {"text": "two"})),
        make_call(("c3", "echo", {"text": "three"})),
        make_reply("All done."),
    ])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings)

    run = await agent.run([LLMMessage(role="user", content="Do it")])

    assert run.steps == 4
    assert run.state == LoopState.DONE
    roles = [m.role for m in run.new_messages]
    assert roles.count("tool") == 3
    assert roles.count("assistant") == 4
    assert roles == ["assistant", "tool"] * 3 + ["assistant"]
    assert run.new_messages[1].content == "echo: one"
    assert run.new_messages[1].tool_call_id == "c1"
    assert run.content == "All done."


@pytest.mark.asyncio
async def test_agent_tool_error_becomes_content(settings, scripted_llm, make_reply, make_call):
    """A throwing tool is reported to the model, not raised."""
    llm = scripted_llm([
        make_call(("c1", "fragile", {"text": "x"})),
        make_reply("Sorry, that failed."),
    ])
    agent = Agent(llm=llm, tool_registry=_registry(_tool("fragile", failing_handler)), settings=settings)

    run = await agent.run([LLMMessage(role="user", content="Try it")])

    tool_message = run.new_messages[1]
    assert tool_message.role == "tool"
    assert tool_message.content.startswith("Error:")
    assert "boom" in tool_message.content
    assert run.state == LoopState.DONE
    # The model saw the error on its second invocation
    assert any(m.role == "tool" and "boom" in m.content for m in llm.calls[1])


@pytest.mark.asyncio
async def test_agent_unknown_tool(settings, scripted_llm, make_reply, make_call):
    llm = scripted_llm([make_call(("c1", "missing", {})), make_reply("ok")])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings)

    run = await agent.run([LLMMessage(role="user", content="go")])

    assert run.new_messages[1].content == "Error: Tool 'missing' not found"


@pytest.mark.asyncio
async def test_agent_step_limit(settings, scripted_llm, make_call):
    """The loop stops after max_steps invocations with a fixed apology."""
    llm = scripted_llm([make_call((f"c{i}", "echo", {"text": str(i)})) for i in range(10)])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings, max_steps=3)

    run = await agent.run([LLMMessage(role="user", content="loop forever")])

    assert run.steps == 3
    assert len(llm.calls) == 3
    assert run.state == LoopState.ABORTED
    assert run.content == STEP_LIMIT_MESSAGE
    assert run.new_messages[-1] == LLMMessage(role="assistant", content=STEP_LIMIT_MESSAGE)


@pytest.mark.asyncio
async def test_agent_max_steps_override_per_run(settings, scripted_llm, make_call):
    llm = scripted_llm([make_call((f"c{i}", "echo", {"text": "x"})) for i in range(10)])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings, max_steps=5)

    run = await agent.run([LLMMessage(role="user", content="go")], max_steps=2)

    assert run.steps == 2


@pytest.mark.asyncio
async def test_agent_explicit_zero_max_steps_is_honored(settings, scripted_llm, make_reply):
    llm = scripted_llm([make_reply("never sent")])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings, max_steps=0)

    run = await agent.run([LLMMessage(role="user", content="go")])

    assert agent.max_steps == 0
    assert run.steps == 0
    assert llm.calls == []
    assert run.state == LoopState.ABORTED
    assert run.content == STEP_LIMIT_MESSAGE


@pytest.mark.asyncio
async def test_agent_tools_run_concurrently_in_call_order(settings, scripted_llm, make_reply, make_call):
    """Both tools of one step run together; results keep the requested order."""
    second_started = asyncio.Event()

    async def waits_for_second(text: str) -> ToolResult:
        await asyncio.wait_for(second_started.wait(), timeout=2)
        return ToolResult(success=True, output="first")

    async def second(text: str) -> ToolResult:
        second_started.set()
        return ToolResult(success=True, output="second")

    llm = scripted_llm([
        make_call(("a", "first", {"text": ""}), ("b", "second", {"text": ""})),
        make_reply("done"),
    ])
    registry = _registry(_tool("first", waits_for_second), _tool("second", second))
    agent = Agent(llm=llm, tool_registry=registry, settings=settings)

    run = await agent.run([LLMMessage(role="user", content="go")])

    results = [m for m in run.new_messages if m.role == "tool"]
    assert [m.tool_call_id for m in results] == ["a", "b"]
    assert [m.content for m in results] == ["first", "second"]


@pytest.mark.asyncio
async def test_agent_model_failure_propagates(settings, scripted_llm):
    llm = scripted_llm([RuntimeError("API Error")])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings)

    with pytest.raises(LLMInvocationError) as excinfo:
        await agent.run([LLMMessage(role="user", content="Hello!")])

    assert excinfo.value.provider == "scripted"
    assert "API Error" in str(excinfo.value)


@pytest.mark.asyncio
async def test_agent_does_not_mutate_input(settings, scripted_llm, make_reply, make_call):
    llm = scripted_llm([make_call(("c1", "echo", {"text": "x"})), make_reply("ok")])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings)
    messages = [LLMMessage(role="user", content="go")]

    await agent.run(messages)

    assert messages == [LLMMessage(role="user", content="go")]


@pytest.mark.asyncio
async def test_agent_passes_session_id_to_tools(settings, scripted_llm, make_reply, make_call):
    seen = {}

    async def whoami(text: str, context: ToolContext) -> ToolResult:
        seen["session_id"] = context.session_id
        return ToolResult(success=True, output="ok")

    llm = scripted_llm([make_call(("c1", "whoami", {"text": ""})), make_reply("ok")])
    agent = Agent(llm=llm, tool_registry=_registry(_tool("whoami", whoami)), settings=settings)

    await agent.run([LLMMessage(role="user", content="go")], session_id="session-42")

    assert seen["session_id"] == "session-42"


@pytest.mark.asyncio
async def test_agent_truncates_large_tool_output(settings, scripted_llm, make_reply, make_call):
    async def huge(text: str) -> ToolResult:
        return ToolResult(success=True, output="z" * 5000)

    llm = scripted_llm([make_call(("c1", "huge", {"text": ""})), make_reply("ok")])
    agent = Agent(
        llm=llm,
        tool_registry=_registry(_tool("huge", huge)),
        settings=settings,
        compaction_config=CompactionConfig(tool_result_max_chars=100),
    )

    run = await agent.run([LLMMessage(role="user", content="go")])

    content = run.new_messages[1].content
    assert content.startswith("z" * 100)
    assert "[OUTPUT TRUNCATED" in content


@pytest.mark.asyncio
async def test_agent_window_respects_budget(settings, scripted_llm, make_reply):
    """Old history beyond the window budget is not sent to the model."""
    history = []
    for i in range(20):
        history.append(LLMMessage(role="user", content=f"old question {i}"))
        history.append(LLMMessage(role="assistant", content=f"old answer {i}"))
    history.append(LLMMessage(role="user", content="latest"))

    llm = scripted_llm([make_reply("ok")])
    agent = Agent(llm=llm, tool_registry=_registry(), settings=settings, window_budget=100)

    run = await agent.run(history)

    sent = llm.calls[0]
    assert sent[-1].content == "latest"
    assert len(sent) < len(history)
    # The raw transcript keeps everything
    assert run.transcript[:len(history)] == history


@pytest.mark.asyncio
async def test_agent_compacts_mid_loop(settings, scripted_llm, make_reply):
    """An oversized context is folded before the model call; the transcript is not."""
    history = [LLMMessage(role="system", content="You are helpful.")]
    for i in range(10):
        history.append(LLMMessage(role="user", content=f"question {i} " + "q" * 200))
        history.append(LLMMessage(role="assistant", content=f"answer {i} " + "a" * 200))

    summarizer = MagicMock(spec=["summarize"])
    summarizer.summarize = AsyncMock(return_value="Ten questions were answered.")
    llm = scripted_llm([make_reply("ok")])
    agent = Agent(
        llm=llm,
        tool_registry=_registry(),
        settings=settings,
        summarizer=summarizer,
        compaction_config=CompactionConfig(threshold=1000, head_anchors=1, tail_anchors=4),
    )

    run = await agent.run(history)

    summarizer.summarize.assert_awaited()
    assert run.compaction_count >= 1
    sent = llm.calls[0]
    assert sent[0] == history[0]
    assert sent[1].content.startswith(FOLDED_SUMMARY_MARKER)
    assert sent[-1] == history[-1]
    assert run.transcript[:len(history)] == history
    assert run.new_messages == [LLMMessage(role="assistant", content="ok")]


@pytest.mark.asyncio
async def test_agent_compacts_tool_steps_of_a_single_turn(settings, scripted_llm, make_reply, make_call):
    """Tool traffic produced after the latest user message is foldable too."""
    async def fetch(text: str) -> ToolResult:
        return ToolResult(success=True, output="x" * 3000)

    history = [
        LLMMessage(role="system", content="You are helpful."),
        LLMMessage(role="user", content="Research this for me"),
    ]
    summarizer = MagicMock(spec=["summarize"])
    summarizer.summarize = AsyncMock(return_value="Fetched several pages.")
    llm = scripted_llm(
        [make_call((f"c{i}", "fetch", {"text": ""})) for i in range(6)] + [make_reply("done")]
    )
    agent = Agent(
        llm=llm,
        tool_registry=_registry(_tool("fetch", fetch)),
        settings=settings,
        summarizer=summarizer,
        compaction_config=CompactionConfig(threshold=2000, head_anchors=1, tail_anchors=2),
    )

    run = await agent.run(history)

    assert run.content == "done"
    assert run.compaction_count >= 1
    last_window = llm.calls[-1]
    assert last_window[:2] == history
    assert last_window[2].content.startswith(FOLDED_SUMMARY_MARKER)
    assert agent.size_of(last_window) < agent.size_of(run.transcript)
    # The raw transcript keeps every tool result
    assert len(run.new_messages) == 13
    assert run.new_messages[1].content == "x" * 3000


@pytest.mark.asyncio
async def test_agent_schedules_archive(settings, scripted_llm, make_reply):
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(return_value="unused")
    summarizer.archive = AsyncMock(return_value="digest")
    background = BackgroundTasks()
    llm = scripted_llm([make_reply("ok")])
    agent = Agent(
        llm=llm,
        tool_registry=_registry(),
        settings=settings,
        summarizer=summarizer,
        background=background,
        archive_min_messages=2,
    )

    await agent.run([LLMMessage(role="user", content="hi")])
    await background.drain()

    summarizer.archive.assert_awaited_once()
    archived = summarizer.archive.await_args.args[0]
    assert [m.role for m in archived] == ["user", "assistant"]
