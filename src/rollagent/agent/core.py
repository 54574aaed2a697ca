"""
Core agent implementation: the step loop.

Each step builds a budget-bounded context window, invokes the model and
either finishes (no tool calls) or executes the requested tools and feeds
their results back. The loop:
1. Never splits a tool call from its results (windowing works on blocks)
2. Compacts the running context when it crosses the size threshold
3. Runs the tools of one step concurrently, appending results in call order
4. Captures tool failures as tool output instead of raising
5. Stops after ``max_steps`` model invocations with a fixed apology
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog

from ..config import Settings, get_settings
from ..exceptions import LLMInvocationError
from ..llm import BaseLLM, LLMMessage, LLMResponse, ToolCall, ToolDefinition, create_llm
from ..tools import ToolContext, ToolRegistry
from .background import BackgroundTasks
from .blocks import estimate_size
from .compaction import (
    CompactionConfig,
    SummarizerLike,
    compact_transcript,
    tool_output_limit,
    truncate_tool_output,
)
from .window import build_context_window, compute_budget

logger = structlog.get_logger()

STEP_LIMIT_MESSAGE = (
    "I'm sorry, I tried several approaches but still could not gather enough "
    "information to answer, so I stopped here."
)


class LoopState(str, Enum):
    """States of the execution loop."""

    THINKING = "thinking"
    ACTING = "acting"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class AgentRun:
    """Working state of one loop invocation.

    ``transcript`` is append-only: the caller's messages followed by every
    message the loop produced. ``context`` is what the model sees; it gets the
    same appends but may be compacted in place.
    """

    transcript: list[LLMMessage] = field(default_factory=list)
    context: list[LLMMessage] = field(default_factory=list)
    input_length: int = 0
    state: LoopState = LoopState.THINKING
    steps: int = 0
    content: str = ""
    compaction_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    @classmethod
    def start(cls, messages: list[LLMMessage]) -> "AgentRun":
        return cls(
            transcript=list(messages),
            context=list(messages),
            input_length=len(messages),
        )

    def _append(self, message: LLMMessage) -> None:
        self.transcript.append(message)
        self.context.append(message)

    def add_assistant_message(
        self, content: str, tool_calls: list[ToolCall] | None = None
    ) -> None:
        """Add an assistant message."""
        self._append(LLMMessage(
            role="assistant",
            content=content,
            tool_calls=tool_calls or None,
        ))

    def add_tool_result(self, message: LLMMessage) -> None:
        """Add a tool result."""
        self._append(message)

    @property
    def messages(self) -> list[LLMMessage]:
        return self.transcript

    @property
    def new_messages(self) -> list[LLMMessage]:
        """Messages produced by this run, found by index rather than identity."""
        return self.transcript[self.input_length:]

    @property
    def finished(self) -> bool:
        return self.state in (LoopState.DONE, LoopState.ABORTED)


class Agent:
    """Runs the think/act loop against a model and a tool registry."""

    def __init__(
        self,
        llm: BaseLLM | None = None,
        tool_registry: ToolRegistry | None = None,
        settings: Settings | None = None,
        summarizer: SummarizerLike | None = None,
        compaction_config: CompactionConfig | None = None,
        background: BackgroundTasks | None = None,
        max_steps: int | None = None,
        window_budget: int | None = None,
        archive_min_messages: int | None = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm or create_llm(settings=self.settings)
        self.tool_registry = tool_registry or ToolRegistry()
        self.summarizer = summarizer
        self.compaction_config = compaction_config or self.settings.get_context_config()
        self.background = background or BackgroundTasks()
        self.max_steps = max_steps if max_steps is not None else self.settings.max_steps
        self.window_budget = window_budget
        self.archive_min_messages = (
            archive_min_messages
            if archive_min_messages is not None
            else self.settings.archive_min_messages
        )

    @property
    def budget(self) -> int:
        """Window budget: explicit override, else derived from model limits."""
        if self.window_budget is not None:
            return self.window_budget
        return compute_budget(self.llm.limits)

    def size_of(self, messages: list[LLMMessage]) -> int:
        """Model-supplied estimate when available, else the character heuristic."""
        estimate = self.llm.estimate_tokens(messages)
        if isinstance(estimate, int):
            return estimate
        return estimate_size(messages)

    async def run(
        self,
        messages: list[LLMMessage],
        *,
        session_id: str | None = None,
        max_steps: int | None = None,
        tools: list[ToolDefinition] | None = None,
    ) -> AgentRun:
        """Run the loop until the model answers or the step cap is hit.

        The caller's list is copied, never mutated. Model failures propagate
        as LLMInvocationError; everything else is absorbed into the run.
        """
        max_steps = max_steps if max_steps is not None else self.max_steps
        tools = tools if tools is not None else self.tool_registry.get_definitions()
        tool_context = ToolContext(session_id=session_id)
        run = AgentRun.start(messages)

        while run.steps < max_steps:
            run.state = LoopState.THINKING
            await self._maybe_compact(run)

            window = build_context_window(run.context, self.budget, self.size_of)
            run.steps += 1
            logger.info(
                "Agent step",
                session_id=session_id,
                step=run.steps,
                window_messages=len(window),
                context_messages=len(run.context),
            )

            response = await self._invoke(window, tools)
            run.input_tokens += response.input_tokens
            run.output_tokens += response.output_tokens

            if not response.tool_calls:
                run.add_assistant_message(response.content)
                run.content = response.content
                run.state = LoopState.DONE
                logger.info("Agent finished", session_id=session_id, steps=run.steps)
                self._schedule_archive(run)
                return run

            run.add_assistant_message(response.content or "", response.tool_calls)
            run.state = LoopState.ACTING
            logger.info(
                "Executing tool calls",
                session_id=session_id,
                tools=[tc.name for tc in response.tool_calls],
            )

            limit = tool_output_limit(self.size_of(run.context), self.compaction_config)
            for result in await self._execute_tools(response.tool_calls, tool_context, limit):
                run.add_tool_result(result)

        logger.warning("Step limit reached, aborting", session_id=session_id, max_steps=max_steps)
        run.add_assistant_message(STEP_LIMIT_MESSAGE)
        run.content = STEP_LIMIT_MESSAGE
        run.state = LoopState.ABORTED
        self._schedule_archive(run)
        return run

    async def _invoke(
        self, window: list[LLMMessage], tools: list[ToolDefinition]
    ) -> LLMResponse:
        try:
            return await self.llm.generate(window, tools=tools or None)
        except Exception as e:
            logger.error("LLM generation error", provider=self.llm.provider_name, error=str(e))
            raise LLMInvocationError(str(self.llm.provider_name), e) from e

    async def _maybe_compact(self, run: AgentRun) -> None:
        """Fold the middle of the context if it has grown past the threshold."""
        if self.summarizer is None or not self.compaction_config.enabled:
            return
        if self.size_of(run.context) <= self.compaction_config.threshold:
            return

        compacted, result = await compact_transcript(
            run.context,
            self.summarizer,
            self.compaction_config,
            size_of=self.size_of,
        )
        if result.compacted:
            run.context = compacted
            run.compaction_count += 1

    async def _execute_tools(
        self,
        tool_calls: list[ToolCall],
        context: ToolContext,
        limit: int,
    ) -> list[LLMMessage]:
        """Run every call of one step concurrently; results keep call order."""

        async def run_one(call: ToolCall) -> LLMMessage:
            try:
                result = await self.tool_registry.execute(call.name, call.arguments, context)
                text = result.render()
            except Exception as e:
                logger.error("Tool invocation failed", tool=call.name, error=str(e))
                text = f"Error: {e}"
            return LLMMessage(
                role="tool",
                content=truncate_tool_output(text, limit, call.name),
                tool_call_id=call.id,
                name=call.name,
            )

        return list(await asyncio.gather(*(run_one(call) for call in tool_calls)))

    def _schedule_archive(self, run: AgentRun) -> None:
        """Queue archival summarization of the full transcript, without waiting."""
        if self.summarizer is None or not hasattr(self.summarizer, "archive"):
            return
        if len(run.transcript) < self.archive_min_messages:
            return
        snapshot = list(run.transcript)
        self.background.spawn(self.summarizer.archive(snapshot), name="archive-transcript")
