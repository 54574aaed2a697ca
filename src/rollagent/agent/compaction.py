"""
Conversation Compaction - keeps a running transcript under its size threshold.

Two complementary strategies:
- Hard truncation of tool output, always available. A single pathological
  tool result can never grow the transcript without bound.
- Synopsis compaction, when a summarizer is configured. A middle span of the
  transcript is folded into one assistant message while the leading anchors,
  the trailing anchors, the latest user message and any pending tool block
  stay verbatim.

Span boundaries always fall on block boundaries.
"""

from dataclasses import dataclass
from typing import Protocol

import structlog

from ..llm.base import LLMMessage
from ..memory.summarizer import is_no_key_facts
from .blocks import SizeFunction, block_boundaries, chunk_into_blocks, estimate_size

logger = structlog.get_logger()

FOLDED_SUMMARY_MARKER = "[Folded summary]"
EMPTY_SPAN_NOTICE = (
    f"{FOLDED_SUMMARY_MARKER} The earlier part of this conversation held no "
    "information worth retaining."
)

DEFAULT_THRESHOLD = 60_000
DEFAULT_HEAD_ANCHORS = 1
DEFAULT_TAIL_ANCHORS = 4
DEFAULT_TOOL_RESULT_MAX_CHARS = 8000
DEFAULT_TOOL_RESULT_MIN_CHARS = 300


class SummarizerLike(Protocol):
    async def summarize(
        self, messages: list[LLMMessage], prior_context: list[str] | None = None
    ) -> str: ...


@dataclass
class CompactionConfig:
    """Configuration for transcript compaction."""

    threshold: int = DEFAULT_THRESHOLD
    head_anchors: int = DEFAULT_HEAD_ANCHORS
    tail_anchors: int = DEFAULT_TAIL_ANCHORS
    tool_result_max_chars: int = DEFAULT_TOOL_RESULT_MAX_CHARS
    tool_result_min_chars: int = DEFAULT_TOOL_RESULT_MIN_CHARS
    enabled: bool = True


@dataclass
class CompactionResult:
    """Result of a compaction operation."""

    original_message_count: int
    compacted_message_count: int
    size_before: int
    size_after: int
    folded_message_count: int = 0
    summary: str = ""

    @property
    def compacted(self) -> bool:
        return self.folded_message_count > 0


def truncate_tool_output(text: str, limit: int, tool_name: str = "") -> str:
    """Cut ``text`` to ``limit`` characters and append a truncation marker."""
    if limit <= 0 or len(text) <= limit:
        return text

    original_length = len(text)
    source = f" from {tool_name}" if tool_name else ""
    logger.warning(
        "Tool output truncated",
        tool_name=tool_name,
        original_chars=original_length,
        limit=limit,
    )
    return (
        f"{text[:limit]}\n\n[OUTPUT TRUNCATED: showing {limit:,} of "
        f"{original_length:,} characters{source}]"
    )


def tool_output_limit(transcript_size: int, config: CompactionConfig) -> int:
    """Pick the truncation cap for new tool output."""
    if transcript_size > config.threshold:
        return config.tool_result_min_chars
    return config.tool_result_max_chars


def _last_user_index(messages: list[LLMMessage]) -> int | None:
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == "user":
            return index
    return None


def _first_pending_index(messages: list[LLMMessage]) -> int | None:
    """Start of the first tool block still waiting for results."""
    position = 0
    for block in chunk_into_blocks(messages):
        if block.is_tool_block and not block.is_complete:
            return position
        position += len(block)
    return None


def _foldable_size(messages: list[LLMMessage], size_of: SizeFunction) -> int:
    return size_of([m for m in messages if m.role != "system"])


def find_fold_span(
    messages: list[LLMMessage],
    config: CompactionConfig,
    protected_from: int | None = None,
    size_of: SizeFunction = estimate_size,
) -> tuple[int, int]:
    """Return ``(start, end)`` of the foldable middle span, end exclusive.

    When the latest user message sits inside the middle, it splits it into
    the history before it and the current turn's work after it. The message
    itself stays verbatim and the heavier side is folded, so a long run of
    tool steps after one question can still be compacted.

    An empty span (``start >= end``) means nothing can be folded.
    """
    boundaries = block_boundaries(messages)
    count = len(messages)

    start = next((b for b in boundaries if b >= config.head_anchors), count)

    tail_start = count - config.tail_anchors
    for limit in (protected_from, _first_pending_index(messages)):
        if limit is not None:
            tail_start = min(tail_start, limit)
    end = max((b for b in boundaries if b <= tail_start), default=0)

    last_user = _last_user_index(messages)
    if last_user is None or not start <= last_user < end:
        return start, end

    # A user message is a block of its own, so both sides stay block-aligned
    before = (start, last_user)
    after = (last_user + 1, end)
    return max(
        before,
        after,
        key=lambda span: _foldable_size(messages[span[0]:span[1]], size_of),
    )


def _fallback_summary(messages: list[LLMMessage]) -> str:
    """Create a basic summary without an LLM (used when summarization fails)."""
    parts = ["Earlier in this conversation:"]

    user_count = sum(1 for m in messages if m.role == "user")
    assistant_count = sum(1 for m in messages if m.role == "assistant")
    tool_count = sum(1 for m in messages if m.role == "tool")
    parts.append(
        f"[{user_count} user messages, {assistant_count} assistant responses, "
        f"{tool_count} tool results folded]"
    )

    user_messages = [m for m in messages if m.role == "user"]
    if user_messages:
        parts.append(f"First topic: {user_messages[0].content[:150]}")
        if len(user_messages) > 1:
            parts.append(f"Last topic before this: {user_messages[-1].content[:150]}")

    return "\n".join(parts)


async def compact_transcript(
    messages: list[LLMMessage],
    summarizer: SummarizerLike,
    config: CompactionConfig | None = None,
    *,
    protected_from: int | None = None,
    size_of: SizeFunction = estimate_size,
) -> tuple[list[LLMMessage], CompactionResult]:
    """Fold the middle of an oversized transcript into one synopsis message.

    Args:
        messages: The running transcript
        summarizer: Summarization capability
        config: Compaction configuration
        protected_from: Index from which messages must stay untouched
        size_of: Size metric

    Returns:
        Tuple of (possibly compacted messages, compaction result)
    """
    config = config or CompactionConfig()
    size_before = size_of(messages)

    unchanged = CompactionResult(
        original_message_count=len(messages),
        compacted_message_count=len(messages),
        size_before=size_before,
        size_after=size_before,
    )

    if not config.enabled or size_before <= config.threshold:
        return messages, unchanged

    start, end = find_fold_span(messages, config, protected_from, size_of)
    span = messages[start:end]
    hoisted = [m for m in span if m.role == "system"]
    to_fold = [m for m in span if m.role != "system"]

    if not to_fold:
        logger.info("Transcript over threshold but nothing is foldable", size=size_before)
        return messages, unchanged

    logger.info(
        "Starting transcript compaction",
        message_count=len(messages),
        size=size_before,
        threshold=config.threshold,
        span_start=start,
        span_end=end,
    )

    try:
        summary = await summarizer.summarize(to_fold)
    except Exception as e:
        logger.error("Compaction summarization failed, using fallback", error=str(e))
        summary = _fallback_summary(to_fold)

    if is_no_key_facts(summary):
        content = EMPTY_SPAN_NOTICE
    else:
        content = f"{FOLDED_SUMMARY_MARKER} {summary.strip()}"

    folded = LLMMessage(role="assistant", content=content)
    compacted = messages[:start] + hoisted + [folded] + messages[end:]

    result = CompactionResult(
        original_message_count=len(messages),
        compacted_message_count=len(compacted),
        size_before=size_before,
        size_after=size_of(compacted),
        folded_message_count=len(to_fold),
        summary=summary[:500],
    )

    logger.info(
        "Compaction complete",
        original=result.original_message_count,
        compacted=result.compacted_message_count,
        size_after=result.size_after,
    )

    return compacted, result
