"""
Rolling session summaries.

A session's raw transcript only ever grows. Once too many messages sit past
the last summarized index, the older ones are folded into a new epoch: a
``RollingSummary`` that replaces that index range in the assembled view while
the persisted transcript stays untouched. Epochs are contiguous, so
replaying ``update`` over the same transcript reproduces the same ranges.
"""

import structlog

from ..llm.base import LLMMessage
from ..storage.base import RollingSummary, SessionRecord
from .blocks import block_boundaries
from .compaction import FOLDED_SUMMARY_MARKER, SummarizerLike

logger = structlog.get_logger()

DEFAULT_ROLLING_THRESHOLD = 10


class RollingSummaryManager:
    """Maintains the epoch summaries of a session record."""

    def __init__(self, summarizer: SummarizerLike, threshold: int = DEFAULT_ROLLING_THRESHOLD):
        self.summarizer = summarizer
        self.threshold = threshold

    def next_span(self, record: SessionRecord) -> tuple[int, int] | None:
        """Inclusive index range of the next epoch, or None if nothing is due.

        The newest message is never folded, and the span ends on a block
        boundary so a tool call is never separated from its results.
        """
        messages = record.messages
        start = record.covered_end + 1
        uncompressed = len(messages) - 1 - record.covered_end
        if uncompressed <= self.threshold:
            return None

        last_allowed = len(messages) - 1
        boundary = max(
            (b for b in block_boundaries(messages) if start < b <= last_allowed),
            default=None,
        )
        if boundary is None:
            return None
        return start, boundary - 1

    async def update(self, record: SessionRecord) -> RollingSummary | None:
        """Fold the next epoch into ``record`` if the threshold is exceeded.

        A failed summarization records nothing: the span stays raw in the
        assembled view and the same span is retried on the next message.
        """
        span = self.next_span(record)
        if span is None:
            return None

        start, end = span
        prior = [summary.content for summary in record.rolling_summaries]
        try:
            content = await self.summarizer.summarize(record.messages[start:end + 1], prior or None)
        except Exception as e:
            logger.warning(
                "Rolling summary skipped, will retry",
                session_id=record.session_id,
                start_index=start,
                end_index=end,
                error=str(e),
            )
            return None

        summary = RollingSummary(content=content, start_index=start, end_index=end)
        record.rolling_summaries.append(summary)
        logger.info(
            "Rolling summary created",
            session_id=record.session_id,
            start_index=start,
            end_index=end,
            epochs=len(record.rolling_summaries),
        )
        return summary

    def assemble(self, record: SessionRecord, core_memory: str | None = None) -> list[LLMMessage]:
        """Build the view handed to the agent loop.

        Order: core memory, the session's own system prompt, one message
        fusing all epoch synopses, then every raw message past the last epoch.
        """
        view: list[LLMMessage] = []
        if core_memory:
            view.append(LLMMessage(role="system", content=core_memory))

        messages = record.messages
        has_system_head = bool(messages) and messages[0].role == "system"
        if has_system_head:
            view.append(messages[0])

        if record.rolling_summaries:
            fused = "\n\n".join(
                f"Part {i + 1} (messages {s.start_index}-{s.end_index}):\n{s.content}"
                for i, s in enumerate(record.rolling_summaries)
            )
            view.append(LLMMessage(
                role="system",
                content=f"{FOLDED_SUMMARY_MARKER} Summary of the earlier conversation:\n{fused}",
            ))

        tail_start = record.covered_end + 1
        if has_system_head and tail_start == 0:
            tail_start = 1
        view.extend(messages[tail_start:])
        return view
