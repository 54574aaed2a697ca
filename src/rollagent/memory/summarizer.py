"""
LLM-backed summarization.

Two jobs share one model:
- ``summarize`` produces a short synopsis of a transcript span, used by
  mid-loop compaction and by rolling session summaries.
- ``archive`` distills a finished conversation and appends it to the
  ``daily`` memory category for long-term recall.
"""

import json
from datetime import date

import structlog

from ..exceptions import SummarizationError
from ..llm.base import BaseLLM, LLMMessage
from .store import MemoryStore

logger = structlog.get_logger()

# Returned by the model when a span holds nothing worth keeping
NO_KEY_FACTS = "[NO_KEY_FACTS]"

SUMMARY_CONTENT_CHARS = 300
SUMMARY_TEMPERATURE = 0.1


def is_no_key_facts(text: str) -> bool:
    """Whether a synopsis is the no-salient-content sentinel."""
    return text.strip() == NO_KEY_FACTS


def _render_transcript(messages: list[LLMMessage]) -> str:
    """Render messages as condensed ``ROLE: content`` lines."""
    lines = []
    for msg in messages:
        role = msg.role.upper()
        if msg.tool_calls:
            calls = ", ".join(
                f"{tc.name}({json.dumps(tc.arguments, ensure_ascii=False)[:120]})"
                for tc in msg.tool_calls
            )
            lines.append(f"{role} called: {calls}")
            if msg.content:
                lines.append(f"{role}: {msg.content[:SUMMARY_CONTENT_CHARS]}")
        elif msg.role == "tool":
            lines.append(f"TOOL[{msg.name or 'unknown'}]: {msg.content[:SUMMARY_CONTENT_CHARS]}")
        else:
            lines.append(f"{role}: {msg.content[:SUMMARY_CONTENT_CHARS]}")
    return "\n".join(lines)


class Summarizer:
    """Summarization capability on top of a chat model."""

    def __init__(self, llm: BaseLLM, store: MemoryStore | None = None):
        self.llm = llm
        self.store = store

    async def summarize(
        self,
        messages: list[LLMMessage],
        prior_context: list[str] | None = None,
    ) -> str:
        """Summarize a span of conversation.

        Args:
            messages: The span to fold
            prior_context: Synopses of earlier epochs, oldest first

        Returns:
            The synopsis, or ``NO_KEY_FACTS`` when the span is empty chatter

        Raises:
            SummarizationError: The model call failed
        """
        if not messages:
            return NO_KEY_FACTS

        history_section = ""
        if prior_context:
            history_section = (
                "\n\nEarlier parts of this conversation were already summarized as:\n"
                + "\n".join(f"{i + 1}. {text}" for i, text in enumerate(prior_context))
                + "\nRefer to them where useful, but do not repeat them."
            )

        prompt = f"""The conversation context is about to overflow. Summarize the core facts of the span below and the conclusions already reached.

Rules:
1. Be extremely concise (under 400 words).
2. No preamble or pleasantries.
3. Preserve names, dates, numbers, decisions and tool outcomes.
4. If the span is only small talk or tool chatter with nothing worth looking up later, reply with exactly {NO_KEY_FACTS} and nothing else.{history_section}

Conversation span:
{_render_transcript(messages)}

Summary:"""

        try:
            response = await self.llm.generate(
                [LLMMessage(role="user", content=prompt)],
                temperature=SUMMARY_TEMPERATURE,
            )
        except Exception as e:
            logger.error("Context summarization failed", error=str(e))
            raise SummarizationError(e) from e

        summary = response.content.strip()
        if not summary or NO_KEY_FACTS in summary:
            return NO_KEY_FACTS
        return summary

    async def archive(self, messages: list[LLMMessage]) -> str | None:
        """Distill a conversation and append it to today's ``daily`` memory.

        Tool traffic is filtered out; only user and assistant text is kept.
        Errors propagate to the caller, which runs this in the background.
        """
        if self.store is None:
            return None

        clean = [
            m for m in messages
            if m.role in ("user", "assistant") and not m.tool_calls and m.content
        ]
        if not clean:
            return None

        logger.info("Archiving conversation", message_count=len(clean))

        prompt = f"""You are a meticulous notes archivist. Below is today's conversation between a user and their AI assistant.
From an objective third-person point of view, distill the key events, facts learned and progress made.
No pleasantries; output Markdown bullet points or short paragraphs only.

Conversation:
{_render_transcript(clean)}"""

        response = await self.llm.generate(
            [LLMMessage(role="user", content=prompt)],
            temperature=SUMMARY_TEMPERATURE,
        )

        key = date.today().isoformat()
        await self.store.save("daily", key, response.content, append=True)
        logger.info("Conversation archived", key=f"daily/{key}")
        return response.content
