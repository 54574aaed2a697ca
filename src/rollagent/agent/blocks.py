"""
Message blocks - the atomic unit of context windowing.

A block is either a single system/user/plain-assistant message, or an
assistant message carrying tool calls followed by every tool message that
answers them. Windowing, truncation and compaction include or drop whole
blocks only, so a tool call is never separated from its results.
"""

import json
from dataclasses import dataclass, field
from typing import Callable

import structlog

from ..llm.base import LLMMessage

logger = structlog.get_logger()

# Fixed per-message overhead for role markers and framing
MESSAGE_OVERHEAD = 10

SizeFunction = Callable[[list[LLMMessage]], int]


@dataclass
class Block:
    """A run of messages that must stay together."""

    messages: list[LLMMessage] = field(default_factory=list)

    @property
    def is_system(self) -> bool:
        return bool(self.messages) and self.messages[0].role == "system"

    @property
    def is_tool_block(self) -> bool:
        return bool(self.messages) and self.messages[0].has_tool_calls

    @property
    def call_ids(self) -> set[str]:
        if not self.is_tool_block:
            return set()
        return {tc.id for tc in self.messages[0].tool_calls or []}

    @property
    def is_complete(self) -> bool:
        """Whether every tool call in this block has an answering message."""
        answered = {m.tool_call_id for m in self.messages[1:] if m.role == "tool"}
        return self.call_ids <= answered

    def __len__(self) -> int:
        return len(self.messages)


def estimate_size(messages: list[LLMMessage]) -> int:
    """Approximate size of messages: content + serialized tool calls + overhead.

    This is a character-length heuristic, not token accounting.
    """
    total = 0
    for msg in messages:
        total += len(msg.content) if msg.content else 0
        if msg.tool_calls:
            total += len(json.dumps([tc.to_dict() for tc in msg.tool_calls], ensure_ascii=False))
        total += MESSAGE_OVERHEAD
    return total


def chunk_into_blocks(messages: list[LLMMessage]) -> list[Block]:
    """Group a transcript into blocks, scanning left to right.

    Malformed shapes (a tool message with no open tool block, or one whose
    call id matches nothing in the open block) are tolerated and logged.
    """
    blocks: list[Block] = []
    current: Block | None = None

    def close() -> None:
        nonlocal current
        if current is not None:
            blocks.append(current)
            current = None

    for index, msg in enumerate(messages):
        if msg.role == "system":
            close()
            blocks.append(Block([msg]))
        elif msg.has_tool_calls:
            close()
            current = Block([msg])
        elif msg.role == "tool" and current is not None:
            if msg.tool_call_id not in current.call_ids:
                logger.warning(
                    "Tool message answers an unknown call id",
                    index=index,
                    tool_call_id=msg.tool_call_id,
                )
            current.messages.append(msg)
        else:
            close()
            if msg.role == "tool":
                logger.warning(
                    "Orphaned tool message in transcript",
                    index=index,
                    tool_call_id=msg.tool_call_id,
                )
            blocks.append(Block([msg]))

    close()
    return blocks


def flatten_blocks(blocks: list[Block]) -> list[LLMMessage]:
    """Concatenate blocks back into a flat message list."""
    return [msg for block in blocks for msg in block.messages]


def block_boundaries(messages: list[LLMMessage]) -> list[int]:
    """Start index of every block in ``messages``, plus ``len(messages)``."""
    starts = []
    position = 0
    for block in chunk_into_blocks(messages):
        starts.append(position)
        position += len(block)
    starts.append(position)
    return starts
