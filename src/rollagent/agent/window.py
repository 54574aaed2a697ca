"""
Context window builder.

Turns a raw transcript into a budget-bounded list of blocks for one model
invocation. System blocks are always kept; the remaining budget is filled
from the most recent block backwards, so the oldest history is dropped first.
"""

import structlog

from ..llm.base import LLMMessage, ModelLimits
from .blocks import Block, SizeFunction, chunk_into_blocks, estimate_size, flatten_blocks

logger = structlog.get_logger()


def compute_budget(limits: ModelLimits) -> int:
    """Capacity left for input after reserving output space and a margin."""
    return limits.context_window - limits.max_output_tokens - limits.safety_margin


def build_window(
    blocks: list[Block],
    budget: int,
    size_of: SizeFunction = estimate_size,
) -> list[Block]:
    """Select the blocks that fit in ``budget``.

    The result can only exceed ``budget`` when the system blocks alone do.
    """
    system_blocks = [b for b in blocks if b.is_system]
    other_blocks = [b for b in blocks if not b.is_system]

    total = sum(size_of(b.messages) for b in system_blocks)
    if total > budget:
        logger.warning("System content alone exceeds window budget", size=total, budget=budget)

    included: list[Block] = []
    for position in range(len(other_blocks) - 1, -1, -1):
        block = other_blocks[position]
        block_size = size_of(block.messages)
        if total + block_size > budget:
            logger.warning(
                "Context window truncated",
                dropped_blocks=position + 1,
                budget=budget,
            )
            break
        total += block_size
        included.append(block)

    included.reverse()
    return system_blocks + included


def build_context_window(
    messages: list[LLMMessage],
    budget: int,
    size_of: SizeFunction = estimate_size,
) -> list[LLMMessage]:
    """Chunk, select and flatten in one call."""
    return flatten_blocks(build_window(chunk_into_blocks(messages), budget, size_of))
