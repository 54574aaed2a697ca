"""
Tests for message blocks.
"""

from rollagent.agent.blocks import (
    MESSAGE_OVERHEAD,
    Block,
    block_boundaries,
    chunk_into_blocks,
    estimate_size,
    flatten_blocks,
)
from rollagent.llm.base import LLMMessage, ToolCall


def _tool_turn(call_ids: list[str]) -> list[LLMMessage]:
    calls = [ToolCall(id=cid, name="lookup", arguments={"q": cid}) for cid in call_ids]
    return [LLMMessage(role="assistant", content="", tool_calls=calls)] + [
        LLMMessage(role="tool", content=f"result {cid}", tool_call_id=cid, name="lookup")
        for cid in call_ids
    ]


def _transcript() -> list[LLMMessage]:
    return [
        LLMMessage(role="system", content="You are helpful."),
        LLMMessage(role="user", content="What's the weather?"),
        *_tool_turn(["a", "b"]),
        LLMMessage(role="assistant", content="Sunny."),
        LLMMessage(role="user", content="Thanks"),
    ]


def test_chunk_groups_tool_call_with_results():
    """An assistant tool call and its results form one block."""
    blocks = chunk_into_blocks(_transcript())

    assert [len(b) for b in blocks] == [1, 1, 3, 1, 1]
    assert blocks[0].is_system
    assert blocks[2].is_tool_block
    assert blocks[2].call_ids == {"a", "b"}
    assert blocks[2].is_complete


def test_chunk_round_trip():
    """Flattening the blocks gives back the original sequence."""
    messages = _transcript()
    assert flatten_blocks(chunk_into_blocks(messages)) == messages


def test_chunk_empty_transcript():
    assert chunk_into_blocks([]) == []


def test_orphaned_tool_message_becomes_own_block():
    """A tool message with no open tool block is kept, not dropped."""
    messages = [
        LLMMessage(role="user", content="hi"),
        LLMMessage(role="tool", content="stray", tool_call_id="x"),
        LLMMessage(role="assistant", content="hello"),
    ]
    blocks = chunk_into_blocks(messages)

    assert [len(b) for b in blocks] == [1, 1, 1]
    assert flatten_blocks(blocks) == messages


def test_unknown_call_id_stays_in_open_block():
    messages = _tool_turn(["a"]) + [
        LLMMessage(role="tool", content="extra", tool_call_id="zzz"),
    ]
    blocks = chunk_into_blocks(messages)

    assert len(blocks) == 1
    assert len(blocks[0]) == 3


def test_pending_tool_block_is_incomplete():
    """A tool block still waiting for some results reports incomplete."""
    messages = _tool_turn(["a", "b"])[:2]
    block = chunk_into_blocks(messages)[0]

    assert block.is_tool_block
    assert not block.is_complete


def test_plain_block_is_not_tool_block():
    block = Block([LLMMessage(role="user", content="hi")])
    assert not block.is_tool_block
    assert block.call_ids == set()


def test_block_boundaries():
    assert block_boundaries(_transcript()) == [0, 1, 2, 5, 6, 7]


def test_estimate_size_counts_content_and_overhead():
    messages = [
        LLMMessage(role="user", content="hello"),
        LLMMessage(role="assistant", content=""),
    ]
    assert estimate_size(messages) == 5 + 2 * MESSAGE_OVERHEAD


def test_estimate_size_includes_tool_calls():
    with_calls = _tool_turn(["a"])[:1]
    without_calls = [LLMMessage(role="assistant", content="")]
    assert estimate_size(with_calls) > estimate_size(without_calls)
