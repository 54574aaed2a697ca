"""
Agent module - the brain of the system.

Includes:
- Agent: The think/act loop over an LLM and a tool registry
- Blocks, windowing and compaction: keeping the context inside its budget
- RollingSummaryManager: Multi-epoch summaries of long sessions
- SessionManager: Persistent conversation sessions
"""

from .background import BackgroundTasks
from .blocks import Block, chunk_into_blocks, estimate_size, flatten_blocks
from .compaction import CompactionConfig, CompactionResult, compact_transcript, truncate_tool_output
from .core import Agent, AgentRun, LoopState
from .rolling import RollingSummaryManager
from .session import FAILURE_MESSAGE, SessionManager
from .window import build_context_window, build_window, compute_budget

__all__ = [
    "Agent",
    "AgentRun",
    "LoopState",
    "BackgroundTasks",
    "Block",
    "chunk_into_blocks",
    "estimate_size",
    "flatten_blocks",
    "CompactionConfig",
    "CompactionResult",
    "compact_transcript",
    "truncate_tool_output",
    "RollingSummaryManager",
    "FAILURE_MESSAGE",
    "SessionManager",
    "build_context_window",
    "build_window",
    "compute_budget",
]
