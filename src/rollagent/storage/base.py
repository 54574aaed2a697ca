"""
Session records and the storage interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..llm.base import LLMMessage


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RollingSummary:
    """One compressed epoch of a session's raw transcript.

    ``start_index`` and ``end_index`` are inclusive raw-message indices.
    """

    content: str
    start_index: int
    end_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "start_index": self.start_index,
            "end_index": self.end_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RollingSummary":
        return cls(
            content=data["content"],
            start_index=int(data["start_index"]),
            end_index=int(data["end_index"]),
        )


@dataclass
class SessionRecord:
    """Everything persisted for one session.

    ``messages`` and ``rolling_summaries`` are append-only.
    """

    session_id: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    messages: list[LLMMessage] = field(default_factory=list)
    rolling_summaries: list[RollingSummary] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def covered_end(self) -> int:
        """Last raw index folded into a summary, or -1."""
        if not self.rolling_summaries:
            return -1
        return self.rolling_summaries[-1].end_index

    @property
    def title(self) -> str | None:
        return self.metadata.get("title")

    def touch(self) -> None:
        self.updated_at = utc_now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "messages": [m.to_dict() for m in self.messages],
            "rolling_summaries": [s.to_dict() for s in self.rolling_summaries],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        return cls(
            session_id=data["session_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            messages=[LLMMessage.from_dict(m) for m in data.get("messages", [])],
            rolling_summaries=[
                RollingSummary.from_dict(s) for s in data.get("rolling_summaries", [])
            ],
            metadata=data.get("metadata") or {},
        )


class SessionStorage(ABC):
    """Persistence boundary for session records."""

    @abstractmethod
    async def load(self, session_id: str) -> SessionRecord | None:
        """Load a session, or None if it does not exist."""

    @abstractmethod
    async def save(self, session_id: str, record: SessionRecord) -> None:
        """Create or overwrite a session."""

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Remove a session; missing sessions are ignored."""

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """List stored session ids."""
