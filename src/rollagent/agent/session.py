"""
Session management for conversations.

``SessionManager.handle_incoming_message`` runs one full turn: load the
record, append the user message, fold old messages into rolling summaries,
assemble the view, run the agent loop and append what it produced.
"""

import asyncio
from collections import defaultdict

import structlog

from ..exceptions import LLMInvocationError, SessionNotFoundError
from ..llm.base import LLMMessage
from ..memory.core_prompt import CoreMemoryBuilder
from ..memory.service import MemoryServiceClient
from ..storage.base import SessionRecord, SessionStorage
from .background import BackgroundTasks
from .core import Agent
from .rolling import RollingSummaryManager

logger = structlog.get_logger()

FAILURE_MESSAGE = "Sorry, something went wrong while I was thinking. Please try again in a moment."

TITLE_MAX_CHARS = 50


def _make_title(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= TITLE_MAX_CHARS:
        return text
    return text[:TITLE_MAX_CHARS] + "..."


class SessionManager:
    """Manages conversation sessions and their persisted transcripts."""

    def __init__(
        self,
        agent: Agent,
        storage: SessionStorage,
        rolling: RollingSummaryManager | None = None,
        core_memory_builder: CoreMemoryBuilder | None = None,
        memory_service: MemoryServiceClient | None = None,
        background: BackgroundTasks | None = None,
    ):
        self.agent = agent
        self.storage = storage
        self.rolling = rolling
        self.core_memory_builder = core_memory_builder
        self.memory_service = memory_service
        self.background = background or agent.background
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def handle_incoming_message(self, session_id: str, user_text: str) -> str:
        """Process a user message and return the final reply text."""
        async with self._locks[session_id]:
            return await self._handle(session_id, user_text)

    async def _handle(self, session_id: str, user_text: str) -> str:
        record = await self.storage.load(session_id)
        if record is None:
            record = SessionRecord(session_id=session_id)
            logger.info("Created new session", session_id=session_id)

        user_message = LLMMessage(role="user", content=user_text)
        record.messages.append(user_message)
        if not record.title:
            record.metadata["title"] = _make_title(user_text)

        if self.rolling is not None:
            await self.rolling.update(record)

        core_memory = None
        if self.core_memory_builder is not None:
            core_memory = await self.core_memory_builder.build()

        if self.rolling is not None:
            view = self.rolling.assemble(record, core_memory)
        else:
            view = list(record.messages)
            if core_memory:
                view.insert(0, LLMMessage(role="system", content=core_memory))

        try:
            run = await self.agent.run(view, session_id=session_id)
        except LLMInvocationError as e:
            logger.error("Model invocation failed", session_id=session_id, error=str(e))
            record.messages.append(LLMMessage(role="assistant", content=FAILURE_MESSAGE))
            record.touch()
            await self.storage.save(session_id, record)
            return FAILURE_MESSAGE

        new_messages = run.new_messages
        record.messages.extend(new_messages)
        record.touch()
        await self.storage.save(session_id, record)

        logger.info(
            "Turn completed",
            session_id=session_id,
            steps=run.steps,
            state=run.state.value,
            new_messages=len(new_messages),
            total_messages=len(record.messages),
        )

        self._remember(session_id, user_message, new_messages)
        return run.content

    def _remember(
        self,
        session_id: str,
        user_message: LLMMessage,
        new_messages: list[LLMMessage],
    ) -> None:
        """Hand the turn's plain text to the memory service in the background."""
        if self.memory_service is None:
            return
        replies = [
            m for m in new_messages
            if m.role == "assistant" and not m.tool_calls and m.content
        ]
        self.background.spawn(
            self.memory_service.store_messages(
                [user_message, *replies],
                metadata={"session_id": session_id},
            ),
            name=f"memory-store:{session_id}",
        )

    async def get_session(self, session_id: str) -> SessionRecord:
        """Load a session or raise SessionNotFoundError."""
        record = await self.storage.load(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return record

    async def list_sessions(self) -> list[SessionRecord]:
        """All stored sessions, most recently updated first."""
        records = []
        for session_id in await self.storage.list_ids():
            record = await self.storage.load(session_id)
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.updated_at, reverse=True)
        return records

    async def delete_session(self, session_id: str) -> None:
        """Delete a session or raise SessionNotFoundError."""
        async with self._locks[session_id]:
            if await self.storage.load(session_id) is None:
                raise SessionNotFoundError(session_id)
            await self.storage.delete(session_id)
        self._locks.pop(session_id, None)
        logger.info("Session deleted", session_id=session_id)
