"""
SQLAlchemy-backed session storage.
"""

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from ..llm.base import LLMMessage, ToolCall
from ..models import MessageRow, SessionRow
from .base import RollingSummary, SessionRecord, SessionStorage

logger = structlog.get_logger()


def _aware(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_message(row: MessageRow) -> LLMMessage:
    return LLMMessage(
        role=row.role,  # type: ignore
        content=row.content or "",
        tool_calls=[ToolCall.from_dict(tc) for tc in row.tool_calls] if row.tool_calls else None,
        tool_call_id=row.tool_call_id,
        name=row.name,
    )


class DatabaseSessionStorage(SessionStorage):
    """Stores sessions in a relational database.

    Saving only inserts messages past the stored count, matching the
    append-only contract of the raw transcript.
    """

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def load(self, session_id: str) -> SessionRecord | None:
        async with self.session_maker() as db:
            result = await db.execute(
                select(SessionRow)
                .where(SessionRow.id == session_id)
                .options(selectinload(SessionRow.messages))
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None

            metadata = dict(row.extra_data or {})
            if row.title:
                metadata["title"] = row.title

            return SessionRecord(
                session_id=row.id,
                created_at=_aware(row.created_at),
                updated_at=_aware(row.updated_at),
                messages=[_to_message(m) for m in row.messages],
                rolling_summaries=[
                    RollingSummary.from_dict(s) for s in row.rolling_summaries or []
                ],
                metadata=metadata,
            )

    async def save(self, session_id: str, record: SessionRecord) -> None:
        async with self.session_maker() as db:
            result = await db.execute(
                select(SessionRow)
                .where(SessionRow.id == session_id)
                .options(selectinload(SessionRow.messages))
            )
            row = result.scalar_one_or_none()

            if row is None:
                row = SessionRow(id=session_id, created_at=record.created_at)
                db.add(row)
                stored_count = 0
            else:
                stored_count = len(row.messages)

            if stored_count > len(record.messages):
                logger.warning(
                    "Refusing to shrink stored transcript",
                    session_id=session_id,
                    stored=stored_count,
                    given=len(record.messages),
                )

            for position in range(stored_count, len(record.messages)):
                message = record.messages[position]
                db.add(MessageRow(
                    session_id=session_id,
                    position=position,
                    role=message.role,
                    content=message.content,
                    tool_calls=[tc.to_dict() for tc in message.tool_calls] if message.tool_calls else None,
                    tool_call_id=message.tool_call_id,
                    name=message.name,
                ))

            metadata = dict(record.metadata)
            row.title = metadata.pop("title", None)
            row.extra_data = metadata
            row.rolling_summaries = [s.to_dict() for s in record.rolling_summaries]
            row.updated_at = record.updated_at

            await db.commit()

    async def delete(self, session_id: str) -> None:
        async with self.session_maker() as db:
            await db.execute(delete(MessageRow).where(MessageRow.session_id == session_id))
            await db.execute(delete(SessionRow).where(SessionRow.id == session_id))
            await db.commit()
        logger.info("Session deleted", session_id=session_id)

    async def list_ids(self) -> list[str]:
        async with self.session_maker() as db:
            result = await db.execute(select(SessionRow.id).order_by(SessionRow.updated_at.desc()))
            return list(result.scalars().all())
