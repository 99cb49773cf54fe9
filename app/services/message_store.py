from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.ids import as_utc, utcnow
from app.models.scheduled_message import (
    STATUS_CANCELLED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    ScheduledMessage,
)


class MessageStore:
    """
    Durable table of delivery intents.

    Every status change is one conditional UPDATE on one row; the WHERE clause
    carries the expected current status, so racing writers cannot both win.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def create(self, record: ScheduledMessage) -> str:
        record.due_at = as_utc(record.due_at)
        async with self._sessions() as db:
            db.add(record)
            await db.commit()
        return record.id

    async def find_due(
        self,
        now: datetime,
        *,
        limit: int | None = None,
        after: tuple[datetime, str] | None = None,
    ) -> list[ScheduledMessage]:
        """Pending records due by `now`, earliest first. `after` is a (due_at, id) keyset cursor."""
        stmt = (
            select(ScheduledMessage)
            .where(
                ScheduledMessage.status == STATUS_PENDING,
                ScheduledMessage.due_at <= as_utc(now),
            )
            .order_by(ScheduledMessage.due_at.asc(), ScheduledMessage.id.asc())
        )
        if after is not None:
            after_due, after_id = as_utc(after[0]), after[1]
            stmt = stmt.where(or_(
                ScheduledMessage.due_at > after_due,
                and_(ScheduledMessage.due_at == after_due, ScheduledMessage.id > after_id),
            ))
        if limit:
            stmt = stmt.limit(limit)

        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def find_by_id(self, message_id: str) -> ScheduledMessage | None:
        async with self._sessions() as db:
            return (await db.execute(
                select(ScheduledMessage).where(ScheduledMessage.id == message_id)
            )).scalar_one_or_none()

    async def find_by_id_and_owner(self, message_id: str, principal_id: str) -> ScheduledMessage | None:
        async with self._sessions() as db:
            return (await db.execute(
                select(ScheduledMessage).where(
                    ScheduledMessage.id == message_id,
                    ScheduledMessage.principal_id == principal_id,
                )
            )).scalar_one_or_none()

    async def list_for_principal(self, principal_id: str) -> list[ScheduledMessage]:
        stmt = (
            select(ScheduledMessage)
            .where(ScheduledMessage.principal_id == principal_id)
            .order_by(ScheduledMessage.due_at.desc(), ScheduledMessage.created_at.desc())
        )
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def claim(self, message_id: str, now: datetime | None = None) -> bool:
        """pending -> sent (provisional). True only for the single caller whose UPDATE matched."""
        stamp = as_utc(now) if now else utcnow()
        return await self._transition(
            message_id,
            expected=STATUS_PENDING,
            status=STATUS_SENT,
            sent_at=stamp,
            last_error=None,
        )

    async def mark_sent(self, message_id: str) -> bool:
        # sent_at was stamped by the claim; this only confirms it
        return await self._transition(message_id, expected=STATUS_SENT, status=STATUS_SENT)

    async def mark_failed(self, message_id: str, error: str) -> bool:
        return await self._transition(
            message_id,
            expected=STATUS_SENT,
            status=STATUS_FAILED,
            sent_at=None,
            last_error=error,
        )

    async def cancel(self, message_id: str, principal_id: str) -> bool:
        return await self._transition(
            message_id,
            expected=STATUS_PENDING,
            status=STATUS_CANCELLED,
            principal_id=principal_id,
        )

    async def _transition(
        self,
        message_id: str,
        *,
        expected: str,
        principal_id: str | None = None,
        **values,
    ) -> bool:
        stmt = update(ScheduledMessage).where(
            ScheduledMessage.id == message_id,
            ScheduledMessage.status == expected,
        )
        if principal_id is not None:
            stmt = stmt.where(ScheduledMessage.principal_id == principal_id)

        stmt = stmt.values(updated_at=utcnow(), **values).execution_options(synchronize_session=False)

        async with self._sessions() as db:
            matched = int((await db.execute(stmt)).rowcount or 0)
            await db.commit()
        return matched == 1
