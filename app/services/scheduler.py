from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from app.core.ids import as_utc, utcnow
from app.models.scheduled_message import STATUS_PENDING, STATUSES, ScheduledMessage
from app.services.credential_refresh import CredentialRefreshMediator
from app.services.delivery_executor import DeliveryExecutor
from app.services.errors import AuthError, ExternalApiError, NotFoundError, ValidationError
from app.services.message_store import MessageStore

log = logging.getLogger(__name__)

OUTCOME_SENT = "sent"
OUTCOME_FAILED = "failed"
OUTCOME_SKIPPED = "skipped"


@dataclass
class TickResult:
    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)


class MessageScheduler:
    """Intake, cancel, force-send and the per-tick processing of due messages."""

    def __init__(
        self,
        store: MessageStore,
        credentials: CredentialRefreshMediator,
        executor: DeliveryExecutor,
        *,
        max_chars: int = 4000,
        batch_size: int | None = None,
        concurrency: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._credentials = credentials
        self._executor = executor
        self._max_chars = max_chars
        self._batch_size = batch_size
        self._concurrency = max(1, concurrency)
        self._clock = clock

    # intake

    async def schedule(
        self,
        *,
        principal_id: str,
        workspace_id: str,
        channel_id: str,
        channel_name: str,
        body: str,
        due_at: datetime,
    ) -> str:
        missing = [
            name
            for name, value in (
                ("principal_id", principal_id),
                ("workspace_id", workspace_id),
                ("channel_id", channel_id),
                ("channel_name", channel_name),
                ("body", body),
            )
            if not value or not str(value).strip()
        ]
        if missing or due_at is None:
            raise ValidationError(f"Missing required fields: {', '.join(missing or ['due_at'])}")
        if len(body) > self._max_chars:
            raise ValidationError(f"Message exceeds {self._max_chars} characters ({len(body)})")

        due_at = as_utc(due_at)
        if due_at <= self._clock():
            raise ValidationError("Scheduled time must be in the future")

        message_id = await self._store.create(ScheduledMessage(
            principal_id=principal_id,
            workspace_id=workspace_id,
            channel_id=channel_id,
            channel_name=channel_name,
            body=body,
            due_at=due_at,
            status=STATUS_PENDING,
        ))
        log.info("scheduled message=%s channel=%s due_at=%s", message_id, channel_id, due_at.isoformat())
        return message_id

    async def cancel(self, message_id: str, principal_id: str) -> bool:
        cancelled = await self._store.cancel(message_id, principal_id)
        if cancelled:
            log.info("cancelled message=%s", message_id)
        return cancelled

    async def send_now(self, message_id: str, principal_id: str | None = None) -> str:
        if principal_id is None:
            record = await self._store.find_by_id(message_id)
        else:
            record = await self._store.find_by_id_and_owner(message_id, principal_id)
        if record is None:
            raise NotFoundError(f"Scheduled message {message_id} not found")
        return await self.process(record)

    # reads

    async def list_for_principal(self, principal_id: str) -> list[ScheduledMessage]:
        return await self._store.list_for_principal(principal_id)

    async def stats(self, principal_id: str) -> dict[str, int]:
        messages = await self.list_for_principal(principal_id)
        counts = {status: 0 for status in STATUSES}
        for m in messages:
            counts[m.status] = counts.get(m.status, 0) + 1
        return {"total": len(messages), **counts}

    # processing

    async def run_tick(self, now: datetime | None = None) -> TickResult:
        now = as_utc(now) if now else self._clock()
        result = TickResult()
        sem = asyncio.Semaphore(self._concurrency)

        async def _one(record: ScheduledMessage) -> None:
            async with sem:
                try:
                    outcome = await self.process(record)
                except Exception as e:
                    # one bad record must not stop the rest of the tick
                    log.exception("tick: message=%s crashed", record.id)
                    result.errors.append((record.id, f"{type(e).__name__}: {e}"))
                    return
            if outcome == OUTCOME_SENT:
                result.sent += 1
            elif outcome == OUTCOME_FAILED:
                result.failed += 1
            else:
                result.skipped += 1

        # Walk every due record in batches; the cursor moves past records that
        # crashed and stayed pending, so they are retried next tick, not in a loop now
        cursor: tuple[datetime, str] | None = None
        while True:
            due = await self._store.find_due(now, limit=self._batch_size, after=cursor)
            if not due:
                break
            result.due += len(due)
            log.info("tick: processing %d due messages", len(due))
            await asyncio.gather(*(_one(r) for r in due))
            if not self._batch_size or len(due) < self._batch_size:
                break
            cursor = (due[-1].due_at, due[-1].id)

        if not result.due:
            return result
        log.info(
            "tick: done sent=%d failed=%d skipped=%d errors=%d",
            result.sent, result.failed, result.skipped, len(result.errors),
        )
        return result

    async def process(self, record: ScheduledMessage) -> str:
        """Claim, resolve a token, send, finalize. Shared by the poller and force-send."""
        if record.status != STATUS_PENDING:
            return OUTCOME_SKIPPED

        # Claim before the network call so a second tick or a force-send can't pick it up
        if not await self._store.claim(record.id, self._clock()):
            log.info("message=%s already claimed or cancelled, skipping", record.id)
            return OUTCOME_SKIPPED

        try:
            token = await self._credentials.ensure_valid(record.principal_id, record.workspace_id)
            await self._executor.send(token, record.channel_id, record.body)
        except (AuthError, ExternalApiError) as e:
            await self._store.mark_failed(record.id, str(e))
            log.warning("failed message=%s: %s", record.id, e)
            return OUTCOME_FAILED
        except Exception as e:
            # never leave a claimed record looking sent when it wasn't
            await self._store.mark_failed(record.id, f"{type(e).__name__}: {e}")
            raise

        await self._store.mark_sent(record.id)
        log.info("sent message=%s to channel %s", record.id, record.channel_name)
        return OUTCOME_SENT
