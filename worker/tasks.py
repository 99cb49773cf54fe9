import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from worker.celery_app import celery
from app.core.config import settings
from app.connectors.registry import get_connector
from app.services.engine import build_engine
from app.services.errors import NotFoundError
from app.services.http_client import ProviderHttpClient


log = logging.getLogger(__name__)


async def _with_scheduler(fn):
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    http = ProviderHttpClient(base_url=settings.slack_api_base_url, timeout_seconds=settings.http_timeout_seconds)
    delivery = build_engine(
        Session,
        settings,
        connector=get_connector(settings.connector, http=http, settings=settings),
        http=http,
    )
    try:
        return await fn(delivery.scheduler)
    finally:
        await delivery.aclose()
        await engine.dispose()


async def _poll_due_messages() -> dict:
    result = await _with_scheduler(lambda scheduler: scheduler.run_tick())
    return {"due": result.due, "sent": result.sent, "failed": result.failed, "skipped": result.skipped}


async def _send_scheduled_message(message_id: str) -> str:
    try:
        return await _with_scheduler(lambda scheduler: scheduler.send_now(message_id))
    except NotFoundError:
        log.warning("send_scheduled_message: %s not found", message_id)
        return "not_found"


# Overlapping beat ticks are safe: the per-message claim is a conditional UPDATE
@celery.task(name="worker.tasks.poll_due_messages", bind=True)
def poll_due_messages(self) -> dict:
    return asyncio.run(_poll_due_messages())


@celery.task(name="worker.tasks.send_scheduled_message", bind=True)
def send_scheduled_message(self, message_id: str) -> str:
    return asyncio.run(_send_scheduled_message(message_id))
