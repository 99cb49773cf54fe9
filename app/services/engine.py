from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.connectors.base import MessagingConnector
from app.connectors.registry import get_connector
from app.core.config import Settings
from app.services.credential_refresh import CredentialRefreshMediator
from app.services.credential_store import CredentialStore
from app.services.delivery_executor import DeliveryExecutor
from app.services.http_client import ProviderHttpClient
from app.services.message_store import MessageStore
from app.services.scheduler import MessageScheduler


@dataclass
class DeliveryEngine:
    """Every component of the delivery engine, built once per process and passed by reference."""

    connector: MessagingConnector
    credential_store: CredentialStore
    message_store: MessageStore
    credentials: CredentialRefreshMediator
    executor: DeliveryExecutor
    scheduler: MessageScheduler
    http: ProviderHttpClient | None = None

    async def aclose(self) -> None:
        if self.http is not None:
            await self.http.aclose()


def build_engine(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    *,
    connector: MessagingConnector | None = None,
    http: ProviderHttpClient | None = None,
) -> DeliveryEngine:
    if connector is None:
        if http is None:
            http = ProviderHttpClient(
                base_url=settings.slack_api_base_url,
                timeout_seconds=settings.http_timeout_seconds,
            )
        connector = get_connector(settings.connector, http=http, settings=settings)

    credential_store = CredentialStore(session_factory)
    message_store = MessageStore(session_factory)
    credentials = CredentialRefreshMediator(credential_store, connector)
    executor = DeliveryExecutor(connector)
    scheduler = MessageScheduler(
        message_store,
        credentials,
        executor,
        max_chars=settings.message_max_chars,
        batch_size=settings.poll_batch_size,
        concurrency=settings.poll_concurrency,
    )
    return DeliveryEngine(
        connector=connector,
        credential_store=credential_store,
        message_store=message_store,
        credentials=credentials,
        executor=executor,
        scheduler=scheduler,
        http=http,
    )


def get_engine(request: Request) -> DeliveryEngine:
    return request.app.state.engine
