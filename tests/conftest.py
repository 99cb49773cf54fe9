import os
import tempfile
from datetime import timedelta
from pathlib import Path

from cryptography.fernet import Fernet

# Settings are read at import time, so the environment must be in place first
_TMP = Path(tempfile.mkdtemp(prefix="slack-scheduler-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'app.db'}"
os.environ.setdefault("CREDENTIALS_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["CONNECTOR"] = "mock"

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

import app.models  # noqa: E402,F401  # ensures models are registered
from app.connectors.mock import MockMessagingConnector  # noqa: E402
from app.core.ids import utcnow  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.services.credential_refresh import CredentialRefreshMediator  # noqa: E402
from app.services.credential_store import Credential, CredentialStore  # noqa: E402
from app.services.delivery_executor import DeliveryExecutor  # noqa: E402
from app.services.engine import DeliveryEngine, get_engine  # noqa: E402
from app.services.message_store import MessageStore  # noqa: E402
from app.services.scheduler import MessageScheduler  # noqa: E402


class FakeClock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    finally:
        await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def connector():
    return MockMessagingConnector()


@pytest.fixture
def delivery(session_factory, connector, clock) -> DeliveryEngine:
    credential_store = CredentialStore(session_factory)
    message_store = MessageStore(session_factory)
    credentials = CredentialRefreshMediator(credential_store, connector, clock=clock)
    executor = DeliveryExecutor(connector)
    scheduler = MessageScheduler(message_store, credentials, executor, clock=clock)
    return DeliveryEngine(
        connector=connector,
        credential_store=credential_store,
        message_store=message_store,
        credentials=credentials,
        executor=executor,
        scheduler=scheduler,
    )


@pytest.fixture
def add_credential(delivery, clock):
    async def _add(
        principal_id: str = "U1",
        workspace_id: str = "T1",
        *,
        access_token: str = "xoxp-initial",
        refresh_token: str | None = None,
        expires_in: timedelta | None = None,
    ) -> Credential:
        return await delivery.credential_store.upsert(Credential(
            principal_id=principal_id,
            workspace_id=workspace_id,
            workspace_name="Acme",
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=clock() + expires_in if expires_in is not None else None,
        ))

    return _add


@pytest.fixture
def schedule(delivery, clock):
    async def _schedule(
        body: str = "hello",
        *,
        principal_id: str = "U1",
        workspace_id: str = "T1",
        channel_id: str = "C123",
        in_: timedelta = timedelta(hours=1),
    ) -> str:
        return await delivery.scheduler.schedule(
            principal_id=principal_id,
            workspace_id=workspace_id,
            channel_id=channel_id,
            channel_name="general",
            body=body,
            due_at=clock() + in_,
        )

    return _schedule


@pytest.fixture
async def client(delivery):
    """
    HTTP client wired to the test engine via dependency override.
    """
    from app.main import app

    app.dependency_overrides[get_engine] = lambda: delivery

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
