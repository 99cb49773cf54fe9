from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta

from app.connectors.base import MessagingConnector
from app.core.ids import utcnow
from app.services.credential_store import Credential, CredentialStore
from app.services.errors import CredentialExpiredNoRefresh, PrincipalNotAuthorized

log = logging.getLogger(__name__)


class CredentialRefreshMediator:
    """
    Hands out a currently-valid Slack access token for a principal,
    refreshing and persisting it first when the stored one has expired.

    Refreshes for the same (principal, workspace) are single-flight within
    this process: a caller that waited on the lock re-reads the credential and
    reuses the token the lock holder just stored.
    """

    def __init__(
        self,
        store: CredentialStore,
        connector: MessagingConnector,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._connector = connector
        self._clock = clock
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_users: dict[tuple[str, str], int] = {}

    @property
    def refreshes_in_flight(self) -> int:
        """Keys that currently hold or wait on a refresh lock."""
        return len(self._locks)

    async def ensure_valid(self, principal_id: str, workspace_id: str | None = None) -> str:
        credential = await self._load(principal_id, workspace_id)
        if not credential.is_expired(self._clock()):
            return credential.access_token

        key = (credential.principal_id, credential.workspace_id)
        lock = self._acquire_lock(key)
        try:
            async with lock:
                # Another task may have refreshed while we waited
                credential = await self._load(principal_id, credential.workspace_id)
                if not credential.is_expired(self._clock()):
                    return credential.access_token
                return await self._refresh(credential)
        finally:
            self._release_lock(key)

    async def _load(self, principal_id: str, workspace_id: str | None) -> Credential:
        credential = await self._store.get(principal_id, workspace_id)
        if credential is None:
            raise PrincipalNotAuthorized(principal_id, workspace_id)
        return credential

    async def _refresh(self, credential: Credential) -> str:
        if not credential.refresh_token:
            raise CredentialExpiredNoRefresh(credential.principal_id)

        # AuthError from the connector propagates; the caller must not send
        grant = await self._connector.refresh_access_token(credential.refresh_token)

        refreshed = replace(
            credential,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or credential.refresh_token,
            expires_at=(
                self._clock() + timedelta(seconds=grant.expires_in)
                if grant.expires_in
                else credential.expires_at
            ),
        )
        await self._store.upsert(refreshed)
        log.info("token refreshed principal=%s workspace=%s", credential.principal_id, credential.workspace_id)
        return refreshed.access_token

    def _acquire_lock(self, key: tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        return lock

    def _release_lock(self, key: tuple[str, str]) -> None:
        # last holder out drops the entry so the map only holds active keys
        remaining = self._lock_users[key] - 1
        if remaining:
            self._lock_users[key] = remaining
        else:
            del self._lock_users[key]
            del self._locks[key]
