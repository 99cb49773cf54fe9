from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from app.connectors.base import MessagingConnector
from app.core.ids import utcnow
from app.services.credential_store import Credential, CredentialStore
from app.services.errors import AuthError

log = logging.getLogger(__name__)


async def connect_workspace(
    connector: MessagingConnector,
    store: CredentialStore,
    code: str,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> Credential:
    """Authorization-code grant: trade the code for tokens and store them for the authorizing user."""
    grant = await connector.exchange_code(code)
    if not grant.principal_id or not grant.workspace_id:
        raise AuthError("Slack OAuth error: response carried no user or team id")

    credential = await store.upsert(Credential(
        principal_id=grant.principal_id,
        workspace_id=grant.workspace_id,
        workspace_name=grant.workspace_name,
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        expires_at=clock() + timedelta(seconds=grant.expires_in) if grant.expires_in else None,
    ))
    log.info("workspace connected principal=%s workspace=%s", credential.principal_id, credential.workspace_id)
    return credential
