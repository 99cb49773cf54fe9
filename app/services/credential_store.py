from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.crypto import decrypt_json, encrypt_json
from app.core.ids import as_utc
from app.models.workspace_credential import WorkspaceCredential


@dataclass(frozen=True)
class Credential:
    principal_id: str
    workspace_id: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    workspace_name: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


def _to_credential(row: WorkspaceCredential) -> Credential:
    secrets = decrypt_json(row.secret_ciphertext)
    return Credential(
        principal_id=row.principal_id,
        workspace_id=row.workspace_id,
        access_token=secrets["access_token"],
        refresh_token=secrets.get("refresh_token"),
        expires_at=as_utc(row.expires_at),
        workspace_name=row.workspace_name,
    )


class CredentialStore:
    """Slack tokens keyed by (principal, workspace). Storage errors propagate."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def get(self, principal_id: str, workspace_id: str | None = None) -> Credential | None:
        stmt = select(WorkspaceCredential).where(WorkspaceCredential.principal_id == principal_id)
        if workspace_id is not None:
            stmt = stmt.where(WorkspaceCredential.workspace_id == workspace_id)
        else:
            stmt = stmt.order_by(WorkspaceCredential.updated_at.desc()).limit(1)

        async with self._sessions() as db:
            row = (await db.execute(stmt)).scalars().first()
        return _to_credential(row) if row else None

    async def upsert(self, credential: Credential) -> Credential:
        ciphertext = encrypt_json(
            {"access_token": credential.access_token, "refresh_token": credential.refresh_token}
        )
        expires_at = as_utc(credential.expires_at)

        async with self._sessions() as db:
            row = (await db.execute(
                select(WorkspaceCredential).where(
                    WorkspaceCredential.principal_id == credential.principal_id,
                    WorkspaceCredential.workspace_id == credential.workspace_id,
                )
            )).scalar_one_or_none()

            if row:
                row.secret_ciphertext = ciphertext
                row.expires_at = expires_at
                if credential.workspace_name:
                    row.workspace_name = credential.workspace_name
            else:
                row = WorkspaceCredential(
                    principal_id=credential.principal_id,
                    workspace_id=credential.workspace_id,
                    workspace_name=credential.workspace_name,
                    secret_ciphertext=ciphertext,
                    expires_at=expires_at,
                )
                db.add(row)

            await db.commit()
            return _to_credential(row)
