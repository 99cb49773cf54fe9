from dataclasses import dataclass
from fastapi import Depends, Header, HTTPException

from app.services.engine import DeliveryEngine, get_engine


@dataclass(frozen=True)
class Actor:
    principal_id: str
    workspace_id: str
    workspace_name: str | None = None


async def get_actor(
    x_principal_id: str | None = Header(default=None),
    x_workspace_id: str | None = Header(default=None),
    engine: DeliveryEngine = Depends(get_engine),
) -> Actor:
    # Identity headers are set by the upstream gateway; we only check the workspace is connected
    if not x_principal_id or not x_workspace_id:
        raise HTTPException(status_code=401, detail="Missing X-Principal-Id / X-Workspace-Id")

    credential = await engine.credential_store.get(x_principal_id, x_workspace_id)
    if not credential:
        raise HTTPException(status_code=401, detail="Slack workspace not connected")

    return Actor(
        principal_id=credential.principal_id,
        workspace_id=credential.workspace_id,
        workspace_name=credential.workspace_name,
    )
