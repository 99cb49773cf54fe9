from fastapi import APIRouter, Depends, HTTPException, Query

from app.schemas.oauth import AuthorizeUrlOut, CodeExchangeIn, ConnectedWorkspaceOut
from app.services.engine import DeliveryEngine, get_engine
from app.services.errors import AuthError
from app.services.workspace_auth import connect_workspace

router = APIRouter(prefix="/oauth/slack")


@router.get("/authorize-url", response_model=AuthorizeUrlOut)
async def slack_authorize_url(
    state: str | None = Query(default=None),
    engine: DeliveryEngine = Depends(get_engine),
) -> AuthorizeUrlOut:
    return AuthorizeUrlOut(url=engine.connector.authorize_url(state))


@router.post("/exchange", response_model=ConnectedWorkspaceOut)
async def slack_exchange_code(
    payload: CodeExchangeIn,
    engine: DeliveryEngine = Depends(get_engine),
) -> ConnectedWorkspaceOut:
    try:
        credential = await connect_workspace(engine.connector, engine.credential_store, payload.code)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ConnectedWorkspaceOut(
        principal_id=credential.principal_id,
        workspace_id=credential.workspace_id,
        workspace_name=credential.workspace_name,
        expires_at=credential.expires_at.isoformat() if credential.expires_at else None,
    )
