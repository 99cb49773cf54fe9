from pydantic import BaseModel, Field


class AuthorizeUrlOut(BaseModel):
    url: str


class CodeExchangeIn(BaseModel):
    code: str = Field(min_length=1)


class ConnectedWorkspaceOut(BaseModel):
    principal_id: str
    workspace_id: str
    workspace_name: str | None
    expires_at: str | None
