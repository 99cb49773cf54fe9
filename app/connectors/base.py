from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None  # seconds

    # Only present on the authorization-code grant
    principal_id: str | None = None
    workspace_id: str | None = None
    workspace_name: str | None = None


class MessagingConnector(Protocol):
    key: str

    async def post_message(self, access_token: str, channel_id: str, text: str) -> None:
        """Raise ExternalApiError when the provider does not accept the message."""
        ...

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Raise AuthError when the refresh grant is rejected."""
        ...

    async def exchange_code(self, code: str) -> TokenGrant:
        ...

    def authorize_url(self, state: str | None = None) -> str:
        ...
