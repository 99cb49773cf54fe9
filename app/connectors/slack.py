from __future__ import annotations

import logging
from urllib.parse import urlencode

from app.connectors.base import TokenGrant
from app.services.errors import AuthError, ExternalApiError
from app.services.http_client import HttpResult, ProviderHttpClient

log = logging.getLogger(__name__)

OAUTH_SCOPES = (
    "channels:read",
    "groups:read",
    "chat:write",
    "users:read",
    "team:read",
    "chat:write.public",
)


def _slack_error(result: HttpResult) -> tuple[str, str]:
    """(error_code, message) for a failed call, preferring Slack's own `error` field."""
    slack_error = result.detail.get("error") if result.detail else None
    if result.ok and slack_error:
        return str(slack_error), str(slack_error)
    if slack_error and slack_error not in ("timeout", "request_error"):
        return str(slack_error), f"{result.error_message}: {slack_error}"
    return result.error_code or "UNKNOWN", result.error_message or "unknown error"


class SlackConnector:
    """Slack Web API calls used by the delivery engine."""

    key = "slack"

    def __init__(
        self,
        http: ProviderHttpClient,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str | None = None,
        authorize_url: str = "https://slack.com/oauth/v2/authorize",
    ):
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._authorize_url = authorize_url

    def authorize_url(self, state: str | None = None) -> str:
        params = {
            "client_id": self._client_id,
            "scope": ",".join(OAUTH_SCOPES),
            "redirect_uri": self._redirect_uri or "",
            "response_type": "code",
            "access_type": "offline",
        }
        if state:
            params["state"] = state
        return f"{self._authorize_url}?{urlencode(params)}"

    async def post_message(self, access_token: str, channel_id: str, text: str) -> None:
        result = await self._http.post_json(
            "chat.postMessage",
            json_body={"channel": channel_id, "text": text},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        # Slack answers 200 with {"ok": false, "error": ...} for most failures
        if result.ok and result.detail.get("ok") is True:
            return

        code, message = _slack_error(result)
        log.warning("chat.postMessage failed channel=%s code=%s", channel_id, code)
        raise ExternalApiError(f"Failed to send message: {message}", error_code=code, status_code=result.status_code)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        result = await self._oauth_access({"refresh_token": refresh_token, "grant_type": "refresh_token"})
        if not (result.ok and result.detail.get("ok") is True and result.detail.get("access_token")):
            _, message = _slack_error(result)
            raise AuthError(f"Token refresh error: {message}")
        return self._grant_from(result.detail)

    async def exchange_code(self, code: str) -> TokenGrant:
        form = {"code": code}
        if self._redirect_uri:
            form["redirect_uri"] = self._redirect_uri
        result = await self._oauth_access(form)
        if not (result.ok and result.detail.get("ok") is True):
            _, message = _slack_error(result)
            raise AuthError(f"Slack OAuth error: {message}")
        return self._grant_from(result.detail)

    async def _oauth_access(self, form: dict[str, str]) -> HttpResult:
        body = {"client_id": self._client_id, "client_secret": self._client_secret, **form}
        return await self._http.post_form("oauth.v2.access", form_body=body)

    @staticmethod
    def _grant_from(detail: dict) -> TokenGrant:
        # User-token installs carry the token under authed_user
        authed_user = detail.get("authed_user") or {}
        team = detail.get("team") or {}
        access_token = detail.get("access_token") or authed_user.get("access_token")
        if not access_token:
            raise AuthError("Slack OAuth error: response carried no access_token")

        expires_in = detail.get("expires_in") or authed_user.get("expires_in")
        return TokenGrant(
            access_token=access_token,
            refresh_token=detail.get("refresh_token") or authed_user.get("refresh_token"),
            expires_in=int(expires_in) if expires_in else None,
            principal_id=authed_user.get("id"),
            workspace_id=team.get("id"),
            workspace_name=team.get("name"),
        )
