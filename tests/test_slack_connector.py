import json
from urllib.parse import parse_qs

import httpx
import pytest

from app.connectors.slack import SlackConnector
from app.services.errors import AuthError, ExternalApiError
from app.services.http_client import ProviderHttpClient


def _connector(handler) -> tuple[SlackConnector, ProviderHttpClient]:
    http = ProviderHttpClient(base_url="https://slack.test/api/", transport=httpx.MockTransport(handler))
    connector = SlackConnector(
        http,
        client_id="cid",
        client_secret="csecret",
        redirect_uri="https://app.test/callback",
    )
    return connector, http


@pytest.mark.asyncio
async def test_post_message_sends_bearer_and_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "ts": "1700000000.000100"})

    connector, http = _connector(handler)
    try:
        await connector.post_message("xoxp-1", "C123", "hello")
    finally:
        await http.aclose()

    assert seen == {
        "url": "https://slack.test/api/chat.postMessage",
        "auth": "Bearer xoxp-1",
        "body": {"channel": "C123", "text": "hello"},
    }


@pytest.mark.asyncio
async def test_post_message_ok_false_raises_with_slack_error():
    connector, http = _connector(lambda request: httpx.Response(200, json={"ok": False, "error": "channel_not_found"}))
    try:
        with pytest.raises(ExternalApiError) as exc:
            await connector.post_message("xoxp-1", "C404", "hello")
    finally:
        await http.aclose()

    assert exc.value.error_code == "channel_not_found"
    assert "channel_not_found" in str(exc.value)


@pytest.mark.asyncio
async def test_post_message_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    connector, http = _connector(handler)
    try:
        with pytest.raises(ExternalApiError) as exc:
            await connector.post_message("xoxp-1", "C123", "hello")
    finally:
        await http.aclose()

    assert exc.value.error_code == "REQUEST_ERROR"
    assert "connection refused" in str(exc.value)


@pytest.mark.asyncio
async def test_post_message_http_error_status():
    connector, http = _connector(lambda request: httpx.Response(503, text="upstream unavailable"))
    try:
        with pytest.raises(ExternalApiError) as exc:
            await connector.post_message("xoxp-1", "C123", "hello")
    finally:
        await http.aclose()

    assert exc.value.status_code == 503
    assert exc.value.error_code == "HTTP_503"


@pytest.mark.asyncio
async def test_refresh_uses_form_encoded_refresh_grant():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={
            "ok": True,
            "access_token": "xoxe.xoxp-new",
            "refresh_token": "xoxe-1-new",
            "expires_in": 43200,
        })

    connector, http = _connector(handler)
    try:
        grant = await connector.refresh_access_token("xoxe-1-old")
    finally:
        await http.aclose()

    assert seen["url"] == "https://slack.test/api/oauth.v2.access"
    assert seen["form"] == {
        "client_id": "cid",
        "client_secret": "csecret",
        "refresh_token": "xoxe-1-old",
        "grant_type": "refresh_token",
    }
    assert (grant.access_token, grant.refresh_token, grant.expires_in) == ("xoxe.xoxp-new", "xoxe-1-new", 43200)


@pytest.mark.asyncio
async def test_refresh_rejected_raises_auth_error():
    connector, http = _connector(lambda request: httpx.Response(200, json={"ok": False, "error": "invalid_refresh_token"}))
    try:
        with pytest.raises(AuthError, match="invalid_refresh_token"):
            await connector.refresh_access_token("xoxe-1-old")
    finally:
        await http.aclose()


@pytest.mark.asyncio
async def test_exchange_code_reads_user_token_install():
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["code"] == ["abc"]
        assert form["redirect_uri"] == ["https://app.test/callback"]
        return httpx.Response(200, json={
            "ok": True,
            "app_id": "A1",
            "team": {"id": "T1", "name": "Acme"},
            "authed_user": {
                "id": "U1",
                "scope": "chat:write",
                "access_token": "xoxp-user",
                "token_type": "user",
                "refresh_token": "xoxe-1-user",
                "expires_in": 43200,
            },
        })

    connector, http = _connector(handler)
    try:
        grant = await connector.exchange_code("abc")
    finally:
        await http.aclose()

    assert grant.access_token == "xoxp-user"
    assert grant.refresh_token == "xoxe-1-user"
    assert grant.expires_in == 43200
    assert (grant.principal_id, grant.workspace_id, grant.workspace_name) == ("U1", "T1", "Acme")


def test_authorize_url_carries_scopes_and_state():
    connector, _ = _connector(lambda request: httpx.Response(200))

    url = connector.authorize_url(state="xyz")

    assert url.startswith("https://slack.com/oauth/v2/authorize?")
    assert "client_id=cid" in url
    assert "chat%3Awrite" in url
    assert "state=xyz" in url
