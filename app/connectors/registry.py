from app.connectors.base import MessagingConnector
from app.connectors.mock import MockMessagingConnector
from app.connectors.slack import SlackConnector
from app.core.config import Settings
from app.services.http_client import ProviderHttpClient


def get_connector(name: str, *, http: ProviderHttpClient, settings: Settings) -> MessagingConnector:
    if name == SlackConnector.key:
        return SlackConnector(
            http,
            client_id=settings.slack_client_id,
            client_secret=settings.slack_client_secret.get_secret_value(),
            redirect_uri=settings.slack_redirect_uri,
            authorize_url=settings.slack_authorize_url,
        )
    if name == MockMessagingConnector.key:
        return MockMessagingConnector()
    raise KeyError(f"Unknown connector: {name}")
