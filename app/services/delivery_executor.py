from app.connectors.base import MessagingConnector


class DeliveryExecutor:
    """One send against the provider. ExternalApiError on failure, never retries."""

    def __init__(self, connector: MessagingConnector):
        self._connector = connector

    async def send(self, access_token: str, channel_id: str, body: str) -> None:
        await self._connector.post_message(access_token, channel_id, body)
