"""
HTTP client for the automation platform and messaging gateway.

Provides:
- Connector credential lookup (platform)
- Unread chat listing with recent messages (gateway)
- Reply sending via the platform start_chat action
"""

from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from wabot.gateway.models import (
    DEFAULT_GATEWAY_PORT,
    ChatSummary,
    GatewayCredentials,
    clean_phone_number,
    extract_connector_credentials,
    extract_items,
    normalize_chat,
)


# Async function(phone_number, text) -> accepted
SendCapability = Callable[[str, str], Awaitable[bool]]


class GatewayError(Exception):
    """An upstream call failed and the current operation cannot continue."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GatewayClient:
    """
    Async client for one platform API key.

    Use as an async context manager, or call ``close()`` when done.
    """

    def __init__(
        self,
        platform_url: str,
        platform_api_key: str,
        timeout: float = 10.0,
        unread_chat_limit: int = 10,
        message_limit: int = 5,
        default_port: str = DEFAULT_GATEWAY_PORT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.platform_url = platform_url.rstrip("/")
        self.platform_api_key = platform_api_key
        self.unread_chat_limit = unread_chat_limit
        self.message_limit = message_limit
        self.default_port = default_port

        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @property
    def _platform_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.platform_api_key,
        }

    @staticmethod
    def _gateway_headers(credentials: GatewayCredentials) -> dict[str, str]:
        return {
            "accept": "application/json",
            "X-API-KEY": credentials.api_key,
        }

    async def _get_json(self, url: str, headers: dict[str, str], what: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.get(url, headers=headers, **kwargs)
        except httpx.TimeoutException:
            raise GatewayError(f"Timed out fetching {what}", status_code=504)
        except httpx.HTTPError as e:
            raise GatewayError(f"Failed to fetch {what}: {e}", status_code=502)

        if not response.is_success:
            raise GatewayError(f"Failed to fetch {what}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError:
            raise GatewayError(f"Invalid JSON while fetching {what}", status_code=502)

    async def get_credentials(self, connector_id: str) -> GatewayCredentials:
        """
        Get the gateway credentials stored on a connector.

        Raises:
            GatewayError: Connector missing, unconfigured or incomplete.
        """
        payload = await self._get_json(
            f"{self.platform_url}/connector/{connector_id}",
            self._platform_headers,
            "connector",
        )

        credentials = extract_connector_credentials(payload, self.default_port)
        if credentials is None:
            raise GatewayError("Connector configuration not found", status_code=404)
        if not credentials.is_complete:
            raise GatewayError("Unipile credentials missing", status_code=400)

        logger.debug(
            f"Connector {connector_id}: subdomain={credentials.api_sub_domain} "
            f"account={credentials.account_id}"
        )
        return credentials

    async def list_unread_chats(self, credentials: GatewayCredentials) -> list[ChatSummary]:
        """
        List unread chats with their recent messages.

        A failure listing chats raises; a failure fetching one chat's
        messages leaves that chat without messages.

        Raises:
            GatewayError: The chat listing failed.
        """
        headers = self._gateway_headers(credentials)
        payload = await self._get_json(
            f"{credentials.base_url}/chats",
            headers,
            "chats",
            params={
                "account_id": credentials.account_id,
                "account_type": "WHATSAPP",
                "unread": "true",
                "limit": self.unread_chat_limit,
            },
        )

        chats = []
        for raw_chat in extract_items(payload):
            if not isinstance(raw_chat, dict):
                continue

            raw_messages: list[Any] = []
            if raw_chat.get("unread_count") and raw_chat.get("id"):
                try:
                    messages_payload = await self._get_json(
                        f"{credentials.base_url}/chats/{raw_chat['id']}/messages",
                        headers,
                        "messages",
                        params={"limit": self.message_limit},
                    )
                    raw_messages = extract_items(messages_payload)
                except GatewayError as e:
                    logger.warning(f"Skipping messages for chat {raw_chat['id']}: {e.message}")

            chats.append(normalize_chat(raw_chat, raw_messages))

        return chats

    async def send_message(self, connector_id: str, phone_number: str, text: str) -> bool:
        """
        Send a text to a phone number through the connector.

        Returns:
            True if the platform accepted the message.
        """
        response = await self._client.post(
            f"{self.platform_url}/actions/whatsapp/start_chat/{connector_id}",
            headers=self._platform_headers,
            json={
                "phone_numbers": clean_phone_number(phone_number),
                "text": text,
            },
        )

        if not response.is_success:
            logger.error(f"Send message API error ({response.status_code}): {response.text}")
            return False

        logger.debug(f"Reply sent to {phone_number} via {connector_id}")
        return True

    def sender_for(self, connector_id: str) -> SendCapability:
        """Bind ``send_message`` to a connector."""
        async def send(phone_number: str, text: str) -> bool:
            return await self.send_message(connector_id, phone_number, text)

        return send
