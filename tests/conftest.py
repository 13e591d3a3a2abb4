"""
Pytest configuration and shared fixtures for WaBot tests.
"""

import random
import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from wabot.auto_reply.service import AutoReplyService
from wabot.config.schema import Config
from wabot.gateway.models import ChatSummary, GatewayCredentials, InboundMessage


GREETING_REPLIES = (
    "Hello! 👋 How can I help you today?",
    "Hi there! What can I do for you?",
    "Hey! Nice to hear from you. How can I assist?",
)

GRATITUDE_REPLIES = (
    "You're welcome! Let me know if you need anything else. 😊",
    "Happy to help! Don't hesitate to reach out again.",
)


def make_chat(
    chat_id: str = "chat-1",
    phone_number: str = "919704933657",
    messages: list[tuple[str, str, bool]] | None = None,
    unread_count: int = 1,
) -> ChatSummary:
    """Build a chat from (id, text, from_self) tuples."""
    return ChatSummary(
        id=chat_id,
        unread_count=unread_count,
        phone_number=phone_number,
        recent_messages=[
            InboundMessage(id=mid, chat_id=chat_id, text=text, from_self=from_self)
            for mid, text, from_self in (messages or [])
        ],
    )


class FakeGatewayClient:
    """In-memory stand-in for GatewayClient."""

    def __init__(self, chats: list[ChatSummary] | None = None, accept: bool = True):
        self.chats = chats or []
        self.accept = accept
        self.listing_error: Exception | None = None
        self.sent: list[tuple[str, str, str]] = []
        self.listing_calls = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        pass

    async def get_credentials(self, connector_id: str) -> GatewayCredentials:
        return GatewayCredentials(api_key="gw-key", api_sub_domain="api8", account_id="acc-1")

    async def list_unread_chats(self, credentials: GatewayCredentials) -> list[ChatSummary]:
        self.listing_calls += 1
        if self.listing_error:
            raise self.listing_error
        return self.chats

    def sender_for(self, connector_id: str):
        async def send(phone_number: str, text: str) -> bool:
            self.sent.append((connector_id, phone_number, text))
            return self.accept

        return send


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def config():
    """Default configuration with a platform key for webhooks."""
    config = Config()
    config.platform.api_key = "platform-key"
    return config


@pytest.fixture
def fake_client():
    """Fake gateway client with no chats."""
    return FakeGatewayClient()


@pytest.fixture
def service(config, fake_client, rng):
    """Auto-reply service wired to the fake gateway client."""
    return AutoReplyService(
        config,
        client_factory=lambda api_key: fake_client,
        generator_factory=lambda api_key: None,
        rng=rng,
    )
