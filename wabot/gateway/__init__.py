"""Messaging gateway access: models, normalization and HTTP client."""

from wabot.gateway.client import GatewayClient, GatewayError, SendCapability
from wabot.gateway.models import (
    ChatSummary,
    GatewayCredentials,
    InboundMessage,
    clean_phone_number,
    normalize_chat,
    normalize_message,
)

__all__ = [
    "GatewayClient",
    "GatewayError",
    "SendCapability",
    "ChatSummary",
    "GatewayCredentials",
    "InboundMessage",
    "clean_phone_number",
    "normalize_chat",
    "normalize_message",
]
