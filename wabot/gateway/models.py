"""
Upstream data shapes for the messaging gateway.

The gateway and platform return loosely shaped JSON (field names vary
between endpoints and versions). Everything is normalized here so the
auto-reply core only sees the models below.

Expected shapes:
- Listing responses: {"items": [...]}
- Message: {"id", "text" | "body" | "content", "is_sender", "timestamp" | "date"}
- Chat: {"id", "unread_count", "phone_number" | attendees[].identifier | "provider_id"}
- Connector: {"config": {"config": {api_key, api_sub_domain, port, account_id}}}
"""

from typing import Any, Iterable

from pydantic import BaseModel, Field


WHATSAPP_SUFFIXES = ("@s.whatsapp.net", "@c.us")
DEFAULT_GATEWAY_PORT = "13443"


class InboundMessage(BaseModel):
    """A message as seen by the auto-reply engine."""
    id: str
    chat_id: str
    from_self: bool = False
    text: str = ""
    timestamp: str | None = None


class ChatSummary(BaseModel):
    """A chat with its most recent messages."""
    id: str
    unread_count: int = 0
    phone_number: str = ""
    recent_messages: list[InboundMessage] = Field(default_factory=list)  # newest first


class GatewayCredentials(BaseModel):
    """Messaging gateway credentials stored on a connector."""
    api_key: str = ""
    api_sub_domain: str = ""
    port: str = DEFAULT_GATEWAY_PORT
    account_id: str = ""

    @property
    def is_complete(self) -> bool:
        return all((self.api_key, self.api_sub_domain, self.port, self.account_id))

    @property
    def base_url(self) -> str:
        return f"https://{self.api_sub_domain}.unipile.com:{self.port}/api/v1"


def _first_text(raw: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def strip_whatsapp_suffix(value: str) -> str:
    """Remove the WhatsApp JID suffix from an identifier."""
    for suffix in WHATSAPP_SUFFIXES:
        value = value.replace(suffix, "")
    return value


def clean_phone_number(value: str | None) -> str:
    """Normalize a phone number for the send action."""
    if not value:
        return ""
    value = strip_whatsapp_suffix(value)
    for char in ("+", " ", "-"):
        value = value.replace(char, "")
    return value


def extract_items(payload: Any) -> list[Any]:
    """Get the item list from a listing response."""
    if isinstance(payload, dict):
        items = payload.get("items")
        if isinstance(items, list):
            return items
    return []


def normalize_message(raw: Any, chat_id: str) -> InboundMessage | None:
    """
    Convert a raw message payload into an InboundMessage.

    Args:
        raw: Message object from the gateway.
        chat_id: Chat the message belongs to.

    Returns:
        The message, or None when the payload has no usable id.
    """
    if not isinstance(raw, dict):
        return None

    message_id = raw.get("id") or raw.get("message_id")
    if not message_id:
        return None

    from_self = bool(raw.get("is_sender")) or raw.get("from") == "me"
    timestamp = raw.get("timestamp") or raw.get("date")

    return InboundMessage(
        id=str(message_id),
        chat_id=chat_id,
        from_self=from_self,
        text=_first_text(raw, "text", "body", "content"),
        timestamp=str(timestamp) if timestamp is not None else None,
    )


def _chat_phone_number(raw: dict[str, Any]) -> str:
    phone = raw.get("phone_number")
    if isinstance(phone, str) and phone:
        return strip_whatsapp_suffix(phone)

    # Fall back to the other participant's identifier
    attendees = [a for a in raw.get("attendees") or [] if isinstance(a, dict)]
    other = next((a for a in attendees if not a.get("is_self")), None)
    if other is None and attendees:
        other = attendees[0]
    identifier = (other or {}).get("identifier") or raw.get("provider_id") or ""
    return str(identifier).split("@")[0]


def normalize_chat(raw: dict[str, Any], messages: Iterable[Any] = ()) -> ChatSummary:
    """
    Convert a raw chat payload (plus its raw messages) into a ChatSummary.

    Messages that cannot be normalized are dropped.
    """
    chat_id = str(raw.get("id", ""))
    recent = []
    for item in messages:
        message = normalize_message(item, chat_id)
        if message is not None:
            recent.append(message)

    try:
        unread = int(raw.get("unread_count") or 0)
    except (TypeError, ValueError):
        unread = 0

    return ChatSummary(
        id=chat_id,
        unread_count=unread,
        phone_number=_chat_phone_number(raw),
        recent_messages=recent,
    )


def extract_connector_credentials(
    payload: Any,
    default_port: str = DEFAULT_GATEWAY_PORT,
) -> GatewayCredentials | None:
    """
    Pull gateway credentials out of a connector record.

    Looks in ``config.config``, then ``config``, then the record itself.

    Returns:
        Credentials, or None when the record holds no config object.
    """
    if not isinstance(payload, dict):
        return None

    outer = payload.get("config")
    if isinstance(outer, dict):
        inner = outer.get("config")
        source = inner if isinstance(inner, dict) else outer
    elif "api_key" in payload:
        source = payload
    else:
        return None

    return GatewayCredentials(
        api_key=str(source.get("api_key") or ""),
        api_sub_domain=str(source.get("api_sub_domain") or ""),
        port=str(source.get("port") or default_port),
        account_id=str(source.get("account_id") or ""),
    )
