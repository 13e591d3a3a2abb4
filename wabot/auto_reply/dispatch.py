"""
Reply dispatcher for WaBot auto-reply.

Processes a batch of unread chats:
- Skips own, already handled and empty messages
- Picks a reply (LLM first when configured, rules otherwise)
- Sends it with a bounded timeout
- Marks every handled message, whether the send worked or not
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

from loguru import logger

from wabot.auto_reply.ledger import DedupLedger, make_key
from wabot.auto_reply.rules import ReplyClassifier
from wabot.gateway.client import SendCapability
from wabot.gateway.models import ChatSummary, InboundMessage


# Async function(text) -> reply, or None to use the rules
ReplyGenerator = Callable[[str], Awaitable[str | None]]


@dataclass
class DispatchConfig:
    """Configuration for the dispatcher."""
    lookback: int = 5  # Most recent messages checked per chat
    send_timeout_seconds: float = 10.0
    generate_timeout_seconds: float = 10.0


@dataclass
class DispatchResult:
    """Outcome for one processed message."""
    chat_id: str
    phone_number: str
    incoming_text: str
    reply_text: str
    sent: bool
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "chatId": self.chat_id,
            "phoneNumber": self.phone_number,
            "incomingMessage": self.incoming_text,
            "reply": self.reply_text,
            "sent": self.sent,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class DispatchSummary:
    """Totals and per-message outcomes for one invocation."""
    unread_chat_count: int = 0
    results: list[DispatchResult] = field(default_factory=list)

    @property
    def replies_sent_count(self) -> int:
        """Messages that got a reply attempt."""
        return len(self.results)

    @property
    def sent_ok(self) -> int:
        return sum(1 for r in self.results if r.sent)

    @property
    def failed(self) -> int:
        return self.replies_sent_count - self.sent_ok

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "success",
            "unreadChats": self.unread_chat_count,
            "repliesSent": self.replies_sent_count,
            "sentOk": self.sent_ok,
            "failed": self.failed,
            "replies": [r.to_dict() for r in self.results],
        }


class ReplyDispatcher:
    """
    Runs one connector's auto-reply decisions over a batch of chats.

    Flow per message:
    1. Skip own / seen / empty messages
    2. Generate or classify a reply
    3. Send it
    4. Mark the key (sent or not, failed sends are never retried)
    """

    def __init__(
        self,
        connector_id: str,
        ledger: DedupLedger,
        classifier: ReplyClassifier,
        config: DispatchConfig | None = None,
        generator: ReplyGenerator | None = None,
    ):
        self.connector_id = connector_id
        self.ledger = ledger
        self.classifier = classifier
        self.config = config or DispatchConfig()
        self.generator = generator

        # Stats
        self._processed_count = 0
        self._sent_count = 0
        self._failed_count = 0
        self._skipped_count = 0

    async def process_batch(
        self,
        chats: Iterable[ChatSummary],
        send: SendCapability,
    ) -> DispatchSummary:
        """
        Reply to every new message in a batch of chats.

        Args:
            chats: Chats from the gateway, in upstream order.
            send: Capability that sends a reply to a phone number.

        Returns:
            DispatchSummary with results in processing order.
        """
        chats = list(chats)
        summary = DispatchSummary(unread_chat_count=len(chats))

        for chat in chats:
            if chat.unread_count <= 0:
                continue

            for message in self._recent(chat):
                result = await self.process_message(chat, message, send)
                if result is not None:
                    summary.results.append(result)

        logger.info(
            f"Auto-reply cycle for {self.connector_id}: {summary.unread_chat_count} unread chats, "
            f"{summary.replies_sent_count} replies ({summary.failed} failed)"
        )
        return summary

    def _recent(self, chat: ChatSummary) -> list[InboundMessage]:
        if self.config.lookback <= 0:
            return []
        # Upstream lists newest first
        return chat.recent_messages[:self.config.lookback]

    async def process_message(
        self,
        chat: ChatSummary,
        message: InboundMessage,
        send: SendCapability,
    ) -> DispatchResult | None:
        """Handle a single message. Returns None if it was skipped."""
        if message.from_self:
            self._skipped_count += 1
            return None

        key = make_key(self.connector_id, message.id)
        if self.ledger.seen(key):
            self._skipped_count += 1
            return None

        text = message.text.strip()
        if not text:
            self._skipped_count += 1
            return None

        self._processed_count += 1
        reply = await self.choose_reply(message.text)
        sent, error = await self._send(chat.phone_number, reply, send)

        self.ledger.mark(key)

        if sent:
            self._sent_count += 1
        else:
            self._failed_count += 1
            logger.warning(f"Auto-reply to {chat.phone_number} not sent: {error}")

        return DispatchResult(
            chat_id=chat.id,
            phone_number=chat.phone_number,
            incoming_text=message.text,
            reply_text=reply,
            sent=sent,
            error=error,
        )

    async def choose_reply(self, text: str) -> str:
        """Reply from the generator if it produces one, else from the rules."""
        if self.generator is not None:
            try:
                generated = await asyncio.wait_for(
                    self.generator(text),
                    timeout=self.config.generate_timeout_seconds,
                )
                if generated and generated.strip():
                    return generated
            except asyncio.TimeoutError:
                logger.warning("Reply generation timed out, using rules")
            except Exception as e:
                logger.warning(f"Reply generation failed, using rules: {e}")

        return self.classifier.classify(text)

    async def _send(
        self,
        phone_number: str,
        reply: str,
        send: SendCapability,
    ) -> tuple[bool, str]:
        try:
            accepted = await asyncio.wait_for(
                send(phone_number, reply),
                timeout=self.config.send_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return False, "Send timed out"
        except Exception as e:
            logger.error(f"Failed to send auto-reply: {e}")
            return False, str(e) or type(e).__name__

        if not accepted:
            return False, "Send rejected"
        return True, ""

    def get_stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "connector_id": self.connector_id,
            "processed_count": self._processed_count,
            "sent_count": self._sent_count,
            "failed_count": self._failed_count,
            "skipped_count": self._skipped_count,
            "ledger": self.ledger.get_stats(),
        }
