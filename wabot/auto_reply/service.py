"""
Auto-reply service for WaBot.

Entry point used by the poller and the HTTP handlers:
- run_cycle: one polling pass over a connector's unread chats
- handle_webhook: one message delivered by the events service

Holds the per-connector dedup ledgers and a single-flight lock per
connector so overlapping cycles never run against the same ledger.
"""

import asyncio
import random
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger

from wabot.auto_reply.dispatch import (
    DispatchConfig,
    DispatchSummary,
    ReplyDispatcher,
    ReplyGenerator,
)
from wabot.auto_reply.ledger import LedgerRegistry
from wabot.auto_reply.rules import ReplyClassifier, load_rules
from wabot.gateway.client import GatewayClient
from wabot.gateway.models import ChatSummary, InboundMessage

if TYPE_CHECKING:
    from wabot.config.schema import Config


class CycleInProgress(Exception):
    """A cycle for this connector is already running."""

    def __init__(self, connector_id: str):
        super().__init__(f"Auto-reply cycle already running for {connector_id}")
        self.connector_id = connector_id


@dataclass
class WebhookOutcome:
    """Result of handling one webhook delivery."""
    status: str  # "success" | "failed" | "skipped"
    reason: str = ""
    incoming_message: str = ""
    reply: str = ""
    sender: str = ""

    def to_dict(self) -> dict[str, Any]:
        if self.status == "skipped":
            return {"status": self.status, "reason": self.reason}
        return {
            "status": self.status,
            "incoming_message": self.incoming_message,
            "reply": self.reply,
            "sender": self.sender,
        }


# Function(api_key) -> client, used as an async context manager
ClientFactory = Callable[[str], GatewayClient]

# Function(api_key) -> generator, or None for rules only
GeneratorFactory = Callable[[str], ReplyGenerator | None]


class AutoReplyService:
    """
    Runs auto-reply cycles and webhook deliveries.

    Features:
    - One dedup ledger per connector, created on first use
    - Single-flight guard per connector (polled cycles are skipped
      while another is running, webhook deliveries wait)
    - Optional LLM replies with rule-based fallback
    """

    def __init__(
        self,
        config: "Config",
        client_factory: ClientFactory | None = None,
        generator_factory: GeneratorFactory | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config
        auto_reply = config.auto_reply

        self.classifier = ReplyClassifier(
            rules=load_rules(auto_reply.rule_entries()),
            rng=rng,
            fallback_max_chars=auto_reply.fallback_max_chars,
        )
        self.ledgers = LedgerRegistry(
            capacity=auto_reply.ledger_capacity,
            evict_count=auto_reply.ledger_evict_count,
            max_connectors=auto_reply.max_connectors,
        )
        self.dispatch_config = DispatchConfig(
            lookback=auto_reply.lookback,
            send_timeout_seconds=auto_reply.send_timeout_seconds,
            generate_timeout_seconds=config.llm.timeout_seconds,
        )

        self._client_factory = client_factory or self._default_client
        self._generator_factory = generator_factory or self._default_generator
        self._locks: OrderedDict[str, asyncio.Lock] = OrderedDict()

        # Stats
        self._cycle_count = 0
        self._cycle_errors = 0
        self._skipped_cycles = 0
        self._webhook_count = 0
        self._last_cycle: dict[str, float] = {}

    def _default_client(self, api_key: str) -> GatewayClient:
        return GatewayClient(
            platform_url=self.config.platform.base_url,
            platform_api_key=api_key,
            timeout=self.config.gateway.timeout_seconds,
            unread_chat_limit=self.config.gateway.unread_chat_limit,
            message_limit=self.config.gateway.message_limit,
            default_port=self.config.gateway.default_port,
        )

    def _default_generator(self, api_key: str) -> ReplyGenerator | None:
        if not self.config.llm.enabled:
            return None

        from wabot.providers.reply import LLMReplyGenerator

        return LLMReplyGenerator(
            self.config.llm,
            platform_url=self.config.platform.base_url,
            platform_api_key=api_key,
        )

    def _lock_for(self, connector_id: str) -> asyncio.Lock:
        lock = self._locks.get(connector_id)
        if lock is not None:
            self._locks.move_to_end(connector_id)
            return lock

        lock = asyncio.Lock()
        self._locks[connector_id] = lock
        self._prune_idle_connectors()
        return lock

    def _prune_idle_connectors(self) -> None:
        # Held locks are never dropped, so the map can briefly exceed the bound
        excess = len(self._locks) - self.config.auto_reply.max_connectors
        for connector_id in list(self._locks):
            if excess <= 0:
                break
            if self._locks[connector_id].locked():
                continue
            del self._locks[connector_id]
            self._last_cycle.pop(connector_id, None)
            excess -= 1

    def dispatcher_for(self, connector_id: str, api_key: str) -> ReplyDispatcher:
        """Build a dispatcher bound to a connector's ledger."""
        return ReplyDispatcher(
            connector_id=connector_id,
            ledger=self.ledgers.for_connector(connector_id),
            classifier=self.classifier,
            config=self.dispatch_config,
            generator=self._generator_factory(api_key),
        )

    def is_running(self, connector_id: str) -> bool:
        """Check whether a cycle holds the connector's lock."""
        lock = self._locks.get(connector_id)
        return lock is not None and lock.locked()

    async def run_cycle(self, connector_id: str, api_key: str) -> DispatchSummary:
        """
        Run one auto-reply pass for a connector.

        Args:
            connector_id: Platform connector id.
            api_key: Platform API key of the caller.

        Returns:
            DispatchSummary for this pass.

        Raises:
            CycleInProgress: Another cycle for the connector is running.
            GatewayError: Credentials or chat listing failed (nothing marked).
        """
        lock = self._lock_for(connector_id)
        if lock.locked():
            self._skipped_cycles += 1
            raise CycleInProgress(connector_id)

        async with lock:
            self._cycle_count += 1
            try:
                async with self._client_factory(api_key) as client:
                    credentials = await client.get_credentials(connector_id)
                    chats = await client.list_unread_chats(credentials)

                    dispatcher = self.dispatcher_for(connector_id, api_key)
                    summary = await dispatcher.process_batch(
                        chats,
                        client.sender_for(connector_id),
                    )
            except Exception:
                self._cycle_errors += 1
                raise
            finally:
                self._last_cycle[connector_id] = time.time()

        return summary

    async def handle_webhook(self, payload: Any) -> WebhookOutcome:
        """
        Reply to a single message delivered by webhook.

        Payload shape: {"connector_id", "event", "data": {"from", "text",
        "timestamp", "message_id"}}.
        """
        self._webhook_count += 1

        if not isinstance(payload, dict):
            return WebhookOutcome(status="skipped", reason="invalid_payload")

        connector_id = payload.get("connector_id")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        text = data.get("text")
        sender = data.get("from")

        if not connector_id or not text or not sender:
            logger.info("Invalid webhook payload, skipping")
            return WebhookOutcome(status="skipped", reason="invalid_payload")

        if sender == "me":
            logger.info("Skipping own message")
            return WebhookOutcome(status="skipped", reason="own_message")

        if not str(text).strip():
            logger.info("Empty webhook message, skipping")
            return WebhookOutcome(status="skipped", reason="empty_text")

        api_key = self.config.platform.api_key
        if not api_key:
            logger.warning("Webhook received but no platform API key is configured")
            return WebhookOutcome(status="skipped", reason="not_configured")

        message = InboundMessage(
            id=str(data.get("message_id") or f"webhook-{uuid.uuid4().hex}"),
            chat_id=str(sender),
            text=str(text),
            timestamp=str(data["timestamp"]) if data.get("timestamp") else None,
        )
        chat = ChatSummary(
            id=str(sender),
            unread_count=1,
            phone_number=str(sender),
            recent_messages=[message],
        )

        logger.info(f"Processing message from {sender}: \"{text}\"")

        # Deliveries for one connector are serialized so a redelivery
        # cannot slip between the seen check and the mark
        async with self._lock_for(connector_id):
            async with self._client_factory(api_key) as client:
                dispatcher = self.dispatcher_for(connector_id, api_key)
                result = await dispatcher.process_message(
                    chat,
                    message,
                    client.sender_for(connector_id),
                )

        if result is None:
            return WebhookOutcome(status="skipped", reason="duplicate")

        logger.info(f"Auto-reply generated: \"{result.reply_text}\"")
        return WebhookOutcome(
            status="success" if result.sent else "failed",
            incoming_message=result.incoming_text,
            reply=result.reply_text,
            sender=str(sender),
        )

    def reset(self, connector_id: str | None = None) -> None:
        """Forget processed messages for one connector, or all."""
        self.ledgers.reset(connector_id)

    @property
    def processed_messages_count(self) -> int:
        return self.ledgers.total_size

    def get_status(self) -> dict[str, Any]:
        """Get service statistics."""
        return {
            "cycle_count": self._cycle_count,
            "cycle_errors": self._cycle_errors,
            "skipped_cycles": self._skipped_cycles,
            "webhook_count": self._webhook_count,
            "running": sorted(c for c, lock in self._locks.items() if lock.locked()),
            "last_cycle": dict(self._last_cycle),
            "ledgers": self.ledgers.get_stats(),
            "dropped_connectors": self.ledgers.dropped_connectors,
        }
