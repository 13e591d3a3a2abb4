"""
Tests for the auto-reply service (cycle and webhook entry points).
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from wabot.auto_reply.service import AutoReplyService, CycleInProgress
from wabot.config.schema import ReplyRuleConfig
from wabot.gateway.client import GatewayError

from conftest import GRATITUDE_REPLIES, GREETING_REPLIES, FakeGatewayClient, make_chat


class TestRunCycle:
    """Polling cycle end to end against a fake gateway."""

    @pytest.mark.asyncio
    async def test_cycle_replies_and_marks(self, service, fake_client):
        fake_client.chats = [make_chat(messages=[("m1", "thanks!", False)])]

        summary = await service.run_cycle("conn-1", "api-key")

        assert summary.replies_sent_count == 1
        assert summary.results[0].reply_text in GRATITUDE_REPLIES
        assert fake_client.sent == [("conn-1", "919704933657", summary.results[0].reply_text)]
        assert service.ledgers.for_connector("conn-1").seen("conn-1:m1")
        assert service.processed_messages_count == 1

    @pytest.mark.asyncio
    async def test_second_cycle_is_idempotent(self, service, fake_client):
        fake_client.chats = [make_chat(messages=[("m1", "hi there", False)])]

        await service.run_cycle("conn-1", "api-key")
        summary = await service.run_cycle("conn-1", "api-key")

        assert summary.replies_sent_count == 0
        assert len(fake_client.sent) == 1

    @pytest.mark.asyncio
    async def test_upstream_failure_marks_nothing(self, service, fake_client):
        fake_client.chats = [make_chat(messages=[("m1", "hi", False)])]
        fake_client.listing_error = GatewayError("Failed to fetch chats", status_code=503)

        with pytest.raises(GatewayError):
            await service.run_cycle("conn-1", "api-key")

        assert fake_client.sent == []
        assert service.processed_messages_count == 0
        assert service.get_status()["cycle_errors"] == 1
        assert not service.is_running("conn-1")

    @pytest.mark.asyncio
    async def test_ledgers_are_per_connector(self, service, fake_client):
        fake_client.chats = [make_chat(messages=[("m1", "hi", False)])]

        await service.run_cycle("conn-1", "api-key")
        summary = await service.run_cycle("conn-2", "api-key")

        assert summary.replies_sent_count == 1
        assert set(service.get_status()["ledgers"]) == {"conn-1", "conn-2"}

    @pytest.mark.asyncio
    async def test_overlapping_cycle_is_rejected(self, service, fake_client):
        release = asyncio.Event()
        original = fake_client.list_unread_chats

        async def slow_listing(credentials):
            await release.wait()
            return await original(credentials)

        fake_client.list_unread_chats = slow_listing
        fake_client.chats = [make_chat(messages=[("m1", "hi", False)])]

        first = asyncio.create_task(service.run_cycle("conn-1", "api-key"))
        while not service.is_running("conn-1"):
            await asyncio.sleep(0)

        with pytest.raises(CycleInProgress):
            await service.run_cycle("conn-1", "api-key")

        release.set()
        summary = await first

        assert summary.replies_sent_count == 1
        assert len(fake_client.sent) == 1
        assert service.get_status()["skipped_cycles"] == 1

    @pytest.mark.asyncio
    async def test_reset_forgets_history(self, service, fake_client):
        fake_client.chats = [make_chat(messages=[("m1", "hi", False)])]

        await service.run_cycle("conn-1", "api-key")
        service.reset()
        summary = await service.run_cycle("conn-1", "api-key")

        assert summary.replies_sent_count == 1

    @pytest.mark.asyncio
    async def test_configured_rules_and_generator(self, config, fake_client):
        config.auto_reply.rules = [
            ReplyRuleConfig(name="order", pattern=r"\border\b", replies=["Checking your order."]),
        ]
        generator = AsyncMock(return_value=None)
        service = AutoReplyService(
            config,
            client_factory=lambda api_key: fake_client,
            generator_factory=lambda api_key: generator,
        )
        fake_client.chats = [make_chat(messages=[("m1", "where is my ORDER", False)])]

        summary = await service.run_cycle("conn-1", "api-key")

        assert summary.results[0].reply_text == "Checking your order."
        generator.assert_awaited_once()

    def test_default_generator_disabled(self, config):
        service = AutoReplyService(config)
        assert service.dispatcher_for("conn-1", "key").generator is None

    def test_default_generator_enabled(self, config):
        from wabot.providers.reply import LLMReplyGenerator

        config.llm.enabled = True
        service = AutoReplyService(config)
        generator = service.dispatcher_for("conn-1", "key").generator

        assert isinstance(generator, LLMReplyGenerator)
        assert generator.platform_api_key == "key"


class TestHandleWebhook:
    """Single-message webhook deliveries."""

    @staticmethod
    def payload(text="hi there", sender="919704933657", message_id="wm-1"):
        return {
            "connector_id": "conn-1",
            "event": "message_received",
            "data": {"from": sender, "text": text, "timestamp": "2024-01-01T00:00:00Z", "message_id": message_id},
        }

    @pytest.mark.asyncio
    async def test_replies(self, service, fake_client):
        outcome = await service.handle_webhook(self.payload())

        assert outcome.status == "success"
        assert outcome.reply in GREETING_REPLIES
        assert outcome.sender == "919704933657"
        assert fake_client.sent == [("conn-1", "919704933657", outcome.reply)]
        assert outcome.to_dict()["incoming_message"] == "hi there"

    @pytest.mark.asyncio
    async def test_own_message_skipped(self, service, fake_client):
        outcome = await service.handle_webhook(self.payload(sender="me"))

        assert outcome.to_dict() == {"status": "skipped", "reason": "own_message"}
        assert fake_client.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        None,
        {},
        {"connector_id": "conn-1"},
        {"connector_id": "conn-1", "data": {"from": "111"}},
        {"data": {"from": "111", "text": "hi"}},
    ])
    async def test_invalid_payload_skipped(self, service, payload):
        outcome = await service.handle_webhook(payload)
        assert outcome.reason == "invalid_payload"

    @pytest.mark.asyncio
    async def test_whitespace_text_skipped(self, service, fake_client):
        outcome = await service.handle_webhook(self.payload(text="   \n"))

        assert outcome.to_dict() == {"status": "skipped", "reason": "empty_text"}
        assert fake_client.sent == []

    @pytest.mark.asyncio
    async def test_redelivery_skipped(self, service, fake_client):
        await service.handle_webhook(self.payload())
        outcome = await service.handle_webhook(self.payload())

        assert outcome.to_dict() == {"status": "skipped", "reason": "duplicate"}
        assert len(fake_client.sent) == 1

    @pytest.mark.asyncio
    async def test_failed_send(self, service, fake_client):
        fake_client.accept = False
        outcome = await service.handle_webhook(self.payload())

        assert outcome.status == "failed"
        assert outcome.reply in GREETING_REPLIES

    @pytest.mark.asyncio
    async def test_missing_platform_key(self, service, config, fake_client):
        config.platform.api_key = ""
        outcome = await service.handle_webhook(self.payload())

        assert outcome.reason == "not_configured"
        assert fake_client.sent == []

    @pytest.mark.asyncio
    async def test_connector_state_is_bounded(self, config, fake_client):
        config.auto_reply.max_connectors = 3
        service = AutoReplyService(
            config,
            client_factory=lambda api_key: fake_client,
            generator_factory=lambda api_key: None,
        )

        for i in range(10):
            payload = self.payload(message_id=f"wm-{i}")
            payload["connector_id"] = f"conn-{i}"
            await service.handle_webhook(payload)

        status = service.get_status()
        assert set(status["ledgers"]) == {"conn-7", "conn-8", "conn-9"}
        assert status["dropped_connectors"] == 7
        assert len(service._locks) == 3
        assert len(fake_client.sent) == 10

    @pytest.mark.asyncio
    async def test_without_message_id_always_replies(self, service, fake_client):
        await service.handle_webhook(self.payload(message_id=None))
        await service.handle_webhook(self.payload(message_id=None))

        assert len(fake_client.sent) == 2
