"""
Tests for LLM reply generation.
"""

import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from wabot.config.schema import LLMConfig
from wabot.providers.reply import LLMReplyGenerator, extract_reply_text


class TestExtractReplyText:
    """Response shape handling."""

    @pytest.mark.parametrize("data, expected", [
        ({"choices": [{"message": {"content": "from choices"}}]}, "from choices"),
        ({"response": "from response"}, "from response"),
        ({"content": "from content"}, "from content"),
        ({"choices": [], "response": "fallback"}, "fallback"),
        ({"choices": [{"message": {"content": ""}}]}, None),
        ({}, None),
        ("text", None),
    ])
    def test_shapes(self, data, expected):
        assert extract_reply_text(data) == expected


def platform_generator(handler) -> LLMReplyGenerator:
    return LLMReplyGenerator(
        LLMConfig(enabled=True),
        platform_url="https://platform.test/",
        platform_api_key="platform-key",
        transport=httpx.MockTransport(handler),
    )


class TestPlatformBackend:
    """Platform execute/calls endpoint."""

    @pytest.mark.asyncio
    async def test_reply(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["key"] = request.headers.get("x-api-key")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": " Sure thing! "}}]})

        reply = await platform_generator(handler)("can you help?")

        assert reply == "Sure thing!"
        assert captured["url"] == "https://platform.test/llm/execute/calls"
        assert captured["key"] == "platform-key"
        assert captured["body"]["model"] == "gpt-4o-mini"
        assert captured["body"]["messages"][0]["role"] == "system"
        assert captured["body"]["messages"][1] == {"role": "user", "content": "can you help?"}

    @pytest.mark.asyncio
    async def test_non_200_returns_none(self):
        generator = platform_generator(lambda request: httpx.Response(500, json={}))
        assert await generator("hi") is None

    @pytest.mark.asyncio
    async def test_transport_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await platform_generator(handler)("hi") is None

    @pytest.mark.asyncio
    async def test_empty_reply_returns_none(self):
        generator = platform_generator(lambda request: httpx.Response(200, json={"content": "  "}))
        assert await generator("hi") is None


class TestLiteLLMBackend:
    """litellm acompletion backend."""

    @pytest.mark.asyncio
    async def test_reply(self):
        response = Mock()
        response.choices = [Mock(message=Mock(content="Hi from litellm"))]
        config = LLMConfig(enabled=True, backend="litellm", model="openai/gpt-4o-mini", api_base="http://llm.local")

        with patch("wabot.providers.reply.acompletion", AsyncMock(return_value=response)) as mock_call:
            reply = await LLMReplyGenerator(config)("hello")

        assert reply == "Hi from litellm"
        kwargs = mock_call.await_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o-mini"
        assert kwargs["api_base"] == "http://llm.local"
        assert kwargs["messages"][1]["content"] == "hello"

    @pytest.mark.asyncio
    async def test_error_returns_none(self):
        config = LLMConfig(enabled=True, backend="litellm")

        with patch("wabot.providers.reply.acompletion", AsyncMock(side_effect=RuntimeError("quota"))):
            assert await LLMReplyGenerator(config)("hello") is None
