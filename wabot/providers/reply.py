"""LLM reply generation for auto-replies."""

from typing import Any

import httpx
from litellm import acompletion
from loguru import logger

from wabot.config.schema import LLMConfig


def extract_reply_text(data: Any) -> str | None:
    """
    Read the reply out of a chat-completion style response.

    Tries choices[0].message.content, then "response", then "content".
    """
    if not isinstance(data, dict):
        return None

    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if isinstance(message, dict) and message.get("content"):
            return message["content"]

    for key in ("response", "content"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value

    return None


class LLMReplyGenerator:
    """
    Generates a short reply with an LLM.

    Call it with the incoming text. Returns None on any failure so the
    caller can fall back to rule-based replies.
    """

    def __init__(
        self,
        config: LLMConfig,
        platform_url: str = "",
        platform_api_key: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.platform_url = platform_url.rstrip("/")
        self.platform_api_key = platform_api_key
        self._transport = transport

    def _messages(self, text: str) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": self.config.system_prompt},
            {"role": "user", "content": text},
        ]

    async def __call__(self, text: str) -> str | None:
        try:
            if self.config.backend == "litellm":
                reply = await self._generate_litellm(text)
            else:
                reply = await self._generate_platform(text)
        except Exception as e:
            logger.warning(f"LLM not available, using smart replies: {e}")
            return None

        if not reply or not reply.strip():
            return None
        return reply.strip()

    async def _generate_platform(self, text: str) -> str | None:
        async with httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.post(
                f"{self.platform_url}/llm/execute/calls",
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.platform_api_key,
                },
                json={
                    "model": self.config.model,
                    "messages": self._messages(text),
                },
            )

        if response.status_code != 200:
            logger.warning(f"LLM call returned HTTP {response.status_code}")
            return None

        return extract_reply_text(response.json())

    async def _generate_litellm(self, text: str) -> str | None:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": self._messages(text),
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "timeout": self.config.timeout_seconds,
        }
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base

        response = await acompletion(**kwargs)
        return response.choices[0].message.content
