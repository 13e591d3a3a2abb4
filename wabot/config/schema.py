"""Configuration schema using Pydantic."""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from wabot.auto_reply.rules import DEFAULT_RULES


class _Section(BaseModel):
    """Config section accepting both snake_case and camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReplyRuleConfig(_Section):
    """A single reply rule."""
    name: str = ""
    pattern: str
    replies: list[str] = Field(default_factory=list)

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regex {value!r}: {e}") from e
        return value

    @field_validator("replies")
    @classmethod
    def _check_replies(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("rule needs at least one reply")
        return value


def _default_rules() -> list[ReplyRuleConfig]:
    return [
        ReplyRuleConfig(name=rule.name, pattern=rule.pattern, replies=list(rule.replies))
        for rule in DEFAULT_RULES
    ]


class PlatformConfig(_Section):
    """Automation platform (connectors, send action, LLM calls)."""
    base_url: str = "https://testing.api.wexa.ai"
    api_key: str = ""  # Used by the webhook, which carries no credentials


class GatewayConfig(_Section):
    """Messaging gateway access."""
    timeout_seconds: float = 10.0
    unread_chat_limit: int = 10
    message_limit: int = 5
    default_port: str = "13443"  # used when a connector omits its port


class AutoReplyConfig(_Section):
    """Auto-reply engine configuration."""
    enabled: bool = True
    lookback: int = 5  # Recent messages checked per chat
    ledger_capacity: int = 1000
    ledger_evict_count: int = 500
    max_connectors: int = 100  # Ledgers and locks kept, least recently used dropped first
    fallback_max_chars: int = 50
    send_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 10.0
    rules: list[ReplyRuleConfig] = Field(default_factory=_default_rules)

    def rule_entries(self) -> list[dict[str, Any]]:
        return [rule.model_dump() for rule in self.rules]


class LLMConfig(_Section):
    """Optional LLM reply generation (falls back to rules on failure)."""
    enabled: bool = False
    backend: Literal["platform", "litellm"] = "platform"
    model: str = "gpt-4o-mini"
    system_prompt: str = (
        "You are a helpful WhatsApp assistant. Generate brief, friendly replies. "
        "Keep responses under 50 words."
    )
    max_tokens: int = 150
    temperature: float = 0.7
    api_base: str | None = None  # litellm backend only
    timeout_seconds: float = 10.0


class ServerConfig(_Section):
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080


class Config(BaseSettings):
    """Root configuration for WaBot."""
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    auto_reply: AutoReplyConfig = Field(default_factory=AutoReplyConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    model_config = SettingsConfigDict(
        env_prefix="WABOT_",
        env_nested_delimiter="__",
    )
