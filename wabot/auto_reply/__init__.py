"""
Auto-reply system for WaBot.

Provides:
- Rule-based reply classification
- Per-connector dedup ledger
- Batch dispatch with send timeouts
- Polling and webhook entry points
"""

from wabot.auto_reply.rules import (
    DEFAULT_RULES,
    ClassificationResult,
    ReplyClassifier,
    ReplyRule,
    fallback_reply,
    load_rules,
)
from wabot.auto_reply.ledger import (
    DedupLedger,
    LedgerRegistry,
    make_key,
)
from wabot.auto_reply.dispatch import (
    DispatchConfig,
    DispatchResult,
    DispatchSummary,
    ReplyDispatcher,
)
from wabot.auto_reply.service import (
    AutoReplyService,
    CycleInProgress,
    WebhookOutcome,
)
from wabot.auto_reply.poller import AutoReplyPoller

__all__ = [
    # Rules
    "DEFAULT_RULES",
    "ClassificationResult",
    "ReplyClassifier",
    "ReplyRule",
    "fallback_reply",
    "load_rules",
    # Ledger
    "DedupLedger",
    "LedgerRegistry",
    "make_key",
    # Dispatch
    "DispatchConfig",
    "DispatchResult",
    "DispatchSummary",
    "ReplyDispatcher",
    # Service
    "AutoReplyService",
    "CycleInProgress",
    "WebhookOutcome",
    "AutoReplyPoller",
]
