"""
Rule-based reply classifier for WaBot auto-reply.

Maps an incoming message to a canned reply:
1. Ordered pattern rules (first match wins)
2. Random choice among the winning rule's replies
3. Echo fallback when nothing matches
"""

import random
import re
from dataclasses import dataclass, field
from typing import Any, Iterable


FALLBACK_TEMPLATE = (
    'Thanks for your message! I received: "{excerpt}". '
    "I'll get back to you shortly! 📩"
)


@dataclass(frozen=True)
class ReplyRule:
    """A pattern and the replies it may produce."""
    name: str
    pattern: str
    replies: tuple[str, ...]
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.replies:
            raise ValueError(f"Rule '{self.name}' has no replies")
        # Lists from config are frozen so the rule table stays immutable
        object.__setattr__(self, "replies", tuple(self.replies))
        object.__setattr__(self, "_compiled", re.compile(self.pattern, re.IGNORECASE))

    def search(self, text: str) -> re.Match | None:
        """Return the match for this rule, if any."""
        return self._compiled.search(text)


@dataclass
class ClassificationResult:
    """Result of reply classification."""
    reply: str
    rule: str | None = None  # None when the fallback was used
    matched: str = ""

    @property
    def is_fallback(self) -> bool:
        return self.rule is None


DEFAULT_RULES: tuple[ReplyRule, ...] = (
    ReplyRule(
        name="greeting",
        pattern=r"^(hi|hello|hey|hii+|hola)",
        replies=(
            "Hello! 👋 How can I help you today?",
            "Hi there! What can I do for you?",
            "Hey! Nice to hear from you. How can I assist?",
        ),
    ),
    ReplyRule(
        name="identity",
        pattern=r"(who is this|who are you|what is this)",
        replies=(
            "Hi! I'm an AI assistant here to help you. Feel free to ask me anything! 🤖",
            "Hello! This is an automated assistant. How may I help you today?",
        ),
    ),
    ReplyRule(
        name="gratitude",
        pattern=r"(thanks|thank you|thx)",
        replies=(
            "You're welcome! Let me know if you need anything else. 😊",
            "Happy to help! Don't hesitate to reach out again.",
        ),
    ),
    ReplyRule(
        name="farewell",
        pattern=r"(bye|goodbye|see you|later)",
        replies=(
            "Goodbye! Take care! 👋",
            "See you later! Have a great day!",
        ),
    ),
    ReplyRule(
        name="support",
        pattern=r"(help|support|issue|problem)",
        replies=(
            "I'd be happy to help! Could you please describe your issue in detail?",
            "I'm here to assist. What seems to be the problem?",
        ),
    ),
    ReplyRule(
        name="pricing",
        pattern=r"(price|cost|how much)",
        replies=(
            "For pricing information, please let me know which product or service you're interested in.",
            "I can help with pricing! What would you like to know about?",
        ),
    ),
)


def fallback_reply(text: str, max_chars: int = 50) -> str:
    """
    Build the echo reply used when no rule matches.

    The excerpt is the first ``max_chars`` characters of the message,
    followed by "..." only when the message was cut.
    """
    excerpt = text[:max_chars]
    if len(text) > max_chars:
        excerpt += "..."
    return FALLBACK_TEMPLATE.format(excerpt=excerpt)


def load_rules(entries: Iterable[dict[str, Any] | ReplyRule]) -> list[ReplyRule]:
    """
    Build reply rules from config entries, keeping their order.

    Args:
        entries: Dicts with name, pattern and replies (or ready rules).

    Returns:
        Rules in the order given.
    """
    rules = []
    for index, entry in enumerate(entries):
        if isinstance(entry, ReplyRule):
            rules.append(entry)
            continue
        rules.append(ReplyRule(
            name=entry.get("name") or f"rule_{index + 1}",
            pattern=entry["pattern"],
            replies=tuple(entry.get("replies", ())),
        ))
    return rules


class ReplyClassifier:
    """
    Picks a reply for a message from an ordered rule table.

    Rule order is the precedence: the first rule whose pattern matches
    wins, there is no scoring between rules. The random source is
    injected so callers can make the choice deterministic.
    """

    def __init__(
        self,
        rules: Iterable[ReplyRule] | None = None,
        rng: random.Random | None = None,
        fallback_max_chars: int = 50,
    ):
        self.rules: tuple[ReplyRule, ...] = tuple(DEFAULT_RULES if rules is None else rules)
        self.rng = rng or random.Random()
        self.fallback_max_chars = fallback_max_chars

    def explain(self, text: str) -> ClassificationResult:
        """
        Classify a message and report which rule produced the reply.

        Args:
            text: Incoming message text (may be empty).

        Returns:
            ClassificationResult with the reply and winning rule name.
        """
        text = text or ""

        for rule in self.rules:
            match = rule.search(text)
            if match:
                return ClassificationResult(
                    reply=self.rng.choice(rule.replies),
                    rule=rule.name,
                    matched=match.group(0),
                )

        return ClassificationResult(
            reply=fallback_reply(text, self.fallback_max_chars),
        )

    def classify(self, text: str) -> str:
        """Return the reply text for a message."""
        return self.explain(text).reply

    def get_rule(self, name: str) -> ReplyRule | None:
        """Look up a rule by name."""
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None
