"""LLM reply providers."""

from wabot.providers.reply import LLMReplyGenerator, extract_reply_text

__all__ = ["LLMReplyGenerator", "extract_reply_text"]
