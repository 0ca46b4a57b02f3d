"""Prompt construction for advice generation and follow-up chat.

Prompts are Jinja2 templates rendered deterministically from structured
medical context; high-risk conditions get an urgent-attention directive.
"""

from dermassist.prompts.advice import (
    ADVICE_TEMPLATE,
    CHAT_TEMPLATE,
    DISCLAIMER,
    URGENT_CONDITIONS,
    ChatTurn,
    build_advice_prompt,
    build_chat_prompt,
    is_urgent,
)
from dermassist.prompts.template import PromptTemplate, SamplingConfig

__all__ = [
    "ADVICE_TEMPLATE",
    "CHAT_TEMPLATE",
    "DISCLAIMER",
    "URGENT_CONDITIONS",
    "ChatTurn",
    "PromptTemplate",
    "SamplingConfig",
    "build_advice_prompt",
    "build_chat_prompt",
    "is_urgent",
]
