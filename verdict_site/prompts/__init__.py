"""
Centralized prompt management for Blind Verdict.

This package contains the system prompts and templates used by the AI gateway,
grouped by role (chat assistant and adjudicator).
"""

from .prompts import (
    COMPARISON_PROMPT_TEMPLATE,
    DEFAULT_SYSTEM_MESSAGE,
    FIRST_TURN_TEMPLATE,
    TOPIC_SYSTEM_MESSAGE_TEMPLATE,
)

__all__ = [
    "DEFAULT_SYSTEM_MESSAGE",
    "TOPIC_SYSTEM_MESSAGE_TEMPLATE",
    "FIRST_TURN_TEMPLATE",
    "COMPARISON_PROMPT_TEMPLATE",
]
