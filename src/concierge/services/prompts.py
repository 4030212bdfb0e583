"""Outbound completion payloads for the chat and topic endpoints."""

from __future__ import annotations

from typing import Dict, List

from ..config import ConciergeSettings
from ..domain.chat_models import ChatQuery
from .chat_ai import CompletionPayload

INITIAL_TOPICS_REQUEST = """List 3 - 5 relevant questions you can answer for me. Provide both the full question and a 2-3 word summary for each.

Here are some examples:
1. What are some popular art styles for home decor? | Art Styles
2. Can you recommend famous artists for wall art? | Famous Artists
3. How can I choose art that complements my home decor? | Home Decor Matching

Use the following format:
#. <question> | <summary>"""

FOLLOWUP_TOPICS_REQUEST = """List 2 - 3 relevant questions you can answer for me. Provide both the full question and a 2-3 word summary for each.

Use the following format:
#. <question> | <summary>"""

# Placeholder messages are UI state, not conversation.
_SKIPPED_TYPES = {"products"}


def conversation_messages(query: ChatQuery, personality: str) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": personality}]
    for msg in query.messages:
        if msg.type in _SKIPPED_TYPES:
            continue
        messages.append({"role": msg.role, "content": msg.content})
    return messages


def build_chat_payload(query: ChatQuery, settings: ConciergeSettings) -> CompletionPayload:
    return CompletionPayload(
        model=settings.model,
        messages=conversation_messages(query, settings.personality),
        temperature=settings.temperature,
        max_tokens=settings.chat_max_tokens,
    )


def build_topics_payload(query: ChatQuery, settings: ConciergeSettings) -> CompletionPayload:
    messages = conversation_messages(query, settings.personality)
    # Only the persona so far: suggest conversation starters.
    request = INITIAL_TOPICS_REQUEST if len(messages) == 1 else FOLLOWUP_TOPICS_REQUEST
    messages.append({"role": "user", "content": request})
    return CompletionPayload(
        model=settings.model,
        messages=messages,
        temperature=settings.topics_temperature,
        max_tokens=settings.topics_max_tokens,
        n=None,
    )
