"""Summary: Keyword gates deciding whether a turn needs email or calendar data.

Importance: Keeps read fetches off turns that have nothing to do with the user's accounts.
Alternatives: Ask the LLM to classify the request before fetching.
"""

from __future__ import annotations

from typing import Sequence

from akronom.models import ChatMessage


EMAIL = "email"
CALENDAR = "calendar"

EMAIL_KEYWORDS = (
    "email",
    "emails",
    "mail",
    "inbox",
    "gmail",
    "read my",
    "check my",
    "show my",
    "what are my",
    "unread",
    "messages",
    "latest",
    "recent",
)

CALENDAR_KEYWORDS = (
    "calendar",
    "events",
    "event",
    "schedule",
    "scheduled",
    "meeting",
    "meetings",
    "appointment",
    "appointments",
    "what do i have",
    "what's on my",
    "what is on my",
    "upcoming",
    "today",
    "tomorrow",
    "this week",
    "next week",
    "agenda",
    "plans",
    "busy",
)

_KEYWORDS = {EMAIL: EMAIL_KEYWORDS, CALENDAR: CALENDAR_KEYWORDS}


def last_user_message(transcript: Sequence[ChatMessage]) -> ChatMessage | None:
    for message in reversed(transcript):
        if message.is_user:
            return message
    return None


def should_fetch(domain: str, transcript: Sequence[ChatMessage]) -> bool:
    """Summary: Return True when the latest user message mentions the domain.

    Importance: Substring matching is deliberately broad; both gates may fire at once.
    Alternatives: Tokenize and match whole words only.
    """

    if domain not in _KEYWORDS:
        raise ValueError(f"Unknown gate domain: {domain}")
    message = last_user_message(transcript)
    if message is None:
        return False
    lowered = message.content.lower()
    return any(keyword in lowered for keyword in _KEYWORDS[domain])
