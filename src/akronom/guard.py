"""Summary: Duplicate-action guard for side-effecting chat actions.

Importance: The full transcript is replayed on every turn, so an intent that was
already acted on keeps matching; this guard stops it from firing again.
Alternatives: Persist an action ledger keyed by conversation and intent.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from akronom.models import CREATE_EVENT, SEND_EMAIL, ChatMessage, CreateEventIntent, SendEmailIntent


COMPLETION_MARKERS = {
    SEND_EMAIL: "email sent",
    CREATE_EVENT: "event created",
}


@dataclass(frozen=True)
class IdentityKey:
    """Summary: Case-insensitive components identifying one concrete action.

    Importance: Two sends to the same address with different subjects are different actions.
    Each component lists the renderings that count as a match.
    Alternatives: Hash the full intent and embed the hash in assistant replies.
    """

    components: tuple[tuple[str, ...], ...]

    def __str__(self) -> str:
        return ":".join(options[0] for options in self.components)

    def found_in(self, text: str) -> bool:
        lowered = text.lower()
        return all(
            any(option in lowered for option in options) for options in self.components
        )


def email_identity(intent: SendEmailIntent) -> IdentityKey:
    return IdentityKey(((intent.to.lower(),), (intent.subject.lower(),)))


def event_identity(intent: CreateEventIntent) -> IdentityKey:
    start = format_start(intent.start, intent.all_day)
    renderings = (start,) if intent.all_day else (start, start.replace(" ", "t"))
    return IdentityKey(((intent.title.lower(),), renderings))


def format_start(start: datetime, all_day: bool) -> str:
    """Render a start time the way action result blocks print it."""

    if all_day:
        return start.strftime("%Y-%m-%d")
    return start.strftime("%Y-%m-%d %H:%M")


def already_handled(transcript: Sequence[ChatMessage], action: str, key: IdentityKey) -> bool:
    """Summary: Return True if an assistant message already reports this action as done.

    Importance: A match needs the completion marker and every key component in one message.
    Alternatives: Match on the marker alone, which blocks legitimate repeat actions.
    """

    marker = COMPLETION_MARKERS.get(action)
    if marker is None:
        raise ValueError(f"Unknown action: {action}")
    for message in transcript:
        if message.is_assistant and marker in message.content.lower() and key.found_in(
            message.content
        ):
            return True
    return False
