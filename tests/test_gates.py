"""Summary: Tests for the email and calendar keyword gates.

Importance: Gates decide whether a turn pays for a Google API fetch.
Alternatives: Rely on manual prompts to spot missed fetches.
"""

from __future__ import annotations

import pytest

from akronom.gates import CALENDAR, EMAIL, last_user_message, should_fetch
from akronom.models import ChatMessage


def test_email_gate_matches_latest_user_message() -> None:
    transcript = [ChatMessage(role="user", content="show me my recent emails")]
    assert should_fetch(EMAIL, transcript) is True
    assert should_fetch(CALENDAR, transcript) is False


def test_gates_ignore_assistant_messages() -> None:
    """Summary: Ensure only the newest user message drives the gates.

    Importance: An assistant reply mentioning the calendar must not trigger a fetch.
    Alternatives: Scan the whole transcript for keywords.
    """

    transcript = [
        ChatMessage(role="user", content="check my inbox"),
        ChatMessage(role="assistant", content="Your calendar is empty."),
        ChatMessage(role="user", content="thanks!"),
    ]
    assert should_fetch(EMAIL, transcript) is False
    assert should_fetch(CALENDAR, transcript) is False


def test_both_gates_can_fire() -> None:
    transcript = [ChatMessage(role="user", content="Any email about the meeting tomorrow?")]
    assert should_fetch(EMAIL, transcript) is True
    assert should_fetch(CALENDAR, transcript) is True


def test_gates_handle_empty_transcript() -> None:
    assert last_user_message([]) is None
    assert should_fetch(EMAIL, []) is False


def test_unknown_gate_domain_raises() -> None:
    with pytest.raises(ValueError):
        should_fetch("tasks", [ChatMessage(role="user", content="hi")])
