"""Summary: Tests for system prompt sections.

Importance: The LLM only knows what these blocks tell it about the user's accounts.
Alternatives: Snapshot whole prompts and diff them by eye.
"""

from __future__ import annotations

from datetime import datetime

from akronom.models import (
    CREATE_EVENT,
    SEND_EMAIL,
    ActionResult,
    CalendarEventSummary,
    CreateEventIntent,
    EmailSummary,
    SendEmailIntent,
)
from akronom.prompts import action_result_block, calendar_context, email_context, persona_preamble


def test_persona_lists_connection_state() -> None:
    preamble = persona_preamble("me@gmail.com", None)
    assert "## Gmail (Connected: me@gmail.com)" in preamble
    assert "## Google Calendar (Not connected)" in preamble


def test_email_context_table_truncates_cells() -> None:
    emails = [
        EmailSummary(
            id="m1",
            subject="S" * 80,
            sender='"Very Long Sender Name For Testing" <sender@example.com>',
            date="Mon, 04 May 2026 09:30:00 +0000",
            snippet="Quick note",
        )
    ]
    context = email_context("me@gmail.com", emails)
    row = context.splitlines()[4]
    assert row == f"| 1 | Very Long Sender Name For | {'S' * 50} | May 04, 2026 09:30 |"
    assert "**Summary of Key Emails:**" in context
    assert email_context("me@gmail.com", []).endswith("no messages were found.")


def test_calendar_context_rows() -> None:
    events = [
        CalendarEventSummary(
            id="e1",
            title="Offsite",
            start=datetime(2026, 6, 3),
            end=datetime(2026, 6, 4),
            all_day=True,
        ),
        CalendarEventSummary(
            id="e2",
            title="Sync | weekly",
            start=datetime(2026, 6, 4, 9, 0),
            end=datetime(2026, 6, 4, 9, 30),
            all_day=False,
            location="Room 4",
        ),
    ]
    lines = calendar_context("me@gmail.com", events).splitlines()
    assert lines[4] == "| 1 | Offsite | Jun 03, 2026 (All day) | - |"
    assert lines[5] == "| 2 | Sync / weekly | Jun 04, 09:00 | Room 4 |"


def test_action_result_blocks() -> None:
    """Summary: Ensure success blocks carry the markers the duplicate guard relies on.

    Importance: Without "EMAIL SENT" or "EVENT CREATED" a replay would run the action again.
    Alternatives: Track executed actions in a database.
    """

    email = ActionResult(
        action=SEND_EMAIL,
        success=True,
        intent=SendEmailIntent(to="a@b.com", subject="Hello", body="Hi"),
        account_email="me@gmail.com",
    )
    assert action_result_block(email).startswith("✅ EMAIL SENT SUCCESSFULLY!\nTo: a@b.com")
    event = ActionResult(
        action=CREATE_EVENT,
        success=True,
        intent=CreateEventIntent(
            title="Offsite",
            start=datetime(2026, 6, 3),
            end=datetime(2026, 6, 4),
            all_day=True,
            location="Lisbon",
        ),
        link="https://calendar.google.com/e1",
        account_email="me@gmail.com",
    )
    block = action_result_block(event)
    assert "🕐 2026-06-03 - 2026-06-04" in block
    assert "📍 Lisbon" in block
    assert "🔗 [View in Google Calendar](https://calendar.google.com/e1)" in block
    failed = ActionResult(action=CREATE_EVENT, success=False, intent=event.intent, error="boom")
    assert action_result_block(failed) == "❌ Failed to create event: boom"
