"""Summary: System prompt text and context blocks for the Akronom assistant.

Importance: Keeps every user-visible phrase the LLM sees in one module.
Alternatives: Store prompt templates in files and render them with Jinja.
"""

from __future__ import annotations

import re
from email.utils import parsedate_to_datetime
from typing import Sequence

from akronom.guard import format_start
from akronom.models import (
    CREATE_EVENT,
    SEND_EMAIL,
    ActionResult,
    CalendarEventSummary,
    CreateEventIntent,
    EmailSummary,
    SendEmailIntent,
)


GMAIL_NOT_CONNECTED = (
    "Note: The user asked about emails but Gmail is not connected. "
    "Suggest they connect Gmail using the connectors menu."
)
CALENDAR_NOT_CONNECTED = (
    "Note: The user asked about calendar/events but Google Calendar is not connected. "
    "Suggest they connect Google Calendar using the connectors menu."
)

_ANGLE_ADDRESS = re.compile(r"<[^>]+>")


def persona_preamble(gmail_account: str | None, calendar_account: str | None) -> str:
    """Summary: Build the fixed persona section with per-service connection lines.

    Importance: Tells the model which services it may talk about as connected.
    Alternatives: Send connection state as a separate system message.
    """

    gmail_line = f"Connected: {gmail_account}" if gmail_account else "Not connected"
    calendar_line = f"Connected: {calendar_account}" if calendar_account else "Not connected"
    return f"""You are Akronom, an advanced AI assistant. Your name is Akronom. You help users with tasks, answer questions, and provide thoughtful, comprehensive responses. Be helpful, concise when appropriate, and thorough when needed.

You have access to the user's Google services when they connect them:

## Gmail ({gmail_line})
1. READ emails - When the user asks about their emails, display them in a clean table format
2. SEND emails - When the user asks to send an email, draft it with To:, Subject: and the body, and send it when they confirm

## Google Calendar ({calendar_line})
1. VIEW events - When the user asks about their schedule/calendar, display events in a clean table
2. CREATE events - When the user asks to create an event/meeting/appointment, extract the details:
   - Ask for: title, date, time, and optionally location
   - Show the draft with a 📅 line and the title in **bold**, then create the event when they confirm
   - Format: "Create an event called [title] tomorrow at 3pm" or similar

When displaying events, use a clean markdown table with columns: #, Event, Date & Time, Location
When creating events, confirm the details with the user before creating.
When an action result block starting with ✅ or ❌ is present below, repeat it to the user verbatim before anything else.

If a service is not connected, politely suggest they connect it using the connectors menu."""


def email_context(account: str | None, emails: Sequence[EmailSummary]) -> str:
    """Summary: Render fetched emails as a markdown table plus short summaries.

    Importance: Keeps the prompt compact by truncating senders and subjects.
    Alternatives: Paste full message bodies into the prompt.
    """

    if not emails:
        return f"The user has connected their Gmail account ({account}), but no messages were found."
    lines = [
        f"The user has connected their Gmail account ({account}). Here are their recent emails:",
        "",
        "| # | From | Subject | Date |",
        "|---|------|---------|------|",
    ]
    for index, email in enumerate(emails, start=1):
        sender = _display_sender(email.sender)[:25]
        lines.append(
            f"| {index} | {_cell(sender)} | {_cell(email.subject[:50])} | {_short_date(email.date)} |"
        )
    lines.extend(["", "**Summary of Key Emails:**"])
    for index, email in enumerate(emails[:5], start=1):
        lines.append(f"{index}. **{_display_sender(email.sender)}** - {email.snippet}")
    return "\n".join(lines)


def calendar_context(account: str | None, events: Sequence[CalendarEventSummary]) -> str:
    if not events:
        return (
            f"The user has connected their Google Calendar ({account}), "
            "but they have no upcoming events in the requested time period."
        )
    lines = [
        f"The user has connected their Google Calendar ({account}). Here are their upcoming events:",
        "",
        "| # | Event | Date & Time | Location |",
        "|---|-------|-------------|----------|",
    ]
    for index, event in enumerate(events, start=1):
        location = event.location[:20] if event.location else "-"
        lines.append(
            f"| {index} | {_cell(event.title[:35])} | {_event_when(event)} | {_cell(location)} |"
        )
    return "\n".join(lines)


def fetch_failure(service_label: str, error: Exception) -> str:
    return f"Note: Could not load the user's {service_label} right now ({error}). Tell the user to try again shortly."


def action_result_block(result: ActionResult) -> str:
    """Summary: Render an executed action as a success or failure block.

    Importance: The success wording carries the markers the duplicate guard looks for.
    Alternatives: Report actions through structured fields outside the prompt.
    """

    if result.action == SEND_EMAIL and isinstance(result.intent, SendEmailIntent):
        return _email_block(result, result.intent)
    if result.action == CREATE_EVENT and isinstance(result.intent, CreateEventIntent):
        return _event_block(result, result.intent)
    raise ValueError(f"Unknown action: {result.action}")


def _email_block(result: ActionResult, intent: SendEmailIntent) -> str:
    if not result.success:
        return f"❌ Failed to send email: {result.error}"
    return (
        "✅ EMAIL SENT SUCCESSFULLY!\n"
        f"To: {intent.to}\n"
        f"Subject: {intent.subject}\n\n"
        f"The email has been sent from your Gmail account ({result.account_email})."
    )


def _event_block(result: ActionResult, intent: CreateEventIntent) -> str:
    if not result.success:
        return f"❌ Failed to create event: {result.error}"
    lines = [
        "✅ EVENT CREATED SUCCESSFULLY!",
        f"📅 **{intent.title}**",
        f"🕐 {format_start(intent.start, intent.all_day)} - {format_start(intent.end, intent.all_day)}",
    ]
    if intent.location:
        lines.append(f"📍 {intent.location}")
    if result.link:
        lines.append(f"🔗 [View in Google Calendar]({result.link})")
    lines.extend(["", f"The event has been added to your Google Calendar ({result.account_email})."])
    return "\n".join(lines)


def _display_sender(sender: str) -> str:
    cleaned = _ANGLE_ADDRESS.sub("", sender).strip().strip('"')
    return cleaned or sender


def _short_date(raw: str) -> str:
    try:
        return parsedate_to_datetime(raw).strftime("%b %d, %Y %H:%M")
    except (TypeError, ValueError):
        return raw[:16]


def _event_when(event: CalendarEventSummary) -> str:
    if event.start is None:
        return "-"
    if event.all_day:
        return event.start.strftime("%b %d, %Y") + " (All day)"
    return event.start.strftime("%b %d, %H:%M")


def _cell(value: str) -> str:
    return value.replace("|", "/").replace("\n", " ")
