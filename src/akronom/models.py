"""Summary: Domain model dataclasses for Akronom.

Importance: Defines the chat, intent, and credential entities shared across modules.
Alternatives: Use Pydantic models or ORM classes directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SEND_EMAIL = "send_email"
CREATE_EVENT = "create_event"


@dataclass(frozen=True)
class User:
    """Summary: Represents an application user.

    Importance: Owns API keys and Google credentials.
    Alternatives: Delegate identity to an external auth provider.
    """

    display_name: str
    email: str


@dataclass(frozen=True)
class ChatMessage:
    """Summary: Represents one message of a chat transcript.

    Importance: The transcript is the only state carried between chat turns.
    Alternatives: Persist conversations server-side and pass only new messages.
    """

    role: str
    content: str

    @property
    def is_user(self) -> bool:
        return self.role == USER_ROLE

    @property
    def is_assistant(self) -> bool:
        return self.role == ASSISTANT_ROLE


@dataclass(frozen=True)
class TokenGrant:
    """Summary: A live bearer token and the Google account it belongs to.

    Importance: Is all the chat layer needs from the credential provider.
    Alternatives: Hand full credential records to every caller.
    """

    token: str
    account_email: str | None


@dataclass(frozen=True)
class CredentialRecord:
    """Summary: Stored OAuth credentials for one user and one Google service.

    Importance: Supports token refresh and connection status checks.
    Alternatives: Keep tokens only in browser storage.
    """

    user_id: int
    service: str
    access_token: str
    refresh_token: str | None
    expires_at: str | None
    account_email: str | None
    scopes: tuple[str, ...] = ()


@dataclass(frozen=True)
class SendEmailIntent:
    """Summary: A send-email request extracted from the transcript.

    Importance: Is the only input needed to send a message through Gmail.
    Alternatives: Ask the LLM to emit structured tool calls.
    """

    to: str
    subject: str
    body: str


@dataclass(frozen=True)
class CreateEventIntent:
    """Summary: A create-event request extracted from the transcript.

    Importance: Carries normalized start and end times for the calendar API.
    Alternatives: Pass raw date strings to the provider and let it parse them.
    """

    title: str
    start: datetime
    end: datetime
    all_day: bool
    location: str | None = None
    description: str | None = None
    attendees: tuple[str, ...] = ()

    def start_value(self) -> str:
        """Summary: Render the start in provider wire format.

        Importance: All-day events use date-only values, timed events carry a zone.
        Alternatives: Always send date-times and let the provider infer all-day.
        """

        return _wire_value(self.start, self.all_day)

    def end_value(self) -> str:
        return _wire_value(self.end, self.all_day)


def _wire_value(value: datetime, all_day: bool) -> str:
    if all_day:
        return value.date().isoformat()
    return value.isoformat()


@dataclass(frozen=True)
class EmailSummary:
    """Summary: Read-only projection of a Gmail message.

    Importance: Feeds the email context table in the system prompt.
    Alternatives: Forward raw Gmail payloads to the prompt builder.
    """

    id: str
    subject: str
    sender: str
    date: str
    snippet: str
    body: str = ""
    recipients: str = ""


@dataclass(frozen=True)
class CalendarEventSummary:
    """Summary: Read-only projection of a Google Calendar event.

    Importance: Feeds the calendar context table and action results.
    Alternatives: Forward raw Calendar payloads to the prompt builder.
    """

    id: str
    title: str
    start: datetime | None
    end: datetime | None
    all_day: bool
    location: str = ""
    description: str = ""
    link: str | None = None
    attendees: tuple[str, ...] = ()


@dataclass(frozen=True)
class ActionResult:
    """Summary: Outcome of a side-effecting action executed during a turn.

    Importance: Is rendered into the prompt so the assistant can report it.
    Alternatives: Return action outcomes to the UI out of band.
    """

    action: str
    success: bool
    intent: SendEmailIntent | CreateEventIntent
    provider_id: str | None = None
    link: str | None = None
    error: str | None = None
    account_email: str | None = None
