"""Summary: Chat turn dispatcher for Akronom.

Importance: Decides per turn whether to act, fetch, or stay idle for Gmail and Calendar,
and assembles the system prompt the LLM answers from.
Alternatives: Let the LLM call tools and execute them in a loop.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol, Sequence
from zoneinfo import ZoneInfo

from akronom.calendar import GoogleCalendarClient, window_end_for
from akronom.gates import CALENDAR, EMAIL, last_user_message, should_fetch
from akronom.gmail import GmailClient
from akronom.guard import already_handled, email_identity, event_identity
from akronom.intents import extract_create_event, extract_send_email
from akronom.llm import ChatCompletionProvider, ChatStream
from akronom.models import (
    CREATE_EVENT,
    SEND_EMAIL,
    ActionResult,
    ChatMessage,
    TokenGrant,
)
from akronom.prompts import (
    CALENDAR_NOT_CONNECTED,
    GMAIL_NOT_CONNECTED,
    action_result_block,
    calendar_context,
    email_context,
    fetch_failure,
    persona_preamble,
)


logger = logging.getLogger(__name__)

GMAIL = "gmail"
CALENDAR_SERVICE = "calendar"
EMAIL_FETCH_LIMIT = 10
EVENT_FETCH_LIMIT = 15

# Collaborator failures that degrade to a prompt notice instead of failing the turn.
COLLABORATOR_ERRORS = (RuntimeError, ValueError, OSError)


class DomainState(Enum):
    NOT_CONNECTED = "not_connected"
    ACTION_EXECUTED = "action_executed"
    ACTION_SKIPPED = "action_skipped"
    READ_FETCH = "read_fetch"
    IDLE = "idle"


class TokenSource(Protocol):
    def get_valid_token(self, service: str) -> TokenGrant | None:
        ...


@dataclass(frozen=True)
class DomainOutcome:
    """Summary: What happened for one service during a turn.

    Importance: Exposes the dispatcher's decision for logging, tests, and the CLI.
    Alternatives: Return only the rendered prompt text.
    """

    service: str
    state: DomainState
    account_email: str | None = None
    context: str = ""
    action: ActionResult | None = None

    @property
    def connected(self) -> bool:
        return self.state is not DomainState.NOT_CONNECTED


@dataclass(frozen=True)
class PreparedTurn:
    system_prompt: str
    outcomes: dict[str, DomainOutcome]


@dataclass(frozen=True)
class TurnResult:
    system_prompt: str
    outcomes: dict[str, DomainOutcome]
    stream: ChatStream


@dataclass(frozen=True)
class ChatService:
    """Summary: Runs one chat turn end to end.

    Importance: Gmail and Calendar are handled concurrently; each side runs
    token, extract and guard, then act or fetch, strictly in that order.
    Alternatives: Handle both services sequentially.
    """

    credentials: TokenSource
    chat_provider: ChatCompletionProvider
    gmail_factory: Callable[[str], GmailClient]
    calendar_factory: Callable[[str], GoogleCalendarClient]
    timezone: str = "UTC"
    clock: Callable[[], datetime] | None = None

    def handle_turn(self, transcript: Sequence[ChatMessage]) -> TurnResult:
        """Summary: Prepare the prompt and open the LLM stream for a transcript.

        Importance: LLM errors propagate so the API can map them to status codes.
        Alternatives: Swallow LLM errors and stream an apology.
        """

        prepared = self.prepare_turn(transcript)
        stream = self.chat_provider.open_stream(prepared.system_prompt, transcript)
        return TurnResult(
            system_prompt=prepared.system_prompt,
            outcomes=prepared.outcomes,
            stream=stream,
        )

    def prepare_turn(self, transcript: Sequence[ChatMessage]) -> PreparedTurn:
        now = self._now()
        with ThreadPoolExecutor(max_workers=2) as pool:
            email_future = pool.submit(self._email_turn, transcript)
            calendar_future = pool.submit(self._calendar_turn, transcript, now)
            outcomes = {GMAIL: email_future.result(), CALENDAR_SERVICE: calendar_future.result()}
        return PreparedTurn(system_prompt=build_system_prompt(outcomes), outcomes=outcomes)

    def _email_turn(self, transcript: Sequence[ChatMessage]) -> DomainOutcome:
        wants_data = should_fetch(EMAIL, transcript)
        grant = self._grant(GMAIL)
        if grant is None:
            return DomainOutcome(
                GMAIL,
                DomainState.NOT_CONNECTED,
                context=GMAIL_NOT_CONNECTED if wants_data else "",
            )
        client = self.gmail_factory(grant.token)
        intent = extract_send_email(transcript)
        if intent is not None:
            if already_handled(transcript, SEND_EMAIL, email_identity(intent)):
                logger.info("Skipping duplicate email to %s (%s).", intent.to, intent.subject)
                return DomainOutcome(GMAIL, DomainState.ACTION_SKIPPED, grant.account_email)
            logger.info("Send email intent detected for %s.", intent.to)
            try:
                message_id = client.send_message(intent)
                result = ActionResult(
                    action=SEND_EMAIL,
                    success=True,
                    intent=intent,
                    provider_id=message_id,
                    account_email=grant.account_email,
                )
            except COLLABORATOR_ERRORS as exc:
                logger.warning("Sending email failed: %s", exc)
                result = ActionResult(action=SEND_EMAIL, success=False, intent=intent, error=str(exc))
            return DomainOutcome(GMAIL, DomainState.ACTION_EXECUTED, grant.account_email, action=result)
        if not wants_data:
            return DomainOutcome(GMAIL, DomainState.IDLE, grant.account_email)
        logger.info("Email-related query detected, fetching emails.")
        try:
            emails = client.list_messages(limit=EMAIL_FETCH_LIMIT)
            context = email_context(grant.account_email, emails)
        except COLLABORATOR_ERRORS as exc:
            logger.warning("Fetching emails failed: %s", exc)
            context = fetch_failure("emails", exc)
        return DomainOutcome(GMAIL, DomainState.READ_FETCH, grant.account_email, context=context)

    def _calendar_turn(self, transcript: Sequence[ChatMessage], now: datetime) -> DomainOutcome:
        wants_data = should_fetch(CALENDAR, transcript)
        grant = self._grant(CALENDAR_SERVICE)
        if grant is None:
            return DomainOutcome(
                CALENDAR_SERVICE,
                DomainState.NOT_CONNECTED,
                context=CALENDAR_NOT_CONNECTED if wants_data else "",
            )
        client = self.calendar_factory(grant.token)
        intent = extract_create_event(transcript, now)
        if intent is not None:
            if already_handled(transcript, CREATE_EVENT, event_identity(intent)):
                logger.info("Skipping duplicate event %s at %s.", intent.title, intent.start)
                return DomainOutcome(CALENDAR_SERVICE, DomainState.ACTION_SKIPPED, grant.account_email)
            logger.info("Create event intent detected: %s at %s.", intent.title, intent.start)
            try:
                event = client.create_event(intent)
                result = ActionResult(
                    action=CREATE_EVENT,
                    success=True,
                    intent=intent,
                    provider_id=event.id,
                    link=event.link,
                    account_email=grant.account_email,
                )
            except COLLABORATOR_ERRORS as exc:
                logger.warning("Creating event failed: %s", exc)
                result = ActionResult(action=CREATE_EVENT, success=False, intent=intent, error=str(exc))
            return DomainOutcome(
                CALENDAR_SERVICE, DomainState.ACTION_EXECUTED, grant.account_email, action=result
            )
        if not wants_data:
            return DomainOutcome(CALENDAR_SERVICE, DomainState.IDLE, grant.account_email)
        logger.info("Calendar-related query detected, fetching events.")
        latest = last_user_message(transcript)
        time_max = window_end_for(latest.content, now) if latest else None
        try:
            events = client.list_events(time_min=now, time_max=time_max, limit=EVENT_FETCH_LIMIT)
            context = calendar_context(grant.account_email, events)
        except COLLABORATOR_ERRORS as exc:
            logger.warning("Fetching events failed: %s", exc)
            context = fetch_failure("calendar events", exc)
        return DomainOutcome(
            CALENDAR_SERVICE, DomainState.READ_FETCH, grant.account_email, context=context
        )

    def _grant(self, service: str) -> TokenGrant | None:
        try:
            return self.credentials.get_valid_token(service)
        except COLLABORATOR_ERRORS as exc:
            logger.warning("Loading %s credentials failed: %s", service, exc)
            return None

    def _now(self) -> datetime:
        if self.clock is not None:
            return self.clock()
        return datetime.now(ZoneInfo(self.timezone))


def build_system_prompt(outcomes: dict[str, DomainOutcome]) -> str:
    """Summary: Concatenate the persona, fetched context, and action results.

    Importance: Action results come last so they are closest to the conversation.
    Alternatives: Interleave results with the context of their service.
    """

    gmail = outcomes.get(GMAIL)
    calendar = outcomes.get(CALENDAR_SERVICE)
    sections = [
        persona_preamble(_account_label(gmail), _account_label(calendar)),
        gmail.context if gmail else "",
        calendar.context if calendar else "",
    ]
    for outcome in (gmail, calendar):
        if outcome is not None and outcome.action is not None:
            sections.append(action_result_block(outcome.action))
    return "\n\n".join(section for section in sections if section)


def _account_label(outcome: DomainOutcome | None) -> str | None:
    if outcome is None or not outcome.connected:
        return None
    return outcome.account_email or "connected account"
