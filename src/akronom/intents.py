"""Summary: Rule-based extraction of send-email and create-event intents from a chat transcript.

Importance: Turns free-text requests and confirmed drafts into executable actions without an NLU model.
Alternatives: Ask the LLM for structured tool calls and trust its arguments.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Sequence

from akronom.dates import MONTH_PATTERN, find_date, parse_when
from akronom.models import ChatMessage, CreateEventIntent, SendEmailIntent


logger = logging.getLogger(__name__)

WINDOW_SIZE = 6

EMAIL_ADDRESS = re.compile(r"[\w.+-]+@[\w.-]+\.\w+")

_SEND_WORD = re.compile(r"\bsend\b", re.IGNORECASE)
_MAIL_WORD = re.compile(r"mail", re.IGNORECASE)
_BODY_LABEL = r"(?:body|content|message)\s*(?:\*\*)?\s*:"
_REQUEST_SUBJECT = re.compile(
    rf"\b(?:title|subject)\s*(?::\s*|\s+)(?P<value>.+?)(?=\s*[,.\n]|\s+{_BODY_LABEL}|$)",
    re.IGNORECASE,
)
_REQUEST_BODY = re.compile(r"\b(?:body|content|message)\s*:\s*(?P<value>.+)", re.IGNORECASE | re.DOTALL)

_DRAFT_TO = re.compile(
    r"\bto\s*(?:\*\*)?\s*:?\s*(?:\*\*)?\s*<?(?P<value>[\w.+-]+@[\w.-]+\.\w+)", re.IGNORECASE
)
_DRAFT_SUBJECT = re.compile(
    r"\bsubject\s*(?:\*\*)?\s*:\s*(?:\*\*)?\s*(?P<value>[^\n]+?)\s*(?:\*\*)?\s*"
    rf"(?=\n|$|[.!?](?:\s|$)|\s+{_BODY_LABEL})",
    re.IGNORECASE,
)
_DRAFT_END = r"(?=\n\s*\n\s*(?:would you|shall i|should i|let me know|do you want|---)|\Z)"
_DRAFT_BODY = re.compile(
    rf"\b(?:body|message)\s*(?:\*\*)?\s*:\s*(?:\*\*)?\s*(?P<value>[\s\S]+?){_DRAFT_END}",
    re.IGNORECASE,
)
_DRAFT_GREETING = re.compile(
    rf"^(?P<value>(?:dear|hi|hello)\b[\s\S]+?){_DRAFT_END}", re.IGNORECASE | re.MULTILINE
)

_EMAIL_AFFIRMATIVE = re.compile(
    r"^\s*(?:(?:yes|ok|okay)[,!.\s]+)?(?:yes|send it|go ahead|confirm|do it|ok|okay)[\s.!]*$",
    re.IGNORECASE,
)
_EVENT_AFFIRMATIVE = re.compile(
    r"^\s*(?:(?:yes|ok|okay|sure)[,!.\s]+)?"
    r"(?:yes|create it|go ahead|confirm|do it|ok|okay|sure|please)[\s.!]*$",
    re.IGNORECASE,
)

_CREATION_VERB = re.compile(
    r"\b(?:create|add|(?<!my\s)(?<!our\s)(?<!the\s)(?<!your\s)schedule"
    r"|make|set|put|remind me|new event)\b",
    re.IGNORECASE,
)
_EVENT_NOUN = re.compile(r"\b(?:event|meeting|appointment|reminder|calendar)s?\b", re.IGNORECASE)
_TITLE_NOUN = re.compile(r"\b(?P<noun>event|meeting|appointment|reminder)\b", re.IGNORECASE)
_DAY_WORD = re.compile(rf"\b(?:today|tomorrow|{MONTH_PATTERN})\b", re.IGNORECASE)
_QUESTION_START = re.compile(
    r"^\s*(?:what|when|where|which|who|how|do|does|did|is|are|am)\b", re.IGNORECASE
)

_BOUNDARY_WORDS = (
    rf"(?:on|at|in|from|for|with|by|tomorrow|today|tonight|next|this|{MONTH_PATTERN})"
)
_TITLE_END = rf"(?=\s+{_BOUNDARY_WORDS}\b|\s+\d|\s*[,.!?;\n]|$)"
_TITLE_START = rf"(?!{_BOUNDARY_WORDS}\b|\d)"
_QUOTED_TITLE = re.compile(
    r"\b(?:called|titled|named)\s*:?\s*[\"“'](?P<title>[^\"”'\n]+)[\"”']", re.IGNORECASE
)
_NAMED_TITLE = re.compile(
    rf"\b(?:called|titled|named)\s*:?\s*{_TITLE_START}(?P<title>.+?){_TITLE_END}", re.IGNORECASE
)
_PURPOSE_TITLE = re.compile(
    rf"\b(?:for|about)\s+{_TITLE_START}(?P<title>.+?){_TITLE_END}", re.IGNORECASE
)
_NOUN_TITLE = re.compile(
    rf"\b(?:event|meeting|appointment|reminder)\s*:?\s+(?:to\s+)?{_TITLE_START}(?P<title>.+?){_TITLE_END}",
    re.IGNORECASE,
)
_VERB_PREFIX = re.compile(
    r"^\s*(?:please\s+)?(?:(?:can|could|would|will)\s+you\s+)?(?:please\s+)?"
    r"(?:create|add|schedule|make|set(?:\s+up)?|put|remind\s+me(?:\s+to)?|new\s+event)\b\s*"
    r"(?:(?:an?|the|my)\s+)?(?:new\s+)?(?:(?:event|meeting|appointment|reminder)s?\b)?\s*"
    r"(?:to\s+|for\s+|:\s*)?",
    re.IGNORECASE,
)
_CALENDAR_SUFFIX = re.compile(
    r"\s+(?:on|in|to|into)\s+(?:my\s+|the\s+)?calendar\b.*$", re.IGNORECASE
)
_TRAILING_PREPOSITION = re.compile(r"(?:\s+(?:on|at|for|from|by|in))+\s*$", re.IGNORECASE)

_LOCATION = re.compile(
    r"(?:\b(?:at|in)\s+|\blocation\s*:\s*)(?P<value>[^,.\n]+?)"
    r"(?=\s+(?:on|at|from|for|with|by|tomorrow|today|tonight|next|this)\b|\s*[,.!?;\n]|$)",
    re.IGNORECASE,
)
_PIN_LOCATION = re.compile(
    r"📍\s*(?:\*\*)?\s*(?:location\s*:)?\s*(?:\*\*)?\s*(?P<value>[^\n]+)", re.IGNORECASE
)
_TIME_LIKE = re.compile(
    r"^(?:\d|noon\b|midnight\b|(?:the\s+)?(?:morning|afternoon|evening|night)\b)", re.IGNORECASE
)
_BOLD = re.compile(r"\*\*(?P<value>.+?)\*\*(?P<rest>[^\n]*)")
_EVENT_DRAFT_MARKER = re.compile(r"📅|\bevent\b", re.IGNORECASE)
_GENERIC_HEADING = re.compile(
    r"^(?:new\s+)?(?:event\s+)?(?:draft|details|event|event details|summary)$", re.IGNORECASE
)


@dataclass(frozen=True)
class PatternRule:
    """Summary: A named extraction rule applied to one message of the window.

    Importance: Keeps rule order explicit and lets logs say which rule matched.
    Alternatives: One large function with interleaved regular expressions.
    """

    name: str
    apply: Callable[..., Any]


def recent_window(transcript: Sequence[ChatMessage]) -> list[ChatMessage]:
    return list(transcript[-WINDOW_SIZE:])


def is_email_confirmation(text: str) -> bool:
    return bool(_EMAIL_AFFIRMATIVE.match(text))


def is_event_confirmation(text: str) -> bool:
    return bool(_EVENT_AFFIRMATIVE.match(text))


def extract_send_email(transcript: Sequence[ChatMessage]) -> SendEmailIntent | None:
    """Summary: Extract a send-email intent from the last messages of a transcript.

    Importance: Later matches overwrite earlier ones field by field, so a confirmed
    draft refines an earlier partial request.
    Alternatives: Only inspect the newest user message.
    """

    window = recent_window(transcript)
    merged: dict[str, str] = {}
    for index in range(len(window)):
        for rule in EMAIL_RULES:
            partial = rule.apply(window, index)
            if not partial:
                continue
            logger.debug("Email rule %s matched message %s.", rule.name, index)
            merged.update({key: value for key, value in partial.items() if value})
    to = merged.get("to", "")
    subject = merged.get("subject", "")
    if not to or not subject:
        return None
    return SendEmailIntent(to=to, subject=subject, body=merged.get("body") or f"Regarding: {subject}")


def extract_create_event(
    transcript: Sequence[ChatMessage], now: datetime
) -> CreateEventIntent | None:
    """Summary: Extract a create-event intent from the last messages of a transcript.

    Importance: The newest message yielding both a title and a date wins.
    Alternatives: Merge partial event fields across messages like email does.
    """

    window = recent_window(transcript)
    found: CreateEventIntent | None = None
    for index in range(len(window)):
        for rule in EVENT_RULES:
            candidate = rule.apply(window, index, now)
            if candidate is not None:
                logger.debug("Event rule %s matched message %s.", rule.name, index)
                found = candidate
    return found


def _explicit_email_request(window: list[ChatMessage], index: int) -> dict[str, str] | None:
    message = window[index]
    text = message.content
    if not message.is_user or not (_SEND_WORD.search(text) and _MAIL_WORD.search(text)):
        return None
    partial: dict[str, str] = {}
    address = EMAIL_ADDRESS.search(text)
    if address:
        partial["to"] = address.group(0)
    subject = _REQUEST_SUBJECT.search(text)
    if subject:
        partial["subject"] = subject.group("value").strip()
    body = _REQUEST_BODY.search(text)
    if body:
        partial["body"] = body.group("value").strip()
    return partial


def _confirmed_email_draft(window: list[ChatMessage], index: int) -> dict[str, str] | None:
    message = window[index]
    if not message.is_user or not is_email_confirmation(message.content):
        return None
    draft = _preceding_assistant(window, index)
    if draft is None:
        return None
    return parse_email_draft(draft.content)


def parse_email_draft(text: str) -> dict[str, str]:
    """Summary: Read recipient, subject, and body from an assistant-written draft.

    Importance: Lets a bare "yes" resolve into the email the assistant proposed.
    Alternatives: Persist drafts server-side and confirm by draft ID.
    """

    partial: dict[str, str] = {}
    to = _DRAFT_TO.search(text)
    if to:
        partial["to"] = to.group("value")
    subject = _DRAFT_SUBJECT.search(text)
    if subject:
        partial["subject"] = subject.group("value").replace("**", "").strip().rstrip(".")
    body = _DRAFT_BODY.search(text)
    if body is None:
        start = subject.end() if subject else 0
        body = _DRAFT_GREETING.search(text, start)
    if body:
        partial["body"] = body.group("value").strip()
    return partial


def _direct_event_request(
    window: list[ChatMessage], index: int, now: datetime
) -> CreateEventIntent | None:
    message = window[index]
    text = message.content
    if not message.is_user or not _CREATION_VERB.search(text):
        return None
    if not (_EVENT_NOUN.search(text) or _DAY_WORD.search(text)):
        return None
    if _QUESTION_START.match(text):
        return None
    when = parse_when(text, now)
    if when is None:
        return None
    title = extract_title(text, when.span)
    if not title:
        return None
    return CreateEventIntent(
        title=title,
        start=when.start,
        end=when.end,
        all_day=when.all_day,
        location=extract_location(text, now),
        attendees=tuple(dict.fromkeys(EMAIL_ADDRESS.findall(text))),
    )


def _confirmed_event_draft(
    window: list[ChatMessage], index: int, now: datetime
) -> CreateEventIntent | None:
    message = window[index]
    if not message.is_user or not is_event_confirmation(message.content):
        return None
    draft = _preceding_assistant(window, index)
    if draft is None or not _EVENT_DRAFT_MARKER.search(draft.content):
        return None
    return parse_event_draft(draft.content, now)


def parse_event_draft(text: str, now: datetime) -> CreateEventIntent | None:
    """Summary: Recover an event from an assistant-written draft.

    Importance: The first bold span is the title the assistant proposed.
    Alternatives: Require the assistant to emit a JSON draft block.
    """

    when = parse_when(text, now)
    if when is None:
        return None
    title = _bold_title(text) or extract_title(text, when.span, require_verb=False)
    if not title:
        return None
    pin = _PIN_LOCATION.search(text)
    location = _clean(pin.group("value")) if pin else extract_location(text, now)
    return CreateEventIntent(
        title=title,
        start=when.start,
        end=when.end,
        all_day=when.all_day,
        location=location or None,
        attendees=tuple(dict.fromkeys(EMAIL_ADDRESS.findall(text))),
    )


def extract_title(text: str, date_span: tuple[int, int], require_verb: bool = True) -> str:
    """Summary: Derive an event title from a request.

    Importance: Tries explicit naming first, then falls back to the words around the date.
    The leading-clause fallback only applies after a creation verb, so "show my schedule"
    never becomes a title.
    Alternatives: Use the whole message as the title.
    """

    for pattern in (_QUOTED_TITLE, _NAMED_TITLE, _PURPOSE_TITLE, _NOUN_TITLE):
        match = pattern.search(text)
        if match:
            title = _clean(match.group("title"))
            if title:
                return _capitalize(title)
    noun = _TITLE_NOUN.search(text)
    if noun and noun.end() <= date_span[0]:
        between = _TRAILING_PREPOSITION.sub("", text[noun.end(): date_span[0]])
        between = _clean(between)
        if between:
            if between.lower().startswith("with "):
                between = f"{noun.group('noun').lower()} {between}"
            return _capitalize(between)
    leading = text[: date_span[0]]
    verb = _VERB_PREFIX.match(leading)
    if verb is None and require_verb:
        return ""
    if verb is not None:
        leading = leading[verb.end():]
    leading = _CALENDAR_SUFFIX.sub("", leading)
    leading = _clean(_TRAILING_PREPOSITION.sub("", leading))
    return _capitalize(leading) if leading else ""


def extract_location(text: str, now: datetime) -> str | None:
    """Return the first at/in/location: phrase that is not a time, a date, or the calendar."""

    for match in _LOCATION.finditer(text):
        value = _clean(match.group("value"))
        if not value or _TIME_LIKE.match(value):
            continue
        if "calendar" in value.lower() or find_date(value, now) is not None:
            continue
        return value
    return None


def _preceding_assistant(window: list[ChatMessage], index: int) -> ChatMessage | None:
    for message in reversed(window[:index]):
        if message.is_assistant:
            return message
    return None


def _bold_title(text: str) -> str:
    """First bold span that is not a generic heading; `**Title:** X` yields X."""

    for match in _BOLD.finditer(text):
        value = match.group("value").strip()
        if value.endswith(":"):
            value = match.group("rest")
        value = _clean(value)
        if value and not _GENERIC_HEADING.match(value):
            return _capitalize(value)
    return ""


def _clean(value: str) -> str:
    return value.replace("**", "").strip().strip("\"'“”").strip(" ,.:;-–").strip()


def _capitalize(value: str) -> str:
    return value[:1].upper() + value[1:]


EMAIL_RULES = (
    PatternRule("explicit_request", _explicit_email_request),
    PatternRule("confirmed_draft", _confirmed_email_draft),
)

EVENT_RULES = (
    PatternRule("direct_request", _direct_event_request),
    PatternRule("confirmed_draft", _confirmed_event_draft),
)
