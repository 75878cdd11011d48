"""Summary: Flexible date and time parsing for free-text event requests.

Importance: Turns phrases like "May 15 2026 at 3pm" into concrete start and end times.
Alternatives: Use dateparser or an LLM to normalize dates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta


MONTHS = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "sept": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

MONTH_PATTERN = "|".join(sorted(MONTHS, key=len, reverse=True))
_MONTH = rf"(?P<month>{MONTH_PATTERN})\.?"
_DAY = r"(?P<day>\d{1,2})(?:st|nd|rd|th)?"
_YEAR = r"(?P<year>\d{4})"
# A month preceded by a day number belongs to a Day Month Year date.
_NO_DAY_BEFORE = (
    r"(?<!\d\s)(?<!\d(?:st|nd|rd|th)\s)(?<!\d\sof\s)(?<!\d(?:st|nd|rd|th)\sof\s)"
)

_RELATIVE = (
    (re.compile(r"\btoday\b", re.IGNORECASE), 0),
    (re.compile(r"\btomorrow\b", re.IGNORECASE), 1),
    (re.compile(r"\bnext\s+week\b", re.IGNORECASE), 7),
)

_ABSOLUTE = (
    re.compile(rf"{_NO_DAY_BEFORE}\b{_MONTH}\s+{_YEAR}\b", re.IGNORECASE),
    re.compile(rf"\b{_MONTH}\s+{_DAY},?\s+{_YEAR}\b", re.IGNORECASE),
    re.compile(rf"\b{_DAY}\s+(?:of\s+)?{_MONTH},?\s+{_YEAR}\b", re.IGNORECASE),
    re.compile(r"\b(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})\b"),
    re.compile(r"\b(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4})\b"),
)

_TIME_AMPM = re.compile(r"(?<![\d:])(\d{1,2})(?::(\d{2}))?\s*([ap])\.?m\b\.?", re.IGNORECASE)
_TIME_24H = re.compile(r"(?<![\d:])(\d{1,2}):(\d{2})(?![\d:])")
_TIME_AT_HOUR = re.compile(r"\bat\s+(\d{1,2})\b(?![:\d])", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedWhen:
    """Summary: Result of parsing a date phrase.

    Importance: Carries the span of the date token so title extraction can cut around it.
    Alternatives: Return a bare datetime and re-scan the text for the token.
    """

    start: datetime
    end: datetime
    all_day: bool
    span: tuple[int, int]


def parse_when(
    text: str, now: datetime, duration: timedelta | None = None
) -> ParsedWhen | None:
    """Summary: Parse the first date (and optional time of day) in a text.

    Importance: Returns None when no date is present so callers never guess a day.
    Alternatives: Default to today when no date is found.
    """

    found = find_date(text, now)
    if found is None:
        return None
    day, span = found
    masked = text[: span[0]] + " " * (span[1] - span[0]) + text[span[1]:]
    time_of_day = find_time(masked)
    if time_of_day is None:
        start = datetime.combine(day, time(), tzinfo=now.tzinfo)
        end = start + (duration or timedelta(days=1))
        return ParsedWhen(start=start, end=end, all_day=True, span=span)
    start = datetime.combine(day, time_of_day, tzinfo=now.tzinfo)
    end = start + (duration or timedelta(hours=1))
    return ParsedWhen(start=start, end=end, all_day=False, span=span)


def find_date(text: str, now: datetime) -> tuple[date, tuple[int, int]] | None:
    """Summary: Locate a calendar date and the character span it occupies.

    Importance: Relative words win over absolute dates; invalid dates fall through.
    Alternatives: Collect every candidate and pick the leftmost one.
    """

    for pattern, offset in _RELATIVE:
        match = pattern.search(text)
        if match:
            return now.date() + timedelta(days=offset), match.span()
    for pattern in _ABSOLUTE:
        for match in pattern.finditer(text):
            parsed = _build_date(match)
            if parsed is not None:
                return parsed, match.span()
    return None


def find_time(text: str) -> time | None:
    """Summary: Find an unambiguous time of day.

    Importance: A bare "at 3" could be morning or afternoon, so it is ignored.
    Alternatives: Assume business hours for bare hours.
    """

    for match in _TIME_AMPM.finditer(text):
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if not 1 <= hour <= 12 or minute > 59:
            continue
        if match.group(3).lower() == "p" and hour != 12:
            hour += 12
        elif match.group(3).lower() == "a" and hour == 12:
            hour = 0
        return time(hour, minute)
    for match in _TIME_24H.finditer(text):
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour <= 23 and minute <= 59:
            return time(hour, minute)
    for match in _TIME_AT_HOUR.finditer(text):
        hour = int(match.group(1))
        if 13 <= hour <= 23:
            return time(hour, 0)
    return None


def _build_date(match: re.Match[str]) -> date | None:
    groups = match.groupdict()
    month_raw = groups["month"]
    month = int(month_raw) if month_raw.isdigit() else MONTHS[month_raw.lower()]
    day = int(groups.get("day") or 1)
    try:
        return date(int(groups["year"]), month, day)
    except ValueError:
        return None
