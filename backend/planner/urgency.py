"""Temporal urgency classification for conference events.

Pulls a concrete date/time out of loosely formatted text ("Friday 10:00",
"2025-06-11T13:30", "tomorrow afternoon", "12th June") and buckets the
distance from a reference instant into an :class:`UrgencyLabel`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .types import UrgencyLabel

logger = logging.getLogger(__name__)

IMMEDIATE_WINDOW = timedelta(hours=2)
SOON_WINDOW = timedelta(hours=24)

# Ranking priority, lower sorts first.
URGENCY_PRIORITY: dict[UrgencyLabel, int] = {
    UrgencyLabel.IMMEDIATE: 0,
    UrgencyLabel.SOON: 1,
    UrgencyLabel.NORMAL: 2,
    UrgencyLabel.UNKNOWN: 3,
    UrgencyLabel.PAST: 4,
}

_MONTHS: dict[str, int] = {
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

_WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "mon": 0,
    "tuesday": 1,
    "tue": 1,
    "tues": 1,
    "wednesday": 2,
    "wed": 2,
    "thursday": 3,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "friday": 4,
    "fri": 4,
    "saturday": 5,
    "sunday": 6,
}

_DAY_PARTS: dict[str, time] = {
    "morning": time(9, 0),
    "noon": time(12, 0),
    "midday": time(12, 0),
    "lunchtime": time(12, 30),
    "afternoon": time(14, 0),
    "evening": time(18, 0),
    "tonight": time(20, 0),
}

# Month names that are also common English words
_PROSE_MONTHS = frozenset({"may"})

_MONTH_ALT = "|".join(sorted(_MONTHS, key=len, reverse=True))
_WEEKDAY_ALT = "|".join(sorted(_WEEKDAYS, key=len, reverse=True))
_DAY_PART_ALT = "|".join(_DAY_PARTS)

_ISO_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})(?:[T ](\d{1,2}):(\d{2}))?")
_MONTH_DAY_RE = re.compile(
    rf"\b({_MONTH_ALT})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b(?!:)(?:,?\s+(\d{{4}}))?",
    re.IGNORECASE,
)
_DAY_MONTH_RE = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_ALT})\b\.?(?:,?\s+(\d{{4}}))?",
    re.IGNORECASE,
)
_RELATIVE_RE = re.compile(r"\b(today|tonight|tomorrow)\b", re.IGNORECASE)
_WEEKDAY_RE = re.compile(rf"\b({_WEEKDAY_ALT})\b\.?", re.IGNORECASE)
_CLOCK_RE = re.compile(
    r"\b(\d{1,2})(?::|h)(\d{2})(?!\d)(?:\s*([ap]\.?m\.?)(?![a-z]))?", re.IGNORECASE
)
_MERIDIEM_RE = re.compile(r"\b(\d{1,2})\s*([ap]\.?m\.?)(?![a-z])", re.IGNORECASE)
_DAY_PART_RE = re.compile(rf"\b({_DAY_PART_ALT})\b", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class UrgencyAssessment:
    label: UrgencyLabel
    event_at: datetime | None
    note: str


def _to_24h(hour: int, minute: int, meridiem: str | None) -> time | None:
    if minute > 59:
        return None
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        is_pm = meridiem.lower().startswith("p")
        hour = hour % 12 + (12 if is_pm else 0)
    elif hour > 23:
        return None
    return time(hour, minute)


def _extract_clock(text: str) -> time | None:
    for match in _CLOCK_RE.finditer(text):
        parsed = _to_24h(int(match.group(1)), int(match.group(2)), match.group(3))
        if parsed is not None:
            return parsed
    for match in _MERIDIEM_RE.finditer(text):
        parsed = _to_24h(int(match.group(1)), 0, match.group(2))
        if parsed is not None:
            return parsed
    match = _DAY_PART_RE.search(text)
    if match:
        return _DAY_PARTS[match.group(1).lower()]
    return None


def _is_month_word(word: str) -> bool:
    # "may" is usually the verb in prose; only the capitalised form is a month
    return word.lower() not in _PROSE_MONTHS or word[0].isupper()


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _extract_day(text: str, reference_day: date, anchor: date) -> tuple[date | None, time | None]:
    """Return the event day and, for ISO date-times, the embedded clock time."""
    match = _ISO_RE.search(text)
    if match:
        day = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if day is not None:
            clock = None
            if match.group(4) is not None:
                clock = _to_24h(int(match.group(4)), int(match.group(5)), None)
            return day, clock

    for match in _MONTH_DAY_RE.finditer(text):
        if not _is_month_word(match.group(1)):
            continue
        year = int(match.group(3)) if match.group(3) else anchor.year
        day = _safe_date(year, _MONTHS[match.group(1).lower()], int(match.group(2)))
        if day is not None:
            return day, None

    for match in _DAY_MONTH_RE.finditer(text):
        if not _is_month_word(match.group(2)):
            continue
        year = int(match.group(3)) if match.group(3) else anchor.year
        day = _safe_date(year, _MONTHS[match.group(2).lower()], int(match.group(1)))
        if day is not None:
            return day, None

    match = _RELATIVE_RE.search(text)
    if match:
        word = match.group(1).lower()
        if word == "tomorrow":
            return reference_day + timedelta(days=1), None
        return reference_day, None

    match = _WEEKDAY_RE.search(text)
    if match:
        weekday = _WEEKDAYS[match.group(1).lower()]
        return anchor + timedelta(days=(weekday - anchor.weekday()) % 7), None

    return None, None


def extract_event_datetime(
    text: str | None,
    reference_now: datetime,
    conference_date: date | None = None,
) -> datetime | None:
    """Resolve the first recognisable date/time in ``text``.

    Bare weekdays and clock times resolve against ``conference_date`` (or the
    reference day when unset); ``today``/``tomorrow`` always resolve against
    the reference day. A date with no time that falls on the reference day
    resolves to ``reference_now`` itself.
    """
    if not text or not isinstance(text, str):
        return None
    reference_day = reference_now.date()
    anchor = conference_date or reference_day

    day, clock = _extract_day(text, reference_day, anchor)
    if clock is None:
        clock = _extract_clock(text)
    if day is None and clock is None:
        return None
    if day is None:
        day = anchor
    if clock is None:
        if day == reference_day:
            return reference_now
        clock = time(0, 0)
    return datetime.combine(day, clock, tzinfo=reference_now.tzinfo)


def classify_datetime(reference_now: datetime, event_at: datetime) -> UrgencyLabel:
    if event_at.tzinfo is None and reference_now.tzinfo is not None:
        event_at = event_at.replace(tzinfo=reference_now.tzinfo)
    elif event_at.tzinfo is not None and reference_now.tzinfo is None:
        event_at = event_at.replace(tzinfo=None)
    delta = event_at - reference_now
    if delta < timedelta(0):
        return UrgencyLabel.PAST
    if delta < IMMEDIATE_WINDOW:
        return UrgencyLabel.IMMEDIATE
    if delta < SOON_WINDOW:
        return UrgencyLabel.SOON
    return UrgencyLabel.NORMAL


def describe(label: UrgencyLabel, event_at: datetime | None = None) -> str:
    when = f" ({event_at:%A %d %B %H:%M})" if event_at is not None else ""
    if label is UrgencyLabel.IMMEDIATE:
        return f"Starts within the next two hours{when} - act now."
    if label is UrgencyLabel.SOON:
        return f"Happening within the next day{when} - plan accordingly."
    if label is UrgencyLabel.NORMAL:
        return f"More than a day away{when} - normal priority."
    if label is UrgencyLabel.PAST:
        return f"This event has already started or passed{when}."
    return "No specific date or time found - treat as normal priority."


def assess(
    reference_now: datetime,
    event_text: str | None,
    conference_date: date | None = None,
    *,
    event_at: datetime | None = None,
) -> UrgencyAssessment:
    """Classify an event from a parsed start time or, failing that, its text."""
    if event_at is None:
        try:
            event_at = extract_event_datetime(event_text, reference_now, conference_date)
        except (ValueError, OverflowError) as exc:
            logger.debug("Event date extraction failed: %s", exc)
            event_at = None
    if event_at is None:
        return UrgencyAssessment(UrgencyLabel.UNKNOWN, None, describe(UrgencyLabel.UNKNOWN))
    try:
        label = classify_datetime(reference_now, event_at)
    except (TypeError, OverflowError) as exc:
        logger.debug("Event urgency comparison failed: %s", exc)
        return UrgencyAssessment(UrgencyLabel.UNKNOWN, None, describe(UrgencyLabel.UNKNOWN))
    return UrgencyAssessment(label, event_at, describe(label, event_at))


def classify(
    reference_now: datetime,
    event_text: str | None,
    conference_date: date | None = None,
) -> UrgencyLabel:
    """Label ``event_text`` relative to ``reference_now``; never raises."""
    return assess(reference_now, event_text, conference_date).label


__all__ = [
    "IMMEDIATE_WINDOW",
    "SOON_WINDOW",
    "URGENCY_PRIORITY",
    "UrgencyAssessment",
    "assess",
    "classify",
    "classify_datetime",
    "describe",
    "extract_event_datetime",
]
