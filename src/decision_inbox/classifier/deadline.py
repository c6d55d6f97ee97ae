"""Deadline extraction from email text.

Applies an ordered list of patterns to `subject + " " + body[:2000]` and
returns the first match as a DeadlineInfo:

1. Month-name date after a deadline keyword ("due march 15th, 2026")
2. Numeric date with a year after a deadline keyword ("deadline: 3/15/2026");
   a bare "10-15" is a range, not a date
3. "respond/reply/register/submit by <something>" ("reply by friday")
4. Relative markers ("today", "tomorrow", "this week", "next week",
   "3 days", "12 hours")

Relative markers resolve to fixed offsets (today 12h, tomorrow 36h, this
week 72h, next week 168h, N days/hours exactly). Absolute dates resolve
against a caller-supplied reference time; without one, or when the text
cannot be read as a calendar date ("reply by friday"), the deadline is
still reported with hours_remaining=None.

CRITICAL SECURITY NOTE:
All regex operations use the `regex` library with a timeout to prevent
ReDoS from malicious email content. A pattern that times out is skipped.

Usage:
    from decision_inbox.classifier.deadline import extract_deadline

    info = extract_deadline(email, reference_time=email.received_at)
    if info.found and info.hours_remaining is not None:
        ...
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import regex

from decision_inbox.classifier.models import NO_DEADLINE, DeadlineInfo
from decision_inbox.core.logging import get_logger

if TYPE_CHECKING:
    from decision_inbox.classifier.models import Email

logger = get_logger(__name__)

DEFAULT_SCAN_CHARS = 2000

# Regex timeout in seconds (all search operations MUST use this)
REGEX_TIMEOUT = 1.0

# Fixed offsets for relative markers, in hours
RELATIVE_HOURS: dict[str, float] = {
    "today": 12.0,
    "tomorrow": 36.0,
    "this week": 72.0,
    "next week": 168.0,
}

# Undated month-day deadlines this far in the past roll over to next year
_ROLLOVER_GRACE = timedelta(days=7)

_MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_KEYWORD = r"\b(?:deadline|due|expires?|by|before|until)[\s:]+(?:on\s+)?"
_WEEKDAY = r"(?:(?:mon|tues|wednes|thurs|fri|satur|sun)day,?\s+)?"
_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)
_ORDINAL = r"(?:st|nd|rd|th)?"

# (kind, pattern) in match priority order; group 1 is the deadline text
DEADLINE_PATTERNS: tuple[tuple[str, regex.Pattern[str]], ...] = (
    (
        "month_date",
        regex.compile(
            _KEYWORD + _WEEKDAY + r"(" + _MONTH + r"\s+\d{1,2}" + _ORDINAL + r"(?:,?\s+\d{4})?)\b"
        ),
    ),
    (
        "numeric_date",
        regex.compile(_KEYWORD + r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})\b"),
    ),
    (
        "respond_by",
        regex.compile(
            r"\b(?:respond|reply|register|submit)\s+(?:by|before)\s+"
            r"(\w+(?:\s+\d{1,2}" + _ORDINAL + r")?)"
        ),
    ),
    (
        "relative",
        regex.compile(r"\b(today|tomorrow|this week|next week|\d+\s+(?:day|hour)s?)\b(?!\s+ago)"),
    ),
)

_MONTH_DATE_PARTS = regex.compile(r"([a-z]+)\.?\s+(\d{1,2})" + _ORDINAL + r"(?:,?\s+(\d{4}))?")
_NUMERIC_DATE_PARTS = regex.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})")
_RELATIVE_COUNT = regex.compile(r"(\d+)\s+(day|hour)s?")


def extract_deadline(
    email: Email,
    reference_time: datetime | None = None,
    scan_chars: int = DEFAULT_SCAN_CHARS,
) -> DeadlineInfo:
    """Find the first deadline expression in an email.

    Args:
        email: Email to scan
        reference_time: Anchor for resolving absolute dates (normally the
            email's received time). Relative markers do not need it.
        scan_chars: How much of the body to scan

    Returns:
        DeadlineInfo; NO_DEADLINE when nothing matched
    """
    text = email.combined_text(body_limit=scan_chars)

    for kind, pattern in DEADLINE_PATTERNS:
        try:
            match = pattern.search(text, timeout=REGEX_TIMEOUT)
        except TimeoutError:
            logger.warning("deadline_regex_timeout", pattern_kind=kind, email_id=email.id)
            continue

        if not match:
            continue

        raw_text = match.group(1).strip()
        return DeadlineInfo(
            found=True,
            raw_text=raw_text,
            hours_remaining=_resolve_hours(kind, raw_text, reference_time),
        )

    return NO_DEADLINE


def _resolve_hours(kind: str, raw_text: str, reference_time: datetime | None) -> float | None:
    """Turn matched deadline text into hours remaining, or None if unresolvable."""
    relative = _relative_hours(raw_text)
    if relative is not None:
        return relative

    if reference_time is None:
        return None

    if kind == "month_date":
        deadline = _parse_month_date(raw_text, reference_time)
    elif kind == "numeric_date":
        deadline = _parse_numeric_date(raw_text, reference_time)
    else:
        # "reply by friday" and similar loose phrasing
        return None

    if deadline is None:
        return None

    hours = (deadline - reference_time).total_seconds() / 3600
    return round(max(hours, 0.0), 1)


def _relative_hours(raw_text: str) -> float | None:
    """Resolve relative markers ("tomorrow", "3 days") to fixed offsets."""
    for marker, hours in RELATIVE_HOURS.items():
        if marker in raw_text:
            return hours

    count = _RELATIVE_COUNT.fullmatch(raw_text, timeout=REGEX_TIMEOUT)
    if count:
        amount = float(count.group(1))
        return amount * 24 if count.group(2) == "day" else amount

    return None


def _parse_month_date(raw_text: str, reference_time: datetime) -> datetime | None:
    """Parse "march 15th[, 2026]" into an end-of-day datetime."""
    parts = _MONTH_DATE_PARTS.fullmatch(raw_text, timeout=REGEX_TIMEOUT)
    if not parts:
        return None

    month = _MONTHS.get(parts.group(1)[:3])
    if month is None:
        return None

    day = int(parts.group(2))
    year = int(parts.group(3)) if parts.group(3) else None
    return _build_deadline(year, month, day, reference_time)


def _parse_numeric_date(raw_text: str, reference_time: datetime) -> datetime | None:
    """Parse "3/15/2026" (month first; day first when the first part > 12)."""
    parts = _NUMERIC_DATE_PARTS.fullmatch(raw_text, timeout=REGEX_TIMEOUT)
    if not parts:
        return None

    first, second = int(parts.group(1)), int(parts.group(2))
    month, day = (second, first) if first > 12 else (first, second)

    year = int(parts.group(3))
    if year < 100:
        year += 2000

    return _build_deadline(year, month, day, reference_time)


def _build_deadline(
    year: int | None,
    month: int,
    day: int,
    reference_time: datetime,
) -> datetime | None:
    """Build an end-of-day deadline, rolling undated past dates into next year."""
    try:
        deadline = datetime(
            year or reference_time.year,
            month,
            day,
            23,
            59,
            tzinfo=reference_time.tzinfo,
        )
        if year is None and deadline < reference_time - _ROLLOVER_GRACE:
            deadline = deadline.replace(year=deadline.year + 1)
    except ValueError:
        # Not a calendar date (2/30) or no such day next year (2/29)
        return None
    return deadline
