"""Closing-date inference for tenders whose feeds carry no deadline field.

Search order: named-source override, then keyword -> date pattern in the text
that follows the keyword, then ``published + 30 days`` flagged as estimated.
Dates are always built from their numeric parts, never by handing a free-form
string to a parser that might read it as UTC.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta

from ..config import (
    CLOSING_DATE_FALLBACK_DAYS,
    CLOSING_DATE_KEYWORDS,
    CLOSING_DATE_MAX_AGE_YEARS,
    CLOSING_DATE_SOURCE_OVERRIDES,
    CLOSING_DATE_WINDOW_CHARS,
)

logger = logging.getLogger(__name__)

_MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)


@dataclass(frozen=True)
class ClosingDate:
    closing_date: datetime
    is_estimated: bool


def month_number(name: str) -> int | None:
    """Return 1-12 for a full month name or a prefix of at least 3 letters."""
    word = name.lower()
    if word == "sept":
        return 9
    if len(word) < 3:
        return None
    for index, full in enumerate(_MONTHS, start=1):
        if full.startswith(word):
            return index
    return None


def _build(year: int, month: int | None, day: int) -> Optional[datetime]:
    if month is None:
        return None
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _month_day_year(m: re.Match) -> Optional[datetime]:
    return _build(int(m.group(3)), month_number(m.group(1)), int(m.group(2)))


def _day_month_year(m: re.Match) -> Optional[datetime]:
    return _build(int(m.group(3)), month_number(m.group(2)), int(m.group(1)))


def _iso(m: re.Match) -> Optional[datetime]:
    return _build(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _numeric_day_first(m: re.Match) -> Optional[datetime]:
    day, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        return None
    return _build(int(m.group(3)), month, day)


# Tried in order; the first pattern yielding a real calendar date wins.
DATE_PATTERNS: list[tuple[re.Pattern, Callable[[re.Match], Optional[datetime]]]] = [
    # August 28, 2025 / Aug 28 2025
    (re.compile(r"([A-Za-z]{3,9})\s(\d{1,2}),?\s(\d{4})"), _month_day_year),
    # 28 August 2025 / 28-Aug-2025 / 28/August/2025
    (re.compile(r"(\d{1,2})[\s\-/]([A-Za-z]{3,9})[\s\-/](\d{4})"), _day_month_year),
    # 2025-08-28
    (re.compile(r"(\d{4})-(\d{2})-(\d{2})"), _iso),
    # 28/08/2025 / 28-08-2025
    (re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})"), _numeric_day_first),
]


def _published_is_closing(published: datetime) -> ClosingDate:
    return ClosingDate(published, is_estimated=False)


OVERRIDE_POLICIES: dict[str, Callable[[datetime], ClosingDate]] = {
    "published_date": _published_is_closing,
}


def _source_override(source_name: str) -> Callable[[datetime], ClosingDate] | None:
    lowered = source_name.lower()
    for needle, policy in CLOSING_DATE_SOURCE_OVERRIDES.items():
        if needle in lowered:
            return OVERRIDE_POLICIES[policy]
    return None


def find_date_in_window(window: str) -> list[datetime]:
    """The first match of each date pattern in ``window``, in priority order."""
    found: list[datetime] = []
    for pattern, parser in DATE_PATTERNS:
        match = pattern.search(window)
        if match is None:
            continue
        parsed = parser(match)
        if parsed is not None:
            found.append(parsed)
    return found


def infer_closing_date(
    summary: str,
    published: datetime,
    source_name: str,
    *,
    today: date | None = None,
) -> ClosingDate:
    """Work out a tender's closing date from its free-text summary.

    Args:
        summary: Summary text, markup already stripped.
        published: The entry's publish date.
        source_name: Feed title (or URL), used for the override table.
        today: Reference day for the "not older than a year" bound.

    Returns:
        A ``ClosingDate``; ``is_estimated`` is true only for the fallback.
    """
    override = _source_override(source_name)
    if override is not None:
        return override(published)

    today = today or date.today()
    oldest = today - relativedelta(years=CLOSING_DATE_MAX_AGE_YEARS)
    lowered = summary.lower()

    for keyword in CLOSING_DATE_KEYWORDS:
        index = lowered.find(keyword)
        if index == -1:
            continue
        start = index + len(keyword)
        window = summary[start:start + CLOSING_DATE_WINDOW_CHARS]
        for candidate in find_date_in_window(window):
            if candidate.date() >= oldest:
                return ClosingDate(candidate, is_estimated=False)
            logger.warning(
                "Rejected closing date %s after %r: older than %s",
                candidate.date().isoformat(), keyword, oldest.isoformat(),
            )

    return ClosingDate(
        published + timedelta(days=CLOSING_DATE_FALLBACK_DAYS),
        is_estimated=True,
    )
