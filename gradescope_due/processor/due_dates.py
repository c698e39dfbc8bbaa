"""Due-date normalisation for scraped assignment rows.

Gradescope renders due dates two ways: human text such as
``"Jan 27 at 11:59PM"`` and ``<time datetime="2026-01-27 23:59:00 -0500">``
attributes. Both are folded into a timezone-aware ``datetime``.
"""

import logging
import re
from datetime import datetime
from typing import Iterable, Optional

from dateutil import parser as dateutil_parser

logger = logging.getLogger("gradescope_due")

# "Jan 27 at 11:59PM" or "Jan 27 11:59 PM"
DUE_LINE_PATTERN = re.compile(
    r"\b(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\b\s+\d{1,2}\s+(?:at\s+)?\d{1,2}:\d{2}\s*(AM|PM)\b",
    re.IGNORECASE,
)
YEAR_PATTERN = re.compile(r"\b20\d{2}\b")
CONNECTOR_PATTERN = re.compile(r"\bat\b", re.IGNORECASE)
ISO_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
SPACED_OFFSET_PATTERN = re.compile(
    r"^(\d{4}-\d{2}-\d{2})\s+(\d{2}:\d{2}:\d{2})\s+([+-])(\d{2})(\d{2})$"
)


def pick_due_line(candidate_lines: Iterable[str]) -> Optional[str]:
    """Return the first line that looks like a month/day/time due date."""
    for line in candidate_lines:
        if DUE_LINE_PATTERN.search(line):
            return re.sub(r"\s+", " ", line).strip()
    return None


def normalize_datetime_attr(value: Optional[str]) -> Optional[str]:
    """Rewrite a ``datetime`` attribute into RFC 3339 form where possible.

    ``"2026-01-27 23:59:00 -0500"`` becomes ``"2026-01-27T23:59:00-05:00"``.
    Values already in ISO form, and anything unrecognised, come back trimmed.
    """
    if not value:
        return None
    s = str(value).strip()
    if not s:
        return None
    if ISO_PATTERN.search(s):
        return s
    match = SPACED_OFFSET_PATTERN.match(s)
    if match:
        day, clock, sign, hh, mm = match.groups()
        return f"{day}T{clock}{sign}{hh}:{mm}"
    return s


def _as_instant(dt: datetime) -> datetime:
    """Attach the local timezone to naive values."""
    return dt if dt.tzinfo is not None else dt.astimezone()


def _parse_due_text(due_text: str, year: int) -> Optional[datetime]:
    t = due_text.strip()
    if not t:
        return None
    if not YEAR_PATTERN.search(t):
        t = f"{t} {year}"
    t = CONNECTOR_PATTERN.sub(" ", t, count=1)
    try:
        parsed = dateutil_parser.parse(t, default=datetime(year, 1, 1))
    except (ValueError, OverflowError) as e:
        logger.debug(f"Could not parse due text '{due_text}': {e}")
        return None
    return _as_instant(parsed)


def _parse_structured(structured: str) -> Optional[datetime]:
    s = normalize_datetime_attr(structured)
    if not s:
        return None
    try:
        return _as_instant(dateutil_parser.isoparse(s))
    except ValueError:
        pass
    try:
        return _as_instant(dateutil_parser.parse(s))
    except (ValueError, OverflowError) as e:
        logger.debug(f"Could not parse structured due value '{structured}': {e}")
        return None


def normalize_due_date(
    text: Optional[str],
    structured: Optional[str],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Convert scraped due-date fields into an absolute instant.

    Free text wins over the structured value: the structured attribute may
    come from a "Released" or "Late Due Date" element on older layouts.
    Text without a year is assumed to fall in the current calendar year,
    which misreads a January date scraped in December.

    Args:
        text: Visible due text, e.g. ``"Jan 27 at 11:59PM"``.
        structured: A ``datetime`` attribute value.
        now: Reference time for the current year (default: now).

    Returns:
        Timezone-aware datetime, or None if neither field parses.
    """
    year = (now or datetime.now()).year
    if text:
        parsed = _parse_due_text(text, year)
        if parsed is not None:
            return parsed
    if structured:
        return _parse_structured(structured)
    return None


def format_instant(dt: Optional[datetime]) -> Optional[str]:
    """Canonical text form for a stored instant."""
    return dt.isoformat() if dt is not None else None


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """Read back a value produced by format_instant."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
