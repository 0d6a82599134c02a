"""Time utilities for consistent timestamp and feed date handling."""

from datetime import date, datetime, timezone

# Two-digit years below this pivot belong to the 2000s.
YEAR_PIVOT = 50


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def parse_feed_date(value: str | None) -> date | None:
    """Parse a "dd/mm/yy" (or "dd/mm/yyyy") feed date.

    Returns None for empty or unparsable values.
    """
    if not value:
        return None
    parts = value.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(p) for p in parts)
    except ValueError:
        return None
    if year < 100:
        year += 2000 if year < YEAR_PIVOT else 1900
    try:
        return date(year, month, day)
    except ValueError:
        return None
