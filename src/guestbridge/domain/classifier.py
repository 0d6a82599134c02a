"""Action classification for (row, match) pairs.

Terminal in one step:

  incomplete / junk / malformed      → SKIP      (reason explains why)
  no match                           → CREATE    "New Profile"
  match on legacy id or email        → UPDATE    "ID/Email Match"
  match on name only                 → CONFLICT  "Similar Name found"

CONFLICT rows need a human decision before execution.
"""

from __future__ import annotations

from guestbridge.domain.matching import GuestIndex, is_strong_match
from guestbridge.domain.models import (
    CONFLICT,
    CREATE,
    SKIP,
    UPDATE,
    ImportRow,
    NormalizedGuestRow,
)
from guestbridge.domain.screening import screen_guest_name

REASON_NEW = "New Profile"
REASON_STRONG = "ID/Email Match"
REASON_NAME_ONLY = "Similar Name found"


def incomplete_reason(row: NormalizedGuestRow) -> str | None:
    """Why a normalized row cannot be classified, or None."""
    if row.error:
        return row.error
    if not row.full_name and not row.legacy_id and not row.first_name:
        return "Incomplete row: no name and no legacy id"
    if not row.first_name:
        return "No valid name data: first name empty after derivation"
    return None


def classify_row(
    row: NormalizedGuestRow,
    index: GuestIndex,
    raw_fields: dict[str, str] | None = None,
) -> ImportRow:
    """Classify one normalized row against the batch's candidate index."""
    raw = dict(raw_fields or {})

    reason = incomplete_reason(row)
    if reason:
        return ImportRow(normalized=row, action=SKIP, reason=reason, raw_fields=raw)

    screening = screen_guest_name(row.primary_name)
    if screening.skip:
        return ImportRow(normalized=row, action=SKIP, reason=screening.reason, raw_fields=raw)

    match = index.match(row)
    if match is None:
        action, reason = CREATE, REASON_NEW
    elif is_strong_match(row, match):
        action, reason = UPDATE, REASON_STRONG
    else:
        action, reason = CONFLICT, REASON_NAME_ONLY

    return ImportRow(
        normalized=row,
        action=action,
        reason=reason,
        match=match,
        inferred_profile_type=screening.profile_type,
        raw_fields=raw,
    )


def summarize(rows: list[ImportRow]) -> dict[str, int]:
    counts = {"total": len(rows), "create": 0, "update": 0, "conflict": 0, "skip": 0}
    for row in rows:
        counts[row.action.lower()] += 1
    return counts
