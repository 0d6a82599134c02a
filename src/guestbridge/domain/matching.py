"""Identity matching of normalized rows against canonical guests.

Lookup precedence, first hit wins:

  1. exact legacy_id (when the row carries one)
  2. email, case-insensitive (when the row carries one)
  3. full name, case-insensitive, against the row's primary name

At most one candidate is ever returned. When several guests share a key,
the first one in the candidate query's ordering (created_at, id) wins;
ranking ties is deliberately out of scope.
"""

from __future__ import annotations

from typing import Iterable

from guestbridge.domain.models import GuestIdentity, NormalizedGuestRow


def _key(value: str | None) -> str:
    return (value or "").strip().lower()


class GuestIndex:
    """In-memory lookup maps over one batch's candidate guests."""

    def __init__(self, guests: Iterable[GuestIdentity]) -> None:
        self._by_legacy_id: dict[str, GuestIdentity] = {}
        self._by_email: dict[str, GuestIdentity] = {}
        self._by_name: dict[str, GuestIdentity] = {}
        for guest in guests:
            if guest.legacy_id:
                self._by_legacy_id.setdefault(guest.legacy_id.strip(), guest)
            if _key(guest.email):
                self._by_email.setdefault(_key(guest.email), guest)
            if _key(guest.full_name):
                self._by_name.setdefault(_key(guest.full_name), guest)

    def __len__(self) -> int:
        ids = {g.id for g in self._by_legacy_id.values()}
        ids.update(g.id for g in self._by_email.values())
        ids.update(g.id for g in self._by_name.values())
        return len(ids)

    def match(self, row: NormalizedGuestRow) -> GuestIdentity | None:
        """Return the single best candidate for a row, or None."""
        if row.legacy_id:
            hit = self._by_legacy_id.get(row.legacy_id.strip())
            if hit is not None:
                return hit
        if _key(row.email):
            hit = self._by_email.get(_key(row.email))
            if hit is not None:
                return hit
        if _key(row.primary_name):
            return self._by_name.get(_key(row.primary_name))
        return None


def is_strong_match(row: NormalizedGuestRow, guest: GuestIdentity) -> bool:
    """True when the match rests on legacy id or email rather than name."""
    if row.legacy_id and guest.legacy_id and row.legacy_id.strip() == guest.legacy_id.strip():
        return True
    return bool(_key(row.email)) and _key(row.email) == _key(guest.email)


def lookup_keys(rows: Iterable[NormalizedGuestRow]) -> tuple[list[str], list[str], list[str]]:
    """Collect the distinct legacy ids, emails and names a batch needs."""
    legacy_ids: set[str] = set()
    emails: set[str] = set()
    names: set[str] = set()
    for row in rows:
        if row.legacy_id:
            legacy_ids.add(row.legacy_id.strip())
        if _key(row.email):
            emails.add(_key(row.email))
        if _key(row.primary_name):
            names.add(_key(row.primary_name))
    return sorted(legacy_ids), sorted(emails), sorted(names)
