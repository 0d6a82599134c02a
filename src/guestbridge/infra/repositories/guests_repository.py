"""Guests repository - canonical guest identities.

Uses raw SQL with psycopg2 (no ORM).

Write rules
───────────
- legacy_id is written on INSERT only.  No UPDATE statement in this module
  names the column; a trigger on the table rejects changes to a non-null
  value as a second line of defence.
- UPDATE never touches full_name.  Contact fields are overwritten only by
  non-empty incoming values: COALESCE(NULLIF(new, ''), old).
- stats is merged key-wise (jsonb ||), so keys the spreadsheet does not
  carry survive.

Every function expects to run inside a transaction (with db.txn() as cur:).
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json

from guestbridge.domain.models import GuestIdentity, NormalizedGuestRow, ProfileType

_IDENTITY_COLUMNS = "id, legacy_id, full_name, email, first_name, last_name, companion_name"


def find_candidates(
    cur: PgCursor,
    *,
    legacy_ids: list[str],
    emails: list[str],
    names: list[str],
) -> list[GuestIdentity]:
    """Load every guest that could match a batch, in one query.

    Ordered by (created_at, id) so that the in-memory index keeps the
    oldest identity when several share a key.
    """
    if not (legacy_ids or emails or names):
        return []
    cur.execute(
        f"""
        SELECT {_IDENTITY_COLUMNS}
        FROM guests
        WHERE legacy_id = ANY(%s)
           OR lower(email) = ANY(%s)
           OR lower(full_name) = ANY(%s)
        ORDER BY created_at, id
        """,
        (legacy_ids, emails, names),
    )
    return [GuestIdentity.from_row(r) for r in cur.fetchall()]


def insert_guest(
    cur: PgCursor,
    row: NormalizedGuestRow,
    *,
    profile_type: ProfileType = "guest",
) -> str:
    """Insert a guest from a normalized spreadsheet row.

    Returns:
        UUID string of the new guest.
    """
    cur.execute(
        """
        INSERT INTO guests (
            legacy_id, first_name, last_name, full_name, email, phone,
            nationality, notes, companion_name, vip_level, stats, profile_type
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            row.legacy_id or None,
            row.first_name,
            row.last_name,
            row.primary_name,
            row.email or None,
            row.phone or None,
            row.nationality or None,
            row.notes or None,
            row.companion or None,
            row.vip,
            Json(row.stats.to_dict()),
            profile_type,
        ),
    )
    return str(cur.fetchone()[0])


def update_guest(
    cur: PgCursor,
    guest_id: str,
    row: NormalizedGuestRow,
    *,
    profile_type: ProfileType = "guest",
) -> bool:
    """Fill a guest's fields from a normalized row.

    Returns:
        True if the guest exists and was updated, False otherwise.
    """
    cur.execute(
        """
        UPDATE guests SET
            first_name     = COALESCE(NULLIF(%s, ''), first_name),
            last_name      = COALESCE(NULLIF(%s, ''), last_name),
            email          = COALESCE(NULLIF(%s, ''), email),
            phone          = COALESCE(NULLIF(%s, ''), phone),
            nationality    = COALESCE(NULLIF(%s, ''), nationality),
            notes          = COALESCE(NULLIF(%s, ''), notes),
            companion_name = COALESCE(NULLIF(%s, ''), companion_name),
            vip_level      = COALESCE(NULLIF(%s, 0), vip_level),
            stats          = COALESCE(stats, '{}'::jsonb) || %s::jsonb,
            profile_type   = %s,
            updated_at     = now()
        WHERE id = %s::uuid
        """,
        (
            row.first_name,
            row.last_name,
            row.email,
            row.phone,
            row.nationality,
            row.notes,
            row.companion,
            row.vip,
            Json(row.stats.to_dict()),
            profile_type,
            guest_id,
        ),
    )
    return cur.rowcount > 0


# ── Feed guests ───────────────────────────────────────────────────────────────


def find_linked_guest(cur: PgCursor, opera_resv_id: str) -> tuple[str, str] | None:
    """Return (guest_id, full_name) of the guest linked to a reservation."""
    cur.execute(
        """
        SELECT g.id, g.full_name
        FROM reservations r
        JOIN guests g ON g.id = r.guest_id
        WHERE r.opera_resv_id = %s
        """,
        (opera_resv_id,),
    )
    row = cur.fetchone()
    return (str(row[0]), row[1] or "") if row else None


def find_guest_by_name(cur: PgCursor, full_name: str) -> str | None:
    """Return the oldest guest whose full_name matches case-insensitively."""
    cur.execute(
        """
        SELECT id FROM guests
        WHERE lower(full_name) = lower(%s)
        ORDER BY created_at, id
        LIMIT 1
        """,
        (full_name,),
    )
    row = cur.fetchone()
    return str(row[0]) if row else None


def insert_feed_guest(
    cur: PgCursor,
    *,
    first_name: str,
    last_name: str,
    full_name: str,
) -> str:
    """Insert a guest first seen in the reservation feed."""
    cur.execute(
        """
        INSERT INTO guests (first_name, last_name, full_name, profile_type)
        VALUES (%s, %s, %s, 'guest')
        RETURNING id
        """,
        (first_name, last_name, full_name),
    )
    return str(cur.fetchone()[0])
