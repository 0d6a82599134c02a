"""Vendors repository - vendor identities and everything that points at them.

Uses raw SQL with psycopg2 (no ORM).

Reference registry
──────────────────
VENDOR_REFERENCE_TABLES lists every table with a foreign key to vendors.id.
The roster's usage counts and the merge repointing both iterate over it,
so a new dependent table is registered once and is covered by both.
vendor_users is handled separately because its rows carry their own
uniqueness rule (one active user per email under a vendor).

Table and column names below are constants; they are interpolated into SQL
and never come from input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from guestbridge.domain.models import MERGED_MARKER, VendorRosterEntry


@dataclass(frozen=True)
class VendorReference:
    table: str
    column: str
    usage_key: str


VENDOR_REFERENCE_TABLES: tuple[VendorReference, ...] = (
    VendorReference("transfers", "vendor_id", "transfers"),
    VendorReference("tour_products", "vendor_id", "tourProducts"),
)

VENDOR_USERS_USAGE_KEY = "vendorUsers"

ROSTER_USAGE_KEYS = tuple(ref.usage_key for ref in VENDOR_REFERENCE_TABLES) + (
    VENDOR_USERS_USAGE_KEY,
)

_MERGED_PATTERN = f"%%{MERGED_MARKER}%%"


# ── Roster ────────────────────────────────────────────────────────────────────


def load_roster(cur: PgCursor) -> list[VendorRosterEntry]:
    """Every vendor with its usage count per dependent table, ordered by name."""
    counts = [
        f"(SELECT count(*) FROM {ref.table} d WHERE d.{ref.column} = v.id)::int"
        for ref in VENDOR_REFERENCE_TABLES
    ]
    counts.append("(SELECT count(*) FROM vendor_users u WHERE u.vendor_id = v.id)::int")
    cur.execute(
        f"""
        SELECT v.id, v.name, v.type, v.email, v.phone, v.is_active,
               {", ".join(counts)}
        FROM vendors v
        ORDER BY v.name, v.id
        """
    )
    return [VendorRosterEntry.from_row(r, ROSTER_USAGE_KEYS) for r in cur.fetchall()]


# ── Merge ─────────────────────────────────────────────────────────────────────


def lock_vendors(cur: PgCursor, vendor_ids: list[str]) -> dict[str, dict[str, Any]]:
    """Lock vendors FOR UPDATE (in id order) and return them keyed by id."""
    cur.execute(
        """
        SELECT id, name, is_active, merged_into_id
        FROM vendors
        WHERE id = ANY(%s::uuid[])
        ORDER BY id
        FOR UPDATE
        """,
        (vendor_ids,),
    )
    return {
        str(r[0]): {
            "name": r[1] or "",
            "is_active": bool(r[2]),
            "merged_into_id": str(r[3]) if r[3] else None,
        }
        for r in cur.fetchall()
    }


def repoint_references(cur: PgCursor, master_id: str, duplicate_ids: list[str]) -> int:
    """Move every registered dependent row from the duplicates to the master.

    Returns:
        Number of rows actually moved.
    """
    moved = 0
    for ref in VENDOR_REFERENCE_TABLES:
        cur.execute(
            f"UPDATE {ref.table} SET {ref.column} = %s WHERE {ref.column} = ANY(%s::uuid[])",
            (master_id, duplicate_ids),
        )
        moved += cur.rowcount
    return moved


def active_user_emails(cur: PgCursor, vendor_id: str) -> set[str]:
    cur.execute(
        """
        SELECT lower(email) FROM vendor_users
        WHERE vendor_id = %s AND is_active AND email IS NOT NULL
        """,
        (vendor_id,),
    )
    return {r[0] for r in cur.fetchall()}


def list_vendor_users(cur: PgCursor, vendor_id: str) -> list[tuple[str, str | None, bool]]:
    """Return (id, email, is_active) for a vendor's users, oldest first."""
    cur.execute(
        """
        SELECT id, email, is_active FROM vendor_users
        WHERE vendor_id = %s
        ORDER BY created_at, id
        FOR UPDATE
        """,
        (vendor_id,),
    )
    return [(str(r[0]), r[1], bool(r[2])) for r in cur.fetchall()]


def move_vendor_user(
    cur: PgCursor,
    user_id: str,
    vendor_id: str,
    *,
    deactivate: bool = False,
) -> None:
    if deactivate:
        cur.execute(
            """
            UPDATE vendor_users
            SET is_active = false, vendor_id = %s, updated_at = now()
            WHERE id = %s
            """,
            (vendor_id, user_id),
        )
    else:
        cur.execute(
            "UPDATE vendor_users SET vendor_id = %s, updated_at = now() WHERE id = %s",
            (vendor_id, user_id),
        )


def mark_merged(cur: PgCursor, master_id: str, duplicate_ids: list[str]) -> int:
    """Deactivate duplicates and suffix their names, skipping marked ones.

    Returns:
        Number of vendors actually marked by this call.
    """
    cur.execute(
        f"""
        UPDATE vendors
        SET is_active = false,
            name = name || ' {MERGED_MARKER}',
            merged_into_id = %s,
            updated_at = now()
        WHERE id = ANY(%s::uuid[])
          AND name NOT LIKE '{_MERGED_PATTERN}'
        """,
        (master_id, duplicate_ids),
    )
    return cur.rowcount


# ── Tabular import ────────────────────────────────────────────────────────────


def find_import_candidates(
    cur: PgCursor,
    *,
    legacy_ids: list[str],
    names: list[str],
    emails: list[str],
    phones: list[str],
) -> list[dict[str, Any]]:
    if not (legacy_ids or names or emails or phones):
        return []
    cur.execute(
        """
        SELECT id, name, email, phone, legacy_id
        FROM vendors
        WHERE legacy_id = ANY(%s)
           OR lower(name) = ANY(%s)
           OR lower(COALESCE(email, '')) = ANY(%s)
           OR COALESCE(phone, '') = ANY(%s)
        ORDER BY created_at, id
        """,
        (legacy_ids, names, emails, phones),
    )
    return [
        {
            "id": str(r[0]),
            "name": r[1] or "",
            "email": r[2],
            "phone": r[3],
            "legacyId": r[4],
        }
        for r in cur.fetchall()
    ]


def insert_vendor(cur: PgCursor, values: dict[str, Any]) -> str:
    cur.execute(
        """
        INSERT INTO vendors (name, email, phone, type, color_tag, is_active, notes, legacy_id)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            values["name"],
            values.get("email") or None,
            values.get("phone") or None,
            values.get("type") or "other",
            values["color_tag"],
            values.get("is_active", True),
            values.get("notes") or None,
            values.get("legacy_id") or None,
        ),
    )
    return str(cur.fetchone()[0])


def update_vendor(cur: PgCursor, vendor_id: str, values: dict[str, Any]) -> bool:
    """Refresh a vendor from an import row.

    A merged vendor keeps its marked name and stays inactive; legacy_id is
    only filled when still empty.

    Returns:
        True if the vendor exists and was updated.
    """
    cur.execute(
        f"""
        UPDATE vendors SET
            name      = CASE WHEN name LIKE '{_MERGED_PATTERN}' THEN name ELSE %s END,
            is_active = CASE WHEN name LIKE '{_MERGED_PATTERN}' THEN false ELSE %s END,
            email     = COALESCE(NULLIF(%s, ''), email),
            phone     = COALESCE(NULLIF(%s, ''), phone),
            type      = %s,
            color_tag = %s,
            notes     = COALESCE(NULLIF(%s, ''), notes),
            legacy_id = COALESCE(legacy_id, NULLIF(%s, '')),
            updated_at = now()
        WHERE id = %s::uuid
        """,
        (
            values["name"],
            values.get("is_active", True),
            values.get("email") or "",
            values.get("phone") or "",
            values.get("type") or "other",
            values["color_tag"],
            values.get("notes") or "",
            values.get("legacy_id") or "",
            vendor_id,
        ),
    )
    return cur.rowcount > 0
