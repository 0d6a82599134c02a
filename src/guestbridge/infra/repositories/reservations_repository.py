"""Reservations repository - feed reservations keyed by opera_resv_id.

Uses raw SQL with psycopg2 (no ORM).

opera_resv_id is unique.  A reservation is updated in place on every
re-delivery; it is never duplicated.  Two concurrent imports of the same
unseen id both reach insert_reservation(); the ON CONFLICT clause turns the
second one into an update (last write wins).
"""

from __future__ import annotations

from typing import Any

from psycopg2.extensions import cursor as PgCursor

# Columns the feed owns, in table order.  guest_id is tracked as well so a
# reservation handed to another guest counts as a change.
TRACKED_COLUMNS = (
    "guest_id",
    "status",
    "short_status",
    "room",
    "arrival",
    "departure",
    "persons",
    "nights",
    "no_of_rooms",
    "room_category",
    "rate_code",
    "guarantee_code",
    "guarantee_code_desc",
    "group_name",
    "travel_agent",
    "company",
    "c_t_s_name",
    "insert_user",
    "insert_date",
    "share_amount",
    "share_amount_per_stay",
)

_COLUMN_LIST = ", ".join(TRACKED_COLUMNS)


def lock_reservation(cur: PgCursor, opera_resv_id: str) -> dict[str, Any] | None:
    """Lock a reservation FOR UPDATE and return its tracked columns."""
    cur.execute(
        f"""
        SELECT {_COLUMN_LIST}
        FROM reservations
        WHERE opera_resv_id = %s
        FOR UPDATE
        """,
        (opera_resv_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    values = dict(zip(TRACKED_COLUMNS, row))
    values["guest_id"] = str(values["guest_id"]) if values["guest_id"] else None
    return values


def update_reservation(cur: PgCursor, opera_resv_id: str, values: dict[str, Any]) -> None:
    assignments = ", ".join(f"{col} = %s" for col in TRACKED_COLUMNS)
    cur.execute(
        f"""
        UPDATE reservations
        SET {assignments}, updated_at = now()
        WHERE opera_resv_id = %s
        """,
        (*(values[col] for col in TRACKED_COLUMNS), opera_resv_id),
    )


def insert_reservation(cur: PgCursor, opera_resv_id: str, values: dict[str, Any]) -> bool:
    """Insert a reservation, or update it if a concurrent import got there first.

    Returns:
        True if a new row was inserted, False if the conflict branch ran.
    """
    placeholders = ", ".join(["%s"] * (len(TRACKED_COLUMNS) + 1))
    overwrite = ", ".join(f"{col} = EXCLUDED.{col}" for col in TRACKED_COLUMNS)
    cur.execute(
        f"""
        INSERT INTO reservations (opera_resv_id, {_COLUMN_LIST})
        VALUES ({placeholders})
        ON CONFLICT (opera_resv_id) DO UPDATE
        SET {overwrite}, updated_at = now()
        RETURNING (xmax = 0) AS inserted
        """,
        (opera_resv_id, *(values[col] for col in TRACKED_COLUMNS)),
    )
    return bool(cur.fetchone()[0])
