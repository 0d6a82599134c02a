"""Sync ledger repository - append-only audit of every import and merge run.

Uses raw SQL with psycopg2 (no ORM).  The table carries a trigger that
rejects UPDATE and DELETE; this module only ever inserts and reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json

from guestbridge.infra.time import utc_now

LedgerSource = Literal["opera_feed", "opera_upload", "guest_csv", "vendor_csv", "vendor_merge"]
TriggeredBy = Literal["cron", "manual"]

MIN_LIMIT = 1
MAX_LIMIT = 100


@dataclass(frozen=True)
class SyncLedgerEntry:
    source: LedgerSource
    triggered_by: TriggeredBy
    emails_found: int = 0
    xmls_processed: int = 0
    created: int = 0
    updated: int = 0
    errors: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)
    synced_at: datetime | None = None
    id: str | None = None

    @classmethod
    def from_row(cls, row: tuple) -> "SyncLedgerEntry":
        """Build from (id, synced_at, source, triggered_by, emails_found,
        xmls_processed, created, updated, errors, details)."""
        return cls(
            id=str(row[0]),
            synced_at=row[1],
            source=row[2],
            triggered_by=row[3],
            emails_found=row[4] or 0,
            xmls_processed=row[5] or 0,
            created=row[6] or 0,
            updated=row[7] or 0,
            errors=tuple(row[8] or ()),
            details=dict(row[9] or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
            "source": self.source,
            "triggered_by": self.triggered_by,
            "emails_found": self.emails_found,
            "xmls_processed": self.xmls_processed,
            "reservations_created": self.created,
            "reservations_updated": self.updated,
            "errors": list(self.errors),
            "details": dict(self.details),
        }


def append_entry(cur: PgCursor, entry: SyncLedgerEntry) -> str:
    """Insert one ledger entry.

    Returns:
        UUID string of the new entry.
    """
    cur.execute(
        """
        INSERT INTO sync_ledger (
            synced_at, source, triggered_by, emails_found, xmls_processed,
            created, updated, errors, details
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            entry.synced_at or utc_now(),
            entry.source,
            entry.triggered_by,
            entry.emails_found,
            entry.xmls_processed,
            entry.created,
            entry.updated,
            Json(list(entry.errors)),
            Json(entry.details),
        ),
    )
    return str(cur.fetchone()[0])


def clamp_limit(limit: int | None, default: int = 20) -> int:
    if limit is None:
        return default
    return max(MIN_LIMIT, min(MAX_LIMIT, limit))


def list_recent(
    cur: PgCursor,
    limit: int | None = 20,
    *,
    source: LedgerSource | None = None,
) -> list[SyncLedgerEntry]:
    """Most recent entries first, limit clamped to 1..100."""
    cur.execute(
        """
        SELECT id, synced_at, source, triggered_by, emails_found,
               xmls_processed, created, updated, errors, details
        FROM sync_ledger
        WHERE %s::text IS NULL OR source = %s
        ORDER BY synced_at DESC, id DESC
        LIMIT %s
        """,
        (source, source, clamp_limit(limit)),
    )
    return [SyncLedgerEntry.from_row(r) for r in cur.fetchall()]
