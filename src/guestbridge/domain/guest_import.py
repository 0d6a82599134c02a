"""Guest spreadsheet import: analyze, then execute reviewed rows.

Analyze is read-only: parse → normalize → one batch candidate lookup →
classify.  Execute applies CREATE and UPDATE rows that a reviewer kept,
strictly in order, each in its own transaction:

  - a failed row rolls back only itself and is reported in errors
  - a lost connection (FatalError) halts the batch; rows committed before
    it stay committed
  - SKIP, unresolved CONFLICT and unknown actions only bump `skipped`
"""

from __future__ import annotations

from typing import Any, Iterable

import psycopg2

from guestbridge.config import DEFAULT_CONJUNCTION
from guestbridge.domain.audit import record_run
from guestbridge.domain.classifier import classify_row, summarize
from guestbridge.domain.errors import FatalError, NotFoundError, ReconciliationError
from guestbridge.domain.matching import GuestIndex, lookup_keys
from guestbridge.domain.models import (
    CREATE,
    UPDATE,
    ImportResult,
    ImportRow,
)
from guestbridge.domain.normalizer import normalize_guest_row, parse_csv_text
from guestbridge.infra.db import Database
from guestbridge.infra.repositories import guests_repository
from guestbridge.infra.repositories.sync_ledger_repository import SyncLedgerEntry, TriggeredBy
from guestbridge.observability.logging import get_logger
from guestbridge.observability.redaction import redact_error

logger = get_logger(__name__)


# ── Analyze ───────────────────────────────────────────────────────────────────


def analyze_guest_csv(
    db: Database,
    csv_text: str,
    *,
    conjunction: str = DEFAULT_CONJUNCTION,
) -> list[ImportRow]:
    """Classify every data line of a guest spreadsheet.

    Raises:
        ValidationError: If the CSV has no header or no data lines.
    """
    records = parse_csv_text(csv_text)
    normalized = [
        (normalize_guest_row(r.fields, conjunction=conjunction, error=r.error), r.fields)
        for r in records
    ]

    legacy_ids, emails, names = lookup_keys(row for row, _ in normalized if not row.error)
    with db.txn() as cur:
        candidates = guests_repository.find_candidates(
            cur, legacy_ids=legacy_ids, emails=emails, names=names
        )
    index = GuestIndex(candidates)

    rows = [classify_row(row, index, raw) for row, raw in normalized]
    logger.info(
        "guest csv analyzed",
        extra={"extra_fields": {**summarize(rows), "candidates": len(candidates)}},
    )
    return rows


def analysis_payload(rows: list[ImportRow]) -> dict[str, Any]:
    return {"summary": summarize(rows), "analysis": [r.to_dict() for r in rows]}


# ── Execute ───────────────────────────────────────────────────────────────────


def _apply_row(cur, row: ImportRow) -> None:
    if row.action == CREATE:
        guests_repository.insert_guest(
            cur, row.normalized, profile_type=row.inferred_profile_type
        )
        return

    guest_id = row.match.id if row.match else ""
    if not guest_id:
        raise NotFoundError("guest", "(no match id)")
    updated = guests_repository.update_guest(
        cur, guest_id, row.normalized, profile_type=row.inferred_profile_type
    )
    if not updated:
        raise NotFoundError("guest", guest_id)


def execute_guest_import(
    db: Database,
    rows: Iterable[ImportRow],
    *,
    triggered_by: TriggeredBy = "manual",
) -> ImportResult:
    """Apply reviewed rows, one transaction per row.

    Returns:
        ImportResult with created/updated/skipped counts and per-row errors
        formatted as: Error processing "<display name>": <message>
    """
    result = ImportResult()

    for row in rows:
        if row.action not in (CREATE, UPDATE):
            result.skipped += 1
            continue
        try:
            with db.txn() as cur:
                _apply_row(cur, row)
        except FatalError as exc:
            result.errors.append(f'Error processing "{row.normalized.display_name}": {exc}')
            logger.error(
                "guest import halted: store connection lost",
                extra={"extra_fields": {"created": result.created, "updated": result.updated}},
            )
            break
        except (ReconciliationError, psycopg2.Error) as exc:
            message = f'Error processing "{row.normalized.display_name}": {exc}'
            result.errors.append(message)
            logger.warning(
                "guest import row failed",
                extra={"extra_fields": {"action": row.action, "error": redact_error(message)}},
            )
            continue

        if row.action == CREATE:
            result.created += 1
        else:
            result.updated += 1

    ledger_error = record_run(
        db,
        SyncLedgerEntry(
            source="guest_csv",
            triggered_by=triggered_by,
            created=result.created,
            updated=result.updated,
            errors=tuple(result.errors),
            details={"skipped": result.skipped},
        ),
    )
    if ledger_error:
        result.errors.append(ledger_error)

    logger.info(
        "guest import executed",
        extra={"extra_fields": {**result.to_dict(), "errors": len(result.errors)}},
    )
    return result
