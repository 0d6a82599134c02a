"""Ledger bookkeeping shared by every batch operation."""

from __future__ import annotations

import psycopg2

from guestbridge.domain.errors import ReconciliationError
from guestbridge.infra.db import Database
from guestbridge.infra.repositories.sync_ledger_repository import SyncLedgerEntry, append_entry
from guestbridge.observability.logging import get_logger

logger = get_logger(__name__)


def record_run(db: Database, entry: SyncLedgerEntry) -> str | None:
    """Append a ledger entry in its own transaction.

    The batch's own units are already committed at this point, so a ledger
    failure is reported back instead of raised.

    Returns:
        None on success, otherwise an error line for the batch summary.
    """
    try:
        with db.txn() as cur:
            entry_id = append_entry(cur, entry)
    except (ReconciliationError, psycopg2.Error) as exc:
        logger.exception(
            "sync ledger append failed",
            extra={"extra_fields": {"source": entry.source, "error": type(exc).__name__}},
        )
        return f"Sync ledger entry not recorded: {exc}"

    logger.info(
        "sync ledger entry recorded",
        extra={
            "extra_fields": {
                "ledger_id": entry_id,
                "source": entry.source,
                "triggered_by": entry.triggered_by,
                "created": entry.created,
                "updated": entry.updated,
                "errors": len(entry.errors),
            }
        },
    )
    return None
