"""Opera sync orchestration: mailbox → feed import → ledger.

Triggered hourly by the scheduler or by hand from the admin surface.
Nothing here raises past run_opera_sync(); every failure ends up in the
summary's errors list and in the ledger entry.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

from guestbridge.domain.audit import record_run
from guestbridge.domain.errors import CollaboratorError, FatalError, ReconciliationError
from guestbridge.domain.feed_import import FeedImportResult, import_feed
from guestbridge.infra.db import Database
from guestbridge.infra.repositories.sync_ledger_repository import SyncLedgerEntry, TriggeredBy
from guestbridge.observability.logging import get_logger

logger = get_logger(__name__)


class AttachmentFetcher(Protocol):
    def fetch_attachments(self) -> Any: ...


FetcherFactory = Callable[[], AttachmentFetcher]


def run_opera_sync(
    db: Database,
    fetcher_factory: FetcherFactory,
    *,
    triggered_by: TriggeredBy = "manual",
) -> dict[str, Any]:
    """Fetch pending Opera exports and import them.

    Returns:
        {emails_found, xmls_processed, reservations_created,
         reservations_updated, errors}
    """
    summary: dict[str, Any] = {
        "emails_found": 0,
        "xmls_processed": 0,
        "reservations_created": 0,
        "reservations_updated": 0,
        "errors": [],
    }
    details: dict[str, Any] = {"unchanged": 0, "imports": []}

    payloads: list[str] = []
    try:
        fetch = fetcher_factory().fetch_attachments()
        summary["emails_found"] = fetch.messages_found
        summary["errors"].extend(f"Gmail: {e}" for e in fetch.errors)
        payloads = list(fetch.xml_payloads)
    except CollaboratorError as exc:
        summary["errors"].append(f"Gmail: {exc}")
        logger.warning("opera sync fetch failed", extra={"extra_fields": {"error": str(exc)}})

    for position, xml_text in enumerate(payloads, start=1):
        try:
            result: FeedImportResult = import_feed(db, xml_text)
        except ReconciliationError as exc:
            summary["errors"].append(f"XML {position}: {exc}")
            if isinstance(exc, FatalError):
                break
            continue

        summary["xmls_processed"] += 1
        summary["reservations_created"] += result.created
        summary["reservations_updated"] += result.updated
        summary["errors"].extend(f"XML {position}: {e}" for e in result.errors)
        details["unchanged"] += result.unchanged
        details["imports"].append(
            {
                "total": result.total,
                "created": result.created,
                "updated": result.updated,
                "unchanged": result.unchanged,
            }
        )

    ledger_error = record_run(
        db,
        SyncLedgerEntry(
            source="opera_feed",
            triggered_by=triggered_by,
            emails_found=summary["emails_found"],
            xmls_processed=summary["xmls_processed"],
            created=summary["reservations_created"],
            updated=summary["reservations_updated"],
            errors=tuple(summary["errors"]),
            details=details,
        ),
    )
    if ledger_error:
        summary["errors"].append(ledger_error)

    logger.info(
        "opera sync complete",
        extra={
            "extra_fields": {
                "triggered_by": triggered_by,
                "emails_found": summary["emails_found"],
                "xmls_processed": summary["xmls_processed"],
                "created": summary["reservations_created"],
                "updated": summary["reservations_updated"],
                "errors": len(summary["errors"]),
            }
        },
    )
    return summary


def record_upload(
    db: Database,
    result: FeedImportResult,
    *,
    triggered_by: TriggeredBy = "manual",
) -> str | None:
    """Ledger entry for an XML pasted in by an operator."""
    return record_run(
        db,
        SyncLedgerEntry(
            source="opera_upload",
            triggered_by=triggered_by,
            xmls_processed=1,
            created=result.created,
            updated=result.updated,
            errors=tuple(result.errors),
            details={"total": result.total, "unchanged": result.unchanged},
        ),
    )
