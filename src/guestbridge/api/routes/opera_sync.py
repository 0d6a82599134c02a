"""Opera feed endpoints.

POST /admin/opera-sync            → {summary}   (operator or scheduler)
GET  /admin/opera-sync?limit=20   → {logs}      (ledger, newest first)
POST /admin/opera-import {xml}    → feed import result for a pasted export
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from guestbridge.api.admin_auth import require_admin, require_admin_or_cron
from guestbridge.api.deps import get_db, get_fetcher_factory
from guestbridge.api.errors import http_error
from guestbridge.domain.errors import ReconciliationError
from guestbridge.domain.feed_import import import_feed
from guestbridge.domain.opera_sync import FetcherFactory, record_upload, run_opera_sync
from guestbridge.infra.db import Database
from guestbridge.infra.repositories import sync_ledger_repository
from guestbridge.infra.repositories.sync_ledger_repository import TriggeredBy

router = APIRouter(prefix="/admin", tags=["opera-sync"])


class ImportXmlRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    xml: str


@router.post("/opera-sync")
def trigger_sync(
    triggered_by: TriggeredBy = Depends(require_admin_or_cron),
    db: Database = Depends(get_db),
    fetcher_factory: FetcherFactory = Depends(get_fetcher_factory),
) -> dict:
    """Fetch pending exports from the mailbox and import them.

    Always 200: fetch and import failures are part of the summary.
    """
    return {"summary": run_opera_sync(db, fetcher_factory, triggered_by=triggered_by)}


@router.get("/opera-sync")
def recent_syncs(
    limit: int = Query(20),
    _: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    try:
        with db.txn() as cur:
            entries = sync_ledger_repository.list_recent(cur, limit)
    except ReconciliationError as exc:
        raise http_error(exc) from exc
    return {"logs": [e.to_dict() for e in entries]}


@router.post("/opera-import")
def import_xml(
    body: ImportXmlRequest,
    triggered_by: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    try:
        result = import_feed(db, body.xml)
    except ReconciliationError as exc:
        raise http_error(exc) from exc
    ledger_error = record_upload(db, result, triggered_by=triggered_by)
    if ledger_error:
        result.errors.append(ledger_error)
    return {"success": True, "result": result.to_dict()}
