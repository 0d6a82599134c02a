"""Vendor merge executor.

For every approved group, inside one transaction:

  1. validate
     - empty duplicate list → group skipped
     - master listed among its own duplicates → ConflictError
     - lock master and duplicates FOR UPDATE; unknown ids → NotFoundError
     - master already merged into someone else → ConflictError
  2. repoint every registered dependent table from duplicates to master
  3. move vendor users; a user whose email is already active under the
     master is deactivated on the way (never dropped, never a second active
     account for the same email)
  4. deactivate duplicates and append the [MERGED] marker, skipping any that
     already carry it

Counters come from affected-row counts, so re-running a merge that already
went through reports no repointed rows and no deactivated vendors.
"""

from __future__ import annotations

from typing import Iterable

import psycopg2

from guestbridge.domain.audit import record_run
from guestbridge.domain.errors import (
    ConflictError,
    FatalError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from guestbridge.domain.models import MERGED_MARKER, MergeRequest, MergeResult
from guestbridge.infra.db import Database
from guestbridge.infra.repositories import vendors_repository
from guestbridge.infra.repositories.sync_ledger_repository import SyncLedgerEntry, TriggeredBy
from guestbridge.observability.logging import get_logger

logger = get_logger(__name__)


def _merge_users(cur, master_id: str, duplicate_ids: list[str]) -> tuple[int, int]:
    taken = vendors_repository.active_user_emails(cur, master_id)
    repointed = deactivated = 0
    for duplicate_id in duplicate_ids:
        for user_id, email, is_active in vendors_repository.list_vendor_users(cur, duplicate_id):
            key = (email or "").strip().lower()
            if is_active and key and key in taken:
                vendors_repository.move_vendor_user(cur, user_id, master_id, deactivate=True)
                deactivated += 1
                continue
            vendors_repository.move_vendor_user(cur, user_id, master_id)
            repointed += 1
            if is_active and key:
                taken.add(key)
    return repointed, deactivated


def _merge_group(cur, request: MergeRequest) -> dict[str, int]:
    duplicate_ids = list(request.duplicate_ids)
    if request.master_id in duplicate_ids:
        raise ConflictError("master vendor is listed among its own duplicates")

    locked = vendors_repository.lock_vendors(cur, [request.master_id, *duplicate_ids])
    for vendor_id in [request.master_id, *duplicate_ids]:
        if vendor_id not in locked:
            raise NotFoundError("vendor", vendor_id)

    master = locked[request.master_id]
    if MERGED_MARKER in master["name"] or master["merged_into_id"]:
        raise ConflictError(f"master vendor {request.master_id} is itself merged")

    repointed = vendors_repository.repoint_references(cur, request.master_id, duplicate_ids)
    users_repointed, users_deactivated = _merge_users(cur, request.master_id, duplicate_ids)
    deactivated = vendors_repository.mark_merged(cur, request.master_id, duplicate_ids)
    return {
        "dependent": repointed,
        "users_repointed": users_repointed,
        "users_deactivated": users_deactivated,
        "vendors": deactivated,
    }


def execute_merges(
    db: Database,
    requests: Iterable[MergeRequest],
    *,
    triggered_by: TriggeredBy = "manual",
) -> MergeResult:
    """Apply approved merge groups, one transaction per group.

    Raises:
        ValidationError: If no groups were supplied.
    """
    requests = list(requests)
    if not requests:
        raise ValidationError("No merges provided")

    result = MergeResult()
    for request in requests:
        if not request.master_id or not request.duplicate_ids:
            continue
        try:
            with db.txn() as cur:
                counts = _merge_group(cur, request)
        except FatalError as exc:
            result.errors.append(f"Group master={request.master_id}: {exc}")
            logger.error(
                "vendor merge halted: store connection lost",
                extra={"extra_fields": {"master_id": request.master_id}},
            )
            break
        except (ReconciliationError, psycopg2.Error) as exc:
            result.errors.append(f"Group master={request.master_id}: {exc}")
            logger.warning(
                "vendor merge group failed",
                extra={
                    "extra_fields": {
                        "master_id": request.master_id,
                        "error": type(exc).__name__,
                    }
                },
            )
            continue

        result.groups_processed += 1
        result.vendors_deactivated += counts["vendors"]
        result.dependent_records_repointed += counts["dependent"]
        result.vendor_users_repointed += counts["users_repointed"]
        result.vendor_users_deactivated += counts["users_deactivated"]

    ledger_error = record_run(
        db,
        SyncLedgerEntry(
            source="vendor_merge",
            triggered_by=triggered_by,
            updated=result.vendors_deactivated,
            errors=tuple(result.errors),
            details={
                **result.to_dict(),
                "merges": [
                    {"masterId": r.master_id, "duplicateIds": list(r.duplicate_ids)}
                    for r in requests
                ],
            },
        ),
    )
    if ledger_error:
        result.errors.append(ledger_error)

    logger.info(
        "vendor merges executed",
        extra={
            "extra_fields": {
                "groups_processed": result.groups_processed,
                "vendors_deactivated": result.vendors_deactivated,
                "dependent_records_repointed": result.dependent_records_repointed,
                "errors": len(result.errors),
            }
        },
    )
    return result
