"""Vendor spreadsheet import.

Same analyze → review → execute cycle as guests, with vendor rules:

  junk name                           → SKIP
  legacy id match                     → UPDATE "Legacy ID match"
  name match (case-insensitive)       → UPDATE "Name match"
  email or phone match, other name    → CONFLICT "Contact match with different name"
  otherwise                           → CREATE "New vendor"

Execute never reactivates or renames a merged vendor and only fills
legacy_id when it is still empty.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

import psycopg2

from guestbridge.domain.audit import record_run
from guestbridge.domain.errors import FatalError, NotFoundError, ReconciliationError
from guestbridge.domain.models import CONFLICT, CREATE, SKIP, UPDATE, ImportResult
from guestbridge.domain.normalizer import parse_csv_text, pick
from guestbridge.domain.screening import vendor_junk_reason
from guestbridge.infra.db import Database
from guestbridge.infra.repositories import vendors_repository
from guestbridge.infra.repositories.sync_ledger_repository import SyncLedgerEntry, TriggeredBy
from guestbridge.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_COLOR = "#6B7280"
_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")

_TYPE_ALIASES = {
    "transfer": ("transfer", "transfers", "transportation", "traslado", "traslados"),
    "tour": ("tour", "tours", "tour operador", "tour_operator", "actividad", "actividades"),
    "spa": ("spa",),
    "restaurant": ("restaurant", "restaurante"),
}
_TRUTHY = {"true", "1", "yes", "si", "s"}


@dataclass(frozen=True)
class VendorRow:
    legacy_id: str = ""
    name: str = ""
    phone: str = ""
    email: str = ""
    raw_type: str = ""
    type: str = "other"
    color_tag: str = DEFAULT_COLOR
    notes: str = ""
    is_active: bool = True
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "legacyId": self.legacy_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "rawType": self.raw_type,
            "type": self.type,
            "colorCode": self.color_tag,
            "notes": self.notes,
            "isActive": self.is_active,
        }

    def column_values(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "type": self.type,
            "color_tag": self.color_tag,
            "is_active": self.is_active,
            "notes": self.notes,
            "legacy_id": self.legacy_id,
        }


@dataclass(frozen=True)
class VendorImportRow:
    row: VendorRow
    action: str
    reason: str
    match: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "csv": self.row.to_dict(),
            "match": self.match,
            "action": self.action,
            "reason": self.reason,
        }


def normalize_type(raw: str) -> str:
    value = raw.strip().lower()
    for vendor_type, aliases in _TYPE_ALIASES.items():
        if value in aliases:
            return vendor_type
    return "other"


def normalize_color(raw: str) -> str:
    value = raw.strip()
    return value if _HEX_COLOR.match(value) else DEFAULT_COLOR


def normalize_vendor_row(fields: dict[str, str], error: str | None = None) -> VendorRow:
    if error:
        return VendorRow(error=error)
    raw_type = pick(fields, "tipo", "type")
    active = pick(fields, "activo", "is_active", "active")
    return VendorRow(
        legacy_id=pick(fields, "id_vendedor", "vendor_id", "id"),
        name=pick(fields, "nombre", "name", "vendor_name"),
        phone=pick(fields, "telefono", "phone"),
        email=pick(fields, "correo", "email"),
        raw_type=raw_type,
        type=normalize_type(raw_type),
        color_tag=normalize_color(pick(fields, "nombrecolor", "color_code", "color")),
        notes=pick(fields, "notas", "notes"),
        is_active=active.lower() in _TRUTHY if active else True,
    )


# ── Analyze ───────────────────────────────────────────────────────────────────


def _classify(row: VendorRow, maps: dict[str, dict[str, dict[str, Any]]]) -> VendorImportRow:
    if row.error:
        return VendorImportRow(row, SKIP, row.error)
    junk = vendor_junk_reason(row.name)
    if junk:
        return VendorImportRow(row, SKIP, junk)

    hit = maps["legacy"].get(row.legacy_id) if row.legacy_id else None
    if hit:
        return VendorImportRow(row, UPDATE, "Legacy ID match", hit)
    hit = maps["name"].get(row.name.lower())
    if hit:
        return VendorImportRow(row, UPDATE, "Name match", hit)
    hit = (maps["email"].get(row.email.lower()) if row.email else None) or (
        maps["phone"].get(row.phone) if row.phone else None
    )
    if hit:
        return VendorImportRow(row, CONFLICT, "Contact match with different name", hit)
    return VendorImportRow(row, CREATE, "New vendor")


def analyze_vendor_csv(db: Database, csv_text: str) -> list[VendorImportRow]:
    """Classify every data line of a vendor spreadsheet.

    Raises:
        ValidationError: If the CSV has no header or no data lines.
    """
    rows = [normalize_vendor_row(r.fields, r.error) for r in parse_csv_text(csv_text)]
    live = [r for r in rows if not r.error and not vendor_junk_reason(r.name)]

    with db.txn() as cur:
        candidates = vendors_repository.find_import_candidates(
            cur,
            legacy_ids=sorted({r.legacy_id for r in live if r.legacy_id}),
            names=sorted({r.name.lower() for r in live if r.name}),
            emails=sorted({r.email.lower() for r in live if r.email}),
            phones=sorted({r.phone for r in live if r.phone}),
        )

    maps: dict[str, dict[str, dict[str, Any]]] = {"legacy": {}, "name": {}, "email": {}, "phone": {}}
    for vendor in candidates:
        if vendor["legacyId"]:
            maps["legacy"].setdefault(vendor["legacyId"], vendor)
        maps["name"].setdefault(vendor["name"].lower(), vendor)
        if vendor["email"]:
            maps["email"].setdefault(vendor["email"].lower(), vendor)
        if vendor["phone"]:
            maps["phone"].setdefault(vendor["phone"], vendor)

    return [_classify(r, maps) for r in rows]


def analysis_payload(rows: list[VendorImportRow]) -> dict[str, Any]:
    summary = {"total": len(rows), "create": 0, "update": 0, "conflict": 0, "skip": 0}
    for row in rows:
        summary[row.action.lower()] += 1
    return {"summary": summary, "analysis": [r.to_dict() for r in rows]}


# ── Execute ───────────────────────────────────────────────────────────────────


def execute_vendor_import(
    db: Database,
    rows: Iterable[VendorImportRow],
    *,
    triggered_by: TriggeredBy = "manual",
) -> ImportResult:
    """Apply reviewed vendor rows, one transaction per row."""
    result = ImportResult()

    for item in rows:
        if item.action not in (CREATE, UPDATE) or not item.row.name:
            result.skipped += 1
            continue
        try:
            with db.txn() as cur:
                if item.action == CREATE:
                    vendors_repository.insert_vendor(cur, item.row.column_values())
                else:
                    target = (item.match or {}).get("id")
                    if not target:
                        raise NotFoundError("vendor", "(no match id)")
                    if not vendors_repository.update_vendor(cur, target, item.row.column_values()):
                        raise NotFoundError("vendor", target)
        except FatalError as exc:
            result.errors.append(f'Error processing vendor "{item.row.name}": {exc}')
            break
        except (ReconciliationError, psycopg2.Error) as exc:
            result.errors.append(f'Error processing vendor "{item.row.name}": {exc}')
            logger.warning(
                "vendor import row failed",
                extra={"extra_fields": {"action": item.action, "error": type(exc).__name__}},
            )
            continue

        if item.action == CREATE:
            result.created += 1
        else:
            result.updated += 1

    ledger_error = record_run(
        db,
        SyncLedgerEntry(
            source="vendor_csv",
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
        "vendor import executed",
        extra={
            "extra_fields": {
                "created": result.created,
                "updated": result.updated,
                "skipped": result.skipped,
                "errors": len(result.errors),
            }
        },
    )
    return result
