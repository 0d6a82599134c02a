"""Vendor spreadsheet import endpoints.

POST /admin/vendor-import/analyze  {csv}   → {summary, analysis}
POST /admin/vendor-import/execute  {rows}  → {success, result}

Analyze is read-only.  Execute takes the analysis rows back after review;
only CREATE and UPDATE rows are applied.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from guestbridge.api.admin_auth import require_admin
from guestbridge.api.deps import get_db
from guestbridge.api.errors import http_error
from guestbridge.domain.errors import ReconciliationError
from guestbridge.domain.models import Action
from guestbridge.domain.vendor_import import (
    VendorImportRow,
    VendorRow,
    analysis_payload,
    analyze_vendor_csv,
    execute_vendor_import,
    normalize_color,
    normalize_type,
)
from guestbridge.infra.db import Database
from guestbridge.infra.repositories.sync_ledger_repository import TriggeredBy

router = APIRouter(prefix="/admin/vendor-import", tags=["vendor-import"])


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    csv: str


class ReviewedVendor(BaseModel):
    model_config = ConfigDict(extra="forbid")

    legacy_id: str = Field("", alias="legacyId")
    name: str = ""
    phone: str = ""
    email: str = ""
    raw_type: str = Field("", alias="rawType")
    type: str = ""
    color_code: str = Field("", alias="colorCode")
    notes: str = ""
    is_active: bool = Field(True, alias="isActive")


class ReviewedVendorMatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    legacy_id: str | None = Field(None, alias="legacyId")


class ReviewedVendorRow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    csv: ReviewedVendor
    match: ReviewedVendorMatch | None = None
    action: Action
    reason: str = ""

    def to_import_row(self) -> VendorImportRow:
        csv = self.csv
        row = VendorRow(
            legacy_id=csv.legacy_id.strip(),
            name=csv.name.strip(),
            phone=csv.phone.strip(),
            email=csv.email.strip(),
            raw_type=csv.raw_type,
            type=normalize_type(csv.type),
            color_tag=normalize_color(csv.color_code),
            notes=csv.notes.strip(),
            is_active=csv.is_active,
        )
        return VendorImportRow(
            row=row,
            action=self.action,
            reason=self.reason,
            match={"id": self.match.id} if self.match else None,
        )


class ExecuteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rows: list[ReviewedVendorRow]


@router.post("/analyze")
def analyze(
    body: AnalyzeRequest,
    _: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    try:
        rows = analyze_vendor_csv(db, body.csv)
    except ReconciliationError as exc:
        raise http_error(exc) from exc
    return analysis_payload(rows)


@router.post("/execute")
def execute(
    body: ExecuteRequest,
    triggered_by: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    if not body.rows:
        raise HTTPException(status_code=400, detail="No rows provided")
    result = execute_vendor_import(
        db, [item.to_import_row() for item in body.rows], triggered_by=triggered_by
    )
    return {"success": True, "result": result.to_dict()}
