"""Guest spreadsheet import endpoints.

POST /admin/guest-import/analyze  {csv}   → {summary, analysis}
POST /admin/guest-import/execute  {rows}  → {success, result}

Analyze is read-only.  Execute takes the analysis rows back after review;
only CREATE and UPDATE rows are applied.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from guestbridge.api.admin_auth import require_admin
from guestbridge.api.deps import get_db, get_settings
from guestbridge.api.errors import http_error
from guestbridge.config import Settings
from guestbridge.domain.errors import ReconciliationError
from guestbridge.domain.guest_import import (
    analysis_payload,
    analyze_guest_csv,
    execute_guest_import,
)
from guestbridge.domain.models import (
    Action,
    GuestStats,
    ImportRow,
    MatchRef,
    NormalizedGuestRow,
    ProfileType,
)
from guestbridge.infra.db import Database
from guestbridge.infra.repositories.sync_ledger_repository import TriggeredBy

router = APIRouter(prefix="/admin/guest-import", tags=["guest-import"])


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    csv: str


class ReviewedStats(BaseModel):
    model_config = ConfigDict(extra="forbid")

    arrivals: str | int | float | None = None
    nights: str | int | float | None = None
    revenue: str | int | float | None = None


class ReviewedGuest(BaseModel):
    """The "csv" block of an analysis row, as the reviewer sent it back."""

    model_config = ConfigDict(extra="forbid")

    legacy_id: str = Field("", alias="legacyId")
    full_name: str = Field("", alias="fullName")
    primary_name: str = Field("", alias="primaryName")
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str = ""
    phone: str = ""
    nationality: str = ""
    companion: str = ""
    vip: int = 0
    notes: str = ""
    stats: ReviewedStats | None = None


class ReviewedMatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    full_name: str | None = Field(None, alias="fullName")
    email: str | None = None
    legacy_id: str | None = Field(None, alias="legacyId")


class ReviewedRow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    csv: ReviewedGuest
    match: ReviewedMatch | None = None
    action: Action
    reason: str = ""
    inferred_profile_type: ProfileType = Field("guest", alias="inferredProfileType")
    multi_companion: bool = Field(False, alias="multiCompanion")

    def to_import_row(self) -> ImportRow:
        csv = self.csv
        stats = csv.stats.model_dump() if csv.stats else None
        normalized = NormalizedGuestRow(
            legacy_id=csv.legacy_id,
            full_name=csv.full_name,
            primary_name=csv.primary_name or csv.full_name,
            first_name=csv.first_name,
            last_name=csv.last_name,
            email=csv.email,
            phone=csv.phone,
            nationality=csv.nationality,
            companion=csv.companion,
            multi_companion=self.multi_companion,
            vip=csv.vip,
            notes=csv.notes,
            stats=GuestStats.from_dict(stats),
        )
        return ImportRow(
            normalized=normalized,
            action=self.action,
            reason=self.reason,
            match=MatchRef(id=self.match.id) if self.match else None,
            inferred_profile_type=self.inferred_profile_type,
        )


class ExecuteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rows: list[ReviewedRow]


@router.post("/analyze")
def analyze(
    body: AnalyzeRequest,
    _: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict:
    try:
        rows = analyze_guest_csv(db, body.csv, conjunction=settings.companion_conjunction)
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
    result = execute_guest_import(
        db, [item.to_import_row() for item in body.rows], triggered_by=triggered_by
    )
    return {"success": True, "result": result.to_dict()}
