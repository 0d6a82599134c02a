"""Vendor duplicate normalization endpoints.

GET  /admin/vendor-normalization/analyze            → {vendors, prompt}
POST /admin/vendor-normalization/group              → {groups, discarded}
POST /admin/vendor-normalization/parse {response}   → {groups, discarded}
POST /admin/vendor-normalization/execute {merges}   → {result}

/group asks the configured classifier; /parse accepts an answer an operator
got by pasting the prompt into any LLM.  Both only propose groups.  Merges
run only through /execute, with groups a human approved.
"""

from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from guestbridge.api.admin_auth import require_admin
from guestbridge.api.deps import get_classifier_factory, get_db
from guestbridge.api.errors import http_error
from guestbridge.classification.anthropic_classifier import TextClassifier
from guestbridge.domain.errors import ReconciliationError
from guestbridge.domain.models import MergeRequest
from guestbridge.domain.vendor_grouping import (
    GroupingOutcome,
    build_prompt,
    group_vendors,
    load_roster,
    parse_grouping_response,
)
from guestbridge.domain.vendor_merge import execute_merges
from guestbridge.infra.db import Database
from guestbridge.infra.repositories.sync_ledger_repository import TriggeredBy

router = APIRouter(prefix="/admin/vendor-normalization", tags=["vendor-normalization"])


class ParseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    response: str


class MergeGroup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    master_id: str = Field(alias="masterId")
    duplicate_ids: list[str] = Field(default_factory=list, alias="duplicateIds")


class ExecuteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    merges: list[MergeGroup]


def _grouping_response(outcome: GroupingOutcome) -> dict:
    if outcome.error is not None:
        raise http_error(outcome.error)
    return {
        "groups": [g.to_dict() for g in outcome.groups],
        "discarded": list(outcome.discarded),
    }


@router.get("/analyze")
def analyze(
    _: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    try:
        roster = load_roster(db)
    except ReconciliationError as exc:
        raise http_error(exc) from exc
    return {"vendors": [v.to_dict() for v in roster], "prompt": build_prompt(roster)}


@router.post("/group")
def group(
    _: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
    classifier_factory: Callable[[], TextClassifier] = Depends(get_classifier_factory),
) -> dict:
    """502 when the classifier is unavailable or its answer is unusable."""
    try:
        outcome = group_vendors(db, classifier_factory())
    except ReconciliationError as exc:
        raise http_error(exc) from exc
    return _grouping_response(outcome)


@router.post("/parse")
def parse(
    body: ParseRequest,
    _: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    try:
        roster = load_roster(db)
    except ReconciliationError as exc:
        raise http_error(exc) from exc
    return _grouping_response(parse_grouping_response(body.response, roster))


@router.post("/execute")
def execute(
    body: ExecuteRequest,
    triggered_by: TriggeredBy = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    requests = [
        MergeRequest(
            master_id=m.master_id.strip(),
            duplicate_ids=tuple(dict.fromkeys(d.strip() for d in m.duplicate_ids if d.strip())),
        )
        for m in body.merges
    ]
    try:
        result = execute_merges(db, requests, triggered_by=triggered_by)
    except ReconciliationError as exc:
        raise http_error(exc) from exc
    return {"result": result.to_dict()}
