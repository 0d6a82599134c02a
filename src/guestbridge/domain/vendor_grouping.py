"""Vendor duplicate grouping.

The roster (every unmerged vendor with its usage counts) is rendered into a
prompt for a text classification collaborator, which answers with a JSON
array of candidate duplicate groups.  That answer is advisory text:

  - JSON is isolated strictly first, then by taking the outermost [...]
  - the structure is validated with pydantic
  - groups naming ids the roster does not know are discarded
  - groups with fewer than 2 members are discarded, except single
    placeholder records flagged "invalid_record"
  - a vendor may sit in one group only; later groups claiming it are dropped
  - the master is re-picked when zero or several members are flagged
  - names, types, active flags and usage counts come from the roster,
    never from the collaborator's echo

Nothing here writes to the store; merges happen only after a human approves
a group (see vendor_merge).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as SchemaError

from guestbridge.classification.anthropic_classifier import TextClassifier
from guestbridge.domain.errors import CollaboratorError
from guestbridge.domain.models import VendorGroup, VendorGroupMember, VendorRosterEntry
from guestbridge.infra.db import Database
from guestbridge.infra.repositories import vendors_repository
from guestbridge.observability.logging import get_logger

logger = get_logger(__name__)

INVALID_RECORD_REASON = "invalid_record"

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")

PROMPT_TEMPLATE = """You are a data deduplication expert for a luxury hotel concierge platform.
Below is the full vendor list from the database. Your job is to find groups of vendors that represent the SAME real-world company but were entered differently (spelling variations, typos, abbreviations, partial names, language differences, etc.).

VENDOR LIST:
{roster}

INSTRUCTIONS:
1. Group vendors that are clearly the same entity.
2. For each group, pick the best "master" record. Prefer: most transfers/tour products, most complete name, correct spelling, active record.
3. Also flag records that are clearly invalid (e.g. name is "cancelado", "n/a", "test", empty, etc.) as their own group with reason "invalid_record".
4. Only include groups with 2+ members (or 1 invalid record). Do NOT list vendors that are clearly unique.
5. Return ONLY a valid JSON array, no markdown, no explanation outside the JSON.

OUTPUT FORMAT (return exactly this JSON structure):
[
  {{
    "groupId": 1,
    "reason": "short explanation of why these are duplicates",
    "vendors": [
      {{ "id": "uuid-here", "name": "vendor name", "isSuggestedMaster": true }},
      {{ "id": "uuid-here", "name": "vendor name", "isSuggestedMaster": false }}
    ]
  }}
]"""


# ── Collaborator answer schema ───────────────────────────────────────────────


class _ProposedMember(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | int
    is_suggested_master: bool = Field(default=False, alias="isSuggestedMaster")


class _ProposedGroup(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    reason: str = ""
    members: list[_ProposedMember] = Field(
        validation_alias=AliasChoices("vendors", "members"),
    )


_PROPOSALS = TypeAdapter(list[_ProposedGroup])


@dataclass
class GroupingOutcome:
    """Result of one grouping round; error is set instead of raising."""

    groups: list[VendorGroup] = field(default_factory=list)
    discarded: list[str] = field(default_factory=list)
    error: CollaboratorError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "groups": [g.to_dict() for g in self.groups],
            "discarded": list(self.discarded),
            "error": str(self.error) if self.error else None,
        }


# ── Roster ────────────────────────────────────────────────────────────────────


def load_roster(db: Database) -> list[VendorRosterEntry]:
    """Every vendor not already merged away, with usage counts."""
    with db.txn() as cur:
        roster = vendors_repository.load_roster(cur)
    return [v for v in roster if not v.is_merged]


def render_roster(roster: list[VendorRosterEntry]) -> str:
    return "\n".join(
        f'ID: {v.id} | Name: "{v.name}" | Type: {v.type} | '
        f'Transfers: {v.usage_counts.get("transfers", 0)} | '
        f'TourProducts: {v.usage_counts.get("tourProducts", 0)} | '
        f"Active: {str(v.is_active).lower()}"
        for v in roster
    )


def build_prompt(roster: list[VendorRosterEntry]) -> str:
    return PROMPT_TEMPLATE.format(roster=render_roster(roster))


# ── Parsing ───────────────────────────────────────────────────────────────────


def extract_json_array(text: str) -> Any:
    """Isolate the JSON payload of a collaborator reply.

    Raises:
        CollaboratorError: If no JSON array can be found or decoded.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        found = _JSON_ARRAY.search(text)
        if not found:
            raise CollaboratorError("No JSON array found in classifier response") from None
        try:
            data = json.loads(found.group(0))
        except json.JSONDecodeError as exc:
            raise CollaboratorError(f"Classifier response is not valid JSON: {exc}") from exc
    if isinstance(data, dict) and isinstance(data.get("groups"), list):
        data = data["groups"]
    return data


def _pick_master(members: list[VendorRosterEntry], flagged: set[str]) -> str:
    candidates = [m for m in members if m.id in flagged and not m.is_merged]
    if len(candidates) == 1:
        return candidates[0].id
    best = sorted(members, key=lambda m: (-m.total_usage, not m.is_active, m.name.lower(), m.id))
    return best[0].id


def parse_grouping_response(text: str, roster: list[VendorRosterEntry]) -> GroupingOutcome:
    """Turn a collaborator reply into validated groups. Never raises."""
    try:
        proposals = _PROPOSALS.validate_python(extract_json_array(text))
    except CollaboratorError as exc:
        return GroupingOutcome(error=exc)
    except SchemaError as exc:
        return GroupingOutcome(
            error=CollaboratorError(
                f"Classifier response has an unexpected shape: {exc.error_count()} error(s)"
            )
        )

    by_id = {v.id: v for v in roster}
    outcome = GroupingOutcome()
    claimed: set[str] = set()

    for position, proposal in enumerate(proposals, start=1):
        ids = list(dict.fromkeys(str(m.id).strip() for m in proposal.members))
        label = f"Group {position}"

        unknown = [i for i in ids if i not in by_id]
        if unknown:
            outcome.discarded.append(f"{label}: unknown vendor id(s) {', '.join(unknown)}")
            continue
        overlap = [i for i in ids if i in claimed]
        if overlap:
            outcome.discarded.append(f"{label}: vendor(s) already grouped {', '.join(overlap)}")
            continue
        invalid_record = INVALID_RECORD_REASON in proposal.reason.lower()
        if not ids or (len(ids) < 2 and not invalid_record):
            outcome.discarded.append(f"{label}: fewer than 2 members")
            continue

        members = [by_id[i] for i in ids]
        flagged = {str(m.id).strip() for m in proposal.members if m.is_suggested_master}
        master_id = _pick_master(members, flagged)
        claimed.update(ids)
        outcome.groups.append(
            VendorGroup(
                group_id=len(outcome.groups) + 1,
                reason=proposal.reason.strip() or "unspecified",
                members=tuple(
                    VendorGroupMember(
                        id=m.id,
                        name=m.name,
                        type=m.type,
                        is_active=m.is_active,
                        is_suggested_master=m.id == master_id,
                        usage_counts=dict(m.usage_counts),
                    )
                    for m in members
                ),
            )
        )

    return outcome


def group_vendors(db: Database, classifier: TextClassifier) -> GroupingOutcome:
    """Ask the collaborator for duplicate groups over the current roster."""
    roster = load_roster(db)
    try:
        reply = classifier.complete(build_prompt(roster))
    except CollaboratorError as exc:
        logger.warning("vendor grouping failed", extra={"extra_fields": {"error": str(exc)}})
        return GroupingOutcome(error=exc)

    outcome = parse_grouping_response(reply, roster)
    logger.info(
        "vendor grouping parsed",
        extra={
            "extra_fields": {
                "roster": len(roster),
                "groups": len(outcome.groups),
                "discarded": len(outcome.discarded),
                "error": str(outcome.error) if outcome.error else None,
            }
        },
    )
    return outcome
