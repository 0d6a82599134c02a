"""Typed records crossing the reconciliation boundaries.

Raw spreadsheet dicts and psycopg2 row tuples are converted into these
dataclasses as soon as they enter the domain; nothing past the
normalizer/matcher works on untyped maps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Action = Literal["CREATE", "UPDATE", "CONFLICT", "SKIP"]
ProfileType = Literal["guest", "staff", "visitor", "musician", "artist", "other"]

CREATE: Action = "CREATE"
UPDATE: Action = "UPDATE"
CONFLICT: Action = "CONFLICT"
SKIP: Action = "SKIP"

MERGED_MARKER = "[MERGED]"


# ── Guests ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GuestStats:
    """Historical counters, kept as the strings the spreadsheet carried."""

    arrivals: str = "0"
    nights: str = "0"
    revenue: str = "0"

    def to_dict(self) -> dict[str, str]:
        return {"arrivals": self.arrivals, "nights": self.nights, "revenue": self.revenue}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "GuestStats":
        data = data or {}
        return cls(
            arrivals=str(data.get("arrivals") or "0"),
            nights=str(data.get("nights") or "0"),
            revenue=str(data.get("revenue") or "0"),
        )


@dataclass(frozen=True)
class NormalizedGuestRow:
    """One spreadsheet row after header mapping and name splitting.

    Attributes:
        primary_name: Full name without the companion part; the name used
            for identity matching and stored as the guest's full_name.
        error: Set when the row was structurally malformed.
    """

    legacy_id: str = ""
    full_name: str = ""
    primary_name: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    nationality: str = ""
    companion: str = ""
    multi_companion: bool = False
    vip: int = 0
    notes: str = ""
    stats: GuestStats = field(default_factory=GuestStats)
    error: str | None = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.primary_name or self.legacy_id or "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "legacyId": self.legacy_id,
            "fullName": self.full_name,
            "primaryName": self.primary_name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "nationality": self.nationality,
            "companion": self.companion,
            "vip": self.vip,
            "notes": self.notes,
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class GuestIdentity:
    """Canonical guest as returned by the candidate lookup."""

    id: str
    legacy_id: str | None
    full_name: str
    email: str | None
    first_name: str = ""
    last_name: str = ""
    companion_name: str | None = None

    @classmethod
    def from_row(cls, row: tuple) -> "GuestIdentity":
        """Build from (id, legacy_id, full_name, email, first_name, last_name, companion_name)."""
        return cls(
            id=str(row[0]),
            legacy_id=row[1] or None,
            full_name=row[2] or "",
            email=row[3] or None,
            first_name=row[4] or "",
            last_name=row[5] or "",
            companion_name=row[6] or None,
        )

    def to_match_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fullName": self.full_name,
            "email": self.email,
            "legacyId": self.legacy_id,
        }


@dataclass(frozen=True)
class MatchRef:
    """Reviewed reference to the canonical record an UPDATE targets."""

    id: str


@dataclass(frozen=True)
class ImportRow:
    """One classified row of an analyze → review → execute cycle."""

    normalized: NormalizedGuestRow
    action: Action
    reason: str
    match: GuestIdentity | MatchRef | None = None
    inferred_profile_type: ProfileType = "guest"
    raw_fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        match = self.match.to_match_dict() if isinstance(self.match, GuestIdentity) else None
        return {
            "csv": self.normalized.to_dict(),
            "match": match,
            "action": self.action,
            "reason": self.reason,
            "inferredProfileType": self.inferred_profile_type,
            "multiCompanion": self.normalized.multi_companion,
        }


@dataclass
class ImportResult:
    """Outcome of one import execution."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


# ── Vendors ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class VendorRosterEntry:
    """Vendor with its usage across dependent tables."""

    id: str
    name: str
    type: str
    email: str | None
    phone: str | None
    is_active: bool
    usage_counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: tuple, usage_keys: tuple[str, ...]) -> "VendorRosterEntry":
        """Build from (id, name, type, email, phone, is_active, *usage counts)."""
        return cls(
            id=str(row[0]),
            name=row[1] or "",
            type=row[2] or "other",
            email=row[3] or None,
            phone=row[4] or None,
            is_active=bool(row[5]),
            usage_counts={key: int(n or 0) for key, n in zip(usage_keys, row[6:])},
        )

    @property
    def total_usage(self) -> int:
        return sum(self.usage_counts.values())

    @property
    def is_merged(self) -> bool:
        return MERGED_MARKER in self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "email": self.email,
            "phone": self.phone,
            "isActive": self.is_active,
            "usageCounts": dict(self.usage_counts),
        }


@dataclass(frozen=True)
class VendorGroupMember:
    id: str
    name: str
    type: str
    is_active: bool
    is_suggested_master: bool
    usage_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "isActive": self.is_active,
            "isSuggestedMaster": self.is_suggested_master,
            "usageCounts": dict(self.usage_counts),
        }


@dataclass(frozen=True)
class VendorGroup:
    """Candidate duplicate group; advisory until a human approves it."""

    group_id: int
    reason: str
    members: tuple[VendorGroupMember, ...]

    @property
    def master(self) -> VendorGroupMember:
        return next(m for m in self.members if m.is_suggested_master)

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupId": self.group_id,
            "reason": self.reason,
            "members": [m.to_dict() for m in self.members],
        }


@dataclass(frozen=True)
class MergeRequest:
    """One approved merge: duplicates fold into master."""

    master_id: str
    duplicate_ids: tuple[str, ...]


@dataclass
class MergeResult:
    groups_processed: int = 0
    vendors_deactivated: int = 0
    dependent_records_repointed: int = 0
    vendor_users_repointed: int = 0
    vendor_users_deactivated: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupsProcessed": self.groups_processed,
            "vendorsDeactivated": self.vendors_deactivated,
            "dependentRecordsRepointed": self.dependent_records_repointed,
            "vendorUsersRepointed": self.vendor_users_repointed,
            "vendorUsersDeactivated": self.vendor_users_deactivated,
            "errors": list(self.errors),
        }
