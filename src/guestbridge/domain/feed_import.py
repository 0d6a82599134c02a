"""Opera XML feed import.

Layout of one export:

    RESENTEREDON / LIST_G_GRPBY_1 / G_GRPBY_1 / LIST_G_GRPBY_2 / G_GRPBY_2
        / LIST_G_ROOM / G_ROOM

Every G_ROOM element is one reservation.  Each record is applied in its own
transaction:

  1. guest resolution
     a. the guest already linked to this reservation, if its name still
        matches (case-insensitive)
     b. the oldest guest whose full_name matches (case-insensitive)
     c. a new guest
  2. reservation upsert by opera_resv_id
     existing → lock, diff tracked columns, update only when something changed
     unseen   → insert (ON CONFLICT update)

Re-importing the same file leaves the reservation count untouched and
reports every record as unchanged.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import psycopg2

from guestbridge.domain.errors import FatalError, ReconciliationError, ValidationError
from guestbridge.infra.db import Database
from guestbridge.infra.repositories import guests_repository, reservations_repository
from guestbridge.infra.time import parse_feed_date
from guestbridge.observability.logging import get_logger

logger = get_logger(__name__)

RECORD_TAG = "G_ROOM"
NO_RECORDS_ERROR = "No G_ROOM records found in XML"
_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class FeedReservation:
    """One G_ROOM record, typed."""

    opera_resv_id: str
    first_name: str
    last_name: str
    full_name: str
    status: str = "RESERVED"
    short_status: str = "RESV"
    room: str = ""
    arrival: date | None = None
    departure: date | None = None
    persons: int = 1
    nights: int = 1
    no_of_rooms: int = 1
    room_category: str = ""
    rate_code: str = ""
    guarantee_code: str = ""
    guarantee_code_desc: str = ""
    group_name: str = ""
    travel_agent: str = ""
    company: str = ""
    c_t_s_name: str = ""
    insert_user: str = ""
    insert_date: str = ""
    share_amount: Decimal | None = None
    share_amount_per_stay: Decimal | None = None

    def column_values(self, guest_id: str) -> dict[str, Any]:
        values = {col: getattr(self, col, None) for col in reservations_repository.TRACKED_COLUMNS}
        values["guest_id"] = guest_id
        return values


@dataclass
class FeedImportResult:
    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)
    created_records: list[dict[str, Any]] = field(default_factory=list)
    updated_records: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "errors": list(self.errors),
            "createdRecords": list(self.created_records),
            "updatedRecords": list(self.updated_records),
        }


# ── Parsing ───────────────────────────────────────────────────────────────────


def parse_feed_name(value: str) -> tuple[str, str, str]:
    """Split "LAST, FIRST" into (first_name, last_name, full_name)."""
    parts = [p.strip() for p in value.split(",")]
    last_name = parts[0] if parts else ""
    first_name = parts[1] if len(parts) > 1 else ""
    full_name = f"{first_name} {last_name}" if first_name else last_name
    return first_name, last_name, full_name.strip()


def _int(value: str, default: int) -> int:
    try:
        return int(value) or default
    except ValueError:
        return default


def _decimal(value: str) -> Decimal | None:
    """Parse an amount rounded to cents, as numeric(12,2) stores it."""
    if not value:
        return None
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            return None
        return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def parse_record(element: ET.Element) -> FeedReservation:
    def text(tag: str) -> str:
        return (element.findtext(tag) or "").strip()

    first_name, last_name, full_name = parse_feed_name(text("FULL_NAME"))
    return FeedReservation(
        opera_resv_id=text("RESV_NAME_ID"),
        first_name=first_name,
        last_name=last_name,
        full_name=full_name,
        status=text("RESV_STATUS") or "RESERVED",
        short_status=text("SHORT_RESV_STATUS") or "RESV",
        room=text("ROOM"),
        arrival=parse_feed_date(text("ARRIVAL")),
        departure=parse_feed_date(text("DEPARTURE")),
        persons=_int(text("PERSONS"), 1),
        nights=_int(text("NIGHTS"), 1),
        no_of_rooms=_int(text("NO_OF_ROOMS"), 1),
        room_category=text("ROOM_CATEGORY_LABEL"),
        rate_code=text("RATE_CODE"),
        guarantee_code=text("GUARANTEE_CODE"),
        guarantee_code_desc=text("GUARANTEE_CODE_DESC"),
        group_name=text("GROUP_NAME"),
        travel_agent=text("TRAVEL_AGENT_NAME"),
        company=text("COMPANY_NAME"),
        c_t_s_name=text("C_T_S_NAME"),
        insert_user=text("INSERT_USER"),
        insert_date=text("INSERT_DATE"),
        share_amount=_decimal(text("SHARE_AMOUNT")),
        share_amount_per_stay=_decimal(text("SHARE_AMOUNT_PER_STAY")),
    )


def extract_records(xml_text: str) -> list[ET.Element]:
    """Return every G_ROOM element of an export.

    Raises:
        ValidationError: If the payload is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml_text.lstrip("\ufeff").strip())
    except ET.ParseError as exc:
        raise ValidationError(f"Unparsable XML: {exc}") from exc
    return list(root.iter(RECORD_TAG))


# ── Import ────────────────────────────────────────────────────────────────────


def _resolve_guest(cur, record: FeedReservation) -> str:
    linked = guests_repository.find_linked_guest(cur, record.opera_resv_id)
    if linked and linked[1].strip().lower() == record.full_name.lower():
        return linked[0]
    existing = guests_repository.find_guest_by_name(cur, record.full_name)
    if existing:
        return existing
    return guests_repository.insert_feed_guest(
        cur,
        first_name=record.first_name,
        last_name=record.last_name,
        full_name=record.full_name,
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, Decimal)):
        return str(value)
    return value


def _diff(before: dict[str, Any], after: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {
        col: {"from": _jsonable(before.get(col)), "to": _jsonable(after[col])}
        for col in reservations_repository.TRACKED_COLUMNS
        if before.get(col) != after[col]
    }


def _apply_record(cur, record: FeedReservation, result: FeedImportResult) -> None:
    guest_id = _resolve_guest(cur, record)
    values = record.column_values(guest_id)

    existing = reservations_repository.lock_reservation(cur, record.opera_resv_id)
    if existing is None:
        inserted = reservations_repository.insert_reservation(cur, record.opera_resv_id, values)
        if inserted:
            result.created += 1
            result.created_records.append(
                {
                    "operaResvId": record.opera_resv_id,
                    "guestName": record.full_name,
                    "room": record.room,
                    "arrival": _jsonable(record.arrival),
                    "departure": _jsonable(record.departure),
                    "status": record.status,
                }
            )
        else:
            result.updated += 1
            result.updated_records.append(
                {"operaResvId": record.opera_resv_id, "guestName": record.full_name, "changes": {}}
            )
        return

    changes = _diff(existing, values)
    if not changes:
        result.unchanged += 1
        return
    reservations_repository.update_reservation(cur, record.opera_resv_id, values)
    result.updated += 1
    result.updated_records.append(
        {"operaResvId": record.opera_resv_id, "guestName": record.full_name, "changes": changes}
    )


def import_feed(db: Database, xml_text: str) -> FeedImportResult:
    """Import one Opera XML export, one transaction per reservation.

    Raises:
        ValidationError: If the payload is not well-formed XML.
    """
    elements = extract_records(xml_text)
    result = FeedImportResult(total=len(elements))
    if not elements:
        result.errors.append(NO_RECORDS_ERROR)
        return result

    for element in elements:
        record = parse_record(element)
        if not record.opera_resv_id:
            result.errors.append("Skipped record with no RESV_NAME_ID")
            continue
        if not record.full_name:
            result.errors.append(f"RESV {record.opera_resv_id}: missing FULL_NAME")
            continue

        # Counters are only touched on a scratch result, then folded in
        # once the transaction has committed.
        scratch = FeedImportResult()
        try:
            with db.txn() as cur:
                _apply_record(cur, record, scratch)
        except FatalError as exc:
            result.errors.append(f"RESV {record.opera_resv_id}: {exc}")
            logger.error(
                "feed import halted: store connection lost",
                extra={"extra_fields": {"opera_resv_id": record.opera_resv_id}},
            )
            break
        except (ReconciliationError, psycopg2.Error) as exc:
            result.errors.append(f"RESV {record.opera_resv_id}: {exc}")
            logger.warning(
                "feed record failed",
                extra={
                    "extra_fields": {
                        "opera_resv_id": record.opera_resv_id,
                        "error": type(exc).__name__,
                    }
                },
            )
            continue

        result.created += scratch.created
        result.updated += scratch.updated
        result.unchanged += scratch.unchanged
        result.created_records.extend(scratch.created_records)
        result.updated_records.extend(scratch.updated_records)

    logger.info(
        "opera feed imported",
        extra={
            "extra_fields": {
                "total": result.total,
                "created": result.created,
                "updated": result.updated,
                "unchanged": result.unchanged,
                "errors": len(result.errors),
            }
        },
    )
    return result
