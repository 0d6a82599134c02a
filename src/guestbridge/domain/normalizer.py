"""Spreadsheet parsing and row normalization.

Pure functions: no database access, no logging of row contents.

Header normalization maps "Nombre Completo" → "nombre_completo" and
"Acompañante" → "acompaante" (non [a-z0-9_] characters are dropped), so
the alias tables below use the normalized spellings.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field

from guestbridge.domain.errors import ValidationError
from guestbridge.domain.models import GuestStats, NormalizedGuestRow

_WHITESPACE = re.compile(r"\s+")
_NON_TOKEN = re.compile(r"[^a-z0-9_]")

LEGACY_ID_KEYS = ("id_huesped", "legacy_id", "guest_id")
FULL_NAME_KEYS = ("nombre_completo", "full_name", "name")
EMAIL_KEYS = ("email", "correo")
FIRST_NAME_KEYS = ("nombre", "first_name")
LAST_NAME_KEYS = ("apellido", "last_name")
COMPANION_KEYS = ("acompaante", "companion")
VIP_KEYS = ("vip",)
PHONE_KEYS = ("telefono", "phone")
COUNTRY_KEYS = ("pais", "country", "nationality")
NOTES_KEYS = ("notas", "notes")
ARRIVALS_KEYS = ("llegadas", "arrivals")
NIGHTS_KEYS = ("noches", "nights")
REVENUE_KEYS = ("room_revenue", "revenue")


@dataclass(frozen=True)
class RawRecord:
    """One data line of a spreadsheet, keyed by normalized header."""

    line_no: int
    fields: dict[str, str] = field(default_factory=dict)
    error: str | None = None


def normalize_header(header: str) -> str:
    token = _WHITESPACE.sub("_", header.strip().lower())
    return _NON_TOKEN.sub("", token)


def parse_csv_text(text: str) -> list[RawRecord]:
    """Split CSV text into records keyed by normalized headers.

    Blank lines are ignored. A line whose column count differs from the
    header's becomes a record carrying an error instead of aborting the
    batch.

    Raises:
        ValidationError: If the text has no header or no data lines.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        raise ValidationError("CSV is empty")

    headers = [normalize_header(h) for h in rows[0]]
    if not any(headers):
        raise ValidationError("CSV header row has no usable column names")

    records: list[RawRecord] = []
    for line_no, values in enumerate(rows[1:], start=2):
        if len(values) != len(headers):
            records.append(
                RawRecord(
                    line_no=line_no,
                    error=(
                        f"Malformed row {line_no}: expected {len(headers)} "
                        f"columns, got {len(values)}"
                    ),
                )
            )
            continue
        records.append(
            RawRecord(
                line_no=line_no,
                fields={h: v.strip() for h, v in zip(headers, values) if h},
            )
        )
    return records


def pick(fields: dict[str, str], *keys: str) -> str:
    """Return the first non-empty value among the given header aliases."""
    for key in keys:
        value = fields.get(key)
        if value:
            return value.strip()
    return ""


def split_name(name: str) -> tuple[str, str]:
    """Split "Ana Maria Lopez" into ("Ana Maria", "Lopez")."""
    parts = name.split()
    if len(parts) > 1:
        return " ".join(parts[:-1]), parts[-1]
    return (parts[0], "") if parts else ("", "")


def coerce_int(value: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def split_companion(full_name: str, conjunction: str) -> tuple[str, str, bool]:
    """Split "Jane Doe y Carlos Ruiz" into primary name and companion.

    Returns:
        (primary_name, companion, multi_companion). The companion keeps
        everything after the first conjunction.
    """
    pattern = re.compile(re.escape(conjunction), re.IGNORECASE)
    parts = pattern.split(full_name, maxsplit=1)
    if len(parts) < 2:
        return full_name.strip(), "", False
    primary, companion = parts[0].strip(), parts[1].strip()
    return primary, companion, pattern.search(companion) is not None


def normalize_guest_row(
    fields: dict[str, str],
    *,
    conjunction: str = " y ",
    error: str | None = None,
) -> NormalizedGuestRow:
    """Normalize one guest spreadsheet record."""
    if error:
        return NormalizedGuestRow(error=error)

    legacy_id = pick(fields, *LEGACY_ID_KEYS)
    full_name = pick(fields, *FULL_NAME_KEYS)
    first_name = pick(fields, *FIRST_NAME_KEYS)
    last_name = pick(fields, *LAST_NAME_KEYS)
    explicit_companion = pick(fields, *COMPANION_KEYS)

    primary_name, detected_companion, multi = split_companion(full_name, conjunction)

    if not first_name and not last_name and primary_name:
        first_name, last_name = split_name(primary_name)
    # Name typed into the last-name column only.
    if not first_name and last_name:
        first_name, last_name = split_name(last_name)

    if not primary_name:
        primary_name = " ".join(p for p in (first_name, last_name) if p)

    return NormalizedGuestRow(
        legacy_id=legacy_id,
        full_name=full_name,
        primary_name=primary_name,
        first_name=first_name,
        last_name=last_name,
        email=pick(fields, *EMAIL_KEYS),
        phone=pick(fields, *PHONE_KEYS),
        nationality=pick(fields, *COUNTRY_KEYS),
        companion=explicit_companion or detected_companion,
        multi_companion=multi,
        vip=coerce_int(pick(fields, *VIP_KEYS)),
        notes=pick(fields, *NOTES_KEYS),
        stats=GuestStats(
            arrivals=pick(fields, *ARRIVALS_KEYS) or "0",
            nights=pick(fields, *NIGHTS_KEYS) or "0",
            revenue=pick(fields, *REVENUE_KEYS) or "0",
        ),
    )
