"""Junk-row detection and profile type inference for spreadsheet names.

NO LLM. Keyword heuristics over the lower-cased primary name; the legacy
CRM used the guest name column for placeholders ("cancelado", "****")
and for non-guest profiles (staff, visiting agents, musicians).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from guestbridge.domain.models import ProfileType

_SYMBOLS_ONLY = re.compile(r"^[#0.*x\s]+$")

_JUNK_EXACT = frozenset(
    {
        "cancelado", "cancelled", "canceled", "duplicado", "error", "eliminado",
        "none", "externo", "tour", "visita", "bailarines", "fumigadores",
        "artesanas", "artesanos", "managers", "cocineros", "personal bar",
        "personal construccion", "abogados abogados", "profe yoga", "gapa",
        "0", "#error!", "****", "xxx", "xxxxx", ".", ". .", "test", "n/a",
    }
)

_JUNK_PREFIXES = (
    "cancelado",
    "duplicado",
    "perfil duplicado",
    "usuario duplicado",
    "cance",
    "can celdes",
    "cancel",
)

_MUSICIAN_PREFIXES = ("musicos", "musico y")
_STAFF_KEYWORDS = (
    "chef ", "masajista", "fotografo", "fotografa", "maquillista",
    "violinista", "guitarrista", "musico ",
)
_VISITOR_KEYWORDS = (
    "site inspection", "famtrip", "fam trip", "press trip",
    "inspeccion agencia", "inspeccion municipio", "agente", "travel",
    "journeys", "trails",
)
_ARTIST_KEYWORDS = ("artesano",)

# Vendor names use a shorter placeholder list.
_VENDOR_JUNK_EXACT = frozenset(
    {"cancelado", "cancelled", "canceled", "none", "n/a", "na", "sin proveedor", "test"}
)


@dataclass(frozen=True)
class Screening:
    skip: bool
    reason: str = ""
    profile_type: ProfileType = "guest"


def junk_reason(name: str) -> str | None:
    """Return why a guest name is a placeholder, or None if it looks real."""
    trimmed = name.strip().lower()
    if not trimmed:
        return None
    if _SYMBOLS_ONLY.match(trimmed):
        return "Junk data: symbols/zeros only"
    if trimmed in _JUNK_EXACT:
        return f'Junk data: "{name.strip()}"'
    for prefix in _JUNK_PREFIXES:
        if trimmed.startswith(prefix):
            return f'Junk data: starts with "{prefix}"'
    return None


def infer_profile_type(name: str) -> ProfileType:
    """Guess the profile type from keywords in the name.

    Later rules win, so "musico y chef ..." ends up as staff.
    """
    trimmed = name.strip().lower()
    profile: ProfileType = "guest"
    if trimmed.startswith(_MUSICIAN_PREFIXES):
        profile = "musician"
    if any(k in trimmed for k in _STAFF_KEYWORDS):
        profile = "staff"
    if any(k in trimmed for k in _VISITOR_KEYWORDS):
        profile = "visitor"
    if any(k in trimmed for k in _ARTIST_KEYWORDS):
        profile = "artist"
    return profile


def screen_guest_name(primary_name: str) -> Screening:
    reason = junk_reason(primary_name)
    if reason:
        return Screening(skip=True, reason=reason)
    return Screening(skip=False, profile_type=infer_profile_type(primary_name))


def vendor_junk_reason(name: str) -> str | None:
    trimmed = name.strip().lower()
    if not trimmed:
        return "Missing vendor name"
    if _SYMBOLS_ONLY.match(trimmed):
        return "Junk data: symbols/zeros only"
    if trimmed in _VENDOR_JUNK_EXACT:
        return f'Junk data: "{name.strip()}"'
    return None
