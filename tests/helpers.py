"""Shared test helpers for Guestbridge tests.

Plain functions and classes importable by conftest.py and individual test
files. These are NOT fixtures.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator
from unittest.mock import MagicMock

from guestbridge.config import Settings
from guestbridge.domain.models import GuestIdentity, NormalizedGuestRow, VendorRosterEntry

ADMIN_TOKEN = "test-admin-token"
CRON_SECRET = "test-cron-secret"


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "postgres://u:p@localhost/guestbridge_test",
        "admin_api_token": ADMIN_TOKEN,
        "cron_secret": CRON_SECRET,
    }
    values.update(overrides)
    return Settings(**values)


class FakeDatabase:
    """Stands in for Database: every txn() yields the same MagicMock cursor.

    Args:
        failures: Exceptions raised on entering successive txn() calls;
            None lets that call through.
    """

    def __init__(self, cursor: MagicMock | None = None, failures: list | None = None) -> None:
        self.cursor = cursor or MagicMock()
        self.failures = list(failures or [])
        self.opened = 0
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    @contextmanager
    def txn(self) -> Iterator[MagicMock]:
        self.opened += 1
        failure = self.failures.pop(0) if self.failures else None
        if failure is not None:
            raise failure
        try:
            yield self.cursor
        except Exception:
            self.rollbacks += 1
            raise
        self.commits += 1

    def close(self) -> None:
        self.closed = True


def guest(
    guest_id: str = "g-1",
    *,
    legacy_id: str | None = None,
    full_name: str = "Jane Doe",
    email: str | None = None,
) -> GuestIdentity:
    first, _, last = full_name.partition(" ")
    return GuestIdentity(
        id=guest_id,
        legacy_id=legacy_id,
        full_name=full_name,
        email=email,
        first_name=first,
        last_name=last,
    )


def guest_row(**fields) -> NormalizedGuestRow:
    values = {
        "full_name": "Jane Doe",
        "primary_name": "Jane Doe",
        "first_name": "Jane",
        "last_name": "Doe",
    }
    values.update(fields)
    return NormalizedGuestRow(**values)


def vendor(
    vendor_id: str,
    name: str,
    *,
    transfers: int = 0,
    tour_products: int = 0,
    is_active: bool = True,
    vendor_type: str = "transfer",
) -> VendorRosterEntry:
    return VendorRosterEntry(
        id=vendor_id,
        name=name,
        type=vendor_type,
        email=None,
        phone=None,
        is_active=is_active,
        usage_counts={"transfers": transfers, "tourProducts": tour_products, "vendorUsers": 0},
    )
