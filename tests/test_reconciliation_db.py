"""End-to-end reconciliation against a real PostgreSQL.

Applies migrations/sql/*.sql and truncates every table before each test.
Point DATABASE_URL at a disposable database.
"""

from __future__ import annotations

import os
from pathlib import Path

import psycopg2
import pytest

from guestbridge.config import Settings
from guestbridge.domain.feed_import import import_feed
from guestbridge.domain.guest_import import analyze_guest_csv, execute_guest_import
from guestbridge.domain.models import CREATE, MergeRequest
from guestbridge.domain.vendor_merge import execute_merges
from guestbridge.infra.db import Database, fetchall, fetchone

pytestmark = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping DB integration tests",
)

SQL_DIR = Path(__file__).resolve().parent.parent / "migrations" / "sql"
TABLES = "sync_ledger, reservations, vendor_users, tour_products, transfers, vendors, guests"

CSV = (
    "ID_Huesped,Nombre Completo,Email,VIP\n"
    "L-100,Jane Doe y Carlos Ruiz,,1\n"
    ",Luis Perez,luis@example.com,0\n"
    ",Cancelado,,0\n"
    ",Ana Diaz,,0\n"
)

XML = (
    '<?xml version="1.0"?>'
    "<RESENTEREDON><LIST_G_GRPBY_1><G_GRPBY_1><LIST_G_GRPBY_2><G_GRPBY_2><LIST_G_ROOM>"
    "<G_ROOM><RESV_NAME_ID>9001</RESV_NAME_ID><FULL_NAME>DOE, JANE</FULL_NAME><ROOM>101</ROOM>"
    "<ARRIVAL>05/03/25</ARRIVAL><DEPARTURE>08/03/25</DEPARTURE><PERSONS>2</PERSONS>"
    "<NIGHTS>3</NIGHTS><SHARE_AMOUNT>450.00</SHARE_AMOUNT></G_ROOM>"
    "<G_ROOM><RESV_NAME_ID>9002</RESV_NAME_ID><FULL_NAME>RUIZ, CARLOS</FULL_NAME><ROOM>102</ROOM>"
    "<ARRIVAL>06/03/25</ARRIVAL><DEPARTURE>07/03/25</DEPARTURE><PERSONS>1</PERSONS>"
    "<NIGHTS>1</NIGHTS></G_ROOM>"
    "</LIST_G_ROOM></G_GRPBY_2></LIST_G_GRPBY_2></G_GRPBY_1></LIST_G_GRPBY_1></RESENTEREDON>"
)


@pytest.fixture
def db():
    database = Database(Settings.from_env())
    with database.txn() as cur:
        for path in sorted(SQL_DIR.glob("*.sql")):
            cur.execute(path.read_text())
        cur.execute(f"TRUNCATE {TABLES} CASCADE")
    yield database
    database.close()


def _insert_vendor(cur, name: str) -> str:
    return fetchone(cur, "INSERT INTO vendors (name, type) VALUES (%s, 'transfer') RETURNING id::text", (name,))[0]


class TestGuestImport:
    def test_second_analysis_creates_nothing(self, db):
        first = analyze_guest_csv(db, CSV)
        assert [r.action for r in first] == ["CREATE", "CREATE", "SKIP", "CREATE"]

        result = execute_guest_import(db, first)
        assert (result.created, result.skipped, result.errors) == (3, 1, [])

        second = analyze_guest_csv(db, CSV)
        assert CREATE not in [r.action for r in second]
        assert [r.action for r in second] == ["UPDATE", "UPDATE", "SKIP", "CONFLICT"]

        result = execute_guest_import(db, second)
        assert (result.created, result.updated) == (0, 2)
        with db.txn() as cur:
            assert fetchone(cur, "SELECT count(*) FROM guests") == (3,)

    def test_companion_split_from_full_name(self, db):
        execute_guest_import(db, analyze_guest_csv(db, CSV))
        with db.txn() as cur:
            row = fetchone(
                cur,
                "SELECT full_name, first_name, last_name, companion_name, vip_level "
                "FROM guests WHERE legacy_id = 'L-100'",
            )
        assert row == ("Jane Doe", "Jane", "Doe", "Carlos Ruiz", 1)

    def test_legacy_id_is_write_once(self, db):
        execute_guest_import(db, analyze_guest_csv(db, CSV))
        with pytest.raises(psycopg2.IntegrityError):
            with db.txn() as cur:
                cur.execute("UPDATE guests SET legacy_id = 'L-999' WHERE legacy_id = 'L-100'")

    def test_ledger_is_append_only(self, db):
        execute_guest_import(db, analyze_guest_csv(db, CSV))
        with db.txn() as cur:
            entries = fetchall(cur, "SELECT source, triggered_by, created FROM sync_ledger")
        assert entries == [("guest_csv", "manual", 3)]

        with pytest.raises(psycopg2.Error):
            with db.txn() as cur:
                cur.execute("DELETE FROM sync_ledger")


class TestFeedImport:
    def test_reimport_keeps_reservation_count(self, db):
        first = import_feed(db, XML)
        assert (first.total, first.created, first.errors) == (2, 2, [])

        second = import_feed(db, XML)
        assert (second.created, second.updated, second.unchanged) == (0, 0, 2)
        with db.txn() as cur:
            assert fetchone(cur, "SELECT count(*) FROM reservations") == (2,)
            assert fetchone(cur, "SELECT count(*) FROM guests") == (2,)


class TestVendorMerge:
    def test_merge_and_rerun(self, db):
        with db.txn() as cur:
            master = _insert_vendor(cur, "Transportes del Valle")
            dup = _insert_vendor(cur, "Transp. del Valle")
            cur.execute("INSERT INTO transfers (vendor_id) VALUES (%s), (%s)", (dup, dup))
            cur.execute("INSERT INTO tour_products (vendor_id, name) VALUES (%s, 'Cenotes')", (dup,))

        result = execute_merges(db, [MergeRequest(master, (dup,))])
        assert result.errors == []
        assert result.vendors_deactivated == 1
        assert result.dependent_records_repointed == 3

        with db.txn() as cur:
            assert fetchone(cur, "SELECT count(*) FROM transfers WHERE vendor_id = %s", (master,)) == (2,)
            assert fetchone(
                cur, "SELECT name, is_active, merged_into_id::text FROM vendors WHERE id = %s", (dup,)
            ) == ("Transp. del Valle [MERGED]", False, master)

        rerun = execute_merges(db, [MergeRequest(master, (dup,))])
        assert rerun.to_dict() == {
            "groupsProcessed": 1,
            "vendorsDeactivated": 0,
            "dependentRecordsRepointed": 0,
            "vendorUsersRepointed": 0,
            "vendorUsersDeactivated": 0,
            "errors": [],
        }

    def test_vendor_user_email_conflict(self, db):
        with db.txn() as cur:
            master = _insert_vendor(cur, "Transportes del Valle")
            dup = _insert_vendor(cur, "T. Valle")
            cur.execute(
                "INSERT INTO vendor_users (vendor_id, email) VALUES (%s, 'ops@valle.com'), "
                "(%s, 'OPS@valle.com'), (%s, 'driver@valle.com')",
                (master, dup, dup),
            )

        result = execute_merges(db, [MergeRequest(master, (dup,))])
        assert result.errors == []
        assert (result.vendor_users_repointed, result.vendor_users_deactivated) == (1, 1)

        with db.txn() as cur:
            rows = fetchall(
                cur,
                "SELECT lower(email), is_active FROM vendor_users WHERE vendor_id = %s ORDER BY 1, 2",
                (master,),
            )
        assert rows == [("driver@valle.com", True), ("ops@valle.com", False), ("ops@valle.com", True)]
