"""Tests for Opera sync orchestration."""

from __future__ import annotations

from unittest.mock import patch

from guestbridge.domain.errors import CollaboratorError, FatalError, ValidationError
from guestbridge.domain.feed_import import FeedImportResult
from guestbridge.domain.opera_sync import record_upload, run_opera_sync
from guestbridge.mail.gmail_fetcher import FetchResult
from helpers import FakeDatabase

MODULE = "guestbridge.domain.opera_sync"


class _Fetcher:
    def __init__(self, result: FetchResult | None = None, error: Exception | None = None):
        self._result = result or FetchResult()
        self._error = error

    def fetch_attachments(self) -> FetchResult:
        if self._error:
            raise self._error
        return self._result


def _factory(fetcher):
    return lambda: fetcher


class TestRunOperaSync:
    def test_imports_every_payload_and_records_ledger(self):
        fetched = FetchResult(messages_found=2, xml_payloads=["<a/>", "<b/>"])
        results = [
            FeedImportResult(total=3, created=2, updated=1),
            FeedImportResult(total=2, created=0, updated=0, unchanged=2),
        ]
        db = FakeDatabase()
        with patch(f"{MODULE}.import_feed", side_effect=results) as imported, \
             patch(f"{MODULE}.record_run", return_value=None) as record:
            summary = run_opera_sync(db, _factory(_Fetcher(fetched)), triggered_by="cron")

        assert [c.args[1] for c in imported.call_args_list] == ["<a/>", "<b/>"]
        assert summary == {
            "emails_found": 2,
            "xmls_processed": 2,
            "reservations_created": 2,
            "reservations_updated": 1,
            "errors": [],
        }
        entry = record.call_args.args[1]
        assert entry.source == "opera_feed"
        assert entry.triggered_by == "cron"
        assert entry.details["unchanged"] == 2
        assert len(entry.details["imports"]) == 2

    def test_nothing_to_fetch(self):
        with patch(f"{MODULE}.record_run", return_value=None) as record:
            summary = run_opera_sync(FakeDatabase(), _factory(_Fetcher()))
        assert summary["emails_found"] == 0
        assert summary["xmls_processed"] == 0
        assert summary["errors"] == []
        assert record.call_args.args[1].triggered_by == "manual"

    def test_mailbox_unavailable_is_reported(self):
        fetcher = _Fetcher(error=CollaboratorError("Gmail list failed: 503"))
        with patch(f"{MODULE}.import_feed") as imported, \
             patch(f"{MODULE}.record_run", return_value=None) as record:
            summary = run_opera_sync(FakeDatabase(), _factory(fetcher))

        imported.assert_not_called()
        assert summary["errors"] == ["Gmail: Gmail list failed: 503"]
        assert record.call_args.args[1].errors == ("Gmail: Gmail list failed: 503",)

    def test_factory_failure_is_reported(self):
        def factory():
            raise CollaboratorError("Missing mail settings: GMAIL_USER_EMAIL")

        with patch(f"{MODULE}.record_run", return_value=None):
            summary = run_opera_sync(FakeDatabase(), factory)
        assert summary["errors"] == ["Gmail: Missing mail settings: GMAIL_USER_EMAIL"]

    def test_message_and_record_errors_are_prefixed(self):
        fetched = FetchResult(
            messages_found=2, xml_payloads=["<a/>"], errors=["Message m2: bad base64"]
        )
        result = FeedImportResult(total=2, created=1, errors=["RESV 9: missing FULL_NAME"])
        with patch(f"{MODULE}.import_feed", return_value=result), \
             patch(f"{MODULE}.record_run", return_value=None):
            summary = run_opera_sync(FakeDatabase(), _factory(_Fetcher(fetched)))

        assert summary["errors"] == [
            "Gmail: Message m2: bad base64",
            "XML 1: RESV 9: missing FULL_NAME",
        ]

    def test_unparsable_payload_skipped(self):
        fetched = FetchResult(messages_found=1, xml_payloads=["<oops", "<ok/>"])
        with patch(
            f"{MODULE}.import_feed",
            side_effect=[ValidationError("Unparsable XML: no element found"), FeedImportResult(created=1)],
        ), patch(f"{MODULE}.record_run", return_value=None):
            summary = run_opera_sync(FakeDatabase(), _factory(_Fetcher(fetched)))

        assert summary["xmls_processed"] == 1
        assert summary["reservations_created"] == 1
        assert summary["errors"] == ["XML 1: Unparsable XML: no element found"]

    def test_lost_connection_stops_remaining_payloads(self):
        fetched = FetchResult(messages_found=1, xml_payloads=["<a/>", "<b/>"])
        with patch(f"{MODULE}.import_feed", side_effect=FatalError("connection lost")) as imported, \
             patch(f"{MODULE}.record_run", return_value=None):
            summary = run_opera_sync(FakeDatabase(), _factory(_Fetcher(fetched)))

        assert imported.call_count == 1
        assert summary["errors"] == ["XML 1: connection lost"]

    def test_ledger_failure_appended(self):
        with patch(f"{MODULE}.record_run", return_value="Sync ledger entry not recorded: x"):
            summary = run_opera_sync(FakeDatabase(), _factory(_Fetcher()))
        assert summary["errors"] == ["Sync ledger entry not recorded: x"]


class TestRecordUpload:
    def test_upload_entry(self):
        result = FeedImportResult(total=4, created=1, updated=2, unchanged=1, errors=["RESV 3: x"])
        with patch(f"{MODULE}.record_run", return_value=None) as record:
            assert record_upload(FakeDatabase(), result) is None

        entry = record.call_args.args[1]
        assert entry.source == "opera_upload"
        assert entry.xmls_processed == 1
        assert (entry.created, entry.updated) == (1, 2)
        assert entry.errors == ("RESV 3: x",)
        assert entry.details == {"total": 4, "unchanged": 1}
