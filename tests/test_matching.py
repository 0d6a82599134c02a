"""Tests for identity matching against canonical guests."""

from guestbridge.domain.matching import GuestIndex, is_strong_match, lookup_keys
from helpers import guest, guest_row


class TestGuestIndexPrecedence:
    def test_legacy_id_beats_email_and_name(self):
        by_legacy = guest("g-legacy", legacy_id="L-1", full_name="Someone Else")
        by_email = guest("g-email", email="jane@example.com", full_name="Other Person")
        by_name = guest("g-name", full_name="Jane Doe")
        index = GuestIndex([by_name, by_email, by_legacy])

        row = guest_row(legacy_id="L-1", email="jane@example.com")
        assert index.match(row) is by_legacy

    def test_email_beats_name(self):
        by_email = guest("g-email", email="Jane@Example.com", full_name="J. Doe")
        by_name = guest("g-name", full_name="Jane Doe")
        index = GuestIndex([by_name, by_email])

        assert index.match(guest_row(email="jane@example.COM")) is by_email

    def test_unknown_legacy_id_falls_through_to_email(self):
        by_email = guest("g-email", email="jane@example.com")
        index = GuestIndex([by_email])

        assert index.match(guest_row(legacy_id="L-404", email="jane@example.com")) is by_email

    def test_name_match_is_case_insensitive_on_primary_name(self):
        by_name = guest("g-name", full_name="JANE DOE")
        index = GuestIndex([by_name])

        row = guest_row(full_name="Jane Doe y Carlos Ruiz", primary_name="jane doe")
        assert index.match(row) is by_name

    def test_no_match(self):
        index = GuestIndex([guest("g-1", full_name="Luis Perez")])
        assert index.match(guest_row()) is None

    def test_row_without_keys_never_matches(self):
        index = GuestIndex([guest("g-1", full_name="")])
        assert index.match(guest_row(full_name="", primary_name="", first_name="")) is None


class TestGuestIndexTies:
    def test_first_candidate_wins_on_shared_name(self):
        oldest = guest("g-old", full_name="Jane Doe")
        newer = guest("g-new", full_name="Jane Doe")
        index = GuestIndex([oldest, newer])

        assert index.match(guest_row()) is oldest

    def test_first_candidate_wins_on_shared_email(self):
        oldest = guest("g-old", email="shared@example.com", full_name="A")
        newer = guest("g-new", email="shared@example.com", full_name="B")
        index = GuestIndex([oldest, newer])

        assert index.match(guest_row(email="shared@example.com")) is oldest

    def test_len_counts_distinct_guests(self):
        g = guest("g-1", legacy_id="L-1", email="jane@example.com")
        assert len(GuestIndex([g, guest("g-2", full_name="Luis Perez")])) == 2


class TestIsStrongMatch:
    def test_legacy_id(self):
        assert is_strong_match(guest_row(legacy_id="L-1"), guest(legacy_id="L-1"))

    def test_email(self):
        assert is_strong_match(guest_row(email="JANE@x.com"), guest(email="jane@x.com"))

    def test_name_only_is_weak(self):
        assert not is_strong_match(guest_row(), guest(full_name="Jane Doe"))

    def test_different_legacy_id_is_weak(self):
        assert not is_strong_match(guest_row(legacy_id="L-1"), guest(legacy_id="L-2"))


class TestLookupKeys:
    def test_distinct_sorted_lowercased(self):
        rows = [
            guest_row(legacy_id="L-2", email="B@x.com", primary_name="Jane Doe"),
            guest_row(legacy_id="L-1", email="b@x.com", primary_name="JANE DOE"),
            guest_row(primary_name="Luis Perez"),
        ]
        legacy_ids, emails, names = lookup_keys(rows)
        assert legacy_ids == ["L-1", "L-2"]
        assert emails == ["b@x.com"]
        assert names == ["jane doe", "luis perez"]

    def test_empty_batch(self):
        assert lookup_keys([]) == ([], [], [])
