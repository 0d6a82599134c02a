"""Tests for spreadsheet parsing and guest row normalization."""

import pytest

from guestbridge.domain.errors import ValidationError
from guestbridge.domain.normalizer import (
    coerce_int,
    normalize_guest_row,
    normalize_header,
    parse_csv_text,
    split_companion,
    split_name,
)


class TestNormalizeHeader:
    def test_spaces_become_underscores(self):
        assert normalize_header("  Nombre Completo ") == "nombre_completo"

    def test_non_ascii_dropped(self):
        assert normalize_header("Acompañante") == "acompaante"

    def test_punctuation_dropped(self):
        assert normalize_header("Room Revenue ($)") == "room_revenue_"


class TestParseCsvText:
    def test_rows_keyed_by_normalized_header(self):
        records = parse_csv_text("Nombre Completo,Email\nJane Doe, jane@example.com \n")
        assert len(records) == 1
        assert records[0].fields == {"nombre_completo": "Jane Doe", "email": "jane@example.com"}
        assert records[0].line_no == 2
        assert records[0].error is None

    def test_byte_order_mark_stripped(self):
        records = parse_csv_text("\ufeffID_Huesped,Nombre\nL-1,Jane\n")
        assert "id_huesped" in records[0].fields

    def test_blank_lines_ignored(self):
        records = parse_csv_text("Nombre\n\nJane\n , \n\nLuis\n")
        assert [r.fields for r in records] == [{"nombre": "Jane"}, {"nombre": "Luis"}]

    def test_quoted_commas_kept(self):
        records = parse_csv_text('Nombre,Notas\nJane,"likes sea view, high floor"\n')
        assert records[0].fields["notas"] == "likes sea view, high floor"

    def test_malformed_row_reported_not_raised(self):
        records = parse_csv_text("a,b\n1,2,3\n4,5\n")
        assert records[0].error == "Malformed row 2: expected 2 columns, got 3"
        assert records[0].fields == {}
        assert records[1].fields == {"a": "4", "b": "5"}

    @pytest.mark.parametrize("text", ["", "Nombre,Email\n", "\n\n"])
    def test_no_data_lines_rejected(self, text):
        with pytest.raises(ValidationError, match="CSV is empty"):
            parse_csv_text(text)

    def test_unusable_header_rejected(self):
        with pytest.raises(ValidationError, match="no usable column names"):
            parse_csv_text("$$,%%\n1,2\n")


class TestNameHelpers:
    def test_split_name_last_token_is_surname(self):
        assert split_name("Ana Maria Lopez") == ("Ana Maria", "Lopez")

    def test_split_name_single_token(self):
        assert split_name("Cher") == ("Cher", "")

    def test_split_name_empty(self):
        assert split_name("   ") == ("", "")

    def test_split_companion_case_insensitive(self):
        assert split_companion("Jane Doe Y Carlos Ruiz", " y ") == ("Jane Doe", "Carlos Ruiz", False)

    def test_split_companion_multiple(self):
        primary, companion, multi = split_companion("Ana Lopez y Luis y Marta", " y ")
        assert primary == "Ana Lopez"
        assert companion == "Luis y Marta"
        assert multi is True

    def test_conjunction_needs_surrounding_spaces(self):
        assert split_companion("Maya Ybarra", " y ") == ("Maya Ybarra", "", False)

    def test_custom_conjunction(self):
        assert split_companion("Jane Doe & Carlos", " & ") == ("Jane Doe", "Carlos", False)

    @pytest.mark.parametrize(
        "value,expected", [("3", 3), ("2.0", 2), ("", 0), ("vip", 0), ("-1", -1)]
    )
    def test_coerce_int(self, value, expected):
        assert coerce_int(value) == expected


class TestNormalizeGuestRow:
    def test_companion_split_from_full_name(self):
        row = normalize_guest_row(
            {"id_huesped": "L-100", "nombre_completo": "Jane Doe y Carlos Ruiz"}
        )
        assert row.legacy_id == "L-100"
        assert row.full_name == "Jane Doe y Carlos Ruiz"
        assert row.primary_name == "Jane Doe"
        assert row.first_name == "Jane"
        assert row.last_name == "Doe"
        assert row.companion == "Carlos Ruiz"
        assert row.multi_companion is False

    def test_explicit_companion_column_wins(self):
        row = normalize_guest_row(
            {"nombre_completo": "Jane Doe y Carlos Ruiz", "acompaante": "C. Ruiz"}
        )
        assert row.companion == "C. Ruiz"
        assert row.primary_name == "Jane Doe"

    def test_explicit_first_and_last_kept(self):
        row = normalize_guest_row(
            {"nombre_completo": "Jane Doe", "nombre": "Janet", "apellido": "Doe-Smith"}
        )
        assert (row.first_name, row.last_name) == ("Janet", "Doe-Smith")

    def test_name_in_last_name_column_only(self):
        row = normalize_guest_row({"apellido": "Maria Lopez"})
        assert row.first_name == "Maria"
        assert row.last_name == "Lopez"
        assert row.primary_name == "Maria Lopez"

    def test_english_aliases(self):
        row = normalize_guest_row(
            {
                "guest_id": "77",
                "full_name": "John Smith",
                "email": "JOHN@example.com",
                "phone": "+1 555 0100",
                "country": "US",
                "notes": "late arrival",
            }
        )
        assert row.legacy_id == "77"
        assert row.email == "JOHN@example.com"
        assert row.nationality == "US"
        assert row.notes == "late arrival"

    def test_vip_and_stats(self):
        row = normalize_guest_row(
            {"nombre_completo": "Jane Doe", "vip": "2", "llegadas": "4", "room_revenue": "1200.50"}
        )
        assert row.vip == 2
        assert row.stats.to_dict() == {"arrivals": "4", "nights": "0", "revenue": "1200.50"}

    def test_garbage_vip_is_zero(self):
        assert normalize_guest_row({"nombre_completo": "Jane Doe", "vip": "gold"}).vip == 0

    def test_conjunction_is_configurable(self):
        row = normalize_guest_row({"full_name": "Jane Doe and Carlos"}, conjunction=" and ")
        assert row.primary_name == "Jane Doe"
        assert row.companion == "Carlos"

    def test_error_record_carries_error_only(self):
        row = normalize_guest_row({}, error="Malformed row 5: expected 3 columns, got 2")
        assert row.error.startswith("Malformed row 5")
        assert row.primary_name == ""
