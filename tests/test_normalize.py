"""
Tests for field normalisation.

Tests cover:
- Date shapes and idempotence
- Sex tokens
- Name cleanup and card header rejection
- Whole-record normalisation
"""

import pytest

from cccd.normalize import (
    clean_value,
    is_boilerplate,
    is_date_shaped,
    normalize_date,
    normalize_name,
    normalize_record,
    normalize_sex,
    select_name,
)
from cccd.schema import CardRecord


class TestNormalizeDate:
    """Tests for date normalisation."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("01/02/1999", "01/02/1999"),
            ("1999-02-01", "01/02/1999"),
            ("01-02-1999", "01/02/1999"),
            ("01021999", "01/02/1999"),
            ("  1999-02-01 ", "01/02/1999"),
        ],
    )
    def test_supported_shapes(self, raw, expected):
        assert normalize_date(raw) == expected

    @pytest.mark.parametrize("raw", ["01/02/1999", "1999-02-01", "01-02-1999", "01021999"])
    def test_idempotent(self, raw):
        """Normalising twice gives the same result as once."""
        once = normalize_date(raw)
        assert normalize_date(once) == once

    def test_unrecognised_returned_unchanged(self):
        assert normalize_date("Feb 1st 1999") == "Feb 1st 1999"
        assert normalize_date("1/2/99") == "1/2/99"

    def test_empty(self):
        assert normalize_date("") == ""
        assert normalize_date(None) == ""

    def test_date_shape_detection(self):
        assert is_date_shaped("01/01/2020")
        assert is_date_shaped("01012020")
        assert not is_date_shaped("Ha Noi")
        assert not is_date_shaped("")


class TestNormalizeSex:
    """Tests for the sex field."""

    @pytest.mark.parametrize(
        "raw,expected",
        [("Nam", "Nam"), ("nữ", "Nữ"), ("MALE", "Male"), ("female.", "Female")],
    )
    def test_known_tokens(self, raw, expected):
        assert normalize_sex(raw) == expected

    def test_decomposed_diacritics(self):
        """Decomposed Unicode input still matches."""
        assert normalize_sex("Nu\u031b\u0303") == "Nữ"

    @pytest.mark.parametrize("raw", ["", "M", "Other", "Nam giới"])
    def test_unknown_left_empty(self, raw):
        assert normalize_sex(raw) == ""


class TestNames:
    """Tests for name cleanup and header rejection."""

    def test_header_is_boilerplate(self):
        assert is_boilerplate("CỘNG HÒA XÃ HỘI CHỦ NGHĨA VIỆT NAM")
        assert is_boilerplate("CĂN CƯỚC CÔNG DÂN")
        assert not is_boilerplate("NGUYỄN VĂN AN")

    @pytest.mark.parametrize(
        "line", ["ĐỘC LẬP - TỰ DO - HẠNH PHÚC", "TỰ DO", "CONG HOA XA HOI", "VIET NAM"]
    )
    def test_motto_and_unaccented_headers(self, line):
        assert is_boilerplate(line)

    def test_phrase_must_be_whole_words(self):
        assert not is_boilerplate("LE TU DOAN")

    def test_short_names_rejected(self):
        assert normalize_name("AB") == ""

    def test_name_cleaned(self):
        assert normalize_name("  TRAN   THI B. ") == "TRAN THI B"

    def test_select_skips_headers(self):
        candidates = ["CỘNG HÒA XÃ HỘI", "VIỆT NAM", "LE VAN C"]
        assert select_name(candidates) == "LE VAN C"

    def test_select_nothing(self):
        assert select_name(["CĂN CƯỚC"]) == ""
        assert select_name([]) == ""

    def test_clean_value(self):
        assert clean_value("Ha  Noi ,") == "Ha Noi"


class TestNormalizeRecord:
    """Tests for whole-record normalisation."""

    def test_dates_and_sex(self):
        record = CardRecord(
            dateOfBirth="1999-01-01",
            dateOfExpiry="01012030",
            dateOfIssue="01-01-2020",
            sex="male",
        )
        normalized = normalize_record(record)

        assert normalized.dateOfBirth == "01/01/1999"
        assert normalized.dateOfExpiry == "01/01/2030"
        assert normalized.dateOfIssue == "01/01/2020"
        assert normalized.sex == "Male"

    @pytest.mark.parametrize("raw", ["M", "Unknown", "X"])
    def test_unknown_sex_cleared(self, raw):
        assert normalize_record(CardRecord(fullName="X Y Z", sex=raw)).sex == ""

    def test_returns_new_record(self, sample_record):
        normalized = normalize_record(sample_record)
        assert normalized == sample_record
        assert normalized is not sample_record
