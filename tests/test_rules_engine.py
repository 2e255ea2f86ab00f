"""
Tests for rules-based extraction from recognised card text.
"""

import pytest

from src.ocr.rules_engine import RulesEngine, parse_card_text


@pytest.fixture
def engine():
    return RulesEngine()


class TestCardText:
    """Tests against a realistic front-of-card text."""

    def test_all_labeled_fields(self, engine, card_text):
        fields, confidences = engine.extract_fields(card_text)

        assert fields["cardNumber"] == "079203001234"
        assert fields["fullName"] == "NGUYỄN THỊ MAI"
        assert fields["dateOfBirth"] == "15/08/1995"
        assert fields["dateOfExpiry"] == "15/08/2035"
        assert fields["sex"] == "Nữ"
        assert fields["nationality"] == "Việt Nam"
        assert fields["placeOfOrigin"] == "Xã Tân Phú, Đồng Nai"
        assert fields["placeOfResidence"] == "12 Lê Lợi, Quận 1, TP Hồ Chí Minh"
        assert set(confidences) == set(fields)

    def test_absent_fields_left_out(self, engine, card_text):
        fields, _ = engine.extract_fields(card_text)
        assert "dateOfIssue" not in fields
        assert "issuingAuthority" not in fields

    def test_back_of_card(self, engine):
        text = (
            "Đặc điểm nhân dạng / Personal identification: Sẹo chấm cách 2cm trên đuôi mắt trái\n"
            "Ngày, tháng, năm / Date, month, year: 10/10/2021\n"
            "CỤC TRƯỞNG CỤC CẢNH SÁT QUẢN LÝ HÀNH CHÍNH VỀ TRẬT TỰ XÃ HỘI\n"
        )
        fields, _ = engine.extract_fields(text)

        assert fields["personalIdentification"] == "Sẹo chấm cách 2cm trên đuôi mắt trái"
        assert fields["dateOfIssue"] == "10/10/2021"

    def test_issuing_authority(self, engine):
        fields, _ = engine.extract_fields("Nơi cấp: Cục Cảnh sát QLHC về TTXH")
        assert fields["issuingAuthority"] == "Cục Cảnh sát QLHC về TTXH"


class TestScenarios:
    """Tests for the documented parsing behaviour."""

    def test_labeled_name_sex_and_dates(self):
        record = parse_card_text("Họ và tên: TRAN THI B\nGiới tính: Nữ\n12/05/1990 12/05/2030")

        assert record.fullName == "TRAN THI B"
        assert record.sex == "Nữ"
        assert record.dateOfBirth == "12/05/1990"
        assert record.dateOfExpiry == "12/05/2030"

    def test_single_date_is_birth_date(self):
        record = parse_card_text("NGUYEN VAN A 01/01/1999")
        assert record.dateOfBirth == "01/01/1999"
        assert record.dateOfExpiry == ""

    def test_header_only_yields_no_name(self):
        record = parse_card_text("CỘNG HÒA XÃ HỘI CHỦ NGHĨA VIỆT NAM")
        assert record.fullName == ""

    @pytest.mark.parametrize(
        "header",
        [
            "CỘNG HÒA XÃ HỘI CHỦ NGHĨA VIỆT NAM\nĐỘC LẬP - TỰ DO - HẠNH PHÚC",
            "CONG HOA XA HOI CHU NGHIA VIET NAM\nDOC LAP - TU DO - HANH PHUC",
        ],
    )
    def test_motto_is_not_a_name(self, header):
        record = parse_card_text(f"{header}\nSố: 001199012345")

        assert record.fullName == ""
        assert record.cardNumber == "001199012345"

    def test_unlabeled_name_after_headers(self):
        record = parse_card_text("CỘNG HÒA XÃ HỘI CHỦ NGHĨA VIỆT NAM\nCĂN CƯỚC CÔNG DÂN\nPHẠM VĂN LONG")
        assert record.fullName == "PHẠM VĂN LONG"

    def test_ocr_path_does_not_force_nationality(self):
        assert parse_card_text("001199012345").nationality == ""

    @pytest.mark.parametrize(
        "text",
        [
            "001199012345",
            "Số: 001199012345",
            "abc001199012345xyz",
            "noise 12/05/1990 ### 001199012345 ###",
            "1234 001199012345 56789",
        ],
    )
    def test_card_number_in_arbitrary_text(self, text):
        assert parse_card_text(text).cardNumber == "001199012345"

    def test_longer_digit_runs_ignored(self):
        assert parse_card_text("0011990123456").cardNumber == ""

    @pytest.mark.parametrize("text", ["", "   ", "\n\n", None])
    def test_blank_input(self, text):
        record = parse_card_text(text)
        assert not record.has_data()
        assert record.nationality == ""

    def test_noise_tolerated(self, engine):
        fields, _ = engine.extract_fields("@@@ ### ~~~ 12/34 ---")
        assert fields == {}


class TestStats:
    """Tests for extraction statistics."""

    def test_counts(self, engine, card_text):
        engine.extract_fields(card_text)
        engine.extract_fields("")
        stats = engine.get_stats()

        assert stats["extractions"] == 2
        assert stats["fields_extracted"] >= 8
        assert stats["extractor_errors"] == 0

    def test_failing_extractor_is_isolated(self, engine, monkeypatch):
        def boom(text):
            raise RuntimeError("bad pattern")

        monkeypatch.setattr(engine, "_extract_sex", boom)
        fields, _ = engine.extract_fields("Giới tính: Nam\n001199012345")

        assert fields["cardNumber"] == "001199012345"
        assert "sex" not in fields
        assert engine.get_stats()["extractor_errors"] == 1
