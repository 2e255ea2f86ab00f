"""
Rules-based field extraction from recognised card text.

Uses regex patterns and heuristics to pull card fields out of the
free text returned by a text-recognition engine, without AI.
"""

import logging
import re
from typing import Callable, Iterator, Optional

from cccd.normalize import clean_value, nfc, normalize_sex, select_name
from cccd.schema import CardRecord

logger = logging.getLogger(__name__)

# Uppercase letters printed on the card: ASCII plus precomposed Vietnamese.
VN_UPPER = (
    "A-Z"
    "ÀÁẢÃẠĂẰẮẲẴẶÂẦẤẨẪẬ"
    "ÈÉẺẼẸÊỀẾỂỄỆ"
    "ÌÍỈĨỊ"
    "ÒÓỎÕỌÔỒỐỔỖỘƠỜỚỞỠỢ"
    "ÙÚỦŨỤƯỪỨỬỮỰ"
    "ỲÝỶỸỴ"
    "Đ"
)
_WORD = f"[{VN_UPPER}]+"
# Words separated by horizontal whitespace only; a name never spans lines.
UPPER_RUN = rf"{_WORD}(?:[^\S\n]+{_WORD})*"

CARD_NUMBER = re.compile(r"(?<!\d)\d{12}(?!\d)")
DATE = re.compile(r"(?<!\d)\d{2}/\d{2}/\d{4}(?!\d)")
UNLABELED_NAME = re.compile(rf"(?<!\w){UPPER_RUN}(?!\w)")

LINE_VALUE = r"[^\n]+"
SEX_VALUE = r"(?i:Nam|Nữ|Male|Female)(?!\w)"
DATE_VALUE = r"[^\n\d]*?(?P<date>\d{2}/\d{2}/\d{4})"


def labeled(vi_labels, en_labels, value: str = LINE_VALUE) -> re.Pattern:
    """Compile ``<label>[ / <english label>][:] <value>``.

    Labels match case-insensitively; the value does not. The value is the
    rest of the label's line, or the next line when the label ends its line.
    """
    labels = "|".join(re.escape(label) for label in [*vi_labels, *en_labels])
    english = "|".join(re.escape(label) for label in en_labels)
    pattern = (
        rf"(?<!\w)(?i:{labels})"
        rf"(?:[^\S\n]*/[^\S\n]*(?i:{english}))?"
        rf"[^\S\n]*:?[^\S\n]*(?:\n[^\S\n]*)?"
        rf"(?P<value>{value})"
    )
    return re.compile(pattern)


class RulesEngine:
    """
    Extract card fields using pattern matching rules.

    Fast, deterministic, and free - but less forgiving than a vision model.
    Every extractor is optional: a failure or a miss leaves its field empty.
    """

    NAME = labeled(["Họ và tên", "Họ tên"], ["Full name"], UPPER_RUN + r"(?!\w)")
    SEX = labeled(["Giới tính"], ["Sex"], SEX_VALUE)
    NATIONALITY = labeled(["Quốc tịch"], ["Nationality"])
    ORIGIN = labeled(["Quê quán"], ["Place of origin"])
    RESIDENCE = labeled(["Nơi thường trú"], ["Place of residence"])
    PERSONAL_ID = labeled(
        ["Đặc điểm nhận dạng", "Đặc điểm nhân dạng"], ["Personal identification"]
    )
    ISSUE_DATE = labeled(
        ["Ngày cấp", "Ngày, tháng, năm"], ["Date of issue", "Date, month, year"], DATE_VALUE
    )
    AUTHORITY = labeled(["Cơ quan cấp", "Nơi cấp"], ["Issuing authority"])

    def __init__(self):
        """Initialize rules engine."""
        self.stats = {"extractions": 0, "fields_extracted": 0, "extractor_errors": 0}

    def extract_fields(self, ocr_text: Optional[str]) -> tuple[dict[str, str], dict[str, float]]:
        """
        Extract card fields from recognised text using rules.

        Args:
            ocr_text: Plain text from a text-recognition engine

        Returns:
            Tuple of (card_fields, confidence_scores), camelCase keyed
        """
        self.stats["extractions"] += 1

        fields: dict[str, str] = {}
        confidences: dict[str, float] = {}

        text = self._clean_text(ocr_text or "")
        if not text:
            return fields, confidences

        extractors: list[tuple[str, Callable[[str], tuple[str, float]]]] = [
            ("cardNumber", self._extract_card_number),
            ("fullName", self._extract_name),
            ("dateOfBirth", self._extract_birth_date),
            ("dateOfExpiry", self._extract_expiry_date),
            ("sex", self._extract_sex),
            ("nationality", self._simple(self.NATIONALITY)),
            ("placeOfOrigin", self._simple(self.ORIGIN)),
            ("placeOfResidence", self._simple(self.RESIDENCE)),
            ("personalIdentification", self._simple(self.PERSONAL_ID)),
            ("dateOfIssue", self._extract_issue_date),
            ("issuingAuthority", self._simple(self.AUTHORITY)),
        ]

        for field_name, extractor in extractors:
            try:
                value, confidence = extractor(text)
            except Exception as exc:
                self.stats["extractor_errors"] += 1
                logger.debug("Extractor for %s failed: %s", field_name, exc)
                continue
            if value:
                fields[field_name] = value
                confidences[field_name] = confidence
                self.stats["fields_extracted"] += 1

        return fields, confidences

    def extract_record(self, ocr_text: Optional[str]) -> CardRecord:
        fields, _ = self.extract_fields(ocr_text)
        return CardRecord(**fields)

    def get_stats(self) -> dict:
        """Get extraction statistics."""
        return self.stats.copy()

    def _clean_text(self, text: str) -> str:
        """Compose diacritics and tidy line breaks, keeping line structure."""
        text = nfc(text).replace("\r\n", "\n").replace("\r", "\n")
        text = re.sub(r"[^\S\n]+", " ", text)
        text = re.sub(r"\n\s*\n+", "\n", text)
        return text.strip()

    def _extract_card_number(self, text: str) -> tuple[str, float]:
        match = CARD_NUMBER.search(text)
        if match:
            return match.group(0), 0.95
        return "", 0.0

    def _dates(self, text: str) -> list[str]:
        return DATE.findall(text)

    def _extract_birth_date(self, text: str) -> tuple[str, float]:
        dates = self._dates(text)
        return (dates[0], 0.85) if dates else ("", 0.0)

    def _extract_expiry_date(self, text: str) -> tuple[str, float]:
        dates = self._dates(text)
        return (dates[1], 0.80) if len(dates) >= 2 else ("", 0.0)

    def _name_candidates(self, text: str) -> Iterator[str]:
        for match in self.NAME.finditer(text):
            yield match.group("value")
        for match in UNLABELED_NAME.finditer(text):
            yield match.group(0)

    def _extract_name(self, text: str) -> tuple[str, float]:
        """Labeled name first, then any uppercase run, skipping card headers."""
        name = select_name(self._name_candidates(text))
        return (name, 0.85) if name else ("", 0.0)

    def _extract_sex(self, text: str) -> tuple[str, float]:
        match = self.SEX.search(text)
        if match:
            return normalize_sex(match.group("value")), 0.90
        return "", 0.0

    def _extract_issue_date(self, text: str) -> tuple[str, float]:
        match = self.ISSUE_DATE.search(text)
        if match:
            return match.group("date"), 0.85
        return "", 0.0

    def _simple(self, pattern: re.Pattern) -> Callable[[str], tuple[str, float]]:
        def extract(text: str) -> tuple[str, float]:
            for match in pattern.finditer(text):
                value = clean_value(match.group("value"))
                if value:
                    return value, 0.80
            return "", 0.0

        return extract


_default_engine: Optional[RulesEngine] = None


def parse_card_text(text: Optional[str]) -> CardRecord:
    """Parse free card text with a shared :class:`RulesEngine`."""
    global _default_engine
    if _default_engine is None:
        _default_engine = RulesEngine()
    return _default_engine.extract_record(text)


__all__ = ["RulesEngine", "parse_card_text", "labeled", "VN_UPPER"]
