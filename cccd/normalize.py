"""Field-level normalisation shared by every extraction path."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Optional

from .schema import CardRecord

BOILERPLATE_PHRASES = (
    "CỘNG HÒA",
    "VIỆT NAM",
    "CĂN CƯỚC",
    "SOCIALIST REPUBLIC",
    "CITIZEN IDENTITY",
    "IDENTITY CARD",
    "ĐỘC LẬP",
    "TỰ DO",
    "HẠNH PHÚC",
    # unaccented forms produced by OCR
    "CONG HOA",
    "VIET NAM",
    "CAN CUOC",
    "DOC LAP",
    "TU DO",
    "HANH PHUC",
)

MIN_NAME_LENGTH = 3

_BOILERPLATE = re.compile(
    "|".join(rf"(?<!\w){re.escape(phrase)}(?!\w)" for phrase in BOILERPLATE_PHRASES)
)

_DMY_SLASH = re.compile(r"(\d{2})/(\d{2})/(\d{4})")
_YMD_DASH = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_DMY_DASH = re.compile(r"(\d{2})-(\d{2})-(\d{4})")
_DMY_COMPACT = re.compile(r"(\d{2})(\d{2})(\d{4})")

_SEX_TOKENS = {
    "nam": "Nam",
    "nữ": "Nữ",
    "male": "Male",
    "female": "Female",
}

_WS = re.compile(r"\s+")
_TRAILING_PUNCT = re.compile(r"[\s.,;:|/\\-]+$")


def nfc(text: Optional[str]) -> str:
    """Return ``text`` in Unicode NFC form; ``None`` becomes ``""``."""
    if not text:
        return ""
    return unicodedata.normalize("NFC", text)


def normalize_date(value: Optional[str]) -> str:
    """Normalise a date to ``DD/MM/YYYY``.

    Accepted shapes are ``DD/MM/YYYY``, ``YYYY-MM-DD``, ``DD-MM-YYYY`` and
    ``DDMMYYYY``. Anything else is returned stripped but otherwise
    unchanged. The transform is idempotent.
    """
    text = (value or "").strip()
    if not text:
        return ""
    if _DMY_SLASH.fullmatch(text):
        return text
    match = _YMD_DASH.fullmatch(text)
    if match:
        year, month, day = match.groups()
        return f"{day}/{month}/{year}"
    match = _DMY_DASH.fullmatch(text) or _DMY_COMPACT.fullmatch(text)
    if match:
        day, month, year = match.groups()
        return f"{day}/{month}/{year}"
    return text


def is_date_shaped(value: Optional[str]) -> bool:
    text = (value or "").strip()
    return any(
        pattern.fullmatch(text)
        for pattern in (_DMY_SLASH, _YMD_DASH, _DMY_DASH, _DMY_COMPACT)
    )


def normalize_sex(value: Optional[str]) -> str:
    """Return the canonical sex token, or ``""`` when not recognised."""
    token = nfc(value).strip().rstrip(".,;:").lower()
    return _SEX_TOKENS.get(token, "")


def clean_value(value: Optional[str]) -> str:
    """Collapse internal whitespace and strip trailing punctuation."""
    text = _WS.sub(" ", nfc(value)).strip()
    return _TRAILING_PUNCT.sub("", text)


def is_boilerplate(candidate: str) -> bool:
    return _BOILERPLATE.search(nfc(candidate).upper()) is not None


def normalize_name(candidate: Optional[str]) -> str:
    """Return a cleaned name, or ``""`` if it is boilerplate or too short."""
    text = clean_value(candidate)
    if len(text) < MIN_NAME_LENGTH or is_boilerplate(text):
        return ""
    return text


def select_name(candidates: Iterable[str]) -> str:
    """First candidate that survives :func:`normalize_name`."""
    for candidate in candidates:
        name = normalize_name(candidate)
        if name:
            return name
    return ""


def normalize_record(record: CardRecord) -> CardRecord:
    """Apply date, sex and Unicode normalisation to every field of ``record``."""
    values = {name: nfc(value).strip() for name, value in record.to_dict().items()}
    for name in ("dateOfBirth", "dateOfExpiry", "dateOfIssue"):
        values[name] = normalize_date(values[name])
    values["sex"] = normalize_sex(values["sex"])
    return CardRecord(**values)
