"""Detect the serialization of a card payload and map it onto a CardRecord.

Payloads arrive from the optical code on the back of the card, from a
wireless tag, or as free text pasted by an operator. The detector checks
shapes in a fixed order (JSON, URL query, pipe, comma, free text) and never
raises: an unrecognised payload falls through to regex extraction.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from .normalize import clean_value, is_date_shaped, nfc, normalize_date, normalize_sex
from .schema import DEFAULT_NATIONALITY, CardRecord

logger = logging.getLogger(__name__)

MIN_DELIMITED_PARTS = 6

# Positional contract for delimited payloads. Index 5 is context dependent:
# a date there is the issue date and residence copies origin.
DELIMITED_FIELDS = [
    "cardNumber",
    "fullName",
    "dateOfBirth",
    "sex",
    "placeOfOrigin",
    "placeOfResidence",
    "dateOfExpiry",
    "dateOfIssue",
]

JSON_KEYS: Dict[str, List[str]] = {
    "cardNumber": ["cccd", "id", "cardNumber", "so_cccd"],
    "fullName": ["name", "fullName", "ho_ten"],
    "dateOfBirth": ["dob", "dateOfBirth", "ngay_sinh"],
    "sex": ["sex", "gender", "gioi_tinh"],
    "placeOfOrigin": ["placeOfOrigin", "origin", "que_quan", "address"],
    "placeOfResidence": ["placeOfResidence", "residence", "noi_thuong_tru", "address"],
    "dateOfExpiry": ["expiry", "expire_date", "dateOfExpiry", "ngay_het_han"],
    "dateOfIssue": ["issued", "issue_date", "dateOfIssue", "ngay_cap"],
    "issuingAuthority": ["issuingAuthority", "noi_cap"],
    "personalIdentification": ["personalIdentification", "dac_diem"],
}

URL_KEYS: Dict[str, List[str]] = {
    "cardNumber": ["cccd", "id"],
    "fullName": ["name", "fullName"],
    "dateOfBirth": ["dob", "dateOfBirth"],
    "sex": ["sex", "gender"],
    "placeOfOrigin": ["origin", "placeOfOrigin"],
    "placeOfResidence": ["residence", "placeOfResidence"],
    "dateOfExpiry": ["expiry", "dateOfExpiry"],
    "dateOfIssue": ["issued", "dateOfIssue"],
}

_DATE_FIELDS = ("dateOfBirth", "dateOfExpiry", "dateOfIssue")
_URL_SHAPE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://[^\s?]+\?.+$")
_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_JSON_SPAN = re.compile(r"\{[\s\S]*\}")

MODEL_RESPONSE_KEYS = [
    "cardNumber",
    "fullName",
    "dateOfBirth",
    "sex",
    "nationality",
    "placeOfOrigin",
    "placeOfResidence",
    "dateOfExpiry",
    "personalIdentification",
    "dateOfIssue",
    "issuingAuthority",
]


class PayloadFormat(str, Enum):
    JSON = "json"
    PIPE = "pipe"
    COMMA = "comma"
    URL = "url"
    TEXT = "text"
    EMPTY = "empty"


def detect_format(text: Optional[str]) -> PayloadFormat:
    """Classify ``text`` by shape only; no field mapping is attempted."""
    stripped = nfc(text).strip()
    if not stripped:
        return PayloadFormat.EMPTY
    if stripped[0] in "{[":
        try:
            json.loads(stripped)
            return PayloadFormat.JSON
        except ValueError:
            pass
    if _URL_SHAPE.match(stripped):
        return PayloadFormat.URL
    if "|" in stripped and len(stripped.split("|")) >= MIN_DELIMITED_PARTS:
        return PayloadFormat.PIPE
    if "," in stripped and len(stripped.split(",")) >= MIN_DELIMITED_PARTS:
        return PayloadFormat.COMMA
    return PayloadFormat.TEXT


def _first_value(mapping: Mapping[str, Any], keys: List[str]) -> str:
    for key in keys:
        value = mapping.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def _finish(values: Dict[str, str]) -> CardRecord:
    for name in _DATE_FIELDS:
        if name in values:
            values[name] = normalize_date(values[name])
    values["sex"] = normalize_sex(values.get("sex"))
    values["nationality"] = DEFAULT_NATIONALITY
    return CardRecord(**values)


def parse_json_payload(text: str) -> Optional[CardRecord]:
    """Map a JSON object (or the first object in a JSON list) onto a record."""
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, list):
        data = next((item for item in data if isinstance(item, dict)), None)
    if not isinstance(data, dict):
        return None
    values = {name: _first_value(data, keys) for name, keys in JSON_KEYS.items()}
    return _finish(values)


def parse_delimited_payload(text: str, sep: str) -> Optional[CardRecord]:
    """Map a delimited payload using the eight-field positional contract."""
    parts = [part.strip() for part in text.split(sep)]
    if len(parts) < MIN_DELIMITED_PARTS:
        return None
    values: Dict[str, str] = {}
    for index, name in enumerate(DELIMITED_FIELDS[:5]):
        values[name] = parts[index]
    if is_date_shaped(parts[5]):
        values["dateOfIssue"] = parts[5]
        values["placeOfResidence"] = values["placeOfOrigin"]
    else:
        values["placeOfResidence"] = parts[5]
    if len(parts) > 6:
        values["dateOfExpiry"] = parts[6]
    if len(parts) > 7 and not values.get("dateOfIssue"):
        values["dateOfIssue"] = parts[7]
    return _finish(values)


def parse_url_payload(text: Optional[str]) -> Optional[CardRecord]:
    """Map named query parameters of a URL payload; ``None`` if not a URL."""
    stripped = nfc(text).strip()
    if not stripped:
        return None
    try:
        parts = urlsplit(stripped)
    except ValueError:
        return None
    if not parts.scheme or not parts.query:
        return None
    params = {key: values[0] for key, values in parse_qs(parts.query).items() if values}
    values = {name: _first_value(params, keys) for name, keys in URL_KEYS.items()}
    return _finish(values)


def parse_payload(text: Optional[str]) -> CardRecord:
    """Parse a decoded payload of any supported format into a CardRecord.

    Blank input yields an entirely empty record. Every other input yields a
    record whose nationality is forced to ``"Việt Nam"``.
    """
    stripped = nfc(text).strip()
    if not stripped:
        return CardRecord.empty()

    if stripped[0] in "{[":
        record = parse_json_payload(stripped)
        if record is not None:
            logger.debug("Payload parsed as JSON")
            return record

    if _URL_SHAPE.match(stripped):
        record = parse_url_payload(stripped)
        if record is not None:
            logger.debug("Payload parsed as URL query")
            return record

    for sep, label in (("|", "pipe"), (",", "comma")):
        if sep in stripped:
            record = parse_delimited_payload(stripped, sep)
            if record is not None:
                logger.debug("Payload parsed as %s-delimited", label)
                return record

    from src.ocr.rules_engine import parse_card_text

    logger.debug("No structured payload format detected; using text extraction")
    record = parse_card_text(stripped)
    return record.model_copy(update={"nationality": DEFAULT_NATIONALITY})


def to_delimited(record: CardRecord, sep: str = "|") -> str:
    """Serialise ``record`` using the eight-field positional contract."""
    return sep.join(getattr(record, name).replace(sep, " ") for name in DELIMITED_FIELDS)


def parse_model_response(text: Optional[str]) -> CardRecord:
    """Read the JSON object a vision model returned for a card image.

    Code fences are stripped and the first ``{...}`` span is decoded. Any
    failure yields an empty record with the default nationality.
    """
    cleaned = _FENCE.sub("", nfc(text)).strip()
    match = _JSON_SPAN.search(cleaned)
    if not match:
        logger.warning("Model response contained no JSON object")
        return CardRecord(nationality=DEFAULT_NATIONALITY)
    try:
        data = json.loads(match.group(0))
    except ValueError as exc:
        logger.warning("Could not decode model response JSON: %s", exc)
        return CardRecord(nationality=DEFAULT_NATIONALITY)
    if not isinstance(data, dict):
        return CardRecord(nationality=DEFAULT_NATIONALITY)
    values = {
        key: clean_value(data[key]) if isinstance(data.get(key), str) else data.get(key)
        for key in MODEL_RESPONSE_KEYS
    }
    record = CardRecord.from_mapping(values)
    if not record.nationality:
        record = record.model_copy(update={"nationality": DEFAULT_NATIONALITY})
    return record
