from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_NATIONALITY = "Việt Nam"

REQUIRED_FIELDS = [
    "cardNumber",
    "fullName",
    "dateOfBirth",
    "sex",
    "nationality",
    "placeOfOrigin",
    "placeOfResidence",
    "dateOfExpiry",
]

OPTIONAL_FIELDS = [
    "personalIdentification",
    "dateOfIssue",
    "issuingAuthority",
]

CARD_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS

# snake_case aliases accepted by CardRecord.from_mapping
_SNAKE_ALIASES = {
    "card_number": "cardNumber",
    "full_name": "fullName",
    "date_of_birth": "dateOfBirth",
    "place_of_origin": "placeOfOrigin",
    "place_of_residence": "placeOfResidence",
    "date_of_expiry": "dateOfExpiry",
    "personal_identification": "personalIdentification",
    "date_of_issue": "dateOfIssue",
    "issuing_authority": "issuingAuthority",
}

# Confidence reported per extraction source. Informational only.
CONFIDENCE_NFC = 0.99
CONFIDENCE_QR = 0.99
# Raw payload text handed in directly, with no capture step.
CONFIDENCE_PAYLOAD = 0.99
CONFIDENCE_CLOUD_AI = 0.95
CONFIDENCE_GOOGLE_VISION = 0.95
CONFIDENCE_VIETOCR = 0.90
CONFIDENCE_ON_DEVICE_OCR = 0.80


class CardRecord(BaseModel):
    """Canonical fields read from a Vietnamese citizen identity card.

    Every field is a display string and defaults to ``""`` so that
    :meth:`to_dict` always carries the full key set. Dates are expected in
    ``DD/MM/YYYY`` once normalised. Records are immutable; use
    :meth:`model_copy` with ``update=`` to derive a new one.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    cardNumber: str = ""
    fullName: str = ""
    dateOfBirth: str = ""
    sex: str = ""
    nationality: str = ""
    placeOfOrigin: str = ""
    placeOfResidence: str = ""
    dateOfExpiry: str = ""
    personalIdentification: str = ""
    dateOfIssue: str = ""
    issuingAuthority: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple, dict)):
            return ""
        return str(value).strip()

    @classmethod
    def empty(cls) -> "CardRecord":
        return cls()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "CardRecord":
        """Build a record from camelCase or snake_case keys, ignoring unknown ones."""
        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            name = _SNAKE_ALIASES.get(key, key)
            if name in CARD_FIELDS:
                values[name] = value
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        """Return every field keyed by its camelCase name."""
        return {name: getattr(self, name) for name in CARD_FIELDS}

    def has_data(self) -> bool:
        """True when any field other than nationality carries a value.

        Nationality is forced to a fixed literal by several parsers, so it
        does not count as extracted data on its own.
        """
        return any(getattr(self, name) for name in CARD_FIELDS if name != "nationality")


class ErrorKind(str, Enum):
    """Failure categories surfaced in :class:`ScanResult.error_code`."""

    UNSUPPORTED = "unsupported"
    NO_DATA = "no_data"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELLED = "cancelled"


@dataclass
class ScanResult:
    """Envelope returned by every source adapter.

    ``success`` implies ``data`` is present with at least one extracted
    field; a failure carries ``error`` and no ``data``.
    """

    success: bool
    data: Optional[CardRecord] = None
    error: Optional[str] = None
    confidence: Optional[float] = None
    error_code: Optional[ErrorKind] = None
    source: Optional[str] = None
    diagnostics: List[str] = field(default_factory=list)

    @classmethod
    def ok(
        cls,
        record: CardRecord,
        confidence: float,
        source: Optional[str] = None,
        diagnostics: Optional[List[str]] = None,
        empty_error: str = "No card data could be extracted.",
    ) -> "ScanResult":
        if not record.has_data():
            return cls.fail(empty_error, ErrorKind.NO_DATA, source, diagnostics)
        return cls(
            success=True,
            data=record,
            confidence=max(0.0, min(1.0, float(confidence))),
            source=source,
            diagnostics=list(diagnostics or []),
        )

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: ErrorKind = ErrorKind.NO_DATA,
        source: Optional[str] = None,
        diagnostics: Optional[List[str]] = None,
    ) -> "ScanResult":
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            source=source,
            diagnostics=list(diagnostics or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if self.success and self.data is not None:
            out["data"] = self.data.to_dict()
            out["confidence"] = self.confidence
        else:
            out["error"] = self.error
            if self.error_code is not None:
                out["errorCode"] = self.error_code.value
        if self.source:
            out["source"] = self.source
        if self.diagnostics:
            out["diagnostics"] = list(self.diagnostics)
        return out


__all__ = [
    "CardRecord",
    "ScanResult",
    "ErrorKind",
    "CARD_FIELDS",
    "REQUIRED_FIELDS",
    "OPTIONAL_FIELDS",
    "DEFAULT_NATIONALITY",
    "CONFIDENCE_NFC",
    "CONFIDENCE_QR",
    "CONFIDENCE_PAYLOAD",
    "CONFIDENCE_CLOUD_AI",
    "CONFIDENCE_GOOGLE_VISION",
    "CONFIDENCE_VIETOCR",
    "CONFIDENCE_ON_DEVICE_OCR",
]
