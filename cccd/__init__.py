from .schema import (
    CardRecord,
    ScanResult,
    ErrorKind,
    CARD_FIELDS,
    DEFAULT_NATIONALITY,
)
from .normalize import (
    clean_value,
    normalize_date,
    normalize_name,
    normalize_record,
    normalize_sex,
    select_name,
)
from .payload import (
    PayloadFormat,
    detect_format,
    parse_payload,
    parse_url_payload,
    parse_model_response,
    to_delimited,
)

__all__ = [
    "CardRecord",
    "ScanResult",
    "ErrorKind",
    "CARD_FIELDS",
    "DEFAULT_NATIONALITY",
    "clean_value",
    "normalize_date",
    "normalize_name",
    "normalize_record",
    "normalize_sex",
    "select_name",
    "PayloadFormat",
    "detect_format",
    "parse_payload",
    "parse_url_payload",
    "parse_model_response",
    "to_delimited",
]
