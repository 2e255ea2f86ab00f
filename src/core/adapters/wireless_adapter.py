"""
Wireless-tag (NFC) source adapter.

Maps the NDEF records of a tag reading onto a card record. Text and MIME
records go through the payload format detector; URL records are read by
their named query parameters.
"""

import logging
from typing import Iterable, Optional, Union

from cccd.payload import parse_payload, parse_url_payload
from cccd.schema import CONFIDENCE_NFC, CardRecord, ErrorKind, ScanResult
from src.core.protocols import TagEvent, TagRecord

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "Could not read CCCD data from NFC tag."

TagInput = Union[TagEvent, Iterable[TagRecord], str, bytes]


def decode_record_text(record: TagRecord) -> str:
    """Decode a record payload to text.

    Raw NDEF text records start with a status byte whose low six bits give
    the length of an ASCII language code; that prefix is dropped.
    """
    data = record.data
    if isinstance(data, str):
        return data
    raw = bytes(data)
    encoding = record.encoding or "utf-8"
    if record.record_type == "text" and raw:
        lang_len = raw[0] & 0x3F
        lang = raw[1 : 1 + lang_len]
        if 0 < lang_len < len(raw) and all(chr(c).isalpha() or c == 0x2D for c in lang):
            encoding = "utf-16" if raw[0] & 0x80 else "utf-8"
            raw = raw[1 + lang_len :]
    return raw.decode(encoding, errors="replace")


class WirelessTagAdapter:
    """
    Source adapter for wireless-tag readings.

    The first record that yields any card data wins.
    """

    def __init__(self):
        self.stats = {"readings": 0, "records": 0}

    @property
    def name(self) -> str:
        return "nfc"

    @property
    def confidence(self) -> float:
        return CONFIDENCE_NFC

    @property
    def is_available(self) -> bool:
        # Parsing needs no hardware; the reader session checks support.
        return True

    def _records(self, source: TagInput) -> list[TagRecord]:
        if isinstance(source, TagEvent):
            return list(source.records)
        if isinstance(source, (str, bytes)):
            return [TagRecord(record_type="text", data=source)]
        return list(source)

    def parse_record(self, record: TagRecord) -> Optional[CardRecord]:
        kind = (record.record_type or "").lower()
        if kind == "url":
            return parse_url_payload(decode_record_text(record))
        if kind in ("text", "mime"):
            return parse_payload(decode_record_text(record))
        logger.debug("Skipping NDEF record of type %s", record.record_type)
        return None

    def extract(self, source: TagInput) -> ScanResult:
        """Map a tag reading onto a card record."""
        self.stats["readings"] += 1
        diagnostics: list[str] = []
        try:
            records = self._records(source)
        except TypeError as exc:
            logger.warning("Unusable tag reading: %s", exc)
            return ScanResult.fail(NO_DATA_MESSAGE, ErrorKind.NO_DATA, self.name)

        for index, record in enumerate(records):
            self.stats["records"] += 1
            try:
                parsed = self.parse_record(record)
            except (UnicodeDecodeError, ValueError) as exc:
                diagnostics.append(f"nfc:record{index}:{record.record_type}:error:{exc}")
                continue
            if parsed is not None and parsed.has_data():
                diagnostics.append(f"nfc:record{index}:{record.record_type}:hit")
                logger.info("Card data read from NFC tag", extra={"source": self.name})
                return ScanResult.ok(parsed, self.confidence, self.name, diagnostics)
            diagnostics.append(f"nfc:record{index}:{record.record_type}:miss")

        logger.warning("NFC tag carried no card data", extra={"source": self.name})
        return ScanResult.fail(NO_DATA_MESSAGE, ErrorKind.NO_DATA, self.name, diagnostics)
