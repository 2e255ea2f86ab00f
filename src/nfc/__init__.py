"""Wireless-tag (NFC) reader session with timeout and cancellation."""

from .reader import (
    DEFAULT_TIMEOUT_SECONDS,
    NFCReaderSession,
    NFCStatus,
    PERMISSION_MESSAGE,
    READ_FAILED_MESSAGE,
    TERMINAL_STATES,
    TIMEOUT_MESSAGE,
    UNSUPPORTED_MESSAGE,
)

__all__ = [
    "NFCReaderSession",
    "NFCStatus",
    "TERMINAL_STATES",
    "DEFAULT_TIMEOUT_SECONDS",
    "UNSUPPORTED_MESSAGE",
    "PERMISSION_MESSAGE",
    "TIMEOUT_MESSAGE",
    "READ_FAILED_MESSAGE",
]
