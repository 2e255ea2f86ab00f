"""
Wireless-tag (NFC) reader session.

A session drives one platform reader through a single scan:

    CHECKING -> READY -> SCANNING -> SUCCESS | ERROR
                    any state -> CANCELLED

Terminal states are final and a session is single-use. The reader is
released through one idempotent teardown reached from every exit path:
success, error, timeout, cancellation and unexpected exceptions.

Usage:
    async with NFCReaderSession(make_reader, timeout=30) as session:
        result = await session.start_reading()
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

from cccd.schema import ErrorKind, ScanResult
from src.core.adapters.wireless_adapter import WirelessTagAdapter
from src.core.protocols import TagEvent, TagReader

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

UNSUPPORTED_MESSAGE = "NFC is not supported on this device. Please use QR code scanning instead."
PERMISSION_MESSAGE = "NFC permission denied. Please enable NFC in your device settings."
TIMEOUT_MESSAGE = "NFC reading timeout. Please ensure the CCCD card is close to your device."
READ_FAILED_MESSAGE = "NFC reading failed. Please try again."

ReaderFactory = Callable[[], TagReader]


class NFCStatus(str, Enum):
    CHECKING = "checking"
    READY = "ready"
    SCANNING = "scanning"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({NFCStatus.SUCCESS, NFCStatus.ERROR, NFCStatus.CANCELLED})

_READING = "reading"
_ERROR = "error"
_CANCEL = "cancel"


class NFCReaderSession:
    """One scan of a wireless tag, with timeout and cancellation."""

    def __init__(
        self,
        reader_factory: Optional[ReaderFactory],
        adapter: Optional[WirelessTagAdapter] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_status: Optional[Callable[[NFCStatus], None]] = None,
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._factory = reader_factory
        self.adapter = adapter or WirelessTagAdapter()
        self.timeout = timeout
        self._on_status = on_status

        self.status = NFCStatus.CHECKING
        self.result: Optional[ScanResult] = None
        self._reader: Optional[TagReader] = None
        self._started = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Optional[asyncio.Future] = None

    # -- state ---------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def _set_status(self, status: NFCStatus) -> None:
        if self.is_terminal:
            return
        logger.debug("NFC session %s -> %s", self.status.value, status.value)
        self.status = status
        if self._on_status is not None:
            try:
                self._on_status(status)
            except Exception as exc:
                logger.warning("NFC status listener failed: %s", exc)

    def _finish(self, status: NFCStatus, result: Optional[ScanResult]) -> Optional[ScanResult]:
        if self.is_terminal:
            return self.result
        self.result = result
        self._set_status(status)
        return result

    def _fail(self, message: str, kind: ErrorKind) -> ScanResult:
        logger.warning("NFC session failed: %s", message, extra={"source": "nfc"})
        return self._finish(NFCStatus.ERROR, ScanResult.fail(message, kind, "nfc"))

    # -- reader lifecycle ----------------------------------------------------

    def _release(self) -> None:
        """Stop and drop the reader. Safe to call any number of times."""
        reader, started = self._reader, self._started
        self._reader = None
        self._started = False
        if reader is None or not started:
            return
        try:
            reader.stop()
        except Exception as exc:
            logger.warning("Error while stopping NFC reader: %s", exc)

    def _resolve(self, kind: str, payload: Any = None) -> None:
        future = self._pending
        if future is not None and not future.done():
            future.set_result((kind, payload))

    def _post(self, kind: str, payload: Any = None) -> None:
        # Reader callbacks may fire on a platform thread.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._resolve, kind, payload)

    # -- public API ----------------------------------------------------------

    async def check_support(self) -> bool:
        """Create the reader and confirm it is supported and permitted."""
        if self.status is not NFCStatus.CHECKING:
            return self.status in (NFCStatus.READY, NFCStatus.SCANNING, NFCStatus.SUCCESS)

        if self._factory is None:
            self._fail(UNSUPPORTED_MESSAGE, ErrorKind.UNSUPPORTED)
            return False
        try:
            reader = self._factory()
            supported = bool(reader.is_supported())
        except Exception as exc:
            logger.info("NFC reader unavailable: %s", exc)
            self._fail(UNSUPPORTED_MESSAGE, ErrorKind.UNSUPPORTED)
            return False
        if not supported:
            self._fail(UNSUPPORTED_MESSAGE, ErrorKind.UNSUPPORTED)
            return False

        try:
            granted = await reader.request_permission()
        except PermissionError:
            granted = False
        if self.is_terminal:
            # cancelled while the permission prompt was open
            return False
        if not granted:
            self._fail(PERMISSION_MESSAGE, ErrorKind.UNSUPPORTED)
            return False

        self._reader = reader
        self._set_status(NFCStatus.READY)
        return True

    async def start_reading(self) -> Optional[ScanResult]:
        """Scan until a tag is read, the reader fails, time runs out or the
        session is cancelled.

        Returns the ScanResult, or ``None`` when the session was cancelled.
        """
        if self.status is NFCStatus.CHECKING:
            await self.check_support()
        if self.status is not NFCStatus.READY:
            return None if self.status is NFCStatus.CANCELLED else self.result

        self._loop = asyncio.get_running_loop()
        self._pending = self._loop.create_future()
        self._set_status(NFCStatus.SCANNING)
        try:
            self._reader.start(
                lambda event: self._post(_READING, event),
                lambda error: self._post(_ERROR, error),
            )
            self._started = True
            logger.info("NFC scan started", extra={"source": "nfc", "timeout_s": self.timeout})
            kind, payload = await asyncio.wait_for(self._pending, self.timeout)
        except asyncio.TimeoutError:
            return self._fail(TIMEOUT_MESSAGE, ErrorKind.TIMEOUT)
        except asyncio.CancelledError:
            self._finish(NFCStatus.CANCELLED, None)
            raise
        except PermissionError:
            return self._fail(PERMISSION_MESSAGE, ErrorKind.UNSUPPORTED)
        except Exception as exc:
            logger.error("NFC reader failed to start: %s", exc)
            return self._fail(READ_FAILED_MESSAGE, ErrorKind.NO_DATA)
        finally:
            self._release()
            self._pending = None

        if kind == _CANCEL:
            return self._finish(NFCStatus.CANCELLED, None)
        if kind == _ERROR:
            if isinstance(payload, PermissionError):
                return self._fail(PERMISSION_MESSAGE, ErrorKind.UNSUPPORTED)
            logger.error("NFC reading error: %s", payload)
            return self._fail(READ_FAILED_MESSAGE, ErrorKind.NO_DATA)

        event = payload if isinstance(payload, TagEvent) else TagEvent(records=list(payload or []))
        result = self.adapter.extract(event)
        return self._finish(NFCStatus.SUCCESS if result.success else NFCStatus.ERROR, result)

    def cancel(self) -> None:
        """Stop the reader and end the session without a result."""
        if self.is_terminal:
            self._release()
            return
        logger.info("NFC scan cancelled", extra={"source": "nfc"})
        if self._pending is not None and not self._pending.done():
            # start_reading finishes the session when it wakes up
            if self._loop is not None and not self._loop.is_closed():
                self._loop.call_soon_threadsafe(self._resolve, _CANCEL, None)
        else:
            self._finish(NFCStatus.CANCELLED, None)
        self._release()

    async def __aenter__(self) -> "NFCReaderSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.is_terminal:
            self.cancel()
        self._release()


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
