"""
Protocol interfaces for the card extraction pipeline.

These protocols define the contracts that extraction sources must implement,
so the orchestrator can treat the wireless tag, the optical code, text
recognition and cloud vision models uniformly.

Uses typing.Protocol for structural subtyping - implementations don't need
to explicitly inherit, they just need to implement the required members.

## SourceAdapter Protocol

Required properties:
- `name: str` - Source identifier reported in results (e.g., "qr")
- `confidence: float` - Confidence attached to successful results
- `is_available: bool` - Runtime availability check

Required methods:
- `extract(source) -> ScanResult` - Main extraction

Implementation notes:
- Must never raise; every failure is a `ScanResult.fail(...)`
- A success must carry a record with at least one extracted field
- Diagnostics gathered during the attempt go in `ScanResult.diagnostics`

Example:
    class MySource:
        name = "my-source"
        confidence = 0.9

        @property
        def is_available(self) -> bool:
            return _check_dependencies()

        def extract(self, source) -> ScanResult:
            ...

## TagReader Protocol

The platform wireless-tag reader, driven by `src.nfc.NFCReaderSession`.

Required methods:
- `is_supported() -> bool`
- `async request_permission() -> bool`
- `start(on_reading, on_error) -> None` - begin scanning; callbacks fire at most once each
- `stop() -> None` - release the hardware
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Protocol, Union, runtime_checkable

from cccd.schema import ScanResult


@dataclass(frozen=True)
class PixelBuffer:
    """Raw RGBA pixels, row-major, 4 bytes per pixel."""

    width: int
    height: int
    data: bytes


@dataclass(frozen=True)
class TagRecord:
    """One NDEF record delivered by a wireless-tag reader.

    ``record_type`` is ``"text"``, ``"mime"`` or ``"url"``; ``data`` holds the
    raw payload bytes or an already decoded string.
    """

    record_type: str
    data: Union[bytes, str]
    media_type: str = ""
    encoding: str = "utf-8"


@dataclass
class TagEvent:
    """A reading event: the records of one tag."""

    records: List[TagRecord] = field(default_factory=list)
    serial_number: str = ""


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for extraction sources (NFC, QR, OCR, cloud AI)."""

    @property
    def name(self) -> str:
        """Source name reported in results."""
        ...

    @property
    def confidence(self) -> float:
        """Confidence attached to successful results."""
        ...

    @property
    def is_available(self) -> bool:
        """Check if the source can run on this system."""
        ...

    def extract(self, source: Any) -> ScanResult:
        """Extract a card record from ``source``.

        Args:
            source: Input accepted by the adapter (image, payload, tag event)

        Returns:
            ScanResult, never raising
        """
        ...


@runtime_checkable
class TagReader(Protocol):
    """Protocol for platform wireless-tag readers."""

    def is_supported(self) -> bool:
        ...

    def request_permission(self) -> Awaitable[bool]:
        ...

    def start(
        self,
        on_reading: Callable[[TagEvent], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        ...

    def stop(self) -> None:
        ...


__all__ = [
    "PixelBuffer",
    "TagRecord",
    "TagEvent",
    "SourceAdapter",
    "TagReader",
]
