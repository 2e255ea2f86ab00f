"""
Optical code (QR) source adapter.

Loads the image, runs the multi-strategy decoder and maps the decoded
payload onto a card record.
"""

import logging
import time
from importlib.util import find_spec
from typing import Optional, Union

from PIL import UnidentifiedImageError

from cccd.payload import parse_payload
from cccd.schema import CONFIDENCE_QR, ErrorKind, ScanResult
from io_utils import ImageInput, load_image, to_pixels
from src.core.protocols import PixelBuffer
from src.qr.decoder import (
    DEFAULT_CONTRAST_FACTOR,
    DecodeError,
    DecodePrimitive,
    build_strategies,
    decode_optical_code,
)

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load image for QR scanning."
NO_CODE_MESSAGE = "No QR code detected after trying multiple scanning methods."
EMPTY_PAYLOAD_MESSAGE = "QR code was decoded but contained no CCCD data."
UNAVAILABLE_MESSAGE = "QR decoding is unavailable: zxing-cpp is not installed."


def to_pixel_buffer(source: Union[ImageInput, PixelBuffer]) -> PixelBuffer:
    if isinstance(source, PixelBuffer):
        return source
    pixels = to_pixels(load_image(source))
    height, width = pixels.shape[:2]
    return PixelBuffer(width=width, height=height, data=pixels.tobytes())


class OpticalCodeAdapter:
    """
    Source adapter for the QR code printed on the card.

    The decoder tries every strategy before giving up; this adapter only
    maps its outcome onto a ScanResult.
    """

    def __init__(
        self,
        primitive: Optional[DecodePrimitive] = None,
        contrast_factor: float = DEFAULT_CONTRAST_FACTOR,
    ):
        self._primitive = primitive
        self._strategies = build_strategies(contrast_factor)

    @property
    def name(self) -> str:
        return "qr"

    @property
    def confidence(self) -> float:
        return CONFIDENCE_QR

    @property
    def is_available(self) -> bool:
        return self._primitive is not None or find_spec("zxingcpp") is not None

    def extract(self, source: Union[ImageInput, PixelBuffer]) -> ScanResult:
        """Decode the card's QR code from an image or pixel buffer."""
        diagnostics: list[str] = []
        if not self.is_available:
            return ScanResult.fail(UNAVAILABLE_MESSAGE, ErrorKind.UNSUPPORTED, self.name)

        try:
            buffer = to_pixel_buffer(source)
        except (UnidentifiedImageError, OSError, ValueError, TypeError) as exc:
            logger.warning("Could not load image for QR scanning: %s", exc)
            diagnostics.append(f"qr:load:error:{exc}")
            return ScanResult.fail(LOAD_FAILED_MESSAGE, ErrorKind.NO_DATA, self.name, diagnostics)

        start = time.perf_counter()
        try:
            text = decode_optical_code(
                buffer,
                primitive=self._primitive,
                strategies=self._strategies,
                on_diagnostic=diagnostics.append,
            )
        except DecodeError as exc:
            logger.warning("Rejected pixel buffer: %s", exc.message)
            return ScanResult.fail(exc.message, ErrorKind.NO_DATA, self.name, diagnostics)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        if not text:
            logger.info(
                "No QR code found",
                extra={"source": self.name, "duration_ms": duration_ms},
            )
            return ScanResult.fail(NO_CODE_MESSAGE, ErrorKind.NO_DATA, self.name, diagnostics)

        logger.debug("Decoded QR payload: %s", text)
        record = parse_payload(text)
        result = ScanResult.ok(
            record, self.confidence, self.name, diagnostics, empty_error=EMPTY_PAYLOAD_MESSAGE
        )
        logger.info(
            "QR scan finished",
            extra={"source": self.name, "duration_ms": duration_ms, "success": result.success},
        )
        return result
