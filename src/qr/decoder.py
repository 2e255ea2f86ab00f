"""
Optical code decoder with an ordered list of image-transform strategies.

Photographs of the card's QR code are often low contrast, inverted by
glare, off-centre or too small. Each strategy transforms the pixel buffer
once and hands it to the decode primitive; the first non-empty result wins.
Cheap polarity variants run first, geometric transforms later, and the
destructive binary threshold last.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from engines.protocols import Inversion
from preprocess import pixels as px
from src.core.protocols import PixelBuffer

logger = logging.getLogger(__name__)

# decode(pixels, inversion) -> text or None
DecodePrimitive = Callable[[np.ndarray, Inversion], Optional[str]]
DiagnosticSink = Callable[[str], None]

DEFAULT_CONTRAST_FACTOR = 1.5
QUADRANT_FRACTION = 0.6
UPSCALE_FACTOR = 2
THRESHOLD_LEVEL = 128


class DecodeError(Exception):
    """Raised for pixel buffers that cannot be decoded at all."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class Strategy:
    """One transform-and-decode attempt."""

    name: str
    run: Callable[[np.ndarray, DecodePrimitive], Optional[str]]


def _raw(pixels, decode):
    return decode(pixels, Inversion.DONT_INVERT)


def _inverted(pixels, decode):
    return decode(pixels, Inversion.ONLY_INVERT)


def _both_polarities(pixels, decode):
    return decode(pixels, Inversion.ATTEMPT_BOTH)


def _contrast_stretch(pixels, decode, factor: float = DEFAULT_CONTRAST_FACTOR):
    return decode(px.contrast_stretch(pixels, factor), Inversion.ATTEMPT_BOTH)


def _grayscale(pixels, decode):
    return decode(px.grayscale(pixels), Inversion.ATTEMPT_BOTH)


def _quadrants(pixels, decode):
    for region in px.crop_fraction(pixels, QUADRANT_FRACTION):
        if region.size == 0:
            continue
        text = decode(region, Inversion.ATTEMPT_BOTH)
        if text:
            return text
    return None


def _upscale(pixels, decode):
    return decode(px.upscale(pixels, UPSCALE_FACTOR), Inversion.ATTEMPT_BOTH)


def _threshold(pixels, decode):
    return decode(px.threshold(pixels, THRESHOLD_LEVEL), Inversion.ATTEMPT_BOTH)


DEFAULT_STRATEGIES: List[Strategy] = [
    Strategy("raw", _raw),
    Strategy("inverted", _inverted),
    Strategy("both_polarities", _both_polarities),
    Strategy("contrast_stretch", _contrast_stretch),
    Strategy("grayscale", _grayscale),
    Strategy("quadrants", _quadrants),
    Strategy("upscale_2x", _upscale),
    Strategy("threshold", _threshold),
]


def build_strategies(contrast_factor: float = DEFAULT_CONTRAST_FACTOR) -> List[Strategy]:
    """Return the default strategy list with a custom contrast factor."""
    if contrast_factor == DEFAULT_CONTRAST_FACTOR:
        return list(DEFAULT_STRATEGIES)
    return [
        Strategy(s.name, lambda p, d: _contrast_stretch(p, d, contrast_factor))
        if s.name == "contrast_stretch"
        else s
        for s in DEFAULT_STRATEGIES
    ]


def _default_primitive(pixels: np.ndarray, inversion: Inversion) -> Optional[str]:
    from engines import dispatch

    return dispatch("decode_optical_code", pixels, inversion, engine="zxing")


def validate_buffer(buffer: PixelBuffer) -> np.ndarray:
    """Return the ``H x W x 4`` array for ``buffer`` or raise :class:`DecodeError`."""
    if buffer.width <= 0 or buffer.height <= 0:
        raise DecodeError(
            "EMPTY_BUFFER", f"Pixel buffer has no area ({buffer.width}x{buffer.height})."
        )
    expected = buffer.width * buffer.height * 4
    if len(buffer.data) != expected:
        raise DecodeError(
            "CORRUPT_BUFFER",
            f"Pixel buffer holds {len(buffer.data)} bytes, expected {expected} "
            f"for {buffer.width}x{buffer.height} RGBA.",
        )
    return px.to_array(buffer.data, buffer.width, buffer.height)


def decode_optical_code(
    buffer: PixelBuffer,
    primitive: Optional[DecodePrimitive] = None,
    strategies: Optional[List[Strategy]] = None,
    on_diagnostic: Optional[DiagnosticSink] = None,
) -> Optional[str]:
    """Decode the optical code in ``buffer``.

    Returns the decoded text, or ``None`` once every strategy has been tried
    without a result. The winning strategy is reported only through logging
    and ``on_diagnostic``.

    Raises
    ------
    DecodeError
        If the buffer has zero area or the wrong byte length. No strategy
        runs in that case.
    """
    pixels = validate_buffer(buffer)
    decode = primitive or _default_primitive
    note = on_diagnostic or (lambda message: None)

    for strategy in strategies or DEFAULT_STRATEGIES:
        start = time.perf_counter()
        try:
            text = strategy.run(pixels, decode)
        except Exception as exc:
            # A failing primitive only rules out this strategy.
            logger.debug("Strategy %s raised: %s", strategy.name, exc)
            note(f"qr:{strategy.name}:error:{exc}")
            continue
        duration_ms = (time.perf_counter() - start) * 1000
        if text:
            logger.debug(
                "Optical code decoded by strategy %s",
                strategy.name,
                extra={"strategy": strategy.name, "duration_ms": round(duration_ms, 2)},
            )
            note(f"qr:{strategy.name}:hit")
            return text
        logger.debug(
            "Strategy %s found nothing",
            strategy.name,
            extra={"strategy": strategy.name, "duration_ms": round(duration_ms, 2)},
        )
        note(f"qr:{strategy.name}:miss")

    logger.info("No optical code found after %d strategies", len(strategies or DEFAULT_STRATEGIES))
    return None


__all__ = [
    "DecodeError",
    "Strategy",
    "DEFAULT_STRATEGIES",
    "build_strategies",
    "decode_optical_code",
    "validate_buffer",
]
