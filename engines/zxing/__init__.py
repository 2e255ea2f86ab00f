from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from PIL import Image

from .. import register_task
from ..errors import EngineError
from ..protocols import Inversion, OpticalCodeEngine

logger = logging.getLogger(__name__)


def _read_barcodes(zxingcpp, gray: np.ndarray):
    formats = zxingcpp.BarcodeFormat.QRCode
    try:
        return zxingcpp.read_barcodes(gray, formats=formats, try_harder=True)
    except TypeError:
        # Older bindings without try_harder
        return zxingcpp.read_barcodes(gray, formats=formats)


def decode_optical_code(
    pixels: np.ndarray, inversion: Inversion = Inversion.ATTEMPT_BOTH
) -> Optional[str]:
    """Decode a QR code from an ``H x W x 4`` RGBA array with zxing-cpp.

    Polarity is handled here in numpy rather than by the library so every
    inversion mode behaves the same across binding versions.
    """
    try:
        import zxingcpp
    except Exception as exc:  # pragma: no cover - optional dependency
        raise EngineError("MISSING_DEPENDENCY", "zxing-cpp not available") from exc

    gray = np.asarray(Image.fromarray(pixels).convert("L"))
    if inversion is Inversion.DONT_INVERT:
        candidates = [gray]
    elif inversion is Inversion.ONLY_INVERT:
        candidates = [255 - gray]
    else:
        candidates = [gray, 255 - gray]

    for candidate in candidates:
        for result in _read_barcodes(zxingcpp, np.ascontiguousarray(candidate)):
            text = getattr(result, "text", "")
            if text:
                return text
    return None


register_task("decode_optical_code", "zxing", __name__, "decode_optical_code")

# Static type checking helper
_OPTICAL_CODE_CHECK: OpticalCodeEngine = decode_optical_code

__all__ = ["decode_optical_code", "Inversion"]
