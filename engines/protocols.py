"""Protocol definitions for engine call signatures.

Third-party engines should implement these protocols so they can be
registered and dispatched correctly by the :mod:`engines` plugin system.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np
from PIL import Image


class Inversion(str, Enum):
    """Polarity search performed by an optical-code decode primitive."""

    DONT_INVERT = "dont_invert"
    ONLY_INVERT = "only_invert"
    ATTEMPT_BOTH = "attempt_both"


class ImageToTextEngine(Protocol):
    """Callable converting an image into text with token confidences."""

    def __call__(self, image: Image.Image, *args, **kwargs) -> Tuple[str, List[float]]:
        """Extract text from ``image`` and return text and confidences."""
        ...


class ImageToCardEngine(Protocol):
    """Callable mapping a card image directly to card fields."""

    def __call__(
        self, image: Image.Image, *args, **kwargs
    ) -> Tuple[Dict[str, str], Dict[str, float]]:
        """Return camelCase card fields and per-field confidences."""
        ...


class OpticalCodeEngine(Protocol):
    """Callable decoding a machine-readable code from an RGBA pixel array."""

    def __call__(self, pixels: np.ndarray, *args, **kwargs) -> Optional[str]:
        """Return the decoded text, or ``None`` when nothing was found."""
        ...


__all__ = ["Inversion", "ImageToTextEngine", "ImageToCardEngine", "OpticalCodeEngine"]
