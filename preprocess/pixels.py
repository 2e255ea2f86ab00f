"""Pure transforms over RGBA pixel buffers.

Every function takes an ``H x W x 4`` ``uint8`` array and returns a new
array; inputs are never modified in place. Alpha is carried through
untouched.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)

Box = Tuple[int, int, int, int]


def to_array(data: bytes, width: int, height: int) -> np.ndarray:
    """View raw RGBA bytes as an ``H x W x 4`` array (copied)."""
    return np.frombuffer(data, dtype=np.uint8).reshape(height, width, 4).copy()


def luma(pixels: np.ndarray) -> np.ndarray:
    """Return the ``H x W`` float luma plane."""
    return pixels[..., :3].astype(np.float32) @ LUMA_WEIGHTS


def _with_rgb(pixels: np.ndarray, rgb: np.ndarray) -> np.ndarray:
    out = pixels.copy()
    out[..., :3] = rgb
    return out


def _with_plane(pixels: np.ndarray, plane: np.ndarray) -> np.ndarray:
    plane = np.clip(plane, 0, 255).astype(np.uint8)
    return _with_rgb(pixels, np.repeat(plane[..., None], 3, axis=2))


def invert(pixels: np.ndarray) -> np.ndarray:
    return _with_rgb(pixels, 255 - pixels[..., :3])


def contrast_stretch(pixels: np.ndarray, factor: float = 1.5) -> np.ndarray:
    """Linear stretch around the midpoint: ``(v - 128) * factor + 128``."""
    rgb = (pixels[..., :3].astype(np.float32) - 128.0) * factor + 128.0
    return _with_rgb(pixels, np.clip(rgb, 0, 255).astype(np.uint8))


def grayscale(pixels: np.ndarray) -> np.ndarray:
    return _with_plane(pixels, luma(pixels))


def threshold(pixels: np.ndarray, level: int = 128) -> np.ndarray:
    """Binary threshold on luma: above ``level`` becomes white, else black."""
    plane = np.where(luma(pixels) > level, 255, 0)
    return _with_plane(pixels, plane)


def upscale(pixels: np.ndarray, factor: int = 2) -> np.ndarray:
    """Nearest-neighbour upscale by an integer factor."""
    return np.repeat(np.repeat(pixels, factor, axis=0), factor, axis=1)


def crop(pixels: np.ndarray, box: Box) -> np.ndarray:
    left, top, right, bottom = box
    return pixels[top:bottom, left:right].copy()


def quadrant_boxes(width: int, height: int, fraction: float = 0.6) -> List[Box]:
    """Corner crops covering ``fraction`` of each axis.

    Ordered top-right, top-left, bottom-right, bottom-left; the code on the
    back of the card sits in the top-right corner.
    """
    w = max(1, int(round(width * fraction)))
    h = max(1, int(round(height * fraction)))
    return [
        (width - w, 0, width, h),
        (0, 0, w, h),
        (width - w, height - h, width, height),
        (0, height - h, w, height),
    ]


def crop_fraction(pixels: np.ndarray, fraction: float = 0.6) -> List[np.ndarray]:
    height, width = pixels.shape[:2]
    return [crop(pixels, box) for box in quadrant_boxes(width, height, fraction)]


__all__ = [
    "to_array",
    "luma",
    "invert",
    "contrast_stretch",
    "grayscale",
    "threshold",
    "upscale",
    "crop",
    "crop_fraction",
    "quadrant_boxes",
]
