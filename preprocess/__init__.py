from __future__ import annotations

from typing import Dict, Any, Callable, Optional, Tuple

import numpy as np
from PIL import Image, ImageOps, ImageEnhance

_PREPROCESSORS: Dict[str, Callable[[Image.Image, Dict[str, Any]], Image.Image]] = {}

# Card background: light, green-dominant, but not blown-out white.
CARD_COLOR_MIN = 150
CARD_COLOR_MAX = 250
CARD_MIN_COVERAGE = 0.1
CARD_MIN_SPAN = 0.3


def register_preprocessor(
    name: str, func: Callable[[Image.Image, Dict[str, Any]], Image.Image]
) -> None:
    """Register a preprocessing step.

    Steps are called with the current :class:`PIL.Image.Image` and the
    preprocessing flow dictionary and must return a new image.
    """
    _PREPROCESSORS[name] = func


def grayscale(image: Image.Image) -> Image.Image:
    """Convert image to grayscale."""
    return ImageOps.grayscale(image)


def _otsu_threshold(gray: np.ndarray) -> int:
    hist, _ = np.histogram(gray.flatten(), bins=256, range=(0, 255))
    total = gray.size
    sum_total = np.dot(hist, np.arange(256))
    sumB = 0.0
    wB = 0.0
    max_var = 0.0
    threshold = 0
    for i in range(256):
        wB += hist[i]
        if wB == 0:
            continue
        wF = total - wB
        if wF == 0:
            break
        sumB += i * hist[i]
        mB = sumB / wB
        mF = (sum_total - sumB) / wF
        var_between = wB * wF * (mB - mF) ** 2
        if var_between > max_var:
            max_var = var_between
            threshold = i
    return threshold


def _sauvola_threshold(
    gray: np.ndarray, window_size: int = 25, k: float = 0.2, r: int = 128
) -> np.ndarray:
    """Compute Sauvola threshold surface for ``gray`` image."""
    pad = window_size // 2
    padded = np.pad(gray, pad, mode="reflect")
    integral = np.cumsum(np.cumsum(padded, axis=0), axis=1)
    integral = np.pad(integral, ((1, 0), (1, 0)), mode="constant")
    integral_sq = np.cumsum(np.cumsum(padded**2, axis=0), axis=1)
    integral_sq = np.pad(integral_sq, ((1, 0), (1, 0)), mode="constant")
    w = window_size
    sum_ = integral[w:, w:] - integral[:-w, w:] - integral[w:, :-w] + integral[:-w, :-w]
    sum_sq = (
        integral_sq[w:, w:] - integral_sq[:-w, w:] - integral_sq[w:, :-w] + integral_sq[:-w, :-w]
    )
    area = w * w
    mean = sum_ / area
    variance = sum_sq / area - mean**2
    std = np.sqrt(np.maximum(variance, 0))
    return mean * (1 + k * (std / r - 1))


def binarize(image: Image.Image, method: str = "otsu", window_size: int = 25, k: float = 0.2) -> Image.Image:
    """Binarize ``image`` with Otsu's global threshold or Sauvola's adaptive one."""
    if method == "adaptive":
        gray = np.array(image.convert("L"), dtype=float)
        h, w = gray.shape
        window_size = min(window_size, h, w)
        if window_size % 2 == 0:
            window_size -= 1
        window_size = max(window_size, 3)
        thresh = _sauvola_threshold(gray, window_size=window_size, k=k)
        return Image.fromarray((gray > thresh).astype(np.uint8) * 255)
    gray = np.array(image.convert("L"))
    thresh = _otsu_threshold(gray)
    return Image.fromarray((gray > thresh).astype(np.uint8) * 255)


def contrast(image: Image.Image, factor: float) -> Image.Image:
    """Adjust image contrast by ``factor``."""
    enhancer = ImageEnhance.Contrast(image)
    return enhancer.enhance(factor)


def resize(image: Image.Image, max_dim: Optional[int] = None, min_dim: Optional[int] = None) -> Image.Image:
    """Scale so the longest side lies within ``[min_dim, max_dim]``."""
    w, h = image.size
    longest = max(w, h)
    if max_dim and longest > max_dim:
        scale = max_dim / float(longest)
    elif min_dim and longest < min_dim:
        scale = min_dim / float(longest)
    else:
        return image
    new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
    return image.resize(new_size, Image.Resampling.LANCZOS)


def find_card_bounds(image: Image.Image) -> Optional[Tuple[int, int, int, int]]:
    """Locate the card by its background colour.

    Returns ``(left, top, right, bottom)`` of the card-coloured pixels, or
    ``None`` when they cover too little of the frame to be a card.
    """
    rgb = np.asarray(image.convert("RGB")).astype(np.int16)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    mask = (
        (r > CARD_COLOR_MIN) & (g > CARD_COLOR_MIN) & (b > CARD_COLOR_MIN)
        & (g > r) & (g > b)
        & (r < CARD_COLOR_MAX) & (g < CARD_COLOR_MAX) & (b < CARD_COLOR_MAX)
    )
    height, width = mask.shape
    if mask.size == 0 or mask.sum() / mask.size <= CARD_MIN_COVERAGE:
        return None
    ys, xs = np.nonzero(mask)
    left, right = int(xs.min()), int(xs.max())
    top, bottom = int(ys.min()), int(ys.max())
    if right - left <= width * CARD_MIN_SPAN or bottom - top <= height * CARD_MIN_SPAN:
        return None
    return left, top, right + 1, bottom + 1


def crop_to_card(image: Image.Image) -> Image.Image:
    """Crop to :func:`find_card_bounds`, or return ``image`` unchanged."""
    bounds = find_card_bounds(image)
    if bounds is None:
        return image
    return image.crop(bounds)


def preprocess_image(image: Image.Image, cfg: Dict[str, Any]) -> Image.Image:
    """Apply the steps listed in ``cfg["pipeline"]`` and return the new image."""
    img = image
    for step in cfg.get("pipeline", []):
        func = _PREPROCESSORS.get(step)
        if not func:
            raise KeyError(f"Preprocessor '{step}' is not registered")
        img = func(img, cfg)
    return img


register_preprocessor("grayscale", lambda img, cfg: grayscale(img))
register_preprocessor("autocrop", lambda img, cfg: crop_to_card(img))
register_preprocessor(
    "binarize",
    lambda img, cfg: binarize(
        img,
        cfg.get("binarize_method", "otsu"),
        int(cfg.get("adaptive_window_size", 25)),
        float(cfg.get("adaptive_k", 0.2)),
    ),
)


def _contrast_step(img: Image.Image, cfg: Dict[str, Any]) -> Image.Image:
    factor = cfg.get("contrast_factor")
    if factor:
        return contrast(img, float(factor))
    return img


register_preprocessor("contrast", _contrast_step)


def _resize_step(img: Image.Image, cfg: Dict[str, Any]) -> Image.Image:
    return resize(img, cfg.get("max_dim_px"), cfg.get("min_dim_px"))


register_preprocessor("resize", _resize_step)

__all__ = [
    "register_preprocessor",
    "grayscale",
    "binarize",
    "contrast",
    "resize",
    "find_card_bounds",
    "crop_to_card",
    "preprocess_image",
]
