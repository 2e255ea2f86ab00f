"""Preprocessing flows for the text-recognition engines."""

from __future__ import annotations

from typing import Dict, Any

# Recommended preprocessing per engine. Keys are read by the steps registered
# in :mod:`preprocess`.

TESSERACT: Dict[str, Any] = {
    # Tesseract reads the small card print best after cleanup and binarization.
    "pipeline": ["grayscale", "contrast", "binarize", "resize"],
    "binarize_method": "adaptive",
    "contrast_factor": 1.5,
    # Card photos are often small; upscale so glyphs are ~30px tall.
    "min_dim_px": 2000,
    "max_dim_px": 4000,
}

GOOGLE_VISION: Dict[str, Any] = {
    # Cloud Vision handles colour and skew itself; keep uploads small.
    "pipeline": ["resize"],
    "max_dim_px": 2048,
}

VIETOCR: Dict[str, Any] = {
    "pipeline": ["grayscale", "contrast", "resize"],
    "contrast_factor": 1.3,
    "max_dim_px": 2048,
}

CLOUD_AI: Dict[str, Any] = {
    # Vision models operate on lower resolutions.
    "pipeline": ["resize"],
    "max_dim_px": 2048,
}

FLOWS: Dict[str, Dict[str, Any]] = {
    "tesseract": TESSERACT,
    "google-vision": GOOGLE_VISION,
    "vietocr": VIETOCR,
    "gemini": CLOUD_AI,
    "openai": CLOUD_AI,
}


def flow_for(engine: str, auto_crop: bool = False) -> Dict[str, Any]:
    """Return a copy of the flow for ``engine``, optionally cropping to the card first."""
    flow = dict(FLOWS.get(engine, {"pipeline": []}))
    if auto_crop:
        flow["pipeline"] = ["autocrop", *flow.get("pipeline", [])]
    return flow


__all__ = ["TESSERACT", "GOOGLE_VISION", "VIETOCR", "CLOUD_AI", "FLOWS", "flow_for"]
