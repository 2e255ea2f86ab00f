from __future__ import annotations

import json
import os
from http.client import HTTPException
from typing import List, Optional, Tuple
from urllib.error import HTTPError

from PIL import Image

from io_utils import image_to_base64, post_json

from .. import register_task
from ..errors import EngineError
from ..protocols import ImageToTextEngine

ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"


def image_to_text(
    image: Image.Image,
    *,
    api_key: Optional[str] = None,
    langs: Optional[List[str]] = None,
    timeout: float = 30.0,
) -> Tuple[str, List[float]]:
    """Run Google Cloud Vision ``TEXT_DETECTION`` on ``image``.

    The first text annotation holds the full recognised text with line
    breaks preserved. The REST API reports no per-token confidence for this
    feature, so the confidence list is empty.
    """
    key = api_key or os.getenv("GOOGLE_VISION_API_KEY")
    if not key:
        raise EngineError("MISSING_CREDENTIALS", "Google Vision API key not configured")

    payload = {
        "requests": [
            {
                "image": {"content": image_to_base64(image)},
                "features": [{"type": "TEXT_DETECTION", "maxResults": 1}],
                "imageContext": {"languageHints": langs or ["vi", "en"]},
            }
        ]
    }
    try:
        data = post_json(f"{ENDPOINT}?key={key}", payload, timeout=timeout)
    except HTTPError as exc:
        raise EngineError("API_ERROR", f"Google Vision API error: {exc.code}") from exc
    except (OSError, HTTPException, json.JSONDecodeError) as exc:
        # OSError covers URLError, timeouts and connection resets
        raise EngineError("API_ERROR", str(exc)) from exc

    if not isinstance(data, dict):
        raise EngineError("PARSE_ERROR", "Google Vision response is not a JSON object")
    responses = data.get("responses") or [{}]
    first = responses[0] or {}
    if not isinstance(first, dict):
        raise EngineError("PARSE_ERROR", "Google Vision response entry is not a JSON object")
    if "error" in first:
        raise EngineError("API_ERROR", str(first["error"].get("message", first["error"])))
    annotations = first.get("textAnnotations") or []
    text = annotations[0].get("description", "") if annotations else ""
    return text, []


register_task("image_to_text", "google-vision", __name__, "image_to_text")

# Static type checking helper
_IMAGE_TO_TEXT_CHECK: ImageToTextEngine = image_to_text

__all__ = ["image_to_text"]
