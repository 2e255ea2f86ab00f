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

DEFAULT_URL = "http://localhost:8000/ocr"


def image_to_text(
    image: Image.Image,
    *,
    api_url: Optional[str] = None,
    language: str = "vi",
    timeout: float = 30.0,
) -> Tuple[str, List[float]]:
    """Send ``image`` to a VietOCR server and return the recognised text.

    The server accepts ``{"image": <base64>, "language": "vi"}`` and answers
    ``{"text": ...}`` with an optional ``confidence``.
    """
    url = api_url or os.getenv("VIETOCR_API_URL") or DEFAULT_URL
    payload = {"image": image_to_base64(image), "language": language}
    try:
        data = post_json(url, payload, timeout=timeout)
    except HTTPError as exc:
        raise EngineError("API_ERROR", f"VietOCR API error: {exc.code}") from exc
    except (OSError, HTTPException, json.JSONDecodeError) as exc:
        # OSError covers URLError, timeouts and connection resets
        raise EngineError("API_ERROR", str(exc)) from exc

    if not isinstance(data, dict):
        raise EngineError("PARSE_ERROR", "VietOCR response is not a JSON object")
    text = str(data.get("text") or "")
    confidence = data.get("confidence")
    return text, [float(confidence)] if confidence is not None else []


register_task("image_to_text", "vietocr", __name__, "image_to_text")

# Static type checking helper
_IMAGE_TO_TEXT_CHECK: ImageToTextEngine = image_to_text

__all__ = ["image_to_text"]
