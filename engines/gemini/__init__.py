from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image

from cccd.payload import parse_model_response
from cccd.schema import CONFIDENCE_CLOUD_AI

from .. import register_task
from ..errors import EngineError, classify_exception
from ..prompts import load_prompt
from ..protocols import ImageToCardEngine

try:  # optional dependency
    import google.generativeai as genai  # type: ignore
except Exception:  # pragma: no cover
    genai = None

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


def _response_text(response) -> str:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        raise EngineError("SAFETY_BLOCK", f"Prompt blocked: {feedback.block_reason}")
    try:
        return response.text or ""
    except ValueError as exc:
        # The quick accessor raises when the candidate was filtered.
        if "SAFETY" in str(exc):
            raise EngineError("SAFETY_BLOCK", str(exc)) from exc
        raise EngineError(classify_exception(exc), str(exc)) from exc


def image_to_card(
    image: Image.Image,
    *,
    model: str = DEFAULT_MODEL,
    api_key: Optional[str] = None,
    dry_run: bool = False,
    prompt_dir: Optional[Path] = None,
) -> Tuple[Dict[str, str], Dict[str, float]]:
    """Extract card fields from ``image`` with a Gemini vision model.

    Parameters
    ----------
    image:
        Card image, already loaded.
    model:
        Gemini model name.
    api_key:
        API key; falls back to ``GEMINI_API_KEY`` then ``GOOGLE_API_KEY``.
    dry_run:
        When ``True``, no network call is performed and an empty result is returned.
    prompt_dir:
        Optional directory containing prompt files.
    """
    prompt = load_prompt("image_to_card", prompt_dir)
    if dry_run:
        return {}, {}
    if genai is None:
        raise EngineError("MISSING_DEPENDENCY", "google-generativeai SDK not available")
    key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not key:
        raise EngineError("MISSING_CREDENTIALS", "Gemini API key is not configured")

    genai.configure(api_key=key)
    client = genai.GenerativeModel(
        model,
        generation_config={"temperature": 0.1, "max_output_tokens": 1000},
    )
    try:
        response = client.generate_content([image.convert("RGB"), prompt])
    except Exception as exc:  # pragma: no cover - network issues
        raise EngineError(classify_exception(exc), str(exc)) from exc

    text = _response_text(response)
    if not text.strip():
        raise EngineError("PARSE_ERROR", "No response received from Gemini")
    logger.debug("Gemini returned %d characters", len(text))

    fields = parse_model_response(text).to_dict()
    confidences = {k: CONFIDENCE_CLOUD_AI for k, v in fields.items() if v}
    return fields, confidences


register_task("image_to_card", "gemini", __name__, "image_to_card")

# Static type checking helper
_IMAGE_TO_CARD_CHECK: ImageToCardEngine = image_to_card

__all__ = ["image_to_card"]
