from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image

from cccd.payload import parse_model_response
from cccd.schema import CONFIDENCE_CLOUD_AI
from io_utils import image_to_base64

from ..errors import EngineError, classify_exception
from ..prompts import load_messages
from ..protocols import ImageToCardEngine

try:  # optional dependency
    from openai import OpenAI  # type: ignore
except Exception:  # pragma: no cover
    OpenAI: type | None = None  # Explicit: OpenAI may be None if not installed

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"


def image_to_card(
    image: Image.Image,
    *,
    model: str = DEFAULT_MODEL,
    api_key: Optional[str] = None,
    dry_run: bool = False,
    prompt_dir: Optional[Path] = None,
) -> Tuple[Dict[str, str], Dict[str, float]]:
    """Extract card fields from ``image`` with an OpenAI vision model.

    The model is asked for a single JSON object keyed by the card's field
    names. Fenced or chatty responses are tolerated; an unparseable reply
    yields a record holding only the default nationality.
    """
    messages = load_messages("image_to_card", prompt_dir)
    if dry_run:
        return {}, {}
    if OpenAI is None:
        raise EngineError("MISSING_DEPENDENCY", "OpenAI SDK not available")

    # OpenAI() itself reads OPENAI_API_KEY when api_key is None
    try:
        client = OpenAI(api_key=api_key) if api_key else OpenAI()
    except Exception as exc:
        raise EngineError(classify_exception(exc), str(exc)) from exc

    b64 = image_to_base64(image)
    messages[-1]["content"] = [
        {"type": "text", "text": messages[-1]["content"]},
        {
            "type": "image_url",
            "image_url": {"url": f"data:image/jpeg;base64,{b64}", "detail": "high"},
        },
    ]

    try:
        resp = client.chat.completions.create(
            model=model, messages=messages, max_tokens=1000, temperature=0.1
        )
    except Exception as exc:  # pragma: no cover - network issues
        raise EngineError(classify_exception(exc), str(exc)) from exc

    content = resp.choices[0].message.content or ""
    if not content.strip():
        raise EngineError("PARSE_ERROR", "No response received from OpenAI")
    logger.debug("OpenAI returned %d characters", len(content))

    fields = parse_model_response(content).to_dict()
    confidences = {k: CONFIDENCE_CLOUD_AI for k, v in fields.items() if v}
    return fields, confidences


# Static type checking helper
_IMAGE_TO_CARD_CHECK: ImageToCardEngine = image_to_card
