from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from PIL import Image

from .. import register_task
from ..errors import EngineError
from ..protocols import ImageToTextEngine


def image_to_text(
    image: Image.Image,
    oem: int = 1,
    psm: int = 6,
    langs: Optional[List[str]] = None,
    extra_args: Optional[List[str]] = None,
) -> Tuple[str, List[float]]:
    """Run Tesseract OCR on an image and return text and token confidences.

    Tokens are regrouped into their recognised lines so that label/value
    pairs on the card stay on the same line of the returned text.
    """
    try:
        import pytesseract
        from pytesseract import Output  # type: ignore

        TesseractError = getattr(pytesseract, "TesseractError", Exception)
        TesseractNotFoundError = getattr(pytesseract, "TesseractNotFoundError", OSError)
    except Exception as exc:  # pragma: no cover - optional dependency
        raise EngineError("MISSING_DEPENDENCY", "pytesseract not available") from exc

    config_parts = [f"--oem {oem}", f"--psm {psm}"]
    if extra_args:
        config_parts.extend(extra_args)
    config = " ".join(config_parts)
    lang = "+".join(langs or ["vie", "eng"])

    try:
        data = pytesseract.image_to_data(image, lang=lang, config=config, output_type=Output.DICT)
    except TesseractNotFoundError as exc:
        raise EngineError("MISSING_DEPENDENCY", "tesseract binary not found") from exc
    except TesseractError as exc:  # pragma: no cover - runtime failure
        raise EngineError("OCR_ERROR", str(exc)) from exc

    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences: List[float] = []
    keys = zip(
        data.get("block_num", []),
        data.get("par_num", []),
        data.get("line_num", []),
        data.get("text", []),
        data.get("conf", []),
    )
    for block, par, line, token, conf in keys:
        if not str(token).strip():
            continue
        lines.setdefault((block, par, line), []).append(str(token).strip())
        if str(conf) != "-1":
            confidences.append(float(conf) / 100)
    text = "\n".join(" ".join(tokens) for _, tokens in sorted(lines.items()))
    return text, confidences


register_task("image_to_text", "tesseract", __name__, "image_to_text")

# Static type checking helper
_IMAGE_TO_TEXT_CHECK: ImageToTextEngine = image_to_text

__all__ = ["image_to_text"]
