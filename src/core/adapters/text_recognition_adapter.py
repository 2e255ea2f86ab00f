"""
Text-recognition (OCR) source adapter.

Runs one text-recognition engine over the card image and parses the
recognised text with the rules engine. Already-recognised text can be
passed straight in as a ``str``; image paths must be ``Path`` objects.
"""

import logging
import time
from importlib.util import find_spec
from typing import Any, Dict, Optional, Union

from PIL import Image, UnidentifiedImageError

from cccd.normalize import normalize_record
from cccd.schema import (
    CardRecord,
    CONFIDENCE_GOOGLE_VISION,
    CONFIDENCE_ON_DEVICE_OCR,
    CONFIDENCE_VIETOCR,
    ErrorKind,
    ScanResult,
)
from engines import dispatch
from engines.errors import EngineError, classify_exception, error_kind
from io_utils import ImageInput, load_image
from preprocess import preprocess_image
from preprocess.flows import flow_for
from src.ocr.rules_engine import RulesEngine

logger = logging.getLogger(__name__)

ENGINE_CONFIDENCE = {
    "tesseract": CONFIDENCE_ON_DEVICE_OCR,
    "google-vision": CONFIDENCE_GOOGLE_VISION,
    "vietocr": CONFIDENCE_VIETOCR,
}

# Python modules each engine needs; REST engines need nothing beyond stdlib.
ENGINE_MODULES = {"tesseract": "pytesseract"}

NO_DATA_MESSAGE = (
    "Could not extract CCCD information. "
    "Please ensure the card is clearly visible and try again."
)
SCAN_FAILED_MESSAGE = "Failed to scan CCCD. Please try again with a clearer image."
LOAD_FAILED_MESSAGE = "Failed to load image for text recognition."


class TextRecognitionAdapter:
    """
    Source adapter for text recognition plus rule-based parsing.

    Engines: ``tesseract`` (on-device), ``google-vision`` (Cloud Vision
    TEXT_DETECTION) and ``vietocr`` (self-hosted VietOCR server).
    """

    def __init__(
        self,
        engine: str = "tesseract",
        engine_options: Optional[Dict[str, Any]] = None,
        preprocess: bool = True,
        auto_crop: bool = False,
    ):
        if engine not in ENGINE_CONFIDENCE:
            raise ValueError(
                f"Unknown text-recognition engine '{engine}'. "
                f"Available: {', '.join(sorted(ENGINE_CONFIDENCE))}"
            )
        self.engine = engine
        self.engine_options = dict(engine_options or {})
        self.preprocess = preprocess
        self.auto_crop = auto_crop
        self._rules = RulesEngine()

    @property
    def name(self) -> str:
        return "ocr"

    @property
    def confidence(self) -> float:
        return ENGINE_CONFIDENCE[self.engine]

    @property
    def is_available(self) -> bool:
        module = ENGINE_MODULES.get(self.engine)
        return module is None or find_spec(module) is not None

    def recognize(self, image: Image.Image) -> str:
        """Run the configured engine over ``image`` and return its text.

        Raises:
            EngineError: engine missing, unregistered or failing
        """
        if self.preprocess or self.auto_crop:
            flow = flow_for(self.engine, self.auto_crop)
            if not self.preprocess:
                flow["pipeline"] = ["autocrop"]
            image = preprocess_image(image, flow)
        try:
            text, _ = dispatch("image_to_text", image, engine=self.engine, **self.engine_options)
        except ValueError as exc:
            # raised by dispatch when the engine module failed to register
            raise EngineError("MISSING_DEPENDENCY", str(exc)) from exc
        return text

    def parse(self, text: str, diagnostics: Optional[list[str]] = None) -> ScanResult:
        """Parse already-recognised text into a ScanResult."""
        fields, _ = self._rules.extract_fields(text)
        record = normalize_record(CardRecord(**fields))
        if diagnostics is not None:
            diagnostics.append(f"ocr:fields:{','.join(sorted(fields)) or 'none'}")
        return ScanResult.ok(
            record, self.confidence, self.name, diagnostics, empty_error=NO_DATA_MESSAGE
        )

    def extract(self, source: Union[str, ImageInput]) -> ScanResult:
        """Recognise and parse a card image, or parse recognised text."""
        diagnostics: list[str] = []
        if isinstance(source, str):
            diagnostics.append("ocr:input:text")
            return self.parse(source, diagnostics)

        try:
            image = load_image(source)
        except (UnidentifiedImageError, OSError, ValueError, TypeError) as exc:
            logger.warning("Could not load image for text recognition: %s", exc)
            diagnostics.append(f"ocr:load:error:{exc}")
            return ScanResult.fail(LOAD_FAILED_MESSAGE, ErrorKind.NO_DATA, self.name, diagnostics)

        start = time.perf_counter()
        try:
            text = self.recognize(image)
        except EngineError as exc:
            logger.error(
                "Text recognition failed: %s",
                exc.message,
                extra={"source": self.name, "engine": self.engine, "error_code": exc.code},
            )
            diagnostics.append(f"ocr:{self.engine}:error:{exc.code}")
            return ScanResult.fail(SCAN_FAILED_MESSAGE, error_kind(exc.code), self.name, diagnostics)
        except Exception as exc:
            code = classify_exception(exc)
            logger.error(
                "Text recognition failed unexpectedly: %s",
                exc,
                extra={"source": self.name, "engine": self.engine, "error_code": code},
            )
            diagnostics.append(f"ocr:{self.engine}:error:{code}")
            return ScanResult.fail(SCAN_FAILED_MESSAGE, error_kind(code), self.name, diagnostics)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        diagnostics.append(f"ocr:{self.engine}:chars:{len(text)}")
        logger.debug("Recognised text: %s", text)
        result = self.parse(text, diagnostics)
        logger.info(
            "Text recognition finished",
            extra={
                "source": self.name,
                "engine": self.engine,
                "duration_ms": duration_ms,
                "success": result.success,
            },
        )
        return result
