"""
Cloud vision AI source adapter.

Sends the card image to a vision model with one fixed extraction prompt
and maps the model's JSON reply onto a card record. Gemini and OpenAI
are interchangeable providers.
"""

import logging
import time
from importlib.util import find_spec
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import UnidentifiedImageError

from cccd.normalize import normalize_record
from cccd.schema import CONFIDENCE_CLOUD_AI, CardRecord, ErrorKind, ScanResult
from engines import dispatch
from engines.errors import (
    MISSING_DEPENDENCY,
    NO_DATA_MESSAGE,
    EngineError,
    classify_exception,
    error_kind,
    user_message,
)
from io_utils import ImageInput, load_image
from preprocess import preprocess_image
from preprocess.flows import flow_for

logger = logging.getLogger(__name__)

PROVIDER_MODULES = {
    "gemini": "google.generativeai",
    "openai": "openai",
}

LOAD_FAILED_MESSAGE = "Định dạng ảnh không hợp lệ. Vui lòng tải lên ảnh CCCD rõ nét."


def _module_available(name: str) -> bool:
    try:
        return find_spec(name) is not None
    except ModuleNotFoundError:
        # parent package missing
        return False


class CloudVisionAdapter:
    """
    Source adapter for cloud vision models.

    Provider errors are classified into quota, invalid format, safety
    block and missing credentials, each with its own user-facing message.
    """

    def __init__(
        self,
        provider: str = "gemini",
        provider_options: Optional[Dict[str, Any]] = None,
        prompt_dir: Optional[Path] = None,
        auto_crop: bool = False,
    ):
        if provider not in PROVIDER_MODULES:
            raise ValueError(
                f"Unknown cloud AI provider '{provider}'. "
                f"Available: {', '.join(sorted(PROVIDER_MODULES))}"
            )
        self.provider = provider
        self.provider_options = {k: v for k, v in (provider_options or {}).items() if v is not None}
        self.prompt_dir = prompt_dir
        self.auto_crop = auto_crop

    @property
    def name(self) -> str:
        return "ai"

    @property
    def confidence(self) -> float:
        return CONFIDENCE_CLOUD_AI

    @property
    def is_available(self) -> bool:
        return _module_available(PROVIDER_MODULES[self.provider])

    def _fail(self, code: str, detail: str, diagnostics: list[str]) -> ScanResult:
        logger.error(
            "Cloud AI extraction failed: %s",
            detail,
            extra={"source": self.name, "provider": self.provider, "error_code": code},
        )
        diagnostics.append(f"ai:{self.provider}:error:{code}")
        return ScanResult.fail(
            user_message(code, self.provider), error_kind(code), self.name, diagnostics
        )

    def extract(self, source: ImageInput) -> ScanResult:
        """Ask the configured provider to read the card in ``source``."""
        diagnostics: list[str] = []
        try:
            image = load_image(source)
        except (UnidentifiedImageError, OSError, ValueError, TypeError) as exc:
            logger.warning("Could not load image for cloud AI: %s", exc)
            diagnostics.append(f"ai:load:error:{exc}")
            return ScanResult.fail(
                LOAD_FAILED_MESSAGE, ErrorKind.MALFORMED_RESPONSE, self.name, diagnostics
            )

        image = preprocess_image(image, flow_for(self.provider, self.auto_crop))
        start = time.perf_counter()
        try:
            fields, _ = dispatch(
                "image_to_card",
                image,
                engine=self.provider,
                prompt_dir=self.prompt_dir,
                **self.provider_options,
            )
        except EngineError as exc:
            return self._fail(exc.code, exc.message, diagnostics)
        except ValueError as exc:
            # raised by dispatch when the provider module failed to register
            return self._fail(MISSING_DEPENDENCY, str(exc), diagnostics)
        except Exception as exc:
            return self._fail(classify_exception(exc), str(exc), diagnostics)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        record = normalize_record(CardRecord.from_mapping(fields))
        diagnostics.append(f"ai:{self.provider}:fields:{sum(1 for v in fields.values() if v)}")
        result = ScanResult.ok(
            record, self.confidence, self.name, diagnostics, empty_error=NO_DATA_MESSAGE
        )
        logger.info(
            "Cloud AI extraction finished",
            extra={
                "source": self.name,
                "provider": self.provider,
                "duration_ms": duration_ms,
                "success": result.success,
            },
        )
        return result
