"""
Extraction orchestrator.

Runs exactly one source adapter per request and always hands back a
well-formed ScanResult. When the caller wants to try several methods it
passes an explicit plan; the orchestrator never adds steps of its own.
"""

import logging
import time
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Tuple, Union

from cccd.schema import ErrorKind, ScanResult
from src.core.adapters import AdapterRegistry, get_adapter_registry

logger = logging.getLogger(__name__)

UNEXPECTED_MESSAGE = "Extraction failed unexpectedly. Please try again."
EMPTY_PLAN_MESSAGE = "No extraction method was selected."


class ScanMethod(str, Enum):
    NFC = "nfc"
    QR = "qr"
    OCR = "ocr"
    AI = "ai"

    @classmethod
    def parse(cls, value: Union["ScanMethod", str]) -> "ScanMethod":
        """Accept a member or its (case-insensitive) name or value."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for method in cls:
            if text in (method.value, method.name.lower()):
                return method
        raise ValueError(
            f"Unknown scan method '{value}'. Available: {', '.join(m.value for m in cls)}"
        )


PlanStep = Union[Tuple[ScanMethod, Any], Tuple[ScanMethod, Any, dict]]


class ExtractionOrchestrator:
    """Route a payload to the adapter for the chosen scan method."""

    def __init__(self, registry: Optional[AdapterRegistry] = None, config: Optional[Any] = None):
        self.config = config
        self.registry = registry or get_adapter_registry(config)
        self.stats = {"attempts": 0, "successes": 0, "failures": 0}

    def extract(self, method: Union[ScanMethod, str], payload: Any, **options: Any) -> ScanResult:
        """Run one adapter over ``payload``.

        Args:
            method: Scan method (nfc, qr, ocr, ai)
            payload: Input accepted by that method's adapter
            **options: ``engine`` for ocr, ``provider`` for ai

        Returns:
            ScanResult; unexpected exceptions are reported as failures
        """
        try:
            method = ScanMethod.parse(method)
        except ValueError as exc:
            return ScanResult.fail(str(exc), ErrorKind.UNSUPPORTED, str(method))

        self.stats["attempts"] += 1
        start = time.perf_counter()
        try:
            adapter = self.registry.get_adapter(method.value, **options)
            if adapter is None:
                result = ScanResult.fail(
                    f"No adapter registered for '{method.value}'.",
                    ErrorKind.UNSUPPORTED,
                    method.value,
                )
            else:
                result = adapter.extract(payload)
        except ValueError as exc:
            # unknown engine or provider
            result = ScanResult.fail(str(exc), ErrorKind.UNSUPPORTED, method.value)
        except Exception as exc:
            logger.exception("Unexpected error in %s extraction", method.value)
            result = ScanResult.fail(
                UNEXPECTED_MESSAGE, ErrorKind.NO_DATA, method.value, [f"{method.value}:error:{exc}"]
            )

        self.stats["successes" if result.success else "failures"] += 1
        logger.info(
            "Extraction %s via %s",
            "succeeded" if result.success else "failed",
            method.value,
            extra={
                "source": method.value,
                "success": result.success,
                "error_code": result.error_code.value if result.error_code else None,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return result

    def extract_first(self, plan: Iterable[Sequence[Any]]) -> ScanResult:
        """Try the caller's steps in order and return the first success.

        Each step is ``(method, payload)`` or ``(method, payload, options)``.
        Returns the last failure when every step fails.
        """
        result: Optional[ScanResult] = None
        for index, step in enumerate(plan):
            method, payload = step[0], step[1]
            options = step[2] if len(step) > 2 else {}
            logger.debug("Plan step %d: %s", index + 1, method)
            result = self.extract(method, payload, **options)
            if result.success:
                return result

        if result is None:
            return ScanResult.fail(EMPTY_PLAN_MESSAGE, ErrorKind.UNSUPPORTED)
        return result

    def get_stats(self) -> dict:
        return dict(self.stats)
