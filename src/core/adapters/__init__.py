"""
Source adapter registry.

Provides:
- AdapterRegistry: adapter lookup with lazy instantiation
- The four protocol-conforming source adapters

Usage:
    from src.core.adapters import get_adapter_registry

    registry = get_adapter_registry()
    adapter = registry.get_adapter("qr")
    result = adapter.extract(image_bytes)
"""

from typing import Any, Callable, Optional

from src.core.protocols import SourceAdapter

from .cloud_vision_adapter import CloudVisionAdapter
from .optical_adapter import OpticalCodeAdapter
from .text_recognition_adapter import TextRecognitionAdapter
from .wireless_adapter import WirelessTagAdapter

__all__ = [
    "WirelessTagAdapter",
    "OpticalCodeAdapter",
    "TextRecognitionAdapter",
    "CloudVisionAdapter",
    "AdapterRegistry",
    "get_adapter_registry",
]

AdapterFactory = Callable[..., SourceAdapter]


class AdapterRegistry:
    """
    Registry for extraction source adapters.

    Instances are keyed by name plus constructor options, so the OCR
    adapter for ``tesseract`` and the one for ``vietocr`` coexist.
    """

    def __init__(self, config: Optional[Any] = None):
        """Initialize adapter registry.

        Args:
            config: Optional ``src.config.Config`` supplying engine defaults
        """
        self.config = config
        self._factories: dict[str, AdapterFactory] = {}
        self._instances: dict[tuple, SourceAdapter] = {}

        self._register_builtin_adapters()

    def _register_builtin_adapters(self) -> None:
        self.register_adapter("nfc", WirelessTagAdapter)
        self.register_adapter("qr", self._optical)
        self.register_adapter("ocr", self._text_recognition)
        self.register_adapter("ai", self._cloud_vision)

    def _optical(self, **options: Any) -> OpticalCodeAdapter:
        if self.config is not None:
            options.setdefault("contrast_factor", self.config.QR_CONTRAST_FACTOR)
        return OpticalCodeAdapter(**options)

    def _text_recognition(self, engine: Optional[str] = None, **options: Any) -> TextRecognitionAdapter:
        cfg = self.config
        engine = engine or (cfg.OCR_ENGINE if cfg is not None else "tesseract")
        if cfg is not None:
            options.setdefault("engine_options", cfg.engine_options(engine))
            options.setdefault("auto_crop", cfg.AUTO_CROP)
        return TextRecognitionAdapter(engine=engine, **options)

    def _cloud_vision(self, provider: Optional[str] = None, **options: Any) -> CloudVisionAdapter:
        cfg = self.config
        provider = provider or (cfg.AI_PROVIDER if cfg is not None else "gemini")
        if cfg is not None:
            options.setdefault("provider_options", cfg.provider_options(provider))
            options.setdefault("auto_crop", cfg.AUTO_CROP)
        return CloudVisionAdapter(provider=provider, **options)

    def register_adapter(self, name: str, factory: AdapterFactory) -> None:
        """Register an adapter class or factory.

        Args:
            name: Adapter name for lookup
            factory: Callable returning an object implementing SourceAdapter
        """
        self._factories[name] = factory
        for key in [k for k in self._instances if k[0] == name]:
            del self._instances[key]

    def get_adapter(self, name: str, **options: Any) -> SourceAdapter | None:
        """Get adapter instance by name.

        Creates the instance on first access (lazy initialization).

        Args:
            name: Adapter name
            **options: Constructor options (``engine`` for ocr, ``provider`` for ai)

        Returns:
            SourceAdapter instance or None if not found
        """
        if name not in self._factories:
            return None

        key = (name, tuple(sorted((k, repr(v)) for k, v in options.items() if v is not None)))
        if key not in self._instances:
            clean = {k: v for k, v in options.items() if v is not None}
            self._instances[key] = self._factories[name](**clean)

        return self._instances[key]

    def list_adapters(self) -> list[str]:
        """List registered adapter names."""
        return list(self._factories.keys())

    def get_available_adapters(self) -> list[str]:
        """List adapters that can run on this system with default options."""
        available = []
        for name in self._factories:
            adapter = self.get_adapter(name)
            if adapter is not None and adapter.is_available:
                available.append(name)
        return available


_registry: AdapterRegistry | None = None


def get_adapter_registry(config: Optional[Any] = None) -> AdapterRegistry:
    """Get the global adapter registry.

    Creates the registry on first call (singleton pattern). A ``config``
    passed later replaces the shared registry.

    Returns:
        AdapterRegistry instance
    """
    global _registry
    if _registry is None or (config is not None and config is not _registry.config):
        _registry = AdapterRegistry(config)
    return _registry
