"""Engine registration and dispatch helpers.

This module exposes a small plugin system that allows optical-code,
text-recognition and vision-model engines to register the tasks that they
implement.  Built-in engines register themselves when imported, and
additional engines can be discovered via the ``cccd.engines`` entry-point
group.
"""

import logging
from importlib import import_module, metadata
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)

# Registry mapping task -> engine -> (module, function)
_REGISTRY: Dict[str, Dict[str, Tuple[str, str]]] = {}


def register_task(task: str, engine: str, module: str, func: str) -> None:
    """Register ``func`` from ``module`` as the implementation of a task.

    Parameters
    ----------
    task:
        Name of the task (e.g., ``"image_to_text"``).
    engine:
        Engine identifier (e.g., ``"gemini"`` or ``"tesseract"``).
    module:
        Import path of the module containing the function.
    func:
        Name of the function implementing the task.
    """

    _REGISTRY.setdefault(task, {})[engine] = (module, func)


def available_engines(task: str) -> List[str]:
    """Return a sorted list of engines available for ``task``."""

    return sorted(_REGISTRY.get(task, {}))


def _discover_entry_points() -> None:
    """Load engines exposed via the ``cccd.engines`` entry point."""

    for ep in metadata.entry_points().select(group="cccd.engines"):
        ep.load()  # Importing registers the engine


# Import built-in engines so they register themselves on module import.
# Engine modules import their SDKs lazily, so registration never needs them.
for _mod in ("zxing", "tesseract", "google_vision", "vietocr", "gemini", "gpt"):
    try:
        import_module(f"{__name__}.{_mod}")
    except Exception as exc:  # pragma: no cover - optional deps may be missing
        logger.debug("Engine module %s not registered: %s", _mod, exc)

_discover_entry_points()


def dispatch(task: str, *args: Any, engine: str, **kwargs: Any) -> Any:
    """Dispatch a task to the requested engine.

    Raises
    ------
    ValueError
        If the task or engine is unknown.
    """

    if task not in _REGISTRY:
        raise ValueError(f"Unknown task: {task}")
    engines = _REGISTRY[task]
    if engine not in engines:
        available = ", ".join(sorted(engines))
        raise ValueError(f"Engine '{engine}' unavailable for task '{task}'. Available: {available}")
    module_name, func_name = engines[engine]
    module = import_module(module_name)
    func = getattr(module, func_name)
    return func(*args, **kwargs)


__all__ = [
    "dispatch",
    "register_task",
    "available_engines",
]
