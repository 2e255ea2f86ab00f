"""
Card extraction core.

- protocols: SourceAdapter, TagReader and the input types they consume
- adapters: the four extraction sources and their registry

Adapters are imported from ``src.core.adapters`` directly; they depend on
modules that themselves import the protocols defined here.
"""

__version__ = "0.1.0"

from .protocols import (
    PixelBuffer,
    SourceAdapter,
    TagEvent,
    TagReader,
    TagRecord,
)

__all__ = [
    "PixelBuffer",
    "SourceAdapter",
    "TagEvent",
    "TagReader",
    "TagRecord",
]
