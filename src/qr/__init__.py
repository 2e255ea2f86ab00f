"""Optical code (QR) decoding."""

from .decoder import (
    DEFAULT_STRATEGIES,
    DecodeError,
    Strategy,
    build_strategies,
    decode_optical_code,
)

__all__ = [
    "DEFAULT_STRATEGIES",
    "DecodeError",
    "Strategy",
    "build_strategies",
    "decode_optical_code",
]
