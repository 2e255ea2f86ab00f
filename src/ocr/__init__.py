"""
Text-recognition parsing for card images.

Turns the free text returned by an OCR engine into card fields.
"""

from .rules_engine import RulesEngine, parse_card_text

__all__ = [
    "RulesEngine",
    "parse_card_text",
]
