"""
Configuration Management

Centralized configuration from environment variables with sensible defaults.
A ``.env`` file in the working directory is loaded first when present.
"""

import os
from typing import Mapping, Optional

from dotenv import load_dotenv

OCR_ENGINES = ("tesseract", "google-vision", "vietocr")
AI_PROVIDERS = ("gemini", "openai")


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ

        # Environment
        self.ENVIRONMENT = env.get("ENVIRONMENT", "development")
        self.LOG_LEVEL = env.get("LOG_LEVEL", "info")
        self.LOG_JSON = _flag(env.get("LOG_JSON"), self.ENVIRONMENT == "production")

        # Cloud vision AI
        self.AI_PROVIDER = env.get("AI_PROVIDER", "gemini").lower()
        self.GEMINI_API_KEY = env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY")
        self.GEMINI_MODEL = env.get("GEMINI_MODEL", "gemini-2.0-flash")
        self.OPENAI_API_KEY = env.get("OPENAI_API_KEY")
        self.OPENAI_MODEL = env.get("OPENAI_MODEL", "gpt-4o")

        # Text recognition
        self.OCR_ENGINE = env.get("OCR_ENGINE", "tesseract").lower()
        self.TESSERACT_LANGS = env.get("TESSERACT_LANGS", "vie+eng")
        self.GOOGLE_VISION_API_KEY = env.get("GOOGLE_VISION_API_KEY")
        self.VIETOCR_API_URL = env.get("VIETOCR_API_URL", "http://localhost:8000/ocr")
        self.AUTO_CROP = _flag(env.get("AUTO_CROP"))

        # Optical code
        self.QR_CONTRAST_FACTOR = float(env.get("QR_CONTRAST_FACTOR", "1.5"))

        # Wireless tag
        self.NFC_TIMEOUT_SECONDS = float(env.get("NFC_TIMEOUT_SECONDS", "30"))

        # Server
        self.HOST = env.get("HOST", "0.0.0.0")
        self.PORT = int(env.get("PORT", "8000"))
        self.ALLOWED_ORIGINS = [
            origin.strip()
            for origin in env.get(
                "ALLOWED_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000"
            ).split(",")
            if origin.strip()
        ]

    def validate(self) -> "Config":
        """Validate configuration and raise errors for invalid values."""
        if self.OCR_ENGINE not in OCR_ENGINES:
            raise ValueError(
                f"OCR_ENGINE must be one of {', '.join(OCR_ENGINES)}, got '{self.OCR_ENGINE}'"
            )
        if self.AI_PROVIDER not in AI_PROVIDERS:
            raise ValueError(
                f"AI_PROVIDER must be one of {', '.join(AI_PROVIDERS)}, got '{self.AI_PROVIDER}'"
            )
        if self.NFC_TIMEOUT_SECONDS <= 0:
            raise ValueError("NFC_TIMEOUT_SECONDS must be positive")
        if self.QR_CONTRAST_FACTOR <= 0:
            raise ValueError("QR_CONTRAST_FACTOR must be positive")
        return self

    @property
    def tesseract_langs(self) -> list[str]:
        return [lang for lang in self.TESSERACT_LANGS.split("+") if lang]

    def engine_options(self, engine: str) -> dict:
        """Keyword arguments passed to ``dispatch`` for a text-recognition engine."""
        if engine == "tesseract":
            return {"langs": self.tesseract_langs}
        if engine == "google-vision":
            return {"api_key": self.GOOGLE_VISION_API_KEY}
        if engine == "vietocr":
            return {"api_url": self.VIETOCR_API_URL}
        return {}

    def provider_options(self, provider: str) -> dict:
        """Keyword arguments passed to ``dispatch`` for a cloud AI provider."""
        if provider == "gemini":
            return {"model": self.GEMINI_MODEL, "api_key": self.GEMINI_API_KEY}
        if provider == "openai":
            return {"model": self.OPENAI_MODEL, "api_key": self.OPENAI_API_KEY}
        return {}


def get_config() -> Config:
    """Get validated configuration."""
    load_dotenv()
    return Config().validate()
