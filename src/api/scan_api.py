"""
HTTP API for CCCD extraction.

Exposes the extraction orchestrator over FastAPI. Extraction outcomes,
successful or not, are answered with 200 and a ScanResult body; 400 is
reserved for requests that cannot be run at all (unknown method, bad
base64, missing input).

Endpoints:
- POST /api/v1/scan/{method}   method in nfc, qr, ocr, ai
- POST /api/v1/parse/payload   raw QR/NFC payload text
- POST /api/v1/parse/text      already-recognised OCR text
- GET  /api/v1/health
"""

import base64
import binascii
import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from cccd.payload import parse_payload
from cccd.schema import CONFIDENCE_PAYLOAD, ScanResult
from src.config import Config, get_config
from src.extraction import ExtractionOrchestrator, ScanMethod

from .middleware import RequestTrackingMiddleware

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# ============================================================================
# Request models
# ============================================================================


class ScanRequest(BaseModel):
    image_base64: str | None = None
    payload: str | None = None
    text: str | None = None
    engine: str | None = None
    provider: str | None = None


class PayloadRequest(BaseModel):
    payload: str


class TextRequest(BaseModel):
    text: str


def decode_image_base64(value: str) -> bytes:
    """Decode a base64 image, accepting an optional ``data:`` URL prefix.

    Raises:
        ValueError: not valid base64, or decodes to nothing
    """
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        raw = base64.b64decode("".join(value.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 image: {exc}") from exc
    if not raw:
        raise ValueError("Invalid base64 image: empty")
    return raw


def create_scan_app(
    orchestrator: ExtractionOrchestrator | None = None,
    config: Config | None = None,
) -> FastAPI:
    """
    Create the scan API application.

    Args:
        orchestrator: Orchestrator to serve; built from ``config`` if None
        config: Application configuration; loaded from the environment if None

    Returns:
        Configured FastAPI app
    """
    config = config or (orchestrator.config if orchestrator is not None else None) or get_config()
    orchestrator = orchestrator or ExtractionOrchestrator(config=config)

    development = config.ENVIRONMENT == "development"
    app = FastAPI(
        title="CCCD Extraction API",
        description="Extract Vietnamese citizen ID card data from NFC, QR, OCR and AI sources",
        version=API_VERSION,
        docs_url="/docs" if development else None,
        redoc_url="/redoc" if development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        max_age=600,
    )
    app.add_middleware(RequestTrackingMiddleware)

    app.state.orchestrator = orchestrator

    # ========================================================================
    # Extraction
    # ========================================================================

    @app.post("/api/v1/scan/{method}")
    def scan(method: str, request: ScanRequest):
        """Run one extraction method over the request body."""
        try:
            scan_method = ScanMethod.parse(method)
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))

        options = {}
        if scan_method is ScanMethod.NFC:
            if request.payload is None:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "'payload' is required for nfc")
            source = request.payload
        elif scan_method is ScanMethod.OCR and request.text is not None:
            source = request.text
        else:
            if not request.image_base64:
                raise HTTPException(
                    status.HTTP_400_BAD_REQUEST,
                    f"'image_base64' is required for {scan_method.value}",
                )
            try:
                source = decode_image_base64(request.image_base64)
            except ValueError as exc:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))

        if scan_method is ScanMethod.OCR and request.engine:
            options["engine"] = request.engine
        if scan_method is ScanMethod.AI and request.provider:
            options["provider"] = request.provider

        result = orchestrator.extract(scan_method, source, **options)
        return result.to_dict()

    @app.post("/api/v1/parse/payload")
    def parse_payload_text(request: PayloadRequest):
        """Parse a raw QR or NFC payload without any image work."""
        record = parse_payload(request.payload)
        return ScanResult.ok(record, CONFIDENCE_PAYLOAD, "payload").to_dict()

    @app.post("/api/v1/parse/text")
    def parse_text(request: TextRequest):
        """Parse text already produced by a text-recognition engine."""
        return orchestrator.extract(ScanMethod.OCR, request.text).to_dict()

    # ========================================================================
    # Health
    # ========================================================================

    @app.get("/api/v1/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": API_VERSION,
            "adapters": orchestrator.registry.get_available_adapters(),
            "timestamp": datetime.now().isoformat(),
        }

    return app
