from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from cccd.payload import parse_payload
from cccd.schema import CARD_FIELDS, CONFIDENCE_PAYLOAD, ScanResult
from src.config import AI_PROVIDERS, OCR_ENGINES, get_config
from src.extraction import ExtractionOrchestrator, ScanMethod
from src.logging_config import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(help="Vietnamese citizen ID card (CCCD) extractor")

IMAGE_METHODS = (ScanMethod.QR.value, ScanMethod.OCR.value, ScanMethod.AI.value)


def _emit(result: ScanResult, pretty: bool) -> None:
    """Print ``result`` and exit with status 1 when it is a failure."""
    if pretty:
        if result.success:
            typer.echo(f"✅ {result.source} (confidence {result.confidence:.2f})")
            for field in CARD_FIELDS:
                value = getattr(result.data, field)
                if value:
                    typer.echo(f"  {field}: {value}")
        else:
            code = result.error_code.value if result.error_code else "error"
            typer.echo(f"❌ [{code}] {result.error}", err=True)
        for line in result.diagnostics:
            logger.debug("diagnostic: %s", line)
    else:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))

    if not result.success:
        raise typer.Exit(1)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (defaults to LOG_LEVEL)"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
) -> None:
    """Configure logging for every command."""
    config = get_config()
    configure_logging(
        level=log_level or config.LOG_LEVEL,
        json_format=json_logs or config.LOG_JSON,
    )


@app.command("scan-image")
def scan_image(
    image: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Photo of the card or its QR code",
    ),
    method: str = typer.Option(
        ScanMethod.QR.value,
        "--method",
        "-m",
        help=f"Extraction method: {', '.join(IMAGE_METHODS)}",
    ),
    engine: Optional[str] = typer.Option(
        None, "--engine", "-e", help=f"OCR engine: {', '.join(OCR_ENGINES)}"
    ),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help=f"Cloud AI provider: {', '.join(AI_PROVIDERS)}"
    ),
    pretty: bool = typer.Option(
        False, "--pretty/--json", help="Human-readable output instead of JSON"
    ),
) -> None:
    """Extract card data from an image."""
    if method not in IMAGE_METHODS:
        typer.echo(f"❌ --method must be one of {', '.join(IMAGE_METHODS)}", err=True)
        raise typer.Exit(2)

    options = {}
    if engine:
        options["engine"] = engine
    if provider:
        options["provider"] = provider

    orchestrator = ExtractionOrchestrator(config=get_config())
    _emit(orchestrator.extract(method, image, **options), pretty)


@app.command("parse-payload")
def parse_payload_command(
    text: str = typer.Argument(..., help="Raw QR or NFC payload"),
    pretty: bool = typer.Option(False, "--pretty/--json"),
) -> None:
    """Parse a raw QR or NFC payload (JSON, pipe, comma or URL form)."""
    record = parse_payload(text)
    _emit(ScanResult.ok(record, CONFIDENCE_PAYLOAD, "payload"), pretty)


@app.command("parse-text")
def parse_text(
    file: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Text file holding recognised card text",
    ),
    pretty: bool = typer.Option(False, "--pretty/--json"),
) -> None:
    """Parse text already produced by a text-recognition engine."""
    text = file.read_text(encoding="utf-8")
    orchestrator = ExtractionOrchestrator(config=get_config())
    _emit(orchestrator.extract(ScanMethod.OCR, text), pretty)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Port (defaults to PORT)"),
) -> None:
    """Run the HTTP scan API."""
    import uvicorn

    from src.api import create_scan_app

    config = get_config()
    host = host or config.HOST
    port = port or config.PORT

    typer.echo(f"🌐 CCCD scan API on http://{host}:{port}")
    uvicorn.run(create_scan_app(config=config), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
