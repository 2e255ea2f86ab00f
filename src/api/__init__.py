"""FastAPI service exposing CCCD extraction over HTTP."""

from .scan_api import create_scan_app

__all__ = ["create_scan_app"]
