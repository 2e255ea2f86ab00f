"""
Extraction module for CCCD card data.

Provides single-method extraction and caller-ordered plans.
"""

from .orchestrator import ExtractionOrchestrator, ScanMethod

__all__ = ["ExtractionOrchestrator", "ScanMethod"]
