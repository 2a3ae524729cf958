"""Agent-based SCA scan action: run the scanner, extract the report URL, publish results."""

from .extract import extract_scan_url
from .invoke import InvokeResult, invoke

__version__ = "0.1.0"

__all__ = ["extract_scan_url", "invoke", "InvokeResult", "__version__"]
