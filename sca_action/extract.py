from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlsplit

SCA_OUTPUT_FILE = "scaResults.json"

logger = logging.getLogger(__name__)

_PHRASE = re.compile(r"Full\s+Report\s+Details", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s")


def is_report_url(value: Any) -> bool:
    """``http(s)://`` prefix (case-sensitive), a host, and no whitespace anywhere."""
    if not isinstance(value, str) or _WHITESPACE.search(value):
        return False
    for scheme in ("http://", "https://"):
        if value.startswith(scheme):
            try:
                return urlsplit(value).netloc != ""
            except ValueError:
                # e.g. an unbalanced IPv6 bracket
                return False
    return False


# Tried in order; the first capture that passes its validator wins.
URL_PATTERNS: tuple[tuple[re.Pattern[str], Callable[[Any], bool]], ...] = (
    (re.compile(r"Full\s+Report\s+Details\s+(https?://[^\s\r\n]+)", re.IGNORECASE), is_report_url),
    (re.compile(r"Full\s+Report\s+Details[:\s]+(https?://[^\s\r\n]+)", re.IGNORECASE), is_report_url),
    (re.compile(r"Full\s+Report\s+Details\s+(\S+)", re.IGNORECASE), is_report_url),
    (re.compile(r"Full\s+Report\s+Details[:\s]+(https?://[^\r\n]+)", re.IGNORECASE), is_report_url),
)


def report_line(text: str | None) -> str | None:
    """First line of ``text`` mentioning the report phrase, stripped."""
    if not text:
        return None
    for line in text.split("\n"):
        if _PHRASE.search(line):
            return line.strip()
    return None


def report_context(text: str | None, *, before: int = 50, after: int = 200) -> str | None:
    """Slice of ``text`` around the first ``Full Report`` occurrence."""
    if not text:
        return None
    idx = text.find("Full Report")
    if idx < 0:
        return None
    return text[max(0, idx - before) : min(len(text), idx + after)]


def _url_from_text(text: str) -> str | None:
    for i, (pattern, validate) in enumerate(URL_PATTERNS, start=1):
        match = pattern.search(text)
        if not match or not match.group(1):
            continue
        candidate = match.group(1).strip()
        if validate(candidate):
            logger.info("Found report URL using pattern %d: %s", i, candidate)
            return candidate
        logger.info("Pattern %d matched but result is not a URL: %s", i, candidate)
    return None


def url_from_sidecar(sidecar_path: str | Path = SCA_OUTPUT_FILE) -> str | None:
    """Read ``records[0].metadata.report`` from the scanner's JSON output.

    A missing file, unreadable file, malformed JSON or an unexpected document
    shape all give ``None``.
    """
    path = Path(sidecar_path)
    if not path.is_file():
        logger.info("JSON file does not exist: %s", path)
        return None

    logger.info("JSON file exists, attempting to read: %s", path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.info("Error reading JSON fallback: %s", e)
        return None

    try:
        url = payload["records"][0]["metadata"]["report"]
    except (KeyError, IndexError, TypeError):
        logger.info("JSON file does not contain report URL in expected structure")
        return None

    if not is_report_url(url):
        logger.info("JSON report field is not a URL: %r", url)
        return None
    logger.info("Found report URL in JSON metadata: %s", url)
    return url


def extract_scan_url(text: str | None, *, sidecar_path: str | Path = SCA_OUTPUT_FILE) -> str | None:
    """Find the scan report URL in scanner console output.

    Text patterns are tried first, from strict to loose; if none gives an
    ``http(s)`` URL (or there is no text at all) the JSON sidecar at
    ``sidecar_path`` is consulted. Returns ``None`` when nothing usable is
    found. Never raises.
    """
    if not text:
        logger.info("Scanner output is empty, skipping text patterns")
        return url_from_sidecar(sidecar_path)

    logger.debug("Scanner output length is %d characters", len(text))
    has_phrase = _PHRASE.search(text) is not None
    logger.info('"Full Report Details" found in output: %s', has_phrase)
    if has_phrase:
        logger.info('Found line: "%s"', report_line(text))

    url = _url_from_text(text)
    if url:
        return url

    logger.info("No URL found in text output, trying JSON fallback")
    url = url_from_sidecar(sidecar_path)
    if url:
        return url

    logger.info("No report URL found in output or JSON")
    return None
