"""Interface to the image-scan collaborator that reads functions from photos.

The hosted vision model lives outside this package; the grapher only needs a
list of plain-notation expression strings back.
"""

from __future__ import annotations

import enum
import json
import logging
from typing import List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

SCAN_PROMPT = (
    "Extract all mathematical function expressions from this image. "
    "Return them as a JSON array of strings.\n"
    "Rules:\n"
    "1. Use standard computer notation (e.g., x^2, sqrt(x), log(x, 10), log(x, 2)).\n"
    "2. AVOID LaTeX formatting (no \\frac, no \\sqrt, no \\cdot).\n"
    "3. Keep it simple: 'y = x + 1' or 'f(x) = sin(x)'.\n"
    "4. If there are multiple functions, list them all.\n"
    "5. For base-2 logs, use log(x, 2). For base-10 logs, use log(x, 10).\n"
    "6. Be extremely careful with exponents and roots."
)


class ScanMode(str, enum.Enum):
    HIGH_QUALITY = "high"
    FAST = "fast"


class FunctionScanner(Protocol):
    def extract_functions(self, image: bytes, mime_type: str = "image/jpeg", mode: ScanMode = ScanMode.FAST) -> List[str]:
        ...


def parse_scan_response(text: Optional[str]) -> List[str]:
    """Decode a JSON array reply; anything malformed yields an empty list."""
    try:
        payload = json.loads(text or "[]")
    except (TypeError, ValueError) as exc:
        logger.warning("failed to parse scan response: %s", exc)
        return []
    if not isinstance(payload, list):
        logger.warning("scan response is not a list: %r", type(payload).__name__)
        return []
    results = [item.strip() for item in payload if isinstance(item, str) and item.strip()]
    if len(results) != len(payload):
        logger.warning("dropped %d non-string scan items", len(payload) - len(results))
    return results


class StaticScanner:
    """Scanner returning a fixed reply; stands in when no hosted model is configured."""

    def __init__(self, reply: Sequence[str] = ()) -> None:
        self.reply = json.dumps(list(reply))
        self.calls: List[ScanMode] = []

    def extract_functions(self, image: bytes, mime_type: str = "image/jpeg", mode: ScanMode = ScanMode.FAST) -> List[str]:
        self.calls.append(ScanMode(mode))
        return parse_scan_response(self.reply)
