"""
JSON Coercion - best-effort repair of model output.

The provider's deviations from strict JSON are patterned rather than
arbitrary, so repairs are targeted regexes:
- markdown code fences (```json ... ```)
- prose before/after the outermost {...} span
- smart quotes
- trailing commas before } or ]

coerce_json() never raises. On failure it returns a CoercionFailure
carrying the original text for diagnostics.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

_FENCE_RE = re.compile(r"```(?:json|JSON)?")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_SMART_QUOTES = {
    "“": '"', "”": '"', "„": '"', "‟": '"',
    "‘": "'", "’": "'", "‚": "'", "‛": "'",
}


@dataclass(frozen=True)
class CoercionFailure:
    error: str
    raw_text: str

    def to_dict(self) -> dict:
        return {"error": self.error, "raw": self.raw_text}


def is_failure(value: Any) -> bool:
    return isinstance(value, CoercionFailure)


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _outermost_span(text: str) -> str:
    """Trim to the outermost {...} (or [...] when the payload is an array)."""
    close_ch = "]" if text.startswith("[") else "}"
    start = text.find("[" if close_ch == "]" else "{")
    if start == -1:
        return text
    end = text.rfind(close_ch)
    if end < start:
        return text[start:]
    return text[start:end + 1]


def _repair(text: str) -> str:
    for smart, straight in _SMART_QUOTES.items():
        text = text.replace(smart, straight)
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def coerce_json(raw_text: Any) -> Any:
    """
    Parse model output into a Python object.

    Well-formed JSON is parsed as-is; repairs are applied only when the
    strict parse of the trimmed text fails.
    """
    if not isinstance(raw_text, str):
        return CoercionFailure(error="Empty or non-text response", raw_text=str(raw_text))
    if not raw_text.strip():
        return CoercionFailure(error="Empty or non-text response", raw_text=raw_text)

    for candidate in (raw_text, _outermost_span(_strip_fences(raw_text))):
        try:
            return json.loads(candidate)
        except ValueError:
            continue

    try:
        return json.loads(_repair(candidate))
    except ValueError as e:
        return CoercionFailure(error=f"Invalid JSON: {e}", raw_text=raw_text)
