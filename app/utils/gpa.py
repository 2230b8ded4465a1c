"""
GPA normalization onto a 0-4 scale.

Accepted shapes: "3.5/4", "8.5 out of 10", "85%", bare numbers.
Bare numbers use scale inference:
    value <= 4        -> already on a 4 scale
    4 < value <= 10   -> 10 scale
    10 < value <= 100 -> percentage
Anything unparseable yields None, never a guess.
"""

import re
from typing import Iterable, Optional

_SCALE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:/|out of|of)\s*(\d+(?:\.\d+)?)")
_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")


def _on_four_scale(value: float) -> Optional[float]:
    if 0 <= value <= 4:
        return round(value, 2)
    return None


def normalize_gpa(raw) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    text = str(raw).lower().strip().replace(",", ".")
    if not text:
        return None

    match = _SCALE_RE.search(text)
    if match:
        value, scale = float(match.group(1)), float(match.group(2))
        if scale <= 0:
            return None
        return _on_four_scale(value / scale * 4)

    match = _PERCENT_RE.search(text)
    if match:
        return _on_four_scale(float(match.group(1)) / 100 * 4)

    match = _NUMBER_RE.search(text)
    if not match:
        return None
    value = float(match.group(1))
    if value <= 4:
        return _on_four_scale(value)
    if value <= 10:
        return _on_four_scale(value / 10 * 4)
    if value <= 100:
        return _on_four_scale(value / 100 * 4)
    return None


def best_gpa(education: Iterable) -> Optional[float]:
    """Highest normalized GPA across education entries (gpa or cgpa key)."""
    if isinstance(education, dict):
        education = [education]
    if not isinstance(education, (list, tuple)):
        return None

    values = []
    for entry in education:
        if not isinstance(entry, dict):
            continue
        raw = entry.get("gpa")
        if raw in (None, ""):
            raw = entry.get("cgpa")
        normalized = normalize_gpa(raw)
        if normalized is not None:
            values.append(normalized)
    return max(values) if values else None
