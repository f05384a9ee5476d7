from __future__ import annotations

import math
from typing import Iterable, Optional

from tnb_core.errors import ParseFailure

DEFAULT_REFS: tuple[float, ...] = (0.0, 1.0, 20.0)
# float() accepts these, the chat box only knows "Infinity"
_NON_FINITE_WORDS = ("inf", "infinity", "nan")


def _parse_float(v) -> Optional[float]:
    if v is None:
        return None
    if isinstance(v, (int, float)):
        return float(v)
    s = str(v).strip()
    if s == "" or "_" in s:
        return None
    if s.lstrip("+-").lower() in _NON_FINITE_WORDS and s.lstrip("+-") != "Infinity":
        return None
    try:
        return float(s)
    except ValueError:
        return None


def parse_refs(text: str) -> list[float]:
    """
    Parse a comma-separated reference list, e.g. "0, 1, 20".

    Blank and non-numeric tokens are ignored rather than rejected, so the
    result may be empty. Non-finite tokens ("inf", "nan") are dropped too.
    """
    out: list[float] = []
    for token in (text or "").split(","):
        v = _parse_float(token)
        if v is not None and math.isfinite(v):
            out.append(v)
    return out


def parse_query(text: str) -> float:
    """Parse a query value. Raises ParseFailure when the text is not a number."""
    v = _parse_float(text)
    if v is None or math.isnan(v):
        raise ParseFailure((text or "").strip())
    return v


def format_number(x: float) -> str:
    """Render integral values without a trailing '.0' (2.0 -> "2")."""
    if isinstance(x, float) and x.is_integer() and abs(x) < 1e16:
        return str(int(x))
    return str(x)


def format_refs(refs: Iterable[float]) -> str:
    return ",".join(format_number(r) for r in refs)
