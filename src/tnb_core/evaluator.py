from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from tnb_core.errors import InvalidInput

DEFAULT_EXP_SCALE = 10.0


class Mode(str, Enum):
    CLOSEST = "closest"
    RANK = "rank"
    RANGE = "range"


class ConfidenceFormula(str, Enum):
    RATIO = "ratio"  # best vs runner-up
    EXP = "exp"      # absolute decay with distance


@dataclass(frozen=True)
class RankedReference:
    reference: float
    distance: float


@dataclass(frozen=True)
class EvaluationResult:
    """
    Outcome of a single nearest-reference evaluation.

    ranking: only populated for Mode.RANK
    bounds: (minimum, maximum) of the reference set, only populated for Mode.RANGE
    """
    mode: Mode
    formula: ConfidenceFormula
    query: float
    best: float
    distance: float
    confidence: int
    runner_up: Optional[RankedReference] = None
    ranking: Optional[tuple[RankedReference, ...]] = None
    bounds: Optional[tuple[float, float]] = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["mode"] = self.mode.value
        d["formula"] = self.formula.value
        if self.bounds is not None:
            d["bounds"] = list(self.bounds)
        return d


def _coerce_mode(mode: Mode | str) -> Mode:
    try:
        return Mode(mode)
    except ValueError:
        raise InvalidInput(f"Unknown mode: {mode!r}") from None


def _coerce_formula(formula: ConfidenceFormula | str) -> ConfidenceFormula:
    try:
        return ConfidenceFormula(formula)
    except ValueError:
        raise InvalidInput(f"Unknown confidence formula: {formula!r}") from None


def _finite(value: Any, what: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{what} is not a number: {value!r}") from None
    if not math.isfinite(v):
        raise InvalidInput(f"{what} must be finite, got {v}")
    return v


def _round_half_up(x: float) -> int:
    # round() is banker's rounding; scores round .5 upwards
    return int(math.floor(x + 0.5))


def rank_references(query: float, refs: Iterable[float]) -> list[RankedReference]:
    """Distances from query to every reference, ascending. sorted() is stable so ties keep input order."""
    ranked = [RankedReference(reference=r, distance=abs(query - r)) for r in refs]
    return sorted(ranked, key=lambda rr: rr.distance)


def confidence_ratio(dmin: float, dsec: Optional[float]) -> int:
    """
    How much closer the best match is than the runner-up.

    - no runner-up => 100
    - both distances zero => 50
    - otherwise round(100 * (1 - dmin / (dmin + dsec))), clamped to [0, 100]

    The denominator is only zero in the zero/zero case, so no epsilon is added;
    equal distances always give exactly 50.
    """
    if dsec is None:
        return 100
    if dmin == 0 and dsec == 0:
        return 50
    total = dmin + dsec
    if math.isinf(total):
        # huge finite distances: halve both so the sum stays finite
        dmin, dsec = dmin / 2, dsec / 2
        total = dmin + dsec
    raw = 1.0 - dmin / total
    return _round_half_up(max(0.0, min(1.0, raw)) * 100)


def confidence_exp(dmin: float, scale: Optional[float] = None) -> int:
    """
    Absolute closeness: round(100 * exp(-dmin / scale)).

    A missing or non-positive scale falls back to DEFAULT_EXP_SCALE.
    Only an exact hit scores 100; any positive distance is capped at 99.
    """
    s = scale if scale is not None and scale > 0 else DEFAULT_EXP_SCALE
    score = _round_half_up(math.exp(-dmin / s) * 100)
    if dmin > 0:
        score = min(score, 99)
    return max(0, min(100, score))


def reference_bounds(refs: Sequence[float]) -> tuple[float, float]:
    if len(refs) == 0:
        raise InvalidInput("No reference numbers provided.")
    return (min(refs), max(refs))


def evaluate(
    *,
    query: float,
    refs: Sequence[float],
    mode: Mode | str = Mode.CLOSEST,
    formula: ConfidenceFormula | str = ConfidenceFormula.RATIO,
    scale: Optional[float] = None,
) -> EvaluationResult:
    """
    Find the reference closest to `query` and score the match.

    Raises InvalidInput for an empty reference set, non-finite values,
    a distance too large to represent, or an unrecognised mode/formula. Pure: no randomness, no I/O.
    """
    m = _coerce_mode(mode)
    f = _coerce_formula(formula)
    q = _finite(query, "query")

    if refs is None or len(refs) == 0:
        raise InvalidInput("No reference numbers provided.")
    values = [_finite(r, "reference") for r in refs]

    ranked = rank_references(q, values)
    if not math.isfinite(ranked[-1].distance):
        raise InvalidInput("Query is too far from the references to measure a distance.")
    best = ranked[0]
    second = ranked[1] if len(ranked) > 1 else None

    if f == ConfidenceFormula.EXP:
        confidence = confidence_exp(best.distance, scale)
    else:
        confidence = confidence_ratio(best.distance, second.distance if second else None)

    return EvaluationResult(
        mode=m,
        formula=f,
        query=q,
        best=best.reference,
        distance=best.distance,
        confidence=confidence,
        runner_up=second,
        ranking=tuple(ranked) if m == Mode.RANK else None,
        bounds=reference_bounds(values) if m == Mode.RANGE else None,
    )
