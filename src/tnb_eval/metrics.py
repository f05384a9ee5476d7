from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from tnb_core.evaluator import ConfidenceFormula, EvaluationResult, Mode


@dataclass(frozen=True)
class EvalResult:
    """Single evaluation result with a numeric score in [0,1] when applicable."""
    name: str
    score: Optional[float]  # None when not computed
    details: str


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def numeric_agreement(
    expected: dict[str, float],
    predicted: dict[str, float],
    *,
    tolerance: float = 0.0,
    name: str = "numeric_agreement",
) -> EvalResult:
    """
    Share of expected values reproduced within `tolerance`.

    - key missing from predicted => mismatch
    - otherwise |predicted - expected| <= tolerance counts as a match
    Score = matches / total_expected.
    """
    if not expected:
        return EvalResult(name, None, "No expected items provided.")

    total = 0
    matches = 0
    missing = []

    for k, v in expected.items():
        total += 1
        if k not in predicted:
            missing.append(k)
            continue
        if abs(predicted[k] - v) <= tolerance:
            matches += 1

    score = matches / total
    details = (
        f"matches={matches}/{total}, tolerance={tolerance}, "
        f"missing={len(missing)}"
        + (f" ({', '.join(missing[:5])}{'...' if len(missing) > 5 else ''})" if missing else "")
    )
    return EvalResult(name, clamp01(score), details)


def invariant_violations(refs: tuple[float, ...], result: EvaluationResult) -> list[str]:
    """
    Properties every evaluation must satisfy, whatever its inputs.

    Returns the names of the violated ones (empty list when all hold).
    """
    bad: list[str] = []
    distances = [abs(result.query - r) for r in refs]
    dmin = min(distances)

    if not isinstance(result.confidence, int) or not 0 <= result.confidence <= 100:
        bad.append("confidence_range")
    if result.best not in refs:
        bad.append("best_is_reference")
    if result.distance != dmin:
        bad.append("best_is_minimal")
    elif refs[distances.index(dmin)] != result.best:
        bad.append("earliest_tie_wins")

    if result.formula == ConfidenceFormula.RATIO:
        if len(refs) == 1 and result.confidence != 100:
            bad.append("single_ref_full_confidence")
        zero_hits = sum(1 for d in distances if d == 0)
        if zero_hits >= 2 and result.confidence != 50:
            bad.append("double_exact_hit_is_50")
    else:
        if (result.confidence == 100) != (result.distance == 0):
            bad.append("exp_100_only_on_exact_hit")

    if result.mode == Mode.RANK:
        if result.ranking is None or len(result.ranking) != len(refs):
            bad.append("rank_complete")
        elif any(a.distance > b.distance for a, b in zip(result.ranking, result.ranking[1:])):
            bad.append("rank_sorted")
    if result.mode == Mode.RANGE and result.bounds != (min(refs), max(refs)):
        bad.append("range_bounds")

    return bad


def invariant_pass_rate(checked: Iterable[list[str]]) -> EvalResult:
    """Share of cases with no invariant violations."""
    rows = list(checked)
    if not rows:
        return EvalResult("invariant_pass_rate", None, "No cases checked.")

    counts: dict[str, int] = {}
    clean = 0
    for violations in rows:
        if not violations:
            clean += 1
        for v in violations:
            counts[v] = counts.get(v, 0) + 1

    worst = sorted(counts.items(), key=lambda kv: -kv[1])[:5]
    details = f"clean={clean}/{len(rows)}" + (f", violations={dict(worst)}" if worst else "")
    return EvalResult("invariant_pass_rate", clamp01(clean / len(rows)), details)
