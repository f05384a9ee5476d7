from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from tnb_core.evaluator import ConfidenceFormula, Mode


@dataclass(frozen=True)
class SynthConfig:
    seed: int = 42
    n_cases: int = 500
    max_refs: int = 8
    low: float = -100.0
    high: float = 100.0
    integer_frac: float = 0.5  # share of cases drawn on integers (forces ties/duplicates)
    scale_low: float = 0.5
    scale_high: float = 50.0


@dataclass(frozen=True)
class SynthCase:
    case_id: str
    query: float
    refs: tuple[float, ...]
    mode: Mode
    formula: ConfidenceFormula
    scale: float


def generate_cases(cfg: SynthConfig = SynthConfig()) -> list[SynthCase]:
    """
    Reproducible random evaluation inputs.

    Integer-valued cases deliberately produce duplicate references and exact
    ties so the tie-break and zero/zero rules get exercised.
    """
    if cfg.max_refs < 1:
        raise ValueError("max_refs must be >= 1")

    rng = np.random.default_rng(cfg.seed)
    modes = list(Mode)
    formulas = list(ConfidenceFormula)
    span = cfg.high - cfg.low

    cases: list[SynthCase] = []
    for i in range(cfg.n_cases):
        n = int(rng.integers(1, cfg.max_refs + 1))
        if rng.random() < cfg.integer_frac:
            lo, hi = int(cfg.low // 10), int(cfg.high // 10) + 1
            refs = rng.integers(lo, hi, size=n).astype(float)
            query = float(rng.integers(lo, hi))
        else:
            refs = cfg.low + rng.random(n) * span
            query = float(cfg.low + rng.random() * span)

        cases.append(
            SynthCase(
                case_id=f"S{i:05d}",
                query=query,
                refs=tuple(float(r) for r in refs),
                mode=modes[int(rng.integers(0, len(modes)))],
                formula=formulas[int(rng.integers(0, len(formulas)))],
                scale=float(rng.uniform(cfg.scale_low, cfg.scale_high)),
            )
        )
    return cases
