from __future__ import annotations

import logging
import os
import platform
import subprocess
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tnb_core.errors import InvalidInput
from tnb_core.evaluator import evaluate
from tnb_eval.metrics import invariant_pass_rate, invariant_violations, numeric_agreement
from tnb_synth.queries import SynthConfig, generate_cases

logger = logging.getLogger(__name__)

DEFAULT_CASE = {
    "name": "default",
    "cases": [
        {"id": "closest_two", "query": 2, "refs": [0, 1, 20], "expect": {"best": 1, "confidence": 67}},
        {"id": "closest_minus_thirty", "query": -30, "refs": [0, 1, 20], "expect": {"best": 0, "confidence": 51}},
        {"id": "range_tie", "query": 10, "refs": [0, 20], "mode": "range", "expect": {"best": 0, "bounds": [0, 20]}},
        {"id": "empty_refs", "query": 5, "refs": [], "expect": {"error": "invalid_input"}},
    ],
    "synthetic": {"seed": 42, "n_cases": 200},
}


def _git_head_sha() -> Optional[str]:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode("utf-8").strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def load_case(case_path: Optional[str]) -> Dict[str, Any]:
    if not case_path:
        return dict(DEFAULT_CASE)

    p = Path(case_path)
    if not p.exists():
        raise FileNotFoundError(f"Case file not found: {p}")
    obj = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(obj, dict):
        raise ValueError(f"Case file must be a mapping: {p}")
    if not isinstance(obj.get("cases", []), list):
        raise ValueError(f"'cases' must be a list: {p}")
    obj.setdefault("name", p.stem)
    obj["path"] = str(p)
    return obj


def _run_golden(cases: list[Dict[str, Any]]) -> Dict[str, Any]:
    outputs: Dict[str, Any] = {}
    exp_best: Dict[str, float] = {}
    got_best: Dict[str, float] = {}
    exp_conf: Dict[str, float] = {}
    got_conf: Dict[str, float] = {}
    verdicts: Dict[str, bool] = {}

    for i, case in enumerate(cases):
        cid = str(case.get("id") or f"case{i}")
        expect = case.get("expect") or {}
        try:
            result = evaluate(
                query=case.get("query"),
                refs=case.get("refs") or [],
                mode=case.get("mode", "closest"),
                formula=case.get("conf", "ratio"),
                scale=case.get("scale"),
            )
        except InvalidInput as e:
            outputs[cid] = {"error": "invalid_input", "message": str(e)}
            verdicts[f"{cid}.error_ok"] = expect.get("error") == "invalid_input"
            continue

        outputs[cid] = result.to_dict()
        if expect.get("error"):
            verdicts[f"{cid}.error_ok"] = False
            continue
        if "best" in expect:
            exp_best[cid] = float(expect["best"])
            got_best[cid] = result.best
        if "confidence" in expect:
            exp_conf[cid] = float(expect["confidence"])
            got_conf[cid] = float(result.confidence)
        if "bounds" in expect:
            verdicts[f"{cid}.bounds_ok"] = list(result.bounds or ()) == [float(b) for b in expect["bounds"]]

    best = numeric_agreement(exp_best, got_best, name="best_agreement")
    conf = numeric_agreement(exp_conf, got_conf, name="confidence_agreement")
    for m in (best, conf):
        if m.score is not None:
            verdicts[f"{m.name}_ok"] = m.score == 1.0

    return {"outputs": outputs, "metrics": [asdict(best), asdict(conf)], "verdicts": verdicts}


def _run_synthetic(params: Dict[str, Any]) -> Dict[str, Any]:
    known = set(SynthConfig.__dataclass_fields__)
    cfg = SynthConfig(**{k: v for k, v in params.items() if k in known})
    checked = []
    for c in generate_cases(cfg):
        result = evaluate(query=c.query, refs=c.refs, mode=c.mode, formula=c.formula, scale=c.scale)
        violations = invariant_violations(c.refs, result)
        if violations:
            logger.warning("Case %s violates %s", c.case_id, violations)
        checked.append(violations)
    rate = invariant_pass_rate(checked)
    return {"config": asdict(cfg), "metric": asdict(rate), "ok": rate.score == 1.0}


def run(case_path: Optional[str]) -> Dict[str, Any]:
    case = load_case(case_path)

    result: Dict[str, Any] = {
        "case": {"name": case.get("name"), "path": case.get("path")},
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "git_head": _git_head_sha(),
        "env": {
            "python": sys.version.split()[0],
            "platform": platform.platform(),
            "cwd": os.getcwd(),
        },
    }

    golden = _run_golden(case.get("cases") or [])
    result["golden"] = golden
    verdicts = dict(golden["verdicts"])

    if case.get("synthetic"):
        synth = _run_synthetic(case["synthetic"])
        result["synthetic"] = synth
        verdicts["invariants_ok"] = synth["ok"]

    result["verdicts"] = verdicts
    result["pass"] = all(bool(v) for v in verdicts.values()) if verdicts else None
    return result
