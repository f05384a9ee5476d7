from __future__ import annotations

import json
import os
import subprocess
import time
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional


def _git_rev_short() -> str:
    try:
        p = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            check=False,
        )
        rev = (p.stdout or "").strip()
        return rev if rev else "unknown"
    except OSError:
        return "unknown"


def _jsonable(x: Any) -> Any:
    # Best-effort conversion to JSON-serializable structures.
    if x is None:
        return None
    if hasattr(x, "to_dict") and callable(getattr(x, "to_dict")):
        return _jsonable(x.to_dict())
    if is_dataclass(x) and not isinstance(x, type):
        return {k: _jsonable(v) for k, v in asdict(x).items()}
    if isinstance(x, (str, int, float, bool)):
        return x
    if isinstance(x, Path):
        return str(x)
    if isinstance(x, dict):
        return {str(k): _jsonable(v) for k, v in x.items()}
    if isinstance(x, (list, tuple, set)):
        return [_jsonable(v) for v in x]
    # enums
    if hasattr(x, "value"):
        return _jsonable(getattr(x, "value"))
    return repr(x)


def build_session_artifact(
    *,
    run_source: str,
    settings: Any,
    history: Iterable[Any],
    transcript: Iterable[Any],
    results: Optional[Iterable[Any]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    ts = time.strftime("%Y%m%d_%H%M%S")
    history_items = [_jsonable(h) for h in history]
    transcript_items = [_jsonable(m) for m in transcript]

    artifact: Dict[str, Any] = {
        "schema": "tnb.session_artifact.v1",
        "timestamp": ts,
        "git_rev": _git_rev_short(),
        "run_source": run_source,
        "settings": _jsonable(settings),
        "history": {"count": len(history_items), "items": history_items},
        "transcript": {"count": len(transcript_items), "items": transcript_items},
    }
    if results is not None:
        artifact["results"] = [_jsonable(r) for r in results]
    if extra:
        artifact["extra"] = _jsonable(extra)

    return artifact


def write_session_artifact(
    artifact: Dict[str, Any],
    *,
    runs_dir: Optional[str | Path] = None,
) -> Path:
    out_dir = Path(runs_dir or os.environ.get("TNB_RUNS_DIR", "tnb_runs"))
    out_dir.mkdir(parents=True, exist_ok=True)

    ts = artifact.get("timestamp") or time.strftime("%Y%m%d_%H%M%S")
    rev = artifact.get("git_rev", "unknown")
    path = out_dir / f"session_{ts}_{rev}.json"

    text = json.dumps(artifact, indent=2, sort_keys=False, ensure_ascii=False)
    path.write_text(text, encoding="utf-8")
    (out_dir / "latest.json").write_text(text, encoding="utf-8")
    return path
