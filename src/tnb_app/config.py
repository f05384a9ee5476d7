from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tnb_core.chat import REPLY_DELAY_BASE, REPLY_DELAY_JITTER
from tnb_core.history import DEFAULT_HISTORY_LIMIT
from tnb_core.parsing import DEFAULT_REFS


@dataclass(frozen=True)
class AppConfig:
    default_refs: tuple[float, ...] = DEFAULT_REFS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    reply_delay_base: float = REPLY_DELAY_BASE
    reply_delay_jitter: float = REPLY_DELAY_JITTER
    state_dir: Path = Path("tnb_state")
    runs_dir: Path = Path("tnb_runs")


def _refs(value: Any, p: Path) -> tuple[float, ...]:
    if not isinstance(value, list) or not value:
        raise ValueError(f"default_refs must be a non-empty list: {p}")
    try:
        refs = tuple(float(v) for v in value)
    except (TypeError, ValueError):
        raise ValueError(f"default_refs must contain only numbers: {p}") from None
    if not all(math.isfinite(r) for r in refs):
        raise ValueError(f"default_refs must be finite: {p}")
    return refs


def load_app_config(path: Optional[str | Path] = None) -> AppConfig:
    """
    Load YAML configuration, then apply environment overrides.

    Lookup: explicit `path`, else $TNB_CONFIG, else built-in defaults.
    An explicitly named file that does not exist is an error.
    Env overrides: TNB_STATE_DIR, TNB_RUNS_DIR.
    """
    src = path or os.environ.get("TNB_CONFIG")
    obj: Dict[str, Any] = {}
    p = Path(src) if src else None
    if p is not None:
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {p}")
        loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config must be a mapping: {p}")
        obj = loaded

    defaults = AppConfig()
    kwargs: Dict[str, Any] = {}

    if "default_refs" in obj:
        kwargs["default_refs"] = _refs(obj["default_refs"], p)  # type: ignore[arg-type]
    if "history_limit" in obj:
        limit = int(obj["history_limit"])
        if limit <= 0:
            raise ValueError(f"history_limit must be > 0: {p}")
        kwargs["history_limit"] = limit
    for key in ("reply_delay_base", "reply_delay_jitter"):
        if key in obj:
            v = float(obj[key])
            if v < 0:
                raise ValueError(f"{key} must be >= 0: {p}")
            kwargs[key] = v

    state_dir = os.environ.get("TNB_STATE_DIR") or obj.get("state_dir")
    runs_dir = os.environ.get("TNB_RUNS_DIR") or obj.get("runs_dir")
    kwargs["state_dir"] = Path(state_dir) if state_dir else defaults.state_dir
    kwargs["runs_dir"] = Path(runs_dir) if runs_dir else defaults.runs_dir

    return AppConfig(**kwargs)
