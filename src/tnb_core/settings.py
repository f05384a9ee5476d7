from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Sequence

from tnb_core.errors import InvalidInput
from tnb_core.evaluator import DEFAULT_EXP_SCALE, ConfidenceFormula, Mode
from tnb_core.parsing import DEFAULT_REFS
from tnb_core.store import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "tnb_settings"


@dataclass(frozen=True)
class BotSettings:
    refs: tuple[float, ...] = DEFAULT_REFS
    mode: Mode = Mode.CLOSEST
    conf: ConfidenceFormula = ConfidenceFormula.RATIO
    scale: float = DEFAULT_EXP_SCALE

    def to_dict(self) -> dict[str, Any]:
        return {
            "refs": list(self.refs),
            "mode": self.mode.value,
            "conf": self.conf.value,
            "scale": self.scale,
        }

    @classmethod
    def from_dict(cls, obj: Dict[str, Any], *, default_refs: Sequence[float] = DEFAULT_REFS) -> "BotSettings":
        """Lenient: anything missing or unrecognised falls back to its default."""
        refs = default_refs
        raw_refs = obj.get("refs")
        if isinstance(raw_refs, list):
            parsed = []
            for r in raw_refs:
                try:
                    v = float(r)
                except (TypeError, ValueError):
                    continue
                if math.isfinite(v):
                    parsed.append(v)
            if parsed:
                refs = parsed

        try:
            mode = Mode(obj.get("mode", Mode.CLOSEST.value))
        except ValueError:
            mode = Mode.CLOSEST
        try:
            conf = ConfidenceFormula(obj.get("conf", ConfidenceFormula.RATIO.value))
        except ValueError:
            conf = ConfidenceFormula.RATIO

        # stored as text by some front ends; "0" or garbage means default
        try:
            scale = float(obj.get("scale") or DEFAULT_EXP_SCALE)
        except (TypeError, ValueError):
            scale = DEFAULT_EXP_SCALE
        if not math.isfinite(scale) or scale <= 0:
            scale = DEFAULT_EXP_SCALE

        return cls(refs=tuple(refs), mode=mode, conf=conf, scale=scale)


class SettingsStore:
    """Settings persisted as one JSON object under SETTINGS_KEY."""

    def __init__(self, store: KeyValueStore, *, default_refs: Sequence[float] = DEFAULT_REFS):
        self.store = store
        self.default_refs = tuple(default_refs)

    def _raw(self) -> Dict[str, Any]:
        text = self.store.get(SETTINGS_KEY)
        if not text:
            return {}
        try:
            obj = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt %s value", SETTINGS_KEY)
            return {}
        return obj if isinstance(obj, dict) else {}

    def load(self) -> BotSettings:
        return BotSettings.from_dict(self._raw(), default_refs=self.default_refs)

    def save(self, settings: BotSettings) -> BotSettings:
        self.store.set(SETTINGS_KEY, json.dumps(settings.to_dict()))
        return settings

    def update(
        self,
        *,
        mode: Optional[Mode | str] = None,
        conf: Optional[ConfidenceFormula | str] = None,
        scale: Optional[float] = None,
    ) -> BotSettings:
        s = self.load()
        if mode is not None:
            try:
                s = replace(s, mode=Mode(mode))
            except ValueError:
                raise InvalidInput(f"Unknown mode: {mode!r}") from None
        if conf is not None:
            try:
                s = replace(s, conf=ConfidenceFormula(conf))
            except ValueError:
                raise InvalidInput(f"Unknown confidence formula: {conf!r}") from None
        if scale is not None:
            s = replace(s, scale=float(scale) if scale > 0 else DEFAULT_EXP_SCALE)
        return self.save(s)

    def save_refs(self, refs: Sequence[float]) -> BotSettings:
        if not refs:
            raise InvalidInput("Provide at least one reference number.")
        return self.save(replace(self.load(), refs=tuple(float(r) for r in refs)))

    def reset_refs(self) -> BotSettings:
        return self.save(replace(self.load(), refs=self.default_refs))
