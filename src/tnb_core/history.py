from __future__ import annotations

import csv
import io
import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import pandas as pd

from tnb_core.parsing import format_number
from tnb_core.store import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "tnb_history"
DEFAULT_HISTORY_LIMIT = 200
CSV_FIELDS = ("input", "output", "confidence", "dv", "time")
EXPORT_FILENAME = "tiny-number-bot-history.csv"

RANKED = "ranked"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class HistoryEntry:
    """
    One answered query.

    output: the best reference, or the literal "ranked" for rank-mode replies
    time: epoch milliseconds
    """
    input: float
    output: Union[float, str]
    confidence: int
    dv: str
    time: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> "HistoryEntry":
        out = obj["output"]
        return cls(
            input=float(obj["input"]),
            output=out if out == RANKED else float(out),
            confidence=int(obj["confidence"]),
            dv=str(obj.get("dv", "")),
            time=int(obj.get("time", 0)),
        )


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_time(ms: int) -> str:
    """Epoch milliseconds as 2024-01-01T00:00:00.000Z."""
    dt = _EPOCH + timedelta(milliseconds=ms)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _fmt(v: Any) -> str:
    return format_number(v) if isinstance(v, float) else str(v)


class HistoryLog:
    """
    Capped list of HistoryEntry persisted as a JSON array under HISTORY_KEY.

    Oldest entries are dropped once `limit` is exceeded.
    """

    def __init__(self, store: KeyValueStore, *, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit <= 0:
            raise ValueError("history limit must be > 0")
        self.store = store
        self.limit = int(limit)

    def load(self) -> list[HistoryEntry]:
        text = self.store.get(HISTORY_KEY)
        if not text:
            return []
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt %s value", HISTORY_KEY)
            return []
        if not isinstance(raw, list):
            return []

        entries: list[HistoryEntry] = []
        for item in raw:
            try:
                entries.append(HistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed history row: %r", item)
        return entries

    def _save(self, entries: list[HistoryEntry]) -> None:
        self.store.set(HISTORY_KEY, json.dumps([e.to_dict() for e in entries]))

    def append(self, entry: HistoryEntry) -> list[HistoryEntry]:
        entries = self.load()
        entries.append(entry)
        if len(entries) > self.limit:
            entries = entries[-self.limit:]
        self._save(entries)
        return entries

    def clear(self) -> None:
        self.store.delete(HISTORY_KEY)

    def newest_first(self) -> list[HistoryEntry]:
        return list(reversed(self.load()))

    def export_csv(self, entries: Optional[list[HistoryEntry]] = None) -> str:
        """CSV text with header input,output,confidence,dv,time (ISO-8601 UTC)."""
        rows = self.load() if entries is None else entries
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=CSV_FIELDS, lineterminator="\n")
        writer.writeheader()
        for e in rows:
            writer.writerow(
                {
                    "input": _fmt(e.input),
                    "output": _fmt(e.output),
                    "confidence": e.confidence,
                    "dv": e.dv,
                    "time": iso_time(e.time),
                }
            )
        # rows are joined by newlines, no trailing terminator
        return buf.getvalue().rstrip("\n")

    def to_frame(self) -> pd.DataFrame:
        """Newest-first table for display."""
        entries = self.newest_first()
        df = pd.DataFrame([e.to_dict() for e in entries], columns=list(CSV_FIELDS))
        if not df.empty:
            df["time"] = pd.to_datetime(df["time"], unit="ms", utc=True)
        return df


def format_history_line(entry: HistoryEntry) -> str:
    return f"{_fmt(entry.input)} → {_fmt(entry.output)} ({entry.confidence}%)"
