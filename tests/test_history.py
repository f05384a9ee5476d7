import io

import pandas as pd

from tnb_core.history import (
    CSV_FIELDS,
    HISTORY_KEY,
    HistoryEntry,
    HistoryLog,
    format_history_line,
    iso_time,
)
from tnb_core.store import MemoryStore


def _entry(i: float, output=1.0, t: int = 0) -> HistoryEntry:
    return HistoryEntry(input=i, output=output, confidence=67, dv="1234-LP-5678", time=t)


def test_append_and_newest_first():
    log = HistoryLog(MemoryStore())
    log.append(_entry(1.0))
    log.append(_entry(2.0))
    assert [e.input for e in log.load()] == [1.0, 2.0]
    assert [e.input for e in log.newest_first()] == [2.0, 1.0]


def test_history_is_capped_oldest_first():
    log = HistoryLog(MemoryStore(), limit=3)
    for i in range(5):
        log.append(_entry(float(i)))
    assert [e.input for e in log.load()] == [2.0, 3.0, 4.0]


def test_clear():
    log = HistoryLog(MemoryStore())
    log.append(_entry(1.0))
    log.clear()
    assert log.load() == []


def test_corrupt_history_is_empty():
    assert HistoryLog(MemoryStore({HISTORY_KEY: "[oops"})).load() == []
    kv = MemoryStore({HISTORY_KEY: '[{"input": 2, "output": 1, "confidence": 67}, {"bad": 1}]'})
    entries = HistoryLog(kv).load()
    assert len(entries) == 1
    assert entries[0].output == 1.0


def test_ranked_output_survives_roundtrip():
    log = HistoryLog(MemoryStore())
    log.append(_entry(3.0, output="ranked"))
    assert log.load()[0].output == "ranked"


def test_iso_time():
    assert iso_time(0) == "1970-01-01T00:00:00.000Z"
    assert iso_time(1_700_000_000_123) == "2023-11-14T22:13:20.123Z"


def test_export_csv():
    log = HistoryLog(MemoryStore())
    log.append(_entry(2.0, output=1.0))
    log.append(_entry(-2.5, output="ranked", t=1000))
    text = log.export_csv()
    assert not text.endswith("\n")
    lines = text.splitlines()
    assert lines[0] == "input,output,confidence,dv,time"
    assert lines[1] == "2,1,67,1234-LP-5678,1970-01-01T00:00:00.000Z"
    assert lines[2] == "-2.5,ranked,67,1234-LP-5678,1970-01-01T00:00:01.000Z"

    df = pd.read_csv(io.StringIO(text))
    assert list(df.columns) == list(CSV_FIELDS)
    assert len(df) == 2


def test_to_frame_newest_first():
    log = HistoryLog(MemoryStore())
    assert log.to_frame().empty
    log.append(_entry(1.0))
    log.append(_entry(2.0))
    df = log.to_frame()
    assert list(df["input"]) == [2.0, 1.0]


def test_format_history_line():
    assert format_history_line(_entry(2.0)) == "2 → 1 (67%)"
    assert format_history_line(_entry(3.0, output="ranked")) == "3 → ranked (67%)"
