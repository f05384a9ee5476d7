import pytest

from tnb_core.errors import InvalidInput
from tnb_core.evaluator import ConfidenceFormula, Mode
from tnb_core.settings import SETTINGS_KEY, BotSettings, SettingsStore
from tnb_core.store import MemoryStore


def test_defaults_when_nothing_saved():
    s = SettingsStore(MemoryStore()).load()
    assert s == BotSettings()
    assert s.refs == (0.0, 1.0, 20.0)
    assert s.mode == Mode.CLOSEST
    assert s.conf == ConfidenceFormula.RATIO
    assert s.scale == 10.0


def test_save_and_load_roundtrip():
    store = SettingsStore(MemoryStore())
    saved = BotSettings(refs=(3.0, -1.0), mode=Mode.RANGE, conf=ConfidenceFormula.EXP, scale=2.5)
    store.save(saved)
    assert store.load() == saved


def test_corrupt_or_unknown_values_fall_back():
    kv = MemoryStore({SETTINGS_KEY: "{not json"})
    assert SettingsStore(kv).load() == BotSettings()

    kv.set(SETTINGS_KEY, '{"refs": ["x"], "mode": "nearest", "conf": "linear", "scale": "0"}')
    assert SettingsStore(kv).load() == BotSettings()


def test_scale_stored_as_text_is_accepted():
    kv = MemoryStore({SETTINGS_KEY: '{"scale": "4"}'})
    assert SettingsStore(kv).load().scale == 4.0


def test_save_refs_requires_at_least_one():
    store = SettingsStore(MemoryStore())
    with pytest.raises(InvalidInput, match="at least one"):
        store.save_refs([])
    assert store.save_refs([5, 6]).refs == (5.0, 6.0)
    assert store.load().refs == (5.0, 6.0)


def test_reset_refs_uses_configured_defaults():
    store = SettingsStore(MemoryStore(), default_refs=(1.0, 2.0))
    store.save_refs([9])
    store.update(mode="rank")
    s = store.reset_refs()
    assert s.refs == (1.0, 2.0)
    assert s.mode == Mode.RANK


def test_update_options():
    store = SettingsStore(MemoryStore())
    s = store.update(mode="range", conf="exp", scale=-3)
    assert s.mode == Mode.RANGE
    assert s.conf == ConfidenceFormula.EXP
    assert s.scale == 10.0

    with pytest.raises(InvalidInput):
        store.update(mode="bogus")
