from pathlib import Path

import pytest

from tnb_eval.harness import load_case, run

SMOKE = Path(__file__).resolve().parents[1] / "evals" / "cases" / "smoke.yaml"


def test_default_cases_pass():
    payload = run(None)
    assert payload["pass"] is True
    assert payload["golden"]["outputs"]["empty_refs"]["error"] == "invalid_input"
    assert payload["synthetic"]["ok"] is True


def test_smoke_case_file_passes():
    payload = run(str(SMOKE))
    assert payload["case"]["name"] == "smoke"
    assert payload["pass"] is True, payload["verdicts"]


def test_wrong_expectation_fails(tmp_path: Path):
    p = tmp_path / "wrong.yaml"
    p.write_text(
        "cases:\n"
        "  - id: off\n"
        "    query: 2\n"
        "    refs: [0, 1, 20]\n"
        "    expect:\n"
        "      best: 20\n"
        "      confidence: 67\n",
        encoding="utf-8",
    )
    payload = run(str(p))
    assert payload["case"]["name"] == "wrong"
    assert payload["verdicts"]["best_agreement_ok"] is False
    assert payload["verdicts"]["confidence_agreement_ok"] is True
    assert payload["pass"] is False


def test_unexpected_error_fails(tmp_path: Path):
    p = tmp_path / "err.yaml"
    p.write_text("cases:\n  - id: e\n    query: 1\n    refs: [1]\n    expect: {error: invalid_input}\n", encoding="utf-8")
    assert run(str(p))["pass"] is False


def test_load_case_errors(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_case(str(tmp_path / "missing.yaml"))

    p = tmp_path / "list.yaml"
    p.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_case(str(p))
