import numpy as np
import pytest

from tnb_core.errors import InvalidInput
from tnb_core.evaluator import (
    ConfidenceFormula,
    Mode,
    confidence_exp,
    confidence_ratio,
    evaluate,
    rank_references,
)

REFS = [0, 1, 20]


def test_closest_query_two():
    r = evaluate(query=2, refs=REFS, mode="closest", formula="ratio")
    assert r.best == 1
    assert r.distance == 1
    assert r.runner_up.reference == 0
    assert r.runner_up.distance == 2
    assert r.confidence == 67
    assert r.ranking is None
    assert r.bounds is None


def test_closest_query_minus_thirty():
    r = evaluate(query=-30, refs=REFS)
    assert r.best == 0
    assert r.distance == 30
    assert r.runner_up.reference == 1
    assert r.confidence == 51


def test_range_tie_first_in_order_wins():
    r = evaluate(query=10, refs=[0, 20], mode=Mode.RANGE)
    assert r.best == 0
    assert r.distance == 10
    assert r.bounds == (0.0, 20.0)
    assert r.confidence == 50


def test_range_bounds_ignore_sort_order():
    r = evaluate(query=100, refs=[5, -3, 40, 12], mode="range")
    assert r.best == 40
    assert r.bounds == (-3.0, 40.0)


def test_rank_lists_every_reference_by_distance():
    r = evaluate(query=3, refs=[10, 0, 4], mode="rank")
    assert [x.reference for x in r.ranking] == [4, 0, 10]
    assert [x.distance for x in r.ranking] == [1, 3, 7]
    assert r.confidence == 75


def test_rank_keeps_duplicates_and_input_order_on_ties():
    ranked = rank_references(5.0, [7.0, 3.0, 7.0])
    assert [x.reference for x in ranked] == [7.0, 3.0, 7.0]


def test_single_reference_is_full_confidence():
    for q in (-1e6, 0, 3.5, 42):
        assert evaluate(query=q, refs=[7]).confidence == 100


def test_two_exact_hits_score_fifty():
    r = evaluate(query=5, refs=[5, 5, 9])
    assert r.best == 5
    assert r.confidence == 50


def test_exact_hit_with_distinct_runner_up_is_hundred():
    assert evaluate(query=1, refs=REFS).confidence == 100


def test_ratio_equal_tiny_distances_is_fifty():
    assert confidence_ratio(1e-20, 1e-20) == 50
    assert confidence_ratio(0.0, 0.0) == 50
    assert confidence_ratio(3.0, None) == 100


def test_ratio_rounds_half_up():
    # 1 - 3/8 = 0.625 -> 62.5 -> 63
    assert evaluate(query=0, refs=[3, -5]).confidence == 63


def test_exp_formula():
    assert confidence_exp(0, 10) == 100
    assert confidence_exp(10, 10) == 37
    assert evaluate(query=10, refs=[0, 50], formula="exp", scale=10).confidence == 37


def test_exp_scale_defaults_when_missing_or_not_positive():
    assert confidence_exp(10, None) == 37
    assert confidence_exp(10, 0) == 37
    assert confidence_exp(10, -4) == 37
    r = evaluate(query=10, refs=[0], formula=ConfidenceFormula.EXP, scale=0)
    assert r.confidence == 37


def test_exp_only_exact_hit_scores_hundred():
    assert confidence_exp(0.001, 10) == 99
    assert confidence_exp(1e6, 10) == 0


def test_exp_decreases_with_distance():
    scores = [confidence_exp(d, 10) for d in range(0, 11)]
    assert all(a > b for a, b in zip(scores, scores[1:]))


def test_confidence_always_int_in_range():
    refs = [-7.5, 0, 0, 3, 1e9]
    for q in (-1e12, -7.5, -1, 0, 0.1, 2.9, 5e8, 1e12):
        for f in ("ratio", "exp"):
            c = evaluate(query=q, refs=refs, formula=f, scale=2).confidence
            assert isinstance(c, int)
            assert 0 <= c <= 100


def test_best_has_minimal_distance():
    refs = [12.5, -3, 8, 8.25, 40]
    for q in (-100, 0, 8.1, 8.2, 10, 26.25, 99):
        r = evaluate(query=q, refs=refs)
        assert r.best in refs
        assert r.distance == min(abs(q - x) for x in refs)


def test_empty_refs_fail_for_every_query():
    for q in (0, -1, 2.5, 1e9):
        with pytest.raises(InvalidInput):
            evaluate(query=q, refs=[])


def test_non_finite_values_rejected():
    with pytest.raises(InvalidInput):
        evaluate(query=float("nan"), refs=REFS)
    with pytest.raises(InvalidInput):
        evaluate(query=float("inf"), refs=REFS)
    with pytest.raises(InvalidInput):
        evaluate(query=1, refs=[0, float("inf")])
    with pytest.raises(InvalidInput):
        evaluate(query="abc", refs=REFS)


def test_unknown_mode_or_formula_rejected():
    with pytest.raises(InvalidInput):
        evaluate(query=1, refs=REFS, mode="nearest")
    with pytest.raises(InvalidInput):
        evaluate(query=1, refs=REFS, formula="linear")


def test_evaluation_is_pure():
    a = evaluate(query=2, refs=REFS, mode="rank")
    b = evaluate(query=2, refs=REFS, mode="rank")
    assert a == b


def test_to_dict_uses_plain_values():
    d = evaluate(query=10, refs=[0, 20], mode="range").to_dict()
    assert d["mode"] == "range"
    assert d["formula"] == "ratio"
    assert d["bounds"] == [0.0, 20.0]
    assert d["runner_up"] == {"reference": 20.0, "distance": 10.0}


def test_ratio_with_huge_finite_distances():
    # 1 - 1e308 / 2.7e308 -> 62.96 -> 63
    r = evaluate(query=0, refs=[1e308, -1.7e308])
    assert r.best == 1e308
    assert r.confidence == 63
    assert confidence_ratio(1.7e308, 1.7e308) == 50


def test_unrepresentable_distance_rejected():
    for mode in ("closest", "rank", "range"):
        with pytest.raises(InvalidInput):
            evaluate(query=1e308, refs=[-1e308, -1.5e308], mode=mode)


def test_array_refs_accepted():
    assert evaluate(query=2, refs=np.array([0.0, 1.0, 20.0])).best == 1.0
    with pytest.raises(InvalidInput):
        evaluate(query=2, refs=np.array([]))
