from tnb_synth.queries import SynthConfig, generate_cases


def test_generation_is_reproducible():
    cfg = SynthConfig(seed=11, n_cases=25)
    assert generate_cases(cfg) == generate_cases(cfg)


def test_cases_are_well_formed():
    cfg = SynthConfig(seed=3, n_cases=100, max_refs=4)
    cases = generate_cases(cfg)
    assert len(cases) == 100
    for c in cases:
        assert 1 <= len(c.refs) <= 4
        assert all(isinstance(r, float) for r in c.refs)
        assert c.scale > 0


def test_integer_cases_produce_duplicates():
    cfg = SynthConfig(seed=5, n_cases=200, integer_frac=1.0, max_refs=8)
    assert any(len(set(c.refs)) < len(c.refs) for c in generate_cases(cfg))
