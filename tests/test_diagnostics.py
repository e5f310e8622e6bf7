import numpy as np
import pandas as pd
import pytest

from cep_ml.diagnostics import (
    correlation_matrix,
    find_correlation,
    find_linear_combos,
    flag_correlated_pairs,
    near_zero_variance,
    run_diagnostics,
    summarize,
)


@pytest.fixture
def frame():
    rng = np.random.default_rng(3)
    n = 200
    a = rng.normal(size=n)
    b = rng.normal(size=n)
    return pd.DataFrame({
        "a": a,
        "a_twin": a * 2 + rng.normal(scale=0.01, size=n),
        "b": b,
        "ab_sum": a + b,
        "noise": rng.normal(size=n),
    })


def test_correlation_matrix_pairwise_complete(frame):
    df = frame.copy()
    df.loc[:10, "b"] = np.nan
    corr = correlation_matrix(df, list(df.columns))
    assert corr.shape == (5, 5)
    assert corr.loc["a", "a"] == pytest.approx(1.0)
    assert not corr.isna().any().any()


def test_flag_pairs_above_threshold(frame):
    corr = correlation_matrix(frame, list(frame.columns))
    pairs = flag_correlated_pairs(corr, 0.6)
    got = {frozenset((r.var1, r.var2)) for r in pairs.itertuples()}
    assert frozenset(("a", "a_twin")) in got
    assert all(frozenset((x, x)) not in got for x in frame.columns)
    assert not any("noise" in p for p in got)
    assert pairs["abs_corr"].is_monotonic_decreasing


def test_find_correlation_removes_one_of_the_twins(frame):
    corr = correlation_matrix(frame, list(frame.columns))
    removed = find_correlation(corr, 0.9)
    assert len(set(removed) & {"a", "a_twin"}) == 1
    kept = [c for c in frame.columns if c not in removed]
    sub = corr.loc[kept, kept].abs().to_numpy(copy=True)
    np.fill_diagonal(sub, 0)
    assert (sub <= 0.9).all()


def test_find_correlation_nothing_to_remove(frame):
    corr = correlation_matrix(frame, ["b", "noise"])
    assert find_correlation(corr, 0.9) == []


def test_linear_combo_detected(frame):
    combos = find_linear_combos(frame, ["a", "b", "ab_sum", "noise"])
    assert [c.column for c in combos] == ["ab_sum"]
    assert sorted(combos[0].depends_on) == ["a", "b"]
    assert combos[0].coefficients == pytest.approx([1.0, 1.0])


def test_no_linear_combo_for_independent_columns(frame):
    assert find_linear_combos(frame, ["a", "b", "noise"]) == []


def test_near_zero_variance():
    n = 100
    df = pd.DataFrame({
        "constant": [1.0] * n,
        "rare": [0.0] * 98 + [1.0, 2.0],
        "spread": np.arange(n, dtype=float),
    })
    nzv = near_zero_variance(df, list(df.columns))
    assert nzv.loc["constant", "zero_var"]
    assert nzv.loc["constant", "nzv"]
    assert nzv.loc["rare", "nzv"]
    assert nzv.loc["rare", "freq_ratio"] == pytest.approx(98.0)
    assert not nzv.loc["spread", "nzv"]
    assert nzv.loc["spread", "percent_unique"] == pytest.approx(100.0)


def test_summary_counts_missing(frame):
    df = frame.copy()
    df.loc[:4, "noise"] = np.nan
    s = summarize(df, ["a", "noise"])
    assert s.loc["noise", "missing"] == 5
    assert s.loc["a", "count"] == 200


def test_run_diagnostics_does_not_touch_frame(frame):
    before = frame.copy()
    diag = run_diagnostics(frame, list(frame.columns))
    pd.testing.assert_frame_equal(frame, before)
    rep = diag.report()
    assert "ab_sum" in rep["linear_combos"]
    assert rep["near_zero_variance"] == []
