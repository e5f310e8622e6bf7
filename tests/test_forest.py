import numpy as np
import pandas as pd
import pytest

from cep_common.errors import DegenerateSplitError, MissingFeatureError
from cep_common.records import MODEL_FEATURES
from cep_ml.features import prepare_features
from cep_ml.forest import WORST_KAPPA, fit_forest, kappa_scorer, param_grid
from conftest import make_county_frame

SMALL = dict(mtry_range=(1, 2), min_leaf_range=(1, 2), n_trees=25, seed=117, n_jobs=1)


def ten_counties() -> pd.DataFrame:
    # 6 R / 4 D, separable on f1
    return pd.DataFrame({
        "geoid": [str(1001 + i).zfill(5) for i in range(10)],
        "f1": [1.0, 2.0, 1.5, 2.5, 1.2, 2.2, 8.0, 9.0, 8.5, 9.5],
        "f2": [5.0, 3.0, 4.0, 6.0, 5.5, 4.5, 5.0, 4.0, 6.0, 3.5],
        "f3": [0.1, 0.4, 0.3, 0.2, 0.5, 0.6, 0.4, 0.1, 0.3, 0.2],
        "party": ["REPUBLICAN"] * 6 + ["DEMOCRAT"] * 4,
    })


def test_param_grid_clips_mtry_to_feature_count():
    g = param_grid((1, 10), (1, 15), n_features=3)
    assert g["max_features"] == [1, 2, 3]
    assert g["min_samples_leaf"] == list(range(1, 16))
    assert g["criterion"] == ["gini"]


def test_param_grid_empty_range():
    with pytest.raises(ValueError):
        param_grid((5, 10), (1, 2), n_features=3)


def test_ten_county_model_beats_majority_baseline():
    df = ten_counties()
    model = fit_forest(df, ["f1", "f2", "f3"], fold_count=10, **SMALL)
    pred = model.predict(df)
    accuracy = float((pred == df["party"].to_numpy()).mean())
    baseline = df["party"].value_counts(normalize=True).max()
    assert accuracy >= baseline
    # minority class has 4 counties -> CV folds capped at 4
    assert model.n_folds == 4
    assert len(model.cv_results) == 4
    assert set(model.best_params) == {"max_features", "criterion", "min_samples_leaf"}


def test_cv_results_table_shape():
    data = prepare_features(make_county_frame(n=60))
    model = fit_forest(data, MODEL_FEATURES, fold_count=3, **SMALL)
    cv = model.cv_results
    assert list(cv.columns) == ["mtry", "splitrule", "min_leaf", "kappa", "kappa_sd", "rank"]
    assert cv["rank"].iloc[0] == 1
    assert model.best_kappa == pytest.approx(cv["kappa"].max())
    assert -1.0 <= model.best_kappa <= 1.0
    assert model.oob_accuracy is not None


def test_cv_kappa_reproducible_with_seed():
    data = prepare_features(make_county_frame(n=60))
    m1 = fit_forest(data, MODEL_FEATURES, fold_count=3, **SMALL)
    m2 = fit_forest(data, MODEL_FEATURES, fold_count=3, **SMALL)
    assert m1.best_params == m2.best_params
    assert m1.best_kappa == pytest.approx(m2.best_kappa)


def test_positive_proba_in_unit_interval():
    df = ten_counties()
    model = fit_forest(df, ["f1", "f2", "f3"], fold_count=2, **SMALL)
    p = model.positive_proba(df)
    assert p.shape == (10,)
    assert ((p >= 0) & (p <= 1)).all()
    assert model.classes == ["DEMOCRAT", "REPUBLICAN"]


def test_missing_feature_fails_loudly():
    df = ten_counties()
    df.loc[3, "f2"] = np.nan
    with pytest.raises(MissingFeatureError):
        fit_forest(df, ["f1", "f2", "f3"], **SMALL)


def test_missing_target_fails_loudly():
    df = ten_counties()
    df.loc[0, "party"] = None
    with pytest.raises(MissingFeatureError):
        fit_forest(df, ["f1", "f2", "f3"], **SMALL)


def test_single_minority_county_is_degenerate():
    df = ten_counties()
    df.loc[6:8, "party"] = "REPUBLICAN"
    with pytest.raises(DegenerateSplitError):
        fit_forest(df, ["f1", "f2", "f3"], **SMALL)


class _Const:
    def predict(self, X):
        return np.array(["REPUBLICAN"] * len(X))


def test_kappa_scorer_single_class_fold_scores_worst():
    y = np.array(["REPUBLICAN"] * 4)
    assert kappa_scorer(_Const(), np.zeros((4, 1)), y) == WORST_KAPPA


def test_kappa_scorer_regular_fold():
    y = np.array(["REPUBLICAN", "DEMOCRAT", "REPUBLICAN", "DEMOCRAT"])
    # predicting one class for a balanced fold is chance agreement
    assert kappa_scorer(_Const(), np.zeros((4, 1)), y) == pytest.approx(0.0)
