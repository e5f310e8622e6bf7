from __future__ import annotations
import numpy as np
import pandas as pd
from cep_common.records import POSITIVE_CLASS
from cep_ml.forest import TrainedModel


def variable_importance(model: TrainedModel) -> pd.DataFrame:
    """
    Impurity (Gini) importance summed over all trees, unscaled, plus a
    0-100 min-max scaled copy. Sorted most important first.
    """
    est = model.estimator
    raw = np.zeros(len(model.features))
    for tree in est.estimators_:
        raw += tree.tree_.compute_feature_importances(normalize=False)

    lo, hi = raw.min(), raw.max()
    if hi > lo:
        scaled = (raw - lo) / (hi - lo) * 100.0
    else:
        scaled = np.where(raw > 0, 100.0, 0.0)

    out = pd.DataFrame({"feature": model.features, "importance": raw, "scaled": scaled})
    return out.sort_values("importance", ascending=False, kind="mergesort").reset_index(drop=True)


def feature_grid(values: pd.Series, grid_points: int, percentiles: tuple[float, float] = (0.05, 0.95)) -> np.ndarray:
    lo, hi = np.nanquantile(values.astype("float64"), percentiles)
    return np.linspace(lo, hi, grid_points)


def partial_dependence(
    model: TrainedModel,
    X: pd.DataFrame,
    feature: str,
    grid_points: int = 25,
    percentiles: tuple[float, float] = (0.05, 0.95),
    positive: str = POSITIVE_CLASS,
) -> pd.DataFrame:
    """
    Average predicted P(positive) with `feature` forced to each grid value
    for every row of X (other features as observed). One row per grid point.
    """
    if feature not in model.features:
        raise KeyError(f"{feature} is not a model feature")
    grid = feature_grid(X[feature], grid_points, percentiles)
    base = X[model.features].copy()
    means = []
    for g in grid:
        base[feature] = g
        means.append(float(np.mean(model.positive_proba(base, positive))))
    return pd.DataFrame({"value": grid, "mean_probability": means, "feature": feature})


def partial_dependence_many(
    model: TrainedModel,
    X: pd.DataFrame,
    features: list[str],
    grid_points: int = 25,
) -> dict[str, pd.DataFrame]:
    return {f: partial_dependence(model, X, f, grid_points) for f in features}
