from __future__ import annotations
from dataclasses import dataclass, field
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import cohen_kappa_score
from sklearn.model_selection import GridSearchCV, StratifiedKFold
from cep_common.console import info, warn
from cep_common.errors import DegenerateSplitError
from cep_common.records import POSITIVE_CLASS, TARGET
from cep_ml.features import model_frame

# score a fold gets when kappa is undefined there
WORST_KAPPA = -1.0


def kappa_scorer(estimator, X, y) -> float:
    """
    Cohen's kappa for GridSearchCV. A validation fold holding a single
    class has no defined kappa; it scores as the worst possible value.
    """
    y = np.asarray(y)
    if np.unique(y).size < 2:
        warn(f"degenerate CV fold (single class, n={y.size}); scored {WORST_KAPPA}")
        return WORST_KAPPA
    k = cohen_kappa_score(y, estimator.predict(X))
    if not np.isfinite(k):
        warn("kappa undefined on fold; scored as worst")
        return WORST_KAPPA
    return float(k)


def param_grid(
    mtry_range: tuple[int, int],
    min_leaf_range: tuple[int, int],
    n_features: int,
) -> dict[str, list]:
    lo, hi = mtry_range
    hi = min(hi, n_features)
    if lo > hi:
        raise ValueError(f"mtry range {mtry_range} is empty for {n_features} features")
    return {
        "max_features": list(range(lo, hi + 1)),
        "criterion": ["gini"],
        "min_samples_leaf": list(range(min_leaf_range[0], min_leaf_range[1] + 1)),
    }


@dataclass
class TrainedModel:
    estimator: RandomForestClassifier
    features: list[str]
    best_params: dict
    best_kappa: float
    cv_results: pd.DataFrame
    n_folds: int
    oob_accuracy: float | None = None
    params: dict = field(default_factory=dict)

    @property
    def classes(self) -> list[str]:
        return [str(c) for c in self.estimator.classes_]

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return self.estimator.predict(X[self.features])

    def positive_proba(self, X: pd.DataFrame, positive: str = POSITIVE_CLASS) -> np.ndarray:
        if positive not in self.classes:
            raise DegenerateSplitError(f"{positive} was not seen in training")
        idx = self.classes.index(positive)
        return self.estimator.predict_proba(X[self.features])[:, idx]


def _cv_table(grid: GridSearchCV) -> pd.DataFrame:
    res = grid.cv_results_
    params = res["params"]
    return pd.DataFrame({
        "mtry": [p["max_features"] for p in params],
        "splitrule": [p["criterion"] for p in params],
        "min_leaf": [p["min_samples_leaf"] for p in params],
        "kappa": res["mean_test_score"],
        "kappa_sd": res["std_test_score"],
        "rank": res["rank_test_score"],
    }).sort_values(["rank", "mtry", "min_leaf"]).reset_index(drop=True)


def fit_forest(
    train: pd.DataFrame,
    features: list[str],
    target: str = TARGET,
    *,
    mtry_range: tuple[int, int] = (1, 10),
    min_leaf_range: tuple[int, int] = (1, 15),
    fold_count: int = 10,
    n_trees: int = 500,
    seed: int = 117,
    n_jobs: int = -1,
) -> TrainedModel:
    """
    Grid-search a random forest (mtry x split rule x min leaf size) with
    stratified k-fold CV on Cohen's kappa, then refit the best
    configuration on the whole training set.
    """
    X, y = model_frame(train, features, target)

    counts = y.value_counts()
    if len(counts) < 2 or counts.min() < 2:
        raise DegenerateSplitError(f"training labels cannot be stratified: {counts.to_dict()}")

    # keep CV feasible when the minority class is small
    n_folds = max(2, min(fold_count, int(counts.min())))
    if n_folds < fold_count:
        warn(f"minority class has {int(counts.min())} counties; using {n_folds}-fold CV instead of {fold_count}")

    grid_spec = param_grid(mtry_range, min_leaf_range, len(features))
    base = RandomForestClassifier(
        n_estimators=n_trees,
        bootstrap=True,
        oob_score=True,
        random_state=seed,
        n_jobs=1,
    )
    cv = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
    grid = GridSearchCV(
        base,
        param_grid=grid_spec,
        scoring=kappa_scorer,
        cv=cv,
        n_jobs=n_jobs,
        refit=True,
        error_score="raise",
    )
    grid.fit(X, y)

    est: RandomForestClassifier = grid.best_estimator_
    oob = getattr(est, "oob_score_", None)
    model = TrainedModel(
        estimator=est,
        features=list(features),
        best_params=dict(grid.best_params_),
        best_kappa=float(grid.best_score_),
        cv_results=_cv_table(grid),
        n_folds=n_folds,
        oob_accuracy=float(oob) if oob is not None else None,
        params={"n_trees": n_trees, "seed": seed, "grid": grid_spec},
    )
    info({
        "best_params": model.best_params,
        "cv_kappa": round(model.best_kappa, 4),
        "oob_accuracy": model.oob_accuracy,
        "n_grid": len(model.cv_results),
        "n_folds": n_folds,
    })
    return model
