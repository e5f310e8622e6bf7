from __future__ import annotations
from dataclasses import dataclass, field
import numpy as np
import pandas as pd
from cep_common.console import info


@dataclass
class LinearCombo:
    column: str
    depends_on: list[str]
    coefficients: list[float]


@dataclass
class Diagnostics:
    summary: pd.DataFrame
    corr: pd.DataFrame
    flagged_pairs: pd.DataFrame
    redundant: list[str]
    linear_combos: list[LinearCombo] = field(default_factory=list)
    near_zero: pd.DataFrame = field(default_factory=pd.DataFrame)

    def report(self) -> dict:
        return {
            "n_flagged_pairs": int(len(self.flagged_pairs)),
            "redundant": list(self.redundant),
            "linear_combos": {c.column: c.depends_on for c in self.linear_combos},
            "near_zero_variance": self.near_zero.index[self.near_zero["nzv"]].tolist()
            if not self.near_zero.empty else [],
        }


def summarize(df: pd.DataFrame, features: list[str]) -> pd.DataFrame:
    desc = df[features].describe().T
    desc["missing"] = df[features].isna().sum()
    return desc


def correlation_matrix(df: pd.DataFrame, features: list[str]) -> pd.DataFrame:
    # pandas corr excludes NaN pairwise (complete observations per pair)
    return df[features].astype("float64").corr(method="pearson")


def flag_correlated_pairs(corr: pd.DataFrame, threshold: float = 0.6) -> pd.DataFrame:
    """Unordered predictor pairs with |r| > threshold, strongest first."""
    cols = list(corr.columns)
    rows = []
    for i, a in enumerate(cols):
        for b in cols[i + 1:]:
            r = corr.at[a, b]
            if pd.notna(r) and abs(r) > threshold:
                rows.append({"var1": a, "var2": b, "corr": float(r), "abs_corr": float(abs(r))})
    out = pd.DataFrame(rows, columns=["var1", "var2", "corr", "abs_corr"])
    return out.sort_values("abs_corr", ascending=False, kind="mergesort").reset_index(drop=True)


def find_correlation(corr: pd.DataFrame, cutoff: float = 0.9) -> list[str]:
    """
    Greedy redundancy removal: while any pair exceeds `cutoff`, drop the
    predictor (among those in a violating pair) with the highest mean
    absolute correlation to the remaining predictors.
    """
    remaining = list(corr.columns)
    removed: list[str] = []
    while len(remaining) > 1:
        sub = corr.loc[remaining, remaining].abs().to_numpy(copy=True)
        np.fill_diagonal(sub, np.nan)
        with np.errstate(invalid="ignore"):
            viol = np.nan_to_num(sub, nan=0.0) > cutoff
        if not viol.any():
            break
        cand = [k for k in range(len(remaining)) if viol[k].any()]
        means = np.nanmean(sub[cand], axis=1)
        drop = remaining[cand[int(np.argmax(means))]]
        removed.append(drop)
        remaining.remove(drop)
    return removed


def find_linear_combos(df: pd.DataFrame, features: list[str], tol: float = 1e-7) -> list[LinearCombo]:
    """
    Columns that are (near-)exact linear combinations of earlier columns,
    found by growing a basis and checking the rank on complete cases.
    """
    X = df[features].astype("float64").dropna().to_numpy()
    if X.shape[0] == 0:
        return []
    norms = np.linalg.norm(X, axis=0)
    Xn = np.divide(X, norms, out=np.zeros_like(X), where=norms > 0)

    basis: list[int] = []
    combos: list[LinearCombo] = []
    rank = 0
    for j, name in enumerate(features):
        cols = basis + [j]
        r = np.linalg.matrix_rank(Xn[:, cols], tol=tol) if norms[j] > 0 else rank
        if r > rank:
            basis.append(j)
            rank = r
            continue
        if basis and norms[j] > 0:
            coef, *_ = np.linalg.lstsq(X[:, basis], X[:, j], rcond=None)
        else:
            coef = np.zeros(len(basis))
        keep = [(features[b], float(c)) for b, c in zip(basis, coef) if abs(c) > 1e-8]
        combos.append(LinearCombo(
            column=name,
            depends_on=[k for k, _ in keep],
            coefficients=[c for _, c in keep],
        ))
    return combos


def near_zero_variance(
    df: pd.DataFrame,
    features: list[str],
    freq_cut: float = 95 / 5,
    unique_cut: float = 10.0,
) -> pd.DataFrame:
    rows = []
    for c in features:
        vals = df[c].dropna()
        counts = vals.value_counts()
        n_unique = int(counts.size)
        pct_unique = 100.0 * n_unique / len(vals) if len(vals) else 0.0
        zero_var = n_unique <= 1
        freq_ratio = float(counts.iloc[0] / counts.iloc[1]) if n_unique > 1 else float("nan")
        nzv = zero_var or (freq_ratio > freq_cut and pct_unique < unique_cut)
        rows.append({
            "feature": c,
            "freq_ratio": freq_ratio,
            "percent_unique": pct_unique,
            "zero_var": zero_var,
            "nzv": bool(nzv),
        })
    return pd.DataFrame(rows).set_index("feature")


def run_diagnostics(
    df: pd.DataFrame,
    features: list[str],
    *,
    flag_threshold: float = 0.6,
    cutoff: float = 0.9,
) -> Diagnostics:
    corr = correlation_matrix(df, features)
    diag = Diagnostics(
        summary=summarize(df, features),
        corr=corr,
        flagged_pairs=flag_correlated_pairs(corr, flag_threshold),
        redundant=find_correlation(corr, cutoff),
        linear_combos=find_linear_combos(df, features),
        near_zero=near_zero_variance(df, features),
    )
    info({"diagnostics": diag.report()})
    return diag
