from __future__ import annotations
import numpy as np
import pandas as pd
from cep_common.console import info
from cep_common.errors import MissingFeatureError
from cep_common.records import (
    HOURS_COLUMNS,
    MODEL_FEATURES,
    PARTIES,
    SECTOR_COUNT_COLUMNS,
    SECTOR_SHARE_COLUMNS,
    TARGET,
)

IDENT_COLS = ("geoid", "name", "state")


def _pct(num: pd.Series, denom: pd.Series) -> pd.Series:
    num = pd.to_numeric(num, errors="coerce").astype("float64")
    denom = pd.to_numeric(denom, errors="coerce").astype("float64")
    # zero or missing denominator -> NaN, never inf
    safe = denom.where(denom > 0)
    return num / safe * 100.0


def add_derived_features(df: pd.DataFrame) -> pd.DataFrame:
    """
    Sector employment shares (% of labor force) and poverty rate
    (% of total population). Returns a new frame; `df` is untouched.
    """
    out = df.copy()
    for count_col, share_col in zip(SECTOR_COUNT_COLUMNS, SECTOR_SHARE_COLUMNS):
        out[share_col] = _pct(out[count_col], out["labor_force"])
    out["poverty_rate"] = _pct(out["poverty_count"], out["total_pop"])
    return out


def filter_required(df: pd.DataFrame, required: list[str] = HOURS_COLUMNS) -> pd.DataFrame:
    """
    Drop counties missing mean hours worked. Small counties have no ACS
    estimate for these and the forest takes no missing values.
    """
    mask = df[required].notna().all(axis=1)
    dropped = int((~mask).sum())
    if dropped:
        info(f"filter_required: dropped {dropped} counties missing {required}")
    return df.loc[mask].copy()


def drop_incomplete(df: pd.DataFrame, features: list[str] = MODEL_FEATURES) -> pd.DataFrame:
    mask = df[features].notna().all(axis=1)
    dropped = int((~mask).sum())
    if dropped:
        info(f"drop_incomplete: dropped {dropped} counties with a missing predictor")
    return df.loc[mask].copy()


def encode_target(df: pd.DataFrame, target: str = TARGET) -> pd.DataFrame:
    out = df.copy()
    raw = out[target].astype("string").str.upper()
    unknown = sorted(set(raw.dropna()) - set(PARTIES))
    if unknown:
        raise MissingFeatureError(f"unexpected {target} labels: {unknown}")
    out[target] = pd.Categorical(raw, categories=list(PARTIES))
    return out


def prepare_features(df: pd.DataFrame, features: list[str] = MODEL_FEATURES) -> pd.DataFrame:
    """Stage 2 in one call: derive, filter required, drop incomplete, encode."""
    out = add_derived_features(df)
    out = filter_required(out)
    out = drop_incomplete(out, features)
    return encode_target(out)


def model_frame(
    df: pd.DataFrame,
    features: list[str],
    target: str = TARGET,
) -> tuple[pd.DataFrame, pd.Series]:
    """
    X (float64) and y for the trainer. Missing values here mean the
    filters upstream were skipped or misconfigured, so fail loudly.
    """
    absent = [c for c in [*features, target] if c not in df.columns]
    if absent:
        raise MissingFeatureError(f"columns not in frame: {absent}")

    X = df.loc[:, features].apply(pd.to_numeric, errors="coerce").astype("float64")
    y = df[target]

    bad_X = X.columns[X.isna().any()].tolist()
    if bad_X:
        raise MissingFeatureError(f"missing values in features {bad_X}")
    if y.isna().any():
        raise MissingFeatureError(f"{int(y.isna().sum())} rows with missing {target}")
    if not np.isfinite(X.to_numpy()).all():
        raise MissingFeatureError("non-finite feature values")
    return X, y.astype(str)
