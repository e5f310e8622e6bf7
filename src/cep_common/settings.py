# src/cep_common/settings.py
from __future__ import annotations
import os
from pathlib import Path
from typing import Tuple
from pydantic import BaseModel, field_validator, model_validator


def _env_range(name: str, default: Tuple[int, int]) -> Tuple[int, int]:
    raw = os.getenv(name)
    if not raw:
        return default
    lo, hi = (int(p.strip()) for p in raw.split(","))
    return lo, hi


class Settings(BaseModel):
    api_key: str | None = None
    year: int = 2020
    survey: str = "acs5"
    holdout_region: str = "GA"
    train_fraction: float = 0.85
    seed: int = 117
    mtry_range: Tuple[int, int] = (1, 10)
    min_leaf_range: Tuple[int, int] = (1, 15)
    fold_count: int = 10
    n_trees: int = 500
    n_jobs: int = -1
    corr_flag: float = 0.6
    corr_cutoff: float = 0.9
    pd_grid_points: int = 25
    results_path: Path = Path("data/countypres_2000-2020.csv")
    output_dir: Path = Path("figures")
    models_dir: Path = Path("models")

    @field_validator("train_fraction")
    @classmethod
    def _fraction_open_interval(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError("train_fraction must be strictly between 0 and 1")
        return v

    @field_validator("mtry_range", "min_leaf_range")
    @classmethod
    def _ordered_range(cls, v: Tuple[int, int]) -> Tuple[int, int]:
        lo, hi = v
        if lo < 1 or hi < lo:
            raise ValueError(f"range must satisfy 1 <= lo <= hi, got {v}")
        return v

    @field_validator("holdout_region")
    @classmethod
    def _upper_region(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def _folds(self) -> "Settings":
        if self.fold_count < 2:
            raise ValueError("fold_count must be >= 2")
        if self.pd_grid_points < 2:
            raise ValueError("pd_grid_points must be >= 2")
        return self


def _api_key() -> str | None:
    key = os.getenv("CENSUS_API_KEY")
    if not key or key == "__set_in_local_env__":
        return None
    return key


def settings_from_env() -> Settings:
    """
    Build Settings from CEP_* variables; anything unset falls back to the
    model defaults (2020 election, GA holdout, seed 117).
    """
    defaults = Settings()
    return Settings(
        api_key=_api_key(),
        year=int(os.getenv("CEP_YEAR", str(defaults.year))),
        survey=os.getenv("CEP_ACS_SURVEY", defaults.survey),
        holdout_region=os.getenv("CEP_HOLDOUT_REGION", defaults.holdout_region),
        train_fraction=float(os.getenv("CEP_TRAIN_FRACTION", str(defaults.train_fraction))),
        seed=int(os.getenv("CEP_SEED", str(defaults.seed))),
        mtry_range=_env_range("CEP_MTRY_RANGE", defaults.mtry_range),
        min_leaf_range=_env_range("CEP_MIN_LEAF_RANGE", defaults.min_leaf_range),
        fold_count=int(os.getenv("CEP_FOLDS", str(defaults.fold_count))),
        n_trees=int(os.getenv("CEP_TREES", str(defaults.n_trees))),
        n_jobs=int(os.getenv("CEP_N_JOBS", str(defaults.n_jobs))),
        corr_flag=float(os.getenv("CEP_CORR_FLAG", str(defaults.corr_flag))),
        corr_cutoff=float(os.getenv("CEP_CORR_CUTOFF", str(defaults.corr_cutoff))),
        pd_grid_points=int(os.getenv("CEP_PD_GRID", str(defaults.pd_grid_points))),
        results_path=Path(os.getenv("CEP_RESULTS_PATH", str(defaults.results_path))),
        output_dir=Path(os.getenv("CEP_OUTPUT_DIR", str(defaults.output_dir))),
        models_dir=Path(os.getenv("CEP_MODELS_DIR", str(defaults.models_dir))),
    )


def load_settings() -> Settings:
    # Load .env on host only; don't override variables already exported
    from dotenv import load_dotenv
    load_dotenv(override=False)
    return settings_from_env()
