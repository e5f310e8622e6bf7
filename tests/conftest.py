from __future__ import annotations
import numpy as np
import pandas as pd
import pytest

from cep_common.records import SECTOR_COUNT_COLUMNS
from cep_common.settings import Settings

STATES = ["AL", "GA", "NY", "TX", "OH"]


def make_county_frame(n: int = 80, seed: int = 0, with_geometry: bool = False) -> pd.DataFrame:
    """
    Synthetic joined county frame: every CountyRecord column, a party label
    driven by college share and white share so a forest can learn it.
    """
    rng = np.random.default_rng(seed)
    labor_force = rng.integers(2_000, 200_000, n).astype(float)
    # 13 industry lines; the first 11 map to modeled sectors
    mix = rng.dirichlet(np.ones(13), n)
    sector_counts = np.floor(mix[:, :11] * labor_force[:, None])
    total_pop = labor_force * rng.uniform(1.8, 2.4, n)

    pct_white = rng.uniform(30, 95, n)
    pct_college = rng.uniform(8, 55, n)
    score = 1.5 * pct_college - 0.8 * pct_white + rng.normal(0, 3, n)
    party = np.where(score > np.median(score), "DEMOCRAT", "REPUBLICAN")

    df = pd.DataFrame({
        "geoid": [str(1001 + 2 * i).zfill(5) for i in range(n)],
        "name": [f"County {i}, Somewhere" for i in range(n)],
        "state": [STATES[i % len(STATES)] for i in range(n)],
        "total_pop": total_pop,
        "median_age": rng.uniform(28, 55, n),
        "median_income": rng.uniform(30_000, 120_000, n),
        "pct_college": pct_college,
        "pct_white": pct_white,
        "pct_black": rng.uniform(0, 40, n),
        "pct_hispanic": rng.uniform(0, 40, n),
        "pct_asian": rng.uniform(0, 10, n),
        "labor_force": labor_force,
        "poverty_count": total_pop * rng.uniform(0.05, 0.3, n),
        "hours_male": rng.uniform(38, 46, n),
        "hours_female": rng.uniform(33, 40, n),
        "party": party,
    })
    for j, col in enumerate(SECTOR_COUNT_COLUMNS):
        df[col] = sector_counts[:, j]

    if with_geometry:
        import geopandas as gpd
        from shapely.geometry import box

        geoms = [box(i % 10, i // 10, i % 10 + 1, i // 10 + 1) for i in range(n)]
        df = gpd.GeoDataFrame(df, geometry=geoms, crs="EPSG:4326")
    return df


@pytest.fixture
def county_frame() -> pd.DataFrame:
    return make_county_frame()


@pytest.fixture
def small_settings(tmp_path) -> Settings:
    return Settings(
        holdout_region="GA",
        train_fraction=0.85,
        seed=117,
        mtry_range=(1, 2),
        min_leaf_range=(1, 2),
        fold_count=3,
        n_trees=25,
        n_jobs=1,
        pd_grid_points=10,
        output_dir=tmp_path / "figures",
        models_dir=tmp_path / "models",
    )
