from __future__ import annotations
from pathlib import Path
import pandas as pd
import polars as pl
from cep_common.console import info, warn
from cep_common.records import PARTIES

# MIT Election Lab county presidential returns layout
RESULT_COLUMNS = {
    "year": "year",
    "state": "state_po",
    "county_name": "county_name",
    "county_fips": "county_fips",
    "candidate": "candidate",
    "party": "party",
    "votes": "candidatevotes",
}


def fips_expr(col: str) -> pl.Expr:
    """Zero-pad a FIPS column that may have been read as '1001' or '1001.0'."""
    return (
        pl.col(col)
        .cast(pl.Utf8)
        .str.strip_chars()
        .str.replace(r"\.0$", "")
        .str.zfill(5)
    )


def load_results(path: str | Path) -> pl.DataFrame:
    """
    Read the county returns file and normalize names/types.
    Rows with no county identifier (overseas, statewide writeins) are dropped.
    """
    df = pl.read_csv(
        path,
        schema_overrides={RESULT_COLUMNS["county_fips"]: pl.Utf8},
        null_values=["NA", ""],
    )
    missing = [c for c in RESULT_COLUMNS.values() if c not in df.columns]
    if missing:
        raise KeyError(f"Missing columns {missing} in {path}")
    return normalize_results(df.select(list(RESULT_COLUMNS.values())).rename(
        {v: k for k, v in RESULT_COLUMNS.items()}
    ))


def normalize_results(df: pl.DataFrame) -> pl.DataFrame:
    out = df.with_columns(
        fips_expr("county_fips").alias("geoid"),
        pl.col("party").cast(pl.Utf8).str.to_uppercase(),
        pl.col("candidate").cast(pl.Utf8),
        pl.col("votes").cast(pl.Int64, strict=False).fill_null(0),
        pl.col("year").cast(pl.Int64),
    )
    before = out.height
    out = out.filter(pl.col("geoid").is_not_null())
    if out.height < before:
        info(f"results: dropped {before - out.height} rows with no county FIPS")
    return out.drop("county_fips")


def county_winners(results: pl.DataFrame, year: int) -> pd.DataFrame:
    """
    Reduce per-candidate rows to one winning party per county for `year`.

    Votes are summed per (county, candidate, party) across vote modes. Ties
    on the total go to the candidate whose name sorts first.
    """
    yr = results.filter(pl.col("year") == year)
    if yr.is_empty():
        raise ValueError(f"no election results for {year}")

    totals = (
        yr.group_by(["geoid", "state", "county_name", "candidate", "party"])
        .agg(pl.col("votes").sum())
    )
    winners = (
        totals.sort(["geoid", "votes", "candidate"], descending=[False, True, False])
        .group_by("geoid", maintain_order=True)
        .first()
    )

    other = winners.filter(~pl.col("party").is_in(list(PARTIES)))
    if other.height:
        warn(f"{other.height} counties won by a third party were dropped: "
             f"{other['geoid'].to_list()}")
    winners = winners.filter(pl.col("party").is_in(list(PARTIES)))

    return winners.select(
        "geoid", "state", "county_name", "party", "votes"
    ).sort("geoid").to_pandas()
