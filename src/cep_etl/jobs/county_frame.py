from __future__ import annotations
import argparse
from pathlib import Path
import pandas as pd
from cep_common.console import info, warn
from cep_common.errors import JoinReport
from cep_common.records import PARTIES, RECORD_COLUMNS, CountyRecord, records_from_frame
from cep_common.settings import load_settings
from .acs.county_ingest import fetch_county_geometry, fetch_county_variables
from .elections.results_ingest import county_winners, load_results
from .lib.util import artifacts_dir, batch_id, write_json


def join_county_sources(acs: pd.DataFrame, winners: pd.DataFrame) -> tuple[pd.DataFrame, JoinReport]:
    """
    Inner-join ACS county variables to county winners on geoid.

    Counties present on only one side are dropped from the frame and listed
    in the returned JoinReport.
    """
    acs_ids = set(acs["geoid"])
    res_ids = set(winners["geoid"])

    acs_names = dict(zip(acs["geoid"], acs["name"]))
    res_names = dict(zip(winners["geoid"], winners["county_name"].astype(str) + ", " + winners["state"].astype(str)))

    report = JoinReport(
        acs_only=[(g, acs_names[g]) for g in sorted(acs_ids - res_ids)],
        results_only=[(g, res_names[g]) for g in sorted(res_ids - acs_ids)],
        matched=len(acs_ids & res_ids),
    )

    frame = acs.merge(
        winners[["geoid", "state", "party"]], on="geoid", how="inner", validate="one_to_one"
    ).sort_values("geoid").reset_index(drop=True)

    if report.lost:
        warn(f"join dropped {report.lost} counties "
             f"({len(report.acs_only)} ACS-only, {len(report.results_only)} results-only)")
        for g, n in report.acs_only:
            warn(f"  ACS only:     {g} {n}")
        for g, n in report.results_only:
            warn(f"  results only: {g} {n}")
    return frame, report


def attach_geometry(frame: pd.DataFrame, geometry):
    """Left-join polygons; counties with no boundary keep a null geometry."""
    import geopandas as gpd

    merged = frame.merge(geometry[["geoid", "geometry"]], on="geoid", how="left")
    return gpd.GeoDataFrame(merged, geometry="geometry", crs=getattr(geometry, "crs", None))


def check_records(frame: pd.DataFrame) -> list[CountyRecord]:
    """
    Typed view of a joined frame. Raises on a malformed geoid or party label;
    counties without a polygon are warned about when the frame has geometry.
    """
    records = records_from_frame(frame)
    if "geometry" in frame.columns:
        unmapped = [r.geoid for r in records if r.geometry is None]
        if unmapped:
            warn(f"{len(unmapped)} counties have no boundary: {unmapped[:10]}")
    return records


def validate_frame(df: pd.DataFrame) -> dict:
    issues: list[str] = []

    geoid = df["geoid"].astype(str)
    malformed = geoid[~geoid.str.fullmatch(r"\d{5}")].tolist()
    dupes = geoid[geoid.duplicated()].unique().tolist()
    if malformed:
        issues.append(f"malformed geoid: {malformed[:10]}")
    if dupes:
        issues.append(f"duplicate geoid: {dupes[:10]}")

    pop_min = df["total_pop"].min() if "total_pop" in df.columns else None
    if pop_min is not None and pd.notna(pop_min) and pop_min < 0:
        issues.append("population negative")

    unknown = sorted(set(df["party"].dropna()) - set(PARTIES))
    if unknown:
        issues.append(f"unknown party labels: {unknown}")

    missing_cols = [c for c in RECORD_COLUMNS if c not in df.columns]
    if missing_cols:
        issues.append(f"missing record columns: {missing_cols}")

    return {
        "row_count": int(len(df)),
        "party_counts": {str(k): int(v) for k, v in df["party"].value_counts().items()},
        "missing_hours": int(df[["hours_male", "hours_female"]].isna().any(axis=1).sum())
        if {"hours_male", "hours_female"} <= set(df.columns) else None,
        "pop_min": float(pop_min) if pop_min is not None and pd.notna(pop_min) else None,
        "issues": issues,
    }


def build_county_frame(
    year: int,
    results_path: str | Path,
    *,
    survey: str = "acs5",
    api_key: str | None = None,
    with_geometry: bool = True,
):
    """Stage 1: ACS pull + county winners + join (+ polygons)."""
    acs = fetch_county_variables(year, survey=survey, api_key=api_key)
    winners = county_winners(load_results(results_path), year)
    frame, report = join_county_sources(acs, winners)
    if with_geometry:
        frame = attach_geometry(frame, fetch_county_geometry(year))
    records = check_records(frame)
    info(f"stage 1: {len(records)} county records")
    return frame, report


def main():
    settings = load_settings()
    ap = argparse.ArgumentParser(description="Fetch ACS county data, join election winners, stage to CSV")
    ap.add_argument("--year", type=int, default=settings.year)
    ap.add_argument("--results", default=str(settings.results_path), help="county returns CSV")
    ap.add_argument("--survey", default=settings.survey)
    ap.add_argument("--out", default=None, help="staged CSV path (default data/county_frame_<year>.csv)")
    args = ap.parse_args()

    batch = batch_id()
    frame, report = build_county_frame(
        args.year, args.results, survey=args.survey, api_key=settings.api_key, with_geometry=False
    )
    out = Path(args.out or f"data/county_frame_{args.year}.csv")
    out.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(out, index=False)

    val = validate_frame(frame)
    val["join"] = report.summary()
    write_json(val, artifacts_dir() / f"{batch}.json")
    info(f"County frame {args.year}: {len(frame)} rows -> {out}; {len(val['issues'])} issues")


if __name__ == "__main__":
    main()
