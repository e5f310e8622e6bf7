# src/cep_ml/cli/run_pipeline.py
from __future__ import annotations
import argparse
import sys
from pathlib import Path
import pandas as pd

from cep_common.console import info, warn
from cep_common.settings import Settings, load_settings
from cep_etl.jobs.county_frame import build_county_frame, check_records
from cep_ml.pipeline import run_pipeline


def _range(s: str) -> tuple[int, int]:
    lo, hi = (int(p) for p in s.split(","))
    return lo, hi


def load_frame(path: str | Path, year: int, with_geometry: bool):
    """Staged county frame from disk; geoid must stay a zero-padded string."""
    df = pd.read_csv(path, dtype={"geoid": str})
    if with_geometry:
        from cep_etl.jobs.acs.county_ingest import fetch_county_geometry
        from cep_etl.jobs.county_frame import attach_geometry
        df = attach_geometry(df, fetch_county_geometry(year))
    check_records(df)
    return df


def main() -> None:
    base = load_settings()
    ap = argparse.ArgumentParser(description="County winner random-forest pipeline")
    ap.add_argument("--frame", help="staged county frame CSV; default = fetch live from the Census API")
    ap.add_argument("--results", default=str(base.results_path), help="county returns CSV (live mode)")
    ap.add_argument("--year", type=int, default=base.year)
    ap.add_argument("--holdout", default=base.holdout_region, help="state postal code held out for testing")
    ap.add_argument("--train-fraction", type=float, default=base.train_fraction)
    ap.add_argument("--seed", type=int, default=base.seed)
    ap.add_argument("--mtry", type=_range, default=base.mtry_range, help="lo,hi inclusive")
    ap.add_argument("--min-leaf", type=_range, default=base.min_leaf_range, help="lo,hi inclusive")
    ap.add_argument("--folds", type=int, default=base.fold_count)
    ap.add_argument("--trees", type=int, default=base.n_trees)
    ap.add_argument("--out-dir", default=str(base.output_dir))
    ap.add_argument("--no-maps", action="store_true", help="skip county geometry and choropleths")
    ap.add_argument("--no-plots", action="store_true")
    args = ap.parse_args()

    settings = Settings(**{
        **base.model_dump(),
        "year": args.year,
        "holdout_region": args.holdout,
        "train_fraction": args.train_fraction,
        "seed": args.seed,
        "mtry_range": args.mtry,
        "min_leaf_range": args.min_leaf,
        "fold_count": args.folds,
        "n_trees": args.trees,
        "results_path": Path(args.results),
        "output_dir": Path(args.out_dir),
    })
    with_geometry = not (args.no_maps or args.no_plots)

    if args.frame:
        frame = load_frame(args.frame, settings.year, with_geometry)
    else:
        frame, report = build_county_frame(
            settings.year, settings.results_path,
            survey=settings.survey, api_key=settings.api_key, with_geometry=with_geometry,
        )
        if report.lost:
            warn(f"{report.lost} counties lost to the join (see above)")

    if frame.empty:
        print("No county rows to model.", file=sys.stderr)
        sys.exit(2)

    result = run_pipeline(frame, settings, make_plots=not args.no_plots)

    ev = result.evaluation
    info(ev.confusion.to_string())
    info(f"accuracy={ev.accuracy:.3f} kappa={ev.kappa:.3f} auc={ev.auc:.3f}")
    if not ev.misclassified.empty:
        info("misclassified counties:")
        info(ev.misclassified.to_string(index=False))
    info(result.importance.head(10).to_string(index=False))


if __name__ == "__main__":
    main()
