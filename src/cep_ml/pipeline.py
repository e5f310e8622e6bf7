from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
import pandas as pd
from cep_common.console import info
from cep_common.records import MODEL_FEATURES, TARGET
from cep_common.settings import Settings
from cep_ml import plots
from cep_ml.artifacts import save_model_artifact, write_run_manifest
from cep_ml.diagnostics import Diagnostics, run_diagnostics
from cep_ml.evaluation import EvaluationArtifacts, evaluate, metrics_table
from cep_ml.features import model_frame, prepare_features
from cep_ml.forest import TrainedModel, fit_forest
from cep_ml.hashers import dataframe_hash
from cep_ml.interpretation import partial_dependence_many, variable_importance
from cep_ml.split import Split, holdout_split


@dataclass
class PipelineResult:
    data: pd.DataFrame
    diagnostics: Diagnostics
    split: Split
    model: TrainedModel
    evaluation: EvaluationArtifacts
    importance: pd.DataFrame
    partial_dependence: dict[str, pd.DataFrame]
    data_hash: str
    figures: list[Path] = field(default_factory=list)
    artifact_path: str | None = None


def _holdout_map_frame(split: Split, ev: EvaluationArtifacts):
    import geopandas as gpd

    test = split.test
    region = test[test[split.region_col].astype(str).str.upper() == split.holdout_region].copy()
    region["predicted"] = ev.predicted.reindex(region.index)
    return gpd.GeoDataFrame(region, geometry="geometry", crs=getattr(test, "crs", None))


def render_figures(result: PipelineResult, out_dir: Path, pd_axes: list[plots.AxisSpec]) -> list[Path]:
    ev = result.evaluation
    X_train, _ = model_frame(result.split.train, result.model.features)
    prevalence = float((result.split.test[TARGET].astype(str) == ev.positive_class).mean())
    paths = [
        plots.plot_correlation(result.diagnostics.corr, out_dir / "correlation_matrix.png"),
        plots.plot_roc(ev.roc, ev.auc, out_dir / "roc_curve.png"),
        plots.plot_pr(ev.pr, ev.average_precision, prevalence, out_dir / "pr_curve.png"),
        plots.plot_importance(result.importance, out_dir / "variable_importance.png"),
        plots.plot_partial_dependence(
            result.partial_dependence,
            [a for a in pd_axes if a.feature in result.partial_dependence],
            out_dir / "partial_dependence.png",
            X_train,
        ),
    ]
    if "geometry" in result.split.test.columns:
        paths.append(plots.plot_choropleths(
            _holdout_map_frame(result.split, ev),
            out_dir / "choropleth.png",
            result.split.holdout_region,
        ))
    return paths


def run_pipeline(
    frame: pd.DataFrame,
    settings: Settings,
    *,
    features: list[str] = MODEL_FEATURES,
    pd_axes: list[plots.AxisSpec] = plots.DEFAULT_PD_AXES,
    make_plots: bool = True,
    save_artifacts: bool = True,
) -> PipelineResult:
    """
    Stages 2-7 on an already joined county frame: features, diagnostics,
    holdout split, tuned forest, evaluation, interpretation (+ figures).
    """
    data = prepare_features(frame.reset_index(drop=True), features)
    info(f"modeling frame: {len(data)} counties x {len(features)} features")

    diag = run_diagnostics(data, features, flag_threshold=settings.corr_flag, cutoff=settings.corr_cutoff)

    split = holdout_split(
        data,
        holdout_region=settings.holdout_region,
        train_fraction=settings.train_fraction,
        seed=settings.seed,
    )
    info({"split": split.sizes()})

    model = fit_forest(
        split.train,
        features,
        mtry_range=settings.mtry_range,
        min_leaf_range=settings.min_leaf_range,
        fold_count=settings.fold_count,
        n_trees=settings.n_trees,
        seed=settings.seed,
        n_jobs=settings.n_jobs,
    )
    ev = evaluate(model, split.test)

    importance = variable_importance(model)
    X_train, _ = model_frame(split.train, features)
    pd_features = [a.feature for a in pd_axes if a.feature in features]
    curves = partial_dependence_many(model, X_train, pd_features, settings.pd_grid_points)

    result = PipelineResult(
        data=data,
        diagnostics=diag,
        split=split,
        model=model,
        evaluation=ev,
        importance=importance,
        partial_dependence=curves,
        data_hash=dataframe_hash(data),
    )

    if make_plots:
        result.figures = render_figures(result, settings.output_dir, pd_axes)

    if save_artifacts:
        tag = f"{settings.holdout_region}_{settings.year}"
        result.artifact_path = save_model_artifact(
            "rf", tag,
            estimator=model.estimator,
            features=features,
            params=model.best_params,
            base=settings.models_dir,
        )
        info(f"[ARTIFACT] {result.artifact_path}")
        manifest = write_run_manifest(
            settings.models_dir / "rf" / f"manifest_{tag}.json",
            data_hash=result.data_hash,
            settings=settings.model_dump(mode="json", exclude={"api_key"}),
            best_params=model.best_params,
            metrics=metrics_table(ev) + [("kappa", "cv", -1, model.best_kappa)],
            extra={
                "diagnostics": diag.report(),
                "misclassified": ev.misclassified.to_dict(orient="records"),
            },
        )
        info(f"[MANIFEST] {manifest}")
    return result
