from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.patches import Patch
from cep_common.console import info
from cep_common.records import PARTIES, POSITIVE_CLASS

PARTY_COLORS = {"REPUBLICAN": "#C62828", "DEMOCRAT": "#1565C0"}
DPI = 150

# output file name -> figure size in inches (rendered at DPI)
FIGURES = {
    "correlation_matrix.png": (11, 9),
    "roc_curve.png": (7, 6),
    "pr_curve.png": (7, 6),
    "variable_importance.png": (8, 7),
    "partial_dependence.png": (15, 9),
    "choropleth.png": (14, 7),
}


@dataclass(frozen=True)
class AxisSpec:
    """How one partial-dependence panel is labelled and bounded."""
    feature: str
    label: str
    xlim: tuple[float, float] | None = None
    ylim: tuple[float, float] = (0.0, 1.0)


DEFAULT_PD_AXES: list[AxisSpec] = [
    AxisSpec("pct_white", "White, non-Hispanic (%)"),
    AxisSpec("pct_college", "Bachelor's degree or higher (%)"),
    AxisSpec("median_income", "Median household income ($)"),
    AxisSpec("share_manufacturing", "Employed in manufacturing (%)"),
    AxisSpec("poverty_rate", "Below poverty level (%)"),
    AxisSpec("median_age", "Median age (years)"),
]


def save_fig(fig: plt.Figure, path: Path, dpi: int = DPI) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, facecolor="white")
    plt.close(fig)
    info(f"  Saved: {path.name}")
    return path


def plot_correlation(corr: pd.DataFrame, out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=FIGURES["correlation_matrix.png"], layout="constrained")
    im = ax.imshow(corr.to_numpy(), cmap="RdBu_r", vmin=-1, vmax=1)
    fig.colorbar(im, ax=ax, shrink=0.8, label="Pearson r")
    ax.set_xticks(range(len(corr.columns)))
    ax.set_yticks(range(len(corr.index)))
    ax.set_xticklabels(corr.columns, rotation=90, fontsize=8)
    ax.set_yticklabels(corr.index, fontsize=8)
    ax.set_title("Predictor correlation matrix", fontsize=13)
    return save_fig(fig, out_path)


def plot_roc(roc: pd.DataFrame, roc_auc: float, out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=FIGURES["roc_curve.png"], layout="constrained")
    ax.plot(roc["fpr"], roc["tpr"], color="#4CAF50", linewidth=2,
            label=f"Random forest (AUC = {roc_auc:.3f})")
    ax.plot([0, 1], [0, 1], "k--", linewidth=1, alpha=0.5, label="Chance")
    ax.set_xlabel("False Positive Rate", fontsize=12)
    ax.set_ylabel("True Positive Rate", fontsize=12)
    ax.set_title(f"ROC: {POSITIVE_CLASS.title()} as positive class", fontsize=13)
    ax.legend(loc="lower right")
    ax.set_xlim([-0.01, 1.01])
    ax.set_ylim([-0.01, 1.01])
    ax.grid(True, alpha=0.3)
    return save_fig(fig, out_path)


def plot_pr(pr: pd.DataFrame, ap: float, prevalence: float, out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=FIGURES["pr_curve.png"], layout="constrained")
    ax.step(pr["recall"], pr["precision"], where="post", color="#FF9800", linewidth=2,
            label=f"Random forest (AP = {ap:.3f})")
    ax.axhline(prevalence, color="k", linestyle="--", linewidth=1, alpha=0.5, label="Baseline")
    ax.set_xlabel("Recall", fontsize=12)
    ax.set_ylabel("Precision", fontsize=12)
    ax.set_title("Precision-recall", fontsize=13)
    ax.legend(loc="lower left")
    ax.set_xlim([-0.01, 1.01])
    ax.set_ylim([-0.01, 1.01])
    ax.grid(True, alpha=0.3)
    return save_fig(fig, out_path)


def plot_importance(importance: pd.DataFrame, out_path: Path) -> Path:
    imp = importance.sort_values("scaled")
    fig, ax = plt.subplots(figsize=FIGURES["variable_importance.png"], layout="constrained")
    ax.barh(imp["feature"], imp["scaled"], color="#546E7A")
    ax.set_xlabel("Importance (scaled 0-100)")
    ax.set_title("Random forest variable importance (Gini)")
    ax.grid(True, axis="x", alpha=0.3)
    return save_fig(fig, out_path)


def plot_pd_panel(ax: plt.Axes, curve: pd.DataFrame, spec: AxisSpec, rug: pd.Series | None = None) -> None:
    ax.plot(curve["value"], curve["mean_probability"], color=PARTY_COLORS[POSITIVE_CLASS], linewidth=2)
    if rug is not None:
        ax.plot(rug, np.full(len(rug), spec.ylim[0]), "|", color="k", alpha=0.2, markersize=8)
    ax.set_xlabel(spec.label)
    ax.set_ylabel(f"P({POSITIVE_CLASS.title()})")
    ax.set_ylim(spec.ylim)
    if spec.xlim is not None:
        ax.set_xlim(spec.xlim)
    ax.grid(True, alpha=0.3)


def plot_partial_dependence(
    curves: dict[str, pd.DataFrame],
    axes_spec: list[AxisSpec],
    out_path: Path,
    X: pd.DataFrame | None = None,
) -> Path:
    ncols = 3
    nrows = max(1, int(np.ceil(len(axes_spec) / ncols)))
    fig, axes = plt.subplots(nrows, ncols, figsize=FIGURES["partial_dependence.png"], layout="constrained", squeeze=False)
    for ax, spec in zip(axes.flat, axes_spec):
        rug = X[spec.feature] if X is not None and spec.feature in X.columns else None
        plot_pd_panel(ax, curves[spec.feature], spec, rug)
    for ax in list(axes.flat)[len(axes_spec):]:
        ax.set_visible(False)
    fig.suptitle("Partial dependence", fontsize=14)
    return save_fig(fig, out_path)


def plot_choropleths(gdf, out_path: Path, region: str) -> Path:
    """Actual vs predicted winner for the held-out region; errors hatched."""
    gdf = gdf[gdf.geometry.notna()]
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=FIGURES["choropleth.png"], layout="constrained")

    gdf.plot(ax=ax1, color=gdf["party"].astype(str).map(PARTY_COLORS).fillna("#BDBDBD").tolist(), edgecolor="white", linewidth=0.3)
    ax1.set_title(f"{region}: actual winner")

    gdf.plot(ax=ax2, color=gdf["predicted"].astype(str).map(PARTY_COLORS).fillna("#BDBDBD").tolist(), edgecolor="white", linewidth=0.3)
    wrong = gdf[gdf["party"].astype(str) != gdf["predicted"].astype(str)]
    if len(wrong):
        wrong.plot(ax=ax2, facecolor="none", edgecolor="black", hatch="///", linewidth=0.6)
    ax2.set_title(f"{region}: predicted winner ({len(wrong)} misclassified)")

    handles = [Patch(facecolor=PARTY_COLORS[p], label=p.title()) for p in PARTIES]
    handles.append(Patch(facecolor="none", edgecolor="black", hatch="///", label="Misclassified"))
    fig.legend(handles=handles, loc="outside lower center", ncol=3, frameon=False)
    for ax in (ax1, ax2):
        ax.set_axis_off()
    return save_fig(fig, out_path)
