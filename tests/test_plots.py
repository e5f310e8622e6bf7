import numpy as np
import pandas as pd

from cep_ml import plots


def _curve(n=5):
    return pd.DataFrame({"value": np.linspace(0, 1, n), "mean_probability": np.linspace(0.2, 0.8, n)})


def test_static_figures_written(tmp_path):
    corr = pd.DataFrame(np.eye(3), index=list("abc"), columns=list("abc"))
    roc = pd.DataFrame({"fpr": [0, 0.5, 1], "tpr": [0, 0.8, 1]})
    pr = pd.DataFrame({"precision": [0.5, 0.8, 1.0], "recall": [1.0, 0.5, 0.0]})
    imp = pd.DataFrame({"feature": list("abc"), "importance": [3.0, 2.0, 1.0], "scaled": [100.0, 50.0, 0.0]})
    paths = [
        plots.plot_correlation(corr, tmp_path / "correlation_matrix.png"),
        plots.plot_roc(roc, 0.8, tmp_path / "roc_curve.png"),
        plots.plot_pr(pr, 0.7, 0.4, tmp_path / "pr_curve.png"),
        plots.plot_importance(imp, tmp_path / "variable_importance.png"),
    ]
    for p in paths:
        assert p.exists() and p.stat().st_size > 0


def test_partial_dependence_panel(tmp_path):
    specs = [plots.AxisSpec(f"f{i}", f"Feature {i}") for i in range(6)]
    curves = {s.feature: _curve() for s in specs}
    X = pd.DataFrame({s.feature: np.random.default_rng(0).uniform(size=20) for s in specs})
    out = plots.plot_partial_dependence(curves, specs, tmp_path / "pd.png", X)
    assert out.exists()


def test_partial_dependence_panel_fewer_than_grid(tmp_path):
    specs = [plots.AxisSpec("f0", "Feature 0", xlim=(0.0, 1.0))]
    out = plots.plot_partial_dependence({"f0": _curve()}, specs, tmp_path / "pd1.png")
    assert out.exists()


def test_choropleths(tmp_path):
    import geopandas as gpd
    from shapely.geometry import box

    gdf = gpd.GeoDataFrame({
        "party": ["REPUBLICAN", "DEMOCRAT", "REPUBLICAN", "DEMOCRAT"],
        "predicted": ["REPUBLICAN", "DEMOCRAT", "DEMOCRAT", "DEMOCRAT"],
    }, geometry=[box(i, 0, i + 1, 1) for i in range(3)] + [None], crs="EPSG:4326")
    out = plots.plot_choropleths(gdf, tmp_path / "choropleth.png", "GA")
    assert out.exists()


def test_default_axes_are_model_features():
    from cep_common.records import MODEL_FEATURES
    assert len(plots.DEFAULT_PD_AXES) == 6
    assert all(a.feature in MODEL_FEATURES for a in plots.DEFAULT_PD_AXES)


def _pixels(name):
    w, h = plots.FIGURES[name]
    return int(round(h * plots.DPI)), int(round(w * plots.DPI))


def test_figures_saved_at_configured_size(tmp_path):
    import geopandas as gpd
    import matplotlib.image as mpimg
    from shapely.geometry import box

    labels = [f"feature_{i}" for i in range(12)]
    corr = pd.DataFrame(np.eye(12), index=labels, columns=labels)
    roc = pd.DataFrame({"fpr": [0, 0.5, 1], "tpr": [0, 0.8, 1]})
    pr = pd.DataFrame({"precision": [0.5, 0.8, 1.0], "recall": [1.0, 0.5, 0.0]})
    imp = pd.DataFrame({"feature": labels, "importance": np.arange(12.0), "scaled": np.linspace(0, 100, 12)})
    specs = plots.DEFAULT_PD_AXES
    curves = {s.feature: _curve() for s in specs}
    gdf = gpd.GeoDataFrame({
        "party": ["REPUBLICAN", "DEMOCRAT"],
        "predicted": ["DEMOCRAT", "DEMOCRAT"],
    }, geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1)], crs="EPSG:4326")

    written = [
        plots.plot_correlation(corr, tmp_path / "correlation_matrix.png"),
        plots.plot_roc(roc, 0.8, tmp_path / "roc_curve.png"),
        plots.plot_pr(pr, 0.7, 0.4, tmp_path / "pr_curve.png"),
        plots.plot_importance(imp, tmp_path / "variable_importance.png"),
        plots.plot_partial_dependence(curves, specs, tmp_path / "partial_dependence.png"),
        plots.plot_choropleths(gdf, tmp_path / "choropleth.png", "GA"),
    ]
    assert sorted(p.name for p in written) == sorted(plots.FIGURES)
    for p in written:
        assert mpimg.imread(p).shape[:2] == _pixels(p.name), p.name
