from __future__ import annotations
import json
import os
import pickle
import platform
import subprocess
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path

# distributions whose versions change model output
ENV_PACKAGES = ("numpy", "pandas", "scikit-learn", "matplotlib", "geopandas")


def _git_sha() -> str | None:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"], text=True, stderr=subprocess.DEVNULL
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def capture_env(packages: tuple[str, ...] = ENV_PACKAGES) -> dict:
    """Interpreter, installed library versions and git revision of this run."""
    versions = {}
    for dist in packages:
        try:
            versions[dist] = metadata.version(dist)
        except metadata.PackageNotFoundError:
            versions[dist] = None
    return {
        "python": platform.python_version(),
        "machine": platform.machine(),
        "packages": versions,
        "git_sha": _git_sha(),
    }


def _models_dir() -> Path:
    return Path(os.getenv("CEP_MODELS_DIR", "models"))

def artifact_path_for(model: str, tag: str, base: Path | None = None) -> Path:
    """
    Filesystem path we write to:
      models/<model>/<model>_<tag>.pkl   e.g. models/rf/rf_GA_2020.pkl
    """
    base = base or _models_dir()
    return base / model.lower() / f"{model.lower()}_{tag}.pkl"

def save_model_artifact(
    model_name: str,
    tag: str,
    *,
    estimator,
    features: list[str],
    params: dict | None = None,
    base: Path | None = None,
) -> str:
    """
    Pickle {"model": estimator, "features": [...], "params": {...}} and
    return the absolute path as a string.
    """
    if estimator is None:
        raise ValueError("save_model_artifact: estimator is required")
    out = artifact_path_for(model_name, tag, base)
    out.parent.mkdir(parents=True, exist_ok=True)
    payload = {"model": estimator, "features": list(features), "params": dict(params or {})}
    with out.open("wb") as f:
        pickle.dump(payload, f)
    return str(out.resolve())

def load_model_artifact(path: str | Path) -> dict:
    with Path(path).open("rb") as f:
        return pickle.load(f)

def write_run_manifest(
    path: Path,
    *,
    data_hash: str,
    settings: dict,
    best_params: dict,
    metrics: list[tuple[str, str, int, float]],
    extra: dict | None = None,
    env: dict | None = None,
) -> Path:
    manifest = {
        "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "data_hash": data_hash,
        "settings": settings,
        "best_params": best_params,
        "metrics": [
            {"metric": m, "scope": s, "fold": f, "value": float(v)} for (m, s, f, v) in metrics
        ],
        "env": env or capture_env(),
        **(extra or {}),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, indent=2, default=str))
    return path
