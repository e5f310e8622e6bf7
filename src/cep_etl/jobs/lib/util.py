import json, datetime as dt
from pathlib import Path

def batch_id(prefix="county_frame"):
    return f"{prefix}_{dt.date.today().isoformat()}"

def artifacts_dir(sub: str = "validation") -> Path:
    p = Path("artifacts") / sub
    p.mkdir(parents=True, exist_ok=True)
    return p

def write_json(obj, path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, default=str))
