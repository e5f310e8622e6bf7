from __future__ import annotations
import math
import re
from dataclasses import dataclass, field, fields
from typing import Any
import pandas as pd

TARGET = "party"
PARTIES: tuple[str, str] = ("REPUBLICAN", "DEMOCRAT")
POSITIVE_CLASS = "DEMOCRAT"

# ACS C24050 industry lines kept as model sectors
SECTORS: list[str] = [
    "agriculture",
    "construction",
    "manufacturing",
    "retail",
    "transportation",
    "information",
    "finance",
    "professional",
    "education_health",
    "arts_hospitality",
    "public_admin",
]
SECTOR_COUNT_COLUMNS: list[str] = [f"emp_{s}" for s in SECTORS]
SECTOR_SHARE_COLUMNS: list[str] = [f"share_{s}" for s in SECTORS]
HOURS_COLUMNS: list[str] = ["hours_male", "hours_female"]

DEMOGRAPHIC_FEATURES: list[str] = [
    "median_age",
    "median_income",
    "pct_college",
    "pct_white",
    "pct_black",
    "pct_hispanic",
    "pct_asian",
]

MODEL_FEATURES: list[str] = (
    DEMOGRAPHIC_FEATURES + SECTOR_SHARE_COLUMNS + ["poverty_rate"] + HOURS_COLUMNS
)

_FIPS_RE = re.compile(r"^\d{5}$")


def pad_fips(value: Any) -> str | None:
    """
    Normalize a county identifier to a 5-digit, zero-padded string.
    Accepts ints, floats read from CSV ("1001.0") and strings; blank -> None.
    """
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        value = int(value)
    s = str(value).strip()
    if not s or s.lower() in {"nan", "none", "na"}:
        return None
    if s.endswith(".0"):
        s = s[:-2]
    if not s.isdigit() or len(s) > 5:
        raise ValueError(f"not a county FIPS code: {value!r}")
    return s.zfill(5)


@dataclass(frozen=True)
class CountyRecord:
    geoid: str
    name: str
    state: str
    total_pop: float
    median_age: float
    median_income: float
    pct_college: float
    pct_white: float
    pct_black: float
    pct_hispanic: float
    pct_asian: float
    labor_force: float
    emp_agriculture: float
    emp_construction: float
    emp_manufacturing: float
    emp_retail: float
    emp_transportation: float
    emp_information: float
    emp_finance: float
    emp_professional: float
    emp_education_health: float
    emp_arts_hospitality: float
    emp_public_admin: float
    poverty_count: float
    hours_male: float
    hours_female: float
    party: str
    # county polygon when the frame carries one; not a modeled column
    geometry: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not _FIPS_RE.match(self.geoid):
            raise ValueError(f"geoid must be exactly 5 digits, got {self.geoid!r}")
        if self.party not in PARTIES:
            raise ValueError(f"party must be one of {PARTIES}, got {self.party!r}")

    def sector_counts(self) -> dict[str, float]:
        return {s: getattr(self, f"emp_{s}") for s in SECTORS}


RECORD_COLUMNS: list[str] = [f.name for f in fields(CountyRecord) if f.name != "geometry"]


def _num(v: Any) -> float:
    return float("nan") if v is None or pd.isna(v) else float(v)


def records_from_frame(df: pd.DataFrame) -> list[CountyRecord]:
    missing = [c for c in RECORD_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"Missing columns {missing} for CountyRecord")
    cols = RECORD_COLUMNS + (["geometry"] if "geometry" in df.columns else [])
    out: list[CountyRecord] = []
    for row in df[cols].to_dict(orient="records"):
        shape = row.pop("geometry", None)
        kwargs = {
            k: (str(v) if k in {"geoid", "name", "state", "party"} else _num(v))
            for k, v in row.items()
        }
        out.append(CountyRecord(**kwargs, geometry=shape))
    return out
