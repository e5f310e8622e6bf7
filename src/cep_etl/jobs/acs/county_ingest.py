from __future__ import annotations
import json
import os
from collections import defaultdict
import pandas as pd
import polars as pl
import requests
from requests.adapters import HTTPAdapter, Retry
from cep_common.console import debug, info
from cep_common.errors import DataFetchError

# logical name -> ACS variable code (no E/M suffix; we pull both)
COUNTY_VARIABLES: dict[str, str] = {
    "total_pop":            "B01003_001",
    "median_age":           "B01002_001",
    "median_income":        "B19013_001",
    "pct_college":          "DP02_0068P",   # bachelor's degree or higher, 25+
    "pct_white":            "DP05_0077P",   # white alone, not Hispanic
    "pct_black":            "DP05_0078P",
    "pct_hispanic":         "DP05_0071P",
    "pct_asian":            "DP05_0080P",
    "labor_force":          "C24050_001",   # civilian employed 16+
    "emp_agriculture":      "C24050_002",
    "emp_construction":     "C24050_003",
    "emp_manufacturing":    "C24050_004",
    "emp_retail":           "C24050_006",
    "emp_transportation":   "C24050_007",
    "emp_information":      "C24050_008",
    "emp_finance":          "C24050_009",
    "emp_professional":     "C24050_010",
    "emp_education_health": "C24050_011",
    "emp_arts_hospitality": "C24050_012",
    "emp_public_admin":     "C24050_014",
    "poverty_count":        "B17001_002",
    "hours_male":           "B23020_002",   # mean usual hours worked
    "hours_female":         "B23020_003",
}

# Census annotation values returned in place of an estimate/margin
SENTINELS: list[float] = [
    -999999999.0, -888888888.0, -666666666.0,
    -555555555.0, -333333333.0, -222222222.0,
]

# Census API rejects more than 50 "get" columns per call
MAX_GET = 48

GEOMETRY_URL = "https://www2.census.gov/geo/tiger/GENZ{year}/shp/cb_{year}_us_county_20m.zip"

CENSUS_HOST = "https://api.census.gov"

# exhausted retries hand back the last response; _get turns it into DataFetchError
CENSUS_RETRY = Retry(
    total=4,
    connect=2,
    backoff_factor=1.0,
    status_forcelist=(429, 502, 503, 504),
    allowed_methods=frozenset({"GET"}),
    respect_retry_after_header=True,
    raise_on_status=False,
)


def _session(retry: Retry = CENSUS_RETRY) -> requests.Session:
    s = requests.Session()
    s.headers["User-Agent"] = "county-election-predictor"
    s.mount(CENSUS_HOST, HTTPAdapter(max_retries=retry))
    return s

SESSION = _session()


def _acs_url(year: int, survey: str, code: str) -> str:
    # data profile and subject tables live under their own endpoints
    base = f"{CENSUS_HOST}/data/{year}/acs/{survey}"
    if code.startswith("DP"):
        return f"{base}/profile"
    if code.startswith("S"):
        return f"{base}/subject"
    return base


def _get(session: requests.Session, url: str, params: dict) -> list[list[str]]:
    try:
        r = session.get(url, params=params, timeout=120)
    except requests.RequestException as e:
        raise DataFetchError(f"Census API request failed for {url}: {e}") from e
    if not r.ok:
        raise DataFetchError(f"Census API {r.status_code} for {url}: {r.text[:300]}")
    try:
        js = r.json()
    except (ValueError, json.JSONDecodeError) as e:
        raise DataFetchError(f"Census API returned non-JSON for {url}: {r.text[:300]}") from e
    if not (isinstance(js, list) and js and isinstance(js[0], list)):
        raise DataFetchError(f"Census API error for {url}: {js}")
    return js


def _index_or_die(hdr: list[str], needed: list[str]) -> dict[str, int]:
    i = {c: k for k, c in enumerate(hdr)}
    missing = [c for c in needed if c not in i]
    if missing:
        raise DataFetchError(f"Missing columns {missing} in Census response")
    return i


def _chunks(cols: list[str], size: int) -> list[list[str]]:
    return [cols[k:k + size] for k in range(0, len(cols), size)]


def to_staging_frame(js: list[list[str]], columns: list[str]) -> pl.DataFrame:
    """
    Turn a Census table response into a typed polars frame:
    geoid (state+county), name, and one Float64 column per requested code,
    with annotation sentinels nulled out.
    """
    hdr, *rows = js
    _index_or_die(hdr, ["NAME", "state", "county", *columns])
    raw = pl.DataFrame(rows, schema=hdr, orient="row")
    numeric = [
        pl.col(c).cast(pl.Float64, strict=False).alias(c) for c in columns
    ]
    df = raw.select(
        pl.concat_str([pl.col("state"), pl.col("county")]).alias("geoid"),
        pl.col("NAME").alias("name"),
        *numeric,
    )
    return df.with_columns([
        pl.when(pl.col(c).is_in(SENTINELS)).then(None).otherwise(pl.col(c)).alias(c)
        for c in columns
    ])


def fetch_county_variables(
    year: int,
    variables: dict[str, str] | None = None,
    *,
    survey: str = "acs5",
    api_key: str | None = None,
    session: requests.Session | None = None,
) -> pd.DataFrame:
    """
    Pull estimates and margins for every county in the US.

    Returns one row per county with `geoid`, `name`, one column per logical
    variable name (estimate) and `<name>_moe` (margin of error).
    """
    variables = variables or COUNTY_VARIABLES
    session = session or SESSION
    api_key = api_key if api_key is not None else os.getenv("CENSUS_API_KEY")

    by_url: dict[str, list[str]] = defaultdict(list)
    for code in variables.values():
        url = _acs_url(year, survey, code)
        by_url[url] += [f"{code}E", f"{code}M"]

    merged: pl.DataFrame | None = None
    for url, cols in by_url.items():
        for chunk in _chunks(cols, MAX_GET):
            params = {"get": ",".join(["NAME", *chunk]), "for": "county:*"}
            if api_key:
                params["key"] = api_key
            debug({"url": url, "n_vars": len(chunk)})
            part = to_staging_frame(_get(session, url, params), chunk)
            if merged is None:
                merged = part
            else:
                merged = merged.join(part.drop("name"), on="geoid", how="full", coalesce=True)

    if merged is None:
        raise DataFetchError("no variables requested")

    rename: dict[str, str] = {}
    for name, code in variables.items():
        rename[f"{code}E"] = name
        rename[f"{code}M"] = f"{name}_moe"
    out = merged.rename(rename).select(
        ["geoid", "name", *variables.keys(), *[f"{n}_moe" for n in variables]]
    ).sort("geoid")
    info(f"ACS {survey} {year}: {out.height} counties x {len(variables)} variables")
    return out.to_pandas()


def fetch_county_geometry(year: int, url: str | None = None):
    """Cartographic boundary county polygons keyed by 5-digit geoid."""
    import geopandas as gpd

    src = url or GEOMETRY_URL.format(year=year)
    try:
        gdf = gpd.read_file(src)
    except Exception as e:
        raise DataFetchError(f"could not read county geometry from {src}: {e}") from e
    if "GEOID" not in gdf.columns:
        raise DataFetchError(f"county geometry from {src} has no GEOID column")
    gdf = gdf.rename(columns={"GEOID": "geoid"})[["geoid", "geometry"]]
    gdf["geoid"] = gdf["geoid"].astype(str).str.zfill(5)
    return gdf
