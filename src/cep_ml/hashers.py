# src/cep_ml/hashers.py
from __future__ import annotations
import hashlib
import pandas as pd
from cep_common.records import MODEL_FEATURES, TARGET

# Columns that influence training.
HASH_COLS = ["geoid", "state", TARGET, *MODEL_FEATURES]

def _normalize(df: pd.DataFrame) -> pd.DataFrame:
    """
    Canonicalize order + types so the same data => same bytes.
    - Keep only HASH_COLS that exist.
    - Sort by geoid (if present), else by all cols.
    - Cast to string with stable NA marker.
    """
    cols = [c for c in HASH_COLS if c in df.columns]
    key_df = df[cols].copy()

    if "geoid" in key_df.columns:
        key_df = key_df.sort_values("geoid", kind="mergesort")
    else:
        key_df = key_df.sort_values(by=cols, kind="mergesort")

    # floats rounded so 12.300000000001 and 12.3 hash alike
    for c in key_df.columns:
        if pd.api.types.is_float_dtype(key_df[c]):
            key_df[c] = key_df[c].round(9)
    key_df = key_df.astype(object).where(key_df.notna(), "__NA__").astype(str)
    return key_df

def dataframe_hash(df: pd.DataFrame) -> str:
    """
    Stable md5 digest over the normalized identifier/feature/target slice.
    """
    if df is None or df.empty:
        return hashlib.md5(b"EMPTY").hexdigest()

    key_df = _normalize(df)
    # Example row: "01001|AL|REPUBLICAN|38.2|...|__NA__"
    payload_rows = ["|".join(row) for row in key_df.to_numpy().tolist()]
    payload = ("\n".join(payload_rows)).encode("utf-8")
    return hashlib.md5(payload).hexdigest()
