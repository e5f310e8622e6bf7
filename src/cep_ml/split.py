from __future__ import annotations
from dataclasses import dataclass
import pandas as pd
from sklearn.model_selection import train_test_split
from cep_common.errors import DegenerateSplitError
from cep_common.records import TARGET


@dataclass
class Split:
    train: pd.DataFrame
    test: pd.DataFrame
    holdout_region: str
    region_col: str = "state"

    def sizes(self) -> dict:
        holdout = int((self.test[self.region_col].astype(str).str.upper() == self.holdout_region).sum())
        return {"train": len(self.train), "test": len(self.test), "test_holdout": holdout}


def holdout_split(
    df: pd.DataFrame,
    *,
    holdout_region: str,
    train_fraction: float = 0.85,
    seed: int = 117,
    target: str = TARGET,
    region_col: str = "state",
) -> Split:
    """
    Every county in `holdout_region` goes to test. The rest is split
    `train_fraction` / remainder, stratified on `target`, with a fixed seed.
    """
    if not 0.0 < train_fraction < 1.0:
        raise ValueError("train_fraction must be strictly between 0 and 1")

    in_region = df[region_col].astype(str).str.upper() == holdout_region.upper()
    held = df.loc[in_region]
    rest = df.loc[~in_region]

    counts = rest[target].value_counts()
    counts = counts[counts > 0]
    if len(counts) < 2 or counts.min() < 2:
        raise DegenerateSplitError(
            f"need >= 2 counties of each class outside {holdout_region}, got {counts.to_dict()}"
        )

    train, rest_test = train_test_split(
        rest,
        train_size=train_fraction,
        stratify=rest[target].astype(str),
        random_state=seed,
        shuffle=True,
    )
    test = pd.concat([held, rest_test])
    return Split(train=train.copy(), test=test.copy(), holdout_region=holdout_region.upper(), region_col=region_col)
