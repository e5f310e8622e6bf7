from __future__ import annotations
from dataclasses import dataclass, field


class DataFetchError(RuntimeError):
    """Census API call failed or came back without the requested columns."""


class MissingFeatureError(ValueError):
    """A feature or target value is missing at the point the model needs it."""


class DegenerateSplitError(ValueError):
    """A class is too small (or absent) for the requested split or metric."""


@dataclass
class JoinReport:
    """
    Counties lost to the inner join between ACS and election results.
    Each entry is (geoid, name).
    """
    acs_only: list[tuple[str, str]] = field(default_factory=list)
    results_only: list[tuple[str, str]] = field(default_factory=list)
    matched: int = 0

    @property
    def lost(self) -> int:
        return len(self.acs_only) + len(self.results_only)

    def lost_geoids(self) -> list[str]:
        return sorted(g for g, _ in self.acs_only + self.results_only)

    def summary(self) -> dict:
        return {
            "matched": self.matched,
            "acs_only": [f"{g} {n}" for g, n in self.acs_only],
            "results_only": [f"{g} {n}" for g, n in self.results_only],
        }
