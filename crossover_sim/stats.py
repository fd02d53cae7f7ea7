"""Demographic statistics and minority-crossover detection.

Statistics are derived, never stored: every call recounts the live
population. Dying agents are excluded. The inside population is
Native + Legal + Illegal; outsiders are reported but not part of it.

The minority crossover is the first aggregation where the inside
population is non-empty and natives make up less than 50% of it. Its
year, floor(elapsed simulated years), is latched until reset().
Because detection happens on aggregation, the recorded year depends on
the caller's cadence.
"""

from __future__ import annotations

from typing import Dict, Optional

import numpy as np

from crossover_sim.types import INSIDE_GROUPS, Group, StatsSnapshot

MINORITY_THRESHOLD_PCT = 50.0


def count_groups(agents: np.ndarray) -> Dict[Group, int]:
    """Non-dying agents per group."""
    active = agents['group'][~agents['dying']]
    counts = np.bincount(active.astype(np.intp), minlength=len(Group))
    return {g: int(counts[g]) for g in Group}


def _percent(count: int, total: int) -> float:
    return count / total * 100.0 if total > 0 else 0.0


class StatsAggregator:
    """Read-only observer of the population; owns the minority marker."""

    def __init__(self) -> None:
        self.minority_year: Optional[int] = None

    def compute(self, agents: np.ndarray, elapsed_years: float) -> StatsSnapshot:
        """Aggregate the current population.

        Args:
            agents: Live agents (not modified).
            elapsed_years: Simulated years since the last reset.

        Returns:
            StatsSnapshot.
        """
        counts = count_groups(agents)
        n_native = counts[Group.NATIVE]
        n_legal = counts[Group.LEGAL_IMMIGRANT]
        n_illegal = counts[Group.ILLEGAL_IMMIGRANT]
        total_inside = sum(counts[g] for g in INSIDE_GROUPS)

        pct_native = _percent(n_native, total_inside)
        if (
            self.minority_year is None
            and total_inside > 0
            and pct_native < MINORITY_THRESHOLD_PCT
        ):
            self.minority_year = int(np.floor(elapsed_years))

        return StatsSnapshot(
            elapsed_years=float(elapsed_years),
            total_inside=total_inside,
            count_native=n_native,
            count_legal=n_legal,
            count_illegal=n_illegal,
            count_outsider=counts[Group.OUTSIDER],
            percent_native=pct_native,
            percent_legal=_percent(n_legal, total_inside),
            percent_illegal=_percent(n_illegal, total_inside),
            minority_year=self.minority_year,
        )

    def reset(self) -> None:
        self.minority_year = None
