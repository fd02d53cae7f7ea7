"""Core data types for crossover_sim.

This module is the SINGLE SOURCE OF TRUTH for:
  - AGENT_DTYPE: NumPy structured array dtype for individual agents
  - Group enumeration (native, legal, illegal, outsider)
  - StatsSnapshot: read-only demographic summary

All modules import these types from here. No other module defines agent fields.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Optional

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Group(IntEnum):
    """Demographic group of an agent.

    Transitions are one-way and only from OUTSIDER:
      OUTSIDER  →  LEGAL_IMMIGRANT:    legal admission trial
      OUTSIDER  →  ILLEGAL_IMMIGRANT:  illegal entry trial (after legal fails)
    """
    NATIVE            = 0
    LEGAL_IMMIGRANT   = 1
    ILLEGAL_IMMIGRANT = 2
    OUTSIDER          = 3   # Pending entry; lives in the outside region


# Groups counted toward the "inside" population
INSIDE_GROUPS = (Group.NATIVE, Group.LEGAL_IMMIGRANT, Group.ILLEGAL_IMMIGRANT)

GROUP_LABELS = {
    Group.NATIVE: 'Native',
    Group.LEGAL_IMMIGRANT: 'Legal Immigrant',
    Group.ILLEGAL_IMMIGRANT: 'Illegal Immigrant',
    Group.OUTSIDER: 'Outsider',
}


# ═══════════════════════════════════════════════════════════════════════
# AGENT_DTYPE — Canonical structured array for individual agents
# ═══════════════════════════════════════════════════════════════════════

AGENT_DTYPE = np.dtype([
    # --- Administrative ---
    ('id',        np.int64),     # unique, never reused (store assigns)

    # --- Spatial (movement writes) ---
    ('x',         np.float64),   # position along the border-crossing axis
    ('z',         np.float64),   # position along the border
    ('vx',        np.float64),   # velocity (world units / real second)
    ('vz',        np.float64),

    # --- Life history (engine writes) ---
    ('age',       np.float64),   # simulated years
    ('lifespan',  np.float64),   # simulated years, in [1, 100]
    ('group',     np.int8),      # Group enum
    ('dying',     np.bool_),     # terminal; excluded from stats once set

    # --- Presentation only ---
    ('scale',     np.float64),   # 0 = not materialized / despawned, 1 = present
])


def allocate_agents(max_n: int) -> np.ndarray:
    """Allocate a zeroed agent array.

    Args:
        max_n: Maximum number of agents (array capacity).

    Returns:
        Zeroed structured array of shape (max_n,) with AGENT_DTYPE.
    """
    return np.zeros(max_n, dtype=AGENT_DTYPE)


# ═══════════════════════════════════════════════════════════════════════
# STATS SNAPSHOT
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StatsSnapshot:
    """Read-only demographic summary derived from the live population.

    Never the source of truth: recomputed on demand by the aggregator.
    Percentages are shares of the inside population (outsiders excluded).
    """
    elapsed_years: float = 0.0
    total_inside: int = 0
    count_native: int = 0
    count_legal: int = 0
    count_illegal: int = 0
    count_outsider: int = 0
    percent_native: float = 0.0
    percent_legal: float = 0.0
    percent_illegal: float = 0.0
    minority_year: Optional[int] = None

    @property
    def years_passed(self) -> int:
        """Whole simulated years elapsed."""
        return int(np.floor(self.elapsed_years))

    def as_dict(self) -> dict:
        d = asdict(self)
        d['years_passed'] = self.years_passed
        return d
