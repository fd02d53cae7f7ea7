"""Outsider pool replenishment.

After the per-agent pass, the pending-entry pool is topped back up to
its target (``params.initial_outsiders``). Only non-dying outsiders
count toward the target, while dying ones still hold capacity until
their despawn animation ends. Near the ceiling this can leave the pool
permanently short of target.
"""

from __future__ import annotations

import numpy as np

from crossover_sim.config import SimulationConfig
from crossover_sim.population import AgentStore, make_agents
from crossover_sim.types import Group


def outsider_deficit(store: AgentStore, target: int) -> int:
    """Target minus active (non-dying) outsiders; may be negative."""
    return int(target) - store.count_active(Group.OUTSIDER)


def replenish_outsiders(
    store: AgentStore,
    target: int,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> int:
    """Spawn new outsiders to cover the deficit, capacity permitting.

    New outsiders start at scale 0 (animate in) at random positions in
    the outside region with mixed ages.

    Returns:
        Number of outsiders spawned: min(deficit, spare capacity), or 0.
    """
    deficit = outsider_deficit(store, target)
    n_new = min(deficit, store.spare)
    if n_new <= 0:
        return 0
    return store.append(make_agents(n_new, Group.OUTSIDER, config, rng, scale=0.0))
