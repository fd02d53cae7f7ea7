"""Agent store and agent factory.

The store owns a preallocated AGENT_DTYPE buffer sized to the capacity
ceiling. Live agents occupy rows [0, n) in creation order; removal
compacts the buffer by predicate, so rows never reference each other
and ids are the only stable handle.

Ids come from a monotone counter (reset to 1 on a full reset) and are
never reused. Once the buffer is full, further insertions are silently
dropped.
"""

from __future__ import annotations

import numpy as np

from crossover_sim.config import DemographySection, SimulationConfig, WorldSection
from crossover_sim.movement import region_bounds
from crossover_sim.types import AGENT_DTYPE, Group, allocate_agents


# ═══════════════════════════════════════════════════════════════════════
# AGENT STORE
# ═══════════════════════════════════════════════════════════════════════

class AgentStore:
    """Ordered, appendable, compactable collection of agents."""

    def __init__(self, capacity: int):
        self.capacity = int(capacity)
        self._buffer = allocate_agents(self.capacity)
        self.n = 0
        self.next_id = 1

    def __len__(self) -> int:
        return self.n

    @property
    def agents(self) -> np.ndarray:
        """Live rows, in creation order (a view; mutations are in place)."""
        return self._buffer[:self.n]

    @property
    def spare(self) -> int:
        return self.capacity - self.n

    def append(self, block: np.ndarray) -> int:
        """Insert agents, assigning fresh ids.

        Rows beyond the capacity ceiling are dropped without error and
        consume no ids.

        Args:
            block: AGENT_DTYPE array of new agents (``id`` is overwritten).

        Returns:
            Number of agents actually inserted.
        """
        k = min(len(block), self.spare)
        if k <= 0:
            return 0
        rows = self._buffer[self.n:self.n + k]
        rows[:] = block[:k]
        rows['id'] = np.arange(self.next_id, self.next_id + k, dtype=np.int64)
        self.next_id += k
        self.n += k
        return k

    def remove(self, mask: np.ndarray) -> int:
        """Drop the live rows where ``mask`` is True, preserving order.

        Returns:
            Number of agents removed.
        """
        mask = np.asarray(mask, dtype=bool)
        n_removed = int(mask.sum())
        if n_removed == 0:
            return 0
        keep = self._buffer[:self.n][~mask]
        self.n = len(keep)
        self._buffer[:self.n] = keep
        return n_removed

    def count_active(self, group: int) -> int:
        """Number of non-dying agents in ``group``."""
        a = self.agents
        return int(np.count_nonzero((a['group'] == group) & ~a['dying']))

    def reset(self) -> None:
        """Discard every agent and restart ids at 1."""
        self._buffer[:self.n] = 0
        self.n = 0
        self.next_id = 1


# ═══════════════════════════════════════════════════════════════════════
# AGENT FACTORY
# ═══════════════════════════════════════════════════════════════════════

def draw_lifespans(
    n: int,
    demo: DemographySection,
    rng: np.random.Generator,
) -> np.ndarray:
    """Lifespans ~ U[mean - spread, mean + spread], clipped to [min, max]."""
    raw = demo.lifespan_mean + (rng.random(n) - 0.5) * 2.0 * demo.lifespan_spread
    return np.clip(raw, demo.lifespan_min, demo.lifespan_max)


def draw_velocities(
    n: int,
    world: WorldSection,
    rng: np.random.Generator,
) -> np.ndarray:
    """(n, 2) velocity components ~ U[-move_speed/2, move_speed/2)."""
    return (rng.random((n, 2)) - 0.5) * world.move_speed


def make_agents(
    n: int,
    group: Group,
    config: SimulationConfig,
    rng: np.random.Generator,
    scale: float = 0.0,
) -> np.ndarray:
    """Create ``n`` fresh agents of ``group`` inside their own region.

    Ages are mixed, U[0, initial_age_max). Ids are left at 0 for the
    store to assign.

    Args:
        n: Number of agents.
        group: Group of every new agent.
        config: Simulation configuration (world + demography).
        rng: Random generator.
        scale: Starting visual scale (1 = fully present, 0 = animates in).

    Returns:
        AGENT_DTYPE array of length n.
    """
    n = max(int(n), 0)
    world = config.world
    block = allocate_agents(n)
    if n == 0:
        return block

    min_x, max_x = region_bounds(group, world)
    block['x'] = min_x + rng.random(n) * (max_x - min_x)
    block['z'] = world.z_min + rng.random(n) * (world.z_max - world.z_min)
    vel = draw_velocities(n, world, rng)
    block['vx'] = vel[:, 0]
    block['vz'] = vel[:, 1]
    block['group'] = group
    block['age'] = rng.random(n) * config.demography.initial_age_max
    block['lifespan'] = draw_lifespans(n, config.demography, rng)
    block['scale'] = scale
    block['dying'] = False
    return block


def initialize_population(
    store: AgentStore,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> int:
    """Populate an empty store from ``config.params``.

    Natives are created first, then outsiders, all at full scale so a
    reset doesn't animate the whole world in.

    Returns:
        Number of agents created (may be truncated by capacity).
    """
    params = config.params
    n_created = store.append(
        make_agents(params.initial_natives, Group.NATIVE, config, rng, scale=1.0)
    )
    n_created += store.append(
        make_agents(params.initial_outsiders, Group.OUTSIDER, config, rng, scale=1.0)
    )
    return n_created
