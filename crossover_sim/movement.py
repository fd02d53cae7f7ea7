"""Agent movement: constant-velocity drift with elastic edge reflection.

Movement is cosmetic: it never feeds back into demographic rules.
Each step integrates

    x += vx × dt
    z += vz × dt

with dt in real seconds (not simulated years). Outsiders are confined
to the outside region, every other group to the inside region; both
share the z limits. A position strictly beyond a bound is clamped to it
and the corresponding velocity component is negated. Positions exactly
on a bound are inside.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from crossover_sim.config import WorldSection
from crossover_sim.types import Group


def region_bounds(group: int, world: WorldSection) -> Tuple[float, float]:
    """x-range (min, max) of the region an agent of ``group`` lives in."""
    if group == Group.OUTSIDER:
        return world.outside_min_x, world.outside_max_x
    return world.inside_min_x, world.inside_max_x


def _reflect_axis(
    pos: np.ndarray,
    vel: np.ndarray,
    lo: np.ndarray,
    hi: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Clamp to [lo, hi] and flip velocity where the bound was exceeded.

    At most one flip per call, however far the position overshot.
    """
    out = (pos < lo) | (pos > hi)
    vel = np.where(out, -vel, vel)
    pos = np.clip(pos, lo, hi)
    return pos, vel


def move_agents(
    agents: np.ndarray,
    delta_seconds: float,
    world: WorldSection,
) -> None:
    """Move every agent one step (in-place).

    Dying agents keep moving while they animate out.

    Args:
        agents: Structured array with AGENT_DTYPE fields (live slice).
        delta_seconds: Real elapsed time (s).
        world: World geometry.
    """
    if len(agents) == 0:
        return

    outsider = agents['group'] == Group.OUTSIDER
    min_x = np.where(outsider, world.outside_min_x, world.inside_min_x)
    max_x = np.where(outsider, world.outside_max_x, world.inside_max_x)

    new_x = agents['x'] + agents['vx'] * delta_seconds
    new_z = agents['z'] + agents['vz'] * delta_seconds

    agents['x'], agents['vx'] = _reflect_axis(new_x, agents['vx'], min_x, max_x)
    agents['z'], agents['vz'] = _reflect_axis(
        new_z, agents['vz'], world.z_min, world.z_max,
    )
