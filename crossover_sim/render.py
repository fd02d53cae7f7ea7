"""Agent → render-instance mapping.

Pure data, no graphics dependency. Any instanced renderer consumes the
three buffers: per-slot position, uniform scale and RGB color keyed by
group. Slots past the live agent count are parked below the scene at
scale 0 so a fixed-size instance pool never shows stale agents.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from crossover_sim.types import Group

GROUP_COLORS = {
    Group.NATIVE: '#FFFF00',
    Group.LEGAL_IMMIGRANT: '#00FF00',
    Group.ILLEGAL_IMMIGRANT: '#FF0000',
    Group.OUTSIDER: '#990000',
}

HIDDEN_POSITION = (0.0, -100.0, 0.0)


def hex_to_rgb(color: str) -> Tuple[float, float, float]:
    """'#RRGGBB' → (r, g, b) in [0, 1]."""
    color = color.lstrip('#')
    return tuple(int(color[i:i + 2], 16) / 255.0 for i in (0, 2, 4))


# Row i = RGB of Group(i)
_COLOR_TABLE = np.array(
    [hex_to_rgb(GROUP_COLORS[g]) for g in Group], dtype=np.float32,
)


def instance_buffers(
    agents: np.ndarray,
    n_slots: int,
    agent_size: float = 0.12,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Build instance buffers for a fixed pool of ``n_slots``.

    Args:
        agents: Live agents in store order.
        n_slots: Size of the instance pool (usually the capacity ceiling).
        agent_size: Cube edge; agents sit on the ground at y = size / 2.

    Returns:
        (positions (n_slots, 3), scales (n_slots,), colors (n_slots, 3)).
        Agents beyond ``n_slots`` are not drawn.
    """
    n = min(len(agents), n_slots)
    positions = np.empty((n_slots, 3), dtype=np.float32)
    positions[:] = HIDDEN_POSITION
    scales = np.zeros(n_slots, dtype=np.float32)
    colors = np.zeros((n_slots, 3), dtype=np.float32)

    shown = agents[:n]
    positions[:n, 0] = shown['x']
    positions[:n, 1] = agent_size / 2.0
    positions[:n, 2] = shown['z']
    scales[:n] = shown['scale']
    colors[:n] = _COLOR_TABLE[shown['group']]
    return positions, scales, colors
