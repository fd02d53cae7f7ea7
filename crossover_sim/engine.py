"""Per-step update engine.

Applies the agent state-transition rules once per step, in a fixed
order (later rules see this step's animation and position state):

  1. Animation:   dying agents shrink (and despawn at scale ≤ 0);
                  others grow toward full scale
  2. Movement:    drift + edge reflection (real seconds)
  3. Aging:       age += step_years; age ≥ lifespan → dying
  4. Birth:       Bernoulli(p = TFR / 2 / 30 × step_years) for fertile,
                  non-dying agents while capacity remains
  5. Immigration: outsiders try legal admission, then (if that fails)
                  an independent illegal-entry trial

Probabilities are compared against U[0, 1) draws without clamping, so
p ≥ 1 always succeeds and p ≤ 0 always fails.

Newborns are collected during the pass and appended afterwards; they
are not touched again until the next step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from crossover_sim.config import SimulationConfig, SimulationParams
from crossover_sim.movement import move_agents
from crossover_sim.perf import PerfMonitor
from crossover_sim.population import AgentStore, draw_lifespans, draw_velocities
from crossover_sim.types import Group, allocate_agents


@dataclass
class StepReport:
    """Counters for one step."""
    step_years: float = 0.0
    despawned: int = 0
    deaths: int = 0               # agents that started dying this step
    births: int = 0
    legal_admissions: int = 0
    illegal_admissions: int = 0
    replenished: int = 0          # filled in by the regulator


# ═══════════════════════════════════════════════════════════════════════
# PROBABILITIES
# ═══════════════════════════════════════════════════════════════════════

def birth_probabilities(
    params: SimulationParams,
    config: SimulationConfig,
    step_years: float,
) -> np.ndarray:
    """Per-step birth probability indexed by Group.

    TFR is children per couple over the reproductive span, so the
    per-person annual rate is TFR / parents_per_child / reproductive_years.
    Outsiders never give birth.
    """
    demo = config.demography
    per_year = np.array([
        params.tfr_native,
        params.tfr_legal,
        params.tfr_illegal,
        0.0,
    ], dtype=np.float64) / demo.parents_per_child / demo.reproductive_years
    return per_year * step_years


def admission_probabilities(
    params: SimulationParams,
    step_years: float,
) -> tuple:
    """(p_legal, p_illegal) for one step."""
    p_legal = (params.legal_acceptance_rate / 100.0) * step_years
    p_illegal = (params.illegal_success_rate / 100.0) * step_years
    return p_legal, p_illegal


# ═══════════════════════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════════════════════

def update_animation(agents: np.ndarray, delta_seconds: float, rate: float) -> np.ndarray:
    """Shrink dying agents, grow the rest toward 1 (in-place).

    Returns:
        Boolean mask of agents whose despawn finished (scale ≤ 0).
    """
    step = rate * delta_seconds
    dying = agents['dying']
    scale = agents['scale']
    scale[dying] -= step
    growing = ~dying & (scale < 1.0)
    scale[growing] = np.minimum(scale[growing] + step, 1.0)
    return dying & (scale <= 0.0)


def update_aging(agents: np.ndarray, step_years: float) -> int:
    """Age non-dying agents; flag those past their lifespan (in-place).

    Returns:
        Number of agents that started dying.
    """
    alive = ~agents['dying']
    agents['age'][alive] += step_years
    expired = alive & (agents['age'] >= agents['lifespan'])
    agents['dying'][expired] = True
    return int(expired.sum())


def draw_births(
    agents: np.ndarray,
    p_birth: np.ndarray,
    n_slots: int,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> np.ndarray:
    """Run birth trials and build the newborn block.

    Parents are visited in population order; once ``n_slots`` newborns
    exist, later successes are dropped (capacity reached).

    Args:
        agents: Live agents (after aging).
        p_birth: Per-group birth probability (see birth_probabilities).
        n_slots: Remaining capacity for newborns this step.
        config: Simulation configuration.
        rng: Random generator.

    Returns:
        AGENT_DTYPE array of newborns (ids unassigned).
    """
    demo = config.demography
    u = rng.random(len(agents))
    age = agents['age']
    fertile = (
        ~agents['dying']
        & (age >= demo.fertile_min_age)
        & (age < demo.fertile_max_age)
    )
    success = fertile & (u < p_birth[agents['group']])
    parents = np.flatnonzero(success)[:max(n_slots, 0)]

    n = len(parents)
    newborns = allocate_agents(n)
    if n == 0:
        return newborns
    newborns['x'] = agents['x'][parents]
    newborns['z'] = agents['z'][parents]
    vel = draw_velocities(n, config.world, rng)
    newborns['vx'] = vel[:, 0]
    newborns['vz'] = vel[:, 1]
    newborns['group'] = agents['group'][parents]
    newborns['age'] = 0.0
    newborns['lifespan'] = draw_lifespans(n, demo, rng)
    newborns['scale'] = 0.0
    newborns['dying'] = False
    return newborns


def update_immigration(
    agents: np.ndarray,
    p_legal: float,
    p_illegal: float,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> tuple:
    """Admission trials for non-dying outsiders (in-place).

    Legal admission is tried first; the illegal trial only counts for
    agents whose legal trial failed. At most one transition per agent.

    Returns:
        (n_legal, n_illegal)
    """
    world = config.world
    n = len(agents)
    u_legal = rng.random(n)
    u_illegal = rng.random(n)

    candidates = (agents['group'] == Group.OUTSIDER) & ~agents['dying']
    legal = candidates & (u_legal < p_legal)
    illegal = candidates & ~legal & (u_illegal < p_illegal)

    agents['group'][legal] = Group.LEGAL_IMMIGRANT
    agents['x'][legal] = world.inside_min_x + world.legal_entry_offset

    n_illegal = int(illegal.sum())
    agents['group'][illegal] = Group.ILLEGAL_IMMIGRANT
    agents['x'][illegal] = (
        world.inside_min_x + rng.random(n_illegal) * world.illegal_entry_spread
    )
    return int(legal.sum()), n_illegal


# ═══════════════════════════════════════════════════════════════════════
# STEP
# ═══════════════════════════════════════════════════════════════════════

def step_agents(
    store: AgentStore,
    params: SimulationParams,
    config: SimulationConfig,
    delta_seconds: float,
    step_years: float,
    rng: np.random.Generator,
    perf: Optional[PerfMonitor] = None,
) -> StepReport:
    """Advance every live agent one step (in-place on ``store``).

    Args:
        store: Agent store (mutated).
        params: Current run parameters.
        config: World and demography configuration.
        delta_seconds: Real elapsed time (s); drives animation and movement.
        step_years: Simulated years elapsed this step; drives aging,
            births and admissions.
        rng: Engine RNG stream.
        perf: Optional performance monitor.

    Returns:
        StepReport (replenished left at 0).
    """
    if perf is None:
        perf = PerfMonitor(enabled=False)
    report = StepReport(step_years=step_years)
    n_start = len(store)

    with perf.track("animation"):
        despawned = update_animation(
            store.agents, delta_seconds, config.world.animation_rate,
        )
        report.despawned = store.remove(despawned)

    agents = store.agents

    with perf.track("movement"):
        move_agents(agents, delta_seconds, config.world)

    with perf.track("aging"):
        report.deaths = update_aging(agents, step_years)

    with perf.track("birth"):
        newborns = draw_births(
            agents,
            birth_probabilities(params, config, step_years),
            store.capacity - n_start,
            config,
            rng,
        )

    with perf.track("immigration"):
        p_legal, p_illegal = admission_probabilities(params, step_years)
        report.legal_admissions, report.illegal_admissions = update_immigration(
            agents, p_legal, p_illegal, config, rng,
        )

    report.births = store.append(newborns)
    return report
