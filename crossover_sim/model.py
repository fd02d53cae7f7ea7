"""Step-driven simulation driver.

Per step:
  clock (real seconds → simulated years) → update engine (in place on
  the agent store) → outsider replenishment

Statistics are pulled on demand (`current_stats()`) or pushed by
`frame()` on a throttled real-time cadence. Execution is single-threaded
and cooperative: an external driver (a render loop, a test, or
`run_simulation`) calls `frame()`/`step()` once per tick.

A reset replaces the whole state at once: population, id counter,
clock total and minority marker are discarded and rebuilt from the
current parameters.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from crossover_sim.clock import SimulationClock
from crossover_sim.config import (
    SimulationConfig,
    SimulationParams,
    default_config,
    validate_config,
)
from crossover_sim.engine import StepReport, step_agents
from crossover_sim.perf import PerfMonitor
from crossover_sim.population import AgentStore, initialize_population
from crossover_sim.regulator import replenish_outsiders
from crossover_sim.render import instance_buffers
from crossover_sim.rng import create_rng_hierarchy, get_stream
from crossover_sim.stats import StatsAggregator
from crossover_sim.types import StatsSnapshot


class Simulation:
    """Owns the agent store, clock, stats aggregator and RNG streams.

    Args:
        config: Simulation configuration (defaults if None).
        rngs: RNG hierarchy from create_rng_hierarchy(); built from
            ``config.simulation.seed`` if None.
        perf: Optional performance monitor.

    Raises:
        ValueError: If the configuration fails validate_config().
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        rngs: Optional[Dict[str, np.random.Generator]] = None,
        perf: Optional[PerfMonitor] = None,
    ):
        self.config = config if config is not None else default_config()
        validate_config(self.config)
        self.params: SimulationParams = dataclasses.replace(self.config.params)
        self.rngs = rngs if rngs is not None else create_rng_hierarchy(
            self.config.simulation.seed
        )
        self.perf = perf if perf is not None else PerfMonitor(enabled=False)

        self.store = AgentStore(self.config.world.max_population)
        self.clock = SimulationClock()
        self.aggregator = StatsAggregator()

        self._paused = False
        self._stepping = False
        self._stats_timer = 0.0
        self.last_report = StepReport()
        self._initialize()

    # ── State ─────────────────────────────────────────────────────────

    def _initialize(self) -> None:
        self.store.reset()
        self.clock.reset()
        self.aggregator.reset()
        self._stats_timer = 0.0
        initialize_population(
            self.store,
            dataclasses.replace(self.config, params=self.params),
            get_stream(self.rngs, 'population'),
        )

    @property
    def agents(self) -> np.ndarray:
        """Live agents (read access for presentation)."""
        return self.store.agents

    @property
    def elapsed_years(self) -> float:
        return self.clock.total_years

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def instance_buffers(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Render buffers for a pool of max_population instance slots."""
        return instance_buffers(
            self.store.agents,
            self.config.world.max_population,
            self.config.world.agent_size,
        )

    def update_params(self, **changes) -> SimulationParams:
        """Replace run parameters; effective from the next step.

        Raises:
            TypeError: If a name is not a SimulationParams field.
        """
        self.params = dataclasses.replace(self.params, **changes)
        return self.params

    def reset(self, seed: Optional[int] = None) -> None:
        """Discard all state and reinitialize from the current parameters.

        Args:
            seed: If given, rebuild the RNG hierarchy from this seed first.

        Raises:
            RuntimeError: If called while a step is executing.
        """
        if self._stepping:
            raise RuntimeError("reset() called while a step is in progress")
        if seed is not None:
            self.rngs = create_rng_hierarchy(seed)
        self._initialize()

    # ── Stepping ──────────────────────────────────────────────────────

    def step(self, delta_seconds: float) -> StepReport:
        """Advance the simulation by one real-time delta (ignores pause)."""
        self._stepping = True
        try:
            step_years = self.clock.advance(delta_seconds, self.params.time_speed)
            report = step_agents(
                self.store,
                self.params,
                self.config,
                delta_seconds,
                step_years,
                get_stream(self.rngs, 'engine'),
                perf=self.perf,
            )
            with self.perf.track("regulator"):
                report.replenished = replenish_outsiders(
                    self.store,
                    self.params.initial_outsiders,
                    self.config,
                    get_stream(self.rngs, 'population'),
                )
        finally:
            self._stepping = False
        self.last_report = report
        return report

    def frame(self, delta_seconds: float) -> Optional[StatsSnapshot]:
        """Driver entry point for one rendered frame.

        While paused nothing changes and None is returned. Otherwise the
        simulation steps and a fresh snapshot is returned whenever
        ``stats_interval`` real seconds have accumulated.
        """
        if self._paused:
            return None
        self.step(delta_seconds)
        self._stats_timer += delta_seconds
        if self._stats_timer > self.config.simulation.stats_interval:
            self._stats_timer = 0.0
            return self.current_stats()
        return None

    def current_stats(self) -> StatsSnapshot:
        """Aggregate the live population now."""
        with self.perf.track("stats"):
            return self.aggregator.compute(self.store.agents, self.clock.total_years)


# ═══════════════════════════════════════════════════════════════════════
# HEADLESS BATCH RUN
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimResult:
    """Stats trajectory of a headless run, sampled at the stats cadence."""
    n_frames: int = 0
    elapsed_years: Optional[np.ndarray] = None
    total_inside: Optional[np.ndarray] = None
    count_native: Optional[np.ndarray] = None
    count_legal: Optional[np.ndarray] = None
    count_illegal: Optional[np.ndarray] = None
    count_outsider: Optional[np.ndarray] = None
    percent_native: Optional[np.ndarray] = None
    snapshots: List[StatsSnapshot] = field(default_factory=list)

    # Summary
    final_stats: Optional[StatsSnapshot] = None
    minority_year: Optional[int] = None
    peak_population: int = 0
    total_births: int = 0
    total_deaths: int = 0
    total_legal_admissions: int = 0
    total_illegal_admissions: int = 0
    total_replenished: int = 0


def run_simulation(
    config: Optional[SimulationConfig] = None,
    n_frames: Optional[int] = None,
    frame_delta: Optional[float] = None,
    rngs: Optional[Dict[str, np.random.Generator]] = None,
    perf: Optional[PerfMonitor] = None,
) -> SimResult:
    """Run a fixed number of equal frames and record the stats trajectory.

    Args:
        config: Simulation configuration (defaults if None).
        n_frames: Number of frames (config.simulation.n_frames if None).
        frame_delta: Real seconds per frame (config.simulation.frame_delta if None).
        rngs: Optional RNG hierarchy (seeded from config if None).
        perf: Optional performance monitor.

    Returns:
        SimResult with the initial snapshot followed by one snapshot per
        stats interval.
    """
    if config is None:
        config = default_config()
    if n_frames is None:
        n_frames = config.simulation.n_frames
    if frame_delta is None:
        frame_delta = config.simulation.frame_delta

    sim = Simulation(config, rngs=rngs, perf=perf)
    result = SimResult(n_frames=n_frames)
    snapshots = [sim.current_stats()]
    peak = len(sim.store)

    with sim.perf.run():
        for _ in range(n_frames):
            snap = sim.frame(frame_delta)
            report = sim.last_report
            result.total_births += report.births
            result.total_deaths += report.deaths
            result.total_legal_admissions += report.legal_admissions
            result.total_illegal_admissions += report.illegal_admissions
            result.total_replenished += report.replenished
            peak = max(peak, len(sim.store))
            if snap is not None:
                snapshots.append(snap)

    final = sim.current_stats()
    result.snapshots = snapshots
    result.elapsed_years = np.array([s.elapsed_years for s in snapshots])
    result.total_inside = np.array([s.total_inside for s in snapshots], dtype=np.int64)
    result.count_native = np.array([s.count_native for s in snapshots], dtype=np.int64)
    result.count_legal = np.array([s.count_legal for s in snapshots], dtype=np.int64)
    result.count_illegal = np.array([s.count_illegal for s in snapshots], dtype=np.int64)
    result.count_outsider = np.array([s.count_outsider for s in snapshots], dtype=np.int64)
    result.percent_native = np.array([s.percent_native for s in snapshots])
    result.final_stats = final
    result.minority_year = final.minority_year
    result.peak_population = peak
    return result
