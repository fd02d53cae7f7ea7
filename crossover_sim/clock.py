"""Simulation clock: real seconds → simulated years."""

from __future__ import annotations


class SimulationClock:
    """Monotone running total of simulated years.

    The only mutation paths are `advance()` and `reset()`.
    """

    def __init__(self) -> None:
        self._total_years = 0.0

    @property
    def total_years(self) -> float:
        return self._total_years

    def advance(self, delta_seconds: float, time_speed: float) -> float:
        """Advance by one real-time delta.

        A negative ``time_speed`` freezes the clock for this step.

        Args:
            delta_seconds: Real elapsed time (s), >= 0.
            time_speed: Simulated years per real second.

        Returns:
            step_years, the simulated years added this step.

        Raises:
            ValueError: If delta_seconds is negative.
        """
        if delta_seconds < 0:
            raise ValueError(f"delta_seconds must be >= 0, got {delta_seconds}")
        step_years = delta_seconds * max(time_speed, 0.0)
        self._total_years += step_years
        return step_years

    def reset(self) -> None:
        self._total_years = 0.0
