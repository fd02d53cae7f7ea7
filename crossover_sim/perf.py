"""Per-component step timing.

Each phase of a step (the five engine rules, the regulator and stats
aggregation) is timed under its own name. Disabled monitors do nothing.

Usage:
    perf = PerfMonitor(enabled=True)
    result = run_simulation(config, perf=perf)
    print(perf.report())
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Tuple

# Phases in the order a step runs them; reports follow this order
STEP_COMPONENTS = (
    'animation',
    'movement',
    'aging',
    'birth',
    'immigration',
    'regulator',
    'stats',
)


@dataclass
class ComponentStats:
    """Accumulated wall-clock time of one phase."""
    seconds: float = 0.0
    calls: int = 0

    @property
    def mean_ms(self) -> float:
        return self.seconds / self.calls * 1000.0 if self.calls else 0.0


class PerfMonitor:
    """Wall-clock time per step phase (no-op when disabled)."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._stats: Dict[str, ComponentStats] = {}
        self._run_seconds = 0.0

    @contextmanager
    def run(self):
        """Time a whole batch run; the report's total uses it if set."""
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._run_seconds += time.perf_counter() - t0

    @contextmanager
    def track(self, component: str):
        """Time the enclosed block under ``component``."""
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.record(component, time.perf_counter() - t0)

    def record(self, component: str, seconds: float) -> None:
        if not self.enabled:
            return
        stats = self._stats.setdefault(component, ComponentStats())
        stats.seconds += seconds
        stats.calls += 1

    def get_stats(self) -> Dict[str, ComponentStats]:
        return dict(self._stats)

    def total_seconds(self) -> float:
        """Run wall time if a run was timed, else the sum over phases."""
        return self._run_seconds or sum(s.seconds for s in self._stats.values())

    def breakdown(self) -> List[Tuple[str, ComponentStats, float]]:
        """(name, stats, percent of total) in step order, unknown names last."""
        total = self.total_seconds()
        known = [c for c in STEP_COMPONENTS if c in self._stats]
        extra = sorted(set(self._stats) - set(STEP_COMPONENTS))
        return [
            (name, self._stats[name],
             self._stats[name].seconds / total * 100.0 if total > 0 else 0.0)
            for name in known + extra
        ]

    def summary(self) -> dict:
        """JSON-able per-phase summary plus ``_total_s``."""
        result = {
            name: {
                'total_s': round(stats.seconds, 4),
                'calls': stats.calls,
                'mean_ms': round(stats.mean_ms, 3),
                'pct': round(pct, 1),
            }
            for name, stats, pct in self.breakdown()
        }
        result['_total_s'] = round(self.total_seconds(), 4)
        return result

    def report(self, title: str = "Step Breakdown") -> str:
        rule = '-' * 52
        lines = [
            rule,
            f" {title}",
            rule,
            f"{'Phase':<14} {'Total (s)':>10} {'Calls':>8} {'Mean (ms)':>10} {'%':>6}",
        ]
        for name, stats, pct in self.breakdown():
            lines.append(
                f"{name:<14} {stats.seconds:>10.4f} {stats.calls:>8} "
                f"{stats.mean_ms:>10.3f} {pct:>5.1f}%"
            )
        lines.append(rule)
        lines.append(f"{'TOTAL':<14} {self.total_seconds():>10.4f}")
        return '\n'.join(lines)

    def reset(self) -> None:
        self._stats.clear()
        self._run_seconds = 0.0
