#!/usr/bin/env python3
"""Run a headless crossover_sim scenario from YAML configuration.

Loads the base config (plus an optional scenario override), runs a
fixed number of frames at a fixed real-time delta and prints the stats
trajectory and a final summary.

Usage:
    python scripts/run_scenario.py configs/default.yaml
    python scripts/run_scenario.py configs/default.yaml --scenario configs/scenarios/open_border.yaml
    python scripts/run_scenario.py configs/default.yaml --frames 18000 --seed 7 --perf
"""

import argparse
import sys
import time
from pathlib import Path

# ── Project imports ──────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from crossover_sim.config import load_config
from crossover_sim.model import SimResult, run_simulation
from crossover_sim.perf import PerfMonitor
from crossover_sim.types import GROUP_LABELS, Group


def print_trajectory(result: SimResult, every: int) -> None:
    print(f"{'Year':>7} {'Inside':>7} {'Native':>7} {'Legal':>7} "
          f"{'Illegal':>8} {'Outside':>8} {'%Native':>8}")
    for i in range(0, len(result.snapshots), max(every, 1)):
        print(
            f"{result.elapsed_years[i]:>7.1f} {result.total_inside[i]:>7d} "
            f"{result.count_native[i]:>7d} {result.count_legal[i]:>7d} "
            f"{result.count_illegal[i]:>8d} {result.count_outsider[i]:>8d} "
            f"{result.percent_native[i]:>7.1f}%"
        )


def print_summary(result: SimResult) -> None:
    final = result.final_stats
    print("\n" + "-" * 60)
    print(f"  Simulated years:     {final.elapsed_years:.1f}")
    print(f"  Inside population:   {final.total_inside}")
    shares = (
        (Group.NATIVE, final.percent_native),
        (Group.LEGAL_IMMIGRANT, final.percent_legal),
        (Group.ILLEGAL_IMMIGRANT, final.percent_illegal),
    )
    for group, pct in shares:
        print(f"  {GROUP_LABELS[group] + ':':<21}{pct:.1f}%")
    print(f"  Outsider pool:       {final.count_outsider}")
    print(f"  Peak population:     {result.peak_population}")
    print(f"  Births / deaths:     {result.total_births} / {result.total_deaths}")
    print(f"  Admissions (L / I):  {result.total_legal_admissions} / "
          f"{result.total_illegal_admissions}")
    if result.minority_year is None:
        print("  Minority crossover:  not reached")
    else:
        print(f"  Minority crossover:  year {result.minority_year}")
    print("-" * 60)


def main():
    parser = argparse.ArgumentParser(
        description="Run a headless border demography scenario.",
        epilog="Example: python scripts/run_scenario.py configs/default.yaml",
    )
    parser.add_argument("config", help="Base config YAML")
    parser.add_argument(
        "--scenario", type=str, default=None,
        help="Scenario override YAML",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Override simulation.seed",
    )
    parser.add_argument(
        "--frames", type=int, default=None,
        help="Number of frames (default: simulation.n_frames)",
    )
    parser.add_argument(
        "--delta", type=float, default=None,
        help="Real seconds per frame (default: simulation.frame_delta)",
    )
    parser.add_argument(
        "--every", type=int, default=25,
        help="Print every Nth stats snapshot (default: 25)",
    )
    parser.add_argument(
        "--perf", action="store_true",
        help="Print a per-component timing breakdown",
    )
    args = parser.parse_args()

    overrides = {}
    if args.seed is not None:
        overrides['simulation'] = {'seed': args.seed}
    config = load_config(args.config, args.scenario, overrides or None)

    print("=" * 60)
    print("crossover_sim scenario runner")
    print("=" * 60)
    p = config.params
    print(f"  seed={config.simulation.seed}  speed={p.time_speed} yr/s  "
          f"legal={p.legal_acceptance_rate}%  illegal={p.illegal_success_rate}%")
    print(f"  TFR native/legal/illegal = "
          f"{p.tfr_native}/{p.tfr_legal}/{p.tfr_illegal}")
    print(f"  initial natives={p.initial_natives}  "
          f"outsider target={p.initial_outsiders}\n")

    perf = PerfMonitor(enabled=args.perf)
    t0 = time.time()
    result = run_simulation(
        config, n_frames=args.frames, frame_delta=args.delta, perf=perf,
    )
    elapsed = time.time() - t0

    print_trajectory(result, args.every)
    print_summary(result)
    print(f"\n  {result.n_frames} frames in {elapsed:.2f}s")
    if args.perf:
        print(perf.report())


if __name__ == "__main__":
    main()
