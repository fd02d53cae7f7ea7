"""Configuration system for crossover_sim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → programmatic overrides

Run parameters (rates, fertility, initial sizes, speed) live in the
``params`` section and may be changed between steps; the other sections
describe the world and the demographic model and are fixed for a run.

Out-of-range rates, fertility rates and speeds are NOT validation
errors: probabilities derived from them are used directly as draw
thresholds, so they degrade to always-fail / always-succeed.
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

# Hard bounds on any agent lifespan (years)
LIFESPAN_FLOOR = 1.0
LIFESPAN_CEILING = 100.0


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run control: seeding and driver cadence."""
    seed: int = 42
    stats_interval: float = 0.2     # Real seconds between stats snapshots
    frame_delta: float = 1.0 / 60   # Real seconds per headless frame
    n_frames: int = 3600            # Headless run length (frames)


@dataclass
class SimulationParams:
    """Tunable run parameters.

    Changes take effect starting with the next step.
    """
    time_speed: float = 1.0             # Simulated years per real second
    legal_acceptance_rate: float = 30.0  # Annual admission probability (%)
    illegal_success_rate: float = 10.0   # Annual illegal entry probability (%)
    tfr_native: float = 1.5             # Children per couple over a lifetime
    tfr_legal: float = 2.1
    tfr_illegal: float = 3.0
    initial_natives: int = 100
    initial_outsiders: int = 100        # Also the outsider pool target


@dataclass
class WorldSection:
    """Geometry, motion and the capacity ceiling.

    The border sits at x = 0; outsiders are confined to
    [outside_min_x, outside_max_x], everyone else to
    [inside_min_x, inside_max_x]. Both share [z_min, z_max].
    """
    outside_min_x: float = -30.0
    outside_max_x: float = -0.5
    inside_min_x: float = 0.5
    inside_max_x: float = 30.0
    z_min: float = -20.0
    z_max: float = 20.0
    move_speed: float = 5.0          # Velocity components ∈ [-speed/2, speed/2]
    animation_rate: float = 2.0      # Scale change per real second
    max_population: int = 10000      # Hard capacity ceiling
    legal_entry_offset: float = 1.0  # Legal entrants land at inside_min_x + offset
    illegal_entry_spread: float = 5.0  # Illegal entrants land in [inside_min_x, +spread)
    agent_size: float = 0.12         # Rendered cube edge (presentation only)


@dataclass
class DemographySection:
    """Lifespan, fertility window and initial age structure."""
    lifespan_mean: float = 78.0
    lifespan_spread: float = 15.0    # Uniform ±spread around the mean
    lifespan_min: float = 1.0
    lifespan_max: float = 100.0
    fertile_min_age: float = 18.0    # Inclusive
    fertile_max_age: float = 50.0    # Exclusive
    reproductive_years: float = 30.0
    parents_per_child: float = 2.0
    initial_age_max: float = 40.0    # Initial/replenished ages ~ U[0, max)


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    params: SimulationParams = field(default_factory=SimulationParams)
    world: WorldSection = field(default_factory=WorldSection)
    demography: DemographySection = field(default_factory=DemographySection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'params': SimulationParams,
    'world': WorldSection,
    'demography': DemographySection,
}


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def config_to_dict(config: SimulationConfig) -> Dict[str, Dict[str, Any]]:
    """Plain-dict form of a config (YAML-dumpable)."""
    return dataclasses.asdict(config)


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def validate_config(config: SimulationConfig) -> None:
    """Reject structurally impossible configurations.

    Rates, fertility, speed and targets are never rejected here.

    Raises:
        ValueError: If the world or demographic model is inconsistent.
    """
    w = config.world
    if w.outside_min_x >= w.outside_max_x:
        raise ValueError(
            f"world.outside_min_x ({w.outside_min_x}) must be < "
            f"outside_max_x ({w.outside_max_x})"
        )
    if w.inside_min_x >= w.inside_max_x:
        raise ValueError(
            f"world.inside_min_x ({w.inside_min_x}) must be < "
            f"inside_max_x ({w.inside_max_x})"
        )
    if w.z_min >= w.z_max:
        raise ValueError(
            f"world.z_min ({w.z_min}) must be < z_max ({w.z_max})"
        )
    if w.max_population < 1:
        raise ValueError(
            f"world.max_population must be >= 1, got {w.max_population}"
        )
    if w.animation_rate <= 0:
        raise ValueError("world.animation_rate must be positive")

    d = config.demography
    if d.lifespan_min < LIFESPAN_FLOOR or d.lifespan_max > LIFESPAN_CEILING:
        raise ValueError(
            f"demography lifespan bounds [{d.lifespan_min}, {d.lifespan_max}] "
            f"must lie within [{LIFESPAN_FLOOR}, {LIFESPAN_CEILING}]"
        )
    if not (d.lifespan_min <= d.lifespan_max):
        raise ValueError(
            f"demography.lifespan_min ({d.lifespan_min}) must be <= "
            f"lifespan_max ({d.lifespan_max})"
        )
    if d.fertile_min_age >= d.fertile_max_age:
        raise ValueError(
            f"demography fertile window [{d.fertile_min_age}, "
            f"{d.fertile_max_age}) is empty"
        )
    if d.reproductive_years <= 0 or d.parents_per_child <= 0:
        raise ValueError(
            "demography.reproductive_years and parents_per_child must be positive"
        )
    if d.initial_age_max < 0:
        raise ValueError(
            f"demography.initial_age_max must be >= 0, got {d.initial_age_max}"
        )

    s = config.simulation
    if s.seed < 0:
        raise ValueError("simulation.seed must be non-negative")
    if s.stats_interval <= 0:
        raise ValueError("simulation.stats_interval must be positive")
    if s.frame_delta <= 0:
        raise ValueError("simulation.frame_delta must be positive")

    p = config.params
    initial_total = max(p.initial_natives, 0) + max(p.initial_outsiders, 0)
    if initial_total > w.max_population:
        warnings.warn(
            f"initial population ({initial_total}) exceeds "
            f"world.max_population ({w.max_population}); the excess "
            f"will not be created",
            UserWarning,
            stacklevel=2,
        )


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML (skipped if missing).
        overrides: Optional dict of overrides (e.g. from the command line).

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
