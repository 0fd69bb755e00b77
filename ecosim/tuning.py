"""
Ecosystem Tuning - All balance parameters in one place

Values are validated once at startup: anything out of range is clamped (and
logged) rather than rejected, so a bad preset never stops a long run.

USAGE:
    tuning = EcosystemTuning.fast_evolution()
    tuning = load_tuning("my_overrides.json", preset="stable")
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .resources import DECAY_RATES, RESOURCE_TYPE_COUNT, ResourceType

logger = logging.getLogger(__name__)


def _default_scale() -> Tuple[float, ...]:
    return (1.0,) * RESOURCE_TYPE_COUNT


@dataclass
class EcosystemTuning:
    """Balance parameters for the world and the organism systems."""

    # =========================================================================
    # Resources
    # =========================================================================
    regeneration_scale: Tuple[float, ...] = field(default_factory=_default_scale)
    decay_rates: Tuple[float, ...] = DECAY_RATES
    quantize_threshold: float = 0.001
    diffusion_rate: float = 0.1
    pressure_decay_rate: float = 0.05

    # =========================================================================
    # Feeding
    # =========================================================================
    consumption_rate_base: float = 5.0          # resource units per second
    energy_conversion_efficiency: float = 0.3
    decomposer_efficiency_multiplier: float = 0.5
    prey_nutrition_multiplier: float = 2.0

    # =========================================================================
    # Metabolism
    # =========================================================================
    base_metabolism_multiplier: float = 1.0
    movement_cost_multiplier: float = 1.0

    # =========================================================================
    # Reproduction
    # =========================================================================
    reproduction_chance: float = 0.1            # per-tick gate once eligible
    sexual_reproduction_chance: float = 0.35
    min_clutch: int = 1
    max_clutch: int = 6
    min_reproduction_cooldown: float = 350.0
    max_reproduction_cooldown: float = 2400.0
    offspring_energy_fraction: float = 0.9
    offspring_min_energy_ratio: float = 0.15
    offspring_spawn_offset: float = 5.0

    # =========================================================================
    # World / population
    # =========================================================================
    initial_spawn_count: int = 100
    initial_chunk_radius: int = 1
    world_bound: float = 200.0
    spatial_cell_size: float = 8.0

    # =========================================================================
    # Speciation
    # =========================================================================
    speciation_threshold: float = 0.15
    centroid_interval: int = 100
    reassign_interval: int = 500

    # =========================================================================
    # Statistics
    # =========================================================================
    stats_interval: int = 100
    stats_log_interval: int = 500
    tracked_log_interval: int = 10

    # =========================================================================
    # Climate events
    # =========================================================================
    climate_event_min_cooldown: int = 120
    climate_event_max_cooldown: int = 420
    max_climate_events: int = 3

    seed: Optional[int] = None

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    @classmethod
    def balanced(cls) -> 'EcosystemTuning':
        return cls()

    @classmethod
    def fast_evolution(cls) -> 'EcosystemTuning':
        """Faster reproduction and more plant growth."""
        tuning = cls()
        tuning.reproduction_chance = 0.15
        tuning.min_reproduction_cooldown = 200.0
        tuning.max_reproduction_cooldown = 1200.0
        tuning.regeneration_scale = _scaled(tuning.regeneration_scale, ResourceType.PLANT, 1.5)
        return tuning

    @classmethod
    def stable(cls) -> 'EcosystemTuning':
        """Slow reproduction and abundant plants/water."""
        tuning = cls()
        tuning.reproduction_chance = 0.05
        tuning.min_reproduction_cooldown = 500.0
        tuning.max_reproduction_cooldown = 3000.0
        scale = _scaled(tuning.regeneration_scale, ResourceType.PLANT, 1.9)
        tuning.regeneration_scale = _scaled(scale, ResourceType.WATER, 1.5)
        return tuning

    @classmethod
    def competitive(cls) -> 'EcosystemTuning':
        """Scarce resources, faster plant decay and hungrier eaters."""
        tuning = cls()
        scale = _scaled(tuning.regeneration_scale, ResourceType.PLANT, 0.6)
        tuning.regeneration_scale = _scaled(scale, ResourceType.WATER, 0.65)
        decay = list(tuning.decay_rates)
        decay[ResourceType.PLANT] = 0.02
        tuning.decay_rates = tuple(decay)
        tuning.consumption_rate_base = 7.0
        return tuning

    @classmethod
    def preset(cls, name: str) -> 'EcosystemTuning':
        presets = {
            'balanced': cls.balanced,
            'fast_evolution': cls.fast_evolution,
            'stable': cls.stable,
            'competitive': cls.competitive,
        }
        if name not in presets:
            logger.warning("Unknown tuning preset %r, using balanced", name)
            return cls.balanced()
        return presets[name]()

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validated(self) -> 'EcosystemTuning':
        """Return a copy with every value clamped into its legal range."""
        t = replace(self)

        def clamp(name, low=None, high=None, cast=float):
            value = getattr(t, name)
            new = value
            if low is not None and new < low:
                new = low
            if high is not None and new > high:
                new = high
            new = cast(new)
            if new != value:
                logger.warning("Tuning %s=%r out of range, clamped to %r", name, value, new)
            setattr(t, name, new)

        for name in ('reproduction_chance', 'sexual_reproduction_chance',
                     'energy_conversion_efficiency', 'offspring_energy_fraction',
                     'offspring_min_energy_ratio'):
            clamp(name, 0.0, 1.0)
        for name in ('diffusion_rate', 'pressure_decay_rate', 'consumption_rate_base',
                     'decomposer_efficiency_multiplier', 'prey_nutrition_multiplier',
                     'base_metabolism_multiplier', 'movement_cost_multiplier',
                     'offspring_spawn_offset', 'speciation_threshold'):
            clamp(name, 0.0)
        clamp('quantize_threshold', 0.0, 0.1)
        clamp('world_bound', 1.0)
        clamp('spatial_cell_size', 0.5)
        clamp('min_clutch', 1, 6, int)
        clamp('max_clutch', t.min_clutch, 6, int)
        clamp('min_reproduction_cooldown', 0.0)
        clamp('max_reproduction_cooldown', t.min_reproduction_cooldown)
        clamp('initial_spawn_count', 0, None, int)
        clamp('initial_chunk_radius', 0, 8, int)
        clamp('centroid_interval', 1, None, int)
        clamp('reassign_interval', 1, None, int)
        clamp('stats_interval', 1, None, int)
        clamp('stats_log_interval', 1, None, int)
        clamp('tracked_log_interval', 1, None, int)
        clamp('climate_event_min_cooldown', 1, None, int)
        clamp('climate_event_max_cooldown', t.climate_event_min_cooldown, None, int)
        clamp('max_climate_events', 0, None, int)

        t.regeneration_scale = _clamped_vector('regeneration_scale', t.regeneration_scale,
                                               _default_scale(), 0.0, None)
        t.decay_rates = _clamped_vector('decay_rates', t.decay_rates, DECAY_RATES, 0.0, 1.0)
        return t

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = list(value) if isinstance(value, tuple) else value
        return data

    @classmethod
    def from_dict(cls, d: Dict[str, Any],
                  base: Optional['EcosystemTuning'] = None) -> 'EcosystemTuning':
        tuning = replace(base) if base is not None else cls()
        known = {f.name for f in fields(cls)}
        for key, value in d.items():
            if key not in known:
                logger.warning("Ignoring unknown tuning key %r", key)
                continue
            if isinstance(value, list):
                value = tuple(value)
            setattr(tuning, key, value)
        return tuning


def _scaled(values: Tuple[float, ...], index: int, factor: float) -> Tuple[float, ...]:
    out = list(values)
    out[index] *= factor
    return tuple(out)


def _clamped_vector(name, values, default, low, high) -> Tuple[float, ...]:
    values = tuple(values)
    if len(values) != RESOURCE_TYPE_COUNT:
        logger.warning("Tuning %s needs %d entries, got %d; using defaults",
                       name, RESOURCE_TYPE_COUNT, len(values))
        return tuple(default)
    out = []
    for v in values:
        c = max(v, low)
        if high is not None:
            c = min(c, high)
        out.append(float(c))
    if tuple(out) != values:
        logger.warning("Tuning %s=%r out of range, clamped to %r", name, values, tuple(out))
    return tuple(out)


def load_tuning(path, preset: str = 'balanced') -> EcosystemTuning:
    """Load JSON overrides on top of a preset and validate the result."""
    with open(Path(path)) as f:
        overrides = json.load(f)
    return EcosystemTuning.from_dict(overrides, EcosystemTuning.preset(preset)).validated()
