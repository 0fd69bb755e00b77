"""
Climate System - Seasons, drift, regional noise and transient weather events

The global base temperature/humidity follow a seasonal sinusoid plus a slow
bounded random drift. Each cell's climate adds elevation, terrain, a smooth
large-scale spatial noise field and the contribution of any active climate
event (heatwaves, storms, droughts) whose influence falls off linearly with
distance from its centre.
"""

import logging
import math
import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .resources import TerrainType

logger = logging.getLogger(__name__)


SEASON_PERIOD = 1000.0          # ticks per year
SEASON_TEMPERATURE_AMPLITUDE = 0.2
SEASON_HUMIDITY_AMPLITUDE = 0.15
DRIFT_RATE = 0.0001
TEMPERATURE_DRIFT_RANGE = (0.2, 0.8)
MAX_ELEVATION = 65535.0
ELEVATION_COOLING = 0.3         # max cooling at max elevation
REGIONAL_NOISE_AMPLITUDE = 0.05
REGIONAL_PHASE_STEP = 0.001     # phase advance per tick

# Indexed by TerrainType value
TERRAIN_TEMPERATURE_MODIFIER = np.array([0.0, 0.0, -0.05, 0.15, -0.2, -0.25, 0.05, 0.3])
TERRAIN_HUMIDITY_MODIFIER = np.array([0.3, 0.0, 0.2, -0.3, 0.1, -0.1, 0.4, -0.2])


# =============================================================================
# CLIMATE EVENTS
# =============================================================================

class ClimateEventKind(Enum):
    HEATWAVE = "heatwave"
    COLD_RAINSTORM = "cold_rainstorm"
    DROUGHT = "drought"
    TROPICAL_STORM = "tropical_storm"


# (temperature delta range, humidity delta range, radius range, duration range in ticks)
EVENT_ARCHETYPES: Dict[ClimateEventKind, Tuple[Tuple[float, float], ...]] = {
    ClimateEventKind.HEATWAVE: ((0.15, 0.3), (-0.15, -0.05), (40.0, 90.0), (200, 500)),
    ClimateEventKind.COLD_RAINSTORM: ((-0.25, -0.1), (0.15, 0.3), (30.0, 70.0), (100, 300)),
    ClimateEventKind.DROUGHT: ((0.05, 0.12), (-0.35, -0.2), (60.0, 120.0), (300, 700)),
    ClimateEventKind.TROPICAL_STORM: ((0.02, 0.08), (0.25, 0.4), (25.0, 60.0), (80, 200)),
}


@dataclass
class ClimateEvent:
    """A circular region of anomalous weather that expires after a countdown."""
    kind: ClimateEventKind
    x: float
    y: float
    radius: float
    temperature_delta: float
    humidity_delta: float
    remaining: int

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    def falloff(self, x, y):
        """1.0 at the centre, 0.0 at and beyond the radius (works on arrays)."""
        dist = np.hypot(np.asarray(x, dtype=np.float64) - self.x,
                        np.asarray(y, dtype=np.float64) - self.y)
        return np.clip(1.0 - dist / self.radius, 0.0, 1.0)

    @classmethod
    def spawn(cls, kind: ClimateEventKind, rng: np.random.Generator,
              bound: float) -> 'ClimateEvent':
        temp_range, hum_range, radius_range, duration_range = EVENT_ARCHETYPES[kind]
        return cls(
            kind=kind,
            x=float(rng.uniform(-bound, bound)),
            y=float(rng.uniform(-bound, bound)),
            radius=float(rng.uniform(*radius_range)),
            temperature_delta=float(rng.uniform(*temp_range)),
            humidity_delta=float(rng.uniform(*hum_range)),
            remaining=int(rng.integers(duration_range[0], duration_range[1] + 1)),
        )


# =============================================================================
# CLIMATE STATE
# =============================================================================

@dataclass
class ClimateState:
    """Global climate: base values, seasonal phase, regional noise phase and events."""
    base_temperature: float = 0.5
    base_humidity: float = 0.5
    season: float = 0.0
    time: int = 0
    drift: float = 0.0
    noise_phase: float = 0.0
    events: List[ClimateEvent] = field(default_factory=list)
    event_cooldown: int = 120
    min_event_cooldown: int = 120
    max_event_cooldown: int = 420
    max_events: int = 3
    event_bound: float = 200.0

    def update(self, dt: float, rng: Optional[np.random.Generator] = None):
        """Advance one tick: season, drift, noise phase and event lifecycle."""
        rng = rng if rng is not None else np.random.default_rng()
        self.time += 1
        self.season = (self.time / SEASON_PERIOD) % 1.0
        angle = self.season * 2.0 * math.pi

        self.drift += (rng.random() - 0.5) * DRIFT_RATE
        low, high = TEMPERATURE_DRIFT_RANGE
        self.drift = min(max(self.drift, low - 0.5), high - 0.5)

        seasonal_temp = math.sin(angle) * SEASON_TEMPERATURE_AMPLITUDE
        self.base_temperature = min(max(0.5 + seasonal_temp + self.drift, low), high)
        # Humidity runs opposite in phase to temperature
        self.base_humidity = 0.5 + math.sin(angle + math.pi) * SEASON_HUMIDITY_AMPLITUDE

        self.noise_phase += REGIONAL_PHASE_STEP
        self._update_events(rng)

    def _update_events(self, rng: np.random.Generator):
        for event in self.events:
            event.remaining -= 1
        ended = [e for e in self.events if e.expired]
        if ended:
            self.events = [e for e in self.events if not e.expired]
            for event in ended:
                logger.info("Climate event ended: %s at (%.0f, %.0f)",
                            event.kind.value, event.x, event.y)

        self.event_cooldown -= 1
        if self.event_cooldown > 0:
            return
        self.event_cooldown = int(rng.integers(self.min_event_cooldown,
                                               self.max_event_cooldown + 1))
        if len(self.events) >= self.max_events:
            return
        kinds = list(ClimateEventKind)
        kind = kinds[int(rng.integers(len(kinds)))]
        event = ClimateEvent.spawn(kind, rng, self.event_bound)
        self.events.append(event)
        logger.info("Climate event started: %s at (%.0f, %.0f) r=%.0f for %d ticks",
                    kind.value, event.x, event.y, event.radius, event.remaining)

    # -------------------------------------------------------------------------
    # Per-cell climate
    # -------------------------------------------------------------------------

    def regional_noise(self, x, y):
        """Smooth large-scale noise in [-amplitude, amplitude]; drifts with the phase."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        p = self.noise_phase
        return REGIONAL_NOISE_AMPLITUDE * (
            0.6 * np.sin(x * 0.021 + p * 3.0) * np.cos(y * 0.017 - p * 2.0)
            + 0.4 * np.sin((x + y) * 0.009 + p)
        )

    def event_contribution(self, x, y) -> Tuple[np.ndarray, np.ndarray]:
        temp = np.zeros(np.broadcast(np.asarray(x), np.asarray(y)).shape)
        hum = np.zeros_like(temp)
        for event in self.events:
            weight = event.falloff(x, y)
            temp = temp + event.temperature_delta * weight
            hum = hum + event.humidity_delta * weight
        return temp, hum

    def cell_climate(self, elevation, terrain, x, y) -> Tuple[np.ndarray, np.ndarray]:
        """
        Temperature and humidity for cells.

        Args:
            elevation: 0..65535 (scalar or array)
            terrain: TerrainType value(s)
            x, y: world coordinates of the cells

        Returns:
            (temperature, humidity), both clamped to [0, 1]
        """
        terrain = np.asarray(terrain, dtype=np.intp)
        noise = self.regional_noise(x, y)
        event_temp, event_hum = self.event_contribution(x, y)

        elevation_effect = -(np.asarray(elevation, dtype=np.float64) / MAX_ELEVATION) * ELEVATION_COOLING
        temperature = np.clip(
            self.base_temperature + elevation_effect + TERRAIN_TEMPERATURE_MODIFIER[terrain]
            + noise + event_temp,
            0.0, 1.0)

        humidity = np.clip(
            self.base_humidity + TERRAIN_HUMIDITY_MODIFIER[terrain]
            + (temperature - 0.5) * 0.2 + noise * 0.5 + event_hum,
            0.0, 1.0)
        return temperature, humidity

    def get_cell_temperature(self, elevation: int, terrain: TerrainType,
                             x: float = 0.0, y: float = 0.0) -> float:
        return float(self.cell_climate(elevation, int(terrain), x, y)[0])

    def get_cell_humidity(self, elevation: int, terrain: TerrainType,
                          x: float = 0.0, y: float = 0.0) -> float:
        return float(self.cell_climate(elevation, int(terrain), x, y)[1])
