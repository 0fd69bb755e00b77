"""
Resource model - regeneration, decay and quantization rules

All functions operate on whole chunk arrays:
    density:     (H, W, RESOURCE_TYPE_COUNT) float array
    terrain:     (H, W) uint8 array of TerrainType values
    temperature: (H, W) float array
    humidity:    (H, W) float array
"""

import numpy as np
from enum import IntEnum
from typing import Sequence


# =============================================================================
# ENUMS
# =============================================================================

class TerrainType(IntEnum):
    """Terrain types. Values index the per-terrain tables below."""
    OCEAN = 0
    PLAINS = 1
    FOREST = 2
    DESERT = 3
    TUNDRA = 4
    MOUNTAIN = 5
    SWAMP = 6
    VOLCANIC = 7


class ResourceType(IntEnum):
    """Resource channels. Values index the last axis of density arrays."""
    PLANT = 0
    MINERAL = 1
    SUNLIGHT = 2
    WATER = 3
    DETRITUS = 4
    PREY = 5


RESOURCE_TYPE_COUNT = len(ResourceType)
TERRAIN_TYPE_COUNT = len(TerrainType)

MAX_RESOURCE_DENSITY = 1.0
MAX_PRESSURE = 10.0
DEFAULT_QUANTIZE_THRESHOLD = 0.001


# =============================================================================
# TABLES
# =============================================================================

# Base regeneration per terrain, columns [Plant, Mineral, Sunlight, Water, Detritus, Prey]
REGENERATION_RATES = np.array([
    [0.0, 0.1, 0.3, 1.0, 0.2, 0.5],      # Ocean
    [0.3, 0.1, 0.8, 0.4, 0.2, 0.3],      # Plains
    [0.8, 0.05, 0.5, 0.6, 0.4, 0.2],     # Forest
    [0.05, 0.2, 1.0, 0.1, 0.05, 0.1],    # Desert
    [0.1, 0.1, 0.6, 0.3, 0.1, 0.1],      # Tundra
    [0.05, 0.5, 0.7, 0.2, 0.05, 0.05],   # Mountain
    [0.4, 0.05, 0.4, 1.0, 0.6, 0.3],     # Swamp
    [0.0, 0.8, 0.9, 0.1, 0.1, 0.0],      # Volcanic
], dtype=np.float64)

# Multiplicative decay per second; minerals never decay, sunlight fades fastest
DECAY_RATES = (0.01, 0.0, 0.1, 0.02, 0.05, 0.03)

# Humidity multiplier = offset + slope * humidity, per resource
_HUMIDITY_OFFSET = np.array([0.5, 1.0, 1.0, 0.0, 0.5, 0.3])
_HUMIDITY_SLOPE = np.array([0.5, 0.0, 0.0, 1.0, 0.5, 0.7])


# =============================================================================
# MULTIPLIERS
# =============================================================================

def temperature_regeneration_multiplier(temperature):
    """1.0 at temperature 0.5, falling linearly to 0 at deviation 0.5."""
    deviation = np.abs(np.asarray(temperature, dtype=np.float64) - 0.5)
    return 1.0 - np.minimum(deviation * 2.0, 1.0)


def humidity_regeneration_multiplier(humidity, resource_type: ResourceType):
    return _HUMIDITY_OFFSET[resource_type] + _HUMIDITY_SLOPE[resource_type] * np.asarray(humidity)


def humidity_multipliers(humidity: np.ndarray) -> np.ndarray:
    """Humidity multiplier for every resource at once, shape humidity.shape + (6,)."""
    return _HUMIDITY_OFFSET + _HUMIDITY_SLOPE * humidity[..., np.newaxis]


# =============================================================================
# UPDATES
# =============================================================================

def regenerate(density: np.ndarray, terrain: np.ndarray, temperature: np.ndarray,
               humidity: np.ndarray, dt: float,
               scale: Sequence[float] = (1.0,) * RESOURCE_TYPE_COUNT):
    """density += base_rate * temp_mult * humidity_mult * dt, capped at 1.0 (in place)."""
    if dt <= 0:
        return
    rates = REGENERATION_RATES[terrain] * np.asarray(scale, dtype=np.float64)
    temp_mult = temperature_regeneration_multiplier(temperature)[..., np.newaxis]
    growth = rates * temp_mult * humidity_multipliers(humidity) * dt
    np.minimum(density + growth, MAX_RESOURCE_DENSITY, out=density)


def decay(density: np.ndarray, dt: float, rates: Sequence[float] = DECAY_RATES):
    """density *= (1 - rate * dt), factor floored at 0 so large dt cannot flip signs."""
    if dt <= 0:
        return
    factor = np.clip(1.0 - np.asarray(rates, dtype=np.float64) * dt, 0.0, 1.0)
    density *= factor
    np.clip(density, 0.0, MAX_RESOURCE_DENSITY, out=density)


def quantize(density: np.ndarray, threshold: float = DEFAULT_QUANTIZE_THRESHOLD):
    density[density < threshold] = 0.0


def decay_pressure(pressure: np.ndarray, dt: float, rate: float):
    if dt <= 0:
        return
    pressure *= max(0.0, 1.0 - rate * dt)
    np.clip(pressure, 0.0, MAX_PRESSURE, out=pressure)
