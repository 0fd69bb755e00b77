"""
World Grid - Sparse chunked 2D environment

The world is an unbounded plane of unit cells, stored sparsely as 64x64
chunks created on demand. Each cell holds:
- Climate (temperature, humidity in [0, 1])
- Elevation (0-65535) and terrain type
- Six resource densities in [0, 1] (plant, mineral, sunlight, water, detritus, prey)
- Consumption pressure accumulators (decay toward 0, capped at 10)
- Adaptation modifiers (carried as state, not yet fed back)

Per tick the grid runs climate -> regeneration/decay/quantization -> diffusion.
Diffusion works on a snapshot of pre-tick densities, so the result does not
depend on cell visiting order. Diffusion only sees neighbours inside the same
chunk; chunk seams diffuse asymmetrically.
"""

import logging
import math
import numpy as np
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from . import resources
from .climate import ClimateState
from .resources import (
    MAX_PRESSURE,
    MAX_RESOURCE_DENSITY,
    RESOURCE_TYPE_COUNT,
    ResourceType,
    TerrainType,
)

logger = logging.getLogger(__name__)


CHUNK_SIZE = 64

ChunkCoord = Tuple[int, int]


# =============================================================================
# CELLS
# =============================================================================

@dataclass(frozen=True)
class Cell:
    """Detached read-only copy of one cell's state."""
    temperature: float = 0.5
    humidity: float = 0.5
    elevation: int = 0
    terrain: TerrainType = TerrainType.PLAINS
    resource_density: Tuple[float, ...] = (0.0,) * RESOURCE_TYPE_COUNT
    resource_pressure: Tuple[float, ...] = (0.0,) * RESOURCE_TYPE_COUNT
    resource_adaptation: Tuple[float, ...] = (0.0,) * RESOURCE_TYPE_COUNT

    def get_resource(self, resource_type: ResourceType) -> float:
        return self.resource_density[resource_type]

    def has_resources(self) -> bool:
        return any(v > 0.0 for v in self.resource_density)


class CellView:
    """
    Write-through handle to one cell inside a chunk.

    Setters clamp densities to [0, 1] and pressure to [0, 10]; nothing
    written through a view can leave the valid range.
    """

    __slots__ = ('chunk', 'lx', 'ly')

    def __init__(self, chunk: 'Chunk', lx: int, ly: int):
        self.chunk = chunk
        self.lx = lx
        self.ly = ly

    @property
    def temperature(self) -> float:
        return float(self.chunk.temperature[self.ly, self.lx])

    @temperature.setter
    def temperature(self, value: float):
        self.chunk.temperature[self.ly, self.lx] = min(max(value, 0.0), 1.0)

    @property
    def humidity(self) -> float:
        return float(self.chunk.humidity[self.ly, self.lx])

    @humidity.setter
    def humidity(self, value: float):
        self.chunk.humidity[self.ly, self.lx] = min(max(value, 0.0), 1.0)

    @property
    def elevation(self) -> int:
        return int(self.chunk.elevation[self.ly, self.lx])

    @elevation.setter
    def elevation(self, value: int):
        self.chunk.elevation[self.ly, self.lx] = min(max(int(value), 0), 65535)

    @property
    def terrain(self) -> TerrainType:
        return TerrainType(int(self.chunk.terrain[self.ly, self.lx]))

    @terrain.setter
    def terrain(self, value: TerrainType):
        self.chunk.terrain[self.ly, self.lx] = int(value)

    def _read_only(self, array: np.ndarray) -> np.ndarray:
        view = array[self.ly, self.lx]
        view.flags.writeable = False
        return view

    # Per-resource vectors are read-only; write through the clamped setters
    @property
    def resource_density(self) -> np.ndarray:
        return self._read_only(self.chunk.density)

    @property
    def resource_pressure(self) -> np.ndarray:
        return self._read_only(self.chunk.pressure)

    @property
    def resource_adaptation(self) -> np.ndarray:
        return self._read_only(self.chunk.adaptation)

    def get_resource(self, resource_type: ResourceType) -> float:
        return float(self.chunk.density[self.ly, self.lx, resource_type])

    def set_resource(self, resource_type: ResourceType, value: float):
        self.chunk.density[self.ly, self.lx, resource_type] = min(max(value, 0.0), MAX_RESOURCE_DENSITY)

    def add_resource(self, resource_type: ResourceType, amount: float):
        self.set_resource(resource_type, self.get_resource(resource_type) + amount)

    def take_resource(self, resource_type: ResourceType, amount: float) -> float:
        """Remove up to `amount`, returning what was actually removed."""
        available = self.get_resource(resource_type)
        taken = min(available, max(amount, 0.0))
        self.set_resource(resource_type, available - taken)
        return taken

    def get_pressure(self, resource_type: ResourceType) -> float:
        return float(self.chunk.pressure[self.ly, self.lx, resource_type])

    def add_pressure(self, resource_type: ResourceType, amount: float):
        current = self.chunk.pressure[self.ly, self.lx, resource_type]
        self.chunk.pressure[self.ly, self.lx, resource_type] = min(max(current + amount, 0.0), MAX_PRESSURE)

    def snapshot(self) -> Cell:
        return self.chunk.get_cell(self.lx, self.ly)


# =============================================================================
# CHUNK
# =============================================================================

class Chunk:
    """Fixed-size dense tile of cells. Arrays are indexed [local_y, local_x]."""

    def __init__(self, chunk_x: int, chunk_y: int, size: int = CHUNK_SIZE):
        self.chunk_x = chunk_x
        self.chunk_y = chunk_y
        self.size = size
        self.temperature = np.full((size, size), 0.5)
        self.humidity = np.full((size, size), 0.5)
        self.elevation = np.zeros((size, size), dtype=np.uint16)
        self.terrain = np.full((size, size), int(TerrainType.PLAINS), dtype=np.uint8)
        self.density = np.zeros((size, size, RESOURCE_TYPE_COUNT))
        self.pressure = np.zeros((size, size, RESOURCE_TYPE_COUNT))
        self.adaptation = np.zeros((size, size, RESOURCE_TYPE_COUNT))
        self.dirty = False
        self.dirty_cells: Set[Tuple[int, int]] = set()

    def in_bounds(self, lx: int, ly: int) -> bool:
        return 0 <= lx < self.size and 0 <= ly < self.size

    def get_cell(self, lx: int, ly: int) -> Optional[Cell]:
        if not self.in_bounds(lx, ly):
            return None
        return Cell(
            temperature=float(self.temperature[ly, lx]),
            humidity=float(self.humidity[ly, lx]),
            elevation=int(self.elevation[ly, lx]),
            terrain=TerrainType(int(self.terrain[ly, lx])),
            resource_density=tuple(float(v) for v in self.density[ly, lx]),
            resource_pressure=tuple(float(v) for v in self.pressure[ly, lx]),
            resource_adaptation=tuple(float(v) for v in self.adaptation[ly, lx]),
        )

    def get_cell_mut(self, lx: int, ly: int) -> Optional[CellView]:
        if not self.in_bounds(lx, ly):
            return None
        self.dirty = True
        self.dirty_cells.add((lx, ly))
        return CellView(self, lx, ly)

    def mark_all_dirty(self):
        self.dirty = True

    def mark_clean(self):
        self.dirty = False
        self.dirty_cells.clear()

    def world_origin(self) -> Tuple[int, int]:
        return self.chunk_x * self.size, self.chunk_y * self.size

    def world_coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        """World x/y of every cell, each shaped (size, size)."""
        ox, oy = self.world_origin()
        ly, lx = np.mgrid[0:self.size, 0:self.size]
        return (ox + lx).astype(np.float64), (oy + ly).astype(np.float64)

    # -------------------------------------------------------------------------
    # Bulk passes
    # -------------------------------------------------------------------------

    def update_climate(self, climate: ClimateState):
        wx, wy = self.world_coordinates()
        temperature, humidity = climate.cell_climate(self.elevation, self.terrain, wx, wy)
        self.temperature[:] = temperature
        self.humidity[:] = humidity
        self.dirty = True

    def regenerate_and_decay(self, dt: float, regeneration_scale, decay_rates,
                             quantize_threshold: float, pressure_decay_rate: float):
        resources.regenerate(self.density, self.terrain, self.temperature, self.humidity,
                             dt, regeneration_scale)
        resources.decay(self.density, dt, decay_rates)
        resources.quantize(self.density, quantize_threshold)
        resources.decay_pressure(self.pressure, dt, pressure_decay_rate)
        self.dirty = True

    def diffuse(self, rate: float, dt: float):
        """
        Nudge every cell toward the mean of its in-chunk 8-neighbourhood.

        Reads only the pre-diffusion snapshot; edge cells average over the
        neighbours that exist (3 at corners, 5 along edges).
        """
        step = min(max(rate * dt, 0.0), 1.0)
        if step == 0.0:
            return
        snapshot = self.density.copy()
        padded = np.pad(snapshot, ((1, 1), (1, 1), (0, 0)))
        size = self.size

        neighbour_sum = np.zeros_like(snapshot)
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                neighbour_sum += padded[1 + dy:1 + dy + size, 1 + dx:1 + dx + size]

        counts = _neighbour_counts(size)[..., np.newaxis]
        average = neighbour_sum / counts
        self.density[:] = np.clip(snapshot + (average - snapshot) * step, 0.0, MAX_RESOURCE_DENSITY)
        self.dirty = True


_NEIGHBOUR_COUNT_CACHE: Dict[int, np.ndarray] = {}


def _neighbour_counts(size: int) -> np.ndarray:
    counts = _NEIGHBOUR_COUNT_CACHE.get(size)
    if counts is None:
        ones = np.pad(np.ones((size, size)), 1)
        counts = np.zeros((size, size))
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                counts += ones[1 + dy:1 + dy + size, 1 + dx:1 + dx + size]
        _NEIGHBOUR_COUNT_CACHE[size] = counts
    return counts


# =============================================================================
# WORLD GRID
# =============================================================================

class WorldGrid:
    """Sparse map of chunk coordinate -> Chunk plus the global climate."""

    def __init__(self, tuning=None, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size
        self.chunks: Dict[ChunkCoord, Chunk] = {}
        self.climate = ClimateState()

        self.diffusion_rate = 0.1
        self.decay_rates = resources.DECAY_RATES
        self.regeneration_scale = (1.0,) * RESOURCE_TYPE_COUNT
        self.quantize_threshold = resources.DEFAULT_QUANTIZE_THRESHOLD
        self.pressure_decay_rate = 0.05
        if tuning is not None:
            self.configure(tuning)

    def configure(self, tuning):
        self.diffusion_rate = tuning.diffusion_rate
        self.decay_rates = tuple(tuning.decay_rates)
        self.regeneration_scale = tuple(tuning.regeneration_scale)
        self.quantize_threshold = tuning.quantize_threshold
        self.pressure_decay_rate = tuning.pressure_decay_rate
        self.climate.min_event_cooldown = tuning.climate_event_min_cooldown
        self.climate.max_event_cooldown = tuning.climate_event_max_cooldown
        self.climate.event_cooldown = tuning.climate_event_min_cooldown
        self.climate.max_events = tuning.max_climate_events
        self.climate.event_bound = tuning.world_bound

    # -------------------------------------------------------------------------
    # Coordinates
    # -------------------------------------------------------------------------

    def world_to_chunk(self, x: float, y: float) -> ChunkCoord:
        """Floor division, so negative coordinates land in negative chunks."""
        return (math.floor(x / self.chunk_size), math.floor(y / self.chunk_size))

    def world_to_local(self, x: float, y: float) -> Tuple[int, int]:
        """Euclidean remainder, always in [0, chunk_size)."""
        return (math.floor(x) % self.chunk_size, math.floor(y) % self.chunk_size)

    # -------------------------------------------------------------------------
    # Chunks
    # -------------------------------------------------------------------------

    def get_chunk(self, chunk_x: int, chunk_y: int) -> Optional[Chunk]:
        return self.chunks.get((chunk_x, chunk_y))

    def get_or_create_chunk(self, chunk_x: int, chunk_y: int) -> Chunk:
        chunk = self.chunks.get((chunk_x, chunk_y))
        if chunk is None:
            chunk = Chunk(chunk_x, chunk_y, self.chunk_size)
            self.chunks[(chunk_x, chunk_y)] = chunk
        return chunk

    def chunk_count(self) -> int:
        return len(self.chunks)

    def chunk_coords(self) -> List[ChunkCoord]:
        return list(self.chunks.keys())

    def __iter__(self) -> Iterator[Chunk]:
        return iter(list(self.chunks.values()))

    def mark_all_clean(self):
        for chunk in self.chunks.values():
            chunk.mark_clean()

    # -------------------------------------------------------------------------
    # Cells
    # -------------------------------------------------------------------------

    def get_cell(self, x: float, y: float) -> Optional[Cell]:
        """Copy of the cell at a world position, or None if its chunk does not exist."""
        chunk = self.get_chunk(*self.world_to_chunk(x, y))
        if chunk is None:
            return None
        return chunk.get_cell(*self.world_to_local(x, y))

    def get_cell_mut(self, x: float, y: float) -> Optional[CellView]:
        """Writable view of the cell at a world position, creating its chunk if needed."""
        chunk = self.get_or_create_chunk(*self.world_to_chunk(x, y))
        return chunk.get_cell_mut(*self.world_to_local(x, y))

    def get_resource(self, x: float, y: float, resource_type: ResourceType) -> float:
        chunk = self.get_chunk(*self.world_to_chunk(x, y))
        if chunk is None:
            return 0.0
        lx, ly = self.world_to_local(x, y)
        return float(chunk.density[ly, lx, resource_type])

    def set_resource(self, x: float, y: float, resource_type: ResourceType, value: float):
        self.get_cell_mut(x, y).set_resource(resource_type, value)

    def add_resource(self, x: float, y: float, resource_type: ResourceType, amount: float):
        self.get_cell_mut(x, y).add_resource(resource_type, amount)

    def add_pressure(self, x: float, y: float, resource_type: ResourceType, amount: float):
        self.get_cell_mut(x, y).add_pressure(resource_type, amount)

    def read_region(self, min_x: int, min_y: int, width: int,
                    height: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Copy resource densities for an integer-aligned world rectangle.

        Returns:
            density: (height, width, 6) array, zeros where no chunk exists
            present: (height, width) bool array, False where no chunk exists
        """
        density = np.zeros((height, width, RESOURCE_TYPE_COUNT))
        present = np.zeros((height, width), dtype=bool)
        size = self.chunk_size
        max_x = min_x + width - 1
        max_y = min_y + height - 1

        for cy in range(math.floor(min_y / size), math.floor(max_y / size) + 1):
            for cx in range(math.floor(min_x / size), math.floor(max_x / size) + 1):
                chunk = self.chunks.get((cx, cy))
                if chunk is None:
                    continue
                ox, oy = cx * size, cy * size
                x0 = max(min_x, ox)
                x1 = min(max_x, ox + size - 1)
                y0 = max(min_y, oy)
                y1 = min(max_y, oy + size - 1)
                density[y0 - min_y:y1 - min_y + 1, x0 - min_x:x1 - min_x + 1] = \
                    chunk.density[y0 - oy:y1 - oy + 1, x0 - ox:x1 - ox + 1]
                present[y0 - min_y:y1 - min_y + 1, x0 - min_x:x1 - min_x + 1] = True
        return density, present

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def update_climate(self, dt: float, rng: Optional[np.random.Generator] = None):
        self.climate.update(dt, rng)
        for chunk in self.chunks.values():
            chunk.update_climate(self.climate)

    def regenerate_and_decay(self, dt: float):
        for chunk in self.chunks.values():
            chunk.regenerate_and_decay(dt, self.regeneration_scale, self.decay_rates,
                                       self.quantize_threshold, self.pressure_decay_rate)

    def diffuse(self, dt: float, rate: Optional[float] = None):
        rate = self.diffusion_rate if rate is None else rate
        for chunk in self.chunks.values():
            chunk.diffuse(rate, dt)

    def update(self, dt: float, rng: Optional[np.random.Generator] = None):
        self.update_climate(dt, rng)
        self.regenerate_and_decay(dt)
        self.diffuse(dt)

    def total_resources(self) -> np.ndarray:
        total = np.zeros(RESOURCE_TYPE_COUNT)
        for chunk in self.chunks.values():
            total += chunk.density.sum(axis=(0, 1))
        return total
