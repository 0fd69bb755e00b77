"""
Simple deterministic terrain generation.

Elevation grows with distance from the chunk centre plus per-cell noise and
terrain is picked from elevation bands. The seed is derived from the chunk
coordinate so the same chunk always generates the same terrain.
"""

import numpy as np

from .resources import REGENERATION_RATES, TerrainType


def chunk_seed(chunk_x: int, chunk_y: int) -> int:
    return ((chunk_x * 31) ^ chunk_y) & 0xFFFFFFFF


def generate_chunk_terrain(chunk):
    size = chunk.size
    rng = np.random.default_rng(chunk_seed(chunk.chunk_x, chunk.chunk_y))

    centre = size / 2.0
    ly, lx = np.mgrid[0:size, 0:size]
    dist = np.hypot(lx - centre, ly - centre) / centre

    elevation = dist * 10000.0 + rng.integers(0, 5000, size=(size, size))
    chunk.elevation[:] = np.clip(elevation, 0, 65535).astype(np.uint16)

    norm = chunk.elevation / 65535.0
    roll = rng.random((size, size))
    mid_pick = rng.integers(0, 4, size=(size, size))
    mid_choices = np.array([TerrainType.PLAINS, TerrainType.FOREST,
                            TerrainType.DESERT, TerrainType.TUNDRA], dtype=np.uint8)

    terrain = np.where(
        norm < 0.2,
        np.where(roll < 0.7, TerrainType.OCEAN, TerrainType.SWAMP),
        np.where(
            norm < 0.3,
            np.where(roll < 0.6, TerrainType.PLAINS, TerrainType.FOREST),
            np.where(
                norm < 0.5,
                mid_choices[mid_pick],
                np.where(
                    norm < 0.8,
                    np.where(roll < 0.7, TerrainType.TUNDRA, TerrainType.MOUNTAIN),
                    np.where(roll < 0.9, TerrainType.MOUNTAIN, TerrainType.VOLCANIC),
                ),
            ),
        ),
    )
    chunk.terrain[:] = terrain.astype(np.uint8)
    chunk.mark_all_dirty()


def seed_resources(chunk, fraction: float = 0.5):
    """Start each cell at a fraction of its terrain's base regeneration rate."""
    chunk.density[:] = np.clip(REGENERATION_RATES[chunk.terrain] * fraction, 0.0, 1.0)
    chunk.mark_all_dirty()


def initialize_chunk(chunk, resource_fraction: float = 0.5):
    generate_chunk_terrain(chunk)
    seed_resources(chunk, resource_fraction)
