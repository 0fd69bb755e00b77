"""
Simulation - Owns the whole ecosystem and drives it one tick at a time

The Simulation object is the single context every system works against:
tuning, random generator, world grid, spatial index, organism arena, species
tracker and statistics. Systems run in a fixed order each tick:

    world.update (climate -> regeneration/decay -> diffusion)
    rebuild_spatial_index -> update_metabolism -> update_behavior ->
    update_movement -> handle_eating -> update_age -> handle_reproduction ->
    handle_death -> update_speciation

USAGE:
    sim = Simulation(EcosystemTuning.stable(), seed=42)
    sim.run(1000)
    print(sim.stats.summary())
"""

import logging
from typing import Callable, List, Optional

import numpy as np

from .behavior import update_behavior
from .ecosystem_stats import (EcosystemStats, OrganismSnapshot, OrganismTracker,
                              snapshot_organisms, update_ecosystem_stats)
from .genetics import Genome
from .lifecycle import (handle_death, handle_eating, handle_reproduction,
                        rebuild_spatial_index, reproduction_cooldown_ticks,
                        update_age, update_metabolism, update_movement)
from .organism import Handle, Organism, OrganismArena, OrganismType
from .spatial_index import SpatialHashGrid
from .speciation import SpeciesTracker, update_speciation
from .terrain import initialize_chunk
from .tuning import EcosystemTuning
from .world import WorldGrid

logger = logging.getLogger(__name__)

DEFAULT_DT = 1.0 / 60.0
INITIAL_SPEED = 10.0


class Simulation:
    """Top-level ecosystem: builds the world, spawns life, steps every system."""

    def __init__(self, tuning: Optional[EcosystemTuning] = None,
                 seed: Optional[int] = None, initialize: bool = True):
        self.tuning = (tuning if tuning is not None else EcosystemTuning()).validated()
        self.seed = seed if seed is not None else self.tuning.seed
        self.rng = np.random.default_rng(self.seed)

        self.world = WorldGrid(self.tuning)
        self.spatial_index = SpatialHashGrid(self.tuning.spatial_cell_size)
        self.organisms = OrganismArena()
        self.species_tracker = SpeciesTracker(self.tuning.speciation_threshold,
                                              self.tuning.centroid_interval,
                                              self.tuning.reassign_interval)
        self.tracker = OrganismTracker(self.tuning.tracked_log_interval)
        self.stats: Optional[EcosystemStats] = None

        self.tick = 0
        self.elapsed = 0.0
        self.total_births = 0
        self.total_deaths = 0

        if initialize:
            self.initialize_world()
            self.spawn_initial_organisms()

    # =========================================================================
    # SETUP
    # =========================================================================

    def initialize_world(self):
        """Generate chunks in [-r, r]^2 and seed them with resources."""
        r = self.tuning.initial_chunk_radius
        for cy in range(-r, r + 1):
            for cx in range(-r, r + 1):
                initialize_chunk(self.world.get_or_create_chunk(cx, cy))
        for chunk in self.world:
            chunk.update_climate(self.world.climate)
        logger.info("World initialized with %d chunks", self.world.chunk_count())

    def spawn_bounds(self):
        """(low, high) of the initialised area, clipped to the world bound."""
        r = self.tuning.initial_chunk_radius
        size = self.world.chunk_size
        bound = self.tuning.world_bound
        return max(-r * size, -bound), min((r + 1) * size, bound)

    def spawn_organism(self, genome: Genome, organism_type: OrganismType,
                       x: float, y: float, energy: Optional[float] = None,
                       species_id: int = 0) -> Handle:
        organism = Organism.from_genome(genome, organism_type, x, y, energy=energy,
                                        species_id=species_id)
        organism.reproduction_cooldown = reproduction_cooldown_ticks(
            organism.traits.reproduction_cooldown, self.tuning)
        return self.organisms.spawn(organism)

    def spawn_initial_organisms(self, count: Optional[int] = None) -> List[Handle]:
        count = self.tuning.initial_spawn_count if count is None else count
        low, high = self.spawn_bounds()
        types = list(OrganismType)

        handles = []
        for _ in range(count):
            genome = Genome.random(self.rng)
            organism_type = types[int(self.rng.integers(len(types)))]
            x, y = self.rng.uniform(low, high, size=2)
            handle = self.spawn_organism(genome, organism_type, float(x), float(y))
            organism = self.organisms.get(handle)
            organism.vx, organism.vy = (float(v) for v in
                                        self.rng.uniform(-INITIAL_SPEED, INITIAL_SPEED, size=2))
            handles.append(handle)

        if handles and self.tracker.tracked is None:
            self.tracker.track(handles[0])
        logger.info("Spawned %d initial organisms", len(handles))
        return handles

    # =========================================================================
    # TICK
    # =========================================================================

    def step(self, dt: float = DEFAULT_DT):
        tuning = self.tuning

        self.world.update(dt, self.rng)

        rebuild_spatial_index(self.organisms, self.spatial_index)
        update_metabolism(self.organisms, dt, tuning)
        update_behavior(self.organisms, self.world, self.spatial_index, dt, self.elapsed)
        update_movement(self.organisms, dt, self.elapsed, tuning)
        handle_eating(self.organisms, self.world, dt, tuning)
        update_age(self.organisms)
        born = handle_reproduction(self.organisms, self.spatial_index, tuning, self.rng)
        died = handle_death(self.organisms, self.spatial_index)
        update_speciation(self.organisms, self.species_tracker)

        self.total_births += len(born)
        self.total_deaths += len(died)
        self.tick += 1
        self.elapsed += dt

        self.stats = update_ecosystem_stats(self.organisms, self.stats, self.tick,
                                            tuning.stats_interval, tuning.stats_log_interval)
        self.tracker.update(self.organisms, self.tick)

    def run(self, ticks: int, dt: float = DEFAULT_DT,
            callback: Optional[Callable[['Simulation'], None]] = None):
        for _ in range(ticks):
            self.step(dt)
            if callback is not None:
                callback(self)

    # =========================================================================
    # READ-ONLY VIEWS
    # =========================================================================

    @property
    def population(self) -> int:
        return len(self.organisms)

    def snapshot(self) -> List[OrganismSnapshot]:
        return snapshot_organisms(self.organisms)

    def get_stats(self) -> dict:
        return {
            'tick': self.tick,
            'elapsed': self.elapsed,
            'population': self.population,
            'species': self.species_tracker.species_count(),
            'births': self.total_births,
            'deaths': self.total_deaths,
            'chunks': self.world.chunk_count(),
            'season': self.world.climate.season,
            'temperature': self.world.climate.base_temperature,
            'humidity': self.world.climate.base_humidity,
            'climate_events': len(self.world.climate.events),
        }
