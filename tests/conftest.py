"""Shared fixtures for the ecosystem tests."""

import numpy as np
import pytest

from ecosim.genetics import Genome
from ecosim.organism import Organism, OrganismArena, OrganismType
from ecosim.spatial_index import SpatialHashGrid
from ecosim.tuning import EcosystemTuning
from ecosim.world import WorldGrid


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def neutral_genome() -> Genome:
    """All genes 0.5: every trait sits at its midpoint."""
    return Genome.uniform(0.5)


@pytest.fixture
def arena() -> OrganismArena:
    return OrganismArena()


@pytest.fixture
def index() -> SpatialHashGrid:
    return SpatialHashGrid(8.0)


@pytest.fixture
def empty_world() -> WorldGrid:
    return WorldGrid(EcosystemTuning())


@pytest.fixture
def small_tuning() -> EcosystemTuning:
    """Small population so multi-tick runs stay fast."""
    return EcosystemTuning(initial_spawn_count=30, initial_chunk_radius=0, seed=7)


def make_organism(arena: OrganismArena, organism_type: OrganismType = OrganismType.PRODUCER,
                  x: float = 0.0, y: float = 0.0, energy=None, species_id: int = 0,
                  genome: Genome = None, cooldown: int = 0) -> Organism:
    """Spawn a hand-built organism into `arena` and return it."""
    genome = genome if genome is not None else Genome.uniform(0.5)
    organism = Organism.from_genome(genome, organism_type, x, y, energy=energy,
                                    species_id=species_id, cooldown=cooldown)
    arena.spawn(organism)
    return organism
