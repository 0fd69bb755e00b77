"""
Speciation Tracker

Clusters the population into species by genetic distance to per-species
centroid genomes. Centroids are refreshed every `centroid_interval` ticks;
every `reassign_interval` ticks each organism moves to the nearest centroid
within the threshold, founding a new species when none is close enough.
Species left without members are pruned after reassignment.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .genetics import Genome, distance, mean_genome

logger = logging.getLogger(__name__)

DEFAULT_SPECIATION_THRESHOLD = 0.15


class SpeciesTracker:
    def __init__(self, threshold: float = DEFAULT_SPECIATION_THRESHOLD,
                 centroid_interval: int = 100, reassign_interval: int = 500):
        self.species_centroids: Dict[int, Genome] = {}
        self.next_species_id = 0
        self.update_counter = 0
        self.threshold = threshold
        self.centroid_interval = centroid_interval
        self.reassign_interval = reassign_interval

    def configure(self, tuning):
        self.threshold = tuning.speciation_threshold
        self.centroid_interval = tuning.centroid_interval
        self.reassign_interval = tuning.reassign_interval

    def species_count(self) -> int:
        return len(self.species_centroids)

    def all_species(self) -> List[int]:
        return list(self.species_centroids.keys())

    def centroid(self, species_id: int) -> Optional[Genome]:
        return self.species_centroids.get(species_id)

    def new_species(self, genome: Genome) -> int:
        species_id = self.next_species_id
        self.next_species_id += 1
        self.species_centroids[species_id] = genome
        return species_id

    def nearest_species(self, genome: Genome) -> Optional[Tuple[int, float]]:
        best = None
        for species_id, centroid in self.species_centroids.items():
            d = distance(genome, centroid)
            if best is None or d < best[1]:
                best = (species_id, d)
        return best

    def find_or_create_species(self, genome: Genome) -> int:
        """Nearest centroid strictly within the threshold, else a new species."""
        nearest = self.nearest_species(genome)
        if nearest is not None and nearest[1] < self.threshold:
            return nearest[0]
        return self.new_species(genome)

    def update_centroids(self, members: Iterable[Tuple[int, Genome]]):
        """Replace each represented species' centroid with its members' mean genome."""
        grouped: Dict[int, List[Genome]] = defaultdict(list)
        for species_id, genome in members:
            grouped[species_id].append(genome)
        for species_id, genomes in grouped.items():
            self.species_centroids[species_id] = mean_genome(genomes)
            if species_id >= self.next_species_id:
                self.next_species_id = species_id + 1

    def cleanup_extinct(self, active_species: Set[int]) -> int:
        extinct = [sid for sid in self.species_centroids if sid not in active_species]
        for sid in extinct:
            del self.species_centroids[sid]
        return len(extinct)

    def reassign(self, organisms) -> int:
        """Move every living organism to its nearest species. Returns the number moved."""
        changed = 0
        for organism in organisms:
            if organism.is_dead():
                continue
            species_id = self.find_or_create_species(organism.genome)
            if species_id != organism.species_id:
                organism.species_id = species_id
                changed += 1
        self.cleanup_extinct({o.species_id for o in organisms if not o.is_dead()})
        return changed


def update_speciation(organisms, tracker: SpeciesTracker):
    tracker.update_counter += 1

    if tracker.update_counter % tracker.centroid_interval == 0:
        previous = tracker.species_count()
        tracker.update_centroids((o.species_id, o.genome) for o in organisms if not o.is_dead())
        if tracker.species_count() != previous:
            logger.info("Species count changed: %d -> %d", previous, tracker.species_count())

    if tracker.update_counter % tracker.reassign_interval == 0:
        changed = tracker.reassign(organisms)
        if changed:
            logger.info("Reassigned %d organisms | Total species: %d",
                        changed, tracker.species_count())
