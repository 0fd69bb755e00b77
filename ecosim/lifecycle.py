"""
Lifecycle Systems - Metabolism, movement, feeding, aging, reproduction, death

Per-tick entry points, called by the simulation driver in this order:

    rebuild_spatial_index -> update_metabolism -> update_behavior ->
    update_movement -> handle_eating -> update_age ->
    handle_reproduction -> handle_death -> update_speciation

Every pass keeps energy inside [0, max_energy]. Reproduction chooses all
parents and offspring genomes first and only then spawns and debits energy,
so a birth early in the pass never changes who else may reproduce.
"""

import logging
import math
import numpy as np
from typing import List, Optional, Tuple

from .behavior_state import BehaviorState
from .behavior import calculate_behavior_velocity
from .genetics import Genome, crossover, mutate
from .organism import Handle, Organism, OrganismArena, OrganismType
from .resources import ResourceType
from .spatial_index import SpatialHashGrid
from .tuning import EcosystemTuning
from .world import WorldGrid

logger = logging.getLogger(__name__)


VELOCITY_SMOOTHING = 0.3
IDLE_DAMPING = 0.98

# (resource, share of the base consumption rate) eaten per organism type
FEEDING = {
    OrganismType.PRODUCER: ((ResourceType.SUNLIGHT, 1.0), (ResourceType.WATER, 0.5),
                            (ResourceType.MINERAL, 0.2)),
    OrganismType.CONSUMER: ((ResourceType.PLANT, 1.0), (ResourceType.PREY, 1.0)),
    OrganismType.DECOMPOSER: ((ResourceType.DETRITUS, 1.0),),
}


def rebuild_spatial_index(organisms: OrganismArena, spatial_index: SpatialHashGrid):
    spatial_index.rebuild((o.id, o.x, o.y) for o in organisms)


# =============================================================================
# METABOLISM
# =============================================================================

def update_metabolism(organisms: OrganismArena, dt: float,
                      tuning: Optional[EcosystemTuning] = None):
    """Drain (base_rate * size + |velocity| * movement_cost) * dt, floored at 0."""
    tuning = tuning or EcosystemTuning()
    for organism in organisms:
        traits = organism.traits
        base_cost = traits.metabolism_rate * organism.size * tuning.base_metabolism_multiplier
        movement_cost = organism.speed * traits.movement_cost * tuning.movement_cost_multiplier
        organism.set_energy(organism.energy - (base_cost + movement_cost) * dt)


# =============================================================================
# MOVEMENT
# =============================================================================

def update_movement(organisms: OrganismArena, dt: float, elapsed: float,
                    tuning: Optional[EcosystemTuning] = None):
    world_bound = (tuning or EcosystemTuning()).world_bound
    for organism in organisms:
        if organism.is_dead():
            organism.vx = organism.vy = 0.0
            continue

        desired_x, desired_y = calculate_behavior_velocity(organism, elapsed)
        organism.vx += (desired_x - organism.vx) * VELOCITY_SMOOTHING
        organism.vy += (desired_y - organism.vy) * VELOCITY_SMOOTHING

        if organism.behavior.state in (BehaviorState.WANDERING, BehaviorState.RESTING):
            organism.vx *= IDLE_DAMPING
            organism.vy *= IDLE_DAMPING

        organism.x = min(max(organism.x + organism.vx * dt, -world_bound), world_bound)
        organism.y = min(max(organism.y + organism.vy * dt, -world_bound), world_bound)


# =============================================================================
# FEEDING
# =============================================================================

def handle_eating(organisms: OrganismArena, world: WorldGrid, dt: float,
                  tuning: Optional[EcosystemTuning] = None):
    """Eaters take from their own cell; eaten mass is also logged as cell pressure."""
    tuning = tuning or EcosystemTuning()
    rate = tuning.consumption_rate_base * dt
    if rate <= 0:
        return
    for organism in organisms:
        if organism.behavior.state != BehaviorState.EATING or organism.is_dead():
            continue
        cell = world.get_cell_mut(organism.x, organism.y)
        if cell is None:
            continue

        mass = 0.0
        for resource, share in FEEDING[organism.organism_type]:
            taken = cell.take_resource(resource, rate * share)
            if taken <= 0.0:
                continue
            cell.add_pressure(resource, taken)
            if resource == ResourceType.PREY:
                taken *= tuning.prey_nutrition_multiplier
            mass += taken

        gain = mass * tuning.energy_conversion_efficiency
        if organism.organism_type == OrganismType.DECOMPOSER:
            gain *= tuning.decomposer_efficiency_multiplier
        organism.set_energy(organism.energy + gain)


# =============================================================================
# AGING
# =============================================================================

def update_age(organisms: OrganismArena):
    for organism in organisms:
        organism.age += 1
        if organism.reproduction_cooldown > 0:
            organism.reproduction_cooldown -= 1


# =============================================================================
# REPRODUCTION
# =============================================================================

def clutch_size(trait_value: float, tuning: Optional[EcosystemTuning] = None) -> int:
    tuning = tuning or EcosystemTuning()
    return int(min(max(math.floor(trait_value + 0.5), tuning.min_clutch), tuning.max_clutch))


def reproduction_cooldown_ticks(trait_value: float,
                                tuning: Optional[EcosystemTuning] = None) -> int:
    tuning = tuning or EcosystemTuning()
    return int(min(max(trait_value, tuning.min_reproduction_cooldown),
                   tuning.max_reproduction_cooldown))


def can_reproduce(organism: Organism) -> bool:
    return (not organism.is_dead()
            and organism.reproduction_cooldown == 0
            and organism.energy_ratio() >= organism.traits.reproduction_threshold)


def find_mate(parent: Organism, organisms: OrganismArena,
              spatial_index: SpatialHashGrid) -> Optional[Organism]:
    """Nearest living same-species organism within the parent's sensory range."""
    def compatible(key: Handle) -> bool:
        other = organisms.get(key)
        return (other is not None and not other.is_dead()
                and other.species_id == parent.species_id)

    found = spatial_index.nearest(parent.x, parent.y, parent.traits.sensory_range,
                                  exclude=parent.id, accept=compatible)
    return organisms.get(found[0]) if found is not None else None


def offspring_energy(parent_energy: float, share: float, clutch: int) -> float:
    """Energy debited from the parent per child."""
    return min(share * parent_energy, parent_energy / clutch)


def handle_reproduction(organisms: OrganismArena, spatial_index: SpatialHashGrid,
                        tuning: Optional[EcosystemTuning] = None,
                        rng: Optional[np.random.Generator] = None) -> List[Organism]:
    """Select parents and build offspring genomes, then spawn. Returns the new organisms."""
    tuning = tuning or EcosystemTuning()
    rng = rng if rng is not None else np.random.default_rng()

    births: List[Tuple[Organism, List[Genome], Optional[Handle]]] = []
    for parent in organisms:
        if not can_reproduce(parent):
            continue
        if rng.random() >= tuning.reproduction_chance:
            continue

        clutch = clutch_size(parent.traits.clutch_size, tuning)
        mate = None
        if rng.random() < tuning.sexual_reproduction_chance:
            mate = find_mate(parent, organisms, spatial_index)

        if mate is not None:
            rate = (parent.traits.mutation_rate + mate.traits.mutation_rate) / 2.0
            genomes = [crossover(parent.genome, mate.genome, rate, rng) for _ in range(clutch)]
        else:
            genomes = [mutate(parent.genome, parent.traits.mutation_rate, rng)
                       for _ in range(clutch)]
        births.append((parent, genomes, mate.id if mate is not None else None))

    newborn: List[Organism] = []
    offset = tuning.offspring_spawn_offset
    bound = tuning.world_bound
    for parent, genomes, mate_id in births:
        available = parent.energy
        per_child = offspring_energy(available, parent.traits.offspring_energy_share, len(genomes))

        for genome in genomes:
            x = min(max(parent.x + rng.uniform(-offset, offset), -bound), bound)
            y = min(max(parent.y + rng.uniform(-offset, offset), -bound), bound)
            child = Organism.from_genome(genome, parent.organism_type, x, y,
                                         energy=0.0, species_id=parent.species_id)
            child.reproduction_cooldown = reproduction_cooldown_ticks(
                child.traits.reproduction_cooldown, tuning)
            child.set_energy(max(per_child * tuning.offspring_energy_fraction,
                                 child.max_energy * tuning.offspring_min_energy_ratio))
            organisms.spawn(child)
            newborn.append(child)

        parent.set_energy(available - per_child * len(genomes))
        parent.reproduction_cooldown = reproduction_cooldown_ticks(
            parent.traits.reproduction_cooldown, tuning)
        logger.debug("Organism %s reproduced %s: %d offspring",
                     parent.id, "sexually" if mate_id is not None else "asexually",
                     len(genomes))

    return newborn


# =============================================================================
# DEATH
# =============================================================================

def handle_death(organisms: OrganismArena,
                 spatial_index: Optional[SpatialHashGrid] = None) -> List[Handle]:
    """Remove every organism with no energy left. Returns the removed handles."""
    removed = []
    for organism in organisms:
        if not organism.is_dead():
            continue
        handle = organism.id
        organisms.remove(handle)
        if spatial_index is not None:
            spatial_index.remove(handle)
        removed.append(handle)
        logger.debug("Organism %s died at age %d", handle, organism.age)
    return removed
