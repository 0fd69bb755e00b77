"""
Behavior Engine - Senses, decides and steers every organism

Each tick, per organism:
1. Sense: neighbours from the spatial index (predator / prey / mate flags)
   and resource readings from the world grid within sensory range.
2. Decide: a strict priority list (flee > feed > hunt > mate > rest >
   migrate > wander); the first rule that fires wins.
3. Remember: hunger memory and threat timer are updated regardless of the
   decision, giving the next tick's decision some hysteresis.

Decisions for the whole population are computed first and applied after,
so no organism's choice depends on another's same-tick update.
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

from .behavior_state import BehaviorRecord, BehaviorState, Vec2
from .organism import FOOD_RESOURCES, Handle, Organism, OrganismArena, OrganismType
from .resources import RESOURCE_TYPE_COUNT, ResourceType
from .spatial_index import SpatialHashGrid
from .world import WorldGrid


RESOURCE_SIGNIFICANCE = 0.1     # readings at or below this are ignored
FOOD_MINIMUM = 0.2              # a food target must hold more than this
PREDATOR_SIZE_RATIO = 1.5
MATE_RANGE_FRACTION = 0.5

FLEE_BASE = 8.0
FLEE_BOLDNESS = 14.0
FLEE_RISK = 6.0
FLEE_MEMORY_BONUS = 5.0

EATING_COMMITMENT = 2.0         # seconds an eater keeps its current target
ATTACK_RANGE = 5.0
CHASE_RANGE = 30.0
MATING_RANGE = 15.0
HUNT_MIN_ENERGY = 0.4
HUNT_MIN_AGGRESSION = 0.5
REST_ENERGY = 0.15
MIGRATION_MIN_DRIVE = 0.4
MIGRATION_ARRIVAL = 2.0

MIN_SPEED_FACTOR = 0.3
STATE_SPEED = {
    BehaviorState.FLEEING: 1.5,
    BehaviorState.CHASING: 1.0,
    BehaviorState.EATING: 0.0,
    BehaviorState.RESTING: 0.0,
    BehaviorState.MATING: 0.5,
    BehaviorState.MIGRATING: 0.8,
    BehaviorState.WANDERING: 0.7,
}


# =============================================================================
# SENSORY DATA
# =============================================================================

class Neighbor(NamedTuple):
    id: Handle
    x: float
    y: float
    distance: float
    is_predator: bool   # the neighbour can eat us
    is_prey: bool       # we can eat the neighbour
    is_mate: bool


class ResourceReading(NamedTuple):
    position: Vec2
    resource_type: ResourceType
    distance: float
    value: float


@dataclass
class SensoryData:
    neighbors: List[Neighbor] = field(default_factory=list)
    nearest_predator: Optional[Neighbor] = None
    # Parallel arrays of significant readings, sorted by distance
    resource_positions: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    resource_types: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.intp))
    resource_distances: np.ndarray = field(default_factory=lambda: np.zeros(0))
    resource_values: np.ndarray = field(default_factory=lambda: np.zeros(0))
    richest_resource: Optional[ResourceReading] = None
    current_cell_resources: np.ndarray = field(default_factory=lambda: np.zeros(RESOURCE_TYPE_COUNT))

    def reading(self, i: int) -> ResourceReading:
        return ResourceReading(
            position=(float(self.resource_positions[i, 0]), float(self.resource_positions[i, 1])),
            resource_type=ResourceType(int(self.resource_types[i])),
            distance=float(self.resource_distances[i]),
            value=float(self.resource_values[i]),
        )

    @property
    def nearby_resources(self) -> List[ResourceReading]:
        return [self.reading(i) for i in range(len(self.resource_values))]

    def nearest(self, flag: str) -> Optional[Neighbor]:
        candidates = [n for n in self.neighbors if getattr(n, flag)]
        if not candidates:
            return None
        return min(candidates, key=lambda n: n.distance)


def is_predator_of(predator_type: OrganismType, prey_type: OrganismType,
                   predator_size: float, prey_size: float) -> bool:
    """Consumers eat producers and decomposers; they eat consumers 1.5x smaller."""
    if predator_type != OrganismType.CONSUMER:
        return False
    if prey_type == OrganismType.CONSUMER:
        return predator_size > prey_size * PREDATOR_SIZE_RATIO
    return True


def collect_sensory_data(organism: Organism, organisms: OrganismArena,
                         spatial_index: SpatialHashGrid, world: WorldGrid) -> SensoryData:
    sensory = SensoryData()
    x, y = organism.x, organism.y
    sensory_range = organism.traits.sensory_range

    cell = world.get_cell(x, y)
    if cell is not None:
        sensory.current_cell_resources = np.array(cell.resource_density)

    # Neighbours
    for key in spatial_index.query_radius(x, y, sensory_range):
        if key == organism.id:
            continue
        other = organisms.get(key)
        if other is None:
            continue
        ox, oy = spatial_index.position(key)
        dist = math.hypot(ox - x, oy - y)
        neighbor = Neighbor(
            id=key, x=ox, y=oy, distance=dist,
            is_predator=is_predator_of(other.organism_type, organism.organism_type,
                                       other.size, organism.size),
            is_prey=is_predator_of(organism.organism_type, other.organism_type,
                                   organism.size, other.size),
            is_mate=(other.species_id == organism.species_id
                     and other.organism_type == organism.organism_type
                     and not other.is_dead()
                     and dist <= sensory_range * MATE_RANGE_FRACTION),
        )
        sensory.neighbors.append(neighbor)
    sensory.nearest_predator = sensory.nearest('is_predator')

    # Resource readings on the cell lattice around us
    radius = int(math.ceil(sensory_range))
    base_x, base_y = math.floor(x), math.floor(y)
    density, present = world.read_region(base_x - radius, base_y - radius,
                                         2 * radius + 1, 2 * radius + 1)
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    dy_grid, dx_grid = np.meshgrid(offsets, offsets, indexing='ij')
    dist_grid = np.hypot(dx_grid, dy_grid)

    in_range = present & (dist_grid <= sensory_range)
    significant = (density > RESOURCE_SIGNIFICANCE) & in_range[..., np.newaxis]
    iy, ix, kind = np.nonzero(significant)
    if len(kind):
        distances = dist_grid[iy, ix]
        order = np.argsort(distances, kind='stable')
        iy, ix, kind, distances = iy[order], ix[order], kind[order], distances[order]
        sensory.resource_positions = np.column_stack([x + dx_grid[iy, ix], y + dy_grid[iy, ix]])
        sensory.resource_types = kind.astype(np.intp)
        sensory.resource_distances = distances
        sensory.resource_values = density[iy, ix, kind]
        sensory.richest_resource = sensory.reading(int(np.argmax(sensory.resource_values)))

    return sensory


# =============================================================================
# DECISION
# =============================================================================

class Decision(NamedTuple):
    state: BehaviorState
    target_id: Optional[Handle] = None
    target_position: Optional[Vec2] = None
    migration_target: Optional[Vec2] = None


def flee_threshold(boldness: float, risk_tolerance: float, threat_active: bool) -> float:
    threshold = FLEE_BASE + FLEE_BOLDNESS * boldness + FLEE_RISK * risk_tolerance
    if threat_active:
        threshold += FLEE_MEMORY_BONUS
    return threshold


def hunger_pressure(energy_ratio: float, hunger_memory: float) -> float:
    return 0.7 * (1.0 - energy_ratio) + 0.3 * hunger_memory


def hunger_barrier(foraging_drive: float) -> float:
    return min(max(0.3 - 0.15 * foraging_drive, 0.1), 0.5)


def find_best_food(organism_type: OrganismType, selectivity: float,
                   sensory: SensoryData) -> Optional[ResourceReading]:
    """Highest value*(1+selectivity) - distance*(0.1 + (1-selectivity)*0.05) among edible readings."""
    if not len(sensory.resource_values):
        return None
    preferred = [int(r) for r in FOOD_RESOURCES[organism_type]]
    edible = np.isin(sensory.resource_types, preferred) & (sensory.resource_values > FOOD_MINIMUM)
    if not edible.any():
        return None
    scores = (sensory.resource_values * (1.0 + selectivity)
              - sensory.resource_distances * (0.1 + (1.0 - selectivity) * 0.05))
    scores = np.where(edible, scores, -np.inf)
    return sensory.reading(int(np.argmax(scores)))


def has_visible_food(organism_type: OrganismType, sensory: SensoryData) -> bool:
    preferred = [int(r) for r in FOOD_RESOURCES[organism_type]]
    return bool(np.isin(sensory.resource_types, preferred).any())


def is_at_food_source(organism_type: OrganismType, sensory: SensoryData) -> bool:
    return any(sensory.current_cell_resources[r] > FOOD_MINIMUM for r in FOOD_RESOURCES[organism_type])


def exploration_heading(organism: Organism, elapsed: float) -> float:
    seed = organism.id.index if organism.id is not None else 0
    return math.sin(elapsed * 0.05 + seed * 1.7) * math.tau


def decide_behavior(organism: Organism, sensory: SensoryData, elapsed: float = 0.0) -> Decision:
    """Pick the next state and targets. Reads the organism, never writes it."""
    traits = organism.traits
    record = organism.behavior
    energy_ratio = organism.energy_ratio()

    # 1. Flee
    predator = sensory.nearest_predator
    if predator is not None:
        if predator.distance < flee_threshold(traits.boldness, traits.risk_tolerance,
                                              record.threat_active):
            return Decision(BehaviorState.FLEEING, predator.id, (predator.x, predator.y))
    elif record.threat_active and record.last_threat_position is not None:
        return Decision(BehaviorState.FLEEING, None, record.last_threat_position)

    # 2. Feed
    if hunger_pressure(energy_ratio, record.hunger_memory) > hunger_barrier(traits.foraging_drive):
        food = find_best_food(organism.organism_type, traits.resource_selectivity, sensory)
        if food is not None:
            on_food = food.distance < 1.0
            still_eating = record.state == BehaviorState.EATING and record.state_time < EATING_COMMITMENT
            if on_food or still_eating:
                return Decision(BehaviorState.EATING, None, food.position)
            return Decision(BehaviorState.CHASING, None, food.position)
        if is_at_food_source(organism.organism_type, sensory):
            return Decision(BehaviorState.EATING)

    # 3. Hunt
    if (organism.organism_type == OrganismType.CONSUMER and energy_ratio > HUNT_MIN_ENERGY
            and traits.aggression > HUNT_MIN_AGGRESSION):
        prey = sensory.nearest('is_prey')
        if prey is not None:
            if prey.distance < ATTACK_RANGE:
                return Decision(BehaviorState.EATING, prey.id, (prey.x, prey.y))
            if prey.distance < CHASE_RANGE:
                return Decision(BehaviorState.CHASING, prey.id, (prey.x, prey.y))

    # 4. Mate
    if energy_ratio >= traits.reproduction_threshold:
        mate = sensory.nearest('is_mate')
        if mate is not None and mate.distance < MATING_RANGE:
            return Decision(BehaviorState.MATING, mate.id, (mate.x, mate.y))

    # 5. Rest
    if energy_ratio < REST_ENERGY:
        return Decision(BehaviorState.RESTING)

    # 6. Migrate
    if record.migration_target is not None:
        if record.state == BehaviorState.MIGRATING and \
                organism.distance_to(*record.migration_target) > MIGRATION_ARRIVAL:
            return Decision(BehaviorState.MIGRATING, migration_target=record.migration_target)
    elif traits.exploration_drive > MIGRATION_MIN_DRIVE and \
            not has_visible_food(organism.organism_type, sensory):
        if sensory.richest_resource is not None:
            target = sensory.richest_resource.position
        else:
            heading = exploration_heading(organism, elapsed)
            reach = traits.sensory_range * 2.0
            target = (organism.x + math.cos(heading) * reach,
                      organism.y + math.sin(heading) * reach)
        return Decision(BehaviorState.MIGRATING, migration_target=target)

    # 7. Wander
    return Decision(BehaviorState.WANDERING)


def apply_decision(record: BehaviorRecord, decision: Decision):
    record.transition(decision.state)
    record.target_id = decision.target_id
    record.target_position = decision.target_position
    if decision.state == BehaviorState.MIGRATING:
        record.migration_target = decision.migration_target


def update_memories(organism: Organism, sensory: SensoryData, dt: float):
    predator = sensory.nearest_predator
    record = organism.behavior
    record.update_hunger(organism.energy_ratio(), organism.traits.hunger_memory_rate, dt)
    record.update_threat((predator.x, predator.y) if predator is not None else None,
                         organism.traits.threat_decay_rate, dt)


def update_behavior(organisms: OrganismArena, world: WorldGrid,
                    spatial_index: SpatialHashGrid, dt: float, elapsed: float = 0.0):
    """Sense and decide for everyone, then apply every decision."""
    planned = []
    for organism in organisms:
        if organism.is_dead():
            continue
        sensory = collect_sensory_data(organism, organisms, spatial_index, world)
        planned.append((organism, sensory, decide_behavior(organism, sensory, elapsed)))

    for organism, sensory, decision in planned:
        apply_decision(organism.behavior, decision)
        organism.behavior.state_time += dt
        update_memories(organism, sensory, dt)


# =============================================================================
# STEERING
# =============================================================================

def _toward(from_x: float, from_y: float, to_x: float, to_y: float) -> Optional[Vec2]:
    dx = to_x - from_x
    dy = to_y - from_y
    length = math.hypot(dx, dy)
    if length <= 1e-9:
        return None
    return (dx / length, dy / length)


def calculate_behavior_velocity(organism: Organism, elapsed: float) -> Vec2:
    """Desired velocity for the organism's current state."""
    record = organism.behavior
    state = record.state
    speed = organism.traits.speed * max(organism.energy_ratio(), MIN_SPEED_FACTOR)
    speed *= STATE_SPEED[state]
    if speed == 0.0:
        return (0.0, 0.0)

    x, y = organism.x, organism.y
    if state == BehaviorState.FLEEING:
        direction = None
        if record.target_position is not None:
            direction = _toward(record.target_position[0], record.target_position[1], x, y)
        if direction is None:
            angle = math.sin(elapsed * 2.0) * math.pi
            direction = (math.cos(angle), math.sin(angle))
    elif state in (BehaviorState.CHASING, BehaviorState.MATING):
        if record.target_position is None:
            return (0.0, 0.0)
        direction = _toward(x, y, *record.target_position)
        if direction is None:
            return (0.0, 0.0)
    elif state == BehaviorState.MIGRATING:
        direction = None
        if record.migration_target is not None:
            direction = _toward(x, y, *record.migration_target)
        if direction is None:
            angle = exploration_heading(organism, elapsed)
            direction = (math.cos(angle), math.sin(angle))
    else:
        angle = math.sin(elapsed * 0.5 + (x + y) * 0.1) * math.tau
        direction = (math.cos(angle), math.sin(angle))

    return (direction[0] * speed, direction[1] * speed)
