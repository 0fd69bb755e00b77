"""
Organisms and the organism arena.

An Organism is a plain record mutated by every system each tick. The arena
stores records in slots addressed by (index, generation) handles; removing an
organism bumps its slot's generation so any handle still pointing at it goes
stale and resolves to None.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from .behavior_state import BehaviorRecord
from .genetics import CachedTraits, Genome
from .resources import ResourceType


class OrganismType(Enum):
    """Trophic role. Fixed at spawn and inherited unchanged."""
    PRODUCER = "producer"
    CONSUMER = "consumer"
    DECOMPOSER = "decomposer"


# Resources each type can eat, in preference order
FOOD_RESOURCES: Dict[OrganismType, Tuple[ResourceType, ...]] = {
    OrganismType.PRODUCER: (ResourceType.SUNLIGHT, ResourceType.WATER, ResourceType.MINERAL),
    OrganismType.CONSUMER: (ResourceType.PREY, ResourceType.PLANT),
    OrganismType.DECOMPOSER: (ResourceType.DETRITUS,),
}


class Handle(NamedTuple):
    index: int
    generation: int

    def __str__(self) -> str:
        return f"{self.index}v{self.generation}"


@dataclass
class Organism:
    genome: Genome
    traits: CachedTraits
    organism_type: OrganismType
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    energy: float = 0.0
    max_energy: float = 0.0
    age: int = 0
    species_id: int = 0
    reproduction_cooldown: int = 0
    behavior: BehaviorRecord = field(default_factory=BehaviorRecord)
    alive: bool = True
    id: Optional[Handle] = None

    @classmethod
    def from_genome(cls, genome: Genome, organism_type: OrganismType,
                    x: float = 0.0, y: float = 0.0,
                    energy: Optional[float] = None, species_id: int = 0,
                    cooldown: Optional[int] = None) -> 'Organism':
        """Build an organism, expressing its traits once from the genome."""
        traits = CachedTraits.from_genome(genome)
        max_energy = traits.max_energy
        current = max_energy if energy is None else min(max(energy, 0.0), max_energy)
        return cls(
            genome=genome,
            traits=traits,
            organism_type=organism_type,
            x=x, y=y,
            energy=current,
            max_energy=max_energy,
            species_id=species_id,
            reproduction_cooldown=int(traits.reproduction_cooldown) if cooldown is None else cooldown,
        )

    @property
    def size(self) -> float:
        return self.traits.size

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    def energy_ratio(self) -> float:
        if self.max_energy > 0:
            return self.energy / self.max_energy
        return 0.0

    def is_dead(self) -> bool:
        return self.energy <= 0.0

    def set_energy(self, value: float):
        self.energy = min(max(value, 0.0), self.max_energy)

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)


class OrganismArena:
    """
    Slot storage for organisms with generation-checked handles.

    Iteration yields live organisms in slot order, which keeps every system
    pass deterministic for a given history.
    """

    def __init__(self):
        self._slots: List[Optional[Organism]] = []
        self._generations: List[int] = []
        self._free: List[int] = []
        self._count = 0

    def spawn(self, organism: Organism) -> Handle:
        if self._free:
            index = self._free.pop()
            self._slots[index] = organism
        else:
            index = len(self._slots)
            self._slots.append(organism)
            self._generations.append(0)
        handle = Handle(index, self._generations[index])
        organism.id = handle
        organism.alive = True
        self._count += 1
        return handle

    def remove(self, handle: Handle) -> Optional[Organism]:
        organism = self.get(handle)
        if organism is None:
            return None
        self._slots[handle.index] = None
        self._generations[handle.index] += 1
        self._free.append(handle.index)
        self._count -= 1
        organism.alive = False
        return organism

    def get(self, handle: Optional[Handle]) -> Optional[Organism]:
        if handle is None or not 0 <= handle.index < len(self._slots):
            return None
        if self._generations[handle.index] != handle.generation:
            return None
        return self._slots[handle.index]

    def __contains__(self, handle: Handle) -> bool:
        return self.get(handle) is not None

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Organism]:
        return (o for o in list(self._slots) if o is not None)

    def handles(self) -> List[Handle]:
        return [o.id for o in self]
