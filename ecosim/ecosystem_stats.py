"""
Ecosystem Statistics - Read-only telemetry over the population

Nothing in here mutates the simulation. Renderers and tools read organisms
through OrganismSnapshot; aggregate numbers are refreshed every
`stats_interval` ticks and summarised in the log every `stats_log_interval`.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .behavior_state import BehaviorState
from .genetics import CachedTraits
from .organism import Handle, OrganismArena, OrganismType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrganismSnapshot:
    """Immutable view of one organism at one tick: body, behavior, traits and memories."""
    id: Handle
    organism_type: OrganismType
    species_id: int
    position: Tuple[float, float]
    velocity: Tuple[float, float]
    energy: float
    max_energy: float
    age: int
    size: float
    state: BehaviorState
    traits: CachedTraits
    target_id: Optional[Handle] = None
    target_position: Optional[Tuple[float, float]] = None
    migration_target: Optional[Tuple[float, float]] = None
    hunger_memory: float = 0.0
    threat_timer: float = 0.0
    last_threat_position: Optional[Tuple[float, float]] = None

    def to_dict(self) -> Dict:
        def point(p):
            return list(p) if p is not None else None

        return {
            'id': str(self.id),
            'type': self.organism_type.value,
            'species_id': self.species_id,
            'position': list(self.position),
            'velocity': list(self.velocity),
            'energy': self.energy,
            'max_energy': self.max_energy,
            'age': self.age,
            'size': self.size,
            'state': self.state.name.lower(),
            'target_id': str(self.target_id) if self.target_id is not None else None,
            'target_position': point(self.target_position),
            'migration_target': point(self.migration_target),
            'traits': asdict(self.traits),
            'hunger_memory': self.hunger_memory,
            'threat_timer': self.threat_timer,
            'last_threat_position': point(self.last_threat_position),
        }


def snapshot_organisms(organisms: OrganismArena) -> List[OrganismSnapshot]:
    snapshots = []
    for o in organisms:
        record = o.behavior
        snapshots.append(OrganismSnapshot(
            id=o.id,
            organism_type=o.organism_type,
            species_id=o.species_id,
            position=(o.x, o.y),
            velocity=(o.vx, o.vy),
            energy=o.energy,
            max_energy=o.max_energy,
            age=o.age,
            size=o.size,
            state=record.state,
            traits=o.traits,
            target_id=record.target_id,
            target_position=record.target_position,
            migration_target=record.migration_target,
            hunger_memory=record.hunger_memory,
            threat_timer=record.threat_timer,
            last_threat_position=record.last_threat_position,
        ))
    return snapshots


@dataclass
class SpeciesStats:
    count: int = 0
    avg_size: float = 0.0
    avg_energy: float = 0.0
    avg_speed: float = 0.0
    avg_sensory_range: float = 0.0


@dataclass
class EcosystemStats:
    tick: int = 0
    total_population: int = 0
    by_type: Dict[OrganismType, int] = field(default_factory=dict)
    by_species: Dict[int, int] = field(default_factory=dict)
    species_stats: Dict[int, SpeciesStats] = field(default_factory=dict)

    @property
    def species_count(self) -> int:
        return len(self.by_species)

    def summary(self) -> str:
        types = ", ".join(f"{t.value}={self.by_type.get(t, 0)}" for t in OrganismType)
        return (f"Tick {self.tick}: {self.total_population} organisms "
                f"({types}), {self.species_count} species")

    def to_dict(self) -> Dict:
        return {
            'tick': self.tick,
            'total_population': self.total_population,
            'by_type': {t.value: n for t, n in self.by_type.items()},
            'by_species': dict(self.by_species),
            'species_stats': {
                sid: {
                    'count': s.count,
                    'avg_size': s.avg_size,
                    'avg_energy': s.avg_energy,
                    'avg_speed': s.avg_speed,
                    'avg_sensory_range': s.avg_sensory_range,
                }
                for sid, s in self.species_stats.items()
            },
        }


def collect_ecosystem_stats(organisms: OrganismArena, tick: int = 0) -> EcosystemStats:
    stats = EcosystemStats(tick=tick)
    stats.by_type = {t: 0 for t in OrganismType}

    # species_id -> rows of (size, energy, speed, sensory_range)
    samples: Dict[int, List[Tuple[float, float, float, float]]] = defaultdict(list)
    for o in organisms:
        if o.is_dead():
            continue
        stats.total_population += 1
        stats.by_type[o.organism_type] += 1
        samples[o.species_id].append((o.size, o.energy, o.speed, o.traits.sensory_range))

    for species_id, rows in samples.items():
        means = np.mean(np.asarray(rows, dtype=np.float64), axis=0)
        stats.by_species[species_id] = len(rows)
        stats.species_stats[species_id] = SpeciesStats(
            count=len(rows),
            avg_size=float(means[0]),
            avg_energy=float(means[1]),
            avg_speed=float(means[2]),
            avg_sensory_range=float(means[3]),
        )
    return stats


def update_ecosystem_stats(organisms: OrganismArena, current: Optional[EcosystemStats],
                           tick: int, interval: int = 100,
                           log_interval: int = 500) -> Optional[EcosystemStats]:
    """Recollect on every `interval`-th tick, otherwise return `current` unchanged."""
    if tick % interval != 0:
        return current
    stats = collect_ecosystem_stats(organisms, tick)
    if tick % log_interval == 0:
        logger.info(stats.summary())
    return stats


class OrganismTracker:
    """Follows one organism and logs its state at a fixed tick interval."""

    def __init__(self, interval: int = 10):
        self.tracked: Optional[Handle] = None
        self.interval = interval

    def track(self, handle: Optional[Handle]):
        self.tracked = handle

    def update(self, organisms: OrganismArena, tick: int):
        if self.tracked is None:
            return
        organism = organisms.get(self.tracked)
        if organism is None:
            logger.debug("Tracked organism %s is gone", self.tracked)
            self.tracked = None
            return
        if tick % self.interval != 0:
            return
        logger.debug(
            "Tracked %s tick=%d pos=(%.1f, %.1f) energy=%.1f/%.1f state=%s species=%d",
            organism.id, tick, organism.x, organism.y, organism.energy,
            organism.max_energy, organism.behavior.state.name, organism.species_id)
