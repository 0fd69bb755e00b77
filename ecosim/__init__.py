# EcoSim - Evolving Ecosystem Simulation
#
# Organisms carry a 32-gene genome that expresses continuous traits, roam an
# unbounded chunked world of resources under a shifting climate, pick one of
# seven behaviors every tick, eat, reproduce with mutation and crossover, die,
# and drift apart into species.
#
# PACKAGE LAYOUT:
# ├── genetics.py         - Genome, mutation, crossover, trait expression
# ├── spatial_index.py    - Bucketed spatial hash for radius queries
# ├── world.py            - Cells, chunks and the world grid
# ├── resources.py        - Regeneration/decay tables and multipliers
# ├── climate.py          - Seasons, drift, regional noise, climate events
# ├── terrain.py          - Deterministic chunk generation
# ├── organism.py         - Organism record and handle-based arena
# ├── behavior_state.py   - Behavioral states and per-organism memory
# ├── behavior.py         - Sensing, decisions and steering
# ├── lifecycle.py        - Metabolism, movement, eating, aging, birth, death
# ├── speciation.py       - Genetic-distance species clustering
# ├── ecosystem_stats.py  - Read-only population telemetry
# ├── tuning.py           - Balance parameters and presets
# ├── simulation.py       - The per-tick driver
# └── persistence.py      - Checkpoints with dill

# =============================================================================
# PRIMARY EXPORTS: Simulation
# =============================================================================

from .simulation import (
    Simulation,
    DEFAULT_DT,
)

from .tuning import (
    EcosystemTuning,
    load_tuning,
)

# =============================================================================
# SUPPORTING MODULES
# =============================================================================

# Genetics: genome operations and trait expression
from .genetics import (
    Genome,
    CachedTraits,
    GENOME_SIZE,
    mutate,
    crossover,
    distance,
    express,
)

# World: chunked grid with resources and climate
from .world import (
    Cell,
    Chunk,
    WorldGrid,
    CHUNK_SIZE,
)

from .resources import (
    ResourceType,
    TerrainType,
)

from .climate import (
    ClimateState,
    ClimateEvent,
    ClimateEventKind,
)

# Spatial queries
from .spatial_index import SpatialHashGrid

# Organisms and behavior
from .organism import (
    Organism,
    OrganismArena,
    OrganismType,
    Handle,
)

from .behavior_state import (
    BehaviorState,
    BehaviorRecord,
)

from .behavior import (
    SensoryData,
    collect_sensory_data,
    decide_behavior,
    update_behavior,
    calculate_behavior_velocity,
)

# Lifecycle systems
from .lifecycle import (
    rebuild_spatial_index,
    update_metabolism,
    update_movement,
    handle_eating,
    update_age,
    handle_reproduction,
    handle_death,
)

# Speciation
from .speciation import (
    SpeciesTracker,
    update_speciation,
)

# Telemetry
from .ecosystem_stats import (
    EcosystemStats,
    OrganismSnapshot,
    OrganismTracker,
    collect_ecosystem_stats,
    snapshot_organisms,
)

# Persistence: save/load
from .persistence import (
    SimulationPersistence,
    PersistenceError,
    save_simulation,
    load_simulation,
)

__version__ = "1.0.0"

__all__ = [
    # Primary
    'Simulation',
    'DEFAULT_DT',
    'EcosystemTuning',
    'load_tuning',

    # Genetics
    'Genome',
    'CachedTraits',
    'GENOME_SIZE',
    'mutate',
    'crossover',
    'distance',
    'express',

    # World
    'Cell',
    'Chunk',
    'WorldGrid',
    'CHUNK_SIZE',
    'ResourceType',
    'TerrainType',
    'ClimateState',
    'ClimateEvent',
    'ClimateEventKind',
    'SpatialHashGrid',

    # Organisms
    'Organism',
    'OrganismArena',
    'OrganismType',
    'Handle',
    'BehaviorState',
    'BehaviorRecord',
    'SensoryData',
    'collect_sensory_data',
    'decide_behavior',
    'update_behavior',
    'calculate_behavior_velocity',

    # Lifecycle
    'rebuild_spatial_index',
    'update_metabolism',
    'update_movement',
    'handle_eating',
    'update_age',
    'handle_reproduction',
    'handle_death',

    # Speciation and telemetry
    'SpeciesTracker',
    'update_speciation',
    'EcosystemStats',
    'OrganismSnapshot',
    'OrganismTracker',
    'collect_ecosystem_stats',
    'snapshot_organisms',

    # Persistence
    'SimulationPersistence',
    'PersistenceError',
    'save_simulation',
    'load_simulation',
]
