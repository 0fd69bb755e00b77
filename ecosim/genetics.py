"""
Genetics Engine - Fixed-length real-valued genomes and trait expression

A genome is a vector of GENOME_SIZE genes in [0, 1]. Every heritable trait is
expressed from a small weighted subset of genes through a sigmoid, so several
genes influence several traits at once (pleiotropy). The gene/weight tables
below are load-bearing: changing them changes evolutionary dynamics.

USAGE:
    from ecosim.genetics import Genome, crossover, mutate, CachedTraits

    genome = Genome.random(rng)
    child = crossover(genome, other, rate=0.02, rng=rng)
    traits = CachedTraits.from_genome(child)
"""

import math
import numpy as np
from dataclasses import dataclass, fields
from typing import Dict, Iterable, List, Optional, Sequence, Tuple


GENOME_SIZE = 32

# Uniform noise half-width used by mutation (stands in for gaussian sigma 0.1)
MUTATION_NOISE = 0.1

DEFAULT_MUTATION_RATE = 0.01

# Gene value returned for out-of-range indices
NEUTRAL_GENE = 0.5

# Sigmoid input is clamped to this range before squashing
EXPRESSION_CLAMP = 6.0


def _default_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


# =============================================================================
# GENOME
# =============================================================================

class Genome:
    """
    Immutable vector of genes.

    New genomes are only ever produced by random(), mutate() or crossover();
    the underlying array is read-only so an organism's genome cannot drift.
    """

    __slots__ = ('_genes',)

    def __init__(self, genes: Iterable[float]):
        values = np.asarray(list(genes), dtype=np.float64)[:GENOME_SIZE]
        if len(values) < GENOME_SIZE:
            values = np.concatenate([values, np.full(GENOME_SIZE - len(values), NEUTRAL_GENE)])
        values = np.clip(values, 0.0, 1.0)
        values.setflags(write=False)
        self._genes = values

    @classmethod
    def random(cls, rng: Optional[np.random.Generator] = None) -> 'Genome':
        """Every gene drawn uniformly from [0, 1]."""
        return cls(_default_rng(rng).random(GENOME_SIZE))

    @classmethod
    def uniform(cls, value: float = NEUTRAL_GENE) -> 'Genome':
        return cls(np.full(GENOME_SIZE, value))

    @property
    def genes(self) -> np.ndarray:
        return self._genes

    def get_gene(self, index: int) -> float:
        if 0 <= index < GENOME_SIZE:
            return float(self._genes[index])
        return NEUTRAL_GENE

    def __len__(self) -> int:
        return GENOME_SIZE

    def __eq__(self, other) -> bool:
        if not isinstance(other, Genome):
            return NotImplemented
        return bool(np.array_equal(self._genes, other._genes))

    def __hash__(self) -> int:
        return hash(self._genes.tobytes())

    def __repr__(self) -> str:
        return f"Genome(mean={self._genes.mean():.3f})"

    # Pickle support for __slots__ + read-only array
    def __getstate__(self):
        return self._genes.tolist()

    def __setstate__(self, state):
        self.__init__(state)

    def mutate(self, rate: float, rng: Optional[np.random.Generator] = None) -> 'Genome':
        return mutate(self, rate, rng)

    def distance(self, other: 'Genome') -> float:
        return distance(self, other)

    def to_list(self) -> List[float]:
        return self._genes.tolist()


def _mutate_array(genes: np.ndarray, rate: float, rng: np.random.Generator) -> np.ndarray:
    rate = min(max(rate, 0.0), 1.0)
    hits = rng.random(GENOME_SIZE) < rate
    noise = rng.uniform(-MUTATION_NOISE, MUTATION_NOISE, GENOME_SIZE)
    return np.where(hits, np.clip(genes + noise, 0.0, 1.0), genes)


def mutate(genome: Genome, rate: float, rng: Optional[np.random.Generator] = None) -> Genome:
    """
    Return a mutated copy of a genome.

    Each gene is independently replaced with clamp(gene + u, 0, 1) with
    probability `rate`, where u ~ U(-0.1, 0.1).
    """
    rng = _default_rng(rng)
    return Genome(_mutate_array(genome.genes, rate, rng))


def crossover(parent_a: Genome, parent_b: Genome, rate: float,
              rng: Optional[np.random.Generator] = None) -> Genome:
    """Uniform crossover: each gene picked 50/50 from either parent, then mutated."""
    rng = _default_rng(rng)
    pick_a = rng.random(GENOME_SIZE) < 0.5
    child = np.where(pick_a, parent_a.genes, parent_b.genes)
    return Genome(_mutate_array(child, rate, rng))


def distance(a: Genome, b: Genome) -> float:
    """Root-mean-square gene difference. Symmetric, zero on identical genomes."""
    diff = a.genes - b.genes
    return float(np.sqrt(np.mean(diff * diff)))


def mean_genome(genomes: Sequence[Genome]) -> Genome:
    """Element-wise mean of several genomes (clamped by the Genome constructor)."""
    if not genomes:
        return Genome.uniform()
    stacked = np.stack([g.genes for g in genomes])
    return Genome(stacked.mean(axis=0))


# =============================================================================
# TRAIT EXPRESSION
# =============================================================================

def sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def express(genome: Genome, weighted_genes: Sequence[Tuple[int, float]],
            bias: float, min_val: float, max_val: float) -> float:
    """
    Express a bounded trait from a weighted set of genes.

    sum = bias + sum(weight * (2*gene - 1)), clamped to [-6, 6], squashed by
    a logistic sigmoid and remapped linearly into [min_val, max_val].
    """
    total = bias
    for index, weight in weighted_genes:
        total += weight * (2.0 * genome.get_gene(index) - 1.0)
    total = min(max(total, -EXPRESSION_CLAMP), EXPRESSION_CLAMP)
    return min_val + (max_val - min_val) * sigmoid(total)


@dataclass(frozen=True)
class TraitExpression:
    """Gene/weight recipe for one named trait."""
    genes: Tuple[Tuple[int, float], ...]
    bias: float
    min_val: float
    max_val: float

    def express(self, genome: Genome) -> float:
        return express(genome, self.genes, self.bias, self.min_val, self.max_val)

    def midpoint(self) -> float:
        """Value expressed by an all-0.5 genome (every weighted term vanishes)."""
        clamped = min(max(self.bias, -EXPRESSION_CLAMP), EXPRESSION_CLAMP)
        return self.min_val + (self.max_val - self.min_val) * sigmoid(clamped)


# Gene loci. Genes 19-31 are carried and inherited but not yet expressed.
SPEED = 0
SIZE = 1
METABOLISM = 2
MOVEMENT = 3
ENERGY_STORE = 4
FERTILITY_TIMING = 5
FERTILITY_THRESHOLD = 6
SENSES = 7
AGGRESSION = 8
BOLDNESS = 9
MUTABILITY = 10
FORAGING = 11
RISK = 12
EXPLORATION = 13
CLUTCH = 14
PROVISIONING = 15
HUNGER_MEMORY = 16
VIGILANCE = 17
SELECTIVITY = 18

TRAIT_EXPRESSIONS: Dict[str, TraitExpression] = {
    'speed': TraitExpression(
        ((SPEED, 1.6), (SIZE, -0.6), (MOVEMENT, 0.4)), 0.0, 0.5, 20.0),
    'size': TraitExpression(
        ((SIZE, 1.8), (ENERGY_STORE, 0.5)), 0.0, 0.3, 3.0),
    'metabolism_rate': TraitExpression(
        ((METABOLISM, 1.4), (SPEED, 0.5), (SIZE, 0.3)), 0.0, 0.005, 0.02),
    'movement_cost': TraitExpression(
        ((MOVEMENT, 1.5), (SIZE, 0.6)), 0.0, 0.01, 0.1),
    'max_energy': TraitExpression(
        ((ENERGY_STORE, 1.6), (SIZE, 0.8)), 0.0, 30.0, 150.0),
    'reproduction_cooldown': TraitExpression(
        ((FERTILITY_TIMING, 1.5), (PROVISIONING, 0.4)), 0.0, 500.0, 2000.0),
    'reproduction_threshold': TraitExpression(
        ((FERTILITY_THRESHOLD, 1.5), (FERTILITY_TIMING, 0.3)), 0.0, 0.5, 0.9),
    'sensory_range': TraitExpression(
        ((SENSES, 1.6), (VIGILANCE, 0.4)), 0.0, 5.0, 50.0),
    'aggression': TraitExpression(
        ((AGGRESSION, 1.7), (BOLDNESS, 0.4), (SIZE, 0.3)), 0.0, 0.0, 1.0),
    'boldness': TraitExpression(
        ((BOLDNESS, 1.7), (AGGRESSION, 0.3)), 0.0, 0.0, 1.0),
    'mutation_rate': TraitExpression(
        ((MUTABILITY, 1.5),), -0.5, 0.005, 0.05),
    'foraging_drive': TraitExpression(
        ((FORAGING, 1.5), (METABOLISM, 0.4)), 0.0, 0.0, 1.0),
    'risk_tolerance': TraitExpression(
        ((RISK, 1.5), (BOLDNESS, 0.5)), 0.0, 0.0, 1.0),
    'exploration_drive': TraitExpression(
        ((EXPLORATION, 1.5), (SENSES, 0.4), (BOLDNESS, 0.2)), 0.0, 0.0, 1.0),
    'clutch_size': TraitExpression(
        ((CLUTCH, 1.6), (SIZE, -0.5)), -0.3, 1.0, 4.0),
    'offspring_energy_share': TraitExpression(
        ((PROVISIONING, 1.5), (CLUTCH, -0.4)), 0.0, 0.1, 0.5),
    'hunger_memory_rate': TraitExpression(
        ((HUNGER_MEMORY, 1.5), (METABOLISM, 0.3)), 0.0, 0.05, 0.5),
    'threat_decay_rate': TraitExpression(
        ((VIGILANCE, 1.4), (RISK, -0.4)), 0.0, 0.2, 2.0),
    'resource_selectivity': TraitExpression(
        ((SELECTIVITY, 1.5), (FORAGING, 0.3)), 0.0, 0.0, 1.0),
}


# =============================================================================
# CACHED TRAITS
# =============================================================================

@dataclass(frozen=True)
class CachedTraits:
    """
    Snapshot of every expressed trait for one genome.

    Built once when an organism is created so systems never re-express
    traits per tick.
    """
    speed: float
    size: float
    metabolism_rate: float
    movement_cost: float
    max_energy: float
    reproduction_cooldown: float
    reproduction_threshold: float
    sensory_range: float
    aggression: float
    boldness: float
    mutation_rate: float
    foraging_drive: float
    risk_tolerance: float
    exploration_drive: float
    clutch_size: float
    offspring_energy_share: float
    hunger_memory_rate: float
    threat_decay_rate: float
    resource_selectivity: float

    @classmethod
    def from_genome(cls, genome: Genome) -> 'CachedTraits':
        return cls(**{name: expr.express(genome) for name, expr in TRAIT_EXPRESSIONS.items()})

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
