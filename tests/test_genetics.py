"""
Unit tests for genomes and trait expression.

Tests cover:
- Genome construction, padding, clamping and gene lookup
- Distance properties
- Mutation and crossover bounds
- Trait expression ranges and the neutral-genome fixed point
- CachedTraits snapshot
"""

import pickle

import numpy as np
import pytest

from ecosim.genetics import (
    GENOME_SIZE, NEUTRAL_GENE, TRAIT_EXPRESSIONS, CachedTraits, Genome,
    crossover, distance, express, mean_genome, mutate, sigmoid,
)


# ---------------------------------------------------------------------------
# Genome
# ---------------------------------------------------------------------------

class TestGenome:
    def test_random_genome_has_fixed_length(self, rng):
        g = Genome.random(rng)
        assert len(g) == GENOME_SIZE
        assert np.all((g.genes >= 0.0) & (g.genes <= 1.0))

    def test_short_input_padded_with_neutral(self):
        g = Genome([0.1, 0.9])
        assert len(g) == GENOME_SIZE
        assert g.get_gene(0) == pytest.approx(0.1)
        assert g.get_gene(5) == NEUTRAL_GENE

    def test_values_clamped(self):
        g = Genome([-3.0, 4.0])
        assert g.get_gene(0) == 0.0
        assert g.get_gene(1) == 1.0

    def test_out_of_range_gene_is_neutral(self, rng):
        g = Genome.random(rng)
        assert g.get_gene(GENOME_SIZE) == NEUTRAL_GENE
        assert g.get_gene(-1) == NEUTRAL_GENE
        assert g.get_gene(10_000) == NEUTRAL_GENE

    def test_genes_are_read_only(self, rng):
        g = Genome.random(rng)
        with pytest.raises(ValueError):
            g.genes[0] = 0.3

    def test_equality_and_pickle(self, rng):
        g = Genome.random(rng)
        restored = pickle.loads(pickle.dumps(g))
        assert restored == g
        assert hash(restored) == hash(g)


# ---------------------------------------------------------------------------
# Distance
# ---------------------------------------------------------------------------

class TestDistance:
    def test_identity_is_zero(self, rng):
        for _ in range(20):
            g = Genome.random(rng)
            assert distance(g, g) == 0.0

    def test_symmetric(self, rng):
        for _ in range(20):
            a, b = Genome.random(rng), Genome.random(rng)
            assert distance(a, b) == pytest.approx(distance(b, a))

    def test_extremes(self):
        assert distance(Genome.uniform(0.0), Genome.uniform(1.0)) == pytest.approx(1.0)

    def test_mean_genome(self):
        m = mean_genome([Genome.uniform(0.2), Genome.uniform(0.6)])
        assert np.allclose(m.genes, 0.4)


# ---------------------------------------------------------------------------
# Mutation / Crossover
# ---------------------------------------------------------------------------

class TestVariation:
    def test_mutate_keeps_bounds_and_length(self, rng):
        g = Genome.random(rng)
        for _ in range(200):
            g = mutate(g, 0.5, rng)
            assert len(g) == GENOME_SIZE
            assert np.all((g.genes >= 0.0) & (g.genes <= 1.0))

    def test_mutate_extreme_genomes_stay_clamped(self, rng):
        for value in (0.0, 1.0):
            g = mutate(Genome.uniform(value), 1.0, rng)
            assert np.all((g.genes >= 0.0) & (g.genes <= 1.0))

    def test_zero_rate_is_identity(self, rng):
        g = Genome.random(rng)
        assert mutate(g, 0.0, rng) == g

    def test_mutation_step_bounded(self, rng):
        g = Genome.uniform(0.5)
        child = mutate(g, 1.0, rng)
        assert np.all(np.abs(child.genes - g.genes) <= 0.1 + 1e-12)

    def test_parent_unchanged(self, rng):
        g = Genome.random(rng)
        before = g.to_list()
        mutate(g, 1.0, rng)
        assert g.to_list() == before

    def test_crossover_genes_come_from_parents(self, rng):
        a, b = Genome.uniform(0.0), Genome.uniform(1.0)
        child = crossover(a, b, 0.0, rng)
        assert len(child) == GENOME_SIZE
        assert set(np.unique(child.genes)).issubset({0.0, 1.0})

    def test_crossover_keeps_bounds(self, rng):
        for _ in range(50):
            child = crossover(Genome.random(rng), Genome.random(rng), 0.5, rng)
            assert np.all((child.genes >= 0.0) & (child.genes <= 1.0))


# ---------------------------------------------------------------------------
# Expression
# ---------------------------------------------------------------------------

class TestExpression:
    def test_expression_within_declared_range(self, rng):
        genomes = [Genome.random(rng) for _ in range(50)]
        genomes += [Genome.uniform(0.0), Genome.uniform(1.0)]
        for g in genomes:
            for name, expr in TRAIT_EXPRESSIONS.items():
                value = expr.express(g)
                assert expr.min_val <= value <= expr.max_val, name

    def test_huge_weights_still_in_range(self):
        value = express(Genome.uniform(1.0), [(0, 1e6)], 0.0, 2.0, 3.0)
        assert 2.0 <= value <= 3.0

    def test_neutral_genome_gives_midpoint(self, neutral_genome):
        for name, expr in TRAIT_EXPRESSIONS.items():
            expected = expr.min_val + (expr.max_val - expr.min_val) * sigmoid(expr.bias)
            assert expr.express(neutral_genome) == pytest.approx(expected), name
            assert expr.midpoint() == pytest.approx(expected), name

    def test_cached_traits_match_expression(self, rng):
        g = Genome.random(rng)
        traits = CachedTraits.from_genome(g)
        for name, expr in TRAIT_EXPRESSIONS.items():
            assert getattr(traits, name) == pytest.approx(expr.express(g))
        assert set(traits.to_dict()) == set(TRAIT_EXPRESSIONS)
