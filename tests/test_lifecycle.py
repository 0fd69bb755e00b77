"""
Unit tests for the lifecycle systems.

Tests cover:
- Organism arena handles
- Metabolism drain and energy bounds
- Movement smoothing, damping and world bounds
- Eating per organism type and cell pressure
- Aging and cooldowns
- Reproduction eligibility, energy accounting and offspring placement
- Death removal from the population and spatial index
"""

import pytest

from ecosim.behavior_state import BehaviorState
from ecosim.genetics import Genome
from ecosim.lifecycle import (
    clutch_size, find_mate, handle_death, handle_eating, handle_reproduction, offspring_energy,
    rebuild_spatial_index, reproduction_cooldown_ticks, update_age, update_metabolism,
    update_movement,
)
from ecosim.organism import Handle, OrganismType
from ecosim.resources import ResourceType
from ecosim.tuning import EcosystemTuning

from conftest import make_organism


def always_reproduce(**overrides) -> EcosystemTuning:
    values = dict(reproduction_chance=1.0, sexual_reproduction_chance=0.0)
    values.update(overrides)
    return EcosystemTuning(**values)


# ---------------------------------------------------------------------------
# Arena
# ---------------------------------------------------------------------------

class TestArena:
    def test_stale_handle_resolves_to_none(self, arena):
        first = make_organism(arena)
        handle = first.id
        arena.remove(handle)
        assert arena.get(handle) is None
        assert not first.alive

        second = make_organism(arena)
        assert second.id.index == handle.index
        assert second.id.generation == handle.generation + 1
        assert arena.get(handle) is None
        assert arena.get(second.id) is second

    def test_len_and_iteration(self, arena):
        organisms = [make_organism(arena, x=float(i)) for i in range(5)]
        arena.remove(organisms[2].id)
        assert len(arena) == 4
        assert [o.x for o in arena] == [0.0, 1.0, 3.0, 4.0]
        assert Handle(99, 0) not in arena


# ---------------------------------------------------------------------------
# Metabolism
# ---------------------------------------------------------------------------

class TestMetabolism:
    def test_drain_formula(self, arena):
        o = make_organism(arena, energy=50.0)
        o.vx, o.vy = 3.0, 4.0
        expected = (o.traits.metabolism_rate * o.size + 5.0 * o.traits.movement_cost) * 0.5
        update_metabolism(arena, 0.5)
        assert o.energy == pytest.approx(50.0 - expected)

    def test_floored_at_zero(self, arena):
        o = make_organism(arena, energy=0.001)
        o.vx = 1000.0
        update_metabolism(arena, 10.0)
        assert o.energy == 0.0


# ---------------------------------------------------------------------------
# Movement
# ---------------------------------------------------------------------------

class TestMovement:
    def test_velocity_smoothed_toward_desired(self, arena):
        o = make_organism(arena)
        o.behavior.state = BehaviorState.CHASING
        o.behavior.target_position = (100.0, 0.0)
        update_movement(arena, 0.1, 0.0)
        assert o.vx == pytest.approx(o.traits.speed * 0.3)
        assert o.x == pytest.approx(o.vx * 0.1)

    def test_idle_states_are_damped(self, arena):
        o = make_organism(arena)
        o.behavior.state = BehaviorState.RESTING
        o.vx = 10.0
        update_movement(arena, 0.0, 0.0)
        assert o.vx == pytest.approx(10.0 * 0.7 * 0.98)

    def test_position_clamped_to_bound(self, arena):
        o = make_organism(arena, x=199.0, y=-199.0)
        o.behavior.state = BehaviorState.MIGRATING
        o.behavior.migration_target = (1000.0, -1000.0)
        for _ in range(100):
            update_movement(arena, 1.0, 0.0, EcosystemTuning(world_bound=200.0))
            assert -200.0 <= o.x <= 200.0
            assert -200.0 <= o.y <= 200.0
        assert o.x == 200.0
        assert o.y == -200.0

    def test_bound_read_from_tuning_each_call(self, arena):
        o = make_organism(arena, x=49.0)
        o.behavior.state = BehaviorState.MIGRATING
        o.behavior.migration_target = (1000.0, 0.0)
        narrow = EcosystemTuning(world_bound=50.0)
        for _ in range(20):
            update_movement(arena, 1.0, 0.0, narrow)
        assert o.x == 50.0

        narrow.world_bound = 60.0
        for _ in range(20):
            update_movement(arena, 1.0, 0.0, narrow)
        assert o.x == 60.0

        for _ in range(100):
            update_movement(arena, 1.0, 0.0)
        assert o.x == 200.0

    def test_dead_organism_stops(self, arena):
        o = make_organism(arena, energy=0.0)
        o.vx, o.vy = 5.0, 5.0
        update_movement(arena, 1.0, 0.0)
        assert (o.vx, o.vy) == (0.0, 0.0)
        assert (o.x, o.y) == (0.0, 0.0)


# ---------------------------------------------------------------------------
# Eating
# ---------------------------------------------------------------------------

class TestEating:
    def test_only_eating_state_consumes(self, arena, empty_world):
        o = make_organism(arena, OrganismType.CONSUMER, 1.0, 1.0, energy=10.0)
        empty_world.set_resource(1.0, 1.0, ResourceType.PLANT, 1.0)
        handle_eating(arena, empty_world, 0.1)
        assert o.energy == 10.0
        assert empty_world.get_resource(1.0, 1.0, ResourceType.PLANT) == 1.0

    def test_consumer_gains_from_plant_and_prey(self, arena, empty_world):
        o = make_organism(arena, OrganismType.CONSUMER, 1.0, 1.0, energy=10.0)
        o.behavior.state = BehaviorState.EATING
        empty_world.set_resource(1.0, 1.0, ResourceType.PLANT, 1.0)
        empty_world.set_resource(1.0, 1.0, ResourceType.PREY, 0.2)
        handle_eating(arena, empty_world, 0.1)

        # 0.5 plant available at rate 5*0.1, prey limited to 0.2, weighted 2x
        assert o.energy == pytest.approx(10.0 + (0.5 + 0.2 * 2.0) * 0.3)
        assert empty_world.get_resource(1.0, 1.0, ResourceType.PLANT) == pytest.approx(0.5)
        assert empty_world.get_resource(1.0, 1.0, ResourceType.PREY) == 0.0
        cell = empty_world.get_cell(1.0, 1.0)
        assert cell.resource_pressure[ResourceType.PLANT] == pytest.approx(0.5)
        assert cell.resource_pressure[ResourceType.PREY] == pytest.approx(0.2)

    def test_decomposer_half_efficiency(self, arena, empty_world):
        o = make_organism(arena, OrganismType.DECOMPOSER, 1.0, 1.0, energy=10.0)
        o.behavior.state = BehaviorState.EATING
        empty_world.set_resource(1.0, 1.0, ResourceType.DETRITUS, 1.0)
        empty_world.set_resource(1.0, 1.0, ResourceType.PLANT, 1.0)
        handle_eating(arena, empty_world, 0.1)
        assert o.energy == pytest.approx(10.0 + 0.5 * 0.3 * 0.5)
        assert empty_world.get_resource(1.0, 1.0, ResourceType.PLANT) == 1.0

    def test_producer_weights(self, arena, empty_world):
        o = make_organism(arena, OrganismType.PRODUCER, 1.0, 1.0, energy=10.0)
        o.behavior.state = BehaviorState.EATING
        for rt in (ResourceType.SUNLIGHT, ResourceType.WATER, ResourceType.MINERAL):
            empty_world.set_resource(1.0, 1.0, rt, 1.0)
        handle_eating(arena, empty_world, 0.1)
        assert o.energy == pytest.approx(10.0 + (0.5 + 0.25 + 0.1) * 0.3)

    def test_energy_capped_at_max(self, arena, empty_world):
        o = make_organism(arena, OrganismType.PRODUCER, 1.0, 1.0)
        o.behavior.state = BehaviorState.EATING
        empty_world.set_resource(1.0, 1.0, ResourceType.SUNLIGHT, 1.0)
        handle_eating(arena, empty_world, 1.0)
        assert o.energy == o.max_energy


# ---------------------------------------------------------------------------
# Aging
# ---------------------------------------------------------------------------

class TestAging:
    def test_age_and_cooldown(self, arena):
        o = make_organism(arena, cooldown=2)
        for _ in range(3):
            update_age(arena)
        assert o.age == 3
        assert o.reproduction_cooldown == 0


# ---------------------------------------------------------------------------
# Reproduction
# ---------------------------------------------------------------------------

class TestReproduction:
    def test_helpers(self):
        tuning = EcosystemTuning()
        assert clutch_size(2.5, tuning) == 3
        assert clutch_size(0.2, tuning) == 1
        assert clutch_size(40.0, tuning) == 6
        assert reproduction_cooldown_ticks(100.0, tuning) == 350
        assert reproduction_cooldown_ticks(5000.0, tuning) == 2400
        assert offspring_energy(100.0, 0.3, 2) == pytest.approx(30.0)
        assert offspring_energy(100.0, 0.6, 4) == pytest.approx(25.0)

    def test_cooldown_blocks(self, arena, index, rng):
        make_organism(arena, cooldown=5)
        assert handle_reproduction(arena, index, always_reproduce(), rng) == []

    def test_low_energy_blocks(self, arena, index, rng):
        make_organism(arena, energy=10.0)
        assert handle_reproduction(arena, index, always_reproduce(), rng) == []

    def test_asexual_energy_accounting(self, arena, index, rng):
        parent = make_organism(arena, x=10.0, y=10.0, species_id=3)
        start = parent.energy
        clutch = clutch_size(parent.traits.clutch_size)
        share = offspring_energy(start, parent.traits.offspring_energy_share, clutch)

        rebuild_spatial_index(arena, index)
        born = handle_reproduction(arena, index, always_reproduce(), rng)

        assert len(born) == clutch
        assert parent.energy == pytest.approx(start - share * clutch)
        assert parent.reproduction_cooldown == reproduction_cooldown_ticks(
            parent.traits.reproduction_cooldown)
        for child in born:
            assert child.id in arena
            assert child.species_id == 3
            assert child.organism_type == parent.organism_type
            assert abs(child.x - 10.0) <= 5.0 and abs(child.y - 10.0) <= 5.0
            expected = min(max(share * 0.9, child.max_energy * 0.15), child.max_energy)
            assert child.energy == pytest.approx(expected)
            assert 0.0 <= child.energy <= child.max_energy

    def test_newborn_does_not_reproduce_same_tick(self, arena, index, rng):
        make_organism(arena)
        born = handle_reproduction(arena, index, always_reproduce(), rng)
        assert len(arena) == 1 + len(born)
        for child in born:
            assert child.reproduction_cooldown > 0

    def test_sexual_uses_both_parents(self, arena, index, rng):
        a = make_organism(arena, genome=Genome.uniform(0.0), x=0.0)
        b = make_organism(arena, genome=Genome.uniform(1.0), x=1.0)
        b.reproduction_cooldown = 100
        rebuild_spatial_index(arena, index)
        tuning = always_reproduce(sexual_reproduction_chance=1.0)
        born = handle_reproduction(arena, index, tuning, rng)
        assert born
        # Crossover of all-0 and all-1 parents mixes genes from both
        mixed = [c for c in born if 0.0 < c.genome.genes.mean() < 1.0]
        assert mixed

    def test_mate_is_nearest_living_same_species(self, arena, index):
        parent = make_organism(arena, species_id=1)
        make_organism(arena, x=1.0, species_id=2)
        make_organism(arena, x=2.0, species_id=1, energy=0.0)
        partner = make_organism(arena, x=4.0, species_id=1)
        make_organism(arena, x=6.0, species_id=1)
        rebuild_spatial_index(arena, index)
        assert find_mate(parent, arena, index) is partner

    def test_no_mate_out_of_range(self, arena, index):
        parent = make_organism(arena)
        make_organism(arena, x=parent.traits.sensory_range + 1.0)
        rebuild_spatial_index(arena, index)
        assert find_mate(parent, arena, index) is None

    def test_offspring_clamped_to_world(self, arena, index, rng):
        make_organism(arena, x=200.0, y=-200.0)
        born = handle_reproduction(arena, index, always_reproduce(), rng)
        for child in born:
            assert -200.0 <= child.x <= 200.0
            assert -200.0 <= child.y <= 200.0

    def test_zero_chance_never_reproduces(self, arena, index, rng):
        make_organism(arena)
        assert handle_reproduction(arena, index, always_reproduce(reproduction_chance=0.0), rng) == []


# ---------------------------------------------------------------------------
# Death
# ---------------------------------------------------------------------------

class TestDeath:
    def test_zero_energy_removed_same_pass(self, arena, index):
        doomed = make_organism(arena, x=1.0, y=1.0)
        survivor = make_organism(arena, x=2.0, y=2.0)
        doomed.set_energy(0.0)
        rebuild_spatial_index(arena, index)
        assert doomed.id in arena
        assert doomed.id in index

        removed = handle_death(arena, index)

        assert removed == [doomed.id]
        assert doomed.id not in arena
        assert doomed.id not in index
        assert doomed.id not in index.query_radius(1.0, 1.0, 50.0)
        assert survivor.id in arena

    def test_energy_bounds_through_all_passes(self, arena, index, empty_world, rng):
        for i in range(20):
            o = make_organism(arena, list(OrganismType)[i % 3],
                              x=float(i), y=float(-i), energy=float(i))
            o.vx = float(i)
        empty_world.set_resource(5.0, -5.0, ResourceType.PLANT, 1.0)
        for _ in range(20):
            rebuild_spatial_index(arena, index)
            update_metabolism(arena, 0.5)
            update_movement(arena, 0.5, 0.0)
            handle_eating(arena, empty_world, 0.5)
            update_age(arena)
            handle_reproduction(arena, index, always_reproduce(), rng)
            for o in arena:
                assert 0.0 <= o.energy <= o.max_energy
            handle_death(arena, index)
            assert all(o.energy > 0.0 for o in arena)
