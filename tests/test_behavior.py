"""
Unit tests for sensing, decisions, memories and steering.

Tests cover:
- Predator / prey / mate classification
- Decision priorities (flee over mate, feed, rest, migrate, wander)
- Two-phase update: both partners of a pair pick each other
- State transitions clear targets
- Hunger and threat memory bounds
- Desired velocity per state
"""

import math

import numpy as np
import pytest

from ecosim.behavior import (
    STATE_SPEED, SensoryData, calculate_behavior_velocity, collect_sensory_data,
    decide_behavior, flee_threshold, hunger_barrier, is_predator_of, update_behavior,
)
from ecosim.behavior_state import (
    MAX_HUNGER_MEMORY, MAX_THREAT_TIMER, BehaviorRecord, BehaviorState,
)
from ecosim.genetics import Genome
from ecosim.lifecycle import rebuild_spatial_index
from ecosim.organism import OrganismType
from ecosim.resources import ResourceType

from conftest import make_organism


def sense(organism, arena, index, world):
    rebuild_spatial_index(arena, index)
    return collect_sensory_data(organism, arena, index, world)


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

class TestRelationships:
    def test_consumers_eat_other_types(self):
        for prey_type in (OrganismType.PRODUCER, OrganismType.DECOMPOSER):
            assert is_predator_of(OrganismType.CONSUMER, prey_type, 0.5, 3.0)

    def test_consumer_needs_size_advantage(self):
        assert is_predator_of(OrganismType.CONSUMER, OrganismType.CONSUMER, 1.6, 1.0)
        assert not is_predator_of(OrganismType.CONSUMER, OrganismType.CONSUMER, 1.5, 1.0)

    def test_non_consumers_never_hunt(self):
        for kind in (OrganismType.PRODUCER, OrganismType.DECOMPOSER):
            assert not is_predator_of(kind, OrganismType.PRODUCER, 3.0, 0.3)

    def test_sensory_classifies_neighbours(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0)
        hunter = make_organism(arena, OrganismType.CONSUMER, 4.0, 0.0)
        partner = make_organism(arena, OrganismType.PRODUCER, 0.0, 3.0)
        stranger = make_organism(arena, OrganismType.PRODUCER, 0.0, -3.0, species_id=9)
        sensory = sense(me, arena, index, empty_world)

        by_id = {n.id: n for n in sensory.neighbors}
        assert me.id not in by_id
        assert by_id[hunter.id].is_predator
        assert by_id[partner.id].is_mate
        assert not by_id[stranger.id].is_mate
        assert sensory.nearest_predator.id == hunter.id

    def test_resource_scan_sorted_and_significant(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.PRODUCER, 0.5, 0.5)
        empty_world.get_or_create_chunk(0, 0)
        empty_world.set_resource(3.0, 0.0, ResourceType.WATER, 0.9)
        empty_world.set_resource(1.0, 0.0, ResourceType.SUNLIGHT, 0.4)
        empty_world.set_resource(2.0, 0.0, ResourceType.PLANT, 0.05)
        sensory = sense(me, arena, index, empty_world)

        readings = sensory.nearby_resources
        assert [r.resource_type for r in readings] == [ResourceType.SUNLIGHT, ResourceType.WATER]
        assert sensory.richest_resource.resource_type == ResourceType.WATER
        assert sensory.richest_resource.value == pytest.approx(0.9)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------

class TestDecisions:
    def test_flee_preempts_mate(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0)
        make_organism(arena, OrganismType.PRODUCER, 2.0, 0.0)
        hunter = make_organism(arena, OrganismType.CONSUMER, 5.0, 0.0)
        assert me.energy_ratio() >= me.traits.reproduction_threshold

        decision = decide_behavior(me, sense(me, arena, index, empty_world))
        assert decision.state == BehaviorState.FLEEING
        assert decision.target_id == hunter.id

    def test_distant_predator_ignored(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0)
        make_organism(arena, OrganismType.CONSUMER, 25.0, 0.0)
        threshold = flee_threshold(me.traits.boldness, me.traits.risk_tolerance, False)
        assert threshold < 25.0
        decision = decide_behavior(me, sense(me, arena, index, empty_world))
        assert decision.state != BehaviorState.FLEEING

    def test_remembered_threat_keeps_fleeing(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0)
        me.behavior.threat_timer = 1.0
        me.behavior.last_threat_position = (3.0, 3.0)
        decision = decide_behavior(me, sense(me, arena, index, empty_world))
        assert decision.state == BehaviorState.FLEEING
        assert decision.target_position == (3.0, 3.0)

    def test_hungry_organism_eats_own_cell(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.DECOMPOSER, 10.5, 10.5, energy=5.0)
        empty_world.set_resource(10.0, 10.0, ResourceType.DETRITUS, 0.8)
        decision = decide_behavior(me, sense(me, arena, index, empty_world))
        assert decision.state == BehaviorState.EATING

    def test_hungry_organism_chases_distant_food(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.DECOMPOSER, 10.5, 10.5, energy=5.0)
        empty_world.set_resource(16.0, 10.0, ResourceType.DETRITUS, 0.8)
        decision = decide_behavior(me, sense(me, arena, index, empty_world))
        assert decision.state == BehaviorState.CHASING
        assert decision.target_position == pytest.approx((16.5, 10.5))

    def test_eating_commitment_lasts_two_seconds(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.DECOMPOSER, 10.5, 10.5, energy=5.0)
        empty_world.set_resource(16.0, 10.0, ResourceType.DETRITUS, 0.8)
        me.behavior.state = BehaviorState.EATING
        me.behavior.state_time = 1.9
        assert decide_behavior(me, sense(me, arena, index, empty_world)).state == BehaviorState.EATING
        me.behavior.state_time = 2.0
        assert decide_behavior(me, sense(me, arena, index, empty_world)).state == BehaviorState.CHASING

    def test_state_time_includes_current_tick(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.DECOMPOSER, 10.5, 10.5, energy=5.0)
        empty_world.set_resource(10.0, 10.0, ResourceType.DETRITUS, 0.8)
        rebuild_spatial_index(arena, index)
        update_behavior(arena, empty_world, index, dt=0.5)
        assert me.behavior.state == BehaviorState.EATING
        assert me.behavior.state_time == pytest.approx(0.5)
        update_behavior(arena, empty_world, index, dt=0.5)
        assert me.behavior.state_time == pytest.approx(1.0)

    def test_low_energy_rests_without_food(self, arena, index, empty_world):
        me = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0, energy=1.0)
        decision = decide_behavior(me, sense(me, arena, index, empty_world))
        assert decision.state == BehaviorState.RESTING

    def test_explorer_migrates_toward_heading(self, arena, index, empty_world):
        explorer = Genome([0.5] * 13 + [1.0])  # exploration locus maxed
        me = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0, genome=explorer)
        assert me.traits.exploration_drive > 0.4
        decision = decide_behavior(me, sense(me, arena, index, empty_world), elapsed=3.0)
        assert decision.state == BehaviorState.MIGRATING
        tx, ty = decision.migration_target
        assert math.hypot(tx, ty) == pytest.approx(me.traits.sensory_range * 2.0)

    def test_default_is_wandering(self, arena, index, empty_world):
        homebody = Genome([0.5] * 13 + [0.0])
        me = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0, genome=homebody)
        assert me.traits.exploration_drive < 0.4
        decision = decide_behavior(me, sense(me, arena, index, empty_world))
        assert decision.state == BehaviorState.WANDERING

    def test_mating_pair_targets_each_other(self, arena, index, empty_world):
        a = make_organism(arena, OrganismType.PRODUCER, 0.0, 0.0)
        b = make_organism(arena, OrganismType.PRODUCER, 3.0, 0.0)
        rebuild_spatial_index(arena, index)
        update_behavior(arena, empty_world, index, dt=1.0 / 60.0)

        assert a.behavior.state == BehaviorState.MATING
        assert b.behavior.state == BehaviorState.MATING
        assert a.behavior.target_id == b.id
        assert b.behavior.target_id == a.id

    def test_hunger_barrier_clamped(self):
        assert hunger_barrier(0.0) == pytest.approx(0.3)
        assert hunger_barrier(1.0) == pytest.approx(0.15)
        assert 0.1 <= hunger_barrier(10.0) <= 0.5


# ---------------------------------------------------------------------------
# Behavior record
# ---------------------------------------------------------------------------

class TestBehaviorRecord:
    def test_transition_clears_targets(self):
        record = BehaviorRecord(state=BehaviorState.CHASING, target_position=(1.0, 2.0),
                                state_time=4.0, migration_target=(9.0, 9.0))
        record.target_id = "prey"
        assert record.transition(BehaviorState.EATING)
        assert record.target_id is None
        assert record.target_position is None
        assert record.migration_target is None
        assert record.state_time == 0.0

    def test_same_state_keeps_targets(self):
        record = BehaviorRecord(state=BehaviorState.CHASING, target_position=(1.0, 2.0),
                                state_time=4.0)
        assert not record.transition(BehaviorState.CHASING)
        assert record.target_position == (1.0, 2.0)
        assert record.state_time == 4.0

    def test_migration_target_survives_entering_migration(self):
        record = BehaviorRecord(migration_target=(5.0, 5.0))
        record.transition(BehaviorState.MIGRATING)
        assert record.migration_target == (5.0, 5.0)

    def test_hunger_memory_bounded(self):
        record = BehaviorRecord()
        for _ in range(10_000):
            record.update_hunger(0.0, 0.5, 1.0)
            assert 0.0 <= record.hunger_memory <= MAX_HUNGER_MEMORY
        for _ in range(200):
            record.update_hunger(1.0, 0.5, 1.0)
        assert record.hunger_memory == pytest.approx(0.0, abs=1e-6)

    def test_threat_timer_bounded_and_clears(self):
        record = BehaviorRecord()
        for _ in range(100):
            record.update_threat((1.0, 1.0), 2.0, 0.1)
        assert record.threat_timer == MAX_THREAT_TIMER
        assert record.last_threat_position == (1.0, 1.0)
        for _ in range(100):
            record.update_threat(None, 2.0, 0.1)
        assert record.threat_timer == 0.0
        assert record.last_threat_position is None
        assert not record.threat_active


# ---------------------------------------------------------------------------
# Steering
# ---------------------------------------------------------------------------

class TestVelocity:
    def test_eating_and_resting_stand_still(self, arena):
        me = make_organism(arena)
        for state in (BehaviorState.EATING, BehaviorState.RESTING):
            me.behavior.state = state
            assert calculate_behavior_velocity(me, 1.0) == (0.0, 0.0)

    def test_chasing_moves_toward_target(self, arena):
        me = make_organism(arena)
        me.behavior.state = BehaviorState.CHASING
        me.behavior.target_position = (10.0, 0.0)
        vx, vy = calculate_behavior_velocity(me, 0.0)
        assert vx == pytest.approx(me.traits.speed)
        assert vy == pytest.approx(0.0)

    def test_fleeing_moves_away_faster(self, arena):
        me = make_organism(arena)
        me.behavior.state = BehaviorState.FLEEING
        me.behavior.target_position = (0.0, 5.0)
        vx, vy = calculate_behavior_velocity(me, 0.0)
        assert vy == pytest.approx(-me.traits.speed * STATE_SPEED[BehaviorState.FLEEING])
        assert vx == pytest.approx(0.0, abs=1e-9)

    def test_low_energy_speed_floor(self, arena):
        me = make_organism(arena, energy=0.01)
        me.behavior.state = BehaviorState.WANDERING
        speed = math.hypot(*calculate_behavior_velocity(me, 2.0))
        assert speed == pytest.approx(me.traits.speed * 0.3 * STATE_SPEED[BehaviorState.WANDERING])

    def test_mating_half_speed(self, arena):
        me = make_organism(arena)
        me.behavior.state = BehaviorState.MATING
        me.behavior.target_position = (0.0, -4.0)
        vx, vy = calculate_behavior_velocity(me, 0.0)
        assert vy == pytest.approx(-me.traits.speed * 0.5)
