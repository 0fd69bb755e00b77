"""
Behavioral State - Persistent per-organism behavior record

This module provides:
1. The seven behavioral modes
2. A behavior record that persists across ticks (state, targets, time in state)
3. Rolling hunger memory and threat memory (hysteresis for decisions)

State changes go through BehaviorRecord.transition(), which enforces the
rule that switching state drops the old targets.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional, Tuple

MAX_HUNGER_MEMORY = 2.0
MAX_THREAT_TIMER = 10.0
HUNGER_DECAY_FLOOR = 0.65
HUNGER_DECAY_PER_SECOND = 0.35

Vec2 = Tuple[float, float]


class BehaviorState(Enum):
    """Behavioral modes. Every state is re-evaluated each tick."""
    WANDERING = auto()      # Default: smooth random walk
    CHASING = auto()        # Moving toward food or prey
    EATING = auto()         # Consuming in place (or attacking adjacent prey)
    FLEEING = auto()        # Running from a predator or a remembered threat
    MATING = auto()         # Approaching a mate
    RESTING = auto()        # Energy critically low, holding still
    MIGRATING = auto()      # Travelling toward a distant resource-rich spot


@dataclass
class BehaviorRecord:
    state: BehaviorState = BehaviorState.WANDERING
    target_id: Optional[Any] = None
    target_position: Optional[Vec2] = None
    state_time: float = 0.0

    # Memories
    hunger_memory: float = 0.0
    threat_timer: float = 0.0
    last_threat_position: Optional[Vec2] = None
    migration_target: Optional[Vec2] = None

    def transition(self, new_state: BehaviorState) -> bool:
        """
        Switch state. Returns True if the state actually changed.

        A change resets time-in-state and clears the target; the migration
        target survives only when the new state is MIGRATING.
        """
        if new_state == self.state:
            return False
        self.state = new_state
        self.state_time = 0.0
        self.target_id = None
        self.target_position = None
        if new_state != BehaviorState.MIGRATING:
            self.migration_target = None
        return True

    def update_hunger(self, energy_ratio: float, rate: float, dt: float):
        """Accumulate hunger while energy is short, then decay toward zero."""
        energy_ratio = min(max(energy_ratio, 0.0), 1.0)
        self.hunger_memory += (1.0 - energy_ratio) * rate * dt
        self.hunger_memory *= max(HUNGER_DECAY_FLOOR, 1.0 - HUNGER_DECAY_PER_SECOND * dt)
        self.hunger_memory = min(max(self.hunger_memory, 0.0), MAX_HUNGER_MEMORY)

    def update_threat(self, predator_position: Optional[Vec2], decay_rate: float, dt: float):
        """Charge the threat timer while a predator is seen; drain it otherwise."""
        if predator_position is not None:
            self.threat_timer = min(self.threat_timer + decay_rate, MAX_THREAT_TIMER)
            self.last_threat_position = predator_position
            return
        self.threat_timer = max(self.threat_timer - dt * decay_rate, 0.0)
        if self.threat_timer <= 0.0:
            self.last_threat_position = None

    @property
    def threat_active(self) -> bool:
        return self.threat_timer > 0.0
