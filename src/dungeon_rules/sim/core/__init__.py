"""Core simulation value types and the seeded RNG."""

from dungeon_rules.sim.core.entities import (
    STANCE_MODIFIERS,
    ActiveCombo,
    Boss,
    Combatant,
    ComboTracker,
    Enemy,
    Player,
    ResourcePool,
    Stance,
    StanceModifiers,
)
from dungeon_rules.sim.core.rng import GameRNG, RandomSource

__all__ = [
    "STANCE_MODIFIERS",
    "ActiveCombo",
    "Boss",
    "Combatant",
    "ComboTracker",
    "Enemy",
    "GameRNG",
    "Player",
    "RandomSource",
    "ResourcePool",
    "Stance",
    "StanceModifiers",
]
