"""Combatant value types for the dungeon rules engine.

All records are frozen Pydantic v2 models.  Mutating operations return a
new instance built with ``model_copy(update=...)`` and never share a
mutable collection with the previous state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from dungeon_rules.defs.abilities import (
    AIPattern,
    Ability,
    DamageType,
    EnemyAbility,
    ResourceType,
    SustainedAbility,
)
from dungeon_rules.defs.status_effects import StatusEffect


# ---------------------------------------------------------------------------
# Stance
# ---------------------------------------------------------------------------

class Stance(str, Enum):
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"


@dataclass(frozen=True)
class StanceModifiers:
    attack: float
    defense: float
    resource_cost: float


STANCE_MODIFIERS: dict[Stance, StanceModifiers] = {
    Stance.BALANCED: StanceModifiers(attack=1.0, defense=1.0, resource_cost=1.0),
    Stance.AGGRESSIVE: StanceModifiers(attack=1.3, defense=0.7, resource_cost=0.8),
    Stance.DEFENSIVE: StanceModifiers(attack=0.7, defense=1.4, resource_cost=1.2),
}


# ---------------------------------------------------------------------------
# Small value types
# ---------------------------------------------------------------------------

class ResourcePool(BaseModel):
    """A class resource (mana, rage, ...)."""

    model_config = ConfigDict(frozen=True)

    type: ResourceType
    current: int
    max: int

    def spend(self, amount: int) -> ResourcePool:
        return self.model_copy(update={"current": max(0, self.current - amount)})

    def restore(self, amount: int, cap: int | None = None) -> ResourcePool:
        limit = self.max if cap is None else cap
        return self.model_copy(update={"current": max(0, min(limit, self.current + amount))})


class ActiveCombo(BaseModel):
    model_config = ConfigDict(frozen=True)

    combo_id: str
    name: str
    bonus: str
    turns_remaining: int


class ComboTracker(BaseModel):
    """Rolling window of the last three action tags plus the active combo."""

    model_config = ConfigDict(frozen=True)

    last_abilities: tuple[str, ...] = Field(default=(), max_length=3)
    active_combo: ActiveCombo | None = None


# ---------------------------------------------------------------------------
# Combatants
# ---------------------------------------------------------------------------

class Combatant(BaseModel):
    """Shared stat shape for players, enemies and bosses."""

    model_config = ConfigDict(frozen=True)

    name: str
    health: int
    max_health: int
    attack: int = 0
    defense: int = 0
    crit_chance: float = 0.05
    crit_damage: float = 0.5
    dodge_chance: float = 0.0
    weakness: DamageType | None = None
    resistance: DamageType | None = None
    stance: Stance = Stance.BALANCED
    active_effects: tuple[StatusEffect, ...] = ()

    # -- queries -------------------------------------------------------------

    @property
    def is_dead(self) -> bool:
        return self.health <= 0

    @property
    def health_fraction(self) -> float:
        if self.max_health <= 0:
            return 0.0
        return self.health / self.max_health

    @property
    def missing_health(self) -> int:
        return max(0, self.max_health - self.health)

    # -- pure updates --------------------------------------------------------

    def take_damage(self, amount: int) -> Combatant:
        """Return a copy with *amount* HP removed (never below 0)."""
        if amount <= 0:
            return self
        return self.model_copy(update={"health": max(0, self.health - amount)})

    def heal(self, amount: int) -> Combatant:
        """Return a copy healed by *amount*, capped at ``max_health``."""
        if amount <= 0:
            return self
        return self.model_copy(update={"health": min(self.max_health, self.health + amount)})

    def with_effects(self, effects: Iterable[StatusEffect]) -> Combatant:
        return self.model_copy(update={"active_effects": tuple(effects)})


class Player(Combatant):
    """The player character."""

    level: int = 1
    player_class: str = "warrior"
    combo: ComboTracker = Field(default_factory=ComboTracker)
    resources: ResourcePool | None = None
    abilities: tuple[Ability, ...] = ()
    sustained_abilities: tuple[SustainedAbility, ...] = ()
    ability_cooldowns: dict[str, int] = Field(default_factory=dict)
    """Maps ability id to turns remaining.  Zero entries are dropped."""

    def cooldown_for(self, ability_id: str) -> int:
        return self.ability_cooldowns.get(ability_id, 0)

    def with_cooldown(self, ability_id: str, turns: int) -> Player:
        cooldowns = dict(self.ability_cooldowns)
        if turns > 0:
            cooldowns[ability_id] = turns
        else:
            cooldowns.pop(ability_id, None)
        return self.model_copy(update={"ability_cooldowns": cooldowns})

    def tick_cooldowns(self) -> Player:
        cooldowns = {
            ability_id: turns - 1
            for ability_id, turns in self.ability_cooldowns.items()
            if turns > 1
        }
        return self.model_copy(update={"ability_cooldowns": cooldowns})


class Enemy(Combatant):
    """A single enemy."""

    enemy_id: str
    """Identifier that ties this instance back to its template."""

    level: int = 1
    abilities: tuple[EnemyAbility, ...] = ()
    ai_pattern: AIPattern = AIPattern.RANDOM


class Boss(Enemy):
    """An enemy with combat phases."""

    phase: int = 1
    max_phases: int = 1
