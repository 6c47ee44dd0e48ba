"""Status effect definitions -- buffs, debuffs and neutral conditions on combatants."""

from __future__ import annotations

import math
import uuid
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EffectType(str, Enum):
    """Broad polarity of an effect."""

    BUFF = "buff"
    DEBUFF = "debuff"
    NEUTRAL = "neutral"


class EffectCategory(str, Enum):
    """What an effect does while it is active."""

    DAMAGE_OVER_TIME = "damage_over_time"
    """Deals ``health_regen`` damage on turn_start / turn_end."""

    HEAL_OVER_TIME = "heal_over_time"
    """Heals ``health_regen`` on turn_start / turn_end."""

    STAT_MODIFIER = "stat_modifier"
    DAMAGE_MODIFIER = "damage_modifier"
    RESISTANCE = "resistance"
    VULNERABILITY = "vulnerability"
    CONTROL = "control"
    UTILITY = "utility"
    TRANSFORMATION = "transformation"
    TRIGGERED = "triggered"
    """Mostly exists to carry ``triggered_effects``."""

    AURA = "aura"
    COMPOUND = "compound"


class DurationType(str, Enum):
    """Which game event consumes one unit of an effect's duration."""

    TURNS = "turns"
    """Ticks down on turn_end."""

    ACTIONS = "actions"
    """Ticks down on on_attack, on_defend and on_heal."""

    ROOMS = "rooms"
    """Ticks down on on_room_enter."""

    HITS = "hits"
    """Ticks down on on_damage_taken and on_damage_dealt."""

    PERMANENT = "permanent"
    """Never ticks down; must be cleansed."""

    CONDITIONAL = "conditional"
    """Never ticks down on its own; removed when the caller decides the
    condition is met."""


class StackBehavior(str, Enum):
    """How re-applying an effect of the same name interacts with the existing one."""

    NONE = "none"
    """Refresh the duration."""

    DURATION = "duration"
    """Add the new duration to the remaining one."""

    INTENSITY = "intensity"
    """Add a stack (up to ``max_stacks``); stacks scale the effect's power."""

    INDEPENDENT = "independent"
    """Keep a separate instance."""


class EffectTrigger(str, Enum):
    """Named hooks an effect can respond to."""

    PASSIVE = "passive"
    TURN_START = "turn_start"
    TURN_END = "turn_end"
    ON_ATTACK = "on_attack"
    ON_DEFEND = "on_defend"
    ON_DAMAGE_TAKEN = "on_damage_taken"
    ON_DAMAGE_DEALT = "on_damage_dealt"
    ON_KILL = "on_kill"
    ON_HEAL = "on_heal"
    ON_ROOM_ENTER = "on_room_enter"
    ON_COMBAT_START = "on_combat_start"
    ON_COMBAT_END = "on_combat_end"
    ON_CRITICAL_HIT = "on_critical_hit"


class SourceType(str, Enum):
    """Where an effect came from."""

    ABILITY = "ability"
    SPELL = "spell"
    ITEM = "item"
    ENEMY = "enemy"
    ENVIRONMENT = "environment"
    SHRINE = "shrine"
    CURSE = "curse"
    COMBO = "combo"
    AI_GENERATED = "ai_generated"


TriggeredAction = Literal["remove_self", "spread", "explode"]


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------

# Keys combined by multiplication rather than addition.
MULTIPLIER_KEYS = frozenset({
    "gold_multiplier",
    "exp_multiplier",
    "damage_multiplier",
    "damage_taken",
})


class EffectModifiers(BaseModel):
    """Sparse stat modifiers.  Unset keys are ``None`` and contribute nothing."""

    model_config = ConfigDict(frozen=True)

    attack: float | None = None
    defense: float | None = None
    max_health: float | None = None
    health_regen: float | None = None
    crit_chance: float | None = None
    crit_damage: float | None = None
    dodge_chance: float | None = None
    gold_multiplier: float | None = None
    exp_multiplier: float | None = None
    damage_multiplier: float | None = None
    damage_taken: float | None = None

    def values(self) -> dict[str, float]:
        """Return only the keys that are set."""
        return self.model_dump(exclude_none=True)

    def scaled(self, factor: float) -> EffectModifiers:
        """Return a copy with every set value multiplied by *factor* and floored."""
        return EffectModifiers(
            **{key: math.floor(value * factor) for key, value in self.values().items()}
        )


# ---------------------------------------------------------------------------
# Triggered sub-effects
# ---------------------------------------------------------------------------

class TriggeredEffect(BaseModel):
    """A probabilistic reaction carried by a status effect."""

    model_config = ConfigDict(frozen=True)

    trigger: EffectTrigger
    chance: float = Field(default=1.0, ge=0.0, le=1.0)
    effect: Union[TriggeredAction, StatusEffect]
    """Either a status template spawned on success or one of the built-in
    actions ``remove_self``, ``spread`` or ``explode``."""

    target_type: str = "self"
    narrative: str = ""


# ---------------------------------------------------------------------------
# StatusEffect
# ---------------------------------------------------------------------------

def new_effect_id() -> str:
    return uuid.uuid4().hex


class StatusEffect(BaseModel):
    """A status effect instance on a combatant.

    Instances are immutable; stacking, ticking and combo resolution all
    return new instances via ``model_copy(update=...)``.

    ``duration_remaining`` defaults to ``duration_value`` and ``cleansable``
    defaults to ``True`` for debuffs only.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_effect_id)
    name: str
    description: str = ""
    effect_type: EffectType
    entity_type: Literal["effect", "curse", "blessing"] = "effect"
    category: EffectCategory = EffectCategory.STAT_MODIFIER

    duration_type: DurationType = DurationType.TURNS
    duration_value: int = 3
    """Initial duration.  ``-1`` means permanent."""

    duration_remaining: int = 3
    condition: str | None = None

    triggers: tuple[EffectTrigger, ...] = (EffectTrigger.PASSIVE,)

    stack_behavior: StackBehavior = StackBehavior.NONE
    current_stacks: int = Field(default=1, ge=1)
    max_stacks: int = Field(default=1, ge=1)
    stack_modifier: float = 1.0
    """Per-stack power multiplier for intensity stacking."""

    modifiers: EffectModifiers = Field(default_factory=EffectModifiers)

    apply_narration: str | None = None
    tick_narration: str | None = None
    expire_narration: str | None = None

    power_level: int = 3
    rarity: str = "common"
    source_type: SourceType = SourceType.AI_GENERATED
    source_id: str | None = None
    source_name: str | None = None
    animation: str | None = None

    triggered_effects: tuple[TriggeredEffect, ...] = ()
    cleansable: bool = True

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("duration_remaining") is None:
            data["duration_remaining"] = data.get("duration_value", 3)
        if data.get("cleansable") is None:
            data["cleansable"] = EffectType(data.get("effect_type", "neutral")) is EffectType.DEBUFF
        return data

    @model_validator(mode="after")
    def _check_stacks(self) -> StatusEffect:
        if self.current_stacks > self.max_stacks:
            raise ValueError(
                f"current_stacks ({self.current_stacks}) exceeds "
                f"max_stacks ({self.max_stacks}) for {self.name!r}"
            )
        return self

    # -- derived -------------------------------------------------------------

    @property
    def is_permanent(self) -> bool:
        return (
            self.duration_type is DurationType.PERMANENT
            or self.duration_remaining == -1
        )

    @property
    def stack_multiplier(self) -> float:
        """Power multiplier from intensity stacks: ``1 + (stacks-1) * (mod-1)``."""
        if self.stack_behavior is not StackBehavior.INTENSITY:
            return 1.0
        return 1 + (self.current_stacks - 1) * (self.stack_modifier - 1)

    def listens_to(self, trigger: EffectTrigger) -> bool:
        return trigger in self.triggers or EffectTrigger.PASSIVE in self.triggers

    # -- builders ------------------------------------------------------------

    def instantiate(self, **overrides: Any) -> StatusEffect:
        """Return a fresh instance of this effect used as a template.

        The copy gets a new id and a full duration.
        """
        update: dict[str, Any] = {
            "id": new_effect_id(),
            "duration_remaining": self.duration_value,
        }
        update.update(overrides)
        return self.model_copy(update=update)


TriggeredEffect.model_rebuild()
