"""Ability definitions -- basic, sustained (toggle) and spell variants.

``Ability`` is a tagged union discriminated on ``kind``; mechanics code
dispatches on the concrete class rather than probing for fields.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .status_effects import StatusEffect


class DamageType(str, Enum):
    PHYSICAL = "physical"
    FIRE = "fire"
    ICE = "ice"
    LIGHTNING = "lightning"
    SHADOW = "shadow"
    HOLY = "holy"
    POISON = "poison"
    ARCANE = "arcane"


class ResourceType(str, Enum):
    """Class resource pools."""

    MANA = "mana"
    RAGE = "rage"
    ENERGY = "energy"
    FOCUS = "focus"
    SOULS = "souls"
    FAITH = "faith"


class TargetType(str, Enum):
    SELF = "self"
    ENEMY = "enemy"
    ALL_ENEMIES = "all_enemies"
    ALLY = "ally"


class AIPattern(str, Enum):
    """Enemy action-selection policies."""

    RANDOM = "random"
    """Roll each ability's own ``chance`` in order; first success wins."""

    ABILITY_FOCUSED = "ability_focused"
    """Always use an available ability, chosen uniformly."""

    DEFENSIVE_UNTIL_LOW = "defensive_until_low"
    """Use abilities rarely (30%) until below 40% health, then often (80%)."""

    SMART = "smart"
    """Finisher when the player is low, debuff when the player is healthy."""


class StatScaling(BaseModel):
    """Adds ``floor(stat * ratio)`` to a base amount."""

    model_config = ConfigDict(frozen=True)

    stat: Literal["attack", "defense", "max_health", "level"] = "attack"
    ratio: float = 0.0


# ---------------------------------------------------------------------------
# Shared ability shape
# ---------------------------------------------------------------------------

class AbilityBase(BaseModel):
    """Fields every ability variant carries."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""

    damage_type: DamageType | None = None
    combo_tag: str | None = None
    """Tag pushed into the combo window.  Defaults to ``damage_type``."""

    resource_cost: int = 0
    resource_type: ResourceType = ResourceType.MANA
    cooldown: int = 0
    level_required: int = 1
    class_required: tuple[str, ...] = ()
    target_type: TargetType = TargetType.ENEMY

    base_damage: int = 0
    base_healing: int = 0
    damage_scaling: StatScaling | None = None
    healing_scaling: StatScaling | None = None
    applies_effects: tuple[StatusEffect, ...] = ()

    can_critical: bool = True
    ignores_defense: bool = False

    cast_narration: str | None = None
    hit_narration: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def tag(self) -> str | None:
        if self.combo_tag is not None:
            return self.combo_tag
        if self.damage_type is not None:
            return self.damage_type.value
        return None


class BasicAbility(AbilityBase):
    kind: Literal["basic"] = "basic"


# ---------------------------------------------------------------------------
# Sustained (toggle) abilities
# ---------------------------------------------------------------------------

class SustainedTickEffect(BaseModel):
    """Per-turn effect of an active sustained ability."""

    model_config = ConfigDict(frozen=True)

    damage: int = 0
    damage_type: DamageType | None = None
    healing: int = 0
    resource_drain: int = 0
    health_drain: int = 0
    target_type: TargetType = TargetType.SELF
    narration: str | None = None


class SustainedConfig(BaseModel):
    """Reservation and upkeep parameters of a sustained ability."""

    model_config = ConfigDict(frozen=True)

    resource_reserve: int = 0
    """Portion of the max resource pool withheld while active."""

    health_reserve: int = 0
    """Portion of max health withheld while active."""

    activation_cost: int = 0
    deactivation_cost: int = 0
    tick_effect: SustainedTickEffect | None = None
    constant_effect: StatusEffect | None = None
    incompatible_with: tuple[str, ...] = ()
    max_duration: int | None = None


class SustainedAbility(AbilityBase):
    kind: Literal["sustained"] = "sustained"
    target_type: TargetType = TargetType.SELF
    can_critical: bool = False

    sustained: SustainedConfig = Field(default_factory=SustainedConfig)
    is_active: bool = False
    turns_active: int = 0


# ---------------------------------------------------------------------------
# Spells
# ---------------------------------------------------------------------------

class UtilityType(str, Enum):
    LIGHT = "light"
    REVEAL_TRAPS = "reveal_traps"
    REVEAL_SECRETS = "reveal_secrets"
    DETECT_ENEMIES = "detect_enemies"
    TELEPORT = "teleport"
    DISPEL = "dispel"
    WARD = "ward"


class UtilityEffect(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: UtilityType
    value: int = 0
    duration: int = 0


class SpellAbility(AbilityBase):
    kind: Literal["spell"] = "spell"

    school: str = "arcane"
    health_cost: int = 0
    remove_effects: tuple[str, ...] = ()
    """Names of effects this spell cleanses from its target."""

    utility_effect: UtilityEffect | None = None


Ability = Annotated[
    Union[BasicAbility, SustainedAbility, SpellAbility],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Enemy abilities
# ---------------------------------------------------------------------------

class EnemyAbility(BaseModel):
    """An enemy special attack with its own cooldown."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    damage: int = 0
    damage_type: DamageType = DamageType.PHYSICAL
    cooldown: int = 0
    current_cooldown: int = 0
    effect: StatusEffect | None = None
    chance: float = Field(default=0.3, ge=0.0, le=1.0)
    """Per-turn use chance under the ``random`` AI pattern."""

    narration: str = ""

    @property
    def is_available(self) -> bool:
        return self.current_cooldown == 0
