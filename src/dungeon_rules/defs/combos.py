"""Combo definitions -- ability-sequence combos and effect-on-effect combos."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .abilities import DamageType
from .status_effects import StatusEffect

ANY_TAG = "any"
"""Wildcard slot in a combo sequence."""


# ---------------------------------------------------------------------------
# Ability-sequence combos
# ---------------------------------------------------------------------------

class DamageTypeBoost(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: DamageType
    bonus: float


class EnemyDebuff(BaseModel):
    """Fractional stat penalty applied to the opposing combatant."""

    model_config = ConfigDict(frozen=True)

    attack: float = 0.0
    defense: float = 0.0


class SequenceComboEffect(BaseModel):
    model_config = ConfigDict(frozen=True)

    damage_type_boost: DamageTypeBoost | None = None
    damage_boost: float = 0.0
    defense_reduction: float = 0.0
    """Fraction of the bearer's own defense given up while the combo is active."""

    ignore_defense: bool = False
    block_next_attack: bool = False
    enemy_debuff: EnemyDebuff | None = None
    duration: int = 1


class ComboDefinition(BaseModel):
    """A sequence of up to three action tags that unlocks a bonus."""

    model_config = ConfigDict(frozen=True)

    id: str
    sequence: tuple[str, ...] = Field(min_length=1, max_length=3)
    name: str
    bonus: str
    effect: SequenceComboEffect


# ---------------------------------------------------------------------------
# Effect combos
# ---------------------------------------------------------------------------

class EffectElement(str, Enum):
    FIRE = "fire"
    ICE = "ice"
    LIGHTNING = "lightning"
    WATER = "water"
    POISON = "poison"
    HOLY = "holy"
    DARK = "dark"
    ARCANE = "arcane"
    NATURE = "nature"
    BLOOD = "blood"
    PHYSICAL = "physical"
    PSYCHIC = "psychic"


class EffectTag(str, Enum):
    BURNING = "burning"
    WET = "wet"
    FROZEN = "frozen"
    OILED = "oiled"
    BLEEDING = "bleeding"
    SHOCKED = "shocked"
    BLINDED = "blinded"
    CURSED = "cursed"
    BLESSED = "blessed"
    ETHEREAL = "ethereal"
    ENRAGED = "enraged"
    WEAKENED = "weakened"
    EMPOWERED = "empowered"
    VULNERABLE = "vulnerable"


class ComboTriggerSpec(BaseModel):
    """One side of an effect combo.  Exactly one selector is set."""

    model_config = ConfigDict(frozen=True)

    element: EffectElement | None = None
    tag: EffectTag | None = None
    effect_name: str | None = None
    """Case-insensitive substring of the effect's name."""

    @model_validator(mode="after")
    def _one_selector(self) -> ComboTriggerSpec:
        selectors = [s for s in (self.element, self.tag, self.effect_name) if s is not None]
        if len(selectors) != 1:
            raise ValueError("ComboTriggerSpec needs exactly one of element, tag, effect_name")
        return self


class NewEffectResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["new_effect"] = "new_effect"
    effect: StatusEffect


class DamageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["damage"] = "damage"
    amount: int
    damage_type: DamageType | None = None


class HealResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["heal"] = "heal"
    amount: int


class RemoveBothResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["remove_both"] = "remove_both"


class TransformResult(BaseModel):
    """Replace the first-side effect with ``effect``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["transform"] = "transform"
    effect: StatusEffect


class AmplifyResult(BaseModel):
    """Multiply one side's modifiers and power by ``multiplier``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["amplify"] = "amplify"
    multiplier: float
    target: Literal["first", "second", "both"] = "first"


class SpreadResult(BaseModel):
    """Report the unconsumed sides so the caller can copy them onto other targets."""

    model_config = ConfigDict(frozen=True)

    type: Literal["spread"] = "spread"
    radius: Literal["self", "enemy", "all"] = "all"


class ChainResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["chain"] = "chain"
    effects: tuple[StatusEffect, ...]


ComboResult = Annotated[
    Union[
        NewEffectResult,
        DamageResult,
        HealResult,
        RemoveBothResult,
        TransformResult,
        AmplifyResult,
        SpreadResult,
        ChainResult,
    ],
    Field(discriminator="type"),
]


class EffectCombo(BaseModel):
    """A reaction between two status effects on the same combatant."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    trigger1: ComboTriggerSpec
    trigger2: ComboTriggerSpec
    result: ComboResult
    narrative: str
    consumes_triggers: tuple[bool, bool] = (True, True)
