"""Rule definitions -- Pydantic models for effects, abilities, combos and constraints."""

from .abilities import (
    AIPattern,
    Ability,
    AbilityBase,
    BasicAbility,
    DamageType,
    EnemyAbility,
    ResourceType,
    SpellAbility,
    StatScaling,
    SustainedAbility,
    SustainedConfig,
    SustainedTickEffect,
    TargetType,
    UtilityEffect,
    UtilityType,
)
from .combos import (
    ANY_TAG,
    ComboDefinition,
    ComboResult,
    ComboTriggerSpec,
    EffectCombo,
    EffectElement,
    EffectTag,
    SequenceComboEffect,
)
from .constraints import ConstraintSource, EffectConstraints
from .status_effects import (
    DurationType,
    EffectCategory,
    EffectModifiers,
    EffectTrigger,
    EffectType,
    SourceType,
    StackBehavior,
    StatusEffect,
    TriggeredEffect,
)

__all__ = [
    # status effects
    "DurationType",
    "EffectCategory",
    "EffectModifiers",
    "EffectTrigger",
    "EffectType",
    "SourceType",
    "StackBehavior",
    "StatusEffect",
    "TriggeredEffect",
    # abilities
    "AIPattern",
    "Ability",
    "AbilityBase",
    "BasicAbility",
    "DamageType",
    "EnemyAbility",
    "ResourceType",
    "SpellAbility",
    "StatScaling",
    "SustainedAbility",
    "SustainedConfig",
    "SustainedTickEffect",
    "TargetType",
    "UtilityEffect",
    "UtilityType",
    # combos
    "ANY_TAG",
    "ComboDefinition",
    "ComboResult",
    "ComboTriggerSpec",
    "EffectCombo",
    "EffectElement",
    "EffectTag",
    "SequenceComboEffect",
    # constraints
    "ConstraintSource",
    "EffectConstraints",
]
