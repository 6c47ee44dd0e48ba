"""Constraint buckets bounding externally supplied (e.g. AI-generated) effects."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from .status_effects import EffectCategory, EffectTrigger


class ConstraintSource(str, Enum):
    """Where a generated effect is going to live."""

    COMMON_ITEM = "common_item"
    UNCOMMON_ITEM = "uncommon_item"
    RARE_ITEM = "rare_item"
    LEGENDARY_ITEM = "legendary_item"
    ENEMY_ATTACK = "enemy_attack"
    SHRINE = "shrine"
    CURSE = "curse"
    ENVIRONMENTAL = "environmental"
    CRAFTED = "crafted"


class EffectConstraints(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_power: int
    max_duration: int
    """``<= 0`` means the bucket does not bound duration."""

    max_stacks: int
    allowed_categories: tuple[EffectCategory, ...]
    forbidden_triggers: tuple[EffectTrigger, ...] = ()
