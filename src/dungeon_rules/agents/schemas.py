"""Pydantic output schemas for the narration boundary.

The model is forced to answer through these schemas.  ``GeneratedEffect``
is deliberately loose (lists, plain ints) so the model can fill it in; it
only becomes a rules-engine ``StatusEffect`` through
:meth:`GeneratedEffect.to_status_effect`, and callers always clamp the
result before use.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from dungeon_rules.defs.status_effects import (
    DurationType,
    EffectCategory,
    EffectModifiers,
    EffectTrigger,
    EffectType,
    SourceType,
    StackBehavior,
    StatusEffect,
)


class NarrationOutput(BaseModel):
    """Flavor text for one resolved action."""

    narration: str
    """1-3 sentences, second person, present tense."""

    @field_validator("narration")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("narration must not be empty")
        return v


class GeneratedEffect(BaseModel):
    """A status effect proposed by the model."""

    name: str
    description: str
    effect_type: EffectType
    category: EffectCategory = EffectCategory.STAT_MODIFIER

    duration_type: DurationType = DurationType.TURNS
    duration: int = 3
    """Initial duration.  ``-1`` requests a permanent effect."""

    stack_behavior: StackBehavior = StackBehavior.NONE
    max_stacks: int = Field(default=1, ge=1)
    modifiers: EffectModifiers = Field(default_factory=EffectModifiers)
    triggers: list[EffectTrigger] = Field(default_factory=lambda: [EffectTrigger.PASSIVE])

    power_level: int = Field(default=3, ge=1)
    rarity: str = "common"

    apply_narration: str | None = None
    tick_narration: str | None = None
    expire_narration: str | None = None

    def to_status_effect(self, source_name: str | None = None) -> StatusEffect:
        """Build an unclamped ``StatusEffect`` from this proposal."""
        return StatusEffect(
            name=self.name,
            description=self.description,
            effect_type=self.effect_type,
            category=self.category,
            duration_type=self.duration_type,
            duration_value=self.duration,
            stack_behavior=self.stack_behavior,
            max_stacks=self.max_stacks,
            modifiers=self.modifiers,
            triggers=tuple(self.triggers) or (EffectTrigger.PASSIVE,),
            power_level=self.power_level,
            rarity=self.rarity,
            source_type=SourceType.AI_GENERATED,
            source_name=source_name,
            apply_narration=self.apply_narration,
            tick_narration=self.tick_narration,
            expire_narration=self.expire_narration,
        )
