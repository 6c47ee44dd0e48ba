"""Constraint checks for externally supplied status effects.

Effects produced outside the rules tables (LLM output, modded content)
are never rejected.  They are clamped into the bucket for their source
and the violations are logged.
"""

from __future__ import annotations

import logging

from dungeon_rules.content.registry import RulesRegistry
from dungeon_rules.defs.constraints import ConstraintSource, EffectConstraints
from dungeon_rules.defs.status_effects import (
    DurationType,
    EffectCategory,
    EffectTrigger,
    StatusEffect,
)

logger = logging.getLogger(__name__)


def _never_expires(effect: StatusEffect) -> bool:
    """A timed effect whose duration can never tick down to removal."""
    if effect.is_permanent or effect.duration_type is DurationType.CONDITIONAL:
        return False
    return effect.duration_value <= 0 or effect.duration_remaining <= 0


def validate_effect(effect: StatusEffect, constraints: EffectConstraints) -> list[str]:
    """Return a human-readable list of every bound *effect* breaks."""
    violations: list[str] = []

    if effect.power_level > constraints.max_power:
        violations.append(
            f"power_level {effect.power_level} exceeds max {constraints.max_power}"
        )

    if _never_expires(effect):
        violations.append(f"duration {effect.duration_remaining} never expires")
    elif constraints.max_duration > 0:
        if effect.is_permanent:
            violations.append(
                f"permanent duration not allowed (max {constraints.max_duration})"
            )
        elif effect.duration_value > constraints.max_duration:
            violations.append(
                f"duration {effect.duration_value} exceeds max {constraints.max_duration}"
            )

    if effect.max_stacks > constraints.max_stacks:
        violations.append(
            f"max_stacks {effect.max_stacks} exceeds max {constraints.max_stacks}"
        )

    if effect.category not in constraints.allowed_categories:
        violations.append(f"category {effect.category.value} not allowed")

    forbidden = set(constraints.forbidden_triggers)
    for trigger in effect.triggers:
        if trigger in forbidden:
            violations.append(f"trigger {trigger.value} is forbidden")
    for reaction in effect.triggered_effects:
        if reaction.trigger in forbidden:
            violations.append(f"triggered effect on {reaction.trigger.value} is forbidden")

    return violations


def _clamp(effect: StatusEffect, constraints: EffectConstraints) -> StatusEffect:
    update: dict = {}

    if effect.power_level > constraints.max_power:
        update["power_level"] = constraints.max_power

    bound = constraints.max_duration
    if _never_expires(effect):
        fixed = bound if bound > 0 else 1
        update["duration_value"] = fixed
        update["duration_remaining"] = fixed
    elif bound > 0:
        if effect.is_permanent:
            update["duration_value"] = bound
            update["duration_remaining"] = bound
            if effect.duration_type is DurationType.PERMANENT:
                update["duration_type"] = DurationType.TURNS
        elif effect.duration_value > bound or effect.duration_remaining > bound:
            update["duration_value"] = min(effect.duration_value, bound)
            update["duration_remaining"] = min(effect.duration_remaining, bound)

    if effect.max_stacks > constraints.max_stacks:
        update["max_stacks"] = constraints.max_stacks
        update["current_stacks"] = min(effect.current_stacks, constraints.max_stacks)

    allowed = constraints.allowed_categories
    if allowed and effect.category not in allowed:
        if EffectCategory.STAT_MODIFIER in allowed:
            update["category"] = EffectCategory.STAT_MODIFIER
        else:
            update["category"] = allowed[0]

    forbidden = set(constraints.forbidden_triggers)
    if forbidden:
        triggers = tuple(t for t in effect.triggers if t not in forbidden)
        if triggers != effect.triggers:
            update["triggers"] = triggers or (EffectTrigger.PASSIVE,)
        reactions = tuple(r for r in effect.triggered_effects if r.trigger not in forbidden)
        if reactions != effect.triggered_effects:
            update["triggered_effects"] = reactions

    return effect.model_copy(update=update) if update else effect


def clamp_effect(
    effect: StatusEffect,
    source: ConstraintSource | str,
    registry: RulesRegistry,
) -> StatusEffect:
    """Clamp *effect* into the constraint bucket for *source*.

    Raises
    ------
    KeyError
        If *registry* has no bucket for *source*.
    """
    constraints = registry.get_constraints(source)
    violations = validate_effect(effect, constraints)
    if not violations:
        return effect

    logger.warning(
        "Effect %r violates %s constraints: %s",
        effect.name,
        ConstraintSource(source).value,
        "; ".join(violations),
    )
    return _clamp(effect, constraints)
