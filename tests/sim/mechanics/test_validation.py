"""Tests for constraint validation and clamping of external effects."""

from __future__ import annotations

import logging

import pytest

from dungeon_rules.content.registry import RulesRegistry
from dungeon_rules.defs.constraints import ConstraintSource, EffectConstraints
from dungeon_rules.defs.status_effects import (
    DurationType,
    EffectCategory,
    EffectTrigger,
    EffectType,
    StackBehavior,
    StatusEffect,
    TriggeredEffect,
)
from dungeon_rules.sim.mechanics.validation import clamp_effect, validate_effect
from dungeon_rules.sim.triggers import TriggerEngine


def _make_effect(**kwargs) -> StatusEffect:
    defaults = {
        "name": "Lucky Charm",
        "effect_type": EffectType.BUFF,
        "category": EffectCategory.STAT_MODIFIER,
        "duration_value": 2,
        "power_level": 2,
    }
    defaults.update(kwargs)
    return StatusEffect(**defaults)


class TestValidateEffect:
    def test_clean_effect(self, registry):
        constraints = registry.get_constraints("common_item")
        assert validate_effect(_make_effect(), constraints) == []

    def test_lists_every_violation(self, registry):
        constraints = registry.get_constraints(ConstraintSource.COMMON_ITEM)
        effect = _make_effect(
            power_level=9,
            duration_value=6,
            stack_behavior=StackBehavior.INTENSITY,
            max_stacks=4,
            category=EffectCategory.CONTROL,
            triggers=(EffectTrigger.ON_KILL,),
        )
        assert validate_effect(effect, constraints) == [
            "power_level 9 exceeds max 2",
            "duration 6 exceeds max 3",
            "max_stacks 4 exceeds max 1",
            "category control not allowed",
            "trigger on_kill is forbidden",
        ]

    def test_permanent_in_bounded_bucket(self, registry):
        constraints = registry.get_constraints("common_item")
        effect = _make_effect(duration_type=DurationType.PERMANENT, duration_value=-1)
        assert validate_effect(effect, constraints) == [
            "permanent duration not allowed (max 3)"
        ]

    def test_unbounded_bucket_allows_permanent(self, registry):
        constraints = registry.get_constraints("legendary_item")
        effect = _make_effect(duration_type=DurationType.PERMANENT, duration_value=-1)
        assert validate_effect(effect, constraints) == []

    def test_zero_duration_reported(self, registry):
        constraints = registry.get_constraints("legendary_item")
        violations = validate_effect(_make_effect(duration_value=0), constraints)
        assert violations == ["duration 0 never expires"]


class TestClampEffect:
    def test_valid_effect_returned_as_is(self, registry):
        effect = _make_effect()
        assert clamp_effect(effect, "common_item", registry) is effect

    def test_power_and_duration_capped(self, registry):
        clamped = clamp_effect(
            _make_effect(power_level=9, duration_value=6), "common_item", registry
        )
        assert clamped.power_level == 2
        assert clamped.duration_value == 3
        assert clamped.duration_remaining == 3

    def test_permanent_becomes_bounded(self, registry):
        effect = _make_effect(duration_type=DurationType.PERMANENT, duration_value=-1)
        clamped = clamp_effect(effect, "common_item", registry)
        assert clamped.duration_type is DurationType.TURNS
        assert clamped.duration_value == 3
        assert not clamped.is_permanent

    def test_zero_duration_gets_bucket_bound(self, registry):
        clamped = clamp_effect(_make_effect(duration_value=0), "common_item", registry)
        assert clamped.duration_value == 3
        assert clamped.duration_remaining == 3

    def test_negative_duration_in_unbounded_bucket(self, registry):
        clamped = clamp_effect(_make_effect(duration_value=-3), "legendary_item", registry)
        assert clamped.duration_value == 1
        assert clamped.duration_remaining == 1
        assert validate_effect(clamped, registry.get_constraints("legendary_item")) == []

    def test_clamped_zero_duration_expires(self, registry, never):
        clamped = clamp_effect(_make_effect(duration_value=0), "common_item", registry)
        effects = (clamped,)
        for _ in range(2):
            effects = TriggerEngine(never).process(effects, EffectTrigger.TURN_END).effects
        outcome = TriggerEngine(never).process(effects, EffectTrigger.TURN_END)
        assert outcome.effects == ()
        assert [e.name for e in outcome.expired] == ["Lucky Charm"]

    def test_stacks_capped(self, registry):
        effect = _make_effect(
            stack_behavior=StackBehavior.INTENSITY, max_stacks=5, current_stacks=4
        )
        clamped = clamp_effect(effect, "common_item", registry)
        assert clamped.max_stacks == 1
        assert clamped.current_stacks == 1

    def test_category_falls_back_to_stat_modifier(self, registry):
        clamped = clamp_effect(
            _make_effect(category=EffectCategory.AURA), "common_item", registry
        )
        assert clamped.category is EffectCategory.STAT_MODIFIER

    def test_category_falls_back_to_first_allowed(self, registry):
        narrow = RulesRegistry(
            constraints={
                ConstraintSource.SHRINE: EffectConstraints(
                    max_power=5,
                    max_duration=5,
                    max_stacks=1,
                    allowed_categories=(EffectCategory.UTILITY,),
                )
            }
        )
        clamped = clamp_effect(_make_effect(), "shrine", narrow)
        assert clamped.category is EffectCategory.UTILITY

    def test_forbidden_triggers_stripped(self, registry):
        reaction = TriggeredEffect(trigger=EffectTrigger.ON_KILL, effect="explode")
        effect = _make_effect(
            triggers=(EffectTrigger.ON_KILL,), triggered_effects=(reaction,)
        )
        clamped = clamp_effect(effect, "common_item", registry)
        assert clamped.triggers == (EffectTrigger.PASSIVE,)
        assert clamped.triggered_effects == ()

    def test_clamped_effect_validates(self, registry):
        effect = _make_effect(
            power_level=10,
            duration_type=DurationType.PERMANENT,
            duration_value=-1,
            max_stacks=3,
            category=EffectCategory.COMPOUND,
            triggers=(EffectTrigger.ON_CRITICAL_HIT, EffectTrigger.TURN_END),
        )
        clamped = clamp_effect(effect, "common_item", registry)
        assert validate_effect(clamped, registry.get_constraints("common_item")) == []
        assert clamped.triggers == (EffectTrigger.TURN_END,)

    def test_logs_violations(self, registry, caplog):
        with caplog.at_level(logging.WARNING, logger="dungeon_rules.sim.mechanics.validation"):
            clamp_effect(_make_effect(power_level=9), "common_item", registry)
        assert "violates common_item constraints" in caplog.text

    def test_unknown_bucket_raises(self):
        with pytest.raises(KeyError):
            clamp_effect(_make_effect(), "common_item", RulesRegistry())
