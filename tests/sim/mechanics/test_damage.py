"""Tests for damage calculation, incoming reduction and critical hits."""

from __future__ import annotations

import pytest

from dungeon_rules.defs.abilities import DamageType
from dungeon_rules.defs.combos import DamageTypeBoost, SequenceComboEffect
from dungeon_rules.defs.status_effects import EffectModifiers, EffectType, StatusEffect
from dungeon_rules.sim.core.entities import Combatant, Stance
from dungeon_rules.sim.mechanics.damage import (
    calculate_damage,
    calculate_incoming_damage,
    roll_critical,
)
from tests.conftest import ScriptedRNG


def _make_combatant(**kwargs) -> Combatant:
    defaults = {"name": "Dummy", "health": 50, "max_health": 50}
    defaults.update(kwargs)
    return Combatant(**defaults)


# ---------------------------------------------------------------------------
# Outgoing damage
# ---------------------------------------------------------------------------

class TestCalculateDamage:
    def test_balanced_normal_hit_unchanged(self):
        calc = calculate_damage(10, DamageType.PHYSICAL, _make_combatant(), _make_combatant())
        assert calc.damage == 10
        assert calc.effectiveness == "normal"

    def test_aggressive_into_weakness_floors_twice(self):
        attacker = _make_combatant(stance=Stance.AGGRESSIVE)
        defender = _make_combatant(weakness=DamageType.FIRE)
        calc = calculate_damage(10, DamageType.FIRE, attacker, defender)
        # 10 -> 13 -> 19
        assert calc.damage == 19
        assert calc.effectiveness == "effective"

    def test_defensive_into_resistance(self):
        attacker = _make_combatant(stance=Stance.DEFENSIVE)
        defender = _make_combatant(resistance=DamageType.ICE)
        calc = calculate_damage(20, DamageType.ICE, attacker, defender)
        # 20 -> 14 -> 7
        assert calc.damage == 7
        assert calc.effectiveness == "resisted"

    def test_aggressive_into_resistance(self):
        attacker = _make_combatant(stance=Stance.AGGRESSIVE)
        defender = _make_combatant(resistance=DamageType.SHADOW)
        # 10 -> 13 -> 6
        assert calculate_damage(10, DamageType.SHADOW, attacker, defender).damage == 6

    def test_untyped_damage_ignores_weakness(self):
        defender = _make_combatant(weakness=DamageType.FIRE)
        calc = calculate_damage(10, None, _make_combatant(), defender)
        assert calc.damage == 10
        assert calc.effectiveness == "normal"

    def test_combo_damage_boost(self):
        combo = SequenceComboEffect(damage_boost=0.25)
        calc = calculate_damage(10, DamageType.PHYSICAL, _make_combatant(), _make_combatant(), combo)
        assert calc.damage == 12

    def test_type_boost_only_matches_its_type(self):
        combo = SequenceComboEffect(
            damage_type_boost=DamageTypeBoost(type=DamageType.FIRE, bonus=0.5)
        )
        fire = calculate_damage(10, DamageType.FIRE, _make_combatant(), _make_combatant(), combo)
        ice = calculate_damage(10, DamageType.ICE, _make_combatant(), _make_combatant(), combo)
        assert fire.damage == 15
        assert ice.damage == 10

    def test_boosts_apply_before_weakness(self):
        combo = SequenceComboEffect(
            damage_type_boost=DamageTypeBoost(type=DamageType.FIRE, bonus=0.5)
        )
        attacker = _make_combatant(stance=Stance.AGGRESSIVE)
        defender = _make_combatant(weakness=DamageType.FIRE)
        # 10 -> 13 -> 19 (boost) -> 28 (weak)
        assert calculate_damage(10, DamageType.FIRE, attacker, defender, combo).damage == 28


# ---------------------------------------------------------------------------
# Incoming reduction
# ---------------------------------------------------------------------------

class TestIncomingDamage:
    def test_defense_halved_and_subtracted(self):
        defender = _make_combatant(defense=6)
        assert calculate_incoming_damage(10, defender) == 7

    def test_never_below_one(self):
        defender = _make_combatant(defense=100)
        assert calculate_incoming_damage(5, defender) == 1

    def test_block_combo_returns_zero(self):
        defender = _make_combatant(defense=0)
        combo = SequenceComboEffect(block_next_attack=True)
        assert calculate_incoming_damage(50, defender, combo) == 0

    def test_defensive_stance_raises_reduction(self):
        defender = _make_combatant(defense=10, stance=Stance.DEFENSIVE)
        # floor(10 * 0.5 * 1.4) = 7
        assert calculate_incoming_damage(20, defender) == 13

    def test_defense_from_effects_counts(self):
        shield = StatusEffect(
            name="Stoneskin",
            effect_type=EffectType.BUFF,
            modifiers=EffectModifiers(defense=4),
        )
        defender = _make_combatant(defense=2, active_effects=(shield,))
        assert calculate_incoming_damage(10, defender) == 7

    def test_defense_reduction_combo_lowers_own_defense(self):
        defender = _make_combatant(defense=20)
        combo = SequenceComboEffect(defense_reduction=0.5)
        # defense 20 -> 10, reduction floor(10 * 0.5) = 5
        assert calculate_incoming_damage(20, defender, combo) == 15


# ---------------------------------------------------------------------------
# Critical hits
# ---------------------------------------------------------------------------

class TestRollCritical:
    def test_crit_multiplies_and_floors(self):
        damage, is_crit = roll_critical(11, 0.5, ScriptedRNG([0.1]))
        assert is_crit
        assert damage == 16

    def test_miss_leaves_damage(self):
        damage, is_crit = roll_critical(11, 0.5, ScriptedRNG([0.6]))
        assert not is_crit
        assert damage == 11

    @pytest.mark.parametrize("chance", [-0.5, 0.0])
    def test_non_positive_chance_never_crits(self, chance):
        _, is_crit = roll_critical(10, chance, ScriptedRNG(default=0.0))
        assert not is_crit

    def test_chance_above_one_always_crits(self):
        _, is_crit = roll_critical(10, 3.0, ScriptedRNG(default=0.999))
        assert is_crit

    def test_consumes_one_roll(self):
        rng = ScriptedRNG()
        roll_critical(10, 0.2, rng)
        assert rng.float_calls == 1
