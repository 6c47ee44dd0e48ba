"""Damage calculation.

Outgoing pipeline (order matters, every step floored before the next):
    base -> stance attack mult -> combo damage boost -> combo damage-type
    boost -> weakness x1.5 / resistance x0.5

Incoming reduction:
    max(1, base - floor(effective_defense * 0.5 * stance defense mult))
    short-circuited to 0 by an active block-next-attack combo.
"""

from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict

from dungeon_rules.defs.abilities import DamageType
from dungeon_rules.defs.combos import SequenceComboEffect
from dungeon_rules.sim.core.entities import STANCE_MODIFIERS, Combatant
from dungeon_rules.sim.core.rng import RandomSource

from .status_effects import effective_stats

WEAKNESS_MULTIPLIER = 1.5
RESISTANCE_MULTIPLIER = 0.5
CRIT_MULTIPLIER = 1.5
DEFENSE_FACTOR = 0.5

Effectiveness = Literal["effective", "resisted", "normal"]


class DamageCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    damage: int
    effectiveness: Effectiveness


def calculate_damage(
    base: int,
    damage_type: DamageType | None,
    attacker: Combatant,
    defender: Combatant,
    combo_effect: SequenceComboEffect | None = None,
) -> DamageCalculation:
    """Calculate outgoing damage before the defender's defense.

    Parameters
    ----------
    base:
        Raw damage of the attack or ability.
    damage_type:
        Element of the hit; ``None`` skips type boosts and weakness checks.
    attacker:
        Source of the hit; its stance sets the attack multiplier.
    defender:
        Target of the hit; its weakness / resistance set effectiveness.
    combo_effect:
        The attacker's active sequence-combo effect, if any.
    """
    damage = math.floor(base * STANCE_MODIFIERS[attacker.stance].attack)

    if combo_effect is not None:
        if combo_effect.damage_boost:
            damage = math.floor(damage * (1 + combo_effect.damage_boost))
        boost = combo_effect.damage_type_boost
        if boost is not None and damage_type is not None and boost.type == damage_type:
            damage = math.floor(damage * (1 + boost.bonus))

    effectiveness: Effectiveness = "normal"
    if damage_type is not None and defender.weakness == damage_type:
        damage = math.floor(damage * WEAKNESS_MULTIPLIER)
        effectiveness = "effective"
    elif damage_type is not None and defender.resistance == damage_type:
        damage = math.floor(damage * RESISTANCE_MULTIPLIER)
        effectiveness = "resisted"

    return DamageCalculation(damage=damage, effectiveness=effectiveness)


def calculate_incoming_damage(
    base: int,
    defender: Combatant,
    combo_effect: SequenceComboEffect | None = None,
) -> int:
    """Reduce *base* by the defender's effective defense.

    The defender's own active combo can block the hit outright or, via
    ``defense_reduction``, lower the defense used here.
    """
    if combo_effect is not None and combo_effect.block_next_attack:
        return 0

    defense = effective_stats(defender).defense
    if combo_effect is not None and combo_effect.defense_reduction:
        defense = math.floor(defense * (1 - combo_effect.defense_reduction))

    stance_mult = STANCE_MODIFIERS[defender.stance].defense
    reduction = math.floor(defense * DEFENSE_FACTOR * stance_mult)
    return max(1, base - reduction)


def roll_critical(
    damage: int, crit_chance: float, rng: RandomSource
) -> tuple[int, bool]:
    """Independent Bernoulli draw at *crit_chance* (clamped to ``[0, 1]``).

    Returns ``(damage, is_critical)``; a crit multiplies damage by 1.5.
    """
    chance = min(1.0, max(0.0, crit_chance))
    if rng.random_float() < chance:
        return math.floor(damage * CRIT_MULTIPLIER), True
    return damage, False
