"""Ability and spell execution.

Rule failures (no resource, on cooldown, level or class too low) come back
as a result record with ``success=False`` and a reason; nothing raises.
Damaging abilities run through :func:`calculate_damage` so stance, the
active sequence combo and weakness / resistance apply to them as well.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict

from dungeon_rules.defs.abilities import (
    AbilityBase,
    DamageType,
    SpellAbility,
    StatScaling,
    SustainedAbility,
    TargetType,
    UtilityType,
)
from dungeon_rules.defs.combos import SequenceComboEffect
from dungeon_rules.defs.status_effects import StatusEffect
from dungeon_rules.sim.core.entities import STANCE_MODIFIERS, Combatant, Player
from dungeon_rules.sim.core.rng import RandomSource

from .damage import CRIT_MULTIPLIER, Effectiveness, calculate_damage
from .status_effects import effective_stats
from .sustained import get_effective_resources

ABILITY_DEFENSE_FACTOR = 0.4


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------

class UsabilityCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_use: bool
    reason: str | None = None


class AbilityDamage(BaseModel):
    model_config = ConfigDict(frozen=True)

    damage: int
    is_critical: bool = False
    effectiveness: Effectiveness = "normal"


class AbilityResult(BaseModel):
    """Outcome of a basic ability.  The caller commits costs and effects."""

    model_config = ConfigDict(frozen=True)

    success: bool
    reason: str | None = None
    damage: int | None = None
    damage_type: DamageType | None = None
    effectiveness: Effectiveness = "normal"
    healing: int | None = None
    is_critical: bool = False
    resource_spent: int = 0
    effects_applied: tuple[StatusEffect, ...] = ()
    cooldown_set: int = 0
    narration: str


class UtilityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: UtilityType
    success: bool = True
    description: str
    duration: int = 0


class SpellCastResult(AbilityResult):
    health_spent: int = 0
    effects_removed: tuple[str, ...] = ()
    utility_result: UtilityResult | None = None


# ---------------------------------------------------------------------------
# Checks and formulas
# ---------------------------------------------------------------------------

def resource_cost_for(player: Player, ability: AbilityBase) -> int:
    """Stance-scaled resource cost, floored."""
    return math.floor(ability.resource_cost * STANCE_MODIFIERS[player.stance].resource_cost)


def spendable_resource(player: Player) -> int:
    """Resource the player can spend once active sustains take their reserve."""
    if player.resources is None:
        return 0
    return get_effective_resources(player.resources, player.sustained_abilities).current


def can_use_ability(player: Player, ability: AbilityBase) -> UsabilityCheck:
    """Check resource, cooldown, level and class, in that order.

    The resource check compares the stance-scaled cost with what is left
    after sustained reservations.
    """
    cost = resource_cost_for(player, ability)
    if spendable_resource(player) < cost:
        return UsabilityCheck(
            can_use=False,
            reason=f"Not enough {ability.resource_type.value} (need {cost})",
        )

    remaining = player.cooldown_for(ability.id)
    if remaining > 0:
        return UsabilityCheck(can_use=False, reason=f"On cooldown ({remaining} turns)")

    if player.level < ability.level_required:
        return UsabilityCheck(
            can_use=False, reason=f"Requires level {ability.level_required}"
        )

    if ability.class_required and player.player_class not in ability.class_required:
        return UsabilityCheck(
            can_use=False,
            reason=f"Requires {' or '.join(ability.class_required)} class",
        )

    if isinstance(ability, SpellAbility) and ability.health_cost >= player.health:
        return UsabilityCheck(
            can_use=False, reason=f"Not enough health (need {ability.health_cost})"
        )

    return UsabilityCheck(can_use=True)


def _scaled(base: int, scaling: StatScaling | None, player: Player) -> int:
    if scaling is None:
        return base
    if scaling.stat == "level":
        stat = player.level
    else:
        stat = getattr(effective_stats(player), scaling.stat)
    return base + math.floor(stat * scaling.ratio)


def calculate_ability_damage(
    player: Player,
    ability: AbilityBase,
    target: Combatant,
    rng: RandomSource,
    combo_effect: SequenceComboEffect | None = None,
) -> AbilityDamage:
    """Damage of *ability* against *target*.

    ``base + floor(stat * ratio)`` goes through :func:`calculate_damage`,
    then loses ``floor(target defense * 0.4)`` unless the ability or the
    active combo ignores defense, then rolls a crit.  Never below 1 for
    an ability that deals damage at all.
    """
    if not ability.base_damage and ability.damage_scaling is None:
        return AbilityDamage(damage=0)

    raw = _scaled(ability.base_damage, ability.damage_scaling, player)
    calc = calculate_damage(raw, ability.damage_type, player, target, combo_effect)
    damage = calc.damage

    ignores = ability.ignores_defense or (
        combo_effect is not None and combo_effect.ignore_defense
    )
    if not ignores:
        defense = effective_stats(target).defense
        damage = max(1, damage - math.floor(defense * ABILITY_DEFENSE_FACTOR))

    is_critical = False
    if ability.can_critical:
        chance = min(1.0, max(0.0, effective_stats(player).crit_chance))
        is_critical = rng.random_float() < chance

    if is_critical:
        damage = math.floor(damage * CRIT_MULTIPLIER)

    return AbilityDamage(
        damage=max(1, damage),
        is_critical=is_critical,
        effectiveness=calc.effectiveness,
    )


def calculate_ability_healing(player: Player, ability: AbilityBase) -> int:
    """``base + floor(stat * ratio)``, capped at the player's missing HP."""
    if not ability.base_healing and ability.healing_scaling is None:
        return 0
    healing = _scaled(ability.base_healing, ability.healing_scaling, player)
    return max(0, min(healing, player.missing_health))


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

_UTILITY_DESCRIPTIONS: dict[UtilityType, str] = {
    UtilityType.LIGHT: "The area is illuminated for {duration} turns.",
    UtilityType.REVEAL_TRAPS: "Your magical senses search for hidden dangers.",
    UtilityType.REVEAL_SECRETS: "Hidden things shimmer into view.",
    UtilityType.DETECT_ENEMIES: "You sense the presence of nearby foes.",
    UtilityType.TELEPORT: "Space folds around you.",
    UtilityType.DISPEL: "Magic unravels at your command.",
    UtilityType.WARD: "A protective ward absorbs up to {value} damage.",
}


def _hit_narration(ability: AbilityBase, damage: int | None, is_critical: bool) -> str:
    narration = ability.cast_narration or f"You use {ability.name}!"
    if damage:
        hit = ability.hit_narration or f"{ability.name} deals {damage} damage!"
        narration = f"CRITICAL! {hit}" if is_critical else hit
    return narration


def execute_ability(
    player: Player,
    ability: AbilityBase,
    target: Combatant | None,
    rng: RandomSource,
    combo_effect: SequenceComboEffect | None = None,
) -> AbilityResult:
    """Resolve a basic ability or a spell without committing anything.

    Sustained abilities are toggled through :mod:`.sustained` and are
    rejected here with a ``TypeError``.
    """
    if isinstance(ability, SustainedAbility):
        raise TypeError(f"{ability.name} is sustained; toggle it instead of casting it")

    check = can_use_ability(player, ability)
    if not check.can_use:
        failed = SpellCastResult if isinstance(ability, SpellAbility) else AbilityResult
        return failed(
            success=False,
            reason=check.reason,
            narration=check.reason or "Cannot use ability",
        )

    damage: AbilityDamage | None = None
    if target is not None and (ability.base_damage or ability.damage_scaling is not None):
        damage = calculate_ability_damage(player, ability, target, rng, combo_effect)

    healing: int | None = None
    if ability.target_type is TargetType.SELF and (
        ability.base_healing or ability.healing_scaling is not None
    ):
        healing = calculate_ability_healing(player, ability)

    fields = dict(
        success=True,
        damage=damage.damage if damage is not None else None,
        damage_type=ability.damage_type,
        effectiveness=damage.effectiveness if damage is not None else "normal",
        healing=healing,
        is_critical=damage.is_critical if damage is not None else False,
        resource_spent=resource_cost_for(player, ability),
        effects_applied=tuple(e.instantiate() for e in ability.applies_effects),
        cooldown_set=ability.cooldown,
        narration=_hit_narration(
            ability,
            damage.damage if damage is not None else None,
            damage.is_critical if damage is not None else False,
        ),
    )

    if not isinstance(ability, SpellAbility):
        return AbilityResult(**fields)

    utility = None
    if ability.utility_effect is not None:
        u = ability.utility_effect
        utility = UtilityResult(
            type=u.type,
            description=_UTILITY_DESCRIPTIONS[u.type].format(
                duration=u.duration or 10, value=u.value
            ),
            duration=u.duration,
        )
    return SpellCastResult(
        **fields,
        health_spent=ability.health_cost,
        effects_removed=ability.remove_effects,
        utility_result=utility,
    )
