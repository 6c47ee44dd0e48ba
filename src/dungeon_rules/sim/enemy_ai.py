"""Enemy action-selection policies.

Given an enemy and the player's health fraction, choose one off-cooldown
special ability or ``None`` (meaning a plain attack).  Every probability
roll goes through the injected RNG, in a fixed order, so a scripted
source reproduces a decision exactly.
"""

from __future__ import annotations

import logging

from dungeon_rules.defs.abilities import AIPattern, EnemyAbility
from dungeon_rules.sim.core.entities import Enemy
from dungeon_rules.sim.core.rng import RandomSource

logger = logging.getLogger(__name__)

LOW_HEALTH_THRESHOLD = 0.4
"""Enemy health fraction below which ``defensive_until_low`` turns aggressive."""

FINISHER_THRESHOLD = 0.3
DEBUFF_THRESHOLD = 0.6


def _pick(available: list[EnemyAbility], rng: RandomSource) -> EnemyAbility:
    return rng.random_choice(available)


def _ability_focused(
    enemy: Enemy, available: list[EnemyAbility], player_fraction: float, rng: RandomSource
) -> EnemyAbility | None:
    return _pick(available, rng)


def _defensive_until_low(
    enemy: Enemy, available: list[EnemyAbility], player_fraction: float, rng: RandomSource
) -> EnemyAbility | None:
    if enemy.health_fraction < LOW_HEALTH_THRESHOLD and rng.random_float() < 0.8:
        return _pick(available, rng)
    if rng.random_float() < 0.3:
        return _pick(available, rng)
    return None


def _smart(
    enemy: Enemy, available: list[EnemyAbility], player_fraction: float, rng: RandomSource
) -> EnemyAbility | None:
    if player_fraction < FINISHER_THRESHOLD:
        finisher = next((a for a in available if a.damage > enemy.attack), None)
        if finisher is not None and rng.random_float() < 0.7:
            return finisher
    if player_fraction > DEBUFF_THRESHOLD:
        debuff = next((a for a in available if a.effect is not None), None)
        if debuff is not None and rng.random_float() < 0.5:
            return debuff
    if rng.random_float() < 0.4:
        return _pick(available, rng)
    return None


def _random(
    enemy: Enemy, available: list[EnemyAbility], player_fraction: float, rng: RandomSource
) -> EnemyAbility | None:
    for ability in available:
        if rng.random_float() < ability.chance:
            return ability
    return None


_POLICIES = {
    AIPattern.ABILITY_FOCUSED: _ability_focused,
    AIPattern.DEFENSIVE_UNTIL_LOW: _defensive_until_low,
    AIPattern.SMART: _smart,
    AIPattern.RANDOM: _random,
}


def select_enemy_ability(
    enemy: Enemy, player_health_fraction: float, rng: RandomSource
) -> EnemyAbility | None:
    """Choose the enemy's special ability for this turn.

    Parameters
    ----------
    enemy:
        The acting enemy.  Only abilities with ``current_cooldown == 0``
        are candidates.
    player_health_fraction:
        Player health / max health, in ``[0, 1]``.
    rng:
        Source for every probability roll and uniform pick.

    Returns
    -------
    EnemyAbility | None
        The chosen ability, or ``None`` when the enemy should make a basic
        attack instead.
    """
    available = [a for a in enemy.abilities if a.is_available]
    if not available:
        return None

    policy = _POLICIES.get(enemy.ai_pattern, _random)
    choice = policy(enemy, available, player_health_fraction, rng)
    if choice is not None:
        logger.debug("%s (%s) chose %s", enemy.name, enemy.ai_pattern.value, choice.name)
    return choice


def put_on_cooldown(enemy: Enemy, ability_id: str) -> Enemy:
    """Return *enemy* with *ability_id* set to its full cooldown."""
    abilities = tuple(
        a.model_copy(update={"current_cooldown": a.cooldown}) if a.id == ability_id else a
        for a in enemy.abilities
    )
    return enemy.model_copy(update={"abilities": abilities})


def tick_enemy_abilities(enemy: Enemy) -> Enemy:
    """Count every ability cooldown down by one, flooring at 0."""
    if not enemy.abilities:
        return enemy
    abilities = tuple(
        a.model_copy(update={"current_cooldown": max(0, a.current_cooldown - 1)})
        for a in enemy.abilities
    )
    return enemy.model_copy(update={"abilities": abilities})
