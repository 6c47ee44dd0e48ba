"""TriggerEngine -- fires status effect hooks and ticks durations.

Central class that processes one named trigger (turn start, turn end,
on-hit, ...) against a combatant's effect list: runs category-implied
damage or healing, rolls ``triggered_effects`` with the injected RNG,
decrements durations and removes expired effects exactly once.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from dungeon_rules.defs.status_effects import (
    DurationType,
    EffectCategory,
    EffectTrigger,
    StatusEffect,
)
from dungeon_rules.sim.core.rng import RandomSource

logger = logging.getLogger(__name__)

# Which triggers consume one unit of each duration type.
_DECREMENT_TRIGGERS: dict[DurationType, frozenset[EffectTrigger]] = {
    DurationType.TURNS: frozenset({EffectTrigger.TURN_END}),
    DurationType.ACTIONS: frozenset({
        EffectTrigger.ON_ATTACK,
        EffectTrigger.ON_DEFEND,
        EffectTrigger.ON_HEAL,
    }),
    DurationType.ROOMS: frozenset({EffectTrigger.ON_ROOM_ENTER}),
    DurationType.HITS: frozenset({
        EffectTrigger.ON_DAMAGE_TAKEN,
        EffectTrigger.ON_DAMAGE_DEALT,
    }),
    DurationType.PERMANENT: frozenset(),
    DurationType.CONDITIONAL: frozenset(),
}

_TICK_TRIGGERS = frozenset({EffectTrigger.TURN_START, EffectTrigger.TURN_END})

# Fallback per-tick amounts when an over-time effect has no health_regen.
_DEFAULT_DOT = -3
_DEFAULT_HOT = 3


class SpawnedEffect(BaseModel):
    """A sub-effect produced by a triggered reaction."""

    model_config = ConfigDict(frozen=True)

    effect: StatusEffect
    target_type: str
    source_name: str


class TriggerOutcome(BaseModel):
    """Result of :meth:`TriggerEngine.process`.

    ``damage`` and ``healing`` are applied to the bearer by the caller.
    ``spawned`` sub-effects target ``target_type`` ("self" means the
    bearer).  ``spread`` holds copies the caller may hand to other
    combatants.
    """

    model_config = ConfigDict(frozen=True)

    effects: tuple[StatusEffect, ...]
    damage: int = 0
    healing: int = 0
    expired: tuple[StatusEffect, ...] = ()
    removed: tuple[StatusEffect, ...] = ()
    spawned: tuple[SpawnedEffect, ...] = ()
    spread: tuple[StatusEffect, ...] = ()
    narration: tuple[str, ...] = ()


def decrements_on(duration_type: DurationType, trigger: EffectTrigger) -> bool:
    return trigger in _DECREMENT_TRIGGERS[duration_type]


class TriggerEngine:
    """Processes effect triggers for a single combatant's effect list.

    Parameters
    ----------
    rng:
        Source for the independent chance rolls of triggered effects.
    """

    def __init__(self, rng: RandomSource) -> None:
        self.rng = rng

    def process(
        self, effects: Iterable[StatusEffect], trigger: EffectTrigger
    ) -> TriggerOutcome:
        """Fire *trigger* against every effect in order.

        For each effect:

        1. Over-time categories deal or heal ``floor(|health_regen| * stacks)``
           on turn_start / turn_end, if the effect listens to the trigger.
        2. Every ``triggered_effects`` entry whose trigger matches rolls
           its chance independently.
        3. The duration is decremented when the trigger consumes a unit of
           its ``duration_type``.  Reaching 0 removes the effect and emits
           its expire narration once.  Permanent effects never expire.
        """
        damage = 0
        healing = 0
        kept: list[StatusEffect] = []
        expired: list[StatusEffect] = []
        removed: list[StatusEffect] = []
        spawned: list[SpawnedEffect] = []
        spread: list[StatusEffect] = []
        narration: list[str] = []

        for effect in effects:
            # -- category behaviour ------------------------------------------
            if effect.listens_to(trigger) and trigger in _TICK_TRIGGERS:
                mult = effect.stack_multiplier
                if effect.category is EffectCategory.DAMAGE_OVER_TIME:
                    regen = effect.modifiers.health_regen
                    dot = math.floor((_DEFAULT_DOT if regen is None else regen) * mult)
                    if dot < 0:
                        damage += -dot
                        if effect.tick_narration:
                            narration.append(effect.tick_narration)
                elif effect.category is EffectCategory.HEAL_OVER_TIME:
                    regen = effect.modifiers.health_regen
                    hot = math.floor((_DEFAULT_HOT if regen is None else regen) * mult)
                    if hot > 0:
                        healing += hot
                        if effect.tick_narration:
                            narration.append(effect.tick_narration)

            # -- triggered reactions -----------------------------------------
            remove_self = False
            for reaction in effect.triggered_effects:
                if reaction.trigger != trigger:
                    continue
                if self.rng.random_float() >= reaction.chance:
                    continue
                if reaction.narrative:
                    narration.append(reaction.narrative)

                action = reaction.effect
                if isinstance(action, StatusEffect):
                    spawned.append(SpawnedEffect(
                        effect=action.instantiate(
                            source_id=effect.id,
                            source_name=effect.name,
                        ),
                        target_type=reaction.target_type,
                        source_name=effect.name,
                    ))
                elif action == "explode":
                    damage += effect.power_level
                elif action == "spread":
                    spread.append(effect.instantiate())
                elif action == "remove_self":
                    remove_self = True
                else:
                    logger.warning(
                        "Unknown triggered action %r on %s", action, effect.name
                    )

            if remove_self:
                removed.append(effect)
                continue

            # -- duration ----------------------------------------------------
            if (
                not effect.is_permanent
                and effect.duration_remaining > 0
                and decrements_on(effect.duration_type, trigger)
            ):
                remaining = effect.duration_remaining - 1
                if remaining <= 0:
                    expired.append(effect)
                    if effect.expire_narration:
                        narration.append(effect.expire_narration)
                    logger.debug("Effect %s expired on %s", effect.name, trigger.value)
                    continue
                effect = effect.model_copy(update={"duration_remaining": remaining})

            kept.append(effect)

        return TriggerOutcome(
            effects=tuple(kept),
            damage=damage,
            healing=healing,
            expired=tuple(expired),
            removed=tuple(removed),
            spawned=tuple(spawned),
            spread=tuple(spread),
            narration=tuple(narration),
        )
