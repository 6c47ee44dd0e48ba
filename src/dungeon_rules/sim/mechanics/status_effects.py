"""Status effect store -- apply, remove and aggregate effects on a combatant.

Effect lists are tuples of immutable :class:`StatusEffect` records.  Every
function here returns a new tuple plus a narration line; nothing is
mutated in place.

Stacking is keyed by effect *name* and follows the incoming effect's
``stack_behavior``:

- ``none``        refresh the existing duration
- ``duration``    add the new duration to the remaining one
- ``intensity``   +1 stack (up to ``max_stacks``), keep the longer duration;
                  at the cap only the duration is refreshed
- ``independent`` append a separate instance
"""

from __future__ import annotations

import math
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from dungeon_rules.defs.status_effects import (
    MULTIPLIER_KEYS,
    StackBehavior,
    StatusEffect,
)
from dungeon_rules.sim.core.entities import Combatant


class EffectApplication(BaseModel):
    """Outcome of :func:`apply_effect`."""

    model_config = ConfigDict(frozen=True)

    effects: tuple[StatusEffect, ...]
    applied: StatusEffect
    """The instance now on the combatant (new, refreshed or stacked)."""

    narration: str


class EffectRemoval(BaseModel):
    model_config = ConfigDict(frozen=True)

    effects: tuple[StatusEffect, ...]
    success: bool
    narration: str


class EffectiveStats(BaseModel):
    """Base stats with every active effect modifier folded in."""

    model_config = ConfigDict(frozen=True)

    attack: int
    defense: int
    max_health: int
    health_regen: int
    crit_chance: float
    crit_damage: float
    dodge_chance: float
    gold_multiplier: float = 1.0
    exp_multiplier: float = 1.0
    damage_multiplier: float = 1.0
    damage_taken: float = 1.0


# ---------------------------------------------------------------------------
# Apply / remove
# ---------------------------------------------------------------------------

def _replace(
    effects: tuple[StatusEffect, ...], effect_id: str, updated: StatusEffect
) -> tuple[StatusEffect, ...]:
    return tuple(updated if e.id == effect_id else e for e in effects)


def find_effect(effects: Iterable[StatusEffect], name: str) -> StatusEffect | None:
    """Return the first effect called *name*, or ``None``."""
    for effect in effects:
        if effect.name == name:
            return effect
    return None


def apply_effect(
    effects: Iterable[StatusEffect], new_effect: StatusEffect
) -> EffectApplication:
    """Add *new_effect* to *effects*, honouring its stacking behaviour."""
    effects = tuple(effects)
    existing = find_effect(effects, new_effect.name)

    if existing is None or new_effect.stack_behavior is StackBehavior.INDEPENDENT:
        return EffectApplication(
            effects=effects + (new_effect,),
            applied=new_effect,
            narration=new_effect.apply_narration or f"{new_effect.name} applied.",
        )

    behavior = new_effect.stack_behavior

    if behavior is StackBehavior.NONE:
        updated = existing.model_copy(
            update={"duration_remaining": new_effect.duration_value}
        )
        narration = f"{new_effect.name} refreshed."

    elif behavior is StackBehavior.DURATION:
        if existing.is_permanent:
            updated = existing
        else:
            updated = existing.model_copy(
                update={
                    "duration_remaining": existing.duration_remaining
                    + new_effect.duration_value
                }
            )
        narration = f"{new_effect.name} extended by {new_effect.duration_value}."

    else:  # INTENSITY
        if existing.current_stacks < existing.max_stacks:
            stacks = existing.current_stacks + 1
            updated = existing.model_copy(
                update={
                    "current_stacks": stacks,
                    "duration_remaining": max(
                        existing.duration_remaining, new_effect.duration_value
                    ),
                }
            )
            narration = (
                f"{new_effect.name} intensifies! "
                f"({stacks}/{existing.max_stacks} stacks)"
            )
        else:
            updated = existing.model_copy(
                update={"duration_remaining": new_effect.duration_value}
            )
            narration = f"{new_effect.name} at maximum intensity!"

    return EffectApplication(
        effects=_replace(effects, existing.id, updated),
        applied=updated,
        narration=narration,
    )


def apply_effects(
    effects: Iterable[StatusEffect], new_effects: Iterable[StatusEffect]
) -> tuple[tuple[StatusEffect, ...], list[str]]:
    """Apply several effects in order.  Returns the new tuple and narrations."""
    current = tuple(effects)
    narrations: list[str] = []
    for new_effect in new_effects:
        result = apply_effect(current, new_effect)
        current = result.effects
        narrations.append(result.narration)
    return current, narrations


def remove_effect(
    effects: Iterable[StatusEffect], effect_id: str, force: bool = False
) -> EffectRemoval:
    """Cleanse one effect by id.

    Non-cleansable effects resist unless *force* is set.  A failed removal
    is reported with ``success=False`` and leaves the list untouched.
    """
    effects = tuple(effects)
    target = next((e for e in effects if e.id == effect_id), None)

    if target is None:
        return EffectRemoval(effects=effects, success=False, narration="No such effect.")

    if not target.cleansable and not force:
        return EffectRemoval(
            effects=effects,
            success=False,
            narration=f"{target.name} resists removal!",
        )

    return EffectRemoval(
        effects=tuple(e for e in effects if e.id != effect_id),
        success=True,
        narration=target.expire_narration or f"{target.name} fades away.",
    )


def remove_effects_by_name(
    effects: Iterable[StatusEffect], names: Iterable[str], force: bool = False
) -> tuple[tuple[StatusEffect, ...], list[StatusEffect]]:
    """Cleanse every effect whose name is in *names*.

    Returns the remaining effects and the removed ones.
    """
    wanted = {n.lower() for n in names}
    kept: list[StatusEffect] = []
    removed: list[StatusEffect] = []
    for effect in effects:
        if effect.name.lower() in wanted and (effect.cleansable or force):
            removed.append(effect)
        else:
            kept.append(effect)
    return tuple(kept), removed


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def calculate_effect_modifiers(effects: Iterable[StatusEffect]) -> dict[str, float]:
    """Sum every active modifier key across *effects*.

    Additive keys are scaled by each effect's intensity stack multiplier.
    Multiplier keys (gold, exp, damage, damage taken) are multiplied and
    start at ``1.0``.  No global clamping is applied.
    """
    totals: dict[str, float] = {key: 1.0 for key in MULTIPLIER_KEYS}

    for effect in effects:
        mult = effect.stack_multiplier
        for key, value in effect.modifiers.values().items():
            if key in MULTIPLIER_KEYS:
                totals[key] *= value
            else:
                totals[key] = totals.get(key, 0.0) + value * mult

    return totals


def effective_stats(combatant: Combatant) -> EffectiveStats:
    """Return *combatant*'s stats with all active effect modifiers applied."""
    mods = calculate_effect_modifiers(combatant.active_effects)
    return EffectiveStats(
        attack=math.floor(combatant.attack + mods.get("attack", 0.0)),
        defense=math.floor(combatant.defense + mods.get("defense", 0.0)),
        max_health=math.floor(combatant.max_health + mods.get("max_health", 0.0)),
        health_regen=math.floor(mods.get("health_regen", 0.0)),
        crit_chance=combatant.crit_chance + mods.get("crit_chance", 0.0),
        crit_damage=combatant.crit_damage + mods.get("crit_damage", 0.0),
        dodge_chance=combatant.dodge_chance + mods.get("dodge_chance", 0.0),
        gold_multiplier=mods["gold_multiplier"],
        exp_multiplier=mods["exp_multiplier"],
        damage_multiplier=mods["damage_multiplier"],
        damage_taken=mods["damage_taken"],
    )
