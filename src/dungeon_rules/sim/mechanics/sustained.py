"""Sustained (toggle) ability manager.

A sustained ability reserves part of its owner's max resource pool (and
sometimes max health) for as long as it is active.  Activation is guarded
by a fixed sequence of prechecks, each failing with its own reason string.
Every turn an active sustain ages by one; it shuts itself off when it hits
``max_duration`` or when its upkeep can no longer be paid.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from dungeon_rules.defs.abilities import SustainedAbility
from dungeon_rules.defs.status_effects import StatusEffect
from dungeon_rules.sim.core.entities import ResourcePool

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------

class ActivationCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_activate: bool
    reason: str | None = None


class ActivationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    ability: SustainedAbility
    error: str | None = None
    narration: str
    effect_applied: StatusEffect | None = None
    resource_cost: int = 0


class DeactivationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ability: SustainedAbility
    narration: str
    resource_cost: int = 0


class SustainedTick(BaseModel):
    """Upkeep and payload of one turn of an active sustain."""

    model_config = ConfigDict(frozen=True)

    damage: int = 0
    healing: int = 0
    resource_drain: int = 0
    health_drain: int = 0
    target_type: str = "self"
    narration: str | None = None


class SustainedTurnResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ability: SustainedAbility
    tick: SustainedTick | None = None
    auto_deactivated: bool = False
    deactivation_reason: str | None = None


class SustainedState(BaseModel):
    model_config = ConfigDict(frozen=True)

    active_ids: tuple[str, ...]
    total_resource_reserved: int
    total_health_reserved: int
    effective_max_resource: int
    effective_max_health: int


class EffectiveResources(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: int
    max: int
    reserved: int


# ---------------------------------------------------------------------------
# Reservation accounting
# ---------------------------------------------------------------------------

def _reserved_resource(abilities: Iterable[SustainedAbility]) -> int:
    return sum(a.sustained.resource_reserve for a in abilities if a.is_active)


def _reserved_health(abilities: Iterable[SustainedAbility]) -> int:
    return sum(a.sustained.health_reserve for a in abilities if a.is_active)


def calculate_sustained_state(
    abilities: Sequence[SustainedAbility],
    base_max_resource: int,
    base_max_health: int,
) -> SustainedState:
    """Sum the reservations of every active sustain."""
    resource = _reserved_resource(abilities)
    health = _reserved_health(abilities)
    return SustainedState(
        active_ids=tuple(a.id for a in abilities if a.is_active),
        total_resource_reserved=resource,
        total_health_reserved=health,
        effective_max_resource=max(0, base_max_resource - resource),
        effective_max_health=max(1, base_max_health - health),
    )


def get_effective_resources(
    resources: ResourcePool, abilities: Sequence[SustainedAbility]
) -> EffectiveResources:
    """Return the pool as seen through active reservations.

    ``current`` is clamped to ``[0, max - reserved]``.
    """
    reserved = _reserved_resource(abilities)
    effective_max = resources.max - reserved
    return EffectiveResources(
        current=max(0, min(resources.current, effective_max)),
        max=effective_max,
        reserved=reserved,
    )


# ---------------------------------------------------------------------------
# Activation / deactivation
# ---------------------------------------------------------------------------

def can_activate_sustained(
    ability: SustainedAbility,
    current_resource: int,
    max_resource: int,
    current_health: int,
    max_health: int,
    active_sustained: Sequence[SustainedAbility],
) -> ActivationCheck:
    """Run the activation prechecks in order; the first failure wins.

    1. not already active
    2. ``current_resource >= activation_cost``
    3. reserved resource + this reserve ``< max_resource``
    4. reserved health + this health reserve ``< max_health - 1``
    5. no incompatibility with an active sustain, checked both ways
    """
    config = ability.sustained
    resource_name = ability.resource_type.value

    if ability.is_active:
        return ActivationCheck(can_activate=False, reason="Ability is already active.")

    if current_resource < config.activation_cost:
        return ActivationCheck(
            can_activate=False,
            reason=(
                f"Not enough {resource_name}. "
                f"Need {config.activation_cost}, have {current_resource}."
            ),
        )

    if _reserved_resource(active_sustained) + config.resource_reserve >= max_resource:
        return ActivationCheck(
            can_activate=False,
            reason=f"Not enough {resource_name} capacity to sustain this ability.",
        )

    if config.health_reserve:
        if _reserved_health(active_sustained) + config.health_reserve >= max_health - 1:
            return ActivationCheck(
                can_activate=False,
                reason="Not enough health to sustain this ability.",
            )

    for active in active_sustained:
        if not active.is_active or active.id == ability.id:
            continue
        if active.id in config.incompatible_with:
            return ActivationCheck(
                can_activate=False,
                reason=f"Cannot activate while {active.name} is active.",
            )
        if ability.id in active.sustained.incompatible_with:
            return ActivationCheck(
                can_activate=False,
                reason=f"{active.name} prevents activation of this ability.",
            )

    return ActivationCheck(can_activate=True)


def activate_sustained(
    ability: SustainedAbility,
    current_resource: int,
    max_resource: int,
    current_health: int,
    max_health: int,
    active_sustained: Sequence[SustainedAbility],
) -> ActivationResult:
    """Activate *ability* if every precheck passes.

    On success the caller adds ``effect_applied`` to the owner's effects
    and deducts ``resource_cost``.
    """
    check = can_activate_sustained(
        ability, current_resource, max_resource, current_health, max_health, active_sustained
    )
    if not check.can_activate:
        return ActivationResult(
            success=False,
            ability=ability,
            error=check.reason,
            narration=f"Failed to activate {ability.name}: {check.reason}",
        )

    constant = ability.sustained.constant_effect
    description = constant.description if constant is not None else ability.description
    return ActivationResult(
        success=True,
        ability=ability.model_copy(update={"is_active": True, "turns_active": 0}),
        narration=ability.cast_narration or f"You activate {ability.name}. {description}",
        effect_applied=constant.instantiate(source_id=ability.id, source_name=ability.name)
        if constant is not None
        else None,
        resource_cost=ability.sustained.activation_cost,
    )


def deactivate_sustained(ability: SustainedAbility) -> DeactivationResult:
    """Release *ability*.  Always succeeds."""
    return DeactivationResult(
        ability=ability.model_copy(update={"is_active": False, "turns_active": 0}),
        narration=f"You release {ability.name}. The effect fades.",
        resource_cost=ability.sustained.deactivation_cost,
    )


def deactivate_all_sustained(
    abilities: Iterable[SustainedAbility],
) -> tuple[SustainedAbility, ...]:
    """Switch every sustain off (death, floor change, ...).  Idempotent."""
    return tuple(
        a.model_copy(update={"is_active": False, "turns_active": 0}) for a in abilities
    )


# ---------------------------------------------------------------------------
# Turn processing
# ---------------------------------------------------------------------------

def process_sustained_turn(
    ability: SustainedAbility, current_resource: int, current_health: int
) -> SustainedTurnResult:
    """Age an active sustain by one turn and report its tick.

    Auto-deactivates when ``max_duration`` is reached, when the resource
    drain cannot be paid, or when the health drain would be fatal
    (``current_health <= health_drain``).
    """
    if not ability.is_active:
        return SustainedTurnResult(ability=ability)

    config = ability.sustained
    aged = ability.model_copy(update={"turns_active": ability.turns_active + 1})
    off = ability.model_copy(update={"is_active": False, "turns_active": 0})

    if config.max_duration and aged.turns_active >= config.max_duration:
        logger.debug("Sustain %s hit max duration", ability.id)
        return SustainedTurnResult(
            ability=off,
            auto_deactivated=True,
            deactivation_reason=f"{ability.name} has reached its maximum duration.",
        )

    tick = config.tick_effect
    if tick is None:
        return SustainedTurnResult(ability=aged)

    if tick.resource_drain and current_resource < tick.resource_drain:
        logger.debug("Sustain %s cannot pay %d upkeep", ability.id, tick.resource_drain)
        return SustainedTurnResult(
            ability=off,
            auto_deactivated=True,
            deactivation_reason=(
                f"Not enough {ability.resource_type.value} to maintain {ability.name}."
            ),
        )

    if tick.health_drain and current_health <= tick.health_drain:
        logger.debug("Sustain %s would be fatal", ability.id)
        return SustainedTurnResult(
            ability=off,
            auto_deactivated=True,
            deactivation_reason=f"{ability.name} would be fatal to maintain.",
        )

    return SustainedTurnResult(
        ability=aged,
        tick=SustainedTick(
            damage=tick.damage,
            healing=tick.healing,
            resource_drain=tick.resource_drain,
            health_drain=tick.health_drain,
            target_type=tick.target_type.value,
            narration=tick.narration,
        ),
    )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def create_sustained_ability(template: SustainedAbility) -> SustainedAbility:
    """Return an inactive copy of *template* with a fresh constant-effect id."""
    constant = template.sustained.constant_effect
    sustained = template.sustained
    if constant is not None:
        sustained = sustained.model_copy(update={"constant_effect": constant.instantiate()})
    return template.model_copy(
        update={"sustained": sustained, "is_active": False, "turns_active": 0}
    )


def sustained_for_class(
    templates: Iterable[SustainedAbility], player_class: str, level: int
) -> list[SustainedAbility]:
    """Sustains a *player_class* character of *level* may learn."""
    return [
        create_sustained_ability(t)
        for t in templates
        if t.level_required <= level
        and (not t.class_required or player_class in t.class_required)
    ]
