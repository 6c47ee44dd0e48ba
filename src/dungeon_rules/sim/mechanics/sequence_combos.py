"""Ability-sequence combo tracker.

Two states per combatant: idle (no active combo) and combo-active
(countdown > 0).  Each action appends a tag to a three-slot window; a
positional match of the window's tail against a registered sequence
("any" matches every tag) activates that combo with its configured
countdown.  Otherwise an active combo counts down and goes idle at 0.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from dungeon_rules.defs.combos import ANY_TAG, ComboDefinition, SequenceComboEffect
from dungeon_rules.sim.core.entities import ActiveCombo, ComboTracker

logger = logging.getLogger(__name__)

WINDOW_SIZE = 3


class ComboCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    tracker: ComboTracker
    triggered: ComboDefinition | None = None


def _sequence_matches(sequence: Sequence[str], window: Sequence[str]) -> bool:
    if len(window) < len(sequence):
        return False
    tail = window[len(window) - len(sequence):]
    return all(slot == ANY_TAG or slot == tag for slot, tag in zip(sequence, tail))


def _count_down(active: ActiveCombo | None) -> ActiveCombo | None:
    if active is None:
        return None
    remaining = active.turns_remaining - 1
    if remaining <= 0:
        logger.debug("Combo %s expired", active.name)
        return None
    return active.model_copy(update={"turns_remaining": remaining})


def check_for_combo(
    tracker: ComboTracker, tag: str, combos: Iterable[ComboDefinition]
) -> ComboCheck:
    """Push *tag* into the window and test every registered sequence in order."""
    window = (tracker.last_abilities + (tag,))[-WINDOW_SIZE:]

    for combo in combos:
        if _sequence_matches(combo.sequence, window):
            logger.debug("Combo %s triggered by %s", combo.name, window)
            active = ActiveCombo(
                combo_id=combo.id,
                name=combo.name,
                bonus=combo.bonus,
                turns_remaining=combo.effect.duration,
            )
            return ComboCheck(
                tracker=ComboTracker(last_abilities=window, active_combo=active),
                triggered=combo,
            )

    return ComboCheck(
        tracker=ComboTracker(
            last_abilities=window,
            active_combo=_count_down(tracker.active_combo),
        )
    )


def tick_combo(tracker: ComboTracker) -> ComboTracker:
    """Once-per-turn countdown of the active combo."""
    if tracker.active_combo is None:
        return tracker
    return tracker.model_copy(update={"active_combo": _count_down(tracker.active_combo)})


def consume_combo(tracker: ComboTracker) -> ComboTracker:
    """End the active combo early (used by one-shot effects like a full block)."""
    return tracker.model_copy(update={"active_combo": None})


def active_combo_effect(
    tracker: ComboTracker, combos: Iterable[ComboDefinition]
) -> SequenceComboEffect | None:
    """Return the effect of *tracker*'s active combo, or ``None`` when idle."""
    active = tracker.active_combo
    if active is None:
        return None
    for combo in combos:
        if combo.id == active.combo_id:
            return combo.effect
    logger.warning("Active combo %r is not in the registry", active.combo_id)
    return None
