"""Effect combo matcher -- reactions between two status effects.

Effects are classified into elements and tags by keyword substrings of
their lower-cased names.  The keyword tables below are kept exactly as the
game has always shipped them, including their fuzzy matches (e.g. any
effect without an element counts as ``physical``, so "Stunned" can shatter
a frozen target).

Two entry points:

- :meth:`EffectComboMatcher.on_insert` runs when a new effect is about to
  be added.  The first registry rule where the new effect satisfies one
  side and an existing effect satisfies the other fires.
- :meth:`EffectComboMatcher.sweep` is the passive once-per-turn check over
  pairs of already-active effects, at most one combo per pair.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from dungeon_rules.defs.combos import (
    AmplifyResult,
    ChainResult,
    ComboTriggerSpec,
    DamageResult,
    EffectCombo,
    EffectElement,
    EffectTag,
    HealResult,
    NewEffectResult,
    RemoveBothResult,
    SpreadResult,
    TransformResult,
)
from dungeon_rules.defs.status_effects import (
    EffectCategory,
    SourceType,
    StatusEffect,
)

from .status_effects import apply_effect

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Keyword classification
# ---------------------------------------------------------------------------

_ELEMENT_KEYWORDS: tuple[tuple[EffectElement, tuple[str, ...]], ...] = (
    (EffectElement.FIRE, ("burn", "fire", "flame", "scorch")),
    (EffectElement.ICE, ("frost", "ice", "frozen", "cold")),
    (EffectElement.LIGHTNING, ("shock", "lightning", "electric")),
    (EffectElement.WATER, ("water", "wet", "drown", "flood")),
    (EffectElement.POISON, ("poison", "venom", "toxic")),
    (EffectElement.HOLY, ("holy", "divine", "blessed", "radiant")),
    (EffectElement.DARK, ("dark", "shadow", "curse", "necrotic")),
    (EffectElement.ARCANE, ("arcane", "magic", "mana")),
    (EffectElement.NATURE, ("nature", "growth", "thorn", "vine")),
    (EffectElement.BLOOD, ("blood", "bleed", "hemorrhage")),
)
_PHYSICAL_KEYWORDS = ("strike", "bash", "crush")
_PSYCHIC_KEYWORDS = ("fear", "terror", "madness", "confusion")

_TAG_KEYWORDS: tuple[tuple[EffectTag, tuple[str, ...]], ...] = (
    (EffectTag.BURNING, ("burn",)),
    (EffectTag.WET, ("wet", "soak", "drench")),
    (EffectTag.FROZEN, ("frozen", "freeze")),
    (EffectTag.OILED, ("oil", "grease")),
    (EffectTag.BLEEDING, ("bleed", "hemorrhage", "lacerat")),
    (EffectTag.SHOCKED, ("shock", "paralyz")),
    (EffectTag.BLINDED, ("blind", "darkness")),
    (EffectTag.CURSED, ("curse",)),
    (EffectTag.BLESSED, ("bless",)),
    (EffectTag.ETHEREAL, ("ethereal", "ghost", "spirit")),
    (EffectTag.ENRAGED, ("rage", "fury", "enrage")),
    (EffectTag.WEAKENED, ("weaken", "exhaust", "fatigue")),
    (EffectTag.EMPOWERED, ("empower", "strengthen", "might")),
    (EffectTag.VULNERABLE, ("vulnerable", "exposed")),
)

# Tags also implied by an effect's animation or entity type.
_TAG_ANIMATIONS = {EffectTag.BURNING: "burn", EffectTag.FROZEN: "freeze"}
_TAG_ENTITY_TYPES = {EffectTag.CURSED: "curse", EffectTag.BLESSED: "blessing"}


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(k in text for k in keywords)


def infer_elements(effect: StatusEffect) -> list[EffectElement]:
    """Classify *effect* into elements by name.  Never returns an empty list."""
    name = effect.name.lower()
    elements = [el for el, keywords in _ELEMENT_KEYWORDS if _contains_any(name, keywords)]

    if _contains_any(name, _PHYSICAL_KEYWORDS) or (
        effect.category is EffectCategory.DAMAGE_OVER_TIME and not elements
    ):
        elements.append(EffectElement.PHYSICAL)
    if _contains_any(name, _PSYCHIC_KEYWORDS):
        elements.append(EffectElement.PSYCHIC)

    return elements or [EffectElement.PHYSICAL]


def infer_tags(effect: StatusEffect) -> list[EffectTag]:
    """Classify *effect* into tags by name, animation and entity type."""
    name = effect.name.lower()
    tags: list[EffectTag] = []
    for tag, keywords in _TAG_KEYWORDS:
        if (
            _contains_any(name, keywords)
            or (tag in _TAG_ANIMATIONS and effect.animation == _TAG_ANIMATIONS[tag])
            or (tag in _TAG_ENTITY_TYPES and effect.entity_type == _TAG_ENTITY_TYPES[tag])
        ):
            tags.append(tag)
    return tags


def matches_trigger(effect: StatusEffect, spec: ComboTriggerSpec) -> bool:
    """True if *effect* satisfies one side of a combo rule."""
    if spec.effect_name is not None:
        return spec.effect_name.lower() in effect.name.lower()
    if spec.element is not None:
        return spec.element in infer_elements(effect)
    if spec.tag is not None:
        return spec.tag in infer_tags(effect)
    return False


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class ComboOutcome(BaseModel):
    """Result of one fired effect combo.

    ``effects`` is the combatant's full effect list after the combo.
    ``damage`` and ``healing`` apply to the bearer.  ``spread`` holds
    copies for the caller to apply to other combatants.
    """

    model_config = ConfigDict(frozen=True)

    combo: EffectCombo
    effects: tuple[StatusEffect, ...]
    removed: tuple[StatusEffect, ...] = ()
    created: tuple[StatusEffect, ...] = ()
    damage: int = 0
    healing: int = 0
    spread: tuple[StatusEffect, ...] = ()
    narration: str


class SweepOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    effects: tuple[StatusEffect, ...]
    combos: tuple[ComboOutcome, ...] = ()

    @property
    def damage(self) -> int:
        return sum(c.damage for c in self.combos)

    @property
    def healing(self) -> int:
        return sum(c.healing for c in self.combos)

    @property
    def narration(self) -> list[str]:
        return [c.narration for c in self.combos]


def _combo_instance(template: StatusEffect, combo: EffectCombo) -> StatusEffect:
    return template.instantiate(
        source_type=SourceType.COMBO,
        source_id=combo.id,
        source_name=combo.name,
    )


def _amplify(effect: StatusEffect, multiplier: float) -> StatusEffect:
    return effect.model_copy(update={
        "name": f"Amplified {effect.name}",
        "power_level": min(10, math.floor(effect.power_level * multiplier)),
        "modifiers": effect.modifiers.scaled(multiplier),
    })


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------

class EffectComboMatcher:
    """Detects and resolves effect combos against a rule table.

    Parameters
    ----------
    combos:
        Ordered rule table; earlier rules win.
    """

    def __init__(self, combos: Iterable[EffectCombo]) -> None:
        self.combos = tuple(combos)

    # -- insertion -----------------------------------------------------------

    def find_on_insert(
        self, effects: Sequence[StatusEffect], new_effect: StatusEffect
    ) -> tuple[EffectCombo, StatusEffect, StatusEffect] | None:
        """Return ``(combo, first, second)`` for the first rule *new_effect*
        completes, or ``None``.

        ``first`` is the effect satisfying ``trigger1``.
        """
        for combo in self.combos:
            new_is_first = matches_trigger(new_effect, combo.trigger1)
            new_is_second = not new_is_first and matches_trigger(new_effect, combo.trigger2)
            if not (new_is_first or new_is_second):
                continue

            wanted = combo.trigger2 if new_is_first else combo.trigger1
            partner = next(
                (e for e in effects if e.id != new_effect.id and matches_trigger(e, wanted)),
                None,
            )
            if partner is None:
                continue

            if new_is_first:
                return combo, new_effect, partner
            return combo, partner, new_effect
        return None

    def on_insert(
        self, effects: Iterable[StatusEffect], new_effect: StatusEffect
    ) -> ComboOutcome | None:
        """Resolve the combo (if any) that *new_effect* triggers.

        Returns ``None`` when nothing reacts; the caller then applies the
        effect normally.  When a combo fires, the returned ``effects``
        already include *new_effect* if its side was not consumed.
        """
        effects = tuple(effects)
        match = self.find_on_insert(effects, new_effect)
        if match is None:
            return None

        combo, first, second = match
        logger.debug("Effect combo %s: %s + %s", combo.id, first.name, second.name)
        return self._resolve(effects, combo, first, second, incoming=new_effect)

    # -- passive sweep -------------------------------------------------------

    def sweep(self, effects: Iterable[StatusEffect]) -> SweepOutcome:
        """Check every pair of active effects once, firing at most one combo
        per pair.  Consumed effects take no part in later pairs.
        """
        current = tuple(effects)
        snapshot = current
        outcomes: list[ComboOutcome] = []
        consumed: set[str] = set()

        for i, a in enumerate(snapshot):
            for b in snapshot[i + 1:]:
                if a.id in consumed or b.id in consumed:
                    continue
                live_ids = {e.id for e in current}
                if a.id not in live_ids or b.id not in live_ids:
                    continue

                for combo in self.combos:
                    if matches_trigger(a, combo.trigger1) and matches_trigger(b, combo.trigger2):
                        first, second = a, b
                    elif matches_trigger(b, combo.trigger1) and matches_trigger(a, combo.trigger2):
                        first, second = b, a
                    else:
                        continue

                    # Amplify may have renamed a side; resolve against the live copies.
                    first = next(e for e in current if e.id == first.id)
                    second = next(e for e in current if e.id == second.id)
                    outcome = self._resolve(current, combo, first, second)
                    outcomes.append(outcome)
                    current = outcome.effects
                    consumed.update(e.id for e in outcome.removed)
                    logger.debug("Passive effect combo %s fired", combo.id)
                    break

        return SweepOutcome(effects=current, combos=tuple(outcomes))

    # -- resolution ----------------------------------------------------------

    def _resolve(
        self,
        effects: tuple[StatusEffect, ...],
        combo: EffectCombo,
        first: StatusEffect,
        second: StatusEffect,
        incoming: StatusEffect | None = None,
    ) -> ComboOutcome:
        consume_first, consume_second = combo.consumes_triggers
        result = combo.result

        if isinstance(result, RemoveBothResult):
            consume_first = consume_second = True
        elif isinstance(result, TransformResult):
            consume_first = True

        removed_ids: set[str] = set()
        if consume_first:
            removed_ids.add(first.id)
        if consume_second:
            removed_ids.add(second.id)

        # The incoming effect joins the list unless its side was consumed.
        working = list(effects)
        if incoming is not None and incoming.id not in removed_ids:
            working.append(incoming)

        removed = tuple(e for e in (first, second) if e.id in removed_ids)
        insert_at = next(
            (i for i, e in enumerate(working) if e.id == first.id), len(working)
        )
        working = [e for e in working if e.id not in removed_ids]

        created: list[StatusEffect] = []
        damage = 0
        healing = 0
        spread: list[StatusEffect] = []

        if isinstance(result, NewEffectResult):
            created.append(_combo_instance(result.effect, combo))
        elif isinstance(result, ChainResult):
            created.extend(_combo_instance(e, combo) for e in result.effects)
        elif isinstance(result, TransformResult):
            transformed = _combo_instance(result.effect, combo)
            working.insert(min(insert_at, len(working)), transformed)
            created.append(transformed)
        elif isinstance(result, DamageResult):
            damage = result.amount
        elif isinstance(result, HealResult):
            healing = result.amount
        elif isinstance(result, AmplifyResult):
            targets: list[StatusEffect] = []
            if result.target in ("first", "both"):
                targets.append(first)
            if result.target in ("second", "both"):
                targets.append(second)
            for target in targets:
                if target.id in removed_ids:
                    continue
                amplified = _amplify(target, result.multiplier)
                working = [amplified if e.id == target.id else e for e in working]
        elif isinstance(result, SpreadResult):
            spread.extend(
                e.instantiate() for e in (first, second) if e.id not in removed_ids
            )

        resulting = tuple(working)
        if not isinstance(result, TransformResult):
            for effect in created:
                resulting = apply_effect(resulting, effect).effects

        return ComboOutcome(
            combo=combo,
            effects=resulting,
            removed=removed,
            created=tuple(created),
            damage=damage,
            healing=healing,
            spread=tuple(spread),
            narration=combo.narrative,
        )
