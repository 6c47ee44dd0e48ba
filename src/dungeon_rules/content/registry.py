"""Rules registry -- loads and serves the static rule tables.

Content is read once from the JSON files in ``data/`` (or an alternate
directory) and frozen.  Engines receive a registry at construction time
instead of reaching for module-level tables.
"""

from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from dungeon_rules.defs.abilities import SustainedAbility
from dungeon_rules.defs.combos import ComboDefinition, EffectCombo
from dungeon_rules.defs.constraints import ConstraintSource, EffectConstraints
from dungeon_rules.defs.status_effects import EffectCategory, StatusEffect

_DATA_DIR = Path(__file__).parent / "data"

_SEQUENCE_COMBOS_FILE = "sequence_combos.json"
_EFFECT_COMBOS_FILE = "effect_combos.json"
_STATUS_EFFECTS_FILE = "status_effects.json"
_SUSTAINED_FILE = "sustained_abilities.json"
_CONSTRAINTS_FILE = "constraints.json"


def _read_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def _parse_constraints(raw: dict[str, Any]) -> EffectConstraints:
    """Parse one constraint bucket.  ``"all"`` expands to every category."""
    categories = raw["allowed_categories"]
    if categories == "all":
        categories = [c.value for c in EffectCategory]
    return EffectConstraints(
        max_power=raw["max_power"],
        max_duration=raw["max_duration"],
        max_stacks=raw["max_stacks"],
        allowed_categories=tuple(EffectCategory(c) for c in categories),
        forbidden_triggers=tuple(raw.get("forbidden_triggers", [])),
    )


def _parse_sustained(raw: dict[str, Any]) -> SustainedAbility:
    raw = dict(raw)
    raw.setdefault("kind", "sustained")
    return SustainedAbility.model_validate(raw)


class RulesRegistry:
    """Immutable holder of combo tables, effect presets, sustained templates
    and constraint buckets.

    Usage::

        registry = RulesRegistry.load_default()
        inferno = registry.get_sequence_combo("fire_burst")
        burning = registry.create_effect("burning")
    """

    def __init__(
        self,
        *,
        sequence_combos: list[ComboDefinition] | tuple[ComboDefinition, ...] = (),
        effect_combos: list[EffectCombo] | tuple[EffectCombo, ...] = (),
        effect_presets: Mapping[str, StatusEffect] | None = None,
        sustained_templates: list[SustainedAbility] | tuple[SustainedAbility, ...] = (),
        constraints: Mapping[ConstraintSource, EffectConstraints] | None = None,
    ) -> None:
        self._sequence_combos = tuple(sequence_combos)
        self._effect_combos = tuple(effect_combos)
        self._effect_presets = MappingProxyType(dict(effect_presets or {}))
        self._sustained_templates = tuple(sustained_templates)
        self._constraints = MappingProxyType(dict(constraints or {}))

        ids = [c.id for c in self._sequence_combos]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate sequence combo ids: {ids}")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_directory(cls, path: str | Path) -> RulesRegistry:
        """Load every table from *path*.  Missing files yield empty tables."""
        path = Path(path)

        sequence_combos: list[ComboDefinition] = []
        if (path / _SEQUENCE_COMBOS_FILE).exists():
            sequence_combos = [
                ComboDefinition.model_validate(raw)
                for raw in _read_json(path / _SEQUENCE_COMBOS_FILE)
            ]

        effect_combos: list[EffectCombo] = []
        if (path / _EFFECT_COMBOS_FILE).exists():
            effect_combos = [
                EffectCombo.model_validate(raw)
                for raw in _read_json(path / _EFFECT_COMBOS_FILE)
            ]

        presets: dict[str, StatusEffect] = {}
        if (path / _STATUS_EFFECTS_FILE).exists():
            for preset_id, raw in _read_json(path / _STATUS_EFFECTS_FILE).items():
                presets[preset_id] = StatusEffect.model_validate(
                    {"source_type": "ability", **raw, "id": preset_id}
                )

        sustained: list[SustainedAbility] = []
        if (path / _SUSTAINED_FILE).exists():
            sustained = [_parse_sustained(raw) for raw in _read_json(path / _SUSTAINED_FILE)]

        constraints: dict[ConstraintSource, EffectConstraints] = {}
        if (path / _CONSTRAINTS_FILE).exists():
            for source, raw in _read_json(path / _CONSTRAINTS_FILE).items():
                constraints[ConstraintSource(source)] = _parse_constraints(raw)

        return cls(
            sequence_combos=sequence_combos,
            effect_combos=effect_combos,
            effect_presets=presets,
            sustained_templates=sustained,
            constraints=constraints,
        )

    @classmethod
    def load_default(cls) -> RulesRegistry:
        """Load the tables shipped with the package."""
        return cls.from_directory(_DATA_DIR)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    @property
    def sequence_combos(self) -> tuple[ComboDefinition, ...]:
        return self._sequence_combos

    @property
    def effect_combos(self) -> tuple[EffectCombo, ...]:
        return self._effect_combos

    @property
    def effect_presets(self) -> Mapping[str, StatusEffect]:
        return self._effect_presets

    @property
    def sustained_templates(self) -> tuple[SustainedAbility, ...]:
        return self._sustained_templates

    @property
    def constraints(self) -> Mapping[ConstraintSource, EffectConstraints]:
        return self._constraints

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_sequence_combo(self, combo_id: str) -> ComboDefinition | None:
        """Return the sequence combo with *combo_id*, or ``None``."""
        for combo in self._sequence_combos:
            if combo.id == combo_id:
                return combo
        return None

    def get_effect_combo(self, combo_id: str) -> EffectCombo | None:
        for combo in self._effect_combos:
            if combo.id == combo_id:
                return combo
        return None

    def get_sustained_template(self, ability_id: str) -> SustainedAbility | None:
        for template in self._sustained_templates:
            if template.id == ability_id:
                return template
        return None

    def get_constraints(self, source: ConstraintSource | str) -> EffectConstraints:
        """Return the bucket for *source*.

        Raises
        ------
        KeyError
            If no bucket is registered for *source*.
        """
        return self._constraints[ConstraintSource(source)]

    def create_effect(self, preset_id: str, stacks: int = 1) -> StatusEffect:
        """Instantiate a preset effect with a fresh id.

        Parameters
        ----------
        preset_id:
            Key in ``status_effects.json`` (e.g. ``"burning"``).
        stacks:
            Starting stack count, clamped to the preset's ``max_stacks``.

        Raises
        ------
        KeyError
            If *preset_id* is unknown.
        """
        preset = self._effect_presets[preset_id]
        return preset.instantiate(current_stacks=max(1, min(stacks, preset.max_stacks)))

    def __repr__(self) -> str:
        return (
            f"RulesRegistry(sequence_combos={len(self._sequence_combos)}, "
            f"effect_combos={len(self._effect_combos)}, "
            f"presets={len(self._effect_presets)}, "
            f"sustained={len(self._sustained_templates)}, "
            f"constraints={len(self._constraints)})"
        )
