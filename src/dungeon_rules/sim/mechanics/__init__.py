"""Pure rule functions for the dungeon combat engine.

Re-exports the primary functions from each mechanics module for convenience.

Usage::

    from dungeon_rules.sim.mechanics import (
        apply_effect, remove_effect, effective_stats,
        calculate_damage, calculate_incoming_damage, roll_critical,
        check_for_combo, tick_combo,
        EffectComboMatcher,
        activate_sustained, process_sustained_turn,
        execute_ability,
        clamp_effect,
    )
"""

# -- status effects ----------------------------------------------------------
from .status_effects import (
    EffectApplication,
    EffectRemoval,
    EffectiveStats,
    apply_effect,
    apply_effects,
    calculate_effect_modifiers,
    effective_stats,
    find_effect,
    remove_effect,
    remove_effects_by_name,
)

# -- damage ------------------------------------------------------------------
from .damage import (
    DamageCalculation,
    calculate_damage,
    calculate_incoming_damage,
    roll_critical,
)

# -- sequence combos ---------------------------------------------------------
from .sequence_combos import (
    ComboCheck,
    active_combo_effect,
    check_for_combo,
    consume_combo,
    tick_combo,
)

# -- effect combos -----------------------------------------------------------
from .effect_combos import (
    ComboOutcome,
    EffectComboMatcher,
    SweepOutcome,
    infer_elements,
    infer_tags,
    matches_trigger,
)

# -- sustained abilities -----------------------------------------------------
from .sustained import (
    ActivationResult,
    DeactivationResult,
    SustainedTurnResult,
    activate_sustained,
    calculate_sustained_state,
    can_activate_sustained,
    create_sustained_ability,
    deactivate_all_sustained,
    deactivate_sustained,
    get_effective_resources,
    process_sustained_turn,
    sustained_for_class,
)

# -- abilities ---------------------------------------------------------------
from .abilities import (
    AbilityResult,
    SpellCastResult,
    calculate_ability_damage,
    calculate_ability_healing,
    can_use_ability,
    execute_ability,
    resource_cost_for,
    spendable_resource,
)

# -- validation --------------------------------------------------------------
from .validation import clamp_effect, validate_effect

__all__ = [
    # status effects
    "EffectApplication",
    "EffectRemoval",
    "EffectiveStats",
    "apply_effect",
    "apply_effects",
    "remove_effect",
    "remove_effects_by_name",
    "find_effect",
    "calculate_effect_modifiers",
    "effective_stats",
    # damage
    "DamageCalculation",
    "calculate_damage",
    "calculate_incoming_damage",
    "roll_critical",
    # sequence combos
    "ComboCheck",
    "check_for_combo",
    "tick_combo",
    "consume_combo",
    "active_combo_effect",
    # effect combos
    "ComboOutcome",
    "SweepOutcome",
    "EffectComboMatcher",
    "infer_elements",
    "infer_tags",
    "matches_trigger",
    # sustained abilities
    "ActivationResult",
    "DeactivationResult",
    "SustainedTurnResult",
    "can_activate_sustained",
    "activate_sustained",
    "deactivate_sustained",
    "deactivate_all_sustained",
    "process_sustained_turn",
    "calculate_sustained_state",
    "get_effective_resources",
    "create_sustained_ability",
    "sustained_for_class",
    # abilities
    "AbilityResult",
    "SpellCastResult",
    "can_use_ability",
    "calculate_ability_damage",
    "calculate_ability_healing",
    "execute_ability",
    "resource_cost_for",
    "spendable_resource",
    # validation
    "validate_effect",
    "clamp_effect",
]
