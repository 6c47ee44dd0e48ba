"""CombatEngine -- sequences single actions and turn boundaries.

Every public method is a pure transform: it takes the current combatant
records and returns new ones inside an outcome record together with the
narration lines produced along the way.  One action resolves fully
(damage, then effect application, then combo checks) before it returns.

Turn structure expected from the caller::

    engine.start_turn(player, enemy)
    engine.player_attack(player, enemy)   # or engine.use_ability(...)
    engine.end_turn(player, enemy)
    engine.start_turn(enemy, player)
    engine.enemy_turn(enemy, player)
    engine.end_turn(enemy, player)
"""

from __future__ import annotations

import logging
import math
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from dungeon_rules.content.registry import RulesRegistry
from dungeon_rules.defs.abilities import DamageType, SustainedAbility, TargetType
from dungeon_rules.defs.combos import SequenceComboEffect
from dungeon_rules.defs.status_effects import EffectTrigger, StatusEffect
from dungeon_rules.sim.core.entities import Combatant, Enemy, Player
from dungeon_rules.sim.core.rng import GameRNG
from dungeon_rules.sim.enemy_ai import (
    put_on_cooldown,
    select_enemy_ability,
    tick_enemy_abilities,
)
from dungeon_rules.sim.mechanics.abilities import (
    SpellCastResult,
    execute_ability,
    spendable_resource,
)
from dungeon_rules.sim.mechanics.damage import (
    calculate_damage,
    calculate_incoming_damage,
    roll_critical,
)
from dungeon_rules.sim.mechanics.effect_combos import ComboOutcome, EffectComboMatcher
from dungeon_rules.sim.mechanics.sequence_combos import (
    active_combo_effect,
    check_for_combo,
    consume_combo,
    tick_combo,
)
from dungeon_rules.sim.mechanics.status_effects import (
    apply_effect,
    effective_stats,
    remove_effects_by_name,
)
from dungeon_rules.sim.mechanics.sustained import (
    activate_sustained,
    deactivate_sustained,
    get_effective_resources,
    process_sustained_turn,
)
from dungeon_rules.sim.triggers import TriggerEngine

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=Combatant)


# ---------------------------------------------------------------------------
# Outcome records
# ---------------------------------------------------------------------------

class EffectOutcome(BaseModel, Generic[C]):
    """Result of :meth:`CombatEngine.add_effect`."""

    model_config = ConfigDict(frozen=True)

    combatant: C
    combo: ComboOutcome | None = None
    narration: tuple[str, ...] = ()


class ActionOutcome(BaseModel):
    """Result of a player action.

    ``success`` is ``False`` for rule failures (no resource, on cooldown,
    unknown ability); ``reason`` then says why and nothing else changed.
    """

    model_config = ConfigDict(frozen=True)

    player: Player
    enemy: Enemy | None = None
    success: bool = True
    reason: str | None = None
    damage: int = 0
    healing: int = 0
    is_critical: bool = False
    effectiveness: str = "normal"
    combo_triggered: str | None = None
    narration: tuple[str, ...] = ()


class EnemyTurnOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    enemy: Enemy
    player: Player
    ability_used: str | None = None
    damage: int = 0
    blocked: bool = False
    narration: tuple[str, ...] = ()


class TurnOutcome(BaseModel):
    """Result of a turn boundary for one combatant.

    ``opponent`` is only set when something (a spread effect, a sustained
    aura) reached the other side.
    """

    model_config = ConfigDict(frozen=True)

    combatant: Combatant
    opponent: Combatant | None = None
    damage: int = 0
    healing: int = 0
    expired: tuple[str, ...] = ()
    deactivated: tuple[str, ...] = ()
    narration: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class CombatEngine:
    """Glue between the rule functions for a one-on-one fight.

    Parameters
    ----------
    registry:
        Content tables (combos, presets, sustained templates).
    rng:
        Root RNG.  Crit rolls, enemy AI and triggered effects each draw
        from their own fork so one system never perturbs another.
    """

    def __init__(self, registry: RulesRegistry, rng: GameRNG) -> None:
        self.registry = registry
        self.rng = rng
        self._crit_rng = rng.fork("crits")
        self._ai_rng = rng.fork("enemy_ai")
        self.triggers = TriggerEngine(rng.fork("triggers"))
        self.matcher = EffectComboMatcher(registry.effect_combos)

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def add_effect(self, combatant: C, effect: StatusEffect) -> EffectOutcome[C]:
        """Insert *effect* on *combatant*, resolving any effect combo first."""
        combo = self.matcher.on_insert(combatant.active_effects, effect)
        if combo is None:
            applied = apply_effect(combatant.active_effects, effect)
            return EffectOutcome(
                combatant=combatant.with_effects(applied.effects),
                narration=(applied.narration,),
            )

        updated = (
            combatant.with_effects(combo.effects)
            .take_damage(combo.damage)
            .heal(combo.healing)
        )
        narration = [f"{combo.combo.name}! {combo.narration}"]
        if combo.damage:
            narration.append(f"{combatant.name} takes {combo.damage} damage.")
        if combo.healing:
            narration.append(f"{combatant.name} recovers {combo.healing} health.")
        return EffectOutcome(combatant=updated, combo=combo, narration=tuple(narration))

    def _add_effects(
        self, combatant: C, effects: tuple[StatusEffect, ...] | list[StatusEffect]
    ) -> tuple[C, list[str]]:
        narration: list[str] = []
        for effect in effects:
            outcome = self.add_effect(combatant, effect)
            combatant = outcome.combatant
            narration.extend(outcome.narration)
        return combatant, narration

    def _fire(
        self, bearer: C, trigger: EffectTrigger, opponent: Combatant | None = None
    ) -> tuple[C, Combatant | None, list[str], list[str]]:
        """Run *trigger* on *bearer* and commit its outcome.

        Returns ``(bearer, opponent, narration, expired_names)``.
        """
        outcome = self.triggers.process(bearer.active_effects, trigger)
        bearer = bearer.with_effects(outcome.effects).take_damage(outcome.damage).heal(
            outcome.healing
        )
        narration = list(outcome.narration)

        for spawned in outcome.spawned:
            if spawned.target_type == "self":
                bearer, lines = self._add_effects(bearer, [spawned.effect])
            elif opponent is not None:
                opponent, lines = self._add_effects(opponent, [spawned.effect])
            else:
                logger.debug("No target for %s from %s", spawned.effect.name, spawned.source_name)
                continue
            narration.extend(lines)

        if opponent is not None and outcome.spread:
            opponent, lines = self._add_effects(opponent, list(outcome.spread))
            narration.extend(lines)

        return bearer, opponent, narration, [e.name for e in outcome.expired]

    # ------------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------------

    def _combo_effect(self, player: Player) -> SequenceComboEffect | None:
        return active_combo_effect(player.combo, self.registry.sequence_combos)

    def _advance_combo(
        self, player: Player, tag: str | None, used: SequenceComboEffect | None
    ) -> tuple[Player, str | None]:
        tracker = player.combo
        if used is not None and used.ignore_defense:
            tracker = consume_combo(tracker)
        if tag is None:
            return player.model_copy(update={"combo": tracker}), None
        check = check_for_combo(tracker, tag, self.registry.sequence_combos)
        triggered = check.triggered.name if check.triggered is not None else None
        return player.model_copy(update={"combo": check.tracker}), triggered

    @staticmethod
    def _debuffed_enemy(enemy: Enemy, combo: SequenceComboEffect | None) -> Enemy:
        if combo is None or combo.enemy_debuff is None or not combo.enemy_debuff.defense:
            return enemy
        defense = math.floor(enemy.defense * (1 + combo.enemy_debuff.defense))
        return enemy.model_copy(update={"defense": max(0, defense)})

    def player_attack(
        self,
        player: Player,
        enemy: Enemy,
        damage_type: DamageType = DamageType.PHYSICAL,
    ) -> ActionOutcome:
        """Basic weapon attack.  Pushes *damage_type* into the combo window."""
        combo = self._combo_effect(player)
        stats = effective_stats(player)

        calc = calculate_damage(stats.attack, damage_type, player, enemy, combo)
        damage = calc.damage
        if combo is None or not combo.ignore_defense:
            damage = calculate_incoming_damage(damage, self._debuffed_enemy(enemy, combo))
        damage, is_critical = roll_critical(damage, stats.crit_chance, self._crit_rng)

        enemy = enemy.take_damage(damage)
        narration = [
            f"CRITICAL! You strike {enemy.name} for {damage} damage!"
            if is_critical
            else f"You strike {enemy.name} for {damage} damage."
        ]
        if calc.effectiveness == "effective":
            narration.append("It's super effective!")
        elif calc.effectiveness == "resisted":
            narration.append("The enemy resists the attack.")

        player, enemy, lines, _ = self._fire(player, EffectTrigger.ON_ATTACK, enemy)
        narration.extend(lines)
        enemy, player, lines, _ = self._fire(enemy, EffectTrigger.ON_DAMAGE_TAKEN, player)
        narration.extend(lines)

        player, triggered = self._advance_combo(player, damage_type.value, combo)
        if triggered:
            narration.append(f"COMBO! {triggered}!")

        return ActionOutcome(
            player=player,
            enemy=enemy,
            damage=damage,
            is_critical=is_critical,
            effectiveness=calc.effectiveness,
            combo_triggered=triggered,
            narration=tuple(narration),
        )

    def use_ability(
        self, player: Player, ability_id: str, enemy: Enemy | None = None
    ) -> ActionOutcome:
        """Cast a basic ability or spell, or toggle a sustained ability."""
        sustained = next((a for a in player.sustained_abilities if a.id == ability_id), None)
        if sustained is not None:
            return self._toggle_sustained(player, sustained, enemy)

        ability = next((a for a in player.abilities if a.id == ability_id), None)
        if ability is None:
            reason = f"Unknown ability: {ability_id}"
            return ActionOutcome(
                player=player, enemy=enemy, success=False, reason=reason, narration=(reason,)
            )
        if isinstance(ability, SustainedAbility):
            return self._toggle_sustained(player, ability, enemy)

        combo = self._combo_effect(player)
        target = self._debuffed_enemy(enemy, combo) if enemy is not None else None
        result = execute_ability(player, ability, target, self._crit_rng, combo)
        if not result.success:
            return ActionOutcome(
                player=player,
                enemy=enemy,
                success=False,
                reason=result.reason,
                narration=(result.narration,),
            )

        narration = [result.narration]

        # -- costs ---------------------------------------------------------
        if player.resources is not None and result.resource_spent:
            player = player.model_copy(
                update={"resources": player.resources.spend(result.resource_spent)}
            )
        player = player.with_cooldown(ability.id, result.cooldown_set)
        if isinstance(result, SpellCastResult) and result.health_spent:
            player = player.take_damage(result.health_spent)

        # -- damage and healing --------------------------------------------
        damage = 0
        if enemy is not None and result.damage:
            damage = result.damage
            enemy = enemy.take_damage(damage)
        healing = 0
        if result.healing:
            healing = min(result.healing, player.missing_health)
            player = player.heal(healing)

        # -- effects -------------------------------------------------------
        if isinstance(result, SpellCastResult) and result.effects_removed:
            remaining, removed = remove_effects_by_name(
                player.active_effects, result.effects_removed
            )
            player = player.with_effects(remaining)
            narration.extend(f"{e.name} is dispelled." for e in removed)
        if isinstance(result, SpellCastResult) and result.utility_result is not None:
            narration.append(result.utility_result.description)

        if ability.target_type is TargetType.SELF or enemy is None:
            player, lines = self._add_effects(player, result.effects_applied)
        else:
            enemy, lines = self._add_effects(enemy, result.effects_applied)
        narration.extend(lines)

        # -- triggers and combo --------------------------------------------
        trigger = EffectTrigger.ON_HEAL if healing and not damage else EffectTrigger.ON_ATTACK
        player, enemy, lines, _ = self._fire(player, trigger, enemy)
        narration.extend(lines)
        if enemy is not None and damage:
            enemy, player, lines, _ = self._fire(enemy, EffectTrigger.ON_DAMAGE_TAKEN, player)
            narration.extend(lines)

        player, triggered = self._advance_combo(player, ability.tag, combo)
        if triggered:
            narration.append(f"COMBO! {triggered}!")

        return ActionOutcome(
            player=player,
            enemy=enemy,
            damage=damage,
            healing=healing,
            is_critical=result.is_critical,
            effectiveness=result.effectiveness,
            combo_triggered=triggered,
            narration=tuple(narration),
        )

    def _replace_sustained(self, player: Player, ability: SustainedAbility) -> Player:
        abilities = tuple(
            ability if a.id == ability.id else a for a in player.sustained_abilities
        )
        return player.model_copy(update={"sustained_abilities": abilities})

    def _clamp_to_reserves(self, player: Player) -> Player:
        """Cap the pool at max minus what active sustains reserve."""
        if player.resources is None:
            return player
        pool = get_effective_resources(player.resources, player.sustained_abilities)
        return player.model_copy(
            update={"resources": player.resources.restore(0, cap=pool.max)}
        )

    def _toggle_sustained(
        self, player: Player, ability: SustainedAbility, enemy: Enemy | None
    ) -> ActionOutcome:
        if ability.is_active:
            released = deactivate_sustained(ability)
            player = self._replace_sustained(player, released.ability)
            player = player.with_effects(
                e for e in player.active_effects if e.source_id != ability.id
            )
            if player.resources is not None and released.resource_cost:
                player = player.model_copy(
                    update={"resources": player.resources.spend(released.resource_cost)}
                )
            return ActionOutcome(player=player, enemy=enemy, narration=(released.narration,))

        resources = player.resources
        result = activate_sustained(
            ability,
            spendable_resource(player),
            resources.max if resources is not None else 0,
            player.health,
            player.max_health,
            player.sustained_abilities,
        )
        if not result.success:
            return ActionOutcome(
                player=player,
                enemy=enemy,
                success=False,
                reason=result.error,
                narration=(result.narration,),
            )

        player = self._replace_sustained(player, result.ability)
        if resources is not None and result.resource_cost:
            player = player.model_copy(update={"resources": resources.spend(result.resource_cost)})
        player = self._clamp_to_reserves(player)
        narration = [result.narration]
        if result.effect_applied is not None:
            player, lines = self._add_effects(player, [result.effect_applied])
            narration.extend(lines)

        player, triggered = self._advance_combo(player, ability.tag, None)
        if triggered:
            narration.append(f"COMBO! {triggered}!")
        return ActionOutcome(
            player=player, enemy=enemy, combo_triggered=triggered, narration=tuple(narration)
        )

    # ------------------------------------------------------------------
    # Enemy action
    # ------------------------------------------------------------------

    def enemy_turn(self, enemy: Enemy, player: Player) -> EnemyTurnOutcome:
        """Pick and resolve the enemy's action against *player*."""
        if enemy.is_dead:
            return EnemyTurnOutcome(enemy=enemy, player=player)

        ability = select_enemy_ability(enemy, player.health_fraction, self._ai_rng)
        if ability is not None:
            base = ability.damage
            damage_type = ability.damage_type
            enemy = put_on_cooldown(enemy, ability.id)
            narration = [ability.narration or f"{enemy.name} uses {ability.name}!"]
        else:
            base = effective_stats(enemy).attack
            damage_type = DamageType.PHYSICAL
            narration = []

        player_combo = self._combo_effect(player)
        if player_combo is not None and player_combo.enemy_debuff is not None:
            base = math.floor(base * (1 + player_combo.enemy_debuff.attack))

        damage = 0
        blocked = False
        if base > 0:
            calc = calculate_damage(base, damage_type, enemy, player)
            damage = calculate_incoming_damage(calc.damage, player, player_combo)
            if damage == 0:
                blocked = True
                player = player.model_copy(update={"combo": consume_combo(player.combo)})
                narration.append("The attack is completely blocked!")
            else:
                player = player.take_damage(damage)
                narration.append(f"{enemy.name} hits you for {damage} damage.")
                player, enemy, lines, _ = self._fire(player, EffectTrigger.ON_DAMAGE_TAKEN, enemy)
                narration.extend(lines)

        if ability is not None and ability.effect is not None and not blocked:
            player, lines = self._add_effects(
                player, [ability.effect.instantiate(source_name=enemy.name)]
            )
            narration.extend(lines)

        return EnemyTurnOutcome(
            enemy=enemy,
            player=player,
            ability_used=ability.id if ability is not None else None,
            damage=damage,
            blocked=blocked,
            narration=tuple(narration),
        )

    # ------------------------------------------------------------------
    # Turn boundaries
    # ------------------------------------------------------------------

    def start_turn(self, combatant: Combatant, opponent: Combatant | None = None) -> TurnOutcome:
        """Fire turn-start hooks (damage and healing over time)."""
        before = combatant.health
        combatant, opponent, narration, expired = self._fire(
            combatant, EffectTrigger.TURN_START, opponent
        )
        return TurnOutcome(
            combatant=combatant,
            opponent=opponent,
            damage=max(0, before - combatant.health),
            healing=max(0, combatant.health - before),
            expired=tuple(expired),
            narration=tuple(narration),
        )

    def end_turn(
        self,
        combatant: Combatant,
        opponent: Combatant | None = None,
        acted: bool = True,
    ) -> TurnOutcome:
        """Tick durations, sweep effect combos and run per-turn upkeep.

        Players also tick ability cooldowns and sustained abilities; an
        idle player (``acted=False``) counts the active combo down here
        since no action did.  Enemies tick ability cooldowns.
        """
        before = combatant.health
        combatant, opponent, narration, expired = self._fire(
            combatant, EffectTrigger.TURN_END, opponent
        )

        sweep = self.matcher.sweep(combatant.active_effects)
        if sweep.combos:
            combatant = (
                combatant.with_effects(sweep.effects)
                .take_damage(sweep.damage)
                .heal(sweep.healing)
            )
            narration.extend(sweep.narration)
            if opponent is not None:
                for fired in sweep.combos:
                    opponent, lines = self._add_effects(opponent, list(fired.spread))
                    narration.extend(lines)

        deactivated: list[str] = []
        if isinstance(combatant, Player):
            combatant = combatant.tick_cooldowns()
            if not acted:
                combatant = combatant.model_copy(update={"combo": tick_combo(combatant.combo)})
            combatant, opponent, lines, deactivated = self._sustained_pass(combatant, opponent)
            narration.extend(lines)
        elif isinstance(combatant, Enemy):
            combatant = tick_enemy_abilities(combatant)

        return TurnOutcome(
            combatant=combatant,
            opponent=opponent,
            damage=max(0, before - combatant.health),
            healing=max(0, combatant.health - before),
            expired=tuple(expired),
            deactivated=tuple(deactivated),
            narration=tuple(narration),
        )

    def _sustained_pass(
        self, player: Player, opponent: Combatant | None
    ) -> tuple[Player, Combatant | None, list[str], list[str]]:
        narration: list[str] = []
        deactivated: list[str] = []

        for ability in player.sustained_abilities:
            if not ability.is_active:
                continue
            current = player.resources.current if player.resources is not None else 0
            turn = process_sustained_turn(ability, current, player.health)
            player = self._replace_sustained(player, turn.ability)

            if turn.auto_deactivated:
                logger.debug("Sustained %s shut off: %s", ability.id, turn.deactivation_reason)
                player = player.with_effects(
                    e for e in player.active_effects if e.source_id != ability.id
                )
                deactivated.append(ability.name)
                if turn.deactivation_reason:
                    narration.append(turn.deactivation_reason)
                continue

            tick = turn.tick
            if tick is None:
                continue
            if tick.resource_drain and player.resources is not None:
                player = player.model_copy(
                    update={"resources": player.resources.spend(tick.resource_drain)}
                )
            if tick.health_drain:
                player = player.take_damage(tick.health_drain)
            if tick.healing:
                player = player.heal(tick.healing)
            if tick.damage:
                if tick.target_type == TargetType.SELF.value:
                    player = player.take_damage(tick.damage)
                elif opponent is not None:
                    opponent = opponent.take_damage(tick.damage)
            if tick.narration:
                narration.append(tick.narration)

        return player, opponent, narration, deactivated
