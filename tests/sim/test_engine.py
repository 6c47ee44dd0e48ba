"""Tests for CombatEngine -- actions and turn boundaries end to end."""

from __future__ import annotations

from dungeon_rules.defs.abilities import (
    AIPattern,
    BasicAbility,
    DamageType,
    EnemyAbility,
    ResourceType,
    SpellAbility,
    StatScaling,
    TargetType,
)
from dungeon_rules.defs.status_effects import EffectType, StatusEffect
from dungeon_rules.sim.core.entities import (
    ActiveCombo,
    ComboTracker,
    Enemy,
    Player,
    ResourcePool,
    Stance,
)
from dungeon_rules.sim.core.rng import GameRNG
from dungeon_rules.sim.engine import CombatEngine
from dungeon_rules.sim.mechanics.sustained import create_sustained_ability


# =====================================================================
# Helpers
# =====================================================================

def _bolt(**kwargs) -> BasicAbility:
    defaults = {
        "id": "bolt",
        "name": "Bolt",
        "damage_type": DamageType.ARCANE,
        "resource_cost": 10,
        "cooldown": 2,
        "base_damage": 10,
        "damage_scaling": StatScaling(stat="attack", ratio=0.5),
    }
    defaults.update(kwargs)
    return BasicAbility(**defaults)


def _make_player(**kwargs) -> Player:
    defaults = {
        "name": "Hero",
        "health": 50,
        "max_health": 50,
        "attack": 10,
        "defense": 4,
        "level": 5,
        "player_class": "mage",
        "resources": ResourcePool(type=ResourceType.MANA, current=50, max=50),
        "abilities": (_bolt(),),
    }
    defaults.update(kwargs)
    return Player(**defaults)


def _make_enemy(**kwargs) -> Enemy:
    defaults = {
        "name": "Goblin",
        "enemy_id": "goblin",
        "health": 40,
        "max_health": 40,
        "attack": 6,
        "defense": 4,
    }
    defaults.update(kwargs)
    return Enemy(**defaults)


def _with_combo(player: Player, combo_id: str, name: str, turns: int = 1) -> Player:
    tracker = ComboTracker(
        active_combo=ActiveCombo(combo_id=combo_id, name=name, bonus="", turns_remaining=turns)
    )
    return player.model_copy(update={"combo": tracker})


def _oil() -> StatusEffect:
    return StatusEffect(name="Oil Slick", effect_type=EffectType.DEBUFF)


def _mana_shield_player(registry, mana: int = 60) -> Player:
    shield = create_sustained_ability(registry.get_sustained_template("mana_shield"))
    return _make_player(
        resources=ResourcePool(type=ResourceType.MANA, current=mana, max=60),
        sustained_abilities=(shield,),
    )


# =====================================================================
# Effects
# =====================================================================

class TestAddEffect:
    def test_plain_application(self, registry, never):
        engine = CombatEngine(registry, never)
        outcome = engine.add_effect(_make_player(), registry.create_effect("burning"))
        assert outcome.combo is None
        assert [e.name for e in outcome.combatant.active_effects] == ["Burning"]
        assert outcome.narration == ("Burning applied.",)

    def test_combo_on_insert(self, registry, never):
        engine = CombatEngine(registry, never)
        enemy = _make_enemy(active_effects=(_oil(),))
        outcome = engine.add_effect(enemy, registry.create_effect("burning"))
        assert outcome.combo is not None
        assert outcome.narration[0].startswith("Explosive Conflagration! The flames ignite")
        assert [e.name for e in outcome.combatant.active_effects] == ["Explosion", "Singed"]


# =====================================================================
# Player attack
# =====================================================================

class TestPlayerAttack:
    def test_basic_hit(self, registry, never):
        outcome = CombatEngine(registry, never).player_attack(_make_player(), _make_enemy())
        # 10 - floor(4 * 0.5)
        assert outcome.damage == 8
        assert outcome.enemy.health == 32
        assert outcome.narration[0] == "You strike Goblin for 8 damage."
        assert outcome.player.combo.last_abilities == ("physical",)

    def test_critical_hit(self, registry, always):
        outcome = CombatEngine(registry, always).player_attack(_make_player(), _make_enemy())
        assert outcome.is_critical
        assert outcome.damage == 12
        assert outcome.narration[0] == "CRITICAL! You strike Goblin for 12 damage!"

    def test_weakness_narrated(self, registry, never):
        enemy = _make_enemy(weakness=DamageType.PHYSICAL)
        outcome = CombatEngine(registry, never).player_attack(_make_player(), enemy)
        assert outcome.damage == 13
        assert "It's super effective!" in outcome.narration

    def test_three_physical_hits_trigger_berserker(self, registry, never):
        engine = CombatEngine(registry, never)
        player, enemy = _make_player(), _make_enemy(health=200, max_health=200)
        triggered = []
        for _ in range(3):
            outcome = engine.player_attack(player, enemy)
            player, enemy = outcome.player, outcome.enemy
            triggered.append(outcome.combo_triggered)

        assert triggered == [None, None, "Berserker"]
        assert "COMBO! Berserker!" in outcome.narration
        assert player.combo.active_combo.turns_remaining == 3

    def test_active_combo_applies_to_next_hit(self, registry, never):
        player = _with_combo(_make_player(), "berserker_rage", "Berserker", turns=3)
        outcome = CombatEngine(registry, never).player_attack(player, _make_enemy())
        # floor(10 * 1.25) = 12, minus 2
        assert outcome.damage == 10

    def test_ignore_defense_combo_consumed(self, registry, never):
        player = _with_combo(_make_player(), "shadow_chain", "Shadowstrike")
        outcome = CombatEngine(registry, never).player_attack(player, _make_enemy())
        assert outcome.damage == 10
        assert outcome.player.combo.active_combo is None


# =====================================================================
# Abilities
# =====================================================================

class TestUseAbility:
    def test_unknown_ability(self, registry, never):
        player = _make_player()
        outcome = CombatEngine(registry, never).use_ability(player, "nope", _make_enemy())
        assert not outcome.success
        assert outcome.reason == "Unknown ability: nope"
        assert outcome.player is player

    def test_damaging_ability_commits_costs(self, registry, never):
        outcome = CombatEngine(registry, never).use_ability(_make_player(), "bolt", _make_enemy())
        assert outcome.success
        # 15 - floor(4 * 0.4)
        assert outcome.damage == 14
        assert outcome.enemy.health == 26
        assert outcome.player.resources.current == 40
        assert outcome.player.cooldown_for("bolt") == 2
        assert outcome.player.combo.last_abilities == ("arcane",)

    def test_stance_scales_cost_and_damage(self, registry, never):
        player = _make_player(stance=Stance.AGGRESSIVE)
        outcome = CombatEngine(registry, never).use_ability(player, "bolt", _make_enemy())
        assert outcome.player.resources.current == 42
        assert outcome.damage == 18

    def test_stance_scaled_cost_must_be_affordable(self, registry, never):
        player = _make_player(
            stance=Stance.DEFENSIVE,
            resources=ResourcePool(type=ResourceType.MANA, current=10, max=50),
        )
        outcome = CombatEngine(registry, never).use_ability(player, "bolt", _make_enemy())
        assert not outcome.success
        assert outcome.reason == "Not enough mana (need 12)"
        assert outcome.player is player

    def test_stance_scaled_cost_charged_in_full(self, registry, never):
        player = _make_player(
            stance=Stance.DEFENSIVE,
            resources=ResourcePool(type=ResourceType.MANA, current=12, max=50),
        )
        outcome = CombatEngine(registry, never).use_ability(player, "bolt", _make_enemy())
        assert outcome.success
        assert outcome.player.resources.current == 0

    def test_rule_failure_changes_nothing(self, registry, never):
        player = _make_player().with_cooldown("bolt", 1)
        enemy = _make_enemy()
        outcome = CombatEngine(registry, never).use_ability(player, "bolt", enemy)
        assert not outcome.success
        assert outcome.reason == "On cooldown (1 turns)"
        assert outcome.player is player
        assert outcome.enemy is enemy

    def test_effect_combo_on_enemy(self, registry, never):
        firebolt = _bolt(
            id="firebolt",
            name="Firebolt",
            damage_type=DamageType.FIRE,
            applies_effects=(registry.create_effect("burning"),),
        )
        player = _make_player(abilities=(firebolt,))
        enemy = _make_enemy(active_effects=(_oil(),))
        outcome = CombatEngine(registry, never).use_ability(player, "firebolt", enemy)

        assert [e.name for e in outcome.enemy.active_effects] == ["Explosion", "Singed"]
        assert any(line.startswith("Explosive Conflagration!") for line in outcome.narration)

    def test_spell_cleanses_and_costs_health(self, registry, never):
        purify = SpellAbility(
            id="purify",
            name="Purify",
            target_type=TargetType.SELF,
            health_cost=5,
            remove_effects=("Poisoned",),
        )
        player = _make_player(
            abilities=(purify,), active_effects=(registry.create_effect("poisoned"),)
        )
        outcome = CombatEngine(registry, never).use_ability(player, "purify")
        assert outcome.player.active_effects == ()
        assert outcome.player.health == 45
        assert "Poisoned is dispelled." in outcome.narration

    def test_self_heal(self, registry, never):
        mend = BasicAbility(
            id="mend", name="Mend", base_healing=20, target_type=TargetType.SELF
        )
        player = _make_player(health=40, abilities=(mend,))
        outcome = CombatEngine(registry, never).use_ability(player, "mend")
        assert outcome.healing == 10
        assert outcome.player.health == 50


# =====================================================================
# Sustained toggles
# =====================================================================

class TestSustainedToggle:
    def test_activate(self, registry, never):
        player = _mana_shield_player(registry)
        outcome = CombatEngine(registry, never).use_ability(player, "mana_shield")

        assert outcome.success
        assert outcome.player.sustained_abilities[0].is_active
        # 60 - 15 activation, capped at 60 - 25 reserved
        assert outcome.player.resources.current == 35
        shield = next(e for e in outcome.player.active_effects if e.name == "Mana Shield")
        assert shield.source_id == "mana_shield"
        assert outcome.player.combo.last_abilities == ("arcane",)

    def test_deactivate_removes_constant_effect(self, registry, never):
        engine = CombatEngine(registry, never)
        on = engine.use_ability(_mana_shield_player(registry), "mana_shield")
        off = engine.use_ability(on.player, "mana_shield")

        assert not off.player.sustained_abilities[0].is_active
        assert off.player.active_effects == ()
        assert off.narration == ("You release Mana Shield. The effect fades.",)

    def test_reserve_is_not_spendable(self, registry, never):
        concentration = create_sustained_ability(
            registry.get_sustained_template("arcane_concentration")
        )
        nuke = _bolt(id="nuke", name="Nuke", resource_cost=75, cooldown=0)
        player = _make_player(
            level=7,
            resources=ResourcePool(type=ResourceType.MANA, current=100, max=100),
            abilities=(nuke,),
            sustained_abilities=(concentration,),
        )
        engine = CombatEngine(registry, never)

        on = engine.use_ability(player, "arcane_concentration")
        assert on.success
        # 100 - 20 activation, capped at 100 - 30 reserved
        assert on.player.resources.current == 70

        outcome = engine.use_ability(on.player, "nuke", _make_enemy())
        assert not outcome.success
        assert outcome.reason == "Not enough mana (need 75)"
        assert outcome.player.resources.current == 70

    def test_second_activation_sees_reduced_pool(self, registry, never):
        engine = CombatEngine(registry, never)
        concentration = create_sustained_ability(
            registry.get_sustained_template("arcane_concentration")
        )
        player = _mana_shield_player(registry).model_copy(
            update={
                "level": 7,
                "sustained_abilities": (
                    create_sustained_ability(registry.get_sustained_template("mana_shield")),
                    concentration,
                ),
            }
        )
        on = engine.use_ability(player, "mana_shield")
        assert on.player.resources.current == 35

        # 35 - 20 activation, capped at 60 - (25 + 30) reserved
        second = engine.use_ability(on.player, "arcane_concentration")
        assert second.success
        assert second.player.resources.current == 5

    def test_activation_failure(self, registry, never):
        player = _mana_shield_player(registry, mana=10)
        outcome = CombatEngine(registry, never).use_ability(player, "mana_shield")
        assert not outcome.success
        assert outcome.reason == "Not enough mana. Need 15, have 10."
        assert outcome.player is player


# =====================================================================
# Enemy turn
# =====================================================================

class TestEnemyTurn:
    def test_basic_attack(self, registry, never):
        outcome = CombatEngine(registry, never).enemy_turn(_make_enemy(), _make_player())
        assert outcome.ability_used is None
        assert outcome.damage == 4
        assert outcome.player.health == 46
        assert outcome.narration == ("Goblin hits you for 4 damage.",)

    def test_block_combo_negates_and_is_consumed(self, registry, never):
        player = _with_combo(_make_player(), "holy_shield", "Divine Aegis")
        outcome = CombatEngine(registry, never).enemy_turn(_make_enemy(), player)
        assert outcome.blocked
        assert outcome.damage == 0
        assert outcome.player.health == 50
        assert outcome.player.combo.active_combo is None
        assert "The attack is completely blocked!" in outcome.narration

    def test_enemy_debuff_combo_weakens_attack(self, registry, never):
        player = _with_combo(_make_player(), "frost_lock", "Frozen", turns=2)
        outcome = CombatEngine(registry, never).enemy_turn(_make_enemy(), player)
        # floor(6 * 0.7) = 4, minus 2
        assert outcome.damage == 2

    def test_ability_applies_effect_and_cooldown(self, registry, never):
        hex_ = EnemyAbility(
            id="hex",
            name="Hex",
            damage=4,
            damage_type=DamageType.SHADOW,
            cooldown=3,
            effect=registry.create_effect("cursed_weakness"),
            narration="The goblin spits a curse.",
        )
        enemy = _make_enemy(ai_pattern=AIPattern.ABILITY_FOCUSED, abilities=(hex_,))
        outcome = CombatEngine(registry, never).enemy_turn(enemy, _make_player())

        assert outcome.ability_used == "hex"
        assert outcome.enemy.abilities[0].current_cooldown == 3
        assert outcome.narration[0] == "The goblin spits a curse."
        curse = outcome.player.active_effects[0]
        assert curse.name == "Curse of Weakness"
        assert curse.source_name == "Goblin"

    def test_thorns_retaliate_onto_attacker(self, registry, never):
        player = _make_player(active_effects=(registry.create_effect("thorns"),))
        outcome = CombatEngine(registry, never).enemy_turn(_make_enemy(), player)
        assert [e.name for e in outcome.enemy.active_effects] == ["Thorns Strike"]
        assert "Thorns retaliate against your attacker!" in outcome.narration

    def test_dead_enemy_does_nothing(self, registry, never):
        player = _make_player()
        outcome = CombatEngine(registry, never).enemy_turn(_make_enemy(health=0), player)
        assert outcome.player is player
        assert outcome.damage == 0


# =====================================================================
# Turn boundaries
# =====================================================================

class TestTurnBoundaries:
    def test_start_turn_ticks_turn_start_dots(self, registry, never):
        player = _make_player(active_effects=(registry.create_effect("poisoned"),))
        outcome = CombatEngine(registry, never).start_turn(player)
        assert outcome.damage == 3
        assert outcome.combatant.health == 47
        assert outcome.narration == ("Venom courses through your veins.",)

    def test_end_turn_ticks_dot_and_duration(self, registry, never):
        player = _make_player(active_effects=(registry.create_effect("burning"),))
        outcome = CombatEngine(registry, never).end_turn(player)
        assert outcome.damage == 4
        assert outcome.combatant.active_effects[0].duration_remaining == 2

    def test_end_turn_reports_expiry_once(self, registry, never):
        effect = StatusEffect(
            name="Daze", effect_type=EffectType.DEBUFF, duration_value=1,
            expire_narration="Your head clears.",
        )
        engine = CombatEngine(registry, never)
        first = engine.end_turn(_make_player(active_effects=(effect,)))
        second = engine.end_turn(first.combatant)
        assert first.expired == ("Daze",)
        assert first.narration.count("Your head clears.") == 1
        assert second.expired == ()

    def test_end_turn_ticks_cooldowns(self, registry, never):
        player = _make_player().with_cooldown("bolt", 2)
        outcome = CombatEngine(registry, never).end_turn(player)
        assert outcome.combatant.cooldown_for("bolt") == 1

    def test_idle_turn_counts_combo_down(self, registry, never):
        engine = CombatEngine(registry, never)
        player = _with_combo(_make_player(), "fire_burst", "Inferno", turns=2)
        acted = engine.end_turn(player, acted=True)
        idle = engine.end_turn(player, acted=False)
        assert acted.combatant.combo.active_combo.turns_remaining == 2
        assert idle.combatant.combo.active_combo.turns_remaining == 1

    def test_sweep_fires_passive_combo(self, registry, never):
        enemy = _make_enemy(active_effects=(registry.create_effect("burning"), _oil()))
        outcome = CombatEngine(registry, never).end_turn(enemy)
        names = [e.name for e in outcome.combatant.active_effects]
        assert names == ["Explosion", "Singed"]
        assert registry.get_effect_combo("fire_oil_explosion").narrative in outcome.narration

    def test_sustained_upkeep_drains(self, registry, never):
        engine = CombatEngine(registry, never)
        player = engine.use_ability(_mana_shield_player(registry), "mana_shield").player
        outcome = engine.end_turn(player)
        assert outcome.combatant.resources.current == 33
        assert outcome.combatant.sustained_abilities[0].turns_active == 1
        assert "The mana shield shimmers, draining your magical reserves." in outcome.narration

    def test_sustained_auto_deactivates(self, registry, never):
        engine = CombatEngine(registry, never)
        player = engine.use_ability(_mana_shield_player(registry, mana=16), "mana_shield").player
        assert player.resources.current == 1

        outcome = engine.end_turn(player)
        assert outcome.deactivated == ("Mana Shield",)
        assert not outcome.combatant.sustained_abilities[0].is_active
        assert outcome.combatant.active_effects == ()
        assert "Not enough mana to maintain Mana Shield." in outcome.narration

    def test_enemy_cooldowns_tick(self, registry, never):
        claw = EnemyAbility(id="claw", name="Claw", cooldown=2, current_cooldown=2)
        outcome = CombatEngine(registry, never).end_turn(_make_enemy(abilities=(claw,)))
        assert outcome.combatant.abilities[0].current_cooldown == 1


# =====================================================================
# Determinism
# =====================================================================

class TestDeterminism:
    def _fight(self, registry, seed: int):
        engine = CombatEngine(registry, GameRNG(seed))
        player = _make_player(crit_chance=0.5)
        enemy = _make_enemy(
            health=200,
            max_health=200,
            ai_pattern=AIPattern.RANDOM,
            abilities=(
                EnemyAbility(id="claw", name="Claw", damage=7, cooldown=1, chance=0.5),
            ),
        )
        log = []
        for _ in range(5):
            action = engine.player_attack(player, enemy)
            player, enemy = action.player, action.enemy
            reply = engine.enemy_turn(enemy, player)
            enemy, player = reply.enemy, reply.player
            log.append((action.damage, action.is_critical, reply.ability_used, reply.damage))
        return log

    def test_same_seed_same_fight(self, registry):
        assert self._fight(registry, 7) == self._fight(registry, 7)
