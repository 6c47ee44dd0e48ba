#!/usr/bin/env python3
"""Run a short scripted fight and print the engine's narration.

Usage:
    uv run python scripts/demo_combat.py
    uv run python scripts/demo_combat.py --seed 7 --rounds 12 -v
    uv run python scripts/demo_combat.py --narrate      # needs ANTHROPIC_API_KEY
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dungeon_rules.agents import Narrator
from dungeon_rules.content.registry import RulesRegistry
from dungeon_rules.defs import (
    AIPattern,
    BasicAbility,
    DamageType,
    EnemyAbility,
    ResourceType,
    StatScaling,
)
from dungeon_rules.sim.core import Enemy, GameRNG, Player, ResourcePool, Stance
from dungeon_rules.sim.engine import CombatEngine
from dungeon_rules.sim.mechanics import sustained_for_class


def build_player(registry: RulesRegistry) -> Player:
    firebolt = BasicAbility(
        id="firebolt",
        name="Firebolt",
        damage_type=DamageType.FIRE,
        resource_cost=8,
        base_damage=10,
        damage_scaling=StatScaling(stat="attack", ratio=0.5),
        applies_effects=(registry.create_effect("burning"),),
        cast_narration="Flames gather in your palm...",
    )
    frost_shard = BasicAbility(
        id="frost_shard",
        name="Frost Shard",
        damage_type=DamageType.ICE,
        resource_cost=6,
        base_damage=7,
    )
    return Player(
        name="Adventurer",
        health=60,
        max_health=60,
        attack=9,
        defense=4,
        crit_chance=0.1,
        level=5,
        player_class="mage",
        stance=Stance.AGGRESSIVE,
        resources=ResourcePool(type=ResourceType.MANA, current=60, max=60),
        abilities=(firebolt, frost_shard),
        sustained_abilities=tuple(sustained_for_class(registry.sustained_templates, "mage", 5)),
    )


def build_enemy(registry: RulesRegistry) -> Enemy:
    return Enemy(
        name="Goblin Shaman",
        enemy_id="goblin_shaman",
        health=70,
        max_health=70,
        attack=8,
        defense=3,
        weakness=DamageType.FIRE,
        ai_pattern=AIPattern.SMART,
        abilities=(
            EnemyAbility(
                id="hex",
                name="Hex",
                damage=4,
                damage_type=DamageType.SHADOW,
                cooldown=3,
                effect=registry.create_effect("cursed_weakness"),
                narration="The shaman spits a guttural curse.",
            ),
            EnemyAbility(
                id="venom_dart",
                name="Venom Dart",
                damage=6,
                damage_type=DamageType.POISON,
                cooldown=2,
                effect=registry.create_effect("poisoned"),
            ),
        ),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a demo fight with the dungeon rules engine.")
    parser.add_argument("--seed", type=int, default=42, help="Root RNG seed")
    parser.add_argument("--rounds", type=int, default=10, help="Maximum number of rounds")
    parser.add_argument("--narrate", action="store_true", default=False, help="Narrate with the model")
    parser.add_argument("-v", "--verbose", action="store_true", default=False, help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    registry = RulesRegistry.load_default()
    engine = CombatEngine(registry, GameRNG(args.seed))
    narrator = Narrator.connect(registry) if args.narrate else Narrator(registry)

    player = build_player(registry)
    enemy = build_enemy(registry)
    rotation = ["mana_shield", "firebolt", "firebolt", "firebolt", "frost_shard", "frost_shard"]

    for round_no in range(1, args.rounds + 1):
        print(f"\n--- Round {round_no}: {player.name} {player.health}hp | {enemy.name} {enemy.health}hp ---")

        start = engine.start_turn(player, enemy)
        player = start.combatant
        enemy = start.opponent or enemy

        choice = rotation[(round_no - 1) % len(rotation)]
        action = engine.use_ability(player, choice, enemy)
        if not action.success:
            action = engine.player_attack(player, enemy)
        player, enemy = action.player, action.enemy or enemy
        print(narrator.narrate(start.narration + action.narration, actor=player.name, target=enemy.name))

        end = engine.end_turn(player, enemy)
        player, enemy = end.combatant, end.opponent or enemy
        if enemy.is_dead:
            print(f"\n{enemy.name} falls!")
            break

        start = engine.start_turn(enemy, player)
        enemy, player = start.combatant, start.opponent or player
        reply = engine.enemy_turn(enemy, player)
        enemy, player = reply.enemy, reply.player
        end = engine.end_turn(enemy, player)
        enemy, player = end.combatant, end.opponent or player
        print(narrator.narrate(start.narration + reply.narration + end.narration, actor=enemy.name, target=player.name))

        if player.is_dead:
            print(f"\n{player.name} has fallen.")
            break


if __name__ == "__main__":
    main()
