"""Enemy turn policy.

Enemies are system controlled, so their dice are rolled here with the
request's seeded RNG. Retreating and positioning take priority over attacking.
"""

from __future__ import annotations

import random
from typing import Any

from questcombat.backend.conditions import apply_modifiers
from questcombat.backend.dice import roll_d20, roll_notation
from questcombat.backend.models import Combatant, Encounter, Zone, ZONE_ORDER

DEFEND_BONUS = 2
RETREAT_THRESHOLD = 0.25


def actor_armor_class(encounter: Encounter) -> int:
    actor = encounter.actor
    armor_class = actor.armor_class + apply_modifiers(encounter.conditions).get("AC", 0)
    if actor.defending_round is not None:
        armor_class += DEFEND_BONUS
    return armor_class


def _step(zone: Zone, delta: int) -> Zone:
    index = ZONE_ORDER.index(zone) + delta
    return ZONE_ORDER[max(0, min(index, len(ZONE_ORDER) - 1))]


def _move(enemy: Combatant, to_zone: Zone, reason: str) -> dict[str, Any]:
    from_zone = enemy.zone
    enemy.zone = to_zone
    return {
        "type": "enemy_move",
        "combatant": enemy.name,
        "fromZone": from_zone.value,
        "toZone": to_zone.value,
        "reason": reason,
    }


def take_enemy_turn(encounter: Encounter, index: int, rng: random.Random) -> dict[str, Any]:
    enemy = encounter.initiative_order[index]
    actor = encounter.actor

    if enemy.hp < enemy.max_hp * RETREAT_THRESHOLD and enemy.zone is not Zone.FAR:
        return _move(enemy, _step(enemy.zone, 1), "retreat")

    if enemy.ranged and enemy.zone is Zone.MELEE:
        return _move(enemy, Zone.NEAR, "back_off")

    if not enemy.ranged and (enemy.zone is not Zone.MELEE or actor.zone is not Zone.MELEE):
        if enemy.zone is Zone.MELEE:
            return {"type": "enemy_hold", "combatant": enemy.name, "zone": enemy.zone.value}
        return _move(enemy, _step(enemy.zone, -1), "advance")

    return _enemy_attack(encounter, enemy, rng)


def _enemy_attack(encounter: Encounter, enemy: Combatant, rng: random.Random) -> dict[str, Any]:
    actor = encounter.actor
    natural = roll_d20(rng)
    total = natural + enemy.attack_bonus
    armor_class = actor_armor_class(encounter)
    hook: dict[str, Any] = {
        "type": "enemy_attack",
        "combatant": enemy.name,
        "target": actor.name,
        "natural": natural,
        "attackTotal": total,
        "targetArmorClass": armor_class,
    }
    hit = natural != 1 and (natural == 20 or total >= armor_class)
    hook["hit"] = hit
    if not hit:
        return hook

    damage = roll_notation(enemy.damage_dice, rng)
    actor.hp = max(0, actor.hp - damage)
    hook.update({"damage": damage, "targetHp": actor.hp, "targetMaxHp": actor.max_hp, "targetDown": actor.is_down})
    return hook
