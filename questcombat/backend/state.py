"""State builders and (de)serialization for encounter snapshots."""

from __future__ import annotations

import random
from typing import Any, Sequence

from questcombat.backend.combat_log import append_log, utc_now_iso
from questcombat.backend.dice import roll_d20
from questcombat.backend.initiative import sort_initiative
from questcombat.backend.models import (
    ActorProfile,
    Combatant,
    Condition,
    Encounter,
    EncounterStatus,
    EnemySpec,
    PendingRoll,
    RollKind,
    Side,
    Zone,
)


def encounter_name(roster: Sequence[EnemySpec]) -> str:
    if len(roster) == 1:
        return f"Duel with {roster[0].name}"
    kinds = {spec.name.lower() for spec in roster}
    if len(kinds) == 1:
        return f"{len(roster)} {roster[0].name.lower()}s"
    return f"{len(roster)} enemies"


def _enemy_combatant(spec: EnemySpec, rng: random.Random) -> Combatant:
    dex_modifier = spec.dex_modifier if spec.dex_modifier is not None else max(0, spec.armor_class - 12)
    return Combatant(
        name=spec.name,
        side=Side.ENEMY,
        hp=spec.hp,
        max_hp=spec.hp,
        armor_class=spec.armor_class,
        zone=spec.zone,
        dex_modifier=dex_modifier,
        initiative_score=roll_d20(rng) + dex_modifier,
        attack_bonus=spec.attack_bonus,
        damage_dice=spec.damage_dice,
        ranged=spec.ranged,
    )


def _actor_combatant(profile: ActorProfile) -> Combatant:
    hp = profile.max_hp if profile.hp is None else max(0, min(profile.hp, profile.max_hp))
    return Combatant(
        name=profile.name,
        side=Side.ACTOR,
        hp=hp,
        max_hp=profile.max_hp,
        armor_class=profile.armor_class,
        zone=profile.zone,
        dex_modifier=profile.dex_modifier,
        initiative_score=None,
        needs_roll=True,
        str_modifier=profile.str_modifier,
        proficiency_bonus=profile.proficiency_bonus,
    )


def new_encounter(
    encounter_id: str,
    actor_id: str,
    actor: ActorProfile,
    roster: Sequence[EnemySpec],
    conditions: Sequence[Condition],
    rng: random.Random,
    origin_quest_id: str | None = None,
) -> Encounter:
    """Return a pending encounter with enemy initiative already rolled.

    The actor entry carries ``needs_roll`` and no score until the player
    submits a d20, and waits at the end of the order.
    """
    now = utc_now_iso()
    enemies = sort_initiative([_enemy_combatant(spec, rng) for spec in roster])
    encounter = Encounter(
        id=encounter_id,
        actor_id=actor_id,
        name=encounter_name(roster),
        status=EncounterStatus.PENDING,
        round=1,
        turn_cursor=0,
        version=1,
        initiative_order=[*enemies, _actor_combatant(actor)],
        conditions=[condition for condition in conditions if condition.rounds_remaining > 0],
        origin_quest_id=origin_quest_id,
        created_at=now,
        updated_at=now,
    )
    append_log(encounter, actor=None, event="encounter_started", enemies=[spec.name for spec in roster])
    return encounter


def _combatant_to_state(combatant: Combatant) -> dict[str, Any]:
    return {
        "name": combatant.name,
        "side": combatant.side.value,
        "hp": combatant.hp,
        "maxHp": combatant.max_hp,
        "armorClass": combatant.armor_class,
        "zone": combatant.zone.value,
        "dexModifier": combatant.dex_modifier,
        "initiativeScore": combatant.initiative_score,
        "needsRoll": combatant.needs_roll,
        "strModifier": combatant.str_modifier,
        "proficiencyBonus": combatant.proficiency_bonus,
        "attackBonus": combatant.attack_bonus,
        "damageDice": combatant.damage_dice,
        "ranged": combatant.ranged,
        "defendingRound": combatant.defending_round,
    }


def _combatant_from_state(payload: dict[str, Any]) -> Combatant:
    return Combatant(
        name=payload["name"],
        side=Side(payload["side"]),
        hp=int(payload["hp"]),
        max_hp=int(payload["maxHp"]),
        armor_class=int(payload["armorClass"]),
        zone=Zone(payload["zone"]),
        dex_modifier=int(payload["dexModifier"]),
        initiative_score=payload.get("initiativeScore"),
        needs_roll=bool(payload.get("needsRoll", False)),
        str_modifier=int(payload.get("strModifier", 0)),
        proficiency_bonus=int(payload.get("proficiencyBonus", 2)),
        attack_bonus=int(payload.get("attackBonus", 0)),
        damage_dice=payload.get("damageDice", "1d6"),
        ranged=bool(payload.get("ranged", False)),
        defending_round=payload.get("defendingRound"),
    )


def _condition_to_state(condition: Condition) -> dict[str, Any]:
    return {
        "name": condition.name,
        "source": condition.source,
        "statModifiers": dict(condition.stat_modifiers),
        "roundsRemaining": condition.rounds_remaining,
    }


def condition_from_state(payload: dict[str, Any]) -> Condition:
    return Condition(
        name=payload["name"],
        source=payload.get("source", "unknown"),
        stat_modifiers={str(code): int(value) for code, value in payload.get("statModifiers", {}).items()},
        rounds_remaining=int(payload.get("roundsRemaining", 0)),
    )


def _pending_to_state(pending: PendingRoll | None) -> dict[str, Any] | None:
    if pending is None:
        return None
    return {
        "kind": pending.kind.value,
        "weapon": pending.weapon,
        "targetIndex": pending.target_index,
        "natural": pending.natural,
        "attackTotal": pending.attack_total,
        "critical": pending.critical,
    }


def _pending_from_state(payload: dict[str, Any] | None) -> PendingRoll | None:
    if not payload:
        return None
    return PendingRoll(
        kind=RollKind(payload["kind"]),
        weapon=payload["weapon"],
        target_index=int(payload["targetIndex"]),
        natural=int(payload["natural"]),
        attack_total=int(payload["attackTotal"]),
        critical=bool(payload["critical"]),
    )


def encounter_to_state(encounter: Encounter) -> dict[str, Any]:
    """Serialize the aggregate to the JSON snapshot stored per version."""
    return {
        "id": encounter.id,
        "actorId": encounter.actor_id,
        "originQuestId": encounter.origin_quest_id,
        "name": encounter.name,
        "status": encounter.status.value,
        "round": encounter.round,
        "turnCursor": encounter.turn_cursor,
        "version": encounter.version,
        "initiativeOrder": [_combatant_to_state(combatant) for combatant in encounter.initiative_order],
        "conditions": [_condition_to_state(condition) for condition in encounter.conditions],
        "expiredConditions": list(encounter.expired_conditions),
        "pendingRoll": _pending_to_state(encounter.pending_roll),
        "log": [dict(entry) for entry in encounter.log],
        "meta": {
            "createdAt": encounter.created_at,
            "updatedAt": encounter.updated_at,
            "endedAt": encounter.ended_at,
        },
    }


def encounter_from_state(state: dict[str, Any]) -> Encounter:
    meta = state.get("meta", {})
    return Encounter(
        id=state["id"],
        actor_id=state["actorId"],
        name=state.get("name", ""),
        status=EncounterStatus(state["status"]),
        round=int(state["round"]),
        turn_cursor=int(state["turnCursor"]),
        version=int(state["version"]),
        initiative_order=[_combatant_from_state(payload) for payload in state["initiativeOrder"]],
        conditions=[condition_from_state(payload) for payload in state.get("conditions", [])],
        expired_conditions=list(state.get("expiredConditions", [])),
        origin_quest_id=state.get("originQuestId"),
        pending_roll=_pending_from_state(state.get("pendingRoll")),
        log=[dict(entry) for entry in state.get("log", [])],
        created_at=meta.get("createdAt", ""),
        updated_at=meta.get("updatedAt", ""),
        ended_at=meta.get("endedAt"),
    )
