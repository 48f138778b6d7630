"""Action resolver for the actor's turn and the enemy turns that follow it."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
from typing import Any

from questcombat.backend.combat_log import append_log
from questcombat.backend.conditions import apply_modifiers
from questcombat.backend.dice import require_die
from questcombat.backend.enemies import take_enemy_turn
from questcombat.backend.errors import (
    EncounterNotActiveError,
    InvalidInputError,
    InvalidTurnError,
    OutOfRangeError,
)
from questcombat.backend.lifecycle import end_encounter, outcome_of, settle
from questcombat.backend.models import (
    ActionKind,
    ActionRequest,
    ActionResult,
    Combatant,
    Encounter,
    EncounterStatus,
    PendingRoll,
    Reach,
    RollKind,
    Side,
    TERMINAL_STATUSES,
    WEAPONS,
    Weapon,
    Zone,
)
from questcombat.backend.scheduler import ConditionRefresh, advance

logger = logging.getLogger(__name__)

_UNLOGGED = {"timing", "combat_ended", "awaiting_roll"}


@dataclass(frozen=True)
class _Step:
    consumed: bool
    mutated: bool = False
    awaiting: RollKind | None = None
    dice_required: int | None = None
    ends_as: EncounterStatus | None = None


def resolve_action(
    encounter: Encounter,
    request: ActionRequest,
    rng: random.Random,
    refresh_conditions: ConditionRefresh | None = None,
) -> ActionResult:
    """Validate and apply one player action to the working copy ``encounter``.

    A consumed turn settles the outcome, advances the scheduler and resolves
    the enemy turns up to the actor's next turn. Validation failures raise
    before anything is modified.
    """
    if encounter.status is not EncounterStatus.ACTIVE:
        raise EncounterNotActiveError(f"Encounter {encounter.id} is {encounter.status.value}, not active")
    if not encounter.is_actor_turn:
        raise InvalidTurnError(f"It is {encounter.current.name}'s turn, not the actor's")
    if encounter.pending_roll is not None and request.kind is not ActionKind.ATTACK:
        raise InvalidInputError("A damage roll is pending; submit it with an attack action first")

    hooks: list[dict[str, Any]] = []
    if request.kind is ActionKind.ATTACK:
        step = _attack(encounter, request, hooks)
    elif request.kind is ActionKind.MOVE:
        step = _move(encounter, request, hooks)
    elif request.kind is ActionKind.DEFEND:
        step = _defend(encounter, hooks)
    elif request.kind is ActionKind.CUSTOM:
        step = _custom(encounter, request, hooks)
    elif request.kind is ActionKind.FLEE:
        step = _flee(encounter, hooks)
    else:
        raise InvalidInputError(f"Unsupported action kind: {request.kind!r}")

    logger.debug(
        "Encounter %s round %s: %s consumed=%s awaiting=%s",
        encounter.id,
        encounter.round,
        request.kind.value,
        step.consumed,
        step.awaiting,
    )
    for hook in hooks:
        _record(encounter, hook)
    if step.ends_as is not None:
        hooks.append(end_encounter(encounter, step.ends_as))

    if step.consumed:
        hooks.extend(finish_turn(encounter, rng, refresh_conditions))

    ended = encounter.status in TERMINAL_STATUSES
    return ActionResult(
        accepted=step.consumed,
        narrative_hooks=[hook for hook in hooks if hook["type"] != "timing"],
        encounter_ended=ended,
        outcome=outcome_of(encounter),
        encounter=encounter,
        awaiting_roll=step.awaiting,
        dice_required=step.dice_required,
        mutated=step.consumed or step.mutated,
    )


def finish_turn(
    encounter: Encounter,
    rng: random.Random,
    refresh_conditions: ConditionRefresh | None = None,
) -> list[dict[str, Any]]:
    events = settle(encounter)
    if encounter.status is not EncounterStatus.ACTIVE:
        return events
    events.extend(advance(encounter, refresh_conditions))
    events.extend(run_enemy_turns(encounter, rng, refresh_conditions))
    return events


def run_enemy_turns(
    encounter: Encounter,
    rng: random.Random,
    refresh_conditions: ConditionRefresh | None = None,
) -> list[dict[str, Any]]:
    """Resolve enemy turns synchronously until it is the actor's turn or combat ends."""
    events: list[dict[str, Any]] = []
    while encounter.status is EncounterStatus.ACTIVE and encounter.current.side is Side.ENEMY:
        hook = take_enemy_turn(encounter, encounter.turn_cursor, rng)
        _record(encounter, hook)
        events.append(hook)
        events.extend(settle(encounter))
        if encounter.status is not EncounterStatus.ACTIVE:
            break
        events.extend(advance(encounter, refresh_conditions))
    return events


def _record(encounter: Encounter, hook: dict[str, Any]) -> None:
    if hook["type"] in _UNLOGGED:
        return
    details = {key: value for key, value in hook.items() if key not in ("type", "combatant")}
    append_log(encounter, actor=hook.get("combatant"), event=hook["type"], **details)


def _weapon(name: str) -> Weapon:
    weapon = WEAPONS.get(name.lower())
    if weapon is None:
        raise InvalidInputError(f"Unknown weapon {name!r}; expected one of {sorted(WEAPONS)}")
    return weapon


def _ability_modifier(encounter: Encounter, weapon: Weapon) -> int:
    actor = encounter.actor
    base = actor.str_modifier if weapon.ability == "STR" else actor.dex_modifier
    return base + apply_modifiers(encounter.conditions).get(weapon.ability, 0)


def _pick_target(encounter: Encounter, target_index: int | None) -> int:
    if target_index is None:
        for index, combatant in enumerate(encounter.initiative_order):
            if combatant.side is Side.ENEMY and not combatant.is_down:
                return index
        raise InvalidInputError("No enemy left to attack")
    if not 0 <= target_index < len(encounter.initiative_order):
        raise InvalidInputError(f"Target index {target_index} is out of bounds")
    target = encounter.initiative_order[target_index]
    if target.side is not Side.ENEMY or target.is_down:
        raise InvalidInputError(f"{target.name} is not a valid target")
    return target_index


def _has_disadvantage(actor: Combatant, target: Combatant, weapon: Weapon) -> bool:
    if weapon.reach is not Reach.RANGED:
        return False
    if actor.zone is Zone.MELEE and target.zone is Zone.MELEE:
        return True
    return target.zone is Zone.FAR


def _attack(encounter: Encounter, request: ActionRequest, hooks: list[dict[str, Any]]) -> _Step:
    pending = encounter.pending_roll
    if pending is not None:
        if request.attack_rolls:
            raise InvalidInputError("The attack was already rolled; submit only the damage roll")
        if request.damage_roll is None:
            hooks.append(_awaiting_hook(encounter, RollKind.DAMAGE, 1))
            return _Step(consumed=False, awaiting=RollKind.DAMAGE, dice_required=1)
        weapon = _weapon(pending.weapon)
        _apply_damage(encounter, pending.target_index, weapon, pending.critical, request.damage_roll, hooks)
        encounter.pending_roll = None
        return _Step(consumed=True)

    actor = encounter.actor
    weapon = _weapon(request.weapon)
    if weapon.reach is Reach.MELEE and actor.zone is not Zone.MELEE:
        raise OutOfRangeError(
            f"Cannot attack with {weapon.name} from {actor.zone.value} range; move to melee first"
        )
    target_index = _pick_target(encounter, request.target_index)
    target = encounter.initiative_order[target_index]

    disadvantage = _has_disadvantage(actor, target, weapon)
    dice_required = 2 if disadvantage else 1
    if len(request.attack_rolls) < dice_required:
        hooks.append(_awaiting_hook(encounter, RollKind.ATTACK, dice_required, disadvantage=disadvantage))
        return _Step(consumed=False, awaiting=RollKind.ATTACK, dice_required=dice_required)
    if len(request.attack_rolls) > dice_required:
        raise InvalidInputError(f"Expected {dice_required} attack roll(s), got {len(request.attack_rolls)}")
    rolls = [require_die(value, 1, 20, "Attack roll") for value in request.attack_rolls]

    natural = min(rolls) if disadvantage else rolls[0]
    ability = _ability_modifier(encounter, weapon)
    total = natural + ability + actor.proficiency_bonus
    critical = natural == 20
    if request.damage_roll is not None:
        _damage_roll(request.damage_roll, weapon, critical)
    hit = natural != 1 and (critical or total >= target.armor_class)
    hooks.append(
        {
            "type": "attack",
            "combatant": actor.name,
            "target": target.name,
            "weapon": weapon.name,
            "natural": natural,
            "attackTotal": total,
            "targetArmorClass": target.armor_class,
            "disadvantage": disadvantage,
            "hit": hit,
            "critical": critical,
            "criticalMiss": natural == 1,
        }
    )
    if not hit:
        return _Step(consumed=True)

    if request.damage_roll is None:
        encounter.pending_roll = PendingRoll(
            kind=RollKind.DAMAGE,
            weapon=weapon.name,
            target_index=target_index,
            natural=natural,
            attack_total=total,
            critical=critical,
        )
        hooks.append(_awaiting_hook(encounter, RollKind.DAMAGE, 1, critical=critical))
        return _Step(consumed=False, mutated=True, awaiting=RollKind.DAMAGE, dice_required=1)

    _apply_damage(encounter, target_index, weapon, critical, request.damage_roll, hooks)
    return _Step(consumed=True)


def _damage_roll(value: object, weapon: Weapon, critical: bool) -> int:
    dice = 2 if critical else 1
    return require_die(value, dice, weapon.damage_die * dice, "Damage roll")


def _apply_damage(
    encounter: Encounter,
    target_index: int,
    weapon: Weapon,
    critical: bool,
    damage_roll: int,
    hooks: list[dict[str, Any]],
) -> None:
    roll = _damage_roll(damage_roll, weapon, critical)
    damage = max(1, roll + _ability_modifier(encounter, weapon))
    target = encounter.initiative_order[target_index]
    target.hp = max(0, target.hp - damage)
    hooks.append(
        {
            "type": "damage",
            "combatant": encounter.actor.name,
            "target": target.name,
            "weapon": weapon.name,
            "roll": roll,
            "damage": damage,
            "critical": critical,
            "targetHp": target.hp,
            "targetMaxHp": target.max_hp,
            "targetDown": target.is_down,
        }
    )


def _awaiting_hook(encounter: Encounter, kind: RollKind, dice: int, **details: Any) -> dict[str, Any]:
    hook = {"type": "awaiting_roll", "combatant": encounter.actor.name, "roll": kind.value, "dice": dice}
    hook.update(details)
    return hook


def _move(encounter: Encounter, request: ActionRequest, hooks: list[dict[str, Any]]) -> _Step:
    if request.target_zone is None:
        raise InvalidInputError("A move action needs a target zone")
    actor = encounter.actor
    from_zone = actor.zone
    actor.zone = Zone(request.target_zone)
    hooks.append(
        {"type": "move", "combatant": actor.name, "fromZone": from_zone.value, "toZone": actor.zone.value}
    )
    return _Step(consumed=True)


def _defend(encounter: Encounter, hooks: list[dict[str, Any]]) -> _Step:
    actor = encounter.actor
    actor.defending_round = encounter.round
    hooks.append({"type": "defend", "combatant": actor.name, "round": encounter.round})
    return _Step(consumed=True)


def _custom(encounter: Encounter, request: ActionRequest, hooks: list[dict[str, Any]]) -> _Step:
    text = (request.raw_text or "").strip()
    if not text:
        raise InvalidInputError("A custom action needs a description")
    hooks.append({"type": "custom", "combatant": encounter.actor.name, "text": text})
    return _Step(consumed=True)


def _flee(encounter: Encounter, hooks: list[dict[str, Any]]) -> _Step:
    actor = encounter.actor
    if actor.zone is not Zone.FAR:
        raise OutOfRangeError(f"Cannot flee from {actor.zone.value} range; get to far range first")
    hooks.append({"type": "flee", "combatant": actor.name, "fromZone": actor.zone.value})
    return _Step(consumed=True, ends_as=EncounterStatus.FLED)
