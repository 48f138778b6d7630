"""Initiative negotiation between the player's roll and the system's enemy rolls."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from questcombat.backend.combat_log import append_log
from questcombat.backend.dice import require_die
from questcombat.backend.errors import EncounterNotActiveError, InvalidInputError
from questcombat.backend.models import Combatant, Encounter, EncounterStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)


def sort_initiative(order: Sequence[Combatant]) -> list[Combatant]:
    """Order combatants highest initiative first.

    Ties go to the higher dex modifier, then to the earlier entry. Enemies are
    inserted before the actor, so they win full ties. Unrolled entries sort last.
    """
    return sorted(
        order,
        key=lambda combatant: (
            combatant.initiative_score is None,
            -(combatant.initiative_score or 0),
            -combatant.dex_modifier,
        ),
    )


def validate_initiative_roll(raw_roll: object) -> int:
    return require_die(raw_roll, 1, 20, "Initiative roll")


def submit_initiative(encounter: Encounter, raw_roll: object) -> list[dict[str, Any]]:
    """Apply the player's d20 to a pending encounter and activate it.

    Mutates ``encounter`` in place and returns engine events for the caller.
    """
    roll = validate_initiative_roll(raw_roll)
    if encounter.status in TERMINAL_STATUSES:
        raise EncounterNotActiveError(f"Encounter {encounter.id} already ended as {encounter.status.value}")
    actor = encounter.actor
    if encounter.status is not EncounterStatus.PENDING or not actor.needs_roll:
        raise InvalidInputError(f"Initiative for encounter {encounter.id} was already submitted")

    total = roll + actor.dex_modifier
    actor.initiative_score = total
    actor.needs_roll = False
    encounter.initiative_order = sort_initiative(encounter.initiative_order)
    encounter.status = EncounterStatus.ACTIVE
    encounter.turn_cursor = 0

    order = [f"{combatant.name} ({combatant.initiative_score})" for combatant in encounter.initiative_order]
    logger.info("Encounter %s initiative: %s", encounter.id, ", ".join(order))
    append_log(encounter, actor=actor.name, event="initiative", roll=roll, total=total)
    return [
        {
            "type": "initiative",
            "actor": actor.name,
            "roll": roll,
            "dexModifier": actor.dex_modifier,
            "total": total,
            "order": [combatant.name for combatant in encounter.initiative_order],
        }
    ]
