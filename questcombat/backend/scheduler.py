"""Turn and round advancement over the initiative order."""

from __future__ import annotations

import logging
from typing import Any, Callable

from questcombat.backend.conditions import merge_refreshed, on_round_advance
from questcombat.backend.models import Condition, Encounter

logger = logging.getLogger(__name__)

ConditionRefresh = Callable[[], list[Condition]]


def advance(encounter: Encounter, refresh_conditions: ConditionRefresh | None = None) -> list[dict[str, Any]]:
    """Move the cursor to the next living combatant.

    Wrapping past the last entry starts a new round and runs the round-boundary
    hook exactly once per wrap. Callers settle the outcome first, so at least
    one combatant is always alive here.
    """
    order = encounter.initiative_order
    if not order:
        return []
    if all(combatant.is_down for combatant in order):
        raise RuntimeError(f"Encounter {encounter.id} has no living combatant to advance to")

    events: list[dict[str, Any]] = [
        {"type": "timing", "timing": "turn_end", "combatant": order[encounter.turn_cursor].name}
    ]
    while True:
        next_cursor = encounter.turn_cursor + 1
        if next_cursor > len(order) - 1:
            encounter.turn_cursor = 0
            events.extend(_start_next_round(encounter, refresh_conditions))
        else:
            encounter.turn_cursor = next_cursor
        if not encounter.current.is_down:
            break

    # A defensive stance lasts until its owner acts again.
    encounter.current.defending_round = None
    events.append({"type": "timing", "timing": "turn_start", "combatant": encounter.current.name})
    return events


def _start_next_round(encounter: Encounter, refresh_conditions: ConditionRefresh | None) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = [{"type": "timing", "timing": "round_end", "round": encounter.round}]
    encounter.round += 1

    kept, expired = on_round_advance(encounter.conditions)
    encounter.expired_conditions.extend(condition.key for condition in expired)
    if refresh_conditions is not None:
        kept = merge_refreshed(kept, refresh_conditions(), encounter.expired_conditions)
    encounter.conditions = kept
    for condition in expired:
        events.append({"type": "condition_expired", "condition": condition.name, "source": condition.source})
    if expired:
        logger.debug("Encounter %s round %s expired %s condition(s)", encounter.id, encounter.round, len(expired))

    events.append({"type": "timing", "timing": "round_start", "round": encounter.round})
    return events
