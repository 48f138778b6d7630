"""Encounter lifecycle: pending -> active -> victory | defeat | fled."""

from __future__ import annotations

import logging
from typing import Any

from questcombat.backend.combat_log import append_log, utc_now_iso
from questcombat.backend.models import Encounter, EncounterStatus, Outcome, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

_OUTCOMES = {
    EncounterStatus.VICTORY: Outcome.VICTORY,
    EncounterStatus.DEFEAT: Outcome.DEFEAT,
    EncounterStatus.FLED: Outcome.FLED,
}


def resolve_outcome(encounter: Encounter) -> EncounterStatus:
    """Return the status the encounter should be in after the last action."""
    if encounter.status in TERMINAL_STATUSES or encounter.status is EncounterStatus.PENDING:
        return encounter.status
    if all(enemy.is_down for enemy in encounter.enemies):
        return EncounterStatus.VICTORY
    if encounter.actor.is_down:
        return EncounterStatus.DEFEAT
    return encounter.status


def settle(encounter: Encounter) -> list[dict[str, Any]]:
    """Apply ``resolve_outcome`` and stamp terminal encounters."""
    status = resolve_outcome(encounter)
    if status is encounter.status:
        return []
    return [end_encounter(encounter, status)]


def end_encounter(encounter: Encounter, status: EncounterStatus) -> dict[str, Any]:
    encounter.status = status
    encounter.ended_at = utc_now_iso()
    encounter.pending_roll = None
    append_log(encounter, actor=None, event="encounter_ended", status=status.value)
    logger.info("Encounter %s ended: %s", encounter.id, status.value)
    return {"type": "combat_ended", "outcome": status.value, "round": encounter.round}


def outcome_of(encounter: Encounter) -> Outcome:
    return _OUTCOMES.get(encounter.status, Outcome.NONE)
