"""Request-level orchestration: load, resolve, compare-and-swap, narrate."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import random
from typing import Sequence
import uuid

from questcombat.backend.conditions import ConditionSource, apply_modifiers
from questcombat.backend.engine import resolve_action, run_enemy_turns
from questcombat.backend.errors import (
    ConflictError,
    EncounterNotFoundError,
    InvalidInputError,
    StaleVersionError,
)
from questcombat.backend.initiative import submit_initiative, validate_initiative_roll
from questcombat.backend.models import ActionRequest, ActionResult, ActorProfile, Encounter, EnemySpec
from questcombat.backend.narration import Narrator, narrate_safely
from questcombat.backend.scheduler import ConditionRefresh
from questcombat.backend.state import new_encounter
from questcombat.backend.store import EncounterStore

logger = logging.getLogger(__name__)


@dataclass
class CombatService:
    store: EncounterStore
    conditions: ConditionSource
    narrator: Narrator | None = None
    history_limit: int = 10

    def create_encounter(
        self,
        actor_id: str,
        actor: ActorProfile,
        roster: Sequence[EnemySpec],
        origin_quest_id: str | None = None,
    ) -> Encounter:
        if not roster:
            raise InvalidInputError("An encounter needs at least one enemy")
        if actor.max_hp <= 0:
            raise InvalidInputError("The actor needs positive max hp")
        if actor.hp is not None and actor.hp <= 0:
            raise InvalidInputError("The actor cannot start an encounter already down")
        if any(spec.hp <= 0 for spec in roster):
            raise InvalidInputError("Every enemy needs positive hp")
        if self.store.get_active_encounter(actor_id) is not None:
            raise ConflictError(f"Actor {actor_id} already has an open encounter")

        encounter_id = str(uuid.uuid4())
        encounter = new_encounter(
            encounter_id=encounter_id,
            actor_id=actor_id,
            actor=actor,
            roster=roster,
            conditions=self.conditions.get_active_conditions(actor_id),
            rng=random.Random(encounter_id),
            origin_quest_id=origin_quest_id,
        )
        created = self.store.create_encounter(encounter)
        logger.info("Encounter %s (%s) pending initiative for actor %s", created.id, created.name, actor_id)
        return created

    def get_active_combat(self, actor_id: str) -> Encounter | None:
        return self.store.get_active_encounter(actor_id)

    def get_encounter(self, encounter_id: str) -> Encounter:
        encounter = self.store.get_encounter(encounter_id)
        if encounter is None:
            raise EncounterNotFoundError(f"Encounter {encounter_id} not found")
        return encounter

    def get_combat_history(self, actor_id: str, limit: int | None = None) -> list[Encounter]:
        return self.store.list_encounters(actor_id, limit if limit is not None else self.history_limit)

    def stat_modifiers(self, encounter: Encounter) -> dict[str, int]:
        return apply_modifiers(encounter.conditions)

    def submit_initiative(self, encounter_id: str, expected_version: int, raw_roll: object) -> Encounter:
        validate_initiative_roll(raw_roll)
        encounter = self._load(encounter_id, expected_version)
        submit_initiative(encounter, raw_roll)
        run_enemy_turns(encounter, self._rng(encounter), self._refresh(encounter))
        return self.store.save_encounter(encounter, expected_version)

    def submit_action(self, request: ActionRequest) -> ActionResult:
        encounter = self._load(request.encounter_id, request.expected_version)
        result = resolve_action(encounter, request, self._rng(encounter), self._refresh(encounter))
        saved = result.encounter
        if result.mutated:
            saved = self.store.save_encounter(result.encounter, request.expected_version)
        narration = narrate_safely(self.narrator, result.narrative_hooks)
        return replace(result, encounter=saved, narration=narration)

    def _load(self, encounter_id: str, expected_version: int) -> Encounter:
        encounter = self.get_encounter(encounter_id)
        if encounter.version != expected_version:
            raise StaleVersionError(encounter_id, expected_version, encounter.version)
        return encounter

    def _rng(self, encounter: Encounter) -> random.Random:
        return random.Random(f"{encounter.id}:{encounter.version}")

    def _refresh(self, encounter: Encounter) -> ConditionRefresh:
        return lambda: self.conditions.get_active_conditions(encounter.actor_id)
