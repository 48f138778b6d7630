"""FastAPI endpoints for encounter creation, polling, initiative and actions."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from questcombat.backend.conditions import StaticConditionSource
from questcombat.backend.config import load_settings
from questcombat.backend.errors import CombatError
from questcombat.backend.models import (
    DEFAULT_WEAPON,
    ActionKind,
    ActionRequest,
    ActorProfile,
    EnemySpec,
    Zone,
)
from questcombat.backend.narration import TemplateNarrator
from questcombat.backend.service import CombatService
from questcombat.backend.state import encounter_to_state
from questcombat.backend.store import create_store


class ActorPayload(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    max_hp: int = Field(gt=0)
    armor_class: int = Field(ge=0)
    dex_modifier: int = 0
    hp: int | None = Field(default=None, gt=0)
    str_modifier: int = 0
    proficiency_bonus: int = Field(default=2, ge=0)
    zone: Zone = Zone.MELEE


class EnemyPayload(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    hp: int = Field(gt=0)
    armor_class: int = Field(ge=0)
    attack_bonus: int = 3
    damage_dice: str = Field(default="1d6+1", pattern=r"^\s*\d+d\d+\s*([+-]\s*\d+)?\s*$")
    zone: Zone = Zone.NEAR
    dex_modifier: int | None = None
    ranged: bool = False


class CreateEncounterRequest(BaseModel):
    actor_id: str = Field(min_length=1)
    actor: ActorPayload
    enemies: list[EnemyPayload] = Field(min_length=1)
    origin_quest_id: str | None = None


class InitiativeEnvelope(BaseModel):
    version: int = Field(ge=1)
    roll: int


class ActionEnvelope(BaseModel):
    version: int = Field(ge=1)
    kind: ActionKind
    target_zone: Zone | None = None
    raw_text: str | None = Field(default=None, max_length=1000)
    weapon: str = DEFAULT_WEAPON
    target_index: int | None = None
    attack_rolls: list[int] = Field(default_factory=list, max_length=2)
    damage_roll: int | None = None


class EncounterStateResponse(BaseModel):
    state: dict[str, Any]


class ActiveCombatResponse(BaseModel):
    encounter: dict[str, Any] | None
    stat_modifiers: dict[str, int] = Field(default_factory=dict)


class ActionResultResponse(BaseModel):
    accepted: bool
    encounter_ended: bool
    outcome: str
    awaiting_roll: str | None
    dice_required: int | None
    narrative_hooks: list[dict[str, Any]]
    narration: str | None
    state: dict[str, Any]


class CombatHistoryResponse(BaseModel):
    encounters: list[dict[str, Any]]


def _default_service() -> CombatService:
    settings = load_settings()
    return CombatService(
        store=create_store(settings.database_url),
        conditions=StaticConditionSource(),
        narrator=TemplateNarrator(),
        history_limit=settings.history_limit,
    )


def _history_entry(state: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": state["id"],
        "name": state["name"],
        "status": state["status"],
        "enemyCount": sum(1 for combatant in state["initiativeOrder"] if combatant["side"] == "enemy"),
        "startedAt": state["meta"]["createdAt"],
        "endedAt": state["meta"]["endedAt"],
    }


def create_app(service: CombatService | None = None) -> FastAPI:
    app = FastAPI(title="QuestCombat API", version="0.1.0")
    combat_service = service if service is not None else _default_service()
    app.state.combat_service = combat_service

    @app.exception_handler(CombatError)
    async def combat_error_handler(request: Request, exc: CombatError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})

    def get_service() -> CombatService:
        return combat_service

    @app.post("/api/encounters", response_model=EncounterStateResponse)
    def create_encounter(
        payload: CreateEncounterRequest,
        local_service: CombatService = Depends(get_service),
    ) -> EncounterStateResponse:
        encounter = local_service.create_encounter(
            actor_id=payload.actor_id,
            actor=ActorProfile(**payload.actor.model_dump()),
            roster=[EnemySpec(**enemy.model_dump()) for enemy in payload.enemies],
            origin_quest_id=payload.origin_quest_id,
        )
        return EncounterStateResponse(state=encounter_to_state(encounter))

    @app.get("/api/encounters/{encounter_id}", response_model=EncounterStateResponse)
    def get_encounter(
        encounter_id: str,
        local_service: CombatService = Depends(get_service),
    ) -> EncounterStateResponse:
        encounter = local_service.get_encounter(encounter_id)
        return EncounterStateResponse(state=encounter_to_state(encounter))

    @app.get("/api/actors/{actor_id}/active-combat", response_model=ActiveCombatResponse)
    def get_active_combat(
        actor_id: str,
        local_service: CombatService = Depends(get_service),
    ) -> ActiveCombatResponse:
        encounter = local_service.get_active_combat(actor_id)
        if encounter is None:
            return ActiveCombatResponse(encounter=None)
        return ActiveCombatResponse(
            encounter=encounter_to_state(encounter),
            stat_modifiers=local_service.stat_modifiers(encounter),
        )

    @app.get("/api/actors/{actor_id}/combat-history", response_model=CombatHistoryResponse)
    def get_combat_history(
        actor_id: str,
        limit: int | None = Query(default=None, ge=1, le=100),
        local_service: CombatService = Depends(get_service),
    ) -> CombatHistoryResponse:
        encounters = local_service.get_combat_history(actor_id, limit)
        return CombatHistoryResponse(
            encounters=[_history_entry(encounter_to_state(encounter)) for encounter in encounters]
        )

    @app.post("/api/encounters/{encounter_id}/initiative", response_model=EncounterStateResponse)
    def post_initiative(
        encounter_id: str,
        payload: InitiativeEnvelope,
        local_service: CombatService = Depends(get_service),
    ) -> EncounterStateResponse:
        encounter = local_service.submit_initiative(
            encounter_id=encounter_id,
            expected_version=payload.version,
            raw_roll=payload.roll,
        )
        return EncounterStateResponse(state=encounter_to_state(encounter))

    @app.post("/api/encounters/{encounter_id}/actions", response_model=ActionResultResponse)
    def post_action(
        encounter_id: str,
        payload: ActionEnvelope,
        local_service: CombatService = Depends(get_service),
    ) -> ActionResultResponse:
        result = local_service.submit_action(
            ActionRequest(
                encounter_id=encounter_id,
                expected_version=payload.version,
                kind=payload.kind,
                target_zone=payload.target_zone,
                raw_text=payload.raw_text,
                weapon=payload.weapon,
                target_index=payload.target_index,
                attack_rolls=tuple(payload.attack_rolls),
                damage_roll=payload.damage_roll,
            )
        )
        return ActionResultResponse(
            accepted=result.accepted,
            encounter_ended=result.encounter_ended,
            outcome=result.outcome.value,
            awaiting_roll=result.awaiting_roll.value if result.awaiting_roll is not None else None,
            dice_required=result.dice_required,
            narrative_hooks=result.narrative_hooks,
            narration=result.narration,
            state=encounter_to_state(result.encounter),
        )

    return app


app = create_app()
