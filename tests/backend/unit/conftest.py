"""Shared builders for combat engine tests."""

from __future__ import annotations

import random
from typing import Iterable, Sequence

import pytest

from questcombat.backend.conditions import StaticConditionSource
from questcombat.backend.initiative import submit_initiative
from questcombat.backend.models import (
    ActorProfile,
    Combatant,
    Condition,
    Encounter,
    EncounterStatus,
    EnemySpec,
    Side,
    Zone,
)
from questcombat.backend.narration import TemplateNarrator
from questcombat.backend.service import CombatService
from questcombat.backend.state import new_encounter
from questcombat.backend.store import InMemoryEncounterStore


class ScriptedRandom(random.Random):
    """Random source that hands out predetermined die results."""

    def __init__(self, values: Iterable[int] = ()) -> None:
        super().__init__(0)
        self.values = list(values)

    def randint(self, a: int, b: int) -> int:
        if not self.values:
            return a
        value = self.values.pop(0)
        assert a <= value <= b, f"scripted value {value} outside {a}..{b}"
        return value


ACTOR = ActorProfile(name="Aria", max_hp=20, armor_class=14, dex_modifier=3, str_modifier=2)
GOBLIN = EnemySpec(name="Goblin", hp=10, armor_class=12, dex_modifier=0)


def make_pending(
    enemy_rolls: Sequence[int] = (11,),
    actor: ActorProfile = ACTOR,
    roster: Sequence[EnemySpec] = (GOBLIN,),
    conditions: Sequence[Condition] = (),
    encounter_id: str = "enc-1",
    actor_id: str = "actor-1",
) -> Encounter:
    return new_encounter(
        encounter_id=encounter_id,
        actor_id=actor_id,
        actor=actor,
        roster=list(roster),
        conditions=list(conditions),
        rng=ScriptedRandom(enemy_rolls),
    )


def make_active(actor_roll: int = 15, **kwargs) -> Encounter:
    encounter = make_pending(**kwargs)
    submit_initiative(encounter, actor_roll)
    return encounter


def make_combatant(name: str, side: Side = Side.ENEMY, hp: int = 10, zone: Zone = Zone.NEAR) -> Combatant:
    return Combatant(
        name=name,
        side=side,
        hp=hp,
        max_hp=10,
        armor_class=12,
        zone=zone,
        dex_modifier=0,
        initiative_score=10,
    )


def make_bare_encounter(order: list[Combatant], conditions: Sequence[Condition] = ()) -> Encounter:
    return Encounter(
        id="enc-bare",
        actor_id="actor-1",
        name="Bare",
        status=EncounterStatus.ACTIVE,
        round=1,
        turn_cursor=0,
        version=1,
        initiative_order=order,
        conditions=list(conditions),
    )


@pytest.fixture
def store() -> InMemoryEncounterStore:
    return InMemoryEncounterStore()


@pytest.fixture
def condition_source() -> StaticConditionSource:
    return StaticConditionSource()


@pytest.fixture
def service(store: InMemoryEncounterStore, condition_source: StaticConditionSource) -> CombatService:
    return CombatService(store=store, conditions=condition_source, narrator=TemplateNarrator())
