"""Domain models for the encounter aggregate and the action contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Side(str, Enum):
    ACTOR = "actor"
    ENEMY = "enemy"


class Zone(str, Enum):
    MELEE = "melee"
    NEAR = "near"
    FAR = "far"


ZONE_ORDER: tuple[Zone, ...] = (Zone.MELEE, Zone.NEAR, Zone.FAR)


class EncounterStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    VICTORY = "victory"
    DEFEAT = "defeat"
    FLED = "fled"


OPEN_STATUSES = frozenset({EncounterStatus.PENDING, EncounterStatus.ACTIVE})
TERMINAL_STATUSES = frozenset({EncounterStatus.VICTORY, EncounterStatus.DEFEAT, EncounterStatus.FLED})


class ActionKind(str, Enum):
    ATTACK = "attack"
    MOVE = "move"
    DEFEND = "defend"
    CUSTOM = "custom"
    FLEE = "flee"


class Outcome(str, Enum):
    NONE = "none"
    VICTORY = "victory"
    DEFEAT = "defeat"
    FLED = "fled"


class RollKind(str, Enum):
    ATTACK = "attack"
    DAMAGE = "damage"


class Reach(str, Enum):
    MELEE = "melee"
    RANGED = "ranged"


@dataclass(frozen=True)
class Weapon:
    name: str
    reach: Reach
    damage_die: int
    ability: str


WEAPONS: dict[str, Weapon] = {
    "longsword": Weapon(name="longsword", reach=Reach.MELEE, damage_die=8, ability="STR"),
    "handaxe": Weapon(name="handaxe", reach=Reach.MELEE, damage_die=6, ability="STR"),
    "shortbow": Weapon(name="shortbow", reach=Reach.RANGED, damage_die=6, ability="DEX"),
    "sling": Weapon(name="sling", reach=Reach.RANGED, damage_die=4, ability="DEX"),
}

DEFAULT_WEAPON = "longsword"


@dataclass
class Combatant:
    name: str
    side: Side
    hp: int
    max_hp: int
    armor_class: int
    zone: Zone
    dex_modifier: int
    initiative_score: int | None = None
    needs_roll: bool = False
    str_modifier: int = 0
    proficiency_bonus: int = 2
    attack_bonus: int = 0
    damage_dice: str = "1d6"
    ranged: bool = False
    defending_round: int | None = None

    @property
    def is_down(self) -> bool:
        return self.hp <= 0


@dataclass(frozen=True)
class Condition:
    name: str
    source: str
    stat_modifiers: dict[str, int]
    rounds_remaining: int

    @property
    def key(self) -> str:
        return f"{self.source}:{self.name}"


@dataclass(frozen=True)
class PendingRoll:
    """A resolved attack hit that still waits for the player's damage roll."""

    kind: RollKind
    weapon: str
    target_index: int
    natural: int
    attack_total: int
    critical: bool


@dataclass
class Encounter:
    id: str
    actor_id: str
    name: str
    status: EncounterStatus
    round: int
    turn_cursor: int
    version: int
    initiative_order: list[Combatant]
    conditions: list[Condition] = field(default_factory=list)
    expired_conditions: list[str] = field(default_factory=list)
    origin_quest_id: str | None = None
    pending_roll: PendingRoll | None = None
    log: list[dict[str, Any]] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    ended_at: str | None = None

    @property
    def actor_index(self) -> int:
        for index, combatant in enumerate(self.initiative_order):
            if combatant.side is Side.ACTOR:
                return index
        raise LookupError(f"Encounter {self.id} has no actor combatant")

    @property
    def actor(self) -> Combatant:
        return self.initiative_order[self.actor_index]

    @property
    def enemies(self) -> list[Combatant]:
        return [combatant for combatant in self.initiative_order if combatant.side is Side.ENEMY]

    @property
    def current(self) -> Combatant:
        return self.initiative_order[self.turn_cursor]

    @property
    def is_actor_turn(self) -> bool:
        return self.status is EncounterStatus.ACTIVE and self.current.side is Side.ACTOR


@dataclass(frozen=True)
class EnemySpec:
    name: str
    hp: int
    armor_class: int
    attack_bonus: int = 3
    damage_dice: str = "1d6+1"
    zone: Zone = Zone.NEAR
    dex_modifier: int | None = None
    ranged: bool = False


@dataclass(frozen=True)
class ActorProfile:
    name: str
    max_hp: int
    armor_class: int
    dex_modifier: int
    hp: int | None = None
    str_modifier: int = 0
    proficiency_bonus: int = 2
    zone: Zone = Zone.MELEE


@dataclass(frozen=True)
class ActionRequest:
    encounter_id: str
    expected_version: int
    kind: ActionKind
    target_zone: Zone | None = None
    raw_text: str | None = None
    weapon: str = DEFAULT_WEAPON
    target_index: int | None = None
    attack_rolls: tuple[int, ...] = ()
    damage_roll: int | None = None


@dataclass(frozen=True)
class ActionResult:
    accepted: bool
    narrative_hooks: list[dict[str, Any]]
    encounter_ended: bool
    outcome: Outcome
    encounter: Encounter
    awaiting_roll: RollKind | None = None
    dice_required: int | None = None
    mutated: bool = False
    narration: str | None = None
