"""Backend package for the QuestCombat encounter engine."""

from .config import BackendSettings, configure_logging, load_settings
from .conditions import ConditionSource, StaticConditionSource, apply_modifiers, on_round_advance
from .errors import (
    CombatError,
    ConflictError,
    EncounterNotActiveError,
    EncounterNotFoundError,
    InvalidInputError,
    InvalidTurnError,
    OutOfRangeError,
    StaleVersionError,
)
from .service import CombatService
from .state import encounter_from_state, encounter_to_state, new_encounter
from .store import EncounterStore, InMemoryEncounterStore, PostgresEncounterStore, create_store

__all__ = [
    "apply_modifiers",
    "BackendSettings",
    "CombatError",
    "CombatService",
    "ConditionSource",
    "configure_logging",
    "ConflictError",
    "create_store",
    "encounter_from_state",
    "encounter_to_state",
    "EncounterNotActiveError",
    "EncounterNotFoundError",
    "EncounterStore",
    "InMemoryEncounterStore",
    "InvalidInputError",
    "InvalidTurnError",
    "load_settings",
    "new_encounter",
    "on_round_advance",
    "OutOfRangeError",
    "PostgresEncounterStore",
    "StaleVersionError",
    "StaticConditionSource",
]
