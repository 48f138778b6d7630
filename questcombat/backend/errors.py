"""Error taxonomy for the combat engine.

Every error is a local, recoverable condition that is surfaced verbatim to the
caller. The API layer maps ``status_code`` onto the HTTP response.
"""

from __future__ import annotations


class CombatError(Exception):
    code = "combat_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(CombatError):
    code = "invalid_input"
    status_code = 400


class ConflictError(CombatError):
    code = "conflict"
    status_code = 409


class StaleVersionError(CombatError):
    """The caller should reload the encounter and retry, not resubmit blindly."""

    code = "stale_version"
    status_code = 409

    def __init__(self, encounter_id: str, expected_version: int, current_version: int) -> None:
        super().__init__(
            f"Encounter {encounter_id} is at version {current_version}, not {expected_version}"
        )
        self.encounter_id = encounter_id
        self.expected_version = expected_version
        self.current_version = current_version


class InvalidTurnError(CombatError):
    code = "invalid_turn"
    status_code = 409


class EncounterNotActiveError(CombatError):
    code = "encounter_not_active"
    status_code = 409


class OutOfRangeError(CombatError):
    code = "out_of_range"
    status_code = 422


class EncounterNotFoundError(CombatError):
    code = "not_found"
    status_code = 404
