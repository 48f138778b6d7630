"""Persistence interfaces and implementations for the encounter aggregate.

Every write is a compare-and-swap on the encounter version: the caller passes
the version it loaded, and the store bumps it by one or raises
``StaleVersionError`` without writing anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import threading
from typing import Any, Protocol
import uuid

from questcombat.backend.errors import ConflictError, EncounterNotFoundError, StaleVersionError
from questcombat.backend.models import Encounter, OPEN_STATUSES
from questcombat.backend.state import encounter_from_state, encounter_to_state

logger = logging.getLogger(__name__)

_OPEN_STATUS_VALUES = tuple(sorted(status.value for status in OPEN_STATUSES))


class EncounterStore(Protocol):
    def create_encounter(self, encounter: Encounter) -> Encounter:
        """Persist a new encounter; fail when the actor already has an open one."""

    def get_encounter(self, encounter_id: str) -> Encounter | None:
        """Return the current version of an encounter."""

    def get_active_encounter(self, actor_id: str) -> Encounter | None:
        """Return the actor's pending or active encounter, if any."""

    def save_encounter(self, encounter: Encounter, expected_version: int) -> Encounter:
        """Write ``encounter`` as the next version when ``expected_version`` is current."""

    def list_encounters(self, actor_id: str, limit: int) -> list[Encounter]:
        """Return the actor's encounters, most recent first."""


def _next_state(encounter: Encounter, version: int) -> dict[str, Any]:
    state = encounter_to_state(encounter)
    state["version"] = version
    state["meta"]["updatedAt"] = datetime.now(timezone.utc).isoformat()
    return state


def _load_state(state_json: Any) -> dict[str, Any]:
    return state_json if isinstance(state_json, dict) else json.loads(state_json)


@dataclass
class InMemoryEncounterStore:
    def __post_init__(self) -> None:
        self._encounters: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create_encounter(self, encounter: Encounter) -> Encounter:
        state = encounter_to_state(encounter)
        with self._lock:
            if self._find_open(encounter.actor_id) is not None:
                raise ConflictError(f"Actor {encounter.actor_id} already has an open encounter")
            self._encounters[encounter.id] = state
        return encounter_from_state(state)

    def get_encounter(self, encounter_id: str) -> Encounter | None:
        state = self._encounters.get(encounter_id)
        if state is None:
            return None
        return encounter_from_state(state)

    def get_active_encounter(self, actor_id: str) -> Encounter | None:
        state = self._find_open(actor_id)
        if state is None:
            return None
        return encounter_from_state(state)

    def save_encounter(self, encounter: Encounter, expected_version: int) -> Encounter:
        with self._lock:
            current = self._encounters.get(encounter.id)
            if current is None:
                raise EncounterNotFoundError(f"Encounter {encounter.id} not found")
            current_version = int(current["version"])
            if current_version != expected_version:
                raise StaleVersionError(encounter.id, expected_version, current_version)
            next_state = _next_state(encounter, current_version + 1)
            self._encounters[encounter.id] = next_state
        return encounter_from_state(next_state)

    def list_encounters(self, actor_id: str, limit: int) -> list[Encounter]:
        states = [state for state in list(self._encounters.values()) if state["actorId"] == actor_id]
        states.sort(key=lambda state: state["meta"]["createdAt"], reverse=True)
        return [encounter_from_state(state) for state in states[:limit]]

    def _find_open(self, actor_id: str) -> dict[str, Any] | None:
        for state in list(self._encounters.values()):
            if state["actorId"] == actor_id and state["status"] in _OPEN_STATUS_VALUES:
                return state
        return None


@dataclass
class PostgresEncounterStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def create_encounter(self, encounter: Encounter) -> Encounter:
        from psycopg import errors as pg_errors

        state = encounter_to_state(encounter)
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id FROM encounters
                    WHERE actor_id = %s AND status = ANY(%s)
                    LIMIT 1
                    """,
                    (encounter.actor_id, list(_OPEN_STATUS_VALUES)),
                )
                if cur.fetchone() is not None:
                    raise ConflictError(f"Actor {encounter.actor_id} already has an open encounter")
                try:
                    cur.execute(
                        """
                        INSERT INTO encounters
                          (id, actor_id, origin_quest_id, name, status, current_version, created_at, updated_at, ended_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NULL)
                        """,
                        (
                            encounter.id,
                            encounter.actor_id,
                            encounter.origin_quest_id,
                            encounter.name,
                            state["status"],
                            state["version"],
                            now,
                            now,
                        ),
                    )
                except pg_errors.UniqueViolation as exc:
                    conn.rollback()
                    raise ConflictError(f"Actor {encounter.actor_id} already has an open encounter") from exc
                self._insert_snapshot(cur, encounter.id, state, now)
            conn.commit()
        logger.info("Created encounter %s for actor %s", encounter.id, encounter.actor_id)
        return encounter_from_state(state)

    def get_encounter(self, encounter_id: str) -> Encounter | None:
        rows = self._select_states("e.id = %s", (encounter_id,), limit=1)
        return rows[0] if rows else None

    def get_active_encounter(self, actor_id: str) -> Encounter | None:
        rows = self._select_states(
            "e.actor_id = %s AND e.status = ANY(%s)",
            (actor_id, list(_OPEN_STATUS_VALUES)),
            limit=1,
        )
        return rows[0] if rows else None

    def list_encounters(self, actor_id: str, limit: int) -> list[Encounter]:
        return self._select_states("e.actor_id = %s", (actor_id,), limit=limit)

    def save_encounter(self, encounter: Encounter, expected_version: int) -> Encounter:
        next_state = _next_state(encounter, expected_version + 1)
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE encounters
                    SET current_version = %s, status = %s, updated_at = %s, ended_at = %s
                    WHERE id = %s AND current_version = %s
                    """,
                    (
                        next_state["version"],
                        next_state["status"],
                        now,
                        encounter.ended_at,
                        encounter.id,
                        expected_version,
                    ),
                )
                if cur.rowcount != 1:
                    conn.rollback()
                    cur.execute("SELECT current_version FROM encounters WHERE id = %s", (encounter.id,))
                    row = cur.fetchone()
                    if row is None:
                        raise EncounterNotFoundError(f"Encounter {encounter.id} not found")
                    raise StaleVersionError(encounter.id, expected_version, int(row[0]))
                self._insert_snapshot(cur, encounter.id, next_state, now)
            conn.commit()
        return encounter_from_state(next_state)

    def _insert_snapshot(self, cur: Any, encounter_id: str, state: dict[str, Any], now: datetime) -> None:
        cur.execute(
            """
            INSERT INTO encounter_snapshots (id, encounter_id, version, created_at, state_json)
            VALUES (%s, %s, %s, %s, %s::jsonb)
            """,
            (str(uuid.uuid4()), encounter_id, state["version"], now, json.dumps(state)),
        )

    def _select_states(self, where: str, params: tuple, limit: int) -> list[Encounter]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT s.state_json
                    FROM encounters e
                    JOIN encounter_snapshots s
                      ON s.encounter_id = e.id AND s.version = e.current_version
                    WHERE {where}
                    ORDER BY e.created_at DESC
                    LIMIT %s
                    """,
                    (*params, limit),
                )
                rows = cur.fetchall()
        return [encounter_from_state(_load_state(row[0])) for row in rows]


def create_store(database_url: str | None) -> EncounterStore:
    if database_url:
        return PostgresEncounterStore(database_url=database_url)
    return InMemoryEncounterStore()
