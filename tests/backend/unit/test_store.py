import json
import threading
from typing import Any

import pytest
from conftest import make_pending

from questcombat.backend.errors import ConflictError, EncounterNotFoundError, StaleVersionError
from questcombat.backend.models import EncounterStatus
from questcombat.backend.state import encounter_to_state
from questcombat.backend.store import InMemoryEncounterStore, PostgresEncounterStore, create_store


def test_create_store_returns_postgres_store_when_database_url_present() -> None:
    store = create_store(database_url="postgresql://local")

    assert isinstance(store, PostgresEncounterStore)


def test_create_store_returns_in_memory_store_when_database_url_missing() -> None:
    store = create_store(database_url=None)

    assert isinstance(store, InMemoryEncounterStore)


def test_in_memory_store_allows_one_open_encounter_per_actor() -> None:
    store = InMemoryEncounterStore()
    store.create_encounter(make_pending(encounter_id="enc-1"))

    with pytest.raises(ConflictError):
        store.create_encounter(make_pending(encounter_id="enc-2"))

    assert store.get_active_encounter("actor-1").id == "enc-1"
    assert store.get_active_encounter("actor-2") is None


def test_in_memory_store_save_bumps_version() -> None:
    store = InMemoryEncounterStore()
    created = store.create_encounter(make_pending())
    created.round = 3

    saved = store.save_encounter(created, expected_version=1)

    assert saved.version == 2
    assert store.get_encounter("enc-1").round == 3
    assert store.get_encounter("enc-1").version == 2


def test_in_memory_store_rejects_stale_version_without_writing() -> None:
    store = InMemoryEncounterStore()
    created = store.create_encounter(make_pending())
    store.save_encounter(created, expected_version=1)
    created.round = 9

    with pytest.raises(StaleVersionError) as excinfo:
        store.save_encounter(created, expected_version=1)

    assert excinfo.value.current_version == 2
    assert store.get_encounter("enc-1").round == 1


def test_in_memory_store_save_unknown_encounter_raises_not_found() -> None:
    store = InMemoryEncounterStore()

    with pytest.raises(EncounterNotFoundError):
        store.save_encounter(make_pending(), expected_version=1)


def test_in_memory_store_allows_new_encounter_after_terminal_one() -> None:
    store = InMemoryEncounterStore()
    created = store.create_encounter(make_pending(encounter_id="enc-1"))
    created.status = EncounterStatus.VICTORY
    store.save_encounter(created, expected_version=1)

    second = store.create_encounter(make_pending(encounter_id="enc-2"))

    assert store.get_active_encounter("actor-1").id == second.id


def test_in_memory_store_lists_history_newest_first_with_limit() -> None:
    store = InMemoryEncounterStore()
    for index in range(3):
        encounter = make_pending(encounter_id=f"enc-{index}")
        encounter.created_at = f"2024-01-0{index + 1}T00:00:00+00:00"
        created = store.create_encounter(encounter)
        created.status = EncounterStatus.FLED
        store.save_encounter(created, expected_version=1)

    history = store.list_encounters("actor-1", limit=2)

    assert [encounter.id for encounter in history] == ["enc-2", "enc-1"]
    assert store.list_encounters("actor-9", limit=5) == []


def test_in_memory_store_returns_independent_copies() -> None:
    store = InMemoryEncounterStore()
    store.create_encounter(make_pending())

    loaded = store.get_encounter("enc-1")
    loaded.initiative_order[0].hp = 0

    assert store.get_encounter("enc-1").initiative_order[0].hp == 10


def test_in_memory_store_polls_safely_while_encounters_are_created() -> None:
    store = InMemoryEncounterStore()
    errors: list[Exception] = []
    done = threading.Event()

    def poll() -> None:
        while not done.is_set():
            try:
                store.list_encounters("actor-0", limit=5)
                store.get_active_encounter("actor-0")
            except Exception as exc:
                errors.append(exc)
                return

    poller = threading.Thread(target=poll)
    poller.start()
    try:
        for index in range(300):
            store.create_encounter(make_pending(encounter_id=f"enc-{index}", actor_id=f"actor-{index}"))
    finally:
        done.set()
        poller.join()

    assert errors == []
    assert store.get_active_encounter("actor-299").id == "enc-299"


class _FakeCursor:
    def __init__(self, rowcount: int = 1, fetchone: list[Any] | None = None, fetchall: list[Any] | None = None) -> None:
        self.commands: list[tuple[str, tuple]] = []
        self.rowcount = rowcount
        self.fetchone_results = list(fetchone or [])
        self.fetchall_results = list(fetchall or [])

    def execute(self, sql: str, params: tuple) -> None:
        self.commands.append((sql, params))

    def fetchone(self) -> Any:
        return self.fetchone_results.pop(0) if self.fetchone_results else None

    def fetchall(self) -> list[Any]:
        return self.fetchall_results.pop(0) if self.fetchall_results else []

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _FakeConnection:
    def __init__(self, cursor: _FakeCursor) -> None:
        self.cursor_instance = cursor
        self.committed = False
        self.rolled_back = False

    def cursor(self) -> _FakeCursor:
        return self.cursor_instance

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _PostgresStoreWithFakeConnection(PostgresEncounterStore):
    def __init__(self, cursor: _FakeCursor | None = None) -> None:
        super().__init__(database_url="postgresql://local")
        self.fake_connection = _FakeConnection(cursor or _FakeCursor())

    def _connect(self) -> _FakeConnection:
        return self.fake_connection

    @property
    def commands(self) -> list[tuple[str, tuple]]:
        return self.fake_connection.cursor_instance.commands


def test_postgres_create_inserts_encounter_and_first_snapshot() -> None:
    store = _PostgresStoreWithFakeConnection()

    created = store.create_encounter(make_pending())

    assert created.version == 1
    assert store.fake_connection.committed is True
    assert "SELECT id FROM encounters" in store.commands[0][0]
    assert "INSERT INTO encounters" in store.commands[1][0]
    assert "INSERT INTO encounter_snapshots" in store.commands[2][0]
    assert json.loads(store.commands[2][1][4])["status"] == "pending"


def test_postgres_create_rejects_second_open_encounter() -> None:
    store = _PostgresStoreWithFakeConnection(_FakeCursor(fetchone=[("enc-0",)]))

    with pytest.raises(ConflictError):
        store.create_encounter(make_pending())

    assert store.fake_connection.committed is False
    assert len(store.commands) == 1


def test_postgres_save_updates_with_version_guard_then_snapshots() -> None:
    store = _PostgresStoreWithFakeConnection()

    saved = store.save_encounter(make_pending(), expected_version=1)

    assert saved.version == 2
    assert store.fake_connection.committed is True
    update_sql, update_params = store.commands[0]
    assert "UPDATE encounters" in update_sql
    assert "current_version = %s" in update_sql
    assert update_params[0] == 2
    assert update_params[-2:] == ("enc-1", 1)
    assert "INSERT INTO encounter_snapshots" in store.commands[1][0]


def test_postgres_save_reports_stale_version() -> None:
    store = _PostgresStoreWithFakeConnection(_FakeCursor(rowcount=0, fetchone=[(5,)]))

    with pytest.raises(StaleVersionError) as excinfo:
        store.save_encounter(make_pending(), expected_version=1)

    assert excinfo.value.current_version == 5
    assert store.fake_connection.rolled_back is True
    assert store.fake_connection.committed is False
    assert all("encounter_snapshots" not in sql for sql, _ in store.commands)


def test_postgres_save_reports_missing_encounter() -> None:
    store = _PostgresStoreWithFakeConnection(_FakeCursor(rowcount=0))

    with pytest.raises(EncounterNotFoundError):
        store.save_encounter(make_pending(), expected_version=1)


def test_postgres_get_parses_text_snapshot() -> None:
    state = encounter_to_state(make_pending())
    store = _PostgresStoreWithFakeConnection(_FakeCursor(fetchall=[[(json.dumps(state),)]]))

    loaded = store.get_encounter("enc-1")

    assert loaded is not None
    assert loaded.id == "enc-1"
    assert loaded.status is EncounterStatus.PENDING
    assert store.commands[0][1] == ("enc-1", 1)
