import psycopg
import pytest

from questcombat.backend import migrate


class _Recorder:
    def __init__(self) -> None:
        self.statements: list[str] = []
        self.committed = False

    def cursor(self) -> "_Recorder":
        return self

    def execute(self, sql: str) -> None:
        self.statements.append(sql)

    def commit(self) -> None:
        self.committed = True

    def __enter__(self) -> "_Recorder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


def test_apply_schema_runs_bundled_script(monkeypatch) -> None:
    recorder = _Recorder()
    urls: list[str] = []

    def fake_connect(url: str) -> _Recorder:
        urls.append(url)
        return recorder

    monkeypatch.setattr(psycopg, "connect", fake_connect)

    migrate.apply_schema("postgresql://local")

    assert urls == ["postgresql://local"]
    assert recorder.committed is True
    assert "encounters_one_open_per_actor" in recorder.statements[0]
    assert "encounter_snapshots" in recorder.statements[0]


def test_main_requires_database_url(monkeypatch) -> None:
    monkeypatch.delenv("QUESTCOMBAT_DATABASE_URL", raising=False)

    with pytest.raises(RuntimeError):
        migrate.main()
