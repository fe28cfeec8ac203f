import sqlite3
from pathlib import Path

import pytest

from mdc.repositories.local_cache import SqliteLocalCache
from mdc.repositories.unit_of_work import DONE, FAILED, CommandLog, CommandUnitOfWork
from conftest import make_cache


def test_migrations_are_recorded_and_idempotent(tmp_path: Path):
    cache = make_cache(tmp_path)
    cache.init_db()

    conn = sqlite3.connect(cache.db_path)
    versions = [r[0] for r in conn.execute("SELECT version FROM schema_migrations ORDER BY version")]
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    conn.close()

    assert versions == [1, 2]
    assert {"kv_cache", "command_log", "command_steps"} <= tables


def test_json_values_survive_and_corrupt_values_use_default(tmp_path: Path):
    cache = make_cache(tmp_path)
    cache.set_json("mdc_orders", [{"id": "o1", "total": 10.5}])
    cache.set_json("mdc_orders", [{"id": "o2"}])
    assert cache.get_json("mdc_orders") == [{"id": "o2"}]

    conn = sqlite3.connect(cache.db_path)
    conn.execute("UPDATE kv_cache SET value='{not json' WHERE key='mdc_orders'")
    conn.commit()
    conn.close()
    assert cache.get_json("mdc_orders", []) == []

    cache.delete("mdc_orders")
    assert cache.get_raw("mdc_orders") is None


def test_failed_migration_restores_backup(tmp_path: Path, monkeypatch):
    cache = make_cache(tmp_path)
    cache.set_json("mdc_clients", [{"id": "c1"}])

    def broken(self, cur):
        cur.execute("CREATE TABLE extra (id TEXT)")
        raise sqlite3.OperationalError("disk full")

    conn = sqlite3.connect(cache.db_path)
    conn.execute("DELETE FROM schema_migrations WHERE version=2")
    conn.commit()
    conn.close()
    monkeypatch.setattr(SqliteLocalCache, "_migration_v2_command_log", broken)

    with pytest.raises(RuntimeError, match="restored"):
        cache.init_db()
    assert cache.get_json("mdc_clients") == [{"id": "c1"}]


def test_completed_steps_are_skipped_on_replay(tmp_path: Path):
    cache = make_cache(tmp_path)
    log = CommandLog(cache.db_path)
    calls = []

    def fail_second():
        calls.append("second")
        raise ConnectionError("offline")

    with pytest.raises(ConnectionError):
        with CommandUnitOfWork(log, "checkout", {"n": 1}) as uow:
            uow.step("first", lambda: calls.append("first"))
            uow.step("second", fail_second)
    command_id = uow.command_id

    [pending] = log.unfinished("checkout")
    assert pending.id == command_id
    assert pending.status == FAILED
    assert pending.completed_steps == frozenset({"first"})

    with CommandUnitOfWork(log, "checkout", pending.payload, command_id) as uow:
        uow.step("first", lambda: calls.append("first"))
        uow.step("second", lambda: calls.append("second-ok"))

    assert calls == ["first", "second", "second-ok"]
    assert log.get(command_id).status == DONE
    assert log.unfinished() == []
