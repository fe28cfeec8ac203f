from decimal import Decimal
from pathlib import Path

import pytest

from mdc.domain.errors import NotFoundError, RemoteStoreError
from mdc.domain.models import ExpenseItem
from mdc.repositories.local_cache import CHANGE_SENTINEL_KEY
from mdc.repositories.mappers import EXPENSE_MAPPER
from mdc.services.events import DELETE, INSERT, UPDATE, ChangeBus, ChangeEvent
from conftest import DownRemote, MemoryRemote, make_cache, make_repo


def _expense(eid: str, amount: str = "10") -> ExpenseItem:
    return ExpenseItem(eid, "2024-05-01", "UK logistics", f"Courier {eid}", Decimal(amount))


def test_reads_fall_back_to_cache_when_remote_is_down(tmp_path: Path):
    cache = make_cache(tmp_path)
    online = make_repo(tmp_path, EXPENSE_MAPPER, remote=MemoryRemote(), cache=cache)
    online.add(_expense("e1"))

    offline = make_repo(tmp_path, EXPENSE_MAPPER, remote=DownRemote(), cache=cache)
    assert [e.id for e in offline.get_all()] == ["e1"]


@pytest.mark.parametrize("exc", [RemoteStoreError("503"), RuntimeError("boom"), ConnectionError("reset")])
def test_any_remote_failure_degrades_to_local(tmp_path: Path, exc: Exception):
    repo = make_repo(tmp_path, EXPENSE_MAPPER, remote=DownRemote(exc))
    saved = repo.add(_expense("e1", "12.5"))

    assert saved.amount == Decimal("12.50")
    assert [e.id for e in repo.get_all()] == ["e1"]


def test_offline_writes_update_and_delete_local_copy(tmp_path: Path):
    repo = make_repo(tmp_path, EXPENSE_MAPPER, remote=DownRemote())
    repo.add(_expense("e1"))
    repo.add(_expense("e2"))

    repo.update("e1", description="Van hire")
    repo.delete("e2")

    rows = repo.get_all()
    assert [(e.id, e.description) for e in rows] == [("e1", "Van hire")]


def test_update_of_unknown_record_raises(tmp_path: Path):
    repo = make_repo(tmp_path, EXPENSE_MAPPER)
    with pytest.raises(NotFoundError):
        repo.update("missing", description="x")


def test_successful_remote_write_refreshes_cache_from_remote(tmp_path: Path):
    remote = MemoryRemote()
    remote.tables["expenses"] = [EXPENSE_MAPPER.to_storage_row(_expense("other"))]
    cache = make_cache(tmp_path)
    repo = make_repo(tmp_path, EXPENSE_MAPPER, remote=remote, cache=cache)

    repo.add(_expense("e1"))

    cached = cache.get_json(EXPENSE_MAPPER.cache_key)
    assert {r["id"] for r in cached} == {"other", "e1"}
    assert cache.get_json(CHANGE_SENTINEL_KEY)["table"] == "expenses"


def test_writes_publish_change_events(tmp_path: Path):
    bus = ChangeBus()
    seen = []
    bus.subscribe("expenses", lambda ev: seen.append((ev.action, ev.record_id)))
    repo = make_repo(tmp_path, EXPENSE_MAPPER, remote=MemoryRemote(), bus=bus)

    repo.add(_expense("e1"))
    repo.save(_expense("e1", "15"))
    repo.delete("e1")

    assert seen == [(INSERT, "e1"), (UPDATE, "e1"), (DELETE, "e1")]


def test_broken_listener_does_not_abort_write(tmp_path: Path):
    bus = ChangeBus()

    def explode(_event):
        raise ValueError("view crashed")

    bus.subscribe("expenses", explode)
    repo = make_repo(tmp_path, EXPENSE_MAPPER, remote=MemoryRemote(), bus=bus)
    repo.add(_expense("e1"))
    assert len(repo.get_all()) == 1


def test_unsubscribe_stops_delivery():
    bus = ChangeBus()
    seen = []
    unsubscribe = bus.subscribe("*", seen.append)
    unsubscribe()
    bus.publish(ChangeEvent("orders", INSERT, "o1"))
    assert seen == []
