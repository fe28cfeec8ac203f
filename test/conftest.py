import copy
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class MemoryRemote:
    """In-memory stand-in for the hosted tables."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple] = []

    def _rows(self, table):
        return self.tables.setdefault(table, [])

    def select(self, table, filters=None, order_by=None, descending=True):
        self.calls.append(("select", table, filters))
        rows = [copy.deepcopy(r) for r in self._rows(table)]
        for col, value in (filters or {}).items():
            rows = [r for r in rows if str(r.get(col)) == str(value)]
        return rows

    def insert(self, table, row):
        self.calls.append(("insert", table, row.get("id")))
        self._rows(table).append(copy.deepcopy(row))
        return copy.deepcopy(row)

    def upsert(self, table, row):
        self.calls.append(("upsert", table, row.get("id")))
        rows = [r for r in self._rows(table) if str(r.get("id")) != str(row.get("id"))]
        rows.append(copy.deepcopy(row))
        self.tables[table] = rows
        return copy.deepcopy(row)

    def update(self, table, row_id, fields):
        self.calls.append(("update", table, row_id))
        for r in self._rows(table):
            if str(r.get("id")) == str(row_id):
                r.update(copy.deepcopy(fields))
                return copy.deepcopy(r)
        return {}

    def delete(self, table, row_id):
        self.calls.append(("delete", table, row_id))
        self.tables[table] = [r for r in self._rows(table) if str(r.get("id")) != str(row_id)]


class DownRemote:
    """Every call fails the way an unreachable host does."""

    def __init__(self, exc: Exception | None = None):
        self.exc = exc or ConnectionError("network down")

    def _fail(self, *args, **kwargs):
        raise self.exc

    select = insert = upsert = update = delete = _fail


def make_cache(tmp_path: Path, name: str = "cache.db"):
    from mdc.repositories.local_cache import SqliteLocalCache

    cache = SqliteLocalCache(tmp_path / name)
    cache.init_db()
    return cache


def make_repo(tmp_path: Path, mapper, remote=None, bus=None, cache=None):
    from mdc.repositories.collections import CollectionRepository

    return CollectionRepository(mapper, remote, cache or make_cache(tmp_path), bus)
