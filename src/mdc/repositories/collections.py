from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Generic, Optional, TypeVar

from mdc.domain.errors import AppError, NotFoundError, RemoteStoreError
from mdc.domain.normalize import pick
from mdc.repositories.contracts import LocalCache, RemoteStore
from mdc.repositories.local_cache import CHANGE_SENTINEL_KEY
from mdc.repositories.mappers import EntityMapper, camel
from mdc.services.events import DELETE, INSERT, UPDATE, ChangeBus, ChangeEvent

log = logging.getLogger("mdc.sync")

T = TypeVar("T")

Rows = list[dict]


class CollectionRepository(Generic[T]):
    """Remote-first access to one entity collection with a full-collection local fallback.

    Reads try the remote store and fall back to the cached collection on any
    failure. Writes try the remote store; on success the cache is rewritten
    from a fresh remote snapshot, on failure the change is applied to the
    cached collection only. The remote copy is authoritative whenever it is
    reachable; no reconciliation of diverged copies is attempted.
    """

    def __init__(
        self,
        mapper: EntityMapper[T],
        remote: Optional[RemoteStore],
        cache: LocalCache,
        bus: Optional[ChangeBus] = None,
    ):
        self.mapper = mapper
        self.remote = remote
        self.cache = cache
        self.bus = bus

    @property
    def table(self) -> str:
        return self.mapper.table

    def _require_remote(self) -> RemoteStore:
        if self.remote is None:
            raise RemoteStoreError("Remote store is not configured.")
        return self.remote

    def _remote_rows(self, filters: Optional[dict[str, Any]] = None) -> Rows:
        rows = self._require_remote().select(self.table, filters=filters, order_by=self.mapper.timestamp_column)
        return [r for r in rows if isinstance(r, dict)]

    def _local_rows(self) -> Rows:
        rows = self.cache.get_json(self.mapper.cache_key, [])
        if not isinstance(rows, list):
            return []
        return [r for r in rows if isinstance(r, dict)]

    def _write_local(self, rows: Rows) -> None:
        self.cache.set_json(self.mapper.cache_key, rows)
        self.cache.set_json(CHANGE_SENTINEL_KEY, {"table": self.table, "at": datetime.now().isoformat()})

    def _fallback(self, op: str, exc: Exception) -> None:
        code = exc.code if isinstance(exc, AppError) else type(exc).__name__
        log.warning("cache_fallback table=%s op=%s code=%s error=%s", self.table, op, code, exc)

    def _sync_local(self, apply: Callable[[Rows], Rows]) -> None:
        try:
            rows = self._remote_rows()
        except Exception as e:
            self._fallback("refresh", e)
            rows = apply(self._local_rows())
        self._write_local(rows)

    def _publish(self, action: str, record_id: Optional[str], row: Optional[dict]) -> None:
        if self.bus is not None:
            self.bus.publish(ChangeEvent(self.table, action, record_id, row))

    # -------- reads --------

    def get_all(self) -> list[T]:
        try:
            rows = self._remote_rows()
        except Exception as e:
            self._fallback("get_all", e)
            rows = self._local_rows()
        else:
            self._write_local(rows)
        return [self.mapper.from_storage_row(r) for r in rows]

    def find(self, column: str, value: Any) -> list[T]:
        try:
            rows = self._remote_rows({column: value})
        except Exception as e:
            self._fallback("find", e)
            rows = [r for r in self._local_rows() if str(pick(r, column, camel(column))) == str(value)]
        return [self.mapper.from_storage_row(r) for r in rows]

    def get(self, record_id: str) -> Optional[T]:
        found = self.find("id", record_id)
        return found[0] if found else None

    # -------- writes --------

    @staticmethod
    def _upsert_row(row: dict) -> Callable[[Rows], Rows]:
        def apply(rows: Rows) -> Rows:
            rid = str(row.get("id"))
            kept = [r for r in rows if str(r.get("id")) != rid]
            return [row] + kept

        return apply

    def add(self, record: T) -> T:
        row = self.mapper.to_storage_row(record)
        try:
            stored = self._require_remote().insert(self.table, row)
        except Exception as e:
            self._fallback("insert", e)
            stored = row
            self._write_local(self._upsert_row(stored)(self._local_rows()))
        else:
            self._sync_local(self._upsert_row(stored))
        self._publish(INSERT, self.mapper.record_id(record), stored)
        return self.mapper.from_storage_row(stored)

    def save(self, record: T) -> T:
        row = self.mapper.to_storage_row(record)
        try:
            stored = self._require_remote().upsert(self.table, row)
        except Exception as e:
            self._fallback("upsert", e)
            stored = row
            self._write_local(self._upsert_row(stored)(self._local_rows()))
        else:
            self._sync_local(self._upsert_row(stored))
        self._publish(UPDATE, self.mapper.record_id(record), stored)
        return self.mapper.from_storage_row(stored)

    def update(self, record_id: str, **changes: Any) -> T:
        current = self.get(record_id)
        if current is None:
            raise NotFoundError(f"{self.table} record not found: {record_id}")
        updated = replace(current, **changes)
        row = self.mapper.to_storage_row(updated)
        fields = {k: v for k, v in row.items() if k != "id"}
        try:
            stored = self._require_remote().update(self.table, record_id, fields)
        except Exception as e:
            self._fallback("update", e)
            stored = row
            self._write_local(self._upsert_row(stored)(self._local_rows()))
        else:
            stored = {**row, **stored}
            self._sync_local(self._upsert_row(stored))
        self._publish(UPDATE, record_id, stored)
        return self.mapper.from_storage_row(stored)

    def delete(self, record_id: str) -> None:
        def apply(rows: Rows) -> Rows:
            return [r for r in rows if str(r.get("id")) != str(record_id)]

        try:
            self._require_remote().delete(self.table, record_id)
        except Exception as e:
            self._fallback("delete", e)
            self._write_local(apply(self._local_rows()))
        else:
            self._sync_local(apply)
        self._publish(DELETE, record_id, None)
