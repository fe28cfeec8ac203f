from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

ANY_TABLE = "*"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str
    record_id: Optional[str]
    row: Optional[dict] = None


Listener = Callable[[ChangeEvent], None]


class ChangeBus:
    """In-process pub/sub of collection changes, one channel per table."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, table: str, listener: Listener) -> Callable[[], None]:
        self._listeners[table].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[table]:
                self._listeners[table].remove(listener)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        listeners = list(self._listeners.get(event.table, ())) + list(self._listeners.get(ANY_TABLE, ()))
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                # a broken view callback must not abort the write that triggered it
                log.exception("change_listener_failed table=%s action=%s", event.table, event.action)

    def subscribe_inserts(self, table: str, column: str, value: Any, callback: Callable[[dict], None]) -> Callable[[], None]:
        """Realtime contract: deliver inserted rows whose ``column`` equals ``value``."""

        def on_change(event: ChangeEvent) -> None:
            if event.action != INSERT or not event.row:
                return
            if str(event.row.get(column)) == str(value):
                callback(event.row)

        return self.subscribe(table, on_change)
