from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from mdc.domain.models import new_id

log = logging.getLogger("mdc.orders")

PENDING = "pending"
DONE = "done"
FAILED = "failed"


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass(frozen=True)
class Command:
    id: str
    kind: str
    payload: dict
    status: str
    last_error: Optional[str]
    completed_steps: frozenset[str]


class CommandLog:
    """Durable record of multi-step writes, stored next to the local cache.

    Tables are created by ``SqliteLocalCache`` migrations.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def open(self, kind: str, payload: dict, command_id: str | None = None) -> Command:
        cid = command_id or new_id()
        now = _now()
        conn = self._conn()
        try:
            conn.execute(
                """
                INSERT INTO command_log (id, kind, payload, status, last_error, created_at, updated_at)
                VALUES (?, ?, ?, ?, NULL, ?, ?)
                ON CONFLICT(id) DO UPDATE SET status=excluded.status, updated_at=excluded.updated_at
                """,
                (cid, kind, json.dumps(payload, ensure_ascii=False, default=str), PENDING, now, now),
            )
            conn.commit()
        finally:
            conn.close()
        command = self.get(cid)
        assert command is not None
        return command

    def get(self, command_id: str) -> Optional[Command]:
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT id, kind, payload, status, last_error FROM command_log WHERE id=?",
                (command_id,),
            ).fetchone()
            if row is None:
                return None
            steps = conn.execute("SELECT step FROM command_steps WHERE command_id=?", (command_id,)).fetchall()
        finally:
            conn.close()
        return Command(
            id=str(row[0]),
            kind=str(row[1]),
            payload=json.loads(row[2]),
            status=str(row[3]),
            last_error=row[4],
            completed_steps=frozenset(str(s[0]) for s in steps),
        )

    def mark_step(self, command_id: str, step: str) -> None:
        conn = self._conn()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO command_steps (command_id, step, completed_at) VALUES (?, ?, ?)",
                (command_id, step, _now()),
            )
            conn.commit()
        finally:
            conn.close()

    def _set_status(self, command_id: str, status: str, error: Optional[str]) -> None:
        conn = self._conn()
        try:
            conn.execute(
                "UPDATE command_log SET status=?, last_error=?, updated_at=? WHERE id=?",
                (status, error, _now(), command_id),
            )
            conn.commit()
        finally:
            conn.close()

    def finish(self, command_id: str) -> None:
        self._set_status(command_id, DONE, None)

    def fail(self, command_id: str, error: str) -> None:
        self._set_status(command_id, FAILED, error)

    def unfinished(self, kind: str | None = None) -> list[Command]:
        conn = self._conn()
        try:
            sql = "SELECT id FROM command_log WHERE status != ?"
            params: list[Any] = [DONE]
            if kind:
                sql += " AND kind = ?"
                params.append(kind)
            ids = [str(r[0]) for r in conn.execute(sql + " ORDER BY created_at", params).fetchall()]
        finally:
            conn.close()
        return [c for c in (self.get(i) for i in ids) if c is not None]


class CommandUnitOfWork:
    """Runs named steps of one command; a step is skipped once it has been recorded as done.

    Steps must be safe to re-run up to the point where they are recorded,
    so a replay after a partial failure resumes instead of duplicating work.
    """

    def __init__(self, command_log: CommandLog, kind: str, payload: dict, command_id: str | None = None):
        self.command_log = command_log
        self.kind = kind
        self.payload = payload
        self.command_id = command_id
        self.command: Optional[Command] = None

    def __enter__(self) -> "CommandUnitOfWork":
        self.command = self.command_log.open(self.kind, self.payload, self.command_id)
        self.command_id = self.command.id
        return self

    def step(self, name: str, action: Callable[[], Any]) -> None:
        assert self.command is not None
        if name in self.command.completed_steps:
            log.info("command_step_skipped command=%s step=%s", self.command.id, name)
            return
        action()
        self.command_log.mark_step(self.command.id, name)

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self.command is not None
        if exc is not None:
            self.command_log.fail(self.command.id, str(exc))
            log.error("command_failed command=%s kind=%s error=%s", self.command.id, self.kind, exc)
            return None
        self.command_log.finish(self.command.id)
        return None
