from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiosqlite


@dataclass(frozen=True)
class AuditEvent:
    ts: float
    chat_id: int
    user_id: Optional[int]
    command: str
    group_id: Optional[int | str]
    message: str
    ok: bool
    detail: str
    latency_ms: int


_CREATE_SQL = """
CREATE TABLE IF NOT EXISTS relay_activity (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ts REAL NOT NULL,
    chat_id INTEGER NOT NULL,
    user_id INTEGER NULL,
    command TEXT NOT NULL,
    group_id INTEGER NULL,
    message TEXT NOT NULL,
    ok INTEGER NOT NULL,
    detail TEXT NOT NULL,
    latency_ms INTEGER NOT NULL
)
"""


class AuditStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _ensure_dir(self) -> None:
        parent = Path(self._db_path).parent
        if str(parent) not in (".", ""):
            parent.mkdir(parents=True, exist_ok=True)

    async def init(self) -> None:
        self._ensure_dir()
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(_CREATE_SQL)
            await db.commit()

    async def write(self, event: AuditEvent) -> None:
        self._ensure_dir()
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                """
                INSERT INTO relay_activity
                    (ts, chat_id, user_id, command, group_id, message, ok, detail, latency_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.ts,
                    event.chat_id,
                    event.user_id,
                    event.command,
                    event.group_id,
                    event.message,
                    1 if event.ok else 0,
                    event.detail,
                    event.latency_ms,
                ),
            )
            await db.commit()

    async def recent(self, limit: int = 20) -> list[AuditEvent]:
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                """
                SELECT ts, chat_id, user_id, command, group_id, message, ok, detail, latency_ms
                FROM relay_activity ORDER BY id DESC LIMIT ?
                """,
                (limit,),
            )
            rows = await cursor.fetchall()
        return [
            AuditEvent(
                ts=row[0],
                chat_id=row[1],
                user_id=row[2],
                command=row[3],
                group_id=row[4],
                message=row[5],
                ok=bool(row[6]),
                detail=row[7],
                latency_ms=row[8],
            )
            for row in rows
        ]


def make_event(
    *,
    chat_id: int,
    user_id: Optional[int],
    command: str,
    ok: bool,
    start_ts: float,
    group_id: Optional[int | str] = None,
    message: str = "",
    detail: str = "",
) -> AuditEvent:
    now = time.time()
    return AuditEvent(
        ts=now,
        chat_id=chat_id,
        user_id=user_id,
        command=command,
        group_id=group_id,
        message=message[:4000],
        ok=ok,
        detail=detail[:500],
        latency_ms=int((now - start_ts) * 1000),
    )
