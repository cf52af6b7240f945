from __future__ import annotations
import json
from datetime import datetime, timezone
from typing import Dict, List

import aiosqlite

from ..domain.errors import StorageError
from ..domain.models import WeightEvent


class SQLiteRepository:
    def __init__(self, path: str) -> None:
        self._path = path

    async def init(self) -> None:
        try:
            async with aiosqlite.connect(self._path) as db:
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS weight_events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ts_utc TEXT NOT NULL,
                        channel_ids TEXT NOT NULL,
                        readings TEXT NOT NULL
                    )
                    """
                )
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS settings (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                await db.execute("CREATE INDEX IF NOT EXISTS idx_weight_events_ts ON weight_events(ts_utc)")
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"Unable to initialise {self._path}: {e}") from e

    async def append_weight_event(self, event: WeightEvent) -> None:
        try:
            async with aiosqlite.connect(self._path) as db:
                await db.execute(
                    "INSERT INTO weight_events(ts_utc,channel_ids,readings) VALUES (?,?,?)",
                    (
                        event.ts_utc.isoformat(),
                        json.dumps(list(event.channel_ids)),
                        json.dumps([float(v) for v in event.readings]),
                    ),
                )
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"Insert weight event failed: {e}") from e

    async def query_recent_events(self, limit: int) -> List[WeightEvent]:
        """Most recent events, newest first."""
        try:
            async with aiosqlite.connect(self._path) as db:
                cur = await db.execute(
                    """
                    SELECT ts_utc,channel_ids,readings
                    FROM weight_events
                    ORDER BY ts_utc DESC, id DESC
                    LIMIT ?
                    """,
                    (max(0, int(limit)),),
                )
                rows = await cur.fetchall()
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"Query weight events failed: {e}") from e

        out: list[WeightEvent] = []
        for ts, ids, readings in rows:
            out.append(
                WeightEvent(
                    ts_utc=datetime.fromisoformat(ts),
                    channel_ids=tuple(json.loads(ids)),
                    readings=tuple(float(v) for v in json.loads(readings)),
                )
            )
        return out

    async def get_all_settings(self) -> Dict[str, str]:
        try:
            async with aiosqlite.connect(self._path) as db:
                cur = await db.execute("SELECT key, value FROM settings")
                rows = await cur.fetchall()
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"Query settings failed: {e}") from e
        return {k: v for k, v in rows}

    async def set_settings_batch(self, updates: Dict[str, str]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            async with aiosqlite.connect(self._path) as db:
                for key, value in updates.items():
                    await db.execute(
                        "INSERT INTO settings(key, value, updated_at) VALUES (?, ?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
                        (key, value, now),
                    )
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"Save settings failed: {e}") from e
