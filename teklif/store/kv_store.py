from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

DB_PATH = os.getenv("TEKLIF_DB_PATH") or "var/teklif.db"
_MEM_ANCHORS: dict[str, sqlite3.Connection] = {}


class KeyValueStore:
    """JSON blobs keyed by name, kept in a single sqlite table.

    ``:memory:`` paths use a shared-cache in-memory database that lives as
    long as the store object.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = str(path or DB_PATH)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._uri = f"file:teklif_mem_{id(self)}?mode=memory&cache=shared" if self.path == ":memory:" else None
        if self._uri:
            _MEM_ANCHORS[self._uri] = sqlite3.connect(self._uri, uri=True)
        self.init_db()

    def _conn(self) -> sqlite3.Connection:
        if self._uri:
            conn = sqlite3.connect(self._uri, uri=True)
        else:
            conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self._conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> Optional[Any]:
        conn = self._conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return json.loads(row["value"])

    def set(self, key: str, value: Any) -> None:
        conn = self._conn()
        try:
            conn.execute(
                """
                INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value, ensure_ascii=False), datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> bool:
        conn = self._conn()
        try:
            cur = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    def close(self) -> None:
        if self._uri:
            anchor = _MEM_ANCHORS.pop(self._uri, None)
            if anchor is not None:
                anchor.close()
