"""SQLiteStateStore: one row per state using stdlib sqlite3."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..core.serializer import export_state, import_state
from ..core.store import StateStore
from ..types import ReasoningState, StoredStateInfo, now_ms

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS states (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    updated_at INTEGER NOT NULL,
    saved_at INTEGER NOT NULL,
    total_turns INTEGER NOT NULL DEFAULT 0,
    document TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_states_saved_at ON states(saved_at);
"""


def _row_to_info(row: sqlite3.Row) -> StoredStateInfo:
    return StoredStateInfo(
        id=row["id"],
        title=row["title"],
        updated_at=row["updated_at"],
        saved_at=row["saved_at"],
        total_turns=row["total_turns"],
    )


class SQLiteStateStore(StateStore):
    """SQLite-backed state storage. The document column holds the exported JSON."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def save_state(self, state: ReasoningState) -> str:
        conn = self._get_conn()
        # REPLACE deletes then inserts, so rowid also tracks save order
        conn.execute(
            """INSERT OR REPLACE INTO states
               (id, title, updated_at, saved_at, total_turns, document)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                state.id,
                state.meta.title,
                state.meta.updated_at,
                now_ms(),
                state.meta.total_turns,
                export_state(state),
            ),
        )
        conn.commit()
        return state.id

    def load_state(self, state_id: str) -> ReasoningState | None:
        row = self._get_conn().execute(
            "SELECT document FROM states WHERE id = ?", (state_id,),
        ).fetchone()
        if row is None:
            return None
        return import_state(row["document"])

    def list_states(self) -> list[StoredStateInfo]:
        rows = self._get_conn().execute(
            "SELECT id, title, updated_at, saved_at, total_turns FROM states "
            "ORDER BY saved_at DESC, rowid DESC"
        ).fetchall()
        return [_row_to_info(r) for r in rows]

    def delete_state(self, state_id: str) -> bool:
        conn = self._get_conn()
        cursor = conn.execute("DELETE FROM states WHERE id = ?", (state_id,))
        conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
