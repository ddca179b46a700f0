"""Session history with SQLite persistence."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from uxaudit.core.models import AuditSession
from uxaudit.core.serialization import deserialize_session, serialize_session

if TYPE_CHECKING:
    from collections.abc import Generator


SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    target_path TEXT NOT NULL,
    started_at TIMESTAMP NOT NULL,
    completed_at TIMESTAMP,
    score REAL,
    grade TEXT,
    red_flag_count INTEGER NOT NULL DEFAULT 0,
    cancelled BOOLEAN NOT NULL DEFAULT 0,
    payload TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_target ON sessions(target_path);
"""


@dataclass
class SessionSummary:
    """One row of audit history."""

    id: str
    target_path: Path
    started_at: datetime
    completed_at: datetime | None
    score: float | None
    grade: str | None
    red_flag_count: int
    cancelled: bool


class SessionStore:
    """Stores completed audit sessions as serialized JSON."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def save(self, session: AuditSession) -> str:
        """Insert or replace a session. Returns its id."""
        with self._connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO sessions
                    (id, target_path, started_at, completed_at, score, grade, red_flag_count, cancelled, payload)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    str(session.target_path),
                    session.started_at.isoformat(),
                    session.completed_at.isoformat() if session.completed_at else None,
                    session.score,
                    session.grade,
                    len(session.red_flags),
                    session.cancelled,
                    serialize_session(session),
                ),
            )
        return session.id

    def get(self, session_id: str) -> AuditSession | None:
        """Load a session by id (a unique id prefix also matches)."""
        with self._connection() as conn:
            row = conn.execute("SELECT payload FROM sessions WHERE id = ?", (session_id,)).fetchone()
            if row is None:
                rows = conn.execute(
                    "SELECT payload FROM sessions WHERE id LIKE ? LIMIT 2", (f"{session_id}%",)
                ).fetchall()
                row = rows[0] if len(rows) == 1 else None
        if row is None:
            return None
        return deserialize_session(row["payload"])

    def list_history(self, limit: int = 20, target_path: Path | None = None) -> list[SessionSummary]:
        """Most recent sessions first."""
        query = "SELECT * FROM sessions"
        params: tuple = ()
        if target_path is not None:
            query += " WHERE target_path = ?"
            params = (str(target_path),)
        query += " ORDER BY started_at DESC LIMIT ?"
        params = (*params, limit)

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            SessionSummary(
                id=r["id"],
                target_path=Path(r["target_path"]),
                started_at=datetime.fromisoformat(r["started_at"]),
                completed_at=datetime.fromisoformat(r["completed_at"]) if r["completed_at"] else None,
                score=r["score"],
                grade=r["grade"],
                red_flag_count=r["red_flag_count"],
                cancelled=bool(r["cancelled"]),
            )
            for r in rows
        ]

    def delete(self, session_id: str) -> bool:
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        return cursor.rowcount > 0
