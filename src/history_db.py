"""SQLite storage for users and their scan history."""

import logging
import sqlite3
from contextlib import closing
from pathlib import Path

from src.config import DATABASE_PATH

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT,
    name TEXT,
    picture TEXT
);
CREATE TABLE IF NOT EXISTS history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT,
    original_text TEXT,
    translated_text TEXT,
    image_data TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY(user_id) REFERENCES users(id)
);
"""


class HistoryDB:
    """Manages the users and history tables.

    A connection is opened per call so one instance can serve every Flask
    request thread.
    """

    def __init__(self, db_path: str | Path = DATABASE_PATH) -> None:
        self._db_path = str(db_path)
        with closing(self._connect()) as conn:
            conn.executescript(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def upsert_user(self, user_id: str, email: str | None, name: str | None, picture: str | None) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """INSERT INTO users (id, email, name, picture)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     email = excluded.email,
                     name = excluded.name,
                     picture = excluded.picture""",
                (user_id, email, name, picture),
            )

    def get_user(self, user_id: str) -> dict | None:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def add_history(
        self,
        user_id: str,
        original_text: str,
        translated_text: str | None,
        image_data: str | None,
    ) -> int:
        """Insert a scan summary.

        Returns:
            The inserted row ID.
        """
        with closing(self._connect()) as conn, conn:
            cur = conn.execute(
                "INSERT INTO history (user_id, original_text, translated_text, image_data) VALUES (?, ?, ?, ?)",
                (user_id, original_text, translated_text, image_data),
            )
            record_id = cur.lastrowid
        logger.info(f"Added history record {record_id} for user {user_id}")
        return record_id

    def get_history(self, user_id: str) -> list[dict]:
        """Return a user's history rows, newest first."""
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT * FROM history WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [dict(row) for row in rows]
