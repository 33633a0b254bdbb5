"""SQLite storage for conversation turns."""

import sqlite3
from pathlib import Path

from ..prompt import Message, Role


class SQLiteChatMemory:
    """Persistent ChatMemory using SQLite.

    Turns are stored in insertion order per conversation; only user,
    assistant and system text is kept (media and tool traffic are dropped).
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the turns table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS turns (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id  TEXT NOT NULL,
                role             TEXT NOT NULL,
                content          TEXT NOT NULL,
                created_at       TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_turns_conversation ON turns(conversation_id, id)"
        )
        conn.commit()

    def add(self, conversation_id: str, messages: list[Message]) -> None:
        """Append messages to a conversation."""
        rows = [
            (conversation_id, m.role.value, m.content)
            for m in messages
            if m.role in (Role.USER, Role.ASSISTANT, Role.SYSTEM)
        ]
        if not rows:
            return
        conn = self._get_connection()
        conn.executemany(
            "INSERT INTO turns (conversation_id, role, content) VALUES (?, ?, ?)",
            rows,
        )
        conn.commit()

    def get(self, conversation_id: str, last_n: int) -> list[Message]:
        """Return up to ``last_n`` most recent messages, oldest first."""
        if last_n <= 0:
            return []
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT role, content FROM turns
            WHERE conversation_id = ?
            ORDER BY id DESC
            LIMIT ?
            """,
            (conversation_id, last_n),
        )
        rows = cursor.fetchall()
        return [Message(Role(row["role"]), row["content"]) for row in reversed(rows)]

    def count(self, conversation_id: str) -> int:
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT COUNT(*) FROM turns WHERE conversation_id = ?", (conversation_id,)
        )
        return cursor.fetchone()[0]

    def clear(self, conversation_id: str) -> None:
        """Delete all turns of a conversation."""
        conn = self._get_connection()
        conn.execute("DELETE FROM turns WHERE conversation_id = ?", (conversation_id,))
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
