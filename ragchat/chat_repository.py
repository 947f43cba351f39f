"""SQLite persistence for chats and their ordered turns."""

from __future__ import annotations

import datetime
import sqlite3
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from .config import config
from .errors import ConversationNotFoundError
from .models import Chat, ConversationTurn, Role

logger = config.get_logger(__name__)

STORED_ROLES = (Role.USER, Role.ASSISTANT)


class ChatRepository:
    """Chats keyed by a stable string id, each owning an insertion-ordered turn list.

    Every write runs in its own ``BEGIN IMMEDIATE`` transaction, so an append
    or a delete is applied completely or not at all.
    """

    def __init__(self, db_path: Path | None = None, timeout: float = 5.0) -> None:
        """Open (and create if needed) the chat database.

        Args:
            db_path: SQLite file. If None, uses config.CHAT_DB_PATH.
            timeout: Seconds to wait for a competing writer's lock.
        """
        self.db_path = Path(db_path if db_path is not None else config.CHAT_DB_PATH)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self.timeout = timeout
        self._create_tables()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path), timeout=self.timeout, isolation_level=None
        )
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._open()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def _create_tables(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chats (
                    id TEXT PRIMARY KEY,
                    title TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chat_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id TEXT NOT NULL REFERENCES chats (id) ON DELETE CASCADE,
                    role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_chat_entries_chat_id "
                "ON chat_entries(chat_id, id)"
            )

    @staticmethod
    def _exists(conn: sqlite3.Connection, chat_id: str) -> bool:
        row = conn.execute("SELECT 1 FROM chats WHERE id = ?", (chat_id,)).fetchone()
        return row is not None

    def exists(self, chat_id: str) -> bool:
        with self._read() as conn:
            return self._exists(conn, chat_id)

    def create_chat(self, title: str = "New chat") -> Chat:
        """Create an empty chat.

        Returns:
            The stored chat header.
        """
        chat = Chat(
            id=uuid.uuid4().hex,
            title=title,
            created_at=datetime.datetime.now(tz=datetime.UTC).isoformat(),
        )
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO chats (id, title, created_at) VALUES (?, ?, ?)",
                (chat.id, chat.title, chat.created_at),
            )
        logger.info("Created chat %s (%s)", chat.id, title)
        return chat

    def get_chat(self, chat_id: str) -> Chat | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT id, title, created_at FROM chats WHERE id = ?", (chat_id,)
            ).fetchone()
        return Chat(*row) if row else None

    def list_chats(self) -> list[Chat]:
        """List all chats, newest first.

        Returns:
            Chat headers ordered by creation time descending.
        """
        with self._read() as conn:
            rows = conn.execute(
                "SELECT id, title, created_at FROM chats "
                "ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [Chat(*row) for row in rows]

    def delete_chat(self, chat_id: str) -> bool:
        """Delete a chat together with all of its turns.

        Returns:
            True if a chat was deleted.
        """
        with self._transaction() as conn:
            conn.execute("DELETE FROM chat_entries WHERE chat_id = ?", (chat_id,))
            deleted = conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,)).rowcount
        logger.info("Deleted chat %s (found=%s)", chat_id, bool(deleted))
        return bool(deleted)

    def append_entries(self, chat_id: str, turns: Sequence[ConversationTurn]) -> None:
        """Append turns in order to a chat.

        Raises:
            ConversationNotFoundError: If the chat does not exist.
            ValueError: If a turn has a role that is not stored.
        """
        for turn in turns:
            if turn.role not in STORED_ROLES:
                msg = f"Cannot store {turn.role.value} turns in chat history"
                raise ValueError(msg)

        with self._transaction() as conn:
            if not self._exists(conn, chat_id):
                raise ConversationNotFoundError(chat_id)
            conn.executemany(
                """
                INSERT INTO chat_entries (chat_id, role, content, created_at)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (chat_id, turn.role.value, turn.content, turn.created_at)
                    for turn in turns
                ],
            )

    def fetch_recent_entries(self, chat_id: str, limit: int) -> list[ConversationTurn]:
        """Fetch the newest ``limit`` turns of a chat in chronological order.

        Raises:
            ConversationNotFoundError: If the chat does not exist.

        Returns:
            At most ``limit`` turns, oldest first.
        """
        with self._read() as conn:
            if not self._exists(conn, chat_id):
                raise ConversationNotFoundError(chat_id)
            rows = conn.execute(
                """
                SELECT role, content, created_at FROM (
                    SELECT id, role, content, created_at
                    FROM chat_entries
                    WHERE chat_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                )
                ORDER BY id ASC
                """,
                (chat_id, max(0, limit)),
            ).fetchall()
        return [
            ConversationTurn(role=Role.from_value(role), content=content, created_at=ts)
            for role, content, ts in rows
        ]

    def count_entries(self, chat_id: str) -> int:
        with self._read() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM chat_entries WHERE chat_id = ?", (chat_id,)
            ).fetchone()
        return int(row[0])

    def clear_entries(self, chat_id: str) -> int:
        """Remove every turn of a chat in one transaction.

        Raises:
            ConversationNotFoundError: If the chat does not exist.

        Returns:
            Number of turns removed.
        """
        with self._transaction() as conn:
            if not self._exists(conn, chat_id):
                raise ConversationNotFoundError(chat_id)
            return conn.execute(
                "DELETE FROM chat_entries WHERE chat_id = ?", (chat_id,)
            ).rowcount
