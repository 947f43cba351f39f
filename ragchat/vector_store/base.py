"""Shared SQLite metadata helpers for vector stores."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ragchat.config import config
from ragchat.models import Document

logger = config.get_logger(__name__)

_CHUNK_COLUMNS = """
    c.id,
    c.content,
    c.start_char,
    c.end_char,
    c.length,
    c.chunk_id,
    c.vector_id,
    c.namespace,
    c.created_at,
    d.filename
"""


class BaseSQLiteStore:
    """Schema management and row mapping for chunk metadata kept in SQLite."""

    def __init__(self, db_path: Path) -> None:
        """Initialize metadata store and ensure schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and always closes.

        Yields:
            An open SQLite connection.
        """
        conn = sqlite3.connect(str(self.db_path))
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _create_tables(self) -> None:
        """Create document ledger and chunk tables if they don't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    filename TEXT NOT NULL,
                    content_hash TEXT NOT NULL,
                    document_type TEXT NOT NULL,
                    namespace TEXT NOT NULL,
                    chunk_count INTEGER CHECK (chunk_count >= 0),
                    processed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (filename, content_hash)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    document_id INTEGER NOT NULL,
                    chunk_id INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    start_char INTEGER,
                    end_char INTEGER,
                    length INTEGER,
                    vector_id INTEGER UNIQUE,
                    namespace TEXT NOT NULL,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (document_id) REFERENCES documents (id)
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id)",
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_namespace ON chunks(namespace)",
            )
            cursor.execute(
                (
                    "CREATE INDEX IF NOT EXISTS idx_documents_filename_type "
                    "ON documents(filename, document_type)"
                ),
            )

    def is_document_processed(self, filename: str, content_hash: str) -> bool:
        """Check whether a file with this exact content was already indexed.

        Returns:
            True if a ledger row exists for (filename, content_hash).
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM documents WHERE filename = ? AND content_hash = ?",
                (filename, content_hash),
            ).fetchone()
        return row is not None

    def count_chunks(self, namespace: str | None = None) -> int:
        """Count stored chunks, optionally within one namespace.

        Returns:
            Number of chunk rows.
        """
        with self._connect() as conn:
            if namespace is None:
                row = conn.execute("SELECT COUNT(*) FROM chunks").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM chunks WHERE namespace = ?", (namespace,)
                ).fetchone()
        return int(row[0])

    @staticmethod
    def _insert_document(  # noqa: PLR0913,PLR0917
        cursor: sqlite3.Cursor,
        filename: str,
        content_hash: str,
        document_type: str,
        namespace: str,
        chunk_count: int,
    ) -> int:
        """Insert a ledger row for a processed file.

        Raises:
            RuntimeError: If the row id cannot be retrieved.

        Returns:
            Document id from the metadata store.
        """
        cursor.execute(
            """
            INSERT INTO documents (
                filename, content_hash, document_type, namespace, chunk_count
            )
            VALUES (?, ?, ?, ?, ?)
            """,
            (filename, content_hash, document_type, namespace, chunk_count),
        )
        if cursor.lastrowid is None:
            msg = f"Failed to insert document row for '{filename}'"
            raise RuntimeError(msg)
        return int(cursor.lastrowid)

    @staticmethod
    def _insert_chunk_row(
        cursor: sqlite3.Cursor,
        document_id: int,
        chunk: Document,
        namespace: str,
    ) -> int:
        """Persist a chunk row and return the vector id assigned to it.

        Raises:
            RuntimeError: If the chunk row cannot be inserted.

        Returns:
            Vector id (equal to the chunk row id).
        """
        cursor.execute(
            """
            INSERT INTO chunks (
                document_id,
                chunk_id,
                content,
                start_char,
                end_char,
                length,
                namespace
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                document_id,
                chunk.metadata.get("chunk_id", 0),
                chunk.content,
                chunk.metadata.get("start_char", 0),
                chunk.metadata.get("end_char", 0),
                chunk.metadata.get("length", len(chunk.content)),
                namespace,
            ),
        )
        if cursor.lastrowid is None:
            msg = "Failed to insert chunk row"
            raise RuntimeError(msg)

        vector_id = int(cursor.lastrowid)
        cursor.execute(
            "UPDATE chunks SET vector_id = ? WHERE id = ?", (vector_id, vector_id)
        )
        return vector_id

    @staticmethod
    def _build_document_from_row(row: tuple, score: float | None = None) -> Document:
        """Create a Document from a chunk metadata row.

        Returns:
            Document hydrated with metadata and the similarity score.
        """
        (
            chunk_db_id,
            content,
            start_char,
            end_char,
            length,
            chunk_id,
            vector_id,
            namespace,
            created_at,
            filename,
        ) = row

        metadata: dict[str, Any] = {
            "chunk_db_id": chunk_db_id,
            "source": filename,
            "namespace": namespace,
            "chunk_id": chunk_id,
            "start_char": start_char,
            "end_char": end_char,
            "length": length,
            "vector_id": vector_id,
            "created_at": created_at,
        }
        return Document(content=content, metadata=metadata, score=score)

    def _fetch_rows_by_vector_ids(
        self,
        cursor: sqlite3.Cursor,
        vector_ids: list[int],
        namespace: str | None = None,
    ) -> dict[int, tuple]:
        """Fetch chunk rows for the given vector ids, optionally namespace-scoped.

        Returns:
            Mapping of vector id to row; ids outside the namespace are absent.
        """
        if not vector_ids:
            return {}

        placeholders = ", ".join("?" for _ in vector_ids)
        query = f"""
            SELECT {_CHUNK_COLUMNS}
            FROM chunks c
            JOIN documents d ON c.document_id = d.id
            WHERE c.vector_id IN ({placeholders})
        """  # noqa: S608
        params: list[Any] = [int(vid) for vid in vector_ids]
        if namespace is not None:
            query += " AND c.namespace = ?"
            params.append(namespace)

        cursor.execute(query, params)
        return {int(row[6]): row for row in cursor.fetchall()}

    def load_documents(self, namespace: str | None = None) -> list[Document]:
        """Load stored chunks in insertion order, optionally for one namespace.

        Returns:
            Documents without scores.
        """
        query = f"""
            SELECT {_CHUNK_COLUMNS}
            FROM chunks c
            JOIN documents d ON c.document_id = d.id
        """  # noqa: S608
        params: tuple = ()
        if namespace is not None:
            query += " WHERE c.namespace = ?"
            params = (namespace,)
        query += " ORDER BY c.id"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._build_document_from_row(row) for row in rows]

    def prune_unindexed(self, indexed_ids: set[int]) -> list[int]:
        """Forget documents whose vectors are missing from the index.

        A document is dropped from the ledger, together with all of its
        chunk rows, when any of its chunks has no vector in ``indexed_ids``,
        so the next ingestion run indexes it again.

        Returns:
            Vector ids of the removed chunk rows.
        """
        with self._connect() as conn:
            rows = conn.execute("SELECT document_id, vector_id FROM chunks").fetchall()
            stale = sorted({doc_id for doc_id, vid in rows if vid not in indexed_ids})
            if not stale:
                return []

            placeholders = ", ".join("?" for _ in stale)
            removed = [
                int(row[0])
                for row in conn.execute(
                    f"SELECT vector_id FROM chunks WHERE document_id IN ({placeholders})",  # noqa: S608
                    stale,
                ).fetchall()
            ]
            conn.execute(
                f"DELETE FROM chunks WHERE document_id IN ({placeholders})",  # noqa: S608
                stale,
            )
            conn.execute(
                f"DELETE FROM documents WHERE id IN ({placeholders})",  # noqa: S608
                stale,
            )

        logger.warning(
            "Dropped %d documents (%d chunks) with no vectors in the index",
            len(stale),
            len(removed),
        )
        return removed
