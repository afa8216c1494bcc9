"""SQLite metadata store for knowledge chunks."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from maestro.config import config
from maestro.models import KnowledgeChunk

logger = config.get_logger(__name__)


class BaseSQLiteStore:
    """Schema management and row helpers for chunk metadata kept in SQLite."""

    def __init__(self, db_path: Path) -> None:
        """Initialize metadata store and ensure schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _create_tables(self) -> None:
        """Create the chunks table and its lookup indexes if they don't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    vector_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chunk_key TEXT NOT NULL UNIQUE,
                    page INTEGER NOT NULL CHECK(page >= 1),
                    chunk_index INTEGER NOT NULL CHECK(chunk_index >= 1),
                    content TEXT NOT NULL,
                    length INTEGER,
                    source TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_page "
                "ON chunks(page, chunk_index)"
            )
            conn.commit()

    @staticmethod
    def _find_chunk_row(
        cursor: sqlite3.Cursor, key: str
    ) -> tuple[int, str | None] | None:
        """Look up the row stored under a chunk key.

        Returns:
            ``(vector_id, source)`` of the stored row, or None.
        """
        cursor.execute(
            "SELECT vector_id, source FROM chunks WHERE chunk_key = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return int(row[0]), row[1]

    @staticmethod
    def _delete_chunk_row(cursor: sqlite3.Cursor, vector_id: int) -> None:
        cursor.execute("DELETE FROM chunks WHERE vector_id = ?", (vector_id,))

    @staticmethod
    def _insert_chunk_row(cursor: sqlite3.Cursor, chunk: KnowledgeChunk) -> int:
        """Persist a chunk row and return its vector id.

        Raises:
            RuntimeError: If the chunk row cannot be inserted.

        Returns:
            Row id, used as the FAISS vector id.
        """
        cursor.execute(
            """
            INSERT INTO chunks (chunk_key, page, chunk_index, content, length, source)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.key,
                chunk.page,
                chunk.chunk_index,
                chunk.content,
                len(chunk.content),
                chunk.source,
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            msg = f"Failed to insert chunk row {chunk.key}"
            raise RuntimeError(msg)
        return int(row_id)

    @staticmethod
    def _build_chunk_from_row(row: tuple, score: float = 0.0) -> KnowledgeChunk:
        _vector_id, page, chunk_index, content, source = row
        return KnowledgeChunk(
            page=int(page),
            chunk_index=int(chunk_index),
            content=content,
            score=score,
            source=source or "document",
        )

    def _fetch_chunk_by_vector_id(
        self,
        cursor: sqlite3.Cursor,
        vector_id: int,
        score: float = 0.0,
    ) -> KnowledgeChunk | None:
        """Fetch a chunk by FAISS vector id.

        Returns:
            KnowledgeChunk if found; otherwise None.
        """
        cursor.execute(
            """
            SELECT vector_id, page, chunk_index, content, source
            FROM chunks WHERE vector_id = ?
            """,
            (int(vector_id),),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._build_chunk_from_row(row, score)

    def _fetch_chunk_by_key(
        self,
        cursor: sqlite3.Cursor,
        key: str,
    ) -> KnowledgeChunk | None:
        """Fetch a chunk by its ``page-chunk_index`` key.

        Returns:
            KnowledgeChunk if found; otherwise None.
        """
        cursor.execute(
            """
            SELECT vector_id, page, chunk_index, content, source
            FROM chunks WHERE chunk_key = ?
            """,
            (key,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._build_chunk_from_row(row)

    def count_chunks(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM chunks")
            return int(cursor.fetchone()[0])
