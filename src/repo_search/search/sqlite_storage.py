"""SQLite-backed snapshot store.

One row per corpus in a ``WITHOUT ROWID`` table keyed by the corpus id. The
payload column holds the same JSON envelope the file store writes, so the two
backends stay interchangeable. Blocking sqlite calls run in worker threads
and every call opens its own connection.
"""

from __future__ import annotations

from contextlib import closing
from datetime import datetime
import logging
from pathlib import Path
import sqlite3

import anyio
import orjson

from repo_search.exceptions import SnapshotError, StorageError
from repo_search.search.snapshot import IndexSnapshot
from repo_search.search.storage import (
    SnapshotStoreBase,
    StoredSnapshotInfo,
    build_envelope,
    parse_envelope,
    parse_saved_at,
)


logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS snapshots (
        corpus_id TEXT PRIMARY KEY,
        payload BLOB NOT NULL,
        doc_count INTEGER NOT NULL,
        saved_at TEXT NOT NULL
    ) WITHOUT ROWID
"""


def apply_pragmas(conn: sqlite3.Connection, *, busy_timeout_ms: int = 30000, cache_size_kb: int = -16384) -> None:
    """WAL journaling with NORMAL sync; readers never block the writer."""
    conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA cache_size = {cache_size_kb}")


class SqliteSnapshotStore(SnapshotStoreBase):
    """Persist snapshots as rows of a single SQLite database."""

    backend = "sqlite"
    DB_FILENAME = "snapshots.db"

    def __init__(self, db_path: str | Path) -> None:
        path = Path(db_path)
        if path.suffix != ".db":
            path = path / self.DB_FILENAME
        path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = path
        self._schema_ready = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        try:
            apply_pragmas(conn)
            if not self._schema_ready:
                conn.execute(_SCHEMA)
                conn.commit()
                self._schema_ready = True
        except BaseException:
            conn.close()
            raise
        return conn

    async def _write(self, corpus_id: str, snapshot: IndexSnapshot, saved_at: datetime) -> None:
        payload = orjson.dumps(build_envelope(corpus_id, snapshot, saved_at))
        await anyio.to_thread.run_sync(self._write_sync, corpus_id, payload, len(snapshot.documents), saved_at)

    def _write_sync(self, corpus_id: str, payload: bytes, doc_count: int, saved_at: datetime) -> None:
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT OR REPLACE INTO snapshots (corpus_id, payload, doc_count, saved_at) VALUES (?, ?, ?, ?)",
                    (corpus_id, payload, doc_count, saved_at.isoformat()),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to save snapshot for {corpus_id}: {exc}") from exc

    async def _read(self, corpus_id: str) -> IndexSnapshot | None:
        payload = await anyio.to_thread.run_sync(self._read_sync, corpus_id)
        if payload is None:
            return None
        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as exc:
            raise SnapshotError(f"Snapshot for {corpus_id} is not valid JSON: {exc}") from exc
        return parse_envelope(data)

    def _read_sync(self, corpus_id: str) -> bytes | None:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute("SELECT payload FROM snapshots WHERE corpus_id = ?", (corpus_id,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read snapshot for {corpus_id}: {exc}") from exc
        return bytes(row[0]) if row else None

    async def _delete(self, corpus_id: str) -> bool:
        return await anyio.to_thread.run_sync(self._delete_sync, corpus_id)

    def _delete_sync(self, corpus_id: str) -> bool:
        try:
            with closing(self._connect()) as conn, conn:
                cursor = conn.execute("DELETE FROM snapshots WHERE corpus_id = ?", (corpus_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete snapshot for {corpus_id}: {exc}") from exc

    async def list_corpora(self) -> list[StoredSnapshotInfo]:
        return await anyio.to_thread.run_sync(self._list_corpora_sync)

    def _list_corpora_sync(self) -> list[StoredSnapshotInfo]:
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute("SELECT corpus_id, saved_at, doc_count FROM snapshots ORDER BY corpus_id").fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to list snapshots: {exc}") from exc
        return [
            StoredSnapshotInfo(corpus_id=corpus_id, saved_at=parse_saved_at(saved_at), doc_count=int(doc_count))
            for corpus_id, saved_at, doc_count in rows
        ]
