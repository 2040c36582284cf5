"""Durable snapshot stores keyed by corpus id.

The engine itself only knows how to export and import snapshots; the stores
here persist those snapshots across process restarts:

* ``JsonSnapshotStore`` - one minified JSON file per corpus, written through a
  temporary file and an atomic rename.
* ``SqliteSnapshotStore`` (``sqlite_storage``) - a single database holding one
  row per corpus.

All store operations are coroutines; callers must not mutate an engine while a
load into that same engine is in flight.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
import logging
import os
from pathlib import Path
from typing import Any

import anyio
import orjson

from repo_search.exceptions import SnapshotError, StorageError
from repo_search.observability.metrics import SNAPSHOT_OPERATIONS
from repo_search.observability.tracing import create_span
from repo_search.search.bm25_engine import BM25SearchEngine
from repo_search.search.snapshot import IndexSnapshot


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoredSnapshotInfo:
    """Summary of a persisted snapshot."""

    corpus_id: str
    saved_at: datetime | None
    doc_count: int


def build_envelope(corpus_id: str, snapshot: IndexSnapshot, saved_at: datetime) -> dict[str, Any]:
    return {
        "corpusId": corpus_id,
        "savedAt": saved_at.isoformat(),
        "docCount": len(snapshot.documents),
        "index": snapshot.to_dict(),
    }


def parse_envelope(data: Any) -> IndexSnapshot:
    if not isinstance(data, Mapping) or not isinstance(data.get("index"), Mapping):
        raise SnapshotError("Stored payload has no 'index' object")
    return IndexSnapshot.from_dict(data["index"])


def parse_saved_at(raw: Any) -> datetime | None:
    if not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


class SnapshotStoreBase(ABC):
    """Shared load/save flow; subclasses provide the raw byte transport."""

    backend = "base"

    async def save(self, corpus_id: str, engine: BM25SearchEngine) -> None:
        """Persist ``engine`` under ``corpus_id``, replacing any previous snapshot."""

        snapshot = engine.export()
        saved_at = datetime.now(timezone.utc)
        with create_span("snapshot.save", attributes={"corpus.id": corpus_id, "store.backend": self.backend}):
            try:
                await self._write(corpus_id, snapshot, saved_at)
            except StorageError:
                self._count("save", "error")
                raise
        self._count("save", "ok")
        logger.info("Saved snapshot for %s (%d documents)", corpus_id, len(snapshot.documents))

    async def load_snapshot(self, corpus_id: str) -> IndexSnapshot | None:
        """Return the stored snapshot.

        Raises ``SnapshotError`` when the payload is corrupt and ``StorageError``
        when the backing medium cannot be read.
        """

        with create_span("snapshot.load", attributes={"corpus.id": corpus_id, "store.backend": self.backend}):
            return await self._read(corpus_id)

    async def load(self, corpus_id: str, *, name: str | None = None) -> BM25SearchEngine | None:
        """Rebuild the engine saved under ``corpus_id``.

        Returns ``None`` when nothing is stored or the stored payload cannot
        be imported, so callers can fall back to an empty engine. Read
        failures raise ``StorageError`` instead of masquerading as absence.
        """

        try:
            snapshot = await self.load_snapshot(corpus_id)
        except SnapshotError as exc:
            self._count("load", "corrupt")
            logger.warning("Failed to deserialize snapshot for %s: %s", corpus_id, exc)
            return None
        except StorageError:
            self._count("load", "error")
            raise
        if snapshot is None:
            self._count("load", "missing")
            return None
        engine = BM25SearchEngine.from_snapshot(snapshot, name=name or corpus_id)
        self._count("load", "ok")
        logger.info("Loaded snapshot for %s (%d documents)", corpus_id, len(snapshot.documents))
        return engine

    async def delete(self, corpus_id: str) -> bool:
        deleted = await self._delete(corpus_id)
        self._count("delete", "ok" if deleted else "missing")
        return deleted

    @abstractmethod
    async def list_corpora(self) -> list[StoredSnapshotInfo]: ...

    @abstractmethod
    async def _write(self, corpus_id: str, snapshot: IndexSnapshot, saved_at: datetime) -> None: ...

    @abstractmethod
    async def _read(self, corpus_id: str) -> IndexSnapshot | None: ...

    @abstractmethod
    async def _delete(self, corpus_id: str) -> bool: ...

    def _count(self, operation: str, status: str) -> None:
        SNAPSHOT_OPERATIONS.labels(backend=self.backend, operation=operation, status=status).inc()


class JsonSnapshotStore(SnapshotStoreBase):
    """Persist snapshots as minified JSON files, one per corpus."""

    backend = "json"
    SNAPSHOT_SUFFIX = ".snapshot.json"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def snapshot_path(self, corpus_id: str) -> Path:
        digest = hashlib.sha256(corpus_id.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}{self.SNAPSHOT_SUFFIX}"

    async def _write(self, corpus_id: str, snapshot: IndexSnapshot, saved_at: datetime) -> None:
        path = self.snapshot_path(corpus_id)
        tmp_path = path.with_name(path.name + ".tmp")
        payload = orjson.dumps(build_envelope(corpus_id, snapshot, saved_at))
        try:
            async with await anyio.open_file(tmp_path, "wb") as fp:
                await fp.write(payload)
            await anyio.to_thread.run_sync(os.replace, tmp_path, path)
        except OSError as exc:
            await anyio.to_thread.run_sync(lambda: tmp_path.unlink(missing_ok=True))
            raise StorageError(f"Failed to write snapshot for {corpus_id}: {exc}") from exc

    async def _read(self, corpus_id: str) -> IndexSnapshot | None:
        path = self.snapshot_path(corpus_id)
        try:
            async with await anyio.open_file(path, "rb") as fp:
                payload = await fp.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read snapshot for {corpus_id}: {exc}") from exc
        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as exc:
            raise SnapshotError(f"Snapshot for {corpus_id} is not valid JSON: {exc}") from exc
        return parse_envelope(data)

    async def _delete(self, corpus_id: str) -> bool:
        path = self.snapshot_path(corpus_id)
        try:
            await anyio.to_thread.run_sync(path.unlink)
        except FileNotFoundError:
            return False
        return True

    async def list_corpora(self) -> list[StoredSnapshotInfo]:
        return await anyio.to_thread.run_sync(self._list_corpora_sync)

    def _list_corpora_sync(self) -> list[StoredSnapshotInfo]:
        entries: list[StoredSnapshotInfo] = []
        for path in sorted(self.directory.glob(f"*{self.SNAPSHOT_SUFFIX}")):
            try:
                data = orjson.loads(path.read_bytes())
            except (OSError, orjson.JSONDecodeError) as err:
                logger.debug("Skipping unreadable snapshot %s: %s", path, err)
                continue
            if not isinstance(data, dict) or not isinstance(data.get("corpusId"), str):
                continue
            entries.append(
                StoredSnapshotInfo(
                    corpus_id=data["corpusId"],
                    saved_at=parse_saved_at(data.get("savedAt")),
                    doc_count=int(data.get("docCount") or 0),
                )
            )
        return sorted(entries, key=lambda entry: entry.corpus_id)
