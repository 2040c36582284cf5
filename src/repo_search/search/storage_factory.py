"""Storage factory for choosing between JSON and SQLite snapshot backends."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from repo_search.search.sqlite_storage import SqliteSnapshotStore
from repo_search.search.storage import JsonSnapshotStore, SnapshotStoreBase


if TYPE_CHECKING:
    from repo_search.config import Settings


def create_snapshot_store(storage_dir: Path | str, *, backend: str = "json") -> SnapshotStoreBase:
    """Return the store for ``backend`` rooted at ``storage_dir``."""
    if backend == "sqlite":
        return SqliteSnapshotStore(Path(storage_dir) / SqliteSnapshotStore.DB_FILENAME)
    if backend == "json":
        return JsonSnapshotStore(storage_dir)
    raise ValueError(f"Unknown storage backend '{backend}'. Available: ['json', 'sqlite']")


def snapshot_store_from_settings(settings: Settings) -> SnapshotStoreBase:
    return create_snapshot_store(settings.storage_dir, backend=settings.storage_backend)
