"""Unit tests for snapshot store selection."""

import pytest

from repo_search.config import Settings
from repo_search.search.sqlite_storage import SqliteSnapshotStore
from repo_search.search.storage import JsonSnapshotStore
from repo_search.search.storage_factory import create_snapshot_store, snapshot_store_from_settings


pytestmark = pytest.mark.unit


def test_json_backend_is_default(tmp_path):
    store = create_snapshot_store(tmp_path)

    assert isinstance(store, JsonSnapshotStore)
    assert store.directory == tmp_path


def test_sqlite_backend(tmp_path):
    store = create_snapshot_store(tmp_path, backend="sqlite")

    assert isinstance(store, SqliteSnapshotStore)
    assert store.db_path == tmp_path / "snapshots.db"


def test_unknown_backend(tmp_path):
    with pytest.raises(ValueError, match="Unknown storage backend"):
        create_snapshot_store(tmp_path, backend="redis")


def test_store_from_settings(tmp_path):
    settings = Settings(storage_dir=tmp_path, storage_backend="sqlite")

    store = snapshot_store_from_settings(settings)

    assert isinstance(store, SqliteSnapshotStore)
    assert store.db_path.parent == tmp_path
