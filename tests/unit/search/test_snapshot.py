"""Unit tests for snapshot validation and serialization."""

import orjson
import pytest

from repo_search.exceptions import RepoSearchError, SnapshotError
from repo_search.search import snapshot as snapshot_codec
from repo_search.search.bm25_engine import BM25SearchEngine
from repo_search.search.snapshot import IndexSnapshot


pytestmark = pytest.mark.unit


@pytest.fixture
def exported(engine) -> dict:
    return engine.export().to_dict()


def test_wire_layout(exported):
    assert set(exported) == {"version", "config", "documents", "invertedIndex", "documentFrequency", "stats"}
    assert exported["version"] == 1
    assert exported["config"] == {"k1": 1.5, "b": 0.75, "delta": 0.5, "minTokenLength": 2, "maxTokenLength": 50}
    assert set(exported["stats"]) == {"totalDocuments", "totalTokens", "averageDocumentLength"}

    document = exported["documents"][0]
    assert set(document) == {"id", "content", "tokens", "length", "metadata"}

    posting = exported["invertedIndex"][0]["postings"][0]
    assert set(posting) == {"docId", "tf", "positions"}


def test_payload_is_compact_json(engine):
    payload = snapshot_codec.dumps(engine.export())

    assert isinstance(payload, bytes)
    assert b"\n" not in payload
    assert orjson.loads(payload)["stats"]["totalDocuments"] == 4


def test_legacy_document_frequency_pairs(exported):
    legacy = dict(exported)
    legacy["documentFrequency"] = [[entry["term"], entry["count"]] for entry in exported["documentFrequency"]]

    snapshot = IndexSnapshot.from_dict(legacy)

    assert [(entry.term, entry.count) for entry in snapshot.document_frequency] == [
        (entry["term"], entry["count"]) for entry in exported["documentFrequency"]
    ]


def test_unknown_keys_ignored(exported):
    exported["generator"] = "some-other-tool"

    assert IndexSnapshot.from_dict(exported).stats.total_documents == 4


@pytest.mark.parametrize("missing", ["documents", "invertedIndex", "documentFrequency", "stats"])
def test_missing_sections_rejected(exported, missing):
    del exported[missing]

    with pytest.raises(SnapshotError):
        IndexSnapshot.from_dict(exported)


@pytest.mark.parametrize(
    "mutate",
    [
        lambda data: data["documents"][0].update(length="long"),
        lambda data: data["invertedIndex"][0]["postings"][0].pop("docId"),
        lambda data: data.update(documentFrequency=[["term", 1, 2]]),
        lambda data: data["stats"].update(totalDocuments=None),
    ],
    ids=["bad-length", "posting-without-doc", "three-item-pair", "null-count"],
)
def test_malformed_values_rejected(exported, mutate):
    mutate(exported)

    with pytest.raises(SnapshotError):
        BM25SearchEngine.from_snapshot(exported)


@pytest.mark.parametrize("payload", [None, [], "snapshot", 3])
def test_non_mapping_rejected(payload):
    with pytest.raises(SnapshotError):
        IndexSnapshot.from_dict(payload)


def test_invalid_json_rejected():
    with pytest.raises(SnapshotError):
        snapshot_codec.loads(b"{not json")


def test_snapshot_error_hierarchy():
    assert issubclass(SnapshotError, RepoSearchError)
    assert issubclass(SnapshotError, ValueError)


def test_stats_restored_verbatim(exported):
    exported["stats"]["totalTokens"] += 10

    engine = BM25SearchEngine.from_snapshot(exported)

    assert engine.get_stats().total_tokens == exported["stats"]["totalTokens"]
    assert any(problem.startswith("total tokens") for problem in engine.check_consistency())


def test_empty_engine_round_trip():
    snapshot = BM25SearchEngine().export()
    restored = BM25SearchEngine.from_snapshot(snapshot_codec.loads(snapshot_codec.dumps(snapshot)))

    assert restored.get_stats().total_documents == 0
    assert restored.search("anything") == []
