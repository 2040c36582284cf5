"""Serializable snapshots of the full index state.

A snapshot is an inert, frozen value: configuration, documents, the inverted
index, the document frequency table and the corpus counters. Restoring reads
the stored counters verbatim instead of recomputing them, so a snapshot is
trusted to be the output of a previous export. Validation happens up front:
either every field parses and a fresh index is built, or ``SnapshotError`` is
raised before anything is touched.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from repo_search.exceptions import SnapshotError
from repo_search.search.analyzers import DEFAULT_MAX_TOKEN_LENGTH, DEFAULT_MIN_TOKEN_LENGTH, CodeAnalyzer
from repo_search.search.indexer import InvertedIndex
from repo_search.search.models import Document, EngineConfig, Posting


SNAPSHOT_VERSION = 1


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class SnapshotConfig(_SnapshotModel):
    k1: float = 1.5
    b: float = 0.75
    delta: float = 0.5
    min_token_length: int = Field(default=DEFAULT_MIN_TOKEN_LENGTH, alias="minTokenLength")
    max_token_length: int = Field(default=DEFAULT_MAX_TOKEN_LENGTH, alias="maxTokenLength")

    def to_engine_config(self) -> EngineConfig:
        return EngineConfig(
            k1=self.k1,
            b=self.b,
            delta=self.delta,
            min_token_length=self.min_token_length,
            max_token_length=self.max_token_length,
        )


class SnapshotDocument(_SnapshotModel):
    id: str
    content: str
    tokens: tuple[str, ...]
    length: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class SnapshotPosting(_SnapshotModel):
    doc_id: str = Field(alias="docId")
    tf: int
    positions: tuple[int, ...]


class SnapshotTerm(_SnapshotModel):
    term: str
    postings: tuple[SnapshotPosting, ...]


class SnapshotDocumentFrequency(_SnapshotModel):
    term: str
    count: int

    @model_validator(mode="before")
    @classmethod
    def _accept_pairs(cls, value: Any) -> Any:
        # Older exports stored the table as [term, count] pairs.
        if isinstance(value, (list, tuple)):
            if len(value) != 2:
                raise ValueError("document frequency pairs must have exactly two items")
            return {"term": value[0], "count": value[1]}
        return value


class SnapshotStats(_SnapshotModel):
    total_documents: int = Field(alias="totalDocuments")
    total_tokens: int = Field(alias="totalTokens")
    average_document_length: float = Field(alias="averageDocumentLength")


class IndexSnapshot(_SnapshotModel):
    """Complete, self-contained engine state."""

    version: int = SNAPSHOT_VERSION
    config: SnapshotConfig = Field(default_factory=SnapshotConfig)
    documents: tuple[SnapshotDocument, ...]
    inverted_index: tuple[SnapshotTerm, ...] = Field(alias="invertedIndex")
    document_frequency: tuple[SnapshotDocumentFrequency, ...] = Field(alias="documentFrequency")
    stats: SnapshotStats

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> IndexSnapshot:
        if not isinstance(data, Mapping):
            raise SnapshotError(f"Snapshot must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise SnapshotError(f"Malformed snapshot: {exc.error_count()} invalid field(s)") from exc


def dumps(snapshot: IndexSnapshot) -> bytes:
    """Serialize a snapshot to compact JSON bytes."""

    return orjson.dumps(snapshot.to_dict())


def loads(payload: bytes | str) -> IndexSnapshot:
    """Parse JSON bytes produced by ``dumps``."""

    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as exc:
        raise SnapshotError(f"Snapshot payload is not valid JSON: {exc}") from exc
    return IndexSnapshot.from_dict(data)


def coerce_snapshot(snapshot: IndexSnapshot | Mapping[str, Any]) -> IndexSnapshot:
    if isinstance(snapshot, IndexSnapshot):
        return snapshot
    return IndexSnapshot.from_dict(snapshot)


def capture(index: InvertedIndex, config: EngineConfig) -> IndexSnapshot:
    """Freeze the current state of ``index`` into a snapshot."""

    return IndexSnapshot(
        config=SnapshotConfig.model_validate(config.to_dict()),
        documents=tuple(
            SnapshotDocument(
                id=doc_id,
                content=document.content,
                tokens=document.tokens,
                length=document.length,
                metadata=dict(document.metadata),
            )
            for doc_id, document in index.documents.items()
        ),
        inverted_index=tuple(
            SnapshotTerm(
                term=term,
                postings=tuple(
                    SnapshotPosting(doc_id=doc_id, tf=posting.frequency, positions=tuple(posting.positions))
                    for doc_id, posting in term_postings.items()
                ),
            )
            for term, term_postings in index.postings.items()
        ),
        document_frequency=tuple(
            SnapshotDocumentFrequency(term=term, count=count) for term, count in index.document_frequency.items()
        ),
        stats=SnapshotStats(
            total_documents=index.stats.total_documents,
            total_tokens=index.stats.total_tokens,
            average_document_length=index.stats.average_document_length,
        ),
    )


def restore(snapshot: IndexSnapshot, analyzer: CodeAnalyzer) -> InvertedIndex:
    """Build a new index from stored values without recomputing statistics."""

    index = InvertedIndex(analyzer)
    for entry in snapshot.documents:
        index.documents[entry.id] = Document(
            doc_id=entry.id,
            content=entry.content,
            tokens=entry.tokens,
            length=entry.length,
            metadata=dict(entry.metadata),
        )
    for entry in snapshot.inverted_index:
        index.postings[entry.term] = {
            posting.doc_id: Posting(frequency=posting.tf, positions=list(posting.positions))
            for posting in entry.postings
        }
    for entry in snapshot.document_frequency:
        index.document_frequency[entry.term] = entry.count
    index.stats.total_documents = snapshot.stats.total_documents
    index.stats.total_tokens = snapshot.stats.total_tokens
    index.stats.average_document_length = snapshot.stats.average_document_length
    return index
