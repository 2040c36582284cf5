"""Search data models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from repo_search.search.analyzers import DEFAULT_MAX_TOKEN_LENGTH, DEFAULT_MIN_TOKEN_LENGTH


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Tokenizer and scoring parameters; values are not range-checked."""

    k1: float = 1.5
    b: float = 0.75
    delta: float = 0.5
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH
    max_token_length: int = DEFAULT_MAX_TOKEN_LENGTH

    def to_dict(self) -> dict[str, Any]:
        return {
            "k1": self.k1,
            "b": self.b,
            "delta": self.delta,
            "minTokenLength": self.min_token_length,
            "maxTokenLength": self.max_token_length,
        }


@dataclass(slots=True)
class Posting:
    """Occurrences of one term within one document."""

    frequency: int = 0
    positions: list[int] = field(default_factory=list)

    def record(self, position: int) -> None:
        self.frequency += 1
        self.positions.append(position)


@dataclass(frozen=True, slots=True)
class Document:
    """Canonical record of an indexed document."""

    doc_id: str
    content: str
    tokens: tuple[str, ...]
    length: int
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def language(self) -> str | None:
        value = self.metadata.get("language")
        return value if isinstance(value, str) else None

    @property
    def file_path(self) -> str | None:
        value = self.metadata.get("filePath")
        return value if isinstance(value, str) else None


@dataclass(frozen=True, slots=True)
class TermStats:
    """Per-term statistics exposed to callers."""

    term: str
    document_frequency: int
    idf: float
    document_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "term": self.term,
            "documentFrequency": self.document_frequency,
            "idf": self.idf,
            "documentCount": self.document_count,
        }


@dataclass(frozen=True, slots=True)
class IndexStats:
    """Corpus-wide statistics exposed to callers."""

    total_documents: int
    total_tokens: int
    unique_terms: int
    average_document_length: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalDocuments": self.total_documents,
            "totalTokens": self.total_tokens,
            "uniqueTerms": self.unique_terms,
            "averageDocumentLength": self.average_document_length,
        }
