"""BM25+ ranking over an in-memory inverted index of code documents."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
import logging
from typing import Any

from repo_search.observability.metrics import INDEX_DOC_COUNT, SEARCH_LATENCY, track_latency
from repo_search.search import snapshot as snapshot_codec
from repo_search.search.analyzers import CodeAnalyzer, Stemmer
from repo_search.search.indexer import InvertedIndex
from repo_search.search.models import Document, EngineConfig, IndexStats, TermStats
from repo_search.search.snapshot import IndexSnapshot
from repo_search.search.stats import bm25_plus, calculate_idf


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchFilters:
    """Metadata constraints applied to candidates before scoring."""

    language: str | None = None
    file_path: str | None = None

    @classmethod
    def coerce(cls, filters: SearchFilters | Mapping[str, Any] | None) -> SearchFilters | None:
        if filters is None or isinstance(filters, SearchFilters):
            return filters
        if not isinstance(filters, Mapping):
            return None
        return cls(
            language=filters.get("language") or None,
            file_path=filters.get("filePath") or filters.get("file_path") or None,
        )

    def matches(self, document: Document) -> bool:
        if self.language and document.language != self.language:
            return False
        if self.file_path:
            path = document.file_path
            if path is None or self.file_path not in path:
                return False
        return True


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A scored document produced by the BM25 engine."""

    doc_id: str
    score: float
    metadata: Mapping[str, Any]
    term_positions: Mapping[str, tuple[int, ...]] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"docId": self.doc_id, "score": self.score, "metadata": dict(self.metadata)}
        if self.term_positions is not None:
            payload["termPositions"] = {term: list(positions) for term, positions in self.term_positions.items()}
        return payload


class BM25SearchEngine:
    """Index, score and query code documents; persist through snapshots."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        name: str = "default",
        stemmer: Stemmer | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.name = name
        self.analyzer = CodeAnalyzer(
            min_token_length=self.config.min_token_length,
            max_token_length=self.config.max_token_length,
            stemmer=stemmer,
        )
        self.index = InvertedIndex(self.analyzer)

    # Indexing -------------------------------------------------------------

    def tokenize(self, text: object, *, is_code: bool = False, preserve_case: bool = False) -> list[str]:
        return self.analyzer.tokenize(text, is_code=is_code, preserve_case=preserve_case)

    def add_document(self, doc_id: str, content: str, metadata: Mapping[str, Any] | None = None) -> Document | None:
        document = self.index.add_document(doc_id, content, metadata)
        self._publish_doc_count()
        return document

    def add_documents(self, documents: Iterable[tuple[str, str, Mapping[str, Any] | None]]) -> int:
        """Index ``(doc_id, content, metadata)`` triples; returns how many were stored."""

        stored = 0
        for doc_id, content, metadata in documents:
            if self.index.add_document(doc_id, content, metadata) is not None:
                stored += 1
        self._publish_doc_count()
        return stored

    def remove_document(self, doc_id: str) -> bool:
        removed = self.index.remove_document(doc_id)
        if removed:
            self._publish_doc_count()
        return removed

    def clear(self) -> None:
        self.index.clear()
        self._publish_doc_count()

    # Scoring --------------------------------------------------------------

    def calculate_idf(self, term: str) -> float:
        return calculate_idf(self.index.get_document_frequency(term), self.index.stats.total_documents)

    def score_document(self, doc_id: str, query_terms: Sequence[str]) -> float:
        """Sum the BM25+ contribution of every query term present in the document."""

        document = self.index.get_document(doc_id)
        if document is None:
            return 0.0

        average_length = self.index.stats.average_document_length
        score = 0.0
        for term in query_terms:
            posting = self.index.get_postings(term).get(doc_id)
            if posting is None:
                continue
            weight = bm25_plus(
                posting.frequency,
                document.length,
                average_length,
                k1=self.config.k1,
                b=self.config.b,
                delta=self.config.delta,
            )
            score += self.calculate_idf(term) * weight
        return score

    # Querying -------------------------------------------------------------

    def search(
        self,
        query: object,
        *,
        limit: int = 10,
        min_score: float = 0.0,
        include_positions: bool = False,
        filters: SearchFilters | Mapping[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Return documents ranked by descending score, ties ordered by doc id."""

        with track_latency(SEARCH_LATENCY, index=self.name):
            query_terms = self.analyzer.tokenize(query, is_code=True)
            if not query_terms or limit <= 0:
                return []

            active_filters = SearchFilters.coerce(filters)
            candidates: dict[str, None] = {}
            for term in query_terms:
                for doc_id in self.index.get_postings(term):
                    candidates.setdefault(doc_id, None)

            results: list[SearchResult] = []
            for doc_id in candidates:
                document = self.index.get_document(doc_id)
                if document is None:
                    continue
                if active_filters is not None and not active_filters.matches(document):
                    continue
                score = self.score_document(doc_id, query_terms)
                if score < min_score:
                    continue
                results.append(
                    SearchResult(
                        doc_id=doc_id,
                        score=score,
                        metadata=document.metadata,
                        term_positions=self._term_positions(doc_id, query_terms) if include_positions else None,
                    )
                )

            results.sort(key=lambda result: (-result.score, result.doc_id))
            logger.debug("Query %r matched %d of %d candidates", query, len(results), len(candidates))
            return results[:limit]

    def _term_positions(self, doc_id: str, query_terms: Sequence[str]) -> dict[str, tuple[int, ...]]:
        positions: dict[str, tuple[int, ...]] = {}
        for term in query_terms:
            posting = self.index.get_postings(term).get(doc_id)
            if posting is not None:
                positions[term] = tuple(posting.positions)
        return positions

    # Inspection -----------------------------------------------------------

    def get_document(self, doc_id: str) -> Document | None:
        return self.index.get_document(doc_id)

    def get_terms(self) -> list[str]:
        return list(self.index.terms())

    def get_term_stats(self, term: str) -> TermStats | None:
        postings = self.index.postings.get(term)
        if postings is None:
            return None
        return TermStats(
            term=term,
            document_frequency=self.index.get_document_frequency(term),
            idf=self.calculate_idf(term),
            document_count=len(postings),
        )

    def get_stats(self) -> IndexStats:
        stats = self.index.stats
        return IndexStats(
            total_documents=stats.total_documents,
            total_tokens=stats.total_tokens,
            unique_terms=len(self.index.postings),
            average_document_length=stats.average_document_length,
        )

    def check_consistency(self) -> list[str]:
        return self.index.check_consistency()

    # Persistence ----------------------------------------------------------

    def export(self) -> IndexSnapshot:
        """Capture the full engine state as an immutable snapshot."""

        return snapshot_codec.capture(self.index, self.config)

    to_snapshot = export

    @classmethod
    def from_snapshot(
        cls,
        snapshot: IndexSnapshot | Mapping[str, Any],
        *,
        name: str = "default",
        stemmer: Stemmer | None = None,
    ) -> BM25SearchEngine:
        """Rebuild an engine from ``export`` output.

        Raises ``SnapshotError`` for malformed input; no partial engine is
        ever returned.
        """

        parsed = snapshot_codec.coerce_snapshot(snapshot)
        engine = cls(parsed.config.to_engine_config(), name=name, stemmer=stemmer)
        engine.index = snapshot_codec.restore(parsed, engine.analyzer)
        engine._publish_doc_count()
        return engine

    import_snapshot = from_snapshot

    def load_snapshot(self, snapshot: IndexSnapshot | Mapping[str, Any]) -> None:
        """Replace this engine's state in place; untouched if the snapshot is malformed."""

        restored = type(self).from_snapshot(snapshot, name=self.name, stemmer=self.analyzer.stemmer)
        self.config = restored.config
        self.analyzer = restored.analyzer
        self.index = restored.index
        self._publish_doc_count()

    def _publish_doc_count(self) -> None:
        INDEX_DOC_COUNT.labels(index=self.name).set(len(self.index))
