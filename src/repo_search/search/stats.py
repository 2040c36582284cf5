"""Statistical helpers for BM25+ style scoring.

The functions here stay independent of the index so they can be unit tested
in isolation and reused by the engine and by diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(slots=True)
class CorpusStats:
    """Running corpus counters owned by a single index instance."""

    total_documents: int = 0
    total_tokens: int = 0
    average_document_length: float = 0.0

    def record_added(self, length: int) -> None:
        self.total_documents += 1
        self.total_tokens += length
        self._refresh_average()

    def record_removed(self, length: int) -> None:
        self.total_documents -= 1
        self.total_tokens -= length
        self._refresh_average()

    def reset(self) -> None:
        self.total_documents = 0
        self.total_tokens = 0
        self.average_document_length = 0.0

    def _refresh_average(self) -> None:
        if self.total_documents > 0:
            self.average_document_length = self.total_tokens / self.total_documents
        else:
            self.average_document_length = 0.0


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return the smoothed inverse document frequency; 0 for unseen terms."""

    if doc_freq <= 0:
        return 0.0
    return math.log((total_docs - doc_freq + 0.5) / (doc_freq + 0.5) + 1)


def bm25_plus(
    tf: int,
    doc_length: int,
    avg_doc_length: float,
    *,
    k1: float = 1.5,
    b: float = 0.75,
    delta: float = 0.5,
) -> float:
    """Compute the BM25+ term weight without IDF.

    The ``delta`` floor keeps long documents with a single match from
    collapsing to zero. An empty corpus average is treated as a neutral
    length ratio.
    """

    if tf <= 0:
        return 0.0
    length_ratio = doc_length / avg_doc_length if avg_doc_length > 0 else 1.0
    length_norm = 1 - b + b * length_ratio
    return ((k1 + 1) * tf) / (k1 * length_norm + tf) + delta


def normalize_score(score: float, *, ceiling: float = 15.0) -> float:
    """Squash an unbounded BM25 score into ``[0, 1]`` for rank fusion."""

    if ceiling <= 0:
        return 0.0
    return max(0.0, min(score / ceiling, 1.0))
