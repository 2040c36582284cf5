"""Document store and inverted index with incremental statistics.

``InvertedIndex`` owns three structures that must move together:

* ``documents`` - doc id -> ``Document``
* ``postings`` - term -> doc id -> ``Posting``
* ``document_frequency`` - term -> number of documents containing the term

Every posting insert or removal updates the document frequency table and the
corpus counters in the same step, so the invariants hold after each call.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import logging
from typing import Any

from repo_search.search.analyzers import CodeAnalyzer
from repo_search.search.models import Document, Posting
from repo_search.search.stats import CorpusStats


logger = logging.getLogger(__name__)


def build_term_postings(tokens: tuple[str, ...] | list[str]) -> dict[str, Posting]:
    """Return term -> posting (frequency + positions) for one token sequence."""

    term_postings: dict[str, Posting] = {}
    for position, token in enumerate(tokens):
        posting = term_postings.get(token)
        if posting is None:
            posting = term_postings[token] = Posting()
        posting.record(position)
    return term_postings


class InvertedIndex:
    """In-memory inverted index over code documents."""

    def __init__(self, analyzer: CodeAnalyzer | None = None) -> None:
        self.analyzer = analyzer or CodeAnalyzer()
        self.documents: dict[str, Document] = {}
        self.postings: dict[str, dict[str, Posting]] = {}
        self.document_frequency: dict[str, int] = {}
        self.stats = CorpusStats()

    def __len__(self) -> int:
        return len(self.documents)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self.documents

    def add_document(self, doc_id: str, content: str, metadata: Mapping[str, Any] | None = None) -> Document | None:
        """Index ``content`` under ``doc_id``, replacing any previous version.

        Returns the stored document, or ``None`` when the content produced no
        terms; in that case nothing changes, even when ``doc_id`` is already indexed.
        """

        metadata = dict(metadata or {})
        is_code = metadata.get("isCode") is not False
        tokens = tuple(self.analyzer.tokenize(content, is_code=is_code))
        if not tokens:
            logger.debug("Skipping document %s: no indexable terms", doc_id)
            return None

        if doc_id in self.documents:
            logger.warning("Replacing existing document %s; removing previous postings first", doc_id)
            self.remove_document(doc_id)

        document = Document(
            doc_id=doc_id,
            content=content,
            tokens=tokens,
            length=len(tokens),
            metadata=metadata,
        )
        self.documents[doc_id] = document

        for term, posting in build_term_postings(tokens).items():
            term_postings = self.postings.get(term)
            if term_postings is None:
                term_postings = self.postings[term] = {}
            term_postings[doc_id] = posting
            self.document_frequency[term] = self.document_frequency.get(term, 0) + 1

        self.stats.record_added(document.length)
        logger.debug("Indexed document %s (%d tokens)", doc_id, document.length)
        return document

    def remove_document(self, doc_id: str) -> bool:
        """Drop ``doc_id`` from the index; returns ``False`` if it was absent."""

        document = self.documents.get(doc_id)
        if document is None:
            return False

        for term in dict.fromkeys(document.tokens):
            term_postings = self.postings.get(term)
            if term_postings is None:
                continue
            term_postings.pop(doc_id, None)
            remaining = self.document_frequency.get(term, 0) - 1
            if remaining <= 0:
                self.document_frequency.pop(term, None)
                self.postings.pop(term, None)
            else:
                self.document_frequency[term] = remaining

        self.stats.record_removed(document.length)
        del self.documents[doc_id]
        logger.debug("Removed document %s", doc_id)
        return True

    def get_document(self, doc_id: str) -> Document | None:
        return self.documents.get(doc_id)

    def get_postings(self, term: str) -> Mapping[str, Posting]:
        return self.postings.get(term, {})

    def get_document_frequency(self, term: str) -> int:
        return self.document_frequency.get(term, 0)

    def terms(self) -> Iterator[str]:
        return iter(self.postings)

    def clear(self) -> None:
        self.documents.clear()
        self.postings.clear()
        self.document_frequency.clear()
        self.stats.reset()

    def check_consistency(self) -> list[str]:
        """Recompute every structure from the documents and report mismatches.

        Intended for diagnostics after importing an untrusted snapshot; never
        mutates the index.
        """

        problems: list[str] = []
        expected_postings: dict[str, dict[str, Posting]] = {}
        total_tokens = 0
        for doc_id, document in self.documents.items():
            if document.length != len(document.tokens):
                problems.append(f"document {doc_id}: length {document.length} != {len(document.tokens)} tokens")
            total_tokens += len(document.tokens)
            for term, posting in build_term_postings(document.tokens).items():
                expected_postings.setdefault(term, {})[doc_id] = posting

        for term in self.postings.keys() | expected_postings.keys():
            actual = self.postings.get(term)
            expected = expected_postings.get(term)
            if not actual:
                problems.append(f"term {term!r}: missing or empty posting map")
                continue
            if expected is None:
                problems.append(f"term {term!r}: not present in any document")
                continue
            if actual != expected:
                problems.append(f"term {term!r}: postings disagree with document tokens")
            df = self.document_frequency.get(term)
            if df != len(actual):
                problems.append(f"term {term!r}: document frequency {df} != {len(actual)} postings")

        for term in self.document_frequency.keys() - self.postings.keys():
            problems.append(f"term {term!r}: document frequency without postings")

        if self.stats.total_documents != len(self.documents):
            problems.append(f"total documents {self.stats.total_documents} != {len(self.documents)}")
        if self.stats.total_tokens != total_tokens:
            problems.append(f"total tokens {self.stats.total_tokens} != {total_tokens}")
        expected_average = total_tokens / len(self.documents) if self.documents else 0.0
        if abs(self.stats.average_document_length - expected_average) > 1e-9:
            problems.append(
                f"average document length {self.stats.average_document_length} != {expected_average}"
            )
        return problems
