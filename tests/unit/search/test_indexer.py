"""Unit tests for the inverted index."""

import logging

import pytest

from repo_search.search.analyzers import CodeAnalyzer, NoopStemmer
from repo_search.search.indexer import InvertedIndex, build_term_postings


pytestmark = pytest.mark.unit

CART_JS = "function calculateTotal(items) { return items.length; }"


@pytest.fixture
def index() -> InvertedIndex:
    return InvertedIndex()


def test_build_term_postings_records_positions():
    postings = build_term_postings(["item", "price", "item"])

    assert postings["item"].frequency == 2
    assert postings["item"].positions == [0, 2]
    assert postings["price"].positions == [1]


class TestAddDocument:
    def test_document_and_postings_stored(self, index):
        document = index.add_document("cart.js", CART_JS, {"language": "javascript"})

        assert document is not None
        assert document.tokens == ("calculate", "total", "item", "item", "length")
        assert document.length == 5
        assert "cart.js" in index
        assert len(index) == 1

        posting = index.get_postings("item")["cart.js"]
        assert posting.frequency == 2
        assert posting.positions == [2, 3]
        assert index.get_document_frequency("item") == 1

    def test_document_frequency_counts_documents_not_occurrences(self, index):
        index.add_document("a", "cache cache store")
        index.add_document("b", "cache lookup")

        assert index.get_document_frequency("cache") == 2
        assert index.get_document_frequency("store") == 1
        assert set(index.get_postings("cache")) == {"a", "b"}

    def test_statistics_updated(self, index):
        index.add_document("a", "cache cache store")
        index.add_document("b", "cache lookup")

        assert index.stats.total_documents == 2
        assert index.stats.total_tokens == 5
        assert index.stats.average_document_length == pytest.approx(2.5)

    @pytest.mark.parametrize("content", ["", "the and of", "{ } ( ) ;", "42 7"])
    def test_content_without_terms_is_not_stored(self, index, content):
        assert index.add_document("empty", content) is None
        assert "empty" not in index
        assert index.stats.total_documents == 0

    def test_metadata_is_copied(self, index):
        metadata = {"language": "python"}
        document = index.add_document("a", "cache store", metadata)
        metadata["language"] = "ruby"

        assert document.metadata["language"] == "python"
        assert document.language == "python"

    def test_prose_documents_keep_code_keywords(self, index):
        document = index.add_document("notes.md", "function return", {"isCode": False})

        assert document.tokens == ("function", "return")

    def test_code_is_the_default(self, index):
        assert index.add_document("snippet", "function return") is None

    def test_custom_analyzer(self):
        index = InvertedIndex(CodeAnalyzer(stemmer=NoopStemmer()))
        document = index.add_document("a", "items parsing")

        assert document.tokens == ("items", "parsing")


class TestReplaceDocument:
    def test_re_add_replaces_previous_version(self, index, caplog):
        index.add_document("a", "cache store")
        index.add_document("b", "cache")

        with caplog.at_level(logging.WARNING, logger="repo_search.search.indexer"):
            index.add_document("a", "lookup table lookup")

        assert "Replacing existing document a" in caplog.text
        assert index.get_document("a").tokens == ("lookup", "table", "lookup")
        assert index.get_document_frequency("cache") == 1
        assert "store" not in set(index.terms())
        assert index.stats.total_documents == 2
        assert index.stats.total_tokens == 4
        assert index.check_consistency() == []

    @pytest.mark.parametrize("content", ["", "the and of"])
    def test_re_add_without_terms_keeps_previous_version(self, index, content):
        original = index.add_document("a", "cache store")

        assert index.add_document("a", content) is None
        assert index.get_document("a") is original
        assert index.stats.total_documents == 1
        assert index.stats.total_tokens == 2
        assert index.get_document_frequency("cache") == 1
        assert index.check_consistency() == []


class TestRemoveDocument:
    def test_unknown_document_leaves_statistics_alone(self, index):
        index.add_document("a", "cache store")
        before = (index.stats.total_documents, index.stats.total_tokens, index.stats.average_document_length)

        assert index.remove_document("missing") is False
        assert (index.stats.total_documents, index.stats.total_tokens, index.stats.average_document_length) == before
        assert index.get_document_frequency("cache") == 1

    def test_last_posting_drops_term(self, index):
        index.add_document("a", "cache store")
        index.add_document("b", "cache")

        assert index.remove_document("a") is True
        assert index.get_postings("store") == {}
        assert index.get_document_frequency("store") == 0
        assert index.get_document_frequency("cache") == 1
        assert index.stats.total_tokens == 1
        assert index.check_consistency() == []

    def test_removing_everything_resets_average(self, index):
        index.add_document("a", "cache store")
        index.remove_document("a")

        assert len(index) == 0
        assert index.stats.average_document_length == 0.0


class TestInspection:
    def test_unknown_lookups(self, index):
        assert index.get_document("missing") is None
        assert index.get_postings("missing") == {}
        assert index.get_document_frequency("missing") == 0

    def test_clear(self, index):
        index.add_document("a", CART_JS)
        index.clear()

        assert len(index) == 0
        assert list(index.terms()) == []
        assert index.document_frequency == {}
        assert index.stats.total_tokens == 0

    def test_consistency_of_healthy_index(self, index):
        index.add_document("a", CART_JS)
        index.add_document("b", "cache store cache")

        assert index.check_consistency() == []

    def test_consistency_detects_corruption(self, index):
        index.add_document("a", CART_JS)
        index.document_frequency["item"] = 99
        index.stats.total_tokens += 1

        problems = index.check_consistency()

        assert any("'item'" in problem for problem in problems)
        assert any(problem.startswith("total tokens") for problem in problems)
