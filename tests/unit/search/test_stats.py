"""Unit tests for BM25+ statistics helpers."""

import math

import pytest

from repo_search.search.stats import CorpusStats, bm25_plus, calculate_idf, normalize_score


pytestmark = pytest.mark.unit


class TestCalculateIdf:
    def test_unseen_term_is_zero(self):
        assert calculate_idf(0, 10) == 0.0

    def test_single_document_corpus(self):
        assert calculate_idf(1, 1) == pytest.approx(math.log(4 / 3))

    def test_half_of_corpus(self):
        assert calculate_idf(1, 2) == pytest.approx(math.log(2))

    def test_rarer_terms_weigh_more(self):
        assert calculate_idf(1, 10) > calculate_idf(5, 10) > calculate_idf(10, 10)

    def test_positive_even_when_every_document_matches(self):
        assert calculate_idf(10, 10) > 0


class TestBm25Plus:
    def test_zero_frequency_contributes_nothing(self):
        assert bm25_plus(0, 10, 10.0) == 0.0

    def test_average_length_document(self):
        # lengthNorm == 1: 2.5 / (1.5 + 1) + 0.5
        assert bm25_plus(1, 10, 10.0) == pytest.approx(1.5)

    def test_empty_corpus_average_is_neutral(self):
        assert bm25_plus(1, 10, 0.0) == pytest.approx(bm25_plus(1, 10, 10.0))

    def test_monotonic_in_term_frequency(self):
        assert bm25_plus(3, 10, 10.0) > bm25_plus(2, 10, 10.0) > bm25_plus(1, 10, 10.0)

    def test_shorter_documents_score_higher(self):
        assert bm25_plus(1, 5, 10.0) > bm25_plus(1, 20, 10.0)

    def test_delta_floor_for_very_long_documents(self):
        assert bm25_plus(1, 100_000, 10.0) > 0.5

    def test_b_zero_disables_length_normalization(self):
        assert bm25_plus(1, 100, 10.0, b=0.0) == pytest.approx(bm25_plus(1, 1, 10.0, b=0.0))

    def test_custom_parameters(self):
        expected = (2.2 * 2) / (1.2 * (1 - 0.5 + 0.5 * 2) + 2) + 1.0
        assert bm25_plus(2, 20, 10.0, k1=1.2, b=0.5, delta=1.0) == pytest.approx(expected)


class TestNormalizeScore:
    @pytest.mark.parametrize(
        ("score", "expected"),
        [(7.5, 0.5), (0.0, 0.0), (15.0, 1.0), (30.0, 1.0), (-1.0, 0.0)],
    )
    def test_clamped_to_unit_interval(self, score, expected):
        assert normalize_score(score) == pytest.approx(expected)

    def test_custom_ceiling(self):
        assert normalize_score(5.0, ceiling=10.0) == pytest.approx(0.5)

    def test_non_positive_ceiling(self):
        assert normalize_score(5.0, ceiling=0.0) == 0.0


class TestCorpusStats:
    def test_running_average(self):
        stats = CorpusStats()
        stats.record_added(4)
        stats.record_added(2)

        assert stats.total_documents == 2
        assert stats.total_tokens == 6
        assert stats.average_document_length == pytest.approx(3.0)

        stats.record_removed(4)
        assert stats.average_document_length == pytest.approx(2.0)

        stats.record_removed(2)
        assert stats.total_documents == 0
        assert stats.average_document_length == 0.0

    def test_reset(self):
        stats = CorpusStats()
        stats.record_added(7)
        stats.reset()

        assert (stats.total_documents, stats.total_tokens, stats.average_document_length) == (0, 0, 0.0)
