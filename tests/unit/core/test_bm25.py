"""Tests for BM25 keyword scoring."""

import math

import pytest

from reposcout_semantic.core.bm25 import (
    BM25Scorer,
    record_to_keyword_text,
    score_keyword_results,
    tokenize,
)


def test_tokenize_lowercases_and_drops_short_tokens():
    assert tokenize("Hello, World! a_b x 42") == ["hello", "world", "42"]


def test_record_to_keyword_text_repeats_short_name(repo_factory):
    repo = repo_factory("user/webfw", "A modern web framework", "Python", ("web", "http"))
    assert record_to_keyword_text(repo) == (
        "webfw webfw A modern web framework Python web http"
    )


class TestBM25Scorer:
    @pytest.fixture
    def corpus(self):
        return [
            "webframework webframework fast web framework",
            "logger logger structured logging",
            "parser parser json parsing",
        ]

    def test_ranks_matching_document_first(self, corpus):
        scorer = BM25Scorer(corpus)
        scores = [scorer.score(doc, "web framework") for doc in corpus]
        assert scores[0] > 0
        assert scores[0] > scores[1]
        assert scores[0] > scores[2]

    def test_empty_query_scores_zero(self, corpus):
        scorer = BM25Scorer(corpus)
        assert scorer.score(corpus[0], "") == 0.0

    def test_empty_document_scores_zero(self, corpus):
        scorer = BM25Scorer(corpus)
        assert scorer.score("", "web") == 0.0

    def test_missing_terms_contribute_nothing(self, corpus):
        scorer = BM25Scorer(corpus)
        assert scorer.score(corpus[1], "database") == 0.0

    def test_idf_formula(self, corpus):
        scorer = BM25Scorer(corpus)
        assert scorer.doc_frequency("web") == 1
        assert scorer.idf("web") == pytest.approx(math.log((3 - 1 + 0.5) / 1.5 + 1))

    def test_empty_corpus(self):
        scorer = BM25Scorer([])
        assert scorer.total_docs == 0
        assert scorer.avg_doc_len == 1.0

    def test_score_all_sorted_and_stable(self, sample_repos, repo_factory):
        twin = repo_factory("other/parser", "A JSON parser", "Go", ("json",))
        repos = [sample_repos[2], sample_repos[0], twin]
        scorer = BM25Scorer.from_records(repos)

        ranked = scorer.score_all(repos, "json parser")

        assert [repo.full_name for repo, _ in ranked] == [
            "user/parser",
            "other/parser",
            "user/logger",
        ]
        assert ranked[0][1] == ranked[1][1]
        assert ranked[2][1] == 0.0


def test_score_keyword_results(sample_repos):
    ranked = score_keyword_results(sample_repos, "web framework")
    assert ranked[0][0].full_name == "user/webfw"
    assert ranked[0][1] > 0


def test_score_keyword_results_empty():
    assert score_keyword_results([], "anything") == []
