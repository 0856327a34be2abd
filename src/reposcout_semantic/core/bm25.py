"""BM25 keyword scoring for repository records.

Okapi BM25 ranks documents by term frequency and inverse document frequency
with document-length normalization. Statistics are computed once from a
corpus snapshot and are not updated incrementally: when the corpus changes,
build a new scorer.

Example:
    scorer = BM25Scorer.from_records(repos)
    ranked = scorer.score_all(repos, "web framework")
    # Returns: [(repository, score), ...] highest first
"""

import math
import re
from collections import Counter
from collections.abc import Iterable, Sequence

from loguru import logger

from .models import Repository

# Term frequency saturation
K1 = 1.2
# Document length normalization
B = 0.75

_TOKEN_PATTERN = re.compile(r"[^\W_]+")


def tokenize(text: str) -> list[str]:
    """Lowercase alphanumeric runs longer than one character."""
    return [token for token in _TOKEN_PATTERN.findall(text.lower()) if len(token) > 1]


def record_to_keyword_text(repo: Repository) -> str:
    """Searchable text for a repository.

    The short name (after the owner) is repeated to double its weight.
    """
    name = repo.full_name.rsplit("/", 1)[-1]
    parts = [name, name]

    if repo.description:
        parts.append(repo.description)
    if repo.language:
        parts.append(repo.language)
    parts.extend(repo.topics)

    return " ".join(parts)


class BM25Scorer:
    """BM25 scorer over a fixed corpus snapshot."""

    def __init__(self, documents: Iterable[str]) -> None:
        self._doc_frequencies: Counter[str] = Counter()
        total_length = 0
        total_docs = 0

        for document in documents:
            tokens = tokenize(document)
            total_length += len(tokens)
            total_docs += 1
            self._doc_frequencies.update(set(tokens))

        self.total_docs = total_docs
        self.avg_doc_len = (
            total_length / total_docs if total_docs > 0 and total_length > 0 else 1.0
        )

        logger.debug(
            f"Built BM25 statistics for {total_docs} documents "
            f"({len(self._doc_frequencies)} terms, avg length {self.avg_doc_len:.1f})"
        )

    @classmethod
    def from_records(cls, repos: Iterable[Repository]) -> "BM25Scorer":
        return cls(record_to_keyword_text(repo) for repo in repos)

    def doc_frequency(self, term: str) -> int:
        """Number of corpus documents containing ``term``."""
        return self._doc_frequencies.get(term, 0)

    def idf(self, term: str) -> float:
        n = self.doc_frequency(term)
        return math.log((self.total_docs - n + 0.5) / (n + 0.5) + 1.0)

    def score(self, document: str, query: str) -> float:
        """Score one document against a query.

        Query terms missing from the document contribute nothing; an empty
        document or query scores 0.0.
        """
        doc_tokens = tokenize(document)
        query_tokens = tokenize(query)

        if not doc_tokens or not query_tokens:
            return 0.0

        term_freqs = Counter(doc_tokens)
        doc_len = len(doc_tokens)
        length_norm = 1.0 - B + B * doc_len / self.avg_doc_len

        score = 0.0
        for term in query_tokens:
            freq = term_freqs.get(term, 0)
            if freq == 0:
                continue
            score += self.idf(term) * (freq * (K1 + 1.0)) / (freq + K1 * length_norm)

        return score

    def score_record(self, repo: Repository, query: str) -> float:
        return self.score(record_to_keyword_text(repo), query)

    def score_all(
        self, repos: Sequence[Repository], query: str
    ) -> list[tuple[Repository, float]]:
        """Score repositories and sort by score descending (stable on ties)."""
        scored = [(repo, self.score_record(repo, query)) for repo in repos]
        return sorted(scored, key=lambda item: item[1], reverse=True)


def score_keyword_results(
    repos: Sequence[Repository], query: str
) -> list[tuple[Repository, float]]:
    """Rank pre-fetched keyword results with BM25 over those results alone."""
    if not repos:
        return []

    scorer = BM25Scorer.from_records(repos)
    return scorer.score_all(repos, query)
