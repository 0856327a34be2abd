"""Shared fixtures for reposcout-semantic tests."""

import hashlib
import re
from pathlib import Path

import pytest

from reposcout_semantic.config.settings import SemanticConfig
from reposcout_semantic.core.embeddings import EmbeddingGenerator
from reposcout_semantic.core.models import Platform, Repository
from reposcout_semantic.core.search import HybridSearchEngine

FAKE_DIMENSION = 384


class HashingEncoder:
    """Deterministic bag-of-words encoder; shared words give similar vectors."""

    dimension = FAKE_DIMENSION

    def __init__(self, model_name: str = "fake-model") -> None:
        self.model_name = model_name
        self.encode_calls = 0
        self.encoded_texts: list[str] = []

    def encode(self, texts: list[str]) -> list[list[float]]:
        self.encode_calls += 1
        self.encoded_texts.extend(texts)
        return [self._encode_one(text) for text in texts]

    def _encode_one(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            if len(word) < 2:
                continue
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        norm = sum(x * x for x in vector) ** 0.5
        return [x / norm for x in vector] if norm else vector


def make_repo(
    full_name: str,
    description: str | None = None,
    language: str | None = None,
    topics: tuple[str, ...] = (),
    platform: Platform = Platform.GITHUB,
) -> Repository:
    return Repository(
        platform=platform,
        full_name=full_name,
        description=description,
        url=f"https://example.com/{full_name}",
        language=language,
        topics=topics,
    )


@pytest.fixture
def repo_factory():
    return make_repo


@pytest.fixture
def sample_repos() -> list[Repository]:
    return [
        make_repo("user/logger", "A logging library for applications", "Rust", ("logging",)),
        make_repo("user/webfw", "A modern web framework", "Python", ("web", "http")),
        make_repo("user/parser", "A JSON parser", "Go", ("json",)),
    ]


@pytest.fixture
def encoder_factory():
    """Factory that records every encoder it builds."""
    built: list[HashingEncoder] = []

    def factory(model_name: str) -> HashingEncoder:
        encoder = HashingEncoder(model_name)
        built.append(encoder)
        return encoder

    factory.built = built
    return factory


@pytest.fixture
def embedder(encoder_factory) -> EmbeddingGenerator:
    return EmbeddingGenerator(model_factory=encoder_factory)


@pytest.fixture
def config(tmp_path: Path) -> SemanticConfig:
    return SemanticConfig(cache_path=str(tmp_path / "semantic"), min_similarity=0.0)


@pytest.fixture
def engine(config: SemanticConfig, embedder: EmbeddingGenerator) -> HybridSearchEngine:
    return HybridSearchEngine(config, embedder)


@pytest.fixture
def fake_sentence_transformer(monkeypatch):
    """Replace the sentence-transformers encoder with the hashing encoder."""
    monkeypatch.setattr(
        "reposcout_semantic.core.embeddings.SentenceTransformerEncoder", HashingEncoder
    )
