"""Typed exception hierarchy for reposcout-semantic.

Hierarchy
---------
RepoScoutError (base)
├── ModelLoadError            – embedding model could not be loaded
├── ModelNotInitializedError  – low-level encode without a loaded model
├── EmbeddingError            – a single embedding call failed
├── VectorIndexError          – vector index add/remove/create failures
│   ├── IndexNotFoundError    – no index directory on disk
│   ├── CorruptedIndexError   – index artifacts missing or unreadable
│   └── DimensionMismatchError – vector length differs from index dimension
├── SerializationError        – metadata / mapping encode or decode failure
├── NotFoundError             – remove / lookup miss
├── ConfigError               – configuration / validation errors
├── PreprocessingError        – empty canonical text
└── SearchError               – search-time failures

``DimensionMismatchError`` is also a ``SearchError`` so that a wrong-length
query vector can be caught as a search failure.
"""

from typing import Any


class RepoScoutError(Exception):
    """Base exception for reposcout-semantic."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


# ── Embedding layer ─────────────────────────────────────────────────────


class ModelLoadError(RepoScoutError):
    """Embedding model failed to load.

    Fatal until ``initialize()`` is called again explicitly.
    """

    pass


class ModelNotInitializedError(RepoScoutError):
    """Encoder used before its model was loaded."""

    def __init__(self, message: str = "Model not initialized. Call initialize() first.") -> None:
        super().__init__(message)


class EmbeddingError(RepoScoutError):
    """Embedding generation errors."""

    pass


# ── Search layer ────────────────────────────────────────────────────────


class SearchError(RepoScoutError):
    """Search operation failed."""

    pass


# ── Index layer ─────────────────────────────────────────────────────────


class VectorIndexError(RepoScoutError):
    """Vector index operation failed.

    Named ``VectorIndexError`` (not ``IndexError``) to avoid shadowing
    the Python built-in ``IndexError``.
    """

    pass


# Alias so callers can write ``reposcout_semantic.core.exceptions.IndexError``
# without shadowing the built-in in their own module scope.
IndexError = VectorIndexError  # noqa: A001


class IndexNotFoundError(VectorIndexError):
    """No index exists at the given path."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Index not found at {path}", {"path": path})
        self.path = path


class CorruptedIndexError(VectorIndexError):
    """Index is corrupted or invalid."""

    pass


class DimensionMismatchError(VectorIndexError, SearchError):
    """Vector length does not match the index dimension."""

    def __init__(self, expected: int, actual: int, what: str = "Vector") -> None:
        super().__init__(
            f"{what} dimension mismatch: expected {expected}, got {actual}",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


# ── Persistence layer ───────────────────────────────────────────────────


class SerializationError(RepoScoutError):
    """Metadata or mapping could not be encoded/decoded."""

    pass


# ── Lookup / configuration / preprocessing ──────────────────────────────


class NotFoundError(RepoScoutError):
    """Record not found in the index."""

    def __init__(self, record_id: str) -> None:
        super().__init__(
            f"Repository not found in index: {record_id}", {"record_id": record_id}
        )
        self.record_id = record_id


class ConfigError(RepoScoutError):
    """Configuration / validation errors."""

    pass


class PreprocessingError(RepoScoutError):
    """Text preprocessing produced no usable text."""

    pass
