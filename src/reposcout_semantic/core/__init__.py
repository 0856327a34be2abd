"""Core functionality for reposcout-semantic."""

from .exceptions import (
    ConfigError,
    CorruptedIndexError,
    DimensionMismatchError,
    EmbeddingError,
    IndexNotFoundError,
    ModelLoadError,
    ModelNotInitializedError,
    NotFoundError,
    PreprocessingError,
    RepoScoutError,
    SearchError,
    SerializationError,
    VectorIndexError,
)

__all__ = [
    "ConfigError",
    "CorruptedIndexError",
    "DimensionMismatchError",
    "EmbeddingError",
    "IndexNotFoundError",
    "ModelLoadError",
    "ModelNotInitializedError",
    "NotFoundError",
    "PreprocessingError",
    "RepoScoutError",
    "SearchError",
    "SerializationError",
    "VectorIndexError",
]
