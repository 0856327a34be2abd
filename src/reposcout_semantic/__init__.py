"""RepoScout Semantic - hybrid semantic and keyword search over repositories."""

__version__ = "0.1.0"

from .core.exceptions import (
    ConfigError,
    IndexError,  # noqa: A004
    ModelLoadError,
    NotFoundError,
    RepoScoutError,
    SearchError,
    VectorIndexError,
)

__all__ = [
    "ConfigError",
    "IndexError",
    "ModelLoadError",
    "NotFoundError",
    "RepoScoutError",
    "SearchError",
    "VectorIndexError",
    "__version__",
]
