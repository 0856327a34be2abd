"""Semantic search configuration."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from ..core.exceptions import ConfigError
from .defaults import (
    DEFAULT_MAX_CACHE_SIZE_MB,
    DEFAULT_MAX_RESULTS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MIN_SIMILARITY,
    DEFAULT_MODEL,
    DEFAULT_SEMANTIC_WEIGHT,
    get_default_cache_path,
)


@dataclass
class SemanticConfig:
    """Configuration for semantic search."""

    enabled: bool = True
    model: str = DEFAULT_MODEL
    # Persist the index after CLI hybrid searches
    auto_build: bool = True
    # Weight of the semantic score in hybrid ranking (0.0-1.0)
    semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT
    min_similarity: float = DEFAULT_MIN_SIMILARITY
    max_results: int = DEFAULT_MAX_RESULTS
    cache_path: str = field(default_factory=lambda: str(get_default_cache_path()))
    max_cache_size_mb: int = DEFAULT_MAX_CACHE_SIZE_MB
    max_tokens: int = DEFAULT_MAX_TOKENS

    @classmethod
    def load(cls, path: Path | None = None) -> SemanticConfig:
        """Load configuration from a YAML file, then apply environment overrides.

        Args:
            path: Path to YAML configuration file (missing file = defaults)

        Returns:
            Validated SemanticConfig instance

        Environment Variables:
            REPOSCOUT_SEMANTIC_MODEL: Override embedding model
            REPOSCOUT_SEMANTIC_CACHE_PATH: Override index directory
            REPOSCOUT_SEMANTIC_WEIGHT: Override semantic weight
        """
        data: dict[str, Any] = {}
        if path is not None and path.exists():
            try:
                with open(path) as f:
                    loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
            if not isinstance(loaded, dict):
                raise ConfigError(f"Expected a mapping in {path}")
            # Accept both a bare mapping and a ``semantic:`` section
            data = loaded.get("semantic", loaded)
            if data is None:
                data = {}
            elif not isinstance(data, dict):
                raise ConfigError(f"Expected a mapping for the semantic section in {path}")

        config = cls.from_dict(data)
        config._apply_env_overrides()
        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SemanticConfig:
        """Create config from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown semantic config keys: {sorted(unknown)}")
        types = {f.name: f.type for f in fields(cls)}
        return cls(
            **{k: _coerce(k, v, types[k]) for k, v in data.items() if k in known}
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def _apply_env_overrides(self) -> None:
        env_model = os.environ.get("REPOSCOUT_SEMANTIC_MODEL")
        if env_model:
            logger.info(f"Using embedding model from environment: {env_model}")
            self.model = env_model

        env_cache = os.environ.get("REPOSCOUT_SEMANTIC_CACHE_PATH")
        if env_cache:
            self.cache_path = env_cache

        env_weight = os.environ.get("REPOSCOUT_SEMANTIC_WEIGHT")
        if env_weight:
            try:
                self.semantic_weight = float(env_weight)
            except ValueError as e:
                raise ConfigError(
                    f"Invalid REPOSCOUT_SEMANTIC_WEIGHT value: {env_weight}"
                ) from e

    def validate(self) -> None:
        """Raise ConfigError for out-of-range values."""
        if not 0.0 <= self.semantic_weight <= 1.0:
            raise ConfigError(
                f"semantic_weight must be within [0, 1], got {self.semantic_weight}"
            )
        if not 0.0 <= self.min_similarity <= 1.0:
            raise ConfigError(
                f"min_similarity must be within [0, 1], got {self.min_similarity}"
            )
        if self.max_results <= 0:
            raise ConfigError(f"max_results must be positive, got {self.max_results}")
        if self.max_tokens <= 0:
            raise ConfigError(f"max_tokens must be positive, got {self.max_tokens}")
        if not self.model:
            raise ConfigError("model must not be empty")

    @property
    def index_path(self) -> Path:
        return Path(self.cache_path).expanduser()


_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def _coerce(name: str, value: Any, type_name: str) -> Any:
    """Convert a raw config value to the field type, raising ConfigError."""
    try:
        if type_name == "bool":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(value)
        if type_name == "int":
            if isinstance(value, bool):
                raise ValueError(value)
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        if type_name == "float":
            if isinstance(value, bool):
                raise ValueError(value)
            return float(value)
        if type_name == "str":
            if isinstance(value, bool) or not isinstance(value, (str, int, float, os.PathLike)):
                raise TypeError(value)
            return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"Invalid value for {name}: {value!r} (expected {type_name})",
            {"key": name},
        ) from e
    return value
