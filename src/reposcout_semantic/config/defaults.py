"""Default configurations for reposcout-semantic."""

import os
from pathlib import Path

# Embedding models with a known vector dimension
MODEL_DIMENSIONS: dict[str, int] = {
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
}

DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"

# Loaded in place of model names missing from MODEL_DIMENSIONS
FALLBACK_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
FALLBACK_DIMENSION = 384

# Encoder input limit (BERT-style models), approximated in words
DEFAULT_MAX_TOKENS = 512
README_EXCERPT_WORDS = 500

DEFAULT_SEMANTIC_WEIGHT = 0.6
DEFAULT_MIN_SIMILARITY = 0.5
DEFAULT_MAX_RESULTS = 50
DEFAULT_MAX_CACHE_SIZE_MB = 500

# On-disk index layout
INDEX_FILE = "index.faiss"
METADATA_FILE = "metadata.pkl"
MAPPINGS_FILE = "mappings.json"
STATS_FILE = "stats.json"
# Written by the search engine, not the vector index
RECORDS_FILE = "records.json"
INDEX_FORMAT_VERSION = 1


def get_model_dimension(model_name: str) -> int:
    """Vector dimension for a model name (384 for unknown models)."""
    return MODEL_DIMENSIONS.get(model_name, FALLBACK_DIMENSION)


def resolve_model_name(model_name: str) -> str:
    """Model actually loaded for a configured name."""
    return model_name if model_name in MODEL_DIMENSIONS else FALLBACK_MODEL


def get_default_cache_path() -> Path:
    """Get the default semantic index directory (``<user cache>/reposcout/semantic``)."""
    base = os.environ.get("XDG_CACHE_HOME")
    cache_root = Path(base) if base else Path.home() / ".cache"
    return cache_root / "reposcout" / "semantic"
