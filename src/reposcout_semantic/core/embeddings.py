"""Embedding generation for reposcout-semantic."""

import asyncio
import contextlib
import logging
import os
import sys
import warnings
from collections.abc import Callable, Sequence
from typing import Protocol

import numpy as np

# Suppress verbose transformers/sentence-transformers output at module level
logging.getLogger("transformers").setLevel(logging.ERROR)
logging.getLogger("sentence_transformers").setLevel(logging.ERROR)
logging.getLogger("torch").setLevel(logging.ERROR)
logging.getLogger("huggingface_hub").setLevel(logging.ERROR)

# Suppress tqdm progress bars (used by transformers for model loading)
os.environ.setdefault("TQDM_DISABLE", "1")

warnings.filterwarnings("ignore", message=".*position_ids.*")
warnings.filterwarnings("ignore", category=FutureWarning, module="transformers")

from loguru import logger  # noqa: E402

from ..config.defaults import (  # noqa: E402
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    get_model_dimension,
    resolve_model_name,
)
from .exceptions import (  # noqa: E402
    DimensionMismatchError,
    EmbeddingError,
    ModelLoadError,
    ModelNotInitializedError,
    PreprocessingError,
)
from .models import IndexEntry, Repository  # noqa: E402
from .preprocessing import preprocess_query, preprocess_repository  # noqa: E402


class EncoderModel(Protocol):
    """Capability contract for a text encoder: text in, fixed-length vector out."""

    dimension: int

    def encode(self, texts: list[str]) -> Sequence[Sequence[float]]: ...


ModelFactory = Callable[[str], EncoderModel]


@contextlib.contextmanager
def suppress_stdout_stderr():
    """Context manager to suppress stdout and stderr at OS level.

    Hides model loading output printed directly to file descriptors by
    native code, which bypasses Python's sys.stdout/stderr redirection.
    """
    try:
        stdout_fd = sys.stdout.fileno()
        stderr_fd = sys.stderr.fileno()
    except (AttributeError, OSError, ValueError):
        # Captured streams (pytest, notebooks) have no real descriptor
        yield
        return

    stdout_dup = os.dup(stdout_fd)
    stderr_dup = os.dup(stderr_fd)
    devnull = os.open(os.devnull, os.O_RDWR)

    try:
        os.dup2(devnull, stdout_fd)
        os.dup2(devnull, stderr_fd)
        yield
    finally:
        os.dup2(stdout_dup, stdout_fd)
        os.dup2(stderr_dup, stderr_fd)
        os.close(stdout_dup)
        os.close(stderr_dup)
        os.close(devnull)


def _detect_device() -> str:
    """Detect optimal compute device (MPS > CUDA > CPU).

    Environment Variables:
        REPOSCOUT_DEVICE: Override device selection ("cpu", "cuda", or "mps")
    """
    import torch

    env_device = os.environ.get("REPOSCOUT_DEVICE", "").lower()
    if env_device in ("cpu", "cuda", "mps"):
        logger.info(f"Using device from environment override: {env_device}")
        return env_device

    if torch.backends.mps.is_available() and torch.backends.mps.is_built():
        return "mps"
    if torch.cuda.is_available():
        return "cuda"
    return "cpu"


class SentenceTransformerEncoder:
    """Encoder backed by a sentence-transformers model."""

    def __init__(self, model_name: str) -> None:
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self.device = _detect_device()

        with suppress_stdout_stderr():
            self._model = SentenceTransformer(model_name, device=self.device)

        self.dimension = self._model.get_sentence_embedding_dimension()
        logger.info(
            f"Loaded embedding model: {model_name} on {self.device.upper()} "
            f"with {self.dimension} dimensions"
        )

    def encode(self, texts: list[str]) -> Sequence[Sequence[float]]:
        embeddings = self._model.encode(
            texts,
            convert_to_numpy=True,
            show_progress_bar=False,
            device=self.device,
        )
        return embeddings.tolist()


class EmbeddingGenerator:
    """Lazily-initialized, shareable text embedding provider.

    The vector dimension is fixed at construction from the model name. The
    model itself is loaded on the first ``initialize()`` or embedding call;
    concurrent first callers wait on a lock and only one load runs.

    Example:
        generator = EmbeddingGenerator("BAAI/bge-small-en-v1.5")
        vectors = await generator.embed_batch(["first text", "second text"])
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        model_factory: ModelFactory | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        """Initialize embedding generator.

        Args:
            model_name: Name of the embedding model
            model_factory: Callable building the encoder from a model name
                (default: sentence-transformers)
            max_tokens: Word budget for preprocessed text
        """
        self.model_name = model_name
        self.dimension = get_model_dimension(model_name)
        self.max_tokens = max_tokens
        self._model_factory: ModelFactory = model_factory or SentenceTransformerEncoder
        self._model: EncoderModel | None = None
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._model is not None

    async def initialize(self) -> None:
        """Load the embedding model (idempotent).

        Raises:
            ModelLoadError: If the model cannot be loaded; not retried
        """
        async with self._init_lock:
            if self._model is not None:
                logger.debug("Embedding model already initialized")
                return

            load_name = resolve_model_name(self.model_name)
            if load_name != self.model_name:
                logger.warning(
                    f"Unknown model {self.model_name}, defaulting to {load_name}"
                )

            logger.info(f"Initializing embedding model: {load_name}")
            try:
                model = await asyncio.to_thread(self._model_factory, load_name)
            except Exception as e:
                logger.error(f"Failed to load embedding model {load_name}: {e}")
                raise ModelLoadError(
                    f"Failed to load embedding model: {e}", {"model": load_name}
                ) from e

            if model.dimension != self.dimension:
                raise ModelLoadError(
                    f"Model {load_name} produces {model.dimension}-dimensional "
                    f"vectors, expected {self.dimension}",
                    {"model": load_name},
                )

            self._model = model
            logger.info("Embedding model initialized successfully")

    async def _ensure_initialized(self) -> None:
        if self._model is None:
            await self.initialize()

    def encode_sync(self, texts: list[str]) -> list[list[float]]:
        """Encode texts with the loaded model (runs in the calling thread).

        Raises:
            ModelNotInitializedError: If ``initialize()`` has not completed
            EmbeddingError: If the encoder fails or returns malformed output
        """
        if self._model is None:
            raise ModelNotInitializedError()

        try:
            vectors = [list(map(float, v)) for v in self._model.encode(texts)]
        except Exception as e:
            logger.error(f"Failed to generate embeddings: {e}")
            raise EmbeddingError(f"Failed to generate embeddings: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Encoder returned {len(vectors)} embeddings for {len(texts)} texts"
            )
        for vector in vectors:
            if len(vector) != self.dimension:
                raise EmbeddingError(
                    f"Encoder returned a {len(vector)}-dimensional vector, "
                    f"expected {self.dimension}"
                )
        return vectors

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        vectors = await self.embed_batch([text])
        if not vectors:
            raise EmbeddingError("No embeddings generated")
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, preserving input order."""
        if not texts:
            return []

        await self._ensure_initialized()
        logger.debug(f"Embedding batch of {len(texts)} texts")
        return await asyncio.to_thread(self.encode_sync, list(texts))

    async def embed_repository(
        self, repo: Repository, readme: str | None = None
    ) -> IndexEntry:
        """Generate the index entry for one repository.

        Raises:
            PreprocessingError: If the repository yields no text to embed
        """
        source_text = preprocess_repository(repo, readme, self.max_tokens)
        if not source_text:
            raise PreprocessingError(
                "No text content to embed", {"record_id": repo.id}
            )

        vector = await self.embed_text(source_text)
        return IndexEntry.create(repo.id, vector, source_text)

    async def embed_repositories(
        self, repos: Sequence[tuple[Repository, str | None]]
    ) -> list[IndexEntry]:
        """Generate index entries for many repositories in one batch.

        Repositories whose canonical text is empty are skipped.
        """
        source_texts: list[str] = []
        record_ids: list[str] = []

        for repo, readme in repos:
            source_text = preprocess_repository(repo, readme, self.max_tokens)
            if source_text:
                source_texts.append(source_text)
                record_ids.append(repo.id)
            else:
                logger.debug(f"Skipping {repo.id}: empty canonical text")

        if not source_texts:
            return []

        vectors = await self.embed_batch(source_texts)
        return [
            IndexEntry.create(record_id, vector, source_text)
            for record_id, vector, source_text in zip(
                record_ids, vectors, source_texts, strict=True
            )
        ]

    async def embed_query(self, query: str) -> list[float]:
        """Generate embedding for a search query.

        Raises:
            PreprocessingError: If the query is empty after cleaning
        """
        processed = preprocess_query(query, self.max_tokens)
        if not processed:
            raise PreprocessingError("Empty query after preprocessing")
        return await self.embed_text(processed)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors (0.0 when either is all zeros)."""
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def similarity_to_distance(similarity: float) -> float:
    """Convert cosine similarity to cosine distance."""
    return 1.0 - similarity


def distance_to_similarity(distance: float) -> float:
    """Convert cosine distance to cosine similarity."""
    return 1.0 - distance

