"""Hybrid semantic + keyword search engine for repositories."""

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TypeVar

import orjson
from loguru import logger

from ..config.defaults import RECORDS_FILE
from ..config.settings import SemanticConfig
from .embeddings import EmbeddingGenerator, similarity_to_distance
from .exceptions import CorruptedIndexError, IndexNotFoundError, PreprocessingError
from .locks import ReadWriteLock
from .models import IndexEntry, IndexStats, Repository, SearchResult, hash_text
from .preprocessing import preprocess_repository
from .vector_index import VectorIndex, atomic_write

T = TypeVar("T")

# Semantic candidate pool size relative to the requested hybrid limit
HYBRID_CANDIDATE_FACTOR = 2


async def run_to_completion(func: Callable[..., T], *args: Any) -> T:
    """Run blocking ``func`` in a thread and let it finish even if cancelled.

    The caller's cancellation is delivered only after the thread returns,
    so locks held by the caller are never released mid-write.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        while not task.done():
            try:
                await asyncio.wait({task})
            except asyncio.CancelledError:
                continue
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background operation failed after cancellation: {task.exception()}")
        raise


class HybridSearchEngine:
    """Search engine combining embedding similarity with keyword scores.

    Owns the embedding generator, the vector index and a cache of the
    repository records behind the indexed ids. The index and the cache each
    have their own reader/writer lock and no method holds both at once.

    Example:
        engine = HybridSearchEngine(SemanticConfig.load(config_path))
        await engine.index_repositories([(repo, readme), ...])
        results = await engine.search("logging library", limit=10)
        await engine.save()
    """

    def __init__(
        self, config: SemanticConfig, embedder: EmbeddingGenerator | None = None
    ) -> None:
        """Initialize the engine and load any existing index.

        Args:
            config: Semantic search configuration
            embedder: Embedding generator (default: built from ``config.model``)

        Raises:
            DimensionMismatchError: If the stored index was built for another model
        """
        self.config = config
        self.embedder = embedder or EmbeddingGenerator(
            config.model, max_tokens=config.max_tokens
        )
        self._index = self._load_or_create_index()
        self._index_lock = ReadWriteLock()
        self._cache: dict[str, Repository] = self._load_record_cache()
        self._cache_lock = ReadWriteLock()

    def _load_or_create_index(self) -> VectorIndex:
        index_path = self.config.index_path
        dimension = self.embedder.dimension

        try:
            index = VectorIndex.load(index_path, dimension)
            logger.info(f"Loaded existing semantic index with {len(index)} repositories")
            return index
        except IndexNotFoundError:
            logger.info(f"No semantic index at {index_path}, starting a new one")
        except CorruptedIndexError as e:
            logger.warning(f"Discarding corrupted semantic index at {index_path}: {e}")

        return VectorIndex(dimension, self.embedder.model_name, index_path)

    def _load_record_cache(self) -> dict[str, Repository]:
        records_file = self.config.index_path / RECORDS_FILE
        if self._index.is_empty or not records_file.exists():
            return {}

        try:
            raw = orjson.loads(records_file.read_bytes())
            records = [Repository.from_dict(item) for item in raw]
        except (orjson.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable record cache {records_file}: {e}")
            return {}

        return {repo.id: repo for repo in records if self._index.contains(repo.id)}

    @staticmethod
    def _write_record_cache(path: Path, records: list[dict[str, Any]]) -> None:
        atomic_write(path, orjson.dumps(records))

    async def initialize(self) -> None:
        """Load the embedding model.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        await self.embedder.initialize()

    async def index_repository(self, repo: Repository, readme: str | None = None) -> None:
        """Index a single repository.

        Raises:
            PreprocessingError: If the repository yields no text to embed
        """
        if not preprocess_repository(repo, readme, self.embedder.max_tokens):
            raise PreprocessingError("No text content to embed", {"record_id": repo.id})
        await self.index_repositories([(repo, readme)])

    async def index_repositories(
        self, repos: Sequence[tuple[Repository, str | None]]
    ) -> int:
        """Index many repositories, re-embedding only those whose text changed.

        Repositories with empty canonical text are skipped. Any embedding or
        index error aborts the call.

        Returns:
            Number of repositories accepted into the index
        """
        prepared: dict[str, tuple[Repository, str]] = {}
        for repo, readme in repos:
            source_text = preprocess_repository(repo, readme, self.embedder.max_tokens)
            if not source_text:
                logger.debug(f"Skipping {repo.id}: empty canonical text")
                continue
            prepared[repo.id] = (repo, source_text)

        if not prepared:
            return 0

        async with self._index_lock.read():
            unchanged = {
                record_id
                for record_id, (_, source_text) in prepared.items()
                if (entry := self._index.get_metadata(record_id)) is not None
                and entry.text_hash == hash_text(source_text)
            }

        pending = [
            (record_id, source_text)
            for record_id, (_, source_text) in prepared.items()
            if record_id not in unchanged
        ]
        if unchanged:
            logger.debug(f"Skipping {len(unchanged)} unchanged repositories")

        if pending:
            vectors = await self.embedder.embed_batch([text for _, text in pending])
            entries = [
                IndexEntry.create(record_id, vector, source_text)
                for (record_id, source_text), vector in zip(pending, vectors, strict=True)
            ]
            async with self._index_lock.write():
                self._index.add_batch(entries)
            logger.info(f"Indexed {len(entries)} repositories")

        async with self._cache_lock.write():
            for record_id, (repo, _) in prepared.items():
                self._cache[record_id] = repo

        return len(prepared)

    async def search(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Semantic search over indexed repositories.

        Raises:
            PreprocessingError: If the query is empty after cleaning
            ModelLoadError: If the embedding model cannot be loaded
            SearchError: If the vector search fails
        """
        if limit <= 0:
            return []

        query_vector = await self.embedder.embed_query(query)

        async with self._index_lock.read():
            hits = self._index.search(query_vector, limit)

        hits = [(rid, sim) for rid, sim in hits if sim >= self.config.min_similarity]

        results: list[SearchResult] = []
        async with self._cache_lock.read():
            for record_id, similarity in hits:
                repo = self._cache.get(record_id)
                if repo is None:
                    logger.warning(f"Indexed repository {record_id} missing from record cache")
                    continue
                results.append(
                    SearchResult.semantic_only(
                        repo, similarity, similarity_to_distance(similarity)
                    )
                )

        results.sort(key=lambda r: r.semantic_score, reverse=True)
        results = results[: min(self.config.max_results, limit)]
        logger.debug(f"Semantic search for '{query}' returned {len(results)} results")
        return results

    async def hybrid_search(
        self,
        query: str,
        keyword_results: Sequence[tuple[Repository, float]],
        limit: int = 10,
    ) -> list[SearchResult]:
        """Blend semantic similarity with externally computed keyword scores.

        Keyword scores are normalized by the batch maximum before weighting
        with ``config.semantic_weight``. A repository found by only one side
        scores 0 on the other. Keyword results are indexed first so that
        they can be ranked semantically.
        """
        if keyword_results:
            await self.index_repositories([(repo, None) for repo, _ in keyword_results])

        semantic = await self.search(query, limit * HYBRID_CANDIDATE_FACTOR)

        max_keyword = max((score for _, score in keyword_results), default=0.0)
        keyword_scores: dict[str, float] = {}
        records: dict[str, Repository] = {}
        for repo, score in keyword_results:
            keyword_scores[repo.id] = score / max_keyword if max_keyword > 0 else score
            records[repo.id] = repo

        semantic_scores: dict[str, float] = {}
        for result in semantic:
            semantic_scores[result.record.id] = result.semantic_score
            records.setdefault(result.record.id, result.record)

        weight = self.config.semantic_weight
        combined = [
            SearchResult.hybrid(
                repo,
                semantic_scores.get(record_id, 0.0),
                keyword_scores.get(record_id, 0.0),
                weight,
                similarity_to_distance(semantic_scores.get(record_id, 0.0)),
            )
            for record_id, repo in records.items()
        ]
        combined.sort(key=lambda r: r.hybrid_score, reverse=True)
        return combined[:limit]

    async def save(self) -> None:
        """Persist the index to ``config.index_path``."""
        async with self._index_lock.write():
            await run_to_completion(self._index.save)
            size_bytes = self._index.stats().index_size_bytes

        async with self._cache_lock.read():
            records = [repo.to_dict() for repo in self._cache.values()]
        await run_to_completion(
            self._write_record_cache, self.config.index_path / RECORDS_FILE, records
        )

        limit_bytes = self.config.max_cache_size_mb * 1024 * 1024
        if size_bytes > limit_bytes:
            logger.warning(
                f"Semantic index is {size_bytes / (1024 * 1024):.1f} MB, "
                f"above the configured {self.config.max_cache_size_mb} MB"
            )

    async def clear(self) -> None:
        """Drop all indexed vectors and cached records (in memory only)."""
        async with self._index_lock.write():
            self._index.clear()
        async with self._cache_lock.write():
            self._cache.clear()
        logger.info("Semantic index cleared")

    async def rebuild(self, repos: Sequence[tuple[Repository, str | None]]) -> int:
        """Clear, re-index ``repos`` and save."""
        await self.clear()
        count = await self.index_repositories(repos)
        await self.save()
        return count

    async def is_indexed(self, record_id: str) -> bool:
        async with self._index_lock.read():
            return self._index.contains(record_id)

    async def remove_repository(self, record_id: str) -> None:
        """Remove a repository from the index and the record cache.

        Raises:
            NotFoundError: If the repository is not indexed
        """
        async with self._index_lock.write():
            self._index.remove(record_id)
        async with self._cache_lock.write():
            self._cache.pop(record_id, None)
        logger.debug(f"Removed {record_id} from semantic index")

    async def stats(self) -> IndexStats:
        async with self._index_lock.read():
            return self._index.stats()

    async def indexed_count(self) -> int:
        async with self._index_lock.read():
            return len(self._index)
