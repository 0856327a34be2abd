"""Persistent vector index for repository embeddings.

Vectors live in a faiss ``IndexIDMap2`` over an inner-product flat index.
Vectors are L2-normalized before insertion so the inner product is the
cosine similarity and ``distance = 1 - similarity``.

Each repository gets a sequential internal id; ids are never recycled, so a
removed repository's slot stays retired for the lifetime of the index.

On disk the index is a directory of four files:

- ``index.faiss``   – native faiss structure (vectors)
- ``metadata.pkl``  – ``id -> IndexEntry`` without vectors
- ``mappings.json`` – internal id maps, next id, format version, checksums
- ``stats.json``    – IndexStats

Files are replaced one at a time; there is no commit across files. A crash
mid-save can leave files from two different saves, which ``load`` reports
as a corrupted index: ``mappings.json`` is written after the vector and
metadata files and carries a checksum of each.
"""

import hashlib
import os
import pickle  # nosec B403 - index metadata is local-only, not from untrusted sources
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

import faiss
import numpy as np
import orjson
from loguru import logger

from ..config.defaults import (
    INDEX_FILE,
    INDEX_FORMAT_VERSION,
    MAPPINGS_FILE,
    METADATA_FILE,
    STATS_FILE,
)
from .exceptions import (
    CorruptedIndexError,
    DimensionMismatchError,
    IndexNotFoundError,
    NotFoundError,
    SearchError,
    SerializationError,
    VectorIndexError,
)
from .models import IndexEntry, IndexStats


def _new_faiss_index(dimension: int) -> "faiss.IndexIDMap2":
    return faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))


def _normalized(vector, dimension: int) -> np.ndarray:
    """Return a (1, dimension) float32 row with unit L2 norm."""
    array = np.asarray(vector, dtype=np.float32).reshape(1, -1)
    if array.shape[1] != dimension:
        raise DimensionMismatchError(dimension, array.shape[1])
    array = np.ascontiguousarray(array)
    faiss.normalize_L2(array)
    return array


def atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to a temporary sibling, then rename it over ``path``."""
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


class VectorIndex:
    """Vector index mapping repository ids to embeddings.

    Example:
        index = VectorIndex(384, "BAAI/bge-small-en-v1.5", path)
        index.add(entry)
        index.save()

        # Later
        index = VectorIndex.load(path, 384)
        results = index.search(query_vector, k=10)
        # Returns: [(record_id, similarity), ...]
    """

    def __init__(self, dimension: int, model_name: str, index_path: Path) -> None:
        """Create a new empty vector index.

        Args:
            dimension: Fixed vector dimension
            model_name: Embedding model the vectors come from
            index_path: Directory used by save()
        """
        if dimension <= 0:
            raise VectorIndexError(f"Invalid index dimension: {dimension}")

        try:
            self._index = _new_faiss_index(dimension)
        except Exception as e:
            raise VectorIndexError(f"Failed to create faiss index: {e}") from e

        self._dimension = dimension
        self._id_to_record: dict[int, str] = {}
        self._record_to_id: dict[str, int] = {}
        self._metadata: dict[str, IndexEntry] = {}
        self._next_id = 0
        self._stats = IndexStats(model_name=model_name, dimension=dimension)
        self.index_path = Path(index_path)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._stats.model_name

    @property
    def next_id(self) -> int:
        return self._next_id

    def stats(self) -> IndexStats:
        """Snapshot of the statistics recorded by the last save."""
        return replace(self._stats)

    def __len__(self) -> int:
        return len(self._metadata)

    @property
    def is_empty(self) -> bool:
        return not self._metadata

    def contains(self, record_id: str) -> bool:
        return record_id in self._record_to_id

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._record_to_id

    def ids(self) -> list[str]:
        return list(self._record_to_id)

    def get_metadata(self, record_id: str) -> IndexEntry | None:
        return self._metadata.get(record_id)

    def add(self, entry: IndexEntry) -> None:
        """Add or update a repository embedding.

        An id that is already tracked keeps its internal slot; only the
        vector and metadata are replaced.

        Raises:
            DimensionMismatchError: If the vector length differs from the index
            VectorIndexError: If faiss rejects the vector
        """
        if len(entry.vector) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(entry.vector))

        vector = _normalized(entry.vector, self._dimension)
        existing_id = self._record_to_id.get(entry.id)

        try:
            if existing_id is not None:
                logger.debug(f"Updating existing entry for {entry.id}")
                ids = np.array([existing_id], dtype=np.int64)
                self._index.remove_ids(ids)
                self._index.add_with_ids(vector, ids)
            else:
                internal_id = self._next_id
                self._index.add_with_ids(vector, np.array([internal_id], dtype=np.int64))
                self._id_to_record[internal_id] = entry.id
                self._record_to_id[entry.id] = internal_id
                self._next_id += 1
        except Exception as e:
            raise VectorIndexError(f"Failed to add {entry.id} to index: {e}") from e

        self._metadata[entry.id] = entry

    def add_batch(self, entries: Iterable[IndexEntry]) -> None:
        """Add entries one by one.

        Not atomic: when an entry fails, the entries before it stay applied.
        """
        for entry in entries:
            self.add(entry)

    def remove(self, record_id: str) -> None:
        """Remove a repository from the index.

        Raises:
            NotFoundError: If the repository is not indexed
        """
        internal_id = self._record_to_id.get(record_id)
        if internal_id is None:
            raise NotFoundError(record_id)

        try:
            self._index.remove_ids(np.array([internal_id], dtype=np.int64))
        except Exception as e:
            raise VectorIndexError(f"Failed to remove {record_id}: {e}") from e

        del self._id_to_record[internal_id]
        del self._record_to_id[record_id]
        self._metadata.pop(record_id, None)

    def search(self, query_vector, k: int) -> list[tuple[str, float]]:
        """Find the ``k`` nearest repositories.

        Returns:
            ``(record_id, similarity)`` pairs, highest similarity first

        Raises:
            DimensionMismatchError: If the query length differs from the index
            SearchError: If faiss search fails
        """
        if len(query_vector) != self._dimension:
            raise DimensionMismatchError(
                self._dimension, len(query_vector), what="Query vector"
            )

        if k <= 0 or self._index.ntotal == 0:
            return []

        query = _normalized(query_vector, self._dimension)
        try:
            scores, ids = self._index.search(query, min(k, self._index.ntotal))
        except Exception as e:
            raise SearchError(f"Vector search failed: {e}") from e

        results = []
        for internal_id, score in zip(ids[0], scores[0], strict=True):
            record_id = self._id_to_record.get(int(internal_id))
            if record_id is not None:
                results.append((record_id, float(score)))
        return results

    def save(self) -> None:
        """Persist the index directory and refresh stats.

        Raises:
            SerializationError: If metadata or mappings cannot be encoded
            VectorIndexError: If faiss cannot write its structure
            OSError: Disk errors propagate unchanged
        """
        logger.info(f"Saving semantic index to {self.index_path}")
        self.index_path.mkdir(parents=True, exist_ok=True)

        try:
            index_bytes = faiss.serialize_index(self._index).tobytes()
        except Exception as e:
            raise VectorIndexError(f"Failed to save index: {e}") from e
        atomic_write(self.index_path / INDEX_FILE, index_bytes)

        try:
            metadata_bytes = pickle.dumps(
                {rid: entry.to_dict() for rid, entry in self._metadata.items()},
                protocol=pickle.HIGHEST_PROTOCOL,
            )
        except (pickle.PicklingError, TypeError) as e:
            raise SerializationError(f"Failed to serialize metadata: {e}") from e
        atomic_write(self.index_path / METADATA_FILE, metadata_bytes)

        mappings = {
            "format_version": INDEX_FORMAT_VERSION,
            "id_to_record": {str(k): v for k, v in self._id_to_record.items()},
            "record_to_id": self._record_to_id,
            "next_id": self._next_id,
            "metadata_sha256": hashlib.sha256(metadata_bytes).hexdigest(),
            "index_sha256": hashlib.sha256(index_bytes).hexdigest(),
        }
        try:
            mappings_bytes = orjson.dumps(mappings, option=orjson.OPT_INDENT_2)
        except orjson.JSONEncodeError as e:
            raise SerializationError(f"Failed to serialize mappings: {e}") from e
        atomic_write(self.index_path / MAPPINGS_FILE, mappings_bytes)

        self._stats.update(len(self), self._directory_size())
        atomic_write(
            self.index_path / STATS_FILE,
            orjson.dumps(self._stats.to_dict(), option=orjson.OPT_INDENT_2),
        )

        logger.info(
            f"Semantic index saved: {len(self)} repositories, "
            f"{self._stats.index_size_bytes} bytes"
        )

    @classmethod
    def load(cls, index_path: Path, dimension: int) -> "VectorIndex":
        """Load an index directory written by ``save()``.

        Raises:
            IndexNotFoundError: If the directory does not exist
            CorruptedIndexError: If an artifact is missing, unreadable or inconsistent
            DimensionMismatchError: If the stored vectors have another dimension
        """
        index_path = Path(index_path)
        logger.info(f"Loading semantic index from {index_path}")

        if not index_path.is_dir():
            raise IndexNotFoundError(str(index_path))

        index_bytes = cls._read_required(index_path / INDEX_FILE)
        faiss_index = cls._deserialize_faiss(index_bytes)
        if faiss_index.d != dimension:
            raise DimensionMismatchError(dimension, faiss_index.d, what="Stored index")

        metadata_bytes = cls._read_required(index_path / METADATA_FILE)
        mappings = cls._read_json(index_path / MAPPINGS_FILE)

        if mappings.get("format_version") != INDEX_FORMAT_VERSION:
            raise CorruptedIndexError(
                f"Unsupported index format version: {mappings.get('format_version')}",
                {"path": str(index_path)},
            )
        if hashlib.sha256(metadata_bytes).hexdigest() != mappings.get("metadata_sha256"):
            raise CorruptedIndexError(
                "Metadata checksum mismatch (index files come from different saves)",
                {"path": str(index_path)},
            )
        if hashlib.sha256(index_bytes).hexdigest() != mappings.get("index_sha256"):
            raise CorruptedIndexError(
                "Vector data checksum mismatch (index files come from different saves)",
                {"path": str(index_path)},
            )

        try:
            raw_metadata = pickle.loads(metadata_bytes)  # nosec B301 - local index only
            metadata = {rid: IndexEntry.from_dict(d) for rid, d in raw_metadata.items()}
            id_to_record = {int(k): v for k, v in mappings["id_to_record"].items()}
            record_to_id = {k: int(v) for k, v in mappings["record_to_id"].items()}
            next_id = int(mappings.get("next_id", 0))
        except (pickle.UnpicklingError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise SerializationError(f"Failed to deserialize index metadata: {e}") from e

        if not faiss_index.ntotal == len(id_to_record) == len(record_to_id) == len(metadata):
            raise CorruptedIndexError(
                f"Inconsistent index: {faiss_index.ntotal} vectors, "
                f"{len(id_to_record)} mappings, {len(metadata)} metadata entries",
                {"path": str(index_path)},
            )

        stats_file = index_path / STATS_FILE
        stats = IndexStats(model_name="unknown", dimension=dimension)
        if stats_file.exists():
            try:
                stats = IndexStats.from_dict(cls._read_json(stats_file))
            except (CorruptedIndexError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable index stats {stats_file}: {e}")

        index = cls(dimension, stats.model_name, index_path)
        index._index = faiss_index
        index._id_to_record = id_to_record
        index._record_to_id = record_to_id
        index._metadata = metadata
        index._next_id = next_id
        index._stats = stats

        logger.info(f"Semantic index loaded successfully: {len(metadata)} repositories")
        return index

    def clear(self) -> None:
        """Empty the index, keeping its dimension and model name."""
        try:
            self._index = _new_faiss_index(self._dimension)
        except Exception as e:
            raise VectorIndexError(f"Failed to recreate index: {e}") from e

        self._id_to_record.clear()
        self._record_to_id.clear()
        self._metadata.clear()
        self._next_id = 0

    def _directory_size(self) -> int:
        return sum(p.stat().st_size for p in self.index_path.iterdir() if p.is_file())

    @staticmethod
    def _read_required(path: Path) -> bytes:
        if not path.is_file():
            raise CorruptedIndexError(f"Missing index file: {path.name}", {"path": str(path)})
        try:
            return path.read_bytes()
        except OSError as e:
            raise CorruptedIndexError(f"Unreadable index file {path.name}: {e}") from e

    @classmethod
    def _read_json(cls, path: Path) -> dict:
        try:
            data = orjson.loads(cls._read_required(path))
        except orjson.JSONDecodeError as e:
            raise CorruptedIndexError(f"Invalid JSON in {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise CorruptedIndexError(f"Expected an object in {path.name}")
        return data

    @staticmethod
    def _deserialize_faiss(data: bytes) -> "faiss.IndexIDMap2":
        try:
            return faiss.deserialize_index(np.frombuffer(data, dtype=np.uint8).copy())
        except Exception as e:
            raise CorruptedIndexError(f"Unreadable faiss index: {e}") from e
