"""Data models for semantic repository search."""

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class Platform(str, Enum):
    """Hosting platform a repository lives on."""

    GITHUB = "GitHub"
    GITLAB = "GitLab"
    BITBUCKET = "Bitbucket"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | Platform") -> "Platform":
        """Parse a platform name case-insensitively ("github", "GitHub", ...)."""
        if isinstance(value, Platform):
            return value
        for platform in cls:
            if platform.value.lower() == str(value).lower():
                return platform
        raise ValueError(f"Unknown platform: {value}")


@dataclass(frozen=True)
class Repository:
    """A repository record as supplied by a record provider."""

    platform: Platform
    full_name: str
    description: str | None = None
    url: str = ""
    homepage_url: str | None = None
    language: str | None = None
    topics: tuple[str, ...] = ()
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    open_issues: int = 0
    license: str | None = None
    default_branch: str = "main"
    is_archived: bool = False
    is_private: bool = False

    @property
    def id(self) -> str:
        """Identity key shared by the index and the record cache."""
        return f"{self.platform}:{self.full_name}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Repository":
        """Build a repository from a JSON-style dict."""
        return cls(
            platform=Platform.parse(data.get("platform", Platform.GITHUB)),
            full_name=data["full_name"],
            description=data.get("description"),
            url=data.get("url", ""),
            homepage_url=data.get("homepage_url"),
            language=data.get("language"),
            topics=tuple(data.get("topics") or ()),
            stars=int(data.get("stars", 0)),
            forks=int(data.get("forks", 0)),
            watchers=int(data.get("watchers", 0)),
            open_issues=int(data.get("open_issues", 0)),
            license=data.get("license"),
            default_branch=data.get("default_branch", "main"),
            is_archived=bool(data.get("is_archived", False)),
            is_private=bool(data.get("is_private", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "full_name": self.full_name,
            "description": self.description,
            "url": self.url,
            "homepage_url": self.homepage_url,
            "language": self.language,
            "topics": list(self.topics),
            "stars": self.stars,
            "forks": self.forks,
            "watchers": self.watchers,
            "open_issues": self.open_issues,
            "license": self.license,
            "default_branch": self.default_branch,
            "is_archived": self.is_archived,
            "is_private": self.is_private,
        }


def hash_text(text: str) -> str:
    """Stable content hash used to detect source text changes."""
    return hashlib.sha256(text.encode()).hexdigest()[:16]


@dataclass
class IndexEntry:
    """Embedding of one repository plus the text it was generated from.

    The vector is never persisted with the metadata; entries read back from
    disk carry an empty vector.
    """

    id: str
    vector: list[float]
    source_text: str
    text_hash: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(cls, record_id: str, vector: list[float], source_text: str) -> "IndexEntry":
        return cls(
            id=record_id,
            vector=list(vector),
            source_text=source_text,
            text_hash=hash_text(source_text),
        )

    def text_changed(self, new_text: str) -> bool:
        """Check if the source text has changed."""
        return hash_text(new_text) != self.text_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "generated_at": self.generated_at.isoformat(),
            "source_text": self.source_text,
            "text_hash": self.text_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexEntry":
        return cls(
            id=data["id"],
            vector=[],
            source_text=data["source_text"],
            text_hash=data["text_hash"],
            generated_at=datetime.fromisoformat(data["generated_at"]),
        )


@dataclass
class IndexStats:
    """Summary statistics for a vector index, refreshed on every save."""

    model_name: str
    dimension: int
    total_count: int = 0
    index_size_bytes: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def update(self, count: int, size_bytes: int) -> None:
        self.total_count = count
        self.index_size_bytes = size_bytes
        self.last_updated = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_count": self.total_count,
            "index_size_bytes": self.index_size_bytes,
            "last_updated": self.last_updated.isoformat(),
            "model_name": self.model_name,
            "dimension": self.dimension,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexStats":
        return cls(
            model_name=data["model_name"],
            dimension=int(data["dimension"]),
            total_count=int(data.get("total_count", 0)),
            index_size_bytes=int(data.get("index_size_bytes", 0)),
            last_updated=datetime.fromisoformat(data["last_updated"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class SearchResult:
    """A ranked search hit."""

    record: Repository
    semantic_score: float
    hybrid_score: float
    distance: float
    keyword_score: float | None = None

    @classmethod
    def semantic_only(
        cls, record: Repository, semantic_score: float, distance: float
    ) -> "SearchResult":
        return cls(
            record=record,
            semantic_score=semantic_score,
            hybrid_score=semantic_score,
            distance=distance,
        )

    @classmethod
    def hybrid(
        cls,
        record: Repository,
        semantic_score: float,
        keyword_score: float,
        semantic_weight: float,
        distance: float,
    ) -> "SearchResult":
        """Combine both signals: ``semantic*w + keyword*(1-w)``."""
        hybrid_score = semantic_score * semantic_weight + keyword_score * (
            1.0 - semantic_weight
        )
        return cls(
            record=record,
            semantic_score=semantic_score,
            keyword_score=keyword_score,
            hybrid_score=hybrid_score,
            distance=distance,
        )
