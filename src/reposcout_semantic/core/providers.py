"""Record providers: where repository records and READMEs come from.

Each hosting platform has its own provider implementing the
``RecordProvider`` protocol. The ``ProviderRegistry`` picks the provider
for a platform; providers do not share a base class.
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiofiles
import orjson
from loguru import logger

from .exceptions import ConfigError, SerializationError
from .models import Platform, Repository

RecordPair = tuple[Repository, str | None]


@runtime_checkable
class RecordProvider(Protocol):
    """Supplies already-fetched repository records for one platform."""

    @property
    def platform(self) -> Platform: ...

    async def fetch_repositories(self) -> list[Repository]: ...

    async def fetch_readme(self, full_name: str) -> str | None: ...


class StaticRecordProvider:
    """Provider serving records held in memory (e.g. read from a file)."""

    def __init__(
        self,
        platform: Platform,
        repositories: Iterable[Repository] = (),
        readmes: dict[str, str] | None = None,
    ) -> None:
        self._platform = platform
        self._repositories = list(repositories)
        self._readmes = dict(readmes or {})

        for repo in self._repositories:
            if repo.platform != platform:
                raise ConfigError(
                    f"Repository {repo.id} does not belong to platform {platform}"
                )

    @property
    def platform(self) -> Platform:
        return self._platform

    async def fetch_repositories(self) -> list[Repository]:
        return list(self._repositories)

    async def fetch_readme(self, full_name: str) -> str | None:
        return self._readmes.get(full_name)


class ProviderRegistry:
    """Registry selecting the record provider for each platform."""

    def __init__(self) -> None:
        self._providers: dict[Platform, RecordProvider] = {}

    def register(self, provider: RecordProvider) -> None:
        """Register a provider, replacing any previous one for its platform."""
        if provider.platform in self._providers:
            logger.debug(f"Replacing record provider for {provider.platform}")
        self._providers[provider.platform] = provider

    def get(self, platform: Platform) -> RecordProvider:
        """Get the provider for a platform.

        Raises:
            ConfigError: If no provider is registered for the platform
        """
        provider = self._providers.get(platform)
        if provider is None:
            raise ConfigError(f"No record provider registered for {platform}")
        return provider

    @property
    def platforms(self) -> list[Platform]:
        return list(self._providers)

    async def fetch_all(self) -> list[RecordPair]:
        """Collect every repository with its README from all providers."""
        pairs: list[RecordPair] = []
        for platform, provider in self._providers.items():
            repositories = await provider.fetch_repositories()
            logger.debug(f"{platform}: {len(repositories)} repositories")
            for repo in repositories:
                pairs.append((repo, await provider.fetch_readme(repo.full_name)))
        return pairs


async def load_records_file(path: Path) -> ProviderRegistry:
    """Read a JSON list of repository objects into a provider registry.

    Each object may carry an optional ``readme`` string.

    Raises:
        SerializationError: If the file is not a JSON list of valid records
    """
    async with aiofiles.open(path, "rb") as f:
        content = await f.read()

    try:
        raw = orjson.loads(content)
    except orjson.JSONDecodeError as e:
        raise SerializationError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(raw, list):
        raise SerializationError(f"Expected a JSON list of repositories in {path}")

    by_platform: dict[Platform, list[Repository]] = {}
    readmes: dict[Platform, dict[str, str]] = {}
    for item in raw:
        try:
            repo = Repository.from_dict(item)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid repository record in {path}: {e}") from e
        by_platform.setdefault(repo.platform, []).append(repo)
        if item.get("readme"):
            readmes.setdefault(repo.platform, {})[repo.full_name] = item["readme"]

    registry = ProviderRegistry()
    for platform, repositories in by_platform.items():
        registry.register(
            StaticRecordProvider(platform, repositories, readmes.get(platform))
        )

    logger.debug(f"Loaded {len(raw)} repositories from {path}")
    return registry
