"""End-to-end semantic search with a real embedding model.

Downloads the default model on first run; skipped when it cannot be loaded.
"""

import pytest

from reposcout_semantic.config.settings import SemanticConfig
from reposcout_semantic.core.exceptions import ModelLoadError
from reposcout_semantic.core.search import HybridSearchEngine

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


@pytest.fixture
async def real_engine(tmp_path):
    engine = HybridSearchEngine(SemanticConfig(cache_path=str(tmp_path / "semantic")))
    try:
        await engine.initialize()
    except ModelLoadError as e:
        pytest.skip(f"Embedding model unavailable: {e}")
    return engine


async def test_logging_query_finds_logger(real_engine, sample_repos):
    await real_engine.index_repositories([(repo, None) for repo in sample_repos])

    results = await real_engine.search("logging library", limit=3)

    assert results
    assert results[0].record.full_name == "user/logger"
    assert results[0].semantic_score > 0.5


async def test_index_survives_restart(real_engine, sample_repos):
    await real_engine.index_repositories([(repo, None) for repo in sample_repos])
    await real_engine.save()

    reloaded = HybridSearchEngine(real_engine.config, real_engine.embedder)
    results = await reloaded.search("web framework", limit=1)

    assert results[0].record.full_name == "user/webfw"
