"""Tests for repository, index entry and result models."""

import pytest

from reposcout_semantic.core.models import (
    IndexEntry,
    IndexStats,
    Platform,
    Repository,
    SearchResult,
    hash_text,
)


class TestPlatform:
    @pytest.mark.parametrize("value", ["github", "GitHub", "GITHUB", Platform.GITHUB])
    def test_parse(self, value):
        assert Platform.parse(value) is Platform.GITHUB

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            Platform.parse("sourceforge")

    def test_str(self):
        assert str(Platform.GITLAB) == "GitLab"


class TestRepository:
    def test_id_is_platform_and_full_name(self):
        repo = Repository(platform=Platform.BITBUCKET, full_name="team/tool")
        assert repo.id == "Bitbucket:team/tool"

    def test_from_dict_defaults(self):
        repo = Repository.from_dict({"full_name": "user/logger"})
        assert repo.platform is Platform.GITHUB
        assert repo.topics == ()
        assert repo.stars == 0
        assert repo.default_branch == "main"

    def test_dict_round_trip(self, sample_repos):
        repo = sample_repos[1]
        assert Repository.from_dict(repo.to_dict()) == repo

    def test_from_dict_requires_full_name(self):
        with pytest.raises(KeyError):
            Repository.from_dict({"description": "nameless"})


class TestIndexEntry:
    def test_text_changed_detects_single_character_edit(self):
        entry = IndexEntry.create("GitHub:user/logger", [0.1, 0.2], "a logging library")
        assert entry.text_changed("a logging librarz")
        assert not entry.text_changed("a logging library")

    def test_hash_is_stable(self):
        assert hash_text("same") == hash_text("same")
        assert len(hash_text("same")) == 16

    def test_to_dict_omits_vector(self):
        entry = IndexEntry.create("GitHub:user/logger", [0.1, 0.2], "text")
        data = entry.to_dict()
        assert "vector" not in data

        restored = IndexEntry.from_dict(data)
        assert restored.vector == []
        assert restored.text_hash == entry.text_hash
        assert restored.generated_at == entry.generated_at


class TestIndexStats:
    def test_update(self):
        stats = IndexStats(model_name="m", dimension=384)
        created = stats.created_at
        stats.update(10, 2048)

        assert stats.total_count == 10
        assert stats.index_size_bytes == 2048
        assert stats.created_at == created
        assert stats.last_updated >= created

    def test_dict_round_trip(self):
        stats = IndexStats(model_name="m", dimension=768, total_count=3)
        assert IndexStats.from_dict(stats.to_dict()) == stats


class TestSearchResult:
    def test_semantic_only(self, sample_repos):
        result = SearchResult.semantic_only(sample_repos[0], 0.8, 0.2)
        assert result.hybrid_score == 0.8
        assert result.keyword_score is None

    def test_hybrid_weighting(self, sample_repos):
        result = SearchResult.hybrid(sample_repos[0], 0.8, 0.4, 0.6, 0.2)
        assert result.hybrid_score == pytest.approx(0.8 * 0.6 + 0.4 * 0.4)
        assert result.keyword_score == 0.4

    @pytest.mark.parametrize("weight,expected", [(1.0, 0.8), (0.0, 0.4)])
    def test_hybrid_weight_extremes(self, sample_repos, weight, expected):
        result = SearchResult.hybrid(sample_repos[0], 0.8, 0.4, weight, 0.2)
        assert result.hybrid_score == pytest.approx(expected)
