"""Tests for the typed exception hierarchy.

Validates:
- Class hierarchy is correct (isinstance checks)
- Exceptions are exported from the package root
- Structured context is attached where the error carries data
"""

from __future__ import annotations

import pytest

# ---------------------------------------------------------------------------
# Hierarchy tests (no I/O, no async)
# ---------------------------------------------------------------------------


class TestExceptionHierarchy:
    """Verify the class hierarchy defined in core/exceptions.py."""

    def test_repo_scout_error_is_base_exception(self):
        from reposcout_semantic.core.exceptions import RepoScoutError

        err = RepoScoutError("base")
        assert isinstance(err, Exception)

    @pytest.mark.parametrize(
        "name",
        [
            "ModelLoadError",
            "ModelNotInitializedError",
            "EmbeddingError",
            "VectorIndexError",
            "SerializationError",
            "ConfigError",
            "PreprocessingError",
            "SearchError",
        ],
    )
    def test_direct_subclasses_of_base(self, name):
        import reposcout_semantic.core.exceptions as exc_mod

        assert issubclass(getattr(exc_mod, name), exc_mod.RepoScoutError)

    def test_index_errors_inherit_from_vector_index_error(self):
        from reposcout_semantic.core.exceptions import (
            CorruptedIndexError,
            DimensionMismatchError,
            IndexNotFoundError,
            VectorIndexError,
        )

        for exc_class in (IndexNotFoundError, CorruptedIndexError, DimensionMismatchError):
            assert issubclass(exc_class, VectorIndexError)

    def test_dimension_mismatch_is_a_search_error(self):
        from reposcout_semantic.core.exceptions import DimensionMismatchError, SearchError

        with pytest.raises(SearchError):
            raise DimensionMismatchError(384, 768)

    def test_index_error_alias_equals_vector_index_error(self):
        """IndexError alias in exceptions module must point to VectorIndexError."""
        import reposcout_semantic.core.exceptions as exc_mod

        assert exc_mod.IndexError is exc_mod.VectorIndexError
        assert exc_mod.IndexError is not IndexError

    def test_context_dict_is_preserved(self):
        from reposcout_semantic.core.exceptions import RepoScoutError

        err = RepoScoutError("msg", context={"key": "value"})
        assert err.context == {"key": "value"}

    def test_context_defaults_to_empty_dict(self):
        from reposcout_semantic.core.exceptions import RepoScoutError

        err = RepoScoutError("msg")
        assert err.context == {}

    def test_dimension_mismatch_context(self):
        from reposcout_semantic.core.exceptions import DimensionMismatchError

        err = DimensionMismatchError(384, 768, what="Query vector")
        assert err.expected == 384
        assert err.actual == 768
        assert err.context == {"expected": 384, "actual": 768}
        assert "Query vector dimension mismatch" in str(err)

    def test_not_found_error_carries_record_id(self):
        from reposcout_semantic.core.exceptions import NotFoundError

        err = NotFoundError("GitHub:user/missing")
        assert err.record_id == "GitHub:user/missing"
        assert "GitHub:user/missing" in str(err)

    def test_index_not_found_error_carries_path(self):
        from reposcout_semantic.core.exceptions import IndexNotFoundError

        err = IndexNotFoundError("/tmp/nowhere")
        assert err.path == "/tmp/nowhere"
        assert err.context == {"path": "/tmp/nowhere"}

    def test_model_not_initialized_has_default_message(self):
        from reposcout_semantic.core.exceptions import ModelNotInitializedError

        assert "initialize()" in str(ModelNotInitializedError())


# ---------------------------------------------------------------------------
# Package-level export tests
# ---------------------------------------------------------------------------


class TestPackageExports:
    """Verify exceptions are importable from the reposcout_semantic root."""

    def test_base_error_exported(self):
        from reposcout_semantic import RepoScoutError  # noqa: F401

    def test_index_error_alias_exported(self):
        import reposcout_semantic as pkg
        from reposcout_semantic import VectorIndexError

        assert pkg.IndexError is VectorIndexError

    def test_all_includes_exceptions(self):
        import reposcout_semantic as pkg

        for name in ("RepoScoutError", "SearchError", "ConfigError", "NotFoundError"):
            assert name in pkg.__all__, f"{name!r} missing from __all__"

    def test_core_package_exports(self):
        import reposcout_semantic.core as core

        assert "DimensionMismatchError" in core.__all__
