"""Tests for the Materializer and completeness markers."""

from __future__ import annotations

import json

import pytest

from cutlassfetch.core.materializer import MARKER_NAME, Materializer, read_marker
from cutlassfetch.errors import ExtractionError
from cutlassfetch.models.artifacts import StagingHandle, TransportKind


@pytest.fixture
def handle(tmp_path, spec) -> StagingHandle:
    return StagingHandle(key=spec.cache_key, path=tmp_path / "staging")


class TestMaterializer:
    def test_verify_requires_include(self, tmp_path):
        with pytest.raises(ExtractionError, match="include/"):
            Materializer().verify(tmp_path)
        (tmp_path / "include").mkdir()
        Materializer().verify(tmp_path)

    def test_finalize_writes_marker_last(self, handle, spec):
        (handle.tree_dir / "include").mkdir(parents=True)
        marker = Materializer().finalize(handle, spec, TransportKind.GIT)

        payload = json.loads((handle.tree_dir / MARKER_NAME).read_text())
        assert payload["key"] == "cutlass-3.5.1"
        assert payload["tag"] == "v3.5.1"
        assert payload["transport"] == "git"
        assert read_marker(handle.tree_dir) == marker
        leftovers = [p.name for p in handle.tree_dir.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_finalize_refuses_incomplete_tree(self, handle, spec):
        (handle.tree_dir / "docs").mkdir(parents=True)
        with pytest.raises(ExtractionError):
            Materializer().finalize(handle, spec, TransportKind.HTTP)
        assert read_marker(handle.tree_dir) is None

    def test_custom_expected_subpath(self, tmp_path):
        (tmp_path / "headers").mkdir()
        Materializer(expected_subpath="headers").verify(tmp_path)


class TestReadMarker:
    def test_absent(self, tmp_path):
        assert read_marker(tmp_path) is None

    def test_garbage(self, tmp_path):
        (tmp_path / MARKER_NAME).write_text("not json at all")
        assert read_marker(tmp_path) is None
