"""
Tests for the per-scope ID -> path index.
"""

import json

import pytest

from docshelf.errors import AlreadyExistsError, IndexCorruptError
from docshelf.file_service import FileService
from docshelf.index import ScopeIndex
from docshelf.types import Scope


@pytest.fixture
def layout(layouts):
    return layouts[Scope.PROJECT]


@pytest.fixture
def index(layout):
    return ScopeIndex(layout, FileService(layout.root))


def _write_raw(layout, text):
    layout.root.mkdir(parents=True, exist_ok=True)
    layout.index_path.write_text(text)


class TestLoadSave:

    def test_missing_file_is_empty(self, index, layout):
        assert index.load() == {}
        assert len(index) == 0
        assert not layout.index_path.exists()

    def test_put_persists_flat_json(self, index, layout):
        index.put("doc001", "auth/jwt")
        assert json.loads(layout.index_path.read_text()) == {"doc001": "auth/jwt"}

    def test_reopen_sees_entries(self, index, layout):
        index.put("doc001", "auth/jwt")
        reopened = ScopeIndex(layout, FileService(layout.root))
        assert reopened.get_path("doc001") == "auth/jwt"
        assert reopened.find_by_path("auth/jwt") == "doc001"

    def test_reloads_when_file_changes(self, index, layout):
        assert index.get_path("doc001") is None
        other = ScopeIndex(layout, FileService(layout.root))
        other.put("doc001", "a/longer/path")
        assert index.get_path("doc001") == "a/longer/path"

    def test_remove(self, index):
        index.put("doc001", "a")
        assert index.remove("doc001") == "a"
        assert index.find_by_path("a") is None
        assert index.remove("doc001") is None

    def test_legacy_nested_layout(self, index, layout):
        _write_raw(layout, json.dumps({
            "id": {"doc001": {"path": "a"}, "doc002": {"path": "b/c"}},
            "pathToId": {"a": "doc001", "b/c": "doc002"},
        }))
        assert index.load() == {"doc001": "a", "doc002": "b/c"}


class TestCorruption:

    def test_invalid_json(self, index, layout):
        _write_raw(layout, "{not json")
        with pytest.raises(IndexCorruptError):
            index.load()

    def test_non_object_root(self, index, layout):
        _write_raw(layout, "[]")
        with pytest.raises(IndexCorruptError):
            index.load()

    def test_duplicate_paths(self, index, layout):
        _write_raw(layout, json.dumps({"doc001": "a", "doc002": "a"}))
        with pytest.raises(IndexCorruptError, match="mapped by both"):
            index.load()

    def test_non_string_path(self, index, layout):
        _write_raw(layout, json.dumps({"doc001": 7}))
        with pytest.raises(IndexCorruptError):
            index.load()


class TestPut:

    def test_duplicate_id(self, index):
        index.put("doc001", "a")
        with pytest.raises(AlreadyExistsError):
            index.put("doc001", "b")

    def test_duplicate_path(self, index):
        index.put("doc001", "a")
        with pytest.raises(AlreadyExistsError):
            index.put("doc002", "a")
        assert index.load() == {"doc001": "a"}


class TestAllocateId:

    def test_first_id(self, index):
        assert index.allocate_id() == "doc001"

    def test_max_plus_one(self, index):
        index.put("doc001", "a")
        index.put("doc005", "b")
        assert index.allocate_id() == "doc006"

    def test_allocate_does_not_reserve(self, index):
        assert index.allocate_id() == index.allocate_id() == "doc001"

    def test_deleted_max_not_reused(self, index):
        index.put("doc001", "a")
        index.put("doc002", "b")
        index.remove("doc002")
        assert index.allocate_id() == "doc003"

    def test_width_grows(self, index):
        index.put("doc999", "a")
        assert index.allocate_id() == "doc1000"

    def test_ignores_foreign_keys(self, index, layout):
        _write_raw(layout, json.dumps({"doc002": "a", "notes": "b", "sdoc009": "c"}))
        assert index.allocate_id() == "doc003"

    def test_strictly_increasing(self, index):
        issued = []
        for i in range(12):
            new_id = index.allocate_id()
            index.put(new_id, f"p{i}")
            issued.append(int(new_id[3:]))
        assert issued == sorted(set(issued))
        assert issued[0] == 1 and issued[-1] == 12
