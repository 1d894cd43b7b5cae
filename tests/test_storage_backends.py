"""
Tests for storage backends and canvas document persistence.
"""

import json
from unittest.mock import MagicMock

import pytest

from dagcanvas.graph import seed_graph
from dagcanvas.storage import (
    STORAGE_KEY,
    Document,
    FileStore,
    ImportValidationError,
    KeyValueStore,
    MemoryStore,
    create_store,
    get_backend_type,
    import_document,
    load_document,
    parse_document,
    save_document,
    seed_document,
)
from dagcanvas.viewport import DEFAULT_VIEWPORT, Viewport


class TestFileStore:
    def test_set_get_delete(self, tmp_path):
        store = FileStore(tmp_path / "db")
        assert store.get("k") is None
        store.set("k", "value")
        assert store.get("k") == "value"
        assert store.delete("k")
        assert not store.delete("k")

    def test_key_is_sanitized(self, tmp_path):
        store = FileStore(tmp_path)
        store.set("../escape/key", "v")
        assert store.get("../escape/key") == "v"
        assert all(p.parent == tmp_path for p in tmp_path.iterdir())

    def test_persists_across_instances(self, tmp_path):
        FileStore(tmp_path).set(STORAGE_KEY, "x")
        assert FileStore(tmp_path).get(STORAGE_KEY) == "x"
        assert (tmp_path / f"{STORAGE_KEY}.json").exists()

    def test_implements_protocol(self, tmp_path):
        assert isinstance(FileStore(tmp_path), KeyValueStore)
        assert isinstance(MemoryStore(), KeyValueStore)


class TestFactory:
    def test_backend_type(self):
        assert get_backend_type(None) == "file"
        assert get_backend_type({"storage_backend": "memory"}) == "memory"
        assert get_backend_type({"backend": "memory"}) == "file"

    def test_create_memory(self):
        assert create_store({"storage_backend": "memory"}).backend_type == "memory"

    def test_create_file(self, tmp_path):
        store = create_store({}, data_dir=tmp_path)
        assert store.backend_type == "file"

    def test_force_backend(self, tmp_path):
        assert create_store({"storage_backend": "file"}, tmp_path, force_backend="memory").backend_type == "memory"

    def test_unknown_backend_uses_file(self, tmp_path):
        assert create_store({"storage_backend": "supabase"}, data_dir=tmp_path).backend_type == "file"


class TestDocument:
    def test_save_and_load(self):
        store = MemoryStore()
        doc = Document(graph=seed_graph(), viewport=Viewport(1, 2, 1.5))
        assert save_document(store, doc)
        loaded = load_document(store)
        assert loaded.graph == doc.graph
        assert loaded.viewport == doc.viewport
        assert json.loads(store.get(STORAGE_KEY))["version"] == 1

    def test_load_missing(self):
        assert load_document(MemoryStore()) is None

    @pytest.mark.parametrize("text", [
        "nope",
        "[]",
        json.dumps({"version": 2, "nodes": [], "edges": []}),
        json.dumps({"version": True, "nodes": [], "edges": []}),
        json.dumps({"version": 1, "nodes": {}, "edges": []}),
        json.dumps({"version": 1, "nodes": []}),
    ])
    def test_top_level_mismatch(self, text):
        assert parse_document(text) is None

    def test_viewport_repair(self):
        doc = parse_document(json.dumps({
            "version": 1, "nodes": [], "edges": [],
            "viewport": {"x": "a", "y": 3, "zoom": 10},
        }))
        assert doc.viewport == Viewport(0.0, 3, 2.5)

        doc = parse_document(json.dumps({"version": 1, "nodes": [], "edges": []}))
        assert doc.viewport == DEFAULT_VIEWPORT

    def test_read_failure_is_swallowed(self):
        store = MagicMock()
        store.get.side_effect = OSError("disk gone")
        assert load_document(store) is None

    def test_write_failure_is_swallowed(self):
        store = MagicMock()
        store.set.side_effect = OSError("read-only")
        assert save_document(store, seed_document()) is False

    def test_import_errors(self):
        with pytest.raises(ImportValidationError, match="Invalid JSON."):
            import_document("{")
        with pytest.raises(ImportValidationError, match=r"nodes\[\] and edges\[\]"):
            import_document('{"nodes": [], "edges": 3}')

    def test_import_dedupes_nodes_and_edges(self):
        graph = import_document(json.dumps({
            "nodes": [
                {"id": "a", "title": "A", "x": 0, "y": 0},
                {"id": "a", "title": "A again", "x": 5, "y": 5},
                {"id": "b", "title": "B", "x": 0, "y": 0},
            ],
            "edges": [
                {"id": "1", "source": "a", "target": "b"},
                {"id": "1", "source": "b", "target": "a"},
                {"id": "2", "source": "a", "target": "b"},
                {"id": "3", "source": "a", "target": "a"},
            ],
        }))
        assert [n.title for n in graph.nodes] == ["A", "B"]
        assert [e.id for e in graph.edges] == ["1"]
