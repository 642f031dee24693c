"""Tests for FilesystemStateStore."""

import json

import pytest

from context_relay.core.serializer import create_empty_state, set_objective
from context_relay.storage.filesystem import FilesystemStateStore


@pytest.fixture
def store(tmp_store_dir):
    return FilesystemStateStore(root=tmp_store_dir)


class TestFilesystemStateStore:
    def test_save_and_load(self, store, populated_state):
        store.save_state(populated_state)
        assert store.load_state(populated_state.id) == populated_state

    def test_layout(self, store, tmp_store_dir):
        state = create_empty_state("Layout")
        store.save_state(state)
        assert (tmp_store_dir / "states" / f"{state.id}.json").is_file()
        index = json.loads((tmp_store_dir / "_index.json").read_text())
        assert index[0]["id"] == state.id
        assert index[0]["title"] == "Layout"

    def test_load_missing(self, store):
        assert store.load_state("nope") is None

    def test_list_newest_first(self, store):
        a = create_empty_state("A")
        b = create_empty_state("B")
        store.save_state(a)
        store.save_state(b)
        assert [i.title for i in store.list_states()] == ["B", "A"]

    def test_resave_moves_to_front(self, store):
        a = create_empty_state("A")
        b = create_empty_state("B")
        store.save_state(a)
        store.save_state(b)
        store.save_state(set_objective(a, "finish"))
        assert store.get_state_ids() == [a.id, b.id]
        assert store.get_active_state().meta.objective == "finish"

    def test_delete(self, store):
        state = create_empty_state()
        store.save_state(state)
        assert store.delete_state(state.id) is True
        assert store.delete_state(state.id) is False
        assert store.load_state(state.id) is None
        assert store.list_states() == []

    def test_active_state_empty(self, store):
        assert store.get_active_state() is None

    def test_index_survives_reopen(self, store, tmp_store_dir):
        state = create_empty_state("Persisted")
        store.save_state(state)
        reopened = FilesystemStateStore(root=tmp_store_dir)
        assert reopened.get_active_state().id == state.id

    def test_corrupt_index_starts_empty(self, tmp_store_dir):
        (tmp_store_dir / "_index.json").write_text("{not json")
        store = FilesystemStateStore(root=tmp_store_dir)
        assert store.list_states() == []

    def test_rejects_path_like_id(self, store, tmp_store_dir):
        state = create_empty_state("Escape")
        state.id = "../../escaped"
        with pytest.raises(ValueError):
            store.save_state(state)
        assert not (tmp_store_dir.parent / "escaped.json").exists()
        assert store.list_states() == []

    def test_load_path_like_id(self, store):
        assert store.load_state("../_index") is None
