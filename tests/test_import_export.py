"""Tests for export/import of the portable state document."""

import json

import pytest

from context_relay.core.serializer import create_empty_state, export_state, import_state, state_to_dict
from context_relay.types import ParseError, SchemaMismatchError, StateImportError, ValidationError


class TestRoundTrip:
    def test_populated_state(self, populated_state):
        restored = import_state(export_state(populated_state))
        assert restored == populated_state

    def test_wire_keys_are_camel_case(self, populated_state):
        doc = json.loads(export_state(populated_state))
        assert doc["schemaVersion"] == "0.1.0"
        assert set(doc["meta"]) >= {"createdAt", "updatedAt", "totalTurns"}
        assert "recentTurns" in doc["history"]
        assert "compressedSegments" in doc["history"]

    def test_optional_fields_omitted(self, populated_state):
        doc = state_to_dict(populated_state)
        first = doc["history"]["recentTurns"][0]
        assert "editedFrom" not in first
        assert "tokens" not in first

    def test_falsy_values_survive(self):
        state = create_empty_state("")
        state.meta.created_at = 0
        state.meta.updated_at = 0
        assert import_state(export_state(state)) == state


class TestDefaults:
    def test_minimal_document(self):
        state = import_state('{"schemaVersion":"0.1.0","id":"x","meta":{}}')
        assert state.id == "x"
        assert state.meta.title == "Imported Task"
        assert state.meta.total_turns == 0
        assert state.constraints == []
        assert state.history.recent_turns == []
        assert state.next_action == ""

    def test_wrong_type_scalars_default(self):
        doc = {"schemaVersion": "0.1.0", "id": "x",
               "meta": {"title": 7, "totalTurns": "3", "createdAt": True}, "nextAction": None}
        state = import_state(json.dumps(doc))
        assert state.meta.title == "Imported Task"
        assert state.meta.total_turns == 0
        assert state.meta.created_at > 0
        assert state.next_action == ""

    def test_non_list_collection_becomes_empty(self):
        doc = {"schemaVersion": "0.1.0", "id": "x", "meta": {"title": "T"},
               "constraints": "oops", "decisions": {"a": 1}}
        state = import_state(json.dumps(doc))
        assert state.constraints == []
        assert state.decisions == []
        assert state.meta.title == "T"


class TestRejection:
    def test_not_json(self):
        with pytest.raises(ParseError):
            import_state("not json")

    def test_wrong_version(self):
        with pytest.raises(SchemaMismatchError) as exc:
            import_state('{"schemaVersion":"9.9.9","id":"x","meta":{}}')
        assert exc.value.found == "9.9.9"

    def test_missing_version(self):
        with pytest.raises(SchemaMismatchError):
            import_state('{"id":"x","meta":{}}')

    def test_missing_id(self):
        with pytest.raises(ValidationError):
            import_state('{"schemaVersion":"0.1.0","meta":{}}')

    @pytest.mark.parametrize("state_id", ["../../x", "a/b", "a\\b", ".."])
    def test_path_like_id(self, state_id):
        doc = {"schemaVersion": "0.1.0", "id": state_id, "meta": {}}
        with pytest.raises(ValidationError):
            import_state(json.dumps(doc))

    def test_meta_not_object(self):
        with pytest.raises(ValidationError):
            import_state('{"schemaVersion":"0.1.0","id":"x","meta":[]}')

    def test_non_object_document(self):
        with pytest.raises(SchemaMismatchError):
            import_state("[1, 2, 3]")

    def test_common_base_class(self):
        for text in ("{", '{"schemaVersion":"0"}', '{"schemaVersion":"0.1.0"}'):
            with pytest.raises(StateImportError):
                import_state(text)
