"""Tests for MCP server tools and resources."""
import json
from unittest.mock import MagicMock, patch

from context_relay.core.serializer import add_decision, add_open_question, create_empty_state
from context_relay.types import InjectionPayload, StoredStateInfo


class TestMCPServerTools:
    """Test MCP tool functions directly by mocking the engine."""

    def _mock_engine(self):
        engine = MagicMock()
        state = create_empty_state("Mocked")
        state = add_decision(state, "Use MCP", "tool access", "t1")
        state = add_open_question(state, "Which transport?", "t1")
        engine.get_state.return_value = state
        engine.add_decision.return_value = state
        engine.add_open_question.return_value = state
        engine.status.return_value = {"id": state.id, "decisions": 1}
        engine.compile.return_value = "# Task Continuation Context"
        engine.prepare_injection.return_value = InjectionPayload(
            text="[CONTEXT CONTINUATION]", method="user_message",
            token_estimate=6, platform="claude", token_budget=50000,
        )
        engine.export.return_value = '{"id": "x"}'
        engine.list_states.return_value = [
            StoredStateInfo(id="s1", title="First", updated_at=1, saved_at=2, total_turns=3),
        ]
        return engine

    @patch("context_relay.mcp.server._get_engine")
    def test_relay_status(self, mock_get_engine):
        mock_get_engine.return_value = self._mock_engine()

        from context_relay.mcp.server import relay_status
        assert json.loads(relay_status())["decisions"] == 1

    @patch("context_relay.mcp.server._get_engine")
    def test_relay_status_empty(self, mock_get_engine):
        engine = self._mock_engine()
        engine.get_state.return_value = None
        mock_get_engine.return_value = engine

        from context_relay.mcp.server import relay_status
        assert json.loads(relay_status())["status"] == "empty"
        engine.status.assert_not_called()

    @patch("context_relay.mcp.server._get_engine")
    def test_compile_context(self, mock_get_engine):
        engine = self._mock_engine()
        mock_get_engine.return_value = engine

        from context_relay.mcp.server import compile_context
        assert compile_context(token_budget=2000).startswith("# Task Continuation")
        engine.compile.assert_called_with(None, 2000)

    @patch("context_relay.mcp.server._get_engine")
    def test_prepare_injection(self, mock_get_engine):
        mock_get_engine.return_value = self._mock_engine()

        from context_relay.mcp.server import prepare_injection
        result = json.loads(prepare_injection("claude"))
        assert result == {
            "text": "[CONTEXT CONTINUATION]",
            "method": "user_message",
            "tokenEstimate": 6,
        }

    @patch("context_relay.mcp.server._get_engine")
    def test_record_decision(self, mock_get_engine):
        engine = self._mock_engine()
        mock_get_engine.return_value = engine

        from context_relay.mcp.server import record_decision
        result = json.loads(record_decision("Use MCP", "tool access", ["REST"]))
        assert result == {"status": "recorded", "decisions": 1}
        engine.add_decision.assert_called_with("Use MCP", "tool access", alternatives=["REST"])

    @patch("context_relay.mcp.server._get_engine")
    def test_record_open_question(self, mock_get_engine):
        engine = self._mock_engine()
        mock_get_engine.return_value = engine

        from context_relay.mcp.server import record_open_question
        result = json.loads(record_open_question("Which transport?"))
        assert result["questionId"] == engine.add_open_question.return_value.open_questions[0].id

    @patch("context_relay.mcp.server._get_engine")
    def test_set_next_action(self, mock_get_engine):
        engine = self._mock_engine()
        mock_get_engine.return_value = engine

        from context_relay.mcp.server import set_next_action
        assert json.loads(set_next_action("ship"))["nextAction"] == "ship"
        engine.set_next_action.assert_called_with("ship")

    @patch("context_relay.mcp.server._get_engine")
    def test_export_state(self, mock_get_engine):
        mock_get_engine.return_value = self._mock_engine()

        from context_relay.mcp.server import export_state
        assert json.loads(export_state()) == {"id": "x"}


class TestMCPServerResources:
    @patch("context_relay.mcp.server._get_engine")
    def test_list_states(self, mock_get_engine):
        engine = MagicMock()
        engine.list_states.return_value = [
            StoredStateInfo(id="s1", title="First", updated_at=1, saved_at=2, total_turns=3),
        ]
        mock_get_engine.return_value = engine

        from context_relay.mcp.server import list_states
        assert list_states() == "- **First** (s1): 3 turns"

    @patch("context_relay.mcp.server._get_engine")
    def test_list_states_empty(self, mock_get_engine):
        engine = MagicMock()
        engine.list_states.return_value = []
        mock_get_engine.return_value = engine

        from context_relay.mcp.server import list_states
        assert list_states() == "No reasoning states saved yet."


def test_resume_prompt():
    from context_relay.mcp.server import resume_task
    assert "compile_context" in resume_task()
