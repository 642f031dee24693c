"""MCP server exposing context-relay as tools, resources, and prompts."""

from __future__ import annotations

import json
import logging
import os

from mcp.server.fastmcp import FastMCP

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "context-relay",
    instructions="Portable reasoning state for continuing a task across LLM platforms",
)

# Lazy engine singleton
_engine = None


def _get_engine():
    """Get or create the engine singleton."""
    global _engine
    if _engine is None:
        from ..engine import RelayEngine
        config_path = os.environ.get("CONTEXT_RELAY_CONFIG")
        _engine = RelayEngine(config_path=config_path)
    return _engine


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@mcp.tool()
def relay_status(state_id: str | None = None) -> str:
    """Show counters for the active (or given) reasoning state.

    Args:
        state_id: Optional state id. Defaults to the most recently saved state.

    Returns:
        JSON with turn, artifact, constraint, decision and question counts.
    """
    engine = _get_engine()
    if engine.get_state(state_id) is None:
        return json.dumps({"status": "empty", "reason": "No reasoning state saved yet"})
    return json.dumps(engine.status(state_id))


@mcp.tool()
def compile_context(token_budget: int = 4000, state_id: str | None = None) -> str:
    """Render the reasoning state as a continuation brief.

    Use at the start of a session to pick up a task begun elsewhere.

    Args:
        token_budget: Upper bound on the estimated size of the brief.
        state_id: Optional state id. Defaults to the active state.
    """
    return _get_engine().compile(state_id, token_budget)


@mcp.tool()
def prepare_injection(platform: str = "unknown", state_id: str | None = None) -> str:
    """Build the framed injection text sized for a target platform.

    Args:
        platform: Target platform id (claude, chatgpt, gemini, ...).
        state_id: Optional state id. Defaults to the active state.

    Returns:
        JSON with text, method and tokenEstimate.
    """
    payload = _get_engine().prepare_injection(platform, state_id)
    return json.dumps({
        "text": payload.text,
        "method": payload.method,
        "tokenEstimate": payload.token_estimate,
    })


@mcp.tool()
def record_decision(
    description: str,
    rationale: str = "",
    alternatives: list[str] | None = None,
) -> str:
    """Append a decision to the active state's decision log.

    Args:
        description: What was decided.
        rationale: Why.
        alternatives: Options that were considered and rejected.
    """
    state = _get_engine().add_decision(description, rationale, alternatives=alternatives)
    return json.dumps({"status": "recorded", "decisions": len(state.decisions)})


@mcp.tool()
def record_open_question(question: str) -> str:
    """Record a question that still needs an answer."""
    state = _get_engine().add_open_question(question)
    return json.dumps({"status": "recorded", "questionId": state.open_questions[-1].id})


@mcp.tool()
def set_next_action(action: str) -> str:
    """Set what the next session should do first."""
    _get_engine().set_next_action(action)
    return json.dumps({"status": "updated", "nextAction": action})


@mcp.tool()
def export_state(state_id: str | None = None) -> str:
    """Export the full reasoning state as a JSON document."""
    return _get_engine().export(state_id)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

@mcp.resource("relay://states")
def list_states() -> str:
    """List all saved reasoning states, most recent first."""
    infos = _get_engine().list_states()
    lines = [f"- **{i.title}** ({i.id}): {i.total_turns} turns" for i in infos]
    return "\n".join(lines) if lines else "No reasoning states saved yet."


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

@mcp.prompt()
def resume_task() -> str:
    """Ask the model to resume the active task from its compiled state."""
    return (
        "Call compile_context, treat the result as ground truth for the task, "
        "and continue with the next intended action."
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def serve():
    """Start the MCP server (stdio transport)."""
    mcp.run()


if __name__ == "__main__":
    serve()
