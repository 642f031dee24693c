"""Shared fixtures for context-relay tests."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from context_relay.config import load_config
from context_relay.core.serializer import create_empty_state, ingest_turn
from context_relay.types import CodeBlock, ConversationTurn, ReasoningState, RelayConfig, ToolCall


@pytest.fixture
def ts() -> int:
    return 1_768_471_200_000  # 2026-01-15 10:00:00 UTC


@pytest.fixture
def make_turn(ts):
    """Factory for turns with predictable ids and timestamps."""
    counter = {"n": 0}

    def _make(
        role: str = "user",
        content: str = "hello",
        code_blocks: list[CodeBlock] | None = None,
        tool_calls: list[ToolCall] | None = None,
        model: str | None = None,
    ) -> ConversationTurn:
        counter["n"] += 1
        n = counter["n"]
        return ConversationTurn(
            id=f"test_turn_{n}",
            role=role,
            content=content,
            timestamp=ts + n * 1000,
            model=model,
            code_blocks=tuple(code_blocks or ()),
            tool_calls=tuple(tool_calls or ()),
        )

    return _make


@pytest.fixture
def coding_turns(make_turn) -> list[ConversationTurn]:
    return [
        make_turn("user", "Build a rate limiter in Python. You must keep it thread-safe."),
        make_turn(
            "assistant",
            "I'll use a token bucket. Note that refill happens lazily on each call.\n"
            "```python\nclass Bucket:\n    pass\n```",
            code_blocks=[CodeBlock(language="python", code="class Bucket:\n    pass", filename="bucket.py")],
        ),
        make_turn("user", "Never block the event loop. Add tests too."),
        make_turn(
            "assistant",
            "Decided to expose an async acquire. Let's add pytest cases next.",
            tool_calls=[ToolCall(id="call_1", name="run_tests", arguments={"path": "tests/"})],
        ),
    ]


@pytest.fixture
def populated_state(coding_turns) -> ReasoningState:
    state = create_empty_state("Rate limiter")
    for turn in coding_turns:
        state = ingest_turn(state, turn, "claude", "claude-sonnet")
    return state


@pytest.fixture
def tmp_store_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def tmp_sqlite_db(tmp_store_dir):
    return tmp_store_dir / "test_store.db"


@pytest.fixture
def relay_config(tmp_store_dir) -> RelayConfig:
    return load_config(config_dict={
        "storage": {"backend": "filesystem", "root": str(tmp_store_dir / "store")},
    })
