"""Tests for capture-side helpers."""

import pytest

from context_relay.core.capture import (
    TurnDeduplicator,
    build_turn,
    detect_platform,
    extract_code_blocks,
)


class TestDetectPlatform:
    @pytest.mark.parametrize("url,expected", [
        ("https://chatgpt.com/c/abc", "chatgpt"),
        ("https://chat.openai.com/", "chatgpt"),
        ("https://claude.ai/chat/123", "claude"),
        ("https://gemini.google.com/app", "gemini"),
        ("https://huggingface.co/chat/", "huggingchat"),
        ("https://chat.mistral.ai/chat", "mistral"),
        ("https://example.com", "unknown"),
        ("", "unknown"),
    ])
    def test_urls(self, url, expected):
        assert detect_platform(url) == expected


class TestExtractCodeBlocks:
    def test_language_and_strip(self):
        blocks = extract_code_blocks("Here:\n```python\n  x = 1\n```\nand\n```\nplain\n```")
        assert len(blocks) == 2
        assert blocks[0].language == "python"
        assert blocks[0].code == "x = 1"
        assert blocks[1].language == "text"
        assert blocks[1].code == "plain"

    def test_no_blocks(self):
        assert extract_code_blocks("no code here") == []


class TestBuildTurn:
    def test_id_format(self):
        turn = build_turn("user", "hi", "claude", sequence=7)
        prefix, ms = turn.id.rsplit("_", 1)
        assert prefix == "claude_turn_7"
        assert int(ms) == turn.timestamp

    def test_extracts_code(self):
        turn = build_turn("assistant", "```js\nf()\n```", "chatgpt", "gpt-4o")
        assert turn.model == "gpt-4o"
        assert turn.code_blocks[0].language == "js"

    def test_sequence_increments(self):
        a = build_turn("user", "a", "grok")
        b = build_turn("user", "b", "grok")
        assert int(a.id.split("_")[2]) < int(b.id.split("_")[2])


class TestTurnDeduplicator:
    def test_repeat_detected(self):
        dedupe = TurnDeduplicator()
        assert dedupe.is_duplicate("user", "hello") is False
        assert dedupe.is_duplicate("user", "hello") is True

    def test_role_matters(self):
        dedupe = TurnDeduplicator()
        dedupe.is_duplicate("user", "hello")
        assert dedupe.is_duplicate("assistant", "hello") is False

    def test_seen_does_not_record(self):
        dedupe = TurnDeduplicator()
        assert dedupe.seen("user", "hello") is False
        assert dedupe.seen("user", "hello") is False
        dedupe.remember("user", "hello")
        assert dedupe.seen("user", "hello") is True
        assert len(dedupe) == 1

    def test_capacity_evicts_oldest(self):
        dedupe = TurnDeduplicator(capacity=2)
        dedupe.is_duplicate("user", "a")
        dedupe.is_duplicate("user", "b")
        dedupe.is_duplicate("user", "c")
        assert len(dedupe) == 2
        assert dedupe.is_duplicate("user", "a") is False
