"""History compression: fold older turns into immutable summary segments.

Older turns beyond the most recent ``max_recent_turns`` are cut into fixed
chunks, and each chunk becomes one CompressedSegment built from structural
rendering plus the extraction heuristics. Segments are appended, never merged
or re-compressed.
"""

from __future__ import annotations

import copy
import json
import logging
import math
from dataclasses import fields
from typing import Any, Mapping

from ..token_counter import estimate_tokens
from ..types import (
    CompressedSegment,
    CompressionConfig,
    ConversationTurn,
    Extractor,
    ReasoningState,
    now_ms,
)
from .extraction import DEFAULT_EXTRACTOR, split_sentences

logger = logging.getLogger(__name__)

CHUNK_SIZE = 5
MAX_KEY_SENTENCES = 3

# camelCase keys accepted in plain-mapping configs
_CAMEL_KEYS = {
    "maxRecentTurns": "max_recent_turns",
    "targetTokenBudget": "target_token_budget",
    "preserveCodeBlocks": "preserve_code_blocks",
    "preserveToolCalls": "preserve_tool_calls",
    "autoCompressThreshold": "auto_compress_threshold",
}


def resolve_compression_config(
    config: CompressionConfig | Mapping[str, Any] | None,
) -> CompressionConfig:
    """Shallow-merge a partial config over the defaults."""
    if config is None:
        return CompressionConfig()
    if isinstance(config, CompressionConfig):
        return config
    known = {f.name for f in fields(CompressionConfig)}
    overrides: dict[str, Any] = {}
    for key, value in config.items():
        name = _CAMEL_KEYS.get(key, key)
        if name in known and value is not None:
            overrides[name] = value
    return CompressionConfig(**overrides)


def generate_summary(
    turns: list[ConversationTurn],
    config: CompressionConfig | None = None,
    extractor: Extractor | None = None,
) -> str:
    """Render a chunk of turns as a line-per-fact extractive summary.

    User turns keep their first 200 characters. Assistant turns contribute
    their code blocks and tool calls (when preserved), their first sentence,
    and up to three keyword-bearing sentences. System and tool turns are
    dropped.
    """
    config = config or CompressionConfig()
    extractor = extractor or DEFAULT_EXTRACTOR
    lines: list[str] = []

    for turn in turns:
        if turn.role == "user":
            text = turn.content[:200] + ("..." if len(turn.content) > 200 else "")
            lines.append(f"[USER]: {text}")
            continue
        if turn.role != "assistant":
            continue

        if config.preserve_code_blocks:
            for block in turn.code_blocks:
                code = block.code
                if len(code) > 500:
                    code = code[:500] + "\n// ... truncated"
                label = f" ({block.filename})" if block.filename else ""
                lines.append(f"[ASSISTANT CODE{label}]: ```{block.language}\n{code}\n```")

        if config.preserve_tool_calls:
            for call in turn.tool_calls:
                args = json.dumps(call.arguments, separators=(",", ":"))[:100]
                lines.append(f"[ASSISTANT TOOL]: Called {call.name}({args})")

        sentences = split_sentences(turn.content)
        lines.append(f"[ASSISTANT]: {sentences[0][:150]}...")
        for sentence in extractor.key_sentences(turn.content)[:MAX_KEY_SENTENCES]:
            lines.append(f"[ASSISTANT KEY]: {sentence[:200]}")

    return "\n".join(lines)


def _round2(value: float) -> float:
    """Two decimals, halves rounded up."""
    return math.floor(value * 100 + 0.5) / 100


def _compress_chunk(
    turns: list[ConversationTurn],
    index: int,
    start: int,
    config: CompressionConfig,
    extractor: Extractor,
) -> CompressedSegment:
    summary = generate_summary(turns, config, extractor)
    raw = " ".join(t.content for t in turns)
    raw_tokens = estimate_tokens(raw)
    ratio = _round2(estimate_tokens(summary) / raw_tokens) if raw_tokens else 0.0

    return CompressedSegment(
        id=f"segment_{index}",
        turn_range=(start, start + len(turns) - 1),
        summary=summary,
        key_decisions=tuple(extractor.decisions(t.content for t in turns if t.role == "assistant")),
        preserved_invariants=tuple(extractor.invariants(t.content for t in turns)),
        original_turn_count=len(turns),
        compression_ratio=ratio,
    )


def compress_history(
    state: ReasoningState,
    config: CompressionConfig | Mapping[str, Any] | None = None,
    extractor: Extractor | None = None,
) -> ReasoningState:
    """Fold everything but the newest ``max_recent_turns`` turns into segments.

    Returns ``state`` itself when there is nothing to fold.
    """
    cfg = resolve_compression_config(config)
    extractor = extractor or DEFAULT_EXTRACTOR
    turns = state.history.recent_turns
    if len(turns) <= cfg.max_recent_turns:
        return state

    new = copy.deepcopy(state)
    cut = len(turns) - cfg.max_recent_turns
    older = new.history.recent_turns[:cut]
    kept = new.history.recent_turns[cut:]

    segments = new.history.compressed_segments
    # turn_range is absolute over every turn ever folded
    offset = sum(s.original_turn_count for s in segments)
    index = len(segments)
    for i in range(0, len(older), CHUNK_SIZE):
        chunk = older[i:i + CHUNK_SIZE]
        segments.append(_compress_chunk(chunk, index, offset, cfg, extractor))
        offset += len(chunk)
        index += 1

    new.history.recent_turns = kept
    new.meta.updated_at = now_ms()
    logger.debug(
        "Compressed %d turns into %d segments (%d kept)",
        len(older), index - len(state.history.compressed_segments), len(kept),
    )
    return new
