"""Prompt compiler: render a ReasoningState as one bounded text block."""

from __future__ import annotations

import logging

from ..token_counter import estimate_tokens
from ..types import ReasoningState

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "\n\n[Context truncated to fit token budget]"

MAX_DECISIONS = 10
MAX_RECENT_TURNS = 5
ARTIFACT_PREVIEW_CHARS = 500
TURN_PREVIEW_CHARS = 300


def _header(state: ReasoningState) -> str:
    meta = state.meta
    return (
        f"# Task Continuation Context (Context Relay v{state.schema_version})\n"
        f"**Task**: {meta.title}\n"
        f"**Objective**: {meta.objective}\n"
        f"**Total Turns**: {meta.total_turns} across {', '.join(meta.platforms)}\n"
        f"**Models Used**: {', '.join(meta.models)}\n"
    )


def _render_sections(state: ReasoningState) -> list[str]:
    sections = [_header(state)]

    active = [c for c in state.constraints if c.active]
    if active:
        sections.append(
            "## Active Constraints\n" + "\n".join(f"- {c.description}" for c in active)
        )

    if state.decisions:
        sections.append(
            "## Key Decisions\n" + "\n".join(
                f"- **{d.description}**: {d.rationale}"
                for d in state.decisions[-MAX_DECISIONS:]
            )
        )

    if state.artifacts:
        sections.append(
            "## Active Artifacts\n" + "\n\n".join(
                f"### {a.name} (v{a.version}, {a.type})\n"
                f"```{a.language or ''}\n{a.content[:ARTIFACT_PREVIEW_CHARS]}\n```"
                for a in state.artifacts
            )
        )

    unresolved = [q for q in state.open_questions if not q.resolved]
    if unresolved:
        sections.append(
            "## Unresolved Questions\n" + "\n".join(f"- {q.question}" for q in unresolved)
        )

    if state.next_action:
        sections.append(f"## Next Intended Action\n{state.next_action}")

    segments = state.history.compressed_segments
    if segments:
        sections.append(
            "## Conversation Summary (Compressed)\n" + "\n\n".join(
                f"### Segment ({s.original_turn_count} turns, "
                f"{s.compression_ratio:g}x compression)\n{s.summary}"
                for s in segments
            )
        )

    recent = state.history.recent_turns
    if recent:
        lines = []
        for turn in recent[-MAX_RECENT_TURNS:]:
            text = turn.content[:TURN_PREVIEW_CHARS]
            if len(turn.content) > TURN_PREVIEW_CHARS:
                text += "..."
            lines.append(f"[{turn.role.upper()}]: {text}")
        sections.append("## Recent Conversation\n" + "\n".join(lines))

    return sections


def compile_state_to_prompt(state: ReasoningState, token_budget: int = 4000) -> str:
    """Render the state, cutting the tail once if it overshoots ``token_budget``.

    Truncation is by character ratio and ignores section boundaries, so the
    cut may land mid-sentence.
    """
    compiled = SECTION_SEPARATOR.join(_render_sections(state))
    tokens = estimate_tokens(compiled)
    if tokens > token_budget:
        keep = int(len(compiled) * token_budget / tokens)
        logger.debug("Truncating compiled context: %d tokens > budget %d", tokens, token_budget)
        compiled = compiled[:keep] + TRUNCATION_MARKER
    return compiled
