"""State accumulator: ingest turns, mutate state, export/import JSON documents.

Every operation takes a ReasoningState and returns a new one built from a
deep copy. The caller's value is never touched, so older references stay valid.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any

from ..types import (
    SCHEMA_VERSION,
    Artifact,
    CodeBlock,
    CompressedSegment,
    Constraint,
    ConversationTurn,
    Decision,
    Extractor,
    History,
    OpenQuestion,
    ParseError,
    ProvenanceEntry,
    ReasoningState,
    SchemaMismatchError,
    StateMeta,
    ToolCall,
    TurnTokens,
    ValidationError,
    new_id,
    now_ms,
)
from .extraction import DEFAULT_EXTRACTOR

logger = logging.getLogger(__name__)

UNKNOWN_MODEL = "unknown"


def create_empty_state(title: str = "Untitled Task") -> ReasoningState:
    now = now_ms()
    return ReasoningState(
        id=new_id(),
        schema_version=SCHEMA_VERSION,
        meta=StateMeta(title=title, created_at=now, updated_at=now),
    )


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

def _upsert_artifact(state: ReasoningState, block: CodeBlock, turn_id: str) -> None:
    name = block.filename or f"snippet_{len(state.artifacts) + 1}"
    for artifact in state.artifacts:
        if artifact.name == name:
            artifact.content = block.code
            artifact.language = block.language
            artifact.last_modified_turn_id = turn_id
            artifact.version += 1
            return
    state.artifacts.append(Artifact(
        id=new_id(),
        name=name,
        type="file" if block.filename else "snippet",
        content=block.code,
        language=block.language,
        last_modified_turn_id=turn_id,
        version=1,
    ))


def _record_provenance(
    state: ReasoningState, platform: str, model: str, turn_id: str, timestamp: int,
) -> None:
    for entry in state.provenance:
        if entry.platform == platform and entry.model == model:
            entry.turn_ids.append(turn_id)
            entry.timestamp = timestamp
            return
    state.provenance.append(ProvenanceEntry(
        platform=platform, model=model, turn_ids=[turn_id], timestamp=timestamp,
    ))


def ingest_turn(
    state: ReasoningState,
    turn: ConversationTurn,
    platform: str,
    model: str | None = None,
    extractor: Extractor | None = None,
) -> ReasoningState:
    """Fold one captured turn into the state.

    Appends the turn, bumps counters, upserts an artifact per code block,
    harvests constraints from user turns and records provenance. Performs no
    deduplication: ingesting the same turn twice counts it twice.
    """
    extractor = extractor or DEFAULT_EXTRACTOR
    new = copy.deepcopy(state)
    now = now_ms()

    new.history.recent_turns.append(turn)
    new.meta.total_turns += 1
    new.meta.updated_at = now

    if platform not in new.meta.platforms:
        new.meta.platforms.append(platform)
    if model and model not in new.meta.models:
        new.meta.models.append(model)

    for block in turn.code_blocks:
        _upsert_artifact(new, block, turn.id)

    if turn.role == "user":
        known = {c.description for c in new.constraints}
        for description in extractor.constraints(turn.content):
            if description in known:
                continue
            known.add(description)
            new.constraints.append(Constraint(
                id=new_id(),
                description=description,
                source="inferred",
                turn_id=turn.id,
                active=True,
            ))

    _record_provenance(new, platform, model or UNKNOWN_MODEL, turn.id, now)

    logger.debug(
        "Ingested %s turn %s from %s (total=%d)",
        turn.role, turn.id, platform, new.meta.total_turns,
    )
    return new


# ---------------------------------------------------------------------------
# Targeted mutators
# ---------------------------------------------------------------------------

def add_decision(
    state: ReasoningState,
    description: str,
    rationale: str,
    turn_id: str,
    alternatives: list[str] | None = None,
) -> ReasoningState:
    new = copy.deepcopy(state)
    now = now_ms()
    new.decisions.append(Decision(
        id=new_id(),
        timestamp=now,
        description=description,
        rationale=rationale,
        alternatives=list(alternatives) if alternatives is not None else None,
        turn_id=turn_id,
    ))
    new.meta.updated_at = now
    return new


def add_open_question(state: ReasoningState, question: str, turn_id: str) -> ReasoningState:
    new = copy.deepcopy(state)
    new.open_questions.append(OpenQuestion(id=new_id(), question=question, turn_id=turn_id))
    return new


def resolve_question(state: ReasoningState, question_id: str, resolution: str) -> ReasoningState:
    """Mark a question resolved. Unknown ids leave the state unchanged."""
    new = copy.deepcopy(state)
    for question in new.open_questions:
        if question.id == question_id:
            question.resolved = True
            question.resolution = resolution
            return new
    logger.debug("resolve_question: no question with id %s", question_id)
    return new


def set_next_action(state: ReasoningState, action: str) -> ReasoningState:
    new = copy.deepcopy(state)
    new.next_action = action
    new.meta.updated_at = now_ms()
    return new


def set_objective(state: ReasoningState, objective: str) -> ReasoningState:
    new = copy.deepcopy(state)
    new.meta.objective = objective
    new.meta.updated_at = now_ms()
    return new


def add_constraint(
    state: ReasoningState, description: str, turn_id: str = "", source: str = "user",
) -> ReasoningState:
    """Append an explicit constraint unless one with the same description exists."""
    new = copy.deepcopy(state)
    if any(c.description == description for c in new.constraints):
        return new
    new.constraints.append(Constraint(
        id=new_id(), description=description, source=source, turn_id=turn_id, active=True,
    ))
    new.meta.updated_at = now_ms()
    return new


def set_constraint_active(state: ReasoningState, constraint_id: str, active: bool) -> ReasoningState:
    new = copy.deepcopy(state)
    for constraint in new.constraints:
        if constraint.id == constraint_id:
            constraint.active = active
            new.meta.updated_at = now_ms()
            break
    return new


def summarize_state(state: ReasoningState) -> dict[str, Any]:
    """Counters shown by status displays."""
    return {
        "totalTurns": state.meta.total_turns,
        "platforms": list(state.meta.platforms),
        "models": list(state.meta.models),
        "artifacts": len(state.artifacts),
        "constraints": len(state.constraints),
        "decisions": len(state.decisions),
        "openQuestions": sum(1 for q in state.open_questions if not q.resolved),
        "segments": len(state.history.compressed_segments),
        "recentTurns": len(state.history.recent_turns),
    }


# ---------------------------------------------------------------------------
# Document conversion (camelCase wire shape)
# ---------------------------------------------------------------------------

def _put(d: dict, key: str, value: Any) -> None:
    if value is not None:
        d[key] = value


def turn_to_dict(turn: ConversationTurn) -> dict:
    d: dict[str, Any] = {
        "id": turn.id,
        "role": turn.role,
        "content": turn.content,
        "timestamp": turn.timestamp,
    }
    _put(d, "model", turn.model)
    blocks = []
    for block in turn.code_blocks:
        b = {"language": block.language, "code": block.code}
        _put(b, "filename", block.filename)
        blocks.append(b)
    d["codeBlocks"] = blocks
    calls = []
    for call in turn.tool_calls:
        c = {"id": call.id, "name": call.name, "arguments": call.arguments}
        _put(c, "result", call.result)
        calls.append(c)
    d["toolCalls"] = calls
    _put(d, "editedFrom", turn.edited_from)
    if turn.tokens is not None:
        tokens: dict[str, int] = {}
        _put(tokens, "prompt", turn.tokens.prompt)
        _put(tokens, "completion", turn.tokens.completion)
        d["tokens"] = tokens
    return d


def _segment_to_dict(segment: CompressedSegment) -> dict:
    return {
        "id": segment.id,
        "turnRange": list(segment.turn_range),
        "summary": segment.summary,
        "keyDecisions": list(segment.key_decisions),
        "preservedInvariants": list(segment.preserved_invariants),
        "originalTurnCount": segment.original_turn_count,
        "compressionRatio": segment.compression_ratio,
    }


def state_to_dict(state: ReasoningState) -> dict:
    meta = state.meta
    decisions = []
    for dec in state.decisions:
        d = {
            "id": dec.id,
            "timestamp": dec.timestamp,
            "description": dec.description,
            "rationale": dec.rationale,
        }
        _put(d, "alternatives", list(dec.alternatives) if dec.alternatives is not None else None)
        d["turnId"] = dec.turn_id
        decisions.append(d)

    artifacts = []
    for art in state.artifacts:
        a = {"id": art.id, "name": art.name, "type": art.type, "content": art.content}
        _put(a, "language", art.language)
        a["lastModifiedTurnId"] = art.last_modified_turn_id
        a["version"] = art.version
        artifacts.append(a)

    questions = []
    for q in state.open_questions:
        d = {"id": q.id, "question": q.question, "turnId": q.turn_id, "resolved": q.resolved}
        _put(d, "resolution", q.resolution)
        questions.append(d)

    return {
        "id": state.id,
        "schemaVersion": state.schema_version,
        "meta": {
            "title": meta.title,
            "objective": meta.objective,
            "createdAt": meta.created_at,
            "updatedAt": meta.updated_at,
            "totalTurns": meta.total_turns,
            "platforms": list(meta.platforms),
            "models": list(meta.models),
        },
        "constraints": [
            {
                "id": c.id,
                "description": c.description,
                "source": c.source,
                "turnId": c.turn_id,
                "active": c.active,
            }
            for c in state.constraints
        ],
        "decisions": decisions,
        "artifacts": artifacts,
        "openQuestions": questions,
        "nextAction": state.next_action,
        "history": {
            "recentTurns": [turn_to_dict(t) for t in state.history.recent_turns],
            "compressedSegments": [_segment_to_dict(s) for s in state.history.compressed_segments],
        },
        "provenance": [
            {
                "platform": p.platform,
                "model": p.model,
                "turnIds": list(p.turn_ids),
                "timestamp": p.timestamp,
            }
            for p in state.provenance
        ],
    }


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _dicts(value: Any) -> list[dict]:
    return [item for item in _list(value) if isinstance(item, dict)]


def is_safe_state_id(state_id: str) -> bool:
    """Ids double as file names in the filesystem store."""
    return bool(state_id) and state_id not in (".", "..") and not any(
        sep in state_id for sep in ("/", "\\", "\x00")
    )


def _str(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def _int(value: Any, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def turn_from_dict(d: dict) -> ConversationTurn:
    tokens = d.get("tokens")
    return ConversationTurn(
        id=str(d.get("id", "")),
        role=d.get("role", "user"),
        content=d.get("content", ""),
        timestamp=d.get("timestamp", now_ms()),
        model=d.get("model"),
        code_blocks=tuple(
            CodeBlock(
                language=b.get("language", "text"),
                code=b.get("code", ""),
                filename=b.get("filename"),
            )
            for b in _dicts(d.get("codeBlocks"))
        ),
        tool_calls=tuple(
            ToolCall(
                id=str(c.get("id", "")),
                name=c.get("name", ""),
                arguments=c.get("arguments") if isinstance(c.get("arguments"), dict) else {},
                result=c.get("result"),
            )
            for c in _dicts(d.get("toolCalls"))
        ),
        edited_from=d.get("editedFrom"),
        tokens=(
            TurnTokens(prompt=tokens.get("prompt"), completion=tokens.get("completion"))
            if isinstance(tokens, dict) else None
        ),
    )


def _segment_from_dict(d: dict) -> CompressedSegment:
    turn_range = _list(d.get("turnRange"))
    start, end = (turn_range + [0, 0])[:2]
    return CompressedSegment(
        id=str(d.get("id", "")),
        turn_range=(start, end),
        summary=d.get("summary", ""),
        key_decisions=tuple(_list(d.get("keyDecisions"))),
        preserved_invariants=tuple(_list(d.get("preservedInvariants"))),
        original_turn_count=d.get("originalTurnCount", 0),
        compression_ratio=d.get("compressionRatio", 0.0),
    )


def state_from_dict(doc: Any) -> ReasoningState:
    """Rebuild a state from a parsed document, defaulting anything optional.

    Raises SchemaMismatchError or ValidationError when the required
    ``schemaVersion``, ``id`` or ``meta`` fields are unusable.
    """
    if not isinstance(doc, dict):
        raise SchemaMismatchError(None)
    version = doc.get("schemaVersion")
    if version != SCHEMA_VERSION:
        raise SchemaMismatchError(version)
    if not doc.get("id"):
        raise ValidationError("Missing required field: id")
    if not is_safe_state_id(str(doc["id"])):
        raise ValidationError(f"Invalid state id: {doc['id']!r}")
    meta_raw = doc.get("meta")
    if not isinstance(meta_raw, dict):
        raise ValidationError("Missing required field: meta")

    now = now_ms()
    meta = StateMeta(
        title=_str(meta_raw.get("title"), "Imported Task"),
        objective=_str(meta_raw.get("objective"), ""),
        created_at=_int(meta_raw.get("createdAt"), now),
        updated_at=_int(meta_raw.get("updatedAt"), now),
        total_turns=_int(meta_raw.get("totalTurns"), 0),
        platforms=list(_list(meta_raw.get("platforms"))),
        models=list(_list(meta_raw.get("models"))),
    )

    history_raw = doc.get("history") if isinstance(doc.get("history"), dict) else {}

    return ReasoningState(
        id=str(doc["id"]),
        schema_version=version,
        meta=meta,
        constraints=[
            Constraint(
                id=str(c.get("id", "")),
                description=c.get("description", ""),
                source=c.get("source", "inferred"),
                turn_id=c.get("turnId", ""),
                active=c.get("active", True),
            )
            for c in _dicts(doc.get("constraints"))
        ],
        decisions=[
            Decision(
                id=str(d.get("id", "")),
                timestamp=d.get("timestamp", now),
                description=d.get("description", ""),
                rationale=d.get("rationale", ""),
                alternatives=(
                    list(d["alternatives"]) if isinstance(d.get("alternatives"), list) else None
                ),
                turn_id=d.get("turnId", ""),
            )
            for d in _dicts(doc.get("decisions"))
        ],
        artifacts=[
            Artifact(
                id=str(a.get("id", "")),
                name=a.get("name", ""),
                type=a.get("type", "snippet"),
                content=a.get("content", ""),
                language=a.get("language"),
                last_modified_turn_id=a.get("lastModifiedTurnId", ""),
                version=a.get("version", 1),
            )
            for a in _dicts(doc.get("artifacts"))
        ],
        open_questions=[
            OpenQuestion(
                id=str(q.get("id", "")),
                question=q.get("question", ""),
                turn_id=q.get("turnId", ""),
                resolved=q.get("resolved", False),
                resolution=q.get("resolution"),
            )
            for q in _dicts(doc.get("openQuestions"))
        ],
        next_action=_str(doc.get("nextAction"), ""),
        history=History(
            recent_turns=[turn_from_dict(t) for t in _dicts(history_raw.get("recentTurns"))],
            compressed_segments=[
                _segment_from_dict(s) for s in _dicts(history_raw.get("compressedSegments"))
            ],
        ),
        provenance=[
            ProvenanceEntry(
                platform=p.get("platform", "unknown"),
                model=p.get("model", UNKNOWN_MODEL),
                turn_ids=list(_list(p.get("turnIds"))),
                timestamp=p.get("timestamp", now),
            )
            for p in _dicts(doc.get("provenance"))
        ],
    )


def export_state(state: ReasoningState) -> str:
    """Pretty-printed JSON document of the full state."""
    return json.dumps(state_to_dict(state), indent=2)


def import_state(text: str) -> ReasoningState:
    """Parse an exported document.

    Raises:
        ParseError: text is not valid JSON.
        SchemaMismatchError: ``schemaVersion`` is missing or unsupported.
        ValidationError: ``id`` or ``meta`` is missing.
    """
    try:
        doc = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Invalid JSON: {e}") from e
    state = state_from_dict(doc)
    logger.debug("Imported state %s (%d turns)", state.id, state.meta.total_turns)
    return state
