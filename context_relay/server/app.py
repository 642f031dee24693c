"""HTTP surface for capture and delivery collaborators.

Browser-side capture scripts post turns here and pull injection payloads
back. Every route goes through one RelayEngine, which serializes writes.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..core.capture import TurnDeduplicator, build_turn, detect_platform, extract_code_blocks
from ..core.injector import get_platform_capabilities, list_platforms
from ..core.serializer import state_to_dict, summarize_state, turn_from_dict
from ..engine import RelayEngine
from ..types import InjectionPayload, ReasoningState, StateImportError, StateNotFoundError

logger = logging.getLogger(__name__)


def _payload_to_dict(payload: InjectionPayload) -> dict:
    return {
        "text": payload.text,
        "method": payload.method,
        "tokenEstimate": payload.token_estimate,
        "platform": payload.platform,
        "tokenBudget": payload.token_budget,
    }


def _capabilities_to_dict(platform: str) -> dict:
    caps = get_platform_capabilities(platform)
    return {
        "platform": caps.platform,
        "supportsSystemPrompt": caps.supports_system_prompt,
        "supportsStreaming": caps.supports_streaming,
        "streamingProtocol": caps.streaming_protocol,
        "maxContextTokens": caps.max_context_tokens,
        "supportsToolCalls": caps.supports_tool_calls,
        "supportsCodeExecution": caps.supports_code_execution,
        "supportsFileUpload": caps.supports_file_upload,
        "injectionMethod": caps.injection_method,
    }


def _state_response(state: ReasoningState) -> dict:
    return {"success": True, "state": state_to_dict(state)}


async def _body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def create_app(
    config_path: str | None = None,
    *,
    engine: RelayEngine | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config_path: Path to a context-relay config file.
        engine: Reuse an existing engine instead of building one.
    """
    engine = engine or RelayEngine(config_path=config_path)
    dedupe = TurnDeduplicator()

    app = FastAPI(title="context-relay", version=__version__)
    app.state.engine = engine

    @app.exception_handler(StateImportError)
    async def _import_error(request: Request, exc: StateImportError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(exc), "errorType": type(exc).__name__},
        )

    @app.exception_handler(StateNotFoundError)
    async def _not_found(request: Request, exc: StateNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": str(exc), "errorType": "StateNotFoundError"},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    @app.get("/platforms")
    async def platforms():
        return {"platforms": [_capabilities_to_dict(p) for p in list_platforms()]}

    @app.post("/platform")
    async def platform_detected(request: Request):
        body = await _body(request)
        platform = body.get("platform") or detect_platform(body.get("url", ""))
        logger.info("Platform detected: %s", platform)
        return {"platform": platform, "capabilities": _capabilities_to_dict(platform)}

    @app.post("/turns")
    async def turn_captured(request: Request):
        body = await _body(request)
        raw = body.get("turn") if isinstance(body.get("turn"), dict) else body
        role = raw.get("role", "user")
        content = raw.get("content", "")
        if not isinstance(content, str) or not content.strip():
            return {"success": True, "skipped": True, "reason": "empty"}

        url = body.get("url")
        platform = body.get("platform") or (
            detect_platform(url) if url else engine.config.injection.default_platform
        )
        model = body.get("model") or raw.get("model")

        check_duplicate = bool(body.get("dedupe"))
        if check_duplicate and dedupe.seen(role, content):
            return {"success": True, "skipped": True, "reason": "duplicate"}

        if raw.get("id"):
            turn = turn_from_dict(raw)
            if "codeBlocks" not in raw:
                turn = replace(turn, code_blocks=tuple(extract_code_blocks(content)))
        else:
            turn = build_turn(role, content, platform, model)

        state = engine.ingest(turn, platform, model, state_id=body.get("stateId"))
        # recorded only once the turn is stored
        if check_duplicate:
            dedupe.remember(role, content)
        return {"success": True, "turnId": turn.id, "stateId": state.id,
                "summary": summarize_state(state)}

    @app.get("/state")
    async def get_state(state_id: str | None = None):
        state = engine.get_state(state_id)
        if state is None:
            return {"success": True, "state": None}
        return _state_response(state)

    @app.get("/states")
    async def list_states():
        return {"states": [
            {
                "id": info.id,
                "title": info.title,
                "updatedAt": info.updated_at,
                "savedAt": info.saved_at,
                "totalTurns": info.total_turns,
            }
            for info in engine.list_states()
        ]}

    @app.post("/states")
    async def new_state(request: Request):
        body = await _body(request)
        return _state_response(engine.new_state(body.get("title") or "Untitled Task"))

    @app.delete("/states/{state_id}")
    async def delete_state(state_id: str):
        if not engine.delete_state(state_id):
            raise StateNotFoundError(state_id)
        return {"success": True}

    @app.post("/inject")
    async def inject(request: Request):
        body = await _body(request)
        payload = engine.prepare_injection(body.get("platform"), state_id=body.get("stateId"))
        result = {"success": True, "payload": _payload_to_dict(payload)}
        if body.get("deliver"):
            result["delivered"] = engine.deliver(body.get("platform"), state_id=body.get("stateId"))
        return result

    @app.get("/export")
    async def export(state_id: str | None = None):
        return {"success": True, "json": engine.export(state_id)}

    @app.post("/import")
    async def import_state(request: Request):
        body = await _body(request)
        text = body.get("json")
        if not isinstance(text, str):
            text = (await request.body()).decode()
        state = engine.import_json(text)
        return _state_response(state)

    @app.post("/states/{state_id}/compress")
    async def compress(state_id: str, request: Request):
        body = await _body(request)
        return _state_response(engine.compress(state_id, body.get("config")))

    @app.post("/states/{state_id}/decisions")
    async def add_decision(state_id: str, request: Request):
        body = await _body(request)
        state = engine.add_decision(
            body.get("description", ""),
            body.get("rationale", ""),
            body.get("turnId", ""),
            body.get("alternatives"),
            state_id=state_id,
        )
        return _state_response(state)

    @app.post("/states/{state_id}/questions")
    async def add_question(state_id: str, request: Request):
        body = await _body(request)
        state = engine.add_open_question(
            body.get("question", ""), body.get("turnId", ""), state_id=state_id,
        )
        return _state_response(state)

    @app.post("/states/{state_id}/questions/{question_id}/resolve")
    async def resolve_question(state_id: str, question_id: str, request: Request):
        body = await _body(request)
        state = engine.resolve_question(
            question_id, body.get("resolution", ""), state_id=state_id,
        )
        return _state_response(state)

    @app.post("/states/{state_id}/next-action")
    async def next_action(state_id: str, request: Request):
        body = await _body(request)
        return _state_response(engine.set_next_action(body.get("action", ""), state_id=state_id))

    @app.post("/states/{state_id}/objective")
    async def objective(state_id: str, request: Request):
        body = await _body(request)
        return _state_response(engine.set_objective(body.get("objective", ""), state_id=state_id))

    @app.post("/states/{state_id}/constraints")
    async def add_constraint(state_id: str, request: Request):
        body = await _body(request)
        state = engine.add_constraint(
            body.get("description", ""), body.get("turnId", ""), state_id=state_id,
        )
        return _state_response(state)

    @app.post("/states/{state_id}/constraints/{constraint_id}")
    async def set_constraint(state_id: str, constraint_id: str, request: Request):
        body = await _body(request)
        state = engine.set_constraint_active(
            constraint_id, bool(body.get("active", True)), state_id=state_id,
        )
        return _state_response(state)

    return app
