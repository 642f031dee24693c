"""RelayEngine: orchestrator between capture, the core, storage and delivery."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable

from .config import load_config
from .core.compiler import compile_state_to_prompt
from .core.compressor import compress_history
from .core.delivery import HttpDeliveryTarget
from .core.injector import prepare_injection_payload
from .core.serializer import (
    add_constraint,
    add_decision,
    add_open_question,
    create_empty_state,
    export_state,
    import_state,
    ingest_turn,
    resolve_question,
    set_constraint_active,
    set_next_action,
    set_objective,
    summarize_state,
)
from .core.store import StateStore
from .storage.filesystem import FilesystemStateStore
from .storage.sqlite import SQLiteStateStore
from .token_counter import create_token_counter
from .types import (
    CompressionConfig,
    ConversationTurn,
    DeliveryTarget,
    InjectionPayload,
    ReasoningState,
    RelayConfig,
    StateNotFoundError,
    StoredStateInfo,
)

logger = logging.getLogger(__name__)

AUTO_STATE_TITLE = "Auto-captured Task"


class RelayEngine:
    """Single writer for persisted reasoning states.

    The engine holds configuration, a store and an optional delivery target,
    never a state. Each call loads its target state (explicit id, else the
    most recently saved one), applies one core transformation, persists the
    result and returns it.

    Usage:
        engine = RelayEngine(config_path="./context-relay.yaml")
        engine.ingest(turn, platform="claude", model="claude-sonnet")
        payload = engine.prepare_injection("gemini")
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: RelayConfig | None = None,
        store: StateStore | None = None,
        delivery: DeliveryTarget | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self._token_counter = create_token_counter(self.config.token_counter)
        self._lock = threading.RLock()
        self._store = store or self._build_store()
        self._delivery = delivery or self._build_delivery()

    def _build_store(self) -> StateStore:
        storage = self.config.storage
        if storage.backend == "sqlite":
            return SQLiteStateStore(db_path=storage.sqlite_path)
        if storage.backend == "filesystem":
            return FilesystemStateStore(root=storage.root)
        raise ValueError(f"Unknown storage backend: {storage.backend}")

    def _build_delivery(self) -> DeliveryTarget | None:
        injection = self.config.injection
        if not injection.delivery_url:
            return None
        return HttpDeliveryTarget(injection.delivery_url, timeout=injection.delivery_timeout)

    @property
    def store(self) -> StateStore:
        return self._store

    # ------------------------------------------------------------------
    # State resolution
    # ------------------------------------------------------------------

    def _load(self, state_id: str | None, create: bool = False) -> ReasoningState | None:
        if state_id:
            state = self._store.load_state(state_id)
            if state is None:
                raise StateNotFoundError(state_id)
            return state
        state = self._store.get_active_state()
        if state is None and create:
            state = create_empty_state(AUTO_STATE_TITLE)
            logger.info("No active state, created %s", state.id)
        return state

    def _require(self, state_id: str | None) -> ReasoningState:
        state = self._load(state_id)
        if state is None:
            raise StateNotFoundError(state_id or "<active>")
        return state

    def _apply(
        self,
        state_id: str | None,
        transform: Callable[[ReasoningState], ReasoningState],
        create: bool = False,
    ) -> ReasoningState:
        with self._lock:
            state = self._load(state_id, create=create)
            if state is None:
                raise StateNotFoundError(state_id or "<active>")
            new = transform(state)
            self._store.save_state(new)
            return new

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def new_state(self, title: str = "Untitled Task") -> ReasoningState:
        with self._lock:
            state = create_empty_state(title)
            self._store.save_state(state)
        logger.info("Created state %s (%s)", state.id, title)
        return state

    def get_state(self, state_id: str | None = None) -> ReasoningState | None:
        """Explicit id (StateNotFoundError if unknown), else the active state or None."""
        return self._load(state_id)

    def list_states(self) -> list[StoredStateInfo]:
        return self._store.list_states()

    def delete_state(self, state_id: str) -> bool:
        with self._lock:
            deleted = self._store.delete_state(state_id)
        if deleted:
            logger.info("Deleted state %s", state_id)
        return deleted

    def close(self) -> None:
        self._store.close()

    # ------------------------------------------------------------------
    # Ingestion and compression
    # ------------------------------------------------------------------

    def ingest(
        self,
        turn: ConversationTurn,
        platform: str,
        model: str | None = None,
        state_id: str | None = None,
    ) -> ReasoningState:
        """Fold a captured turn into the state, compressing once the buffer is long."""
        compression = self.config.compression

        def transform(state: ReasoningState) -> ReasoningState:
            new = ingest_turn(state, turn, platform, model)
            if len(new.history.recent_turns) > compression.auto_compress_threshold:
                logger.debug(
                    "Auto-compressing %s: %d recent turns",
                    new.id, len(new.history.recent_turns),
                )
                new = compress_history(new, compression)
            return new

        return self._apply(state_id, transform, create=True)

    def compress(
        self,
        state_id: str | None = None,
        config: CompressionConfig | dict[str, Any] | None = None,
    ) -> ReasoningState:
        return self._apply(
            state_id, lambda s: compress_history(s, config or self.config.compression),
        )

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_decision(
        self,
        description: str,
        rationale: str = "",
        turn_id: str = "",
        alternatives: list[str] | None = None,
        state_id: str | None = None,
    ) -> ReasoningState:
        return self._apply(
            state_id, lambda s: add_decision(s, description, rationale, turn_id, alternatives),
        )

    def add_open_question(
        self, question: str, turn_id: str = "", state_id: str | None = None,
    ) -> ReasoningState:
        return self._apply(state_id, lambda s: add_open_question(s, question, turn_id))

    def resolve_question(
        self, question_id: str, resolution: str, state_id: str | None = None,
    ) -> ReasoningState:
        return self._apply(state_id, lambda s: resolve_question(s, question_id, resolution))

    def set_next_action(self, action: str, state_id: str | None = None) -> ReasoningState:
        return self._apply(state_id, lambda s: set_next_action(s, action))

    def set_objective(self, objective: str, state_id: str | None = None) -> ReasoningState:
        return self._apply(state_id, lambda s: set_objective(s, objective))

    def add_constraint(
        self, description: str, turn_id: str = "", state_id: str | None = None,
    ) -> ReasoningState:
        return self._apply(state_id, lambda s: add_constraint(s, description, turn_id))

    def set_constraint_active(
        self, constraint_id: str, active: bool, state_id: str | None = None,
    ) -> ReasoningState:
        return self._apply(state_id, lambda s: set_constraint_active(s, constraint_id, active))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def compile(self, state_id: str | None = None, token_budget: int = 4000) -> str:
        return compile_state_to_prompt(self._require(state_id), token_budget)

    def prepare_injection(
        self, platform: str | None = None, state_id: str | None = None,
    ) -> InjectionPayload:
        platform = platform or self.config.injection.default_platform
        return prepare_injection_payload(
            self._require(state_id), platform, self.config.injection.budget_fraction,
        )

    def deliver(self, platform: str | None = None, state_id: str | None = None) -> bool:
        """Prepare an injection and hand it to the delivery target."""
        payload = self.prepare_injection(platform, state_id)
        if self._delivery is None:
            logger.warning("No delivery target configured; set injection.delivery_url")
            return False
        ok = self._delivery.deliver(payload.text, payload.platform)
        logger.info("Delivery to %s %s", payload.platform, "succeeded" if ok else "failed")
        return ok

    def status(self, state_id: str | None = None) -> dict[str, Any]:
        """Counters for a state plus a token count of its compiled context."""
        state = self._require(state_id)
        summary = summarize_state(state)
        summary["id"] = state.id
        summary["title"] = state.meta.title
        summary["objective"] = state.meta.objective
        summary["nextAction"] = state.next_action
        summary["compiledTokens"] = self._token_counter(compile_state_to_prompt(state))
        return summary

    def export(self, state_id: str | None = None) -> str:
        return export_state(self._require(state_id))

    def import_json(self, text: str) -> ReasoningState:
        """Import a document and make it the active state."""
        state = import_state(text)
        with self._lock:
            self._store.save_state(state)
        logger.info("Imported state %s (%s)", state.id, state.meta.title)
        return state
