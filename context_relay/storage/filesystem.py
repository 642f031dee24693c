"""FilesystemStateStore: one JSON document per state + JSON index."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..core.serializer import export_state, import_state, is_safe_state_id
from ..core.store import StateStore
from ..types import ReasoningState, StoredStateInfo, now_ms

logger = logging.getLogger(__name__)


def _state_to_index_entry(state: ReasoningState, saved_at: int) -> dict:
    return {
        "id": state.id,
        "title": state.meta.title,
        "updatedAt": state.meta.updated_at,
        "savedAt": saved_at,
        "totalTurns": state.meta.total_turns,
    }


def _index_entry_to_info(entry: dict) -> StoredStateInfo:
    return StoredStateInfo(
        id=entry["id"],
        title=entry.get("title", ""),
        updated_at=entry.get("updatedAt", 0),
        saved_at=entry.get("savedAt", 0),
        total_turns=entry.get("totalTurns", 0),
    )


class FilesystemStateStore(StateStore):
    """Store states as ``<root>/states/<id>.json`` with an ``_index.json`` beside them.

    The index keeps save order: the last entry is the most recently saved.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._states_dir = self.root / "states"
        self._index_path = self.root / "_index.json"
        self._index: dict[str, dict] = {}
        self._ensure_root()
        self._load_index()

    def _ensure_root(self) -> None:
        self._states_dir.mkdir(parents=True, exist_ok=True)

    def _load_index(self) -> None:
        if self._index_path.is_file():
            try:
                data = json.loads(self._index_path.read_text())
                self._index = {entry["id"]: entry for entry in data}
            except (json.JSONDecodeError, KeyError, TypeError):
                logger.warning("Unreadable index at %s, starting empty", self._index_path)
                self._index = {}
        else:
            self._index = {}

    def _save_index(self) -> None:
        self._index_path.write_text(json.dumps(list(self._index.values()), indent=2))

    def _state_path(self, state_id: str) -> Path:
        if not is_safe_state_id(state_id):
            raise ValueError(f"Invalid state id: {state_id!r}")
        return self._states_dir / f"{state_id}.json"

    def save_state(self, state: ReasoningState) -> str:
        self._state_path(state.id).write_text(export_state(state))
        # re-insert so the index stays in save order
        self._index.pop(state.id, None)
        self._index[state.id] = _state_to_index_entry(state, now_ms())
        self._save_index()
        return state.id

    def load_state(self, state_id: str) -> ReasoningState | None:
        if state_id not in self._index:
            return None
        path = self._state_path(state_id)
        if not path.is_file():
            return None
        return import_state(path.read_text())

    def list_states(self) -> list[StoredStateInfo]:
        return [_index_entry_to_info(e) for e in reversed(list(self._index.values()))]

    def delete_state(self, state_id: str) -> bool:
        entry = self._index.pop(state_id, None)
        if entry is None:
            return False
        path = self._state_path(state_id)
        if path.is_file():
            path.unlink()
        self._save_index()
        return True
