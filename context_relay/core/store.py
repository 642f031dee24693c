"""StateStore abstract base class: persistence keyed by state id."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..types import ReasoningState, StoredStateInfo


class StateStore(ABC):
    """Pluggable storage backend for reasoning states."""

    @abstractmethod
    def save_state(self, state: ReasoningState) -> str:
        """Store a state. Upsert on id. Returns the id."""

    @abstractmethod
    def load_state(self, state_id: str) -> ReasoningState | None:
        """Load a state by id. None if not found.

        A stored document that no longer imports raises the import error.
        """

    @abstractmethod
    def list_states(self) -> list[StoredStateInfo]:
        """All stored states, most recently saved first."""

    @abstractmethod
    def delete_state(self, state_id: str) -> bool:
        """Delete a state by id. Returns True if deleted."""

    def get_state_ids(self) -> list[str]:
        return [info.id for info in self.list_states()]

    def get_active_state(self) -> ReasoningState | None:
        """The most recently saved state, or None if the store is empty."""
        infos = self.list_states()
        if not infos:
            return None
        return self.load_state(infos[0].id)

    def close(self) -> None:
        """Release any held resources."""
