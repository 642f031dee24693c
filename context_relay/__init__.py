"""context-relay: carry a task's reasoning state across LLM chat platforms."""

from .config import load_config
from .engine import RelayEngine
from .types import (
    ConversationTurn,
    InjectionPayload,
    ReasoningState,
    RelayConfig,
    StateImportError,
)

__version__ = "0.1.0"

__all__ = [
    "RelayEngine",
    "load_config",
    "ConversationTurn",
    "InjectionPayload",
    "ReasoningState",
    "RelayConfig",
    "StateImportError",
]
