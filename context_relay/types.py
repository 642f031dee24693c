"""All dataclasses, Protocols, errors, and type aliases for context-relay."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Literal, Protocol, runtime_checkable

SCHEMA_VERSION = "0.1.0"

MessageRole = Literal["user", "assistant", "system", "tool"]
ConstraintSource = Literal["user", "inferred"]
ArtifactType = Literal["file", "schema", "config", "snippet", "other"]
InjectionMethod = Literal["system_prompt", "user_message", "prefill"]
StreamingProtocol = Literal["sse", "websocket", "polling", "unknown"]


def now_ms() -> int:
    """Current wall-clock time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Conversation primitives
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CodeBlock:
    language: str
    code: str
    filename: str | None = None


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict = field(default_factory=dict)
    result: str | None = None


@dataclass(frozen=True)
class TurnTokens:
    prompt: int | None = None
    completion: int | None = None


@dataclass(frozen=True)
class ConversationTurn:
    """One message from one role. Never mutated after capture."""
    id: str
    role: str  # "user", "assistant", "system", "tool"
    content: str
    timestamp: int = field(default_factory=now_ms)
    model: str | None = None
    code_blocks: tuple[CodeBlock, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    edited_from: str | None = None  # id of the turn this one was edited from
    tokens: TurnTokens | None = None


# ---------------------------------------------------------------------------
# Reasoning state
# ---------------------------------------------------------------------------

@dataclass
class Constraint:
    id: str
    description: str
    source: str = "inferred"  # "user" or "inferred"
    turn_id: str = ""
    active: bool = True


@dataclass
class Decision:
    id: str
    timestamp: int
    description: str
    rationale: str = ""
    alternatives: list[str] | None = None
    turn_id: str = ""


@dataclass
class Artifact:
    id: str
    name: str
    type: str = "snippet"  # "file", "schema", "config", "snippet", "other"
    content: str = ""
    language: str | None = None
    last_modified_turn_id: str = ""
    version: int = 1


@dataclass
class OpenQuestion:
    id: str
    question: str
    turn_id: str = ""
    resolved: bool = False
    resolution: str | None = None


@dataclass(frozen=True)
class CompressedSegment:
    """Lossy, immutable record of a contiguous run of folded turns."""
    id: str
    turn_range: tuple[int, int]
    summary: str
    key_decisions: tuple[str, ...] = ()
    preserved_invariants: tuple[str, ...] = ()
    original_turn_count: int = 0
    compression_ratio: float = 0.0


@dataclass
class ProvenanceEntry:
    platform: str
    model: str
    turn_ids: list[str] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)


@dataclass
class StateMeta:
    title: str = "Untitled Task"
    objective: str = ""
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    total_turns: int = 0
    platforms: list[str] = field(default_factory=list)
    models: list[str] = field(default_factory=list)


@dataclass
class History:
    recent_turns: list[ConversationTurn] = field(default_factory=list)
    compressed_segments: list[CompressedSegment] = field(default_factory=list)


@dataclass
class ReasoningState:
    """The portable unit of work: everything needed to resume a task elsewhere."""
    id: str = field(default_factory=new_id)
    schema_version: str = SCHEMA_VERSION
    meta: StateMeta = field(default_factory=StateMeta)
    constraints: list[Constraint] = field(default_factory=list)
    decisions: list[Decision] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)
    open_questions: list[OpenQuestion] = field(default_factory=list)
    next_action: str = ""
    history: History = field(default_factory=History)
    provenance: list[ProvenanceEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Injection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlatformCapabilities:
    platform: str
    supports_system_prompt: bool = False
    supports_streaming: bool = False
    streaming_protocol: str = "unknown"  # "sse", "websocket", "polling", "unknown"
    max_context_tokens: int = 4000
    supports_tool_calls: bool = False
    supports_code_execution: bool = False
    supports_file_upload: bool = False
    injection_method: str = "user_message"  # "system_prompt", "user_message", "prefill"


@dataclass
class StoredStateInfo:
    """Index row describing one persisted state."""
    id: str
    title: str
    updated_at: int
    saved_at: int
    total_turns: int = 0


@dataclass
class InjectionPayload:
    text: str
    method: str
    token_estimate: int
    platform: str = "unknown"
    token_budget: int = 0


@runtime_checkable
class DeliveryTarget(Protocol):
    """Puts injection text in front of a live chat session. True on success."""

    def deliver(self, text: str, platform: str) -> bool: ...


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

@runtime_checkable
class Extractor(Protocol):
    """Pattern table -> list of matched sentences. Never raises."""

    def constraints(self, texts: str | Iterable[str]) -> list[str]: ...

    def decisions(self, texts: str | Iterable[str]) -> list[str]: ...

    def invariants(self, texts: str | Iterable[str]) -> list[str]: ...

    def key_sentences(self, text: str) -> list[str]: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StateImportError(Exception):
    """Base class for failures while importing a state document."""


class ParseError(StateImportError):
    """The document is not valid JSON."""


class SchemaMismatchError(StateImportError):
    def __init__(self, found: object) -> None:
        super().__init__(f"Unsupported schema version: {found!r} (expected {SCHEMA_VERSION})")
        self.found = found


class ValidationError(StateImportError):
    """A required top-level field is missing or malformed."""


class StateNotFoundError(KeyError):
    def __init__(self, state_id: str) -> None:
        super().__init__(state_id)
        self.state_id = state_id

    def __str__(self) -> str:
        return f"No reasoning state with id {self.state_id!r}"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class CompressionConfig:
    max_recent_turns: int = 10
    target_token_budget: int = 4000  # informational; never enforced
    preserve_code_blocks: bool = True
    preserve_tool_calls: bool = True
    auto_compress_threshold: int = 15  # engine compresses once recent turns exceed this


@dataclass
class InjectionConfig:
    budget_fraction: float = 0.25
    default_platform: str = "unknown"
    delivery_url: str = ""
    delivery_timeout: float = 10.0


@dataclass
class StorageConfig:
    backend: str = "filesystem"
    root: str = ".contextrelay/store"
    sqlite_path: str = ".contextrelay/store.db"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 5858


@dataclass
class RelayConfig:
    version: str = "0.1"
    token_counter: str = "estimate"
    compression: CompressionConfig = field(default_factory=CompressionConfig)
    injection: InjectionConfig = field(default_factory=InjectionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
