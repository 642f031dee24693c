"""Capture-side helpers: platform detection, turn construction, dedup.

The DOM observers that feed these live outside this package. They call
``build_turn`` on each message element they see and drop anything the
``TurnDeduplicator`` has already seen before handing the turn to the engine.
"""

from __future__ import annotations

import hashlib
import itertools
import re
from collections import OrderedDict

from ..patterns import CODE_FENCE_PATTERN, PLATFORM_URL_PATTERNS
from ..types import CodeBlock, ConversationTurn, ToolCall, TurnTokens, now_ms

_CODE_FENCE_RE = re.compile(CODE_FENCE_PATTERN)
_PLATFORM_RES: dict[str, list[re.Pattern]] = {
    platform: [re.compile(p, re.IGNORECASE) for p in patterns]
    for platform, patterns in PLATFORM_URL_PATTERNS.items()
}

_turn_sequence = itertools.count(1)


def detect_platform(url: str) -> str:
    """Platform id for a chat page URL, or ``"unknown"``."""
    for platform, patterns in _PLATFORM_RES.items():
        if any(p.search(url) for p in patterns):
            return platform
    return "unknown"


def extract_code_blocks(content: str) -> list[CodeBlock]:
    """Fenced code blocks in order. Missing language tags become ``text``."""
    return [
        CodeBlock(language=m.group(1) or "text", code=m.group(2).strip())
        for m in _CODE_FENCE_RE.finditer(content)
    ]


def build_turn(
    role: str,
    content: str,
    platform: str,
    model: str | None = None,
    *,
    tool_calls: list[ToolCall] | None = None,
    edited_from: str | None = None,
    tokens: TurnTokens | None = None,
    code_blocks: list[CodeBlock] | None = None,
    sequence: int | None = None,
) -> ConversationTurn:
    """Make a turn with id ``<platform>_turn_<n>_<ms>``.

    Code blocks are pulled from ``content`` unless given explicitly.
    """
    timestamp = now_ms()
    n = sequence if sequence is not None else next(_turn_sequence)
    if code_blocks is None:
        code_blocks = extract_code_blocks(content)
    return ConversationTurn(
        id=f"{platform}_turn_{n}_{timestamp}",
        role=role,
        content=content,
        timestamp=timestamp,
        model=model,
        code_blocks=tuple(code_blocks),
        tool_calls=tuple(tool_calls or ()),
        edited_from=edited_from,
        tokens=tokens,
    )


def content_hash(role: str, content: str) -> str:
    return hashlib.sha256(f"{role}\x00{content}".encode()).hexdigest()[:16]


class TurnDeduplicator:
    """Remembers recently seen (role, content) pairs.

    DOM observers re-report the same message when a page re-renders. This
    keeps the last ``capacity`` hashes so those repeats can be dropped at the
    capture edge.
    """

    def __init__(self, capacity: int = 2000) -> None:
        self.capacity = capacity
        self._seen: OrderedDict[str, None] = OrderedDict()

    def seen(self, role: str, content: str) -> bool:
        """True if the pair was remembered before. Records nothing."""
        key = content_hash(role, content)
        if key in self._seen:
            self._seen.move_to_end(key)
            return True
        return False

    def remember(self, role: str, content: str) -> None:
        key = content_hash(role, content)
        self._seen[key] = None
        self._seen.move_to_end(key)
        if len(self._seen) > self.capacity:
            self._seen.popitem(last=False)

    def is_duplicate(self, role: str, content: str) -> bool:
        """True if seen before. Otherwise records the pair and returns False."""
        if self.seen(role, content):
            return True
        self.remember(role, content)
        return False

    def clear(self) -> None:
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._seen)
