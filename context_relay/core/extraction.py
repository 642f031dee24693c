"""PatternExtractor: regex heuristics for constraints, decisions, and invariants.

A heuristic, not a parser. False positives and negatives are expected; an
absence of matches yields an empty list, never an error.
"""

from __future__ import annotations

import re
from typing import Iterable

from ..patterns import (
    CONSTRAINT_PATTERNS,
    DECISION_PATTERNS,
    INVARIANT_PATTERNS,
    KEY_SENTENCE_PATTERN,
    SENTENCE_SPLIT_PATTERN,
)

MAX_MATCH_LENGTH = 200
MAX_MATCHES = 10

_SENTENCE_SPLIT_RE = re.compile(SENTENCE_SPLIT_PATTERN)


def split_sentences(text: str) -> list[str]:
    """Split on terminal punctuation followed by whitespace."""
    return _SENTENCE_SPLIT_RE.split(text)


def _as_texts(texts: str | Iterable[str]) -> list[str]:
    if isinstance(texts, str):
        return [texts]
    return list(texts)


class PatternExtractor:
    """Scan text with fixed pattern tables.

    Each match is the full matched phrase, stripped and cut to
    ``max_length`` characters. Results are deduplicated by exact string
    equality and capped at ``max_items`` per call. When several texts are
    passed in one call, dedup and the cap span all of them.
    """

    def __init__(
        self,
        constraint_patterns: list[str] | None = None,
        decision_patterns: list[str] | None = None,
        invariant_patterns: list[str] | None = None,
        key_sentence_pattern: str = KEY_SENTENCE_PATTERN,
        max_length: int = MAX_MATCH_LENGTH,
        max_items: int = MAX_MATCHES,
    ) -> None:
        self.max_length = max_length
        self.max_items = max_items
        self._constraint_res = self._compile(constraint_patterns or CONSTRAINT_PATTERNS)
        self._decision_res = self._compile(decision_patterns or DECISION_PATTERNS)
        self._invariant_res = self._compile(invariant_patterns or INVARIANT_PATTERNS)
        self._key_re = re.compile(key_sentence_pattern, re.IGNORECASE)

    @staticmethod
    def _compile(patterns: list[str]) -> list[re.Pattern]:
        return [re.compile(p, re.IGNORECASE) for p in patterns]

    def _scan(self, compiled: list[re.Pattern], texts: str | Iterable[str]) -> list[str]:
        found: list[str] = []
        for text in _as_texts(texts):
            for pattern in compiled:
                for match in pattern.finditer(text):
                    phrase = match.group(0).strip()[: self.max_length]
                    if phrase and phrase not in found:
                        found.append(phrase)
        return found[: self.max_items]

    def constraints(self, texts: str | Iterable[str]) -> list[str]:
        return self._scan(self._constraint_res, texts)

    def decisions(self, texts: str | Iterable[str]) -> list[str]:
        return self._scan(self._decision_res, texts)

    def invariants(self, texts: str | Iterable[str]) -> list[str]:
        return self._scan(self._invariant_res, texts)

    def key_sentences(self, text: str) -> list[str]:
        """Sentences mentioning a salience keyword, in order, untruncated."""
        return [s for s in split_sentences(text) if self._key_re.search(s)]


DEFAULT_EXTRACTOR = PatternExtractor()
