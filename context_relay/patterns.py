"""Regex pattern tables for heuristic extraction and platform detection.

Kept in a standalone module so the pattern tables can be swapped or extended
without touching the extractor, the serializer, or the compressor.
"""

CONSTRAINT_PATTERNS: list[str] = [
    r"must\s+(.+?)(?:\.|$)",
    r"should\s+not\s+(.+?)(?:\.|$)",
    r"always\s+(.+?)(?:\.|$)",
    r"never\s+(.+?)(?:\.|$)",
    r"requirement:\s*(.+?)(?:\.|$)",
    r"constraint:\s*(.+?)(?:\.|$)",
    r"do\s+not\s+(.+?)(?:\.|$)",
]

DECISION_PATTERNS: list[str] = [
    r"(?:decided|chose|selected|going with|opted for|will use)\s+(.+?)(?:\.|$)",
    r"(?:decision|approach|strategy):\s*(.+?)(?:\.|$)",
    r"(?:let's|we'll|i'll)\s+(.+?)(?:\.|$)",
]

INVARIANT_PATTERNS: list[str] = [
    r"(?:always|must always|never change|keep|maintain|preserve)\s+(.+?)(?:\.|$)",
    r"(?:requirement|constraint|invariant):\s*(.+?)(?:\.|$)",
    r"(?:do not|don't|cannot|must not)\s+(.+?)(?:\.|$)",
]

KEY_SENTENCE_PATTERN = r"\b(?:important|note|key|critical|must|decision|constraint)\b"

SENTENCE_SPLIT_PATTERN = r"[.!?]\s+"

CODE_FENCE_PATTERN = r"```(\w*)\n([\s\S]*?)```"

# platform -> URL patterns, checked in order
PLATFORM_URL_PATTERNS: dict[str, list[str]] = {
    "chatgpt": [r"chatgpt\.com", r"chat\.openai\.com"],
    "claude": [r"claude\.ai"],
    "gemini": [r"gemini\.google\.com"],
    "grok": [r"grok\.x\.ai", r"grok\.com", r"x\.com/i/grok"],
    "perplexity": [r"perplexity\.ai"],
    "deepseek": [r"chat\.deepseek\.com"],
    "kimi": [r"kimi\.moonshot\.cn", r"kimi\.com"],
    "manus": [r"manus\.im"],
    "copilot": [r"copilot\.microsoft\.com"],
    "you": [r"you\.com"],
    "poe": [r"poe\.com"],
    "huggingchat": [r"huggingface\.co/chat"],
    "qwen": [r"chat\.qwen\.ai", r"tongyi\.aliyun\.com"],
    "mistral": [r"chat\.mistral\.ai"],
    "cohere": [r"coral\.cohere\.com", r"dashboard\.cohere\.com/playground"],
}
