"""Injection adapter: capability profiles, token budget and framing.

Produces the text to paste into a fresh chat session. Getting it onto the page
is the job of a DeliveryTarget.
"""

from __future__ import annotations

import math

from ..token_counter import estimate_tokens
from ..types import InjectionPayload, PlatformCapabilities, ReasoningState
from .compiler import compile_state_to_prompt

DEFAULT_BUDGET_FRACTION = 0.25


def _profile(
    platform: str,
    max_context_tokens: int,
    system_prompt: bool = False,
    tools: bool = False,
    code: bool = False,
    files: bool = False,
    protocol: str = "sse",
) -> PlatformCapabilities:
    return PlatformCapabilities(
        platform=platform,
        supports_system_prompt=system_prompt,
        supports_streaming=True,
        streaming_protocol=protocol,
        max_context_tokens=max_context_tokens,
        supports_tool_calls=tools,
        supports_code_execution=code,
        supports_file_upload=files,
        injection_method="user_message",
    )


UNKNOWN_PROFILE = PlatformCapabilities(platform="unknown")

PLATFORM_PROFILES: dict[str, PlatformCapabilities] = {
    "chatgpt": _profile("chatgpt", 128000, tools=True, code=True, files=True),
    "claude": _profile("claude", 200000, tools=True, files=True),
    "gemini": _profile("gemini", 1000000, system_prompt=True, tools=True, code=True, files=True),
    "grok": _profile("grok", 128000),
    "perplexity": _profile("perplexity", 128000, files=True),
    "deepseek": _profile("deepseek", 128000, tools=True, code=True, files=True),
    "kimi": _profile("kimi", 200000, files=True),
    "manus": _profile("manus", 128000, tools=True, code=True, files=True),
    "copilot": _profile("copilot", 128000, files=True),
    "you": _profile("you", 128000),
    "poe": _profile("poe", 128000, files=True, protocol="websocket"),
    "huggingchat": _profile("huggingchat", 32000, system_prompt=True),
    "qwen": _profile("qwen", 128000, files=True),
    "mistral": _profile("mistral", 128000, tools=True),
    "cohere": _profile("cohere", 128000, tools=True, files=True),
    "unknown": UNKNOWN_PROFILE,
}

INJECTION_HEADER = """\
[CONTEXT CONTINUATION - Injected by Context Relay]
You are continuing a task that was previously worked on across multiple LLM sessions.
The following is a structured state snapshot. Treat it as ground truth for the task.
Do NOT re-derive or question the decisions below unless asked.
Resume from where the previous session left off.

"""

INJECTION_FOOTER = """
---
[END OF INJECTED CONTEXT]
Please acknowledge this context and continue with the next action described above."""


def get_platform_capabilities(platform: str) -> PlatformCapabilities:
    """Profile for ``platform``, or the conservative unknown profile."""
    return PLATFORM_PROFILES.get(platform, UNKNOWN_PROFILE)


def list_platforms() -> list[str]:
    return [p for p in PLATFORM_PROFILES if p != "unknown"]


def build_injection_wrapper(compiled: str) -> str:
    return INJECTION_HEADER + compiled + INJECTION_FOOTER


def injection_budget(caps: PlatformCapabilities, budget_fraction: float = DEFAULT_BUDGET_FRACTION) -> int:
    return math.floor(caps.max_context_tokens * budget_fraction)


def prepare_injection_payload(
    state: ReasoningState,
    platform: str,
    budget_fraction: float = DEFAULT_BUDGET_FRACTION,
) -> InjectionPayload:
    """Compile ``state`` for ``platform`` and wrap it in continuation framing."""
    caps = get_platform_capabilities(platform)
    budget = injection_budget(caps, budget_fraction)
    text = build_injection_wrapper(compile_state_to_prompt(state, budget))
    return InjectionPayload(
        text=text,
        method=caps.injection_method,
        token_estimate=estimate_tokens(text),
        platform=caps.platform,
        token_budget=budget,
    )
