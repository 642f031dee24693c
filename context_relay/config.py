"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .types import (
    CompressionConfig,
    InjectionConfig,
    RelayConfig,
    ServerConfig,
    StorageConfig,
)

CONFIG_FILENAMES = [
    "context-relay.yaml",
    "context-relay.yml",
    "context-relay.json",
    "contextrelay.yaml",
    "contextrelay.yml",
    "contextrelay.json",
]

STORAGE_BACKENDS = ("filesystem", "sqlite")
TOKEN_COUNTER_MODES = ("estimate", "tiktoken")

DEFAULT_CONFIG_TEMPLATE = """\
# context-relay configuration
version: "0.1"
token_counter: estimate

compression:
  max_recent_turns: 10        # turns kept at full fidelity
  target_token_budget: 4000   # informational only
  preserve_code_blocks: true
  preserve_tool_calls: true
  auto_compress_threshold: 15 # compress once this many recent turns pile up

injection:
  budget_fraction: 0.25       # share of the target platform's context window
  default_platform: unknown
  delivery_url: ""            # optional HTTP endpoint that pastes text into a live page
  delivery_timeout: 10.0

storage:
  backend: filesystem         # filesystem | sqlite
  root: .contextrelay/store
  sqlite_path: .contextrelay/store.db

server:
  host: 127.0.0.1
  port: 5858
"""


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    return value if isinstance(value, dict) else {}


def _build_config(raw: dict[str, Any]) -> RelayConfig:
    """Build a RelayConfig from a raw dict. Unset keys keep their defaults."""
    comp_raw = _section(raw, "compression")
    defaults = CompressionConfig()
    compression = CompressionConfig(
        max_recent_turns=comp_raw.get("max_recent_turns", defaults.max_recent_turns),
        target_token_budget=comp_raw.get("target_token_budget", defaults.target_token_budget),
        preserve_code_blocks=comp_raw.get("preserve_code_blocks", defaults.preserve_code_blocks),
        preserve_tool_calls=comp_raw.get("preserve_tool_calls", defaults.preserve_tool_calls),
        auto_compress_threshold=comp_raw.get(
            "auto_compress_threshold", defaults.auto_compress_threshold,
        ),
    )

    inj_raw = _section(raw, "injection")
    injection = InjectionConfig(
        budget_fraction=inj_raw.get("budget_fraction", 0.25),
        default_platform=inj_raw.get("default_platform", "unknown"),
        delivery_url=inj_raw.get("delivery_url", "") or "",
        delivery_timeout=inj_raw.get("delivery_timeout", 10.0),
    )

    storage_raw = _section(raw, "storage")
    storage_root = raw.get("storage_root", ".contextrelay")
    storage = StorageConfig(
        backend=storage_raw.get("backend", "filesystem"),
        root=storage_raw.get("root", storage_root + "/store"),
        sqlite_path=storage_raw.get("sqlite_path", storage_root + "/store.db"),
    )

    server_raw = _section(raw, "server")
    server = ServerConfig(
        host=server_raw.get("host", "127.0.0.1"),
        port=server_raw.get("port", 5858),
    )

    return RelayConfig(
        version=str(raw.get("version", "0.1")),
        token_counter=raw.get("token_counter", "estimate"),
        compression=compression,
        injection=injection,
        storage=storage,
        server=server,
    )


def validate_config(config: RelayConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    comp = config.compression
    if comp.max_recent_turns < 1:
        errors.append("compression.max_recent_turns must be >= 1")
    if comp.auto_compress_threshold < comp.max_recent_turns:
        errors.append(
            f"compression.auto_compress_threshold ({comp.auto_compress_threshold}) must be >= "
            f"max_recent_turns ({comp.max_recent_turns})"
        )

    fraction = config.injection.budget_fraction
    if not 0 < fraction <= 1:
        errors.append(f"injection.budget_fraction must be in (0, 1], got {fraction}")

    if config.storage.backend not in STORAGE_BACKENDS:
        errors.append(
            f"storage.backend must be one of {', '.join(STORAGE_BACKENDS)}, "
            f"got '{config.storage.backend}'"
        )

    mode = config.token_counter
    if mode not in TOKEN_COUNTER_MODES and not mode.startswith("callable:"):
        errors.append(f"Unknown token_counter mode: '{mode}'")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> RelayConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
