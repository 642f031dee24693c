"""CLI: context-relay init, new, states, status, ingest, compress, compile, inject, export, import, serve."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from ..config import DEFAULT_CONFIG_TEMPLATE, load_config, validate_config
from ..core.capture import build_turn
from ..core.injector import get_platform_capabilities
from ..engine import RelayEngine
from ..types import StateImportError, StateNotFoundError


def _get_engine(args) -> RelayEngine:
    return RelayEngine(config_path=args.config)


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text()


def _fmt_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def cmd_init(args):
    """Write a starter config file."""
    output = Path.cwd() / "context-relay.yaml"
    if output.exists() and not args.force:
        print(f"Config file already exists: {output}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    output.write_text(DEFAULT_CONFIG_TEMPLATE)
    print(f"Created {output}")
    print()
    print("Next steps:")
    print("  1. Validate config:   context-relay config validate")
    print("  2. Start a task:      context-relay new \"My task\"")
    print("  3. Run the server:    context-relay serve")


def cmd_config_validate(args):
    """Validate config file."""
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    else:
        print("Config is valid.")
        print(f"  Max recent turns: {config.compression.max_recent_turns}")
        print(f"  Auto-compress at: {config.compression.auto_compress_threshold}")
        print(f"  Budget fraction:  {config.injection.budget_fraction}")
        print(f"  Storage: {config.storage.backend}")


def cmd_new(args):
    state = _get_engine(args).new_state(args.title)
    print(f"Created state {state.id}")
    print(f"Title: {state.meta.title}")


def cmd_states(args):
    infos = _get_engine(args).list_states()
    if not infos:
        print("No reasoning states saved yet.")
        return

    print(f"{'ID':<38} {'Title':<30} {'Turns':>6} {'Saved':>17}")
    print("-" * 94)
    for i, info in enumerate(infos):
        marker = "*" if i == 0 else " "
        print(
            f"{marker}{info.id:<37} {info.title[:30]:<30} {info.total_turns:>6} "
            f"{_fmt_ms(info.saved_at):>17}"
        )


def cmd_status(args):
    """Show counters for the active state."""
    engine = _get_engine(args)
    if engine.get_state(args.state) is None:
        print("No reasoning states saved yet.")
        return

    status = engine.status(args.state)
    if args.json:
        print(json.dumps(status, indent=2))
        return

    print(f"State:          {status['id']}")
    print(f"Title:          {status['title']}")
    if status["objective"]:
        print(f"Objective:      {status['objective']}")
    print(f"Total Turns:    {status['totalTurns']}")
    print(f"Recent Turns:   {status['recentTurns']}")
    print(f"Segments:       {status['segments']}")
    print(f"Platforms:      {', '.join(status['platforms']) or 'n/a'}")
    print(f"Models:         {', '.join(status['models']) or 'n/a'}")
    print(f"Artifacts:      {status['artifacts']}")
    print(f"Constraints:    {status['constraints']}")
    print(f"Decisions:      {status['decisions']}")
    print(f"Open Questions: {status['openQuestions']}")
    print(f"Compiled Size:  {status['compiledTokens']:,} tokens")
    if status["nextAction"]:
        print(f"Next Action:    {status['nextAction']}")


def cmd_ingest(args):
    """Ingest one turn read from an argument, a file, or stdin."""
    content = args.content if args.content is not None else _read_text(args.file or "-")
    if not content.strip():
        print("Nothing to ingest: empty content.", file=sys.stderr)
        sys.exit(1)

    engine = _get_engine(args)
    platform = args.platform or engine.config.injection.default_platform
    turn = build_turn(args.role, content, platform, args.model)
    state = engine.ingest(turn, platform, args.model, state_id=args.state)
    print(f"Ingested {turn.id} into {state.id} ({state.meta.total_turns} turns)")


def cmd_compress(args):
    engine = _get_engine(args)
    before = engine.get_state(args.state)
    if before is None:
        print("No reasoning states saved yet.")
        return
    compression = engine.config.compression
    if args.keep:
        compression = replace(compression, max_recent_turns=args.keep)
    after = engine.compress(before.id, compression)
    added = len(after.history.compressed_segments) - len(before.history.compressed_segments)
    print(f"Compressed into {added} new segment(s); {len(after.history.recent_turns)} recent turns kept.")


def cmd_compile(args):
    print(_get_engine(args).compile(args.state, args.budget))


def cmd_inject(args):
    """Print (or deliver) the injection text for a platform."""
    engine = _get_engine(args)
    if args.deliver:
        ok = engine.deliver(args.platform, args.state)
        print("Delivered." if ok else "Delivery failed.", file=sys.stderr)
        sys.exit(0 if ok else 1)

    payload = engine.prepare_injection(args.platform, args.state)
    if args.json:
        print(json.dumps({
            "text": payload.text,
            "method": payload.method,
            "tokenEstimate": payload.token_estimate,
        }, indent=2))
        return
    caps = get_platform_capabilities(payload.platform)
    print(payload.text)
    print(
        f"\n# {payload.platform}: ~{payload.token_estimate:,} tokens "
        f"(budget {payload.token_budget:,} of {caps.max_context_tokens:,}), method={payload.method}",
        file=sys.stderr,
    )


def cmd_export(args):
    text = _get_engine(args).export(args.state)
    if args.output:
        Path(args.output).write_text(text)
        print(f"Exported to {args.output}")
    else:
        print(text)


def cmd_import(args):
    state = _get_engine(args).import_json(_read_text(args.source))
    print(f"Imported state {state.id} ({state.meta.title})")


def cmd_decide(args):
    state = _get_engine(args).add_decision(
        args.description, args.rationale, alternatives=args.alternative or None,
        state_id=args.state,
    )
    print(f"Recorded decision ({len(state.decisions)} total)")


def cmd_ask(args):
    state = _get_engine(args).add_open_question(args.question, state_id=args.state)
    print(f"Recorded question {state.open_questions[-1].id}")


def cmd_resolve(args):
    _get_engine(args).resolve_question(args.question_id, args.resolution, state_id=args.state)
    print(f"Resolved {args.question_id}")


def cmd_next(args):
    _get_engine(args).set_next_action(args.action, state_id=args.state)
    print("Next action updated.")


def cmd_objective(args):
    _get_engine(args).set_objective(args.objective, state_id=args.state)
    print("Objective updated.")


def cmd_serve(args):
    """Start the HTTP capture/injection server."""
    import uvicorn

    from ..server import create_app

    config = load_config(args.config)
    host = args.host or config.server.host
    port = args.port or config.server.port
    app = create_app(config_path=args.config)
    print(f"context-relay server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


def cmd_mcp(args):
    """Start the MCP server on stdio."""
    import os

    if args.config:
        os.environ["CONTEXT_RELAY_CONFIG"] = args.config
    from ..mcp.server import serve
    serve()


COMMANDS = {
    "init": cmd_init,
    "new": cmd_new,
    "states": cmd_states,
    "status": cmd_status,
    "ingest": cmd_ingest,
    "compress": cmd_compress,
    "compile": cmd_compile,
    "inject": cmd_inject,
    "export": cmd_export,
    "import": cmd_import,
    "decide": cmd_decide,
    "ask": cmd_ask,
    "resolve": cmd_resolve,
    "next": cmd_next,
    "objective": cmd_objective,
    "serve": cmd_serve,
    "mcp": cmd_mcp,
}


def main():
    parser = argparse.ArgumentParser(
        prog="context-relay",
        description="Carry a task's reasoning state from one LLM chat to another",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--state", "-s", help="State id (default: most recently saved)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    init_parser = subparsers.add_parser("init", help="Write a starter context-relay.yaml")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing config")

    new_parser = subparsers.add_parser("new", help="Create an empty reasoning state")
    new_parser.add_argument("title", nargs="?", default="Untitled Task")

    subparsers.add_parser("states", help="List saved reasoning states")

    status_parser = subparsers.add_parser("status", help="Show counters for a state")
    status_parser.add_argument("--json", action="store_true", help="Print JSON")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest one conversation turn")
    ingest_parser.add_argument("content", nargs="?", help="Turn text (default: --file or stdin)")
    ingest_parser.add_argument("--file", "-f", help="Read turn text from a file ('-' for stdin)")
    ingest_parser.add_argument(
        "--role", default="user", choices=["user", "assistant", "system", "tool"],
    )
    ingest_parser.add_argument("--platform", "-p", help="Source platform id")
    ingest_parser.add_argument("--model", "-m", help="Source model id")

    compress_parser = subparsers.add_parser("compress", help="Fold older turns into segments")
    compress_parser.add_argument("--keep", type=int, help="Recent turns to keep (default from config)")

    compile_parser = subparsers.add_parser("compile", help="Print the compiled continuation brief")
    compile_parser.add_argument("--budget", "-b", type=int, default=4000, help="Token budget")

    inject_parser = subparsers.add_parser("inject", help="Build the injection text for a platform")
    inject_parser.add_argument("platform", nargs="?", help="Target platform id")
    inject_parser.add_argument("--json", action="store_true", help="Print JSON payload")
    inject_parser.add_argument("--deliver", action="store_true", help="Send to injection.delivery_url")

    export_parser = subparsers.add_parser("export", help="Export a state as JSON")
    export_parser.add_argument("--output", "-o", help="Write to file instead of stdout")

    import_parser = subparsers.add_parser("import", help="Import a state JSON document")
    import_parser.add_argument("source", help="Path to JSON file ('-' for stdin)")

    decide_parser = subparsers.add_parser("decide", help="Record a decision")
    decide_parser.add_argument("description")
    decide_parser.add_argument("--rationale", "-r", default="")
    decide_parser.add_argument(
        "--alternative", "-a", action="append", help="Rejected alternative (repeatable)",
    )

    ask_parser = subparsers.add_parser("ask", help="Record an open question")
    ask_parser.add_argument("question")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve an open question")
    resolve_parser.add_argument("question_id")
    resolve_parser.add_argument("resolution")

    next_parser = subparsers.add_parser("next", help="Set the next intended action")
    next_parser.add_argument("action")

    objective_parser = subparsers.add_parser("objective", help="Set the task objective")
    objective_parser.add_argument("objective")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP capture/injection server")
    serve_parser.add_argument("--host", help="Bind host (default from config)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default from config)")

    subparsers.add_parser("mcp", help="Start the MCP server (stdio)")

    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            print("Usage: context-relay config validate")
            sys.exit(1)
        return

    try:
        COMMANDS[args.command](args)
    except StateImportError as e:
        print(f"Import failed ({type(e).__name__}): {e}", file=sys.stderr)
        sys.exit(1)
    except StateNotFoundError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
