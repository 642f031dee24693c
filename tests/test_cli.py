"""Tests for the `context-relay` CLI."""

from __future__ import annotations

import json
import subprocess
import sys

import pytest


@pytest.fixture()
def tmp_cwd(tmp_path, monkeypatch):
    """Run test in a clean temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _run_cli(*args: str, stdin: str | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "context_relay.cli.main", *args],
        capture_output=True,
        text=True,
        input=stdin,
    )


def test_init_creates_config(tmp_cwd):
    result = _run_cli("init")
    assert result.returncode == 0
    content = (tmp_cwd / "context-relay.yaml").read_text()
    assert "compression:" in content
    assert "storage:" in content


def test_init_refuses_overwrite(tmp_cwd):
    (tmp_cwd / "context-relay.yaml").write_text("existing content")
    result = _run_cli("init")
    assert result.returncode != 0
    assert "already exists" in result.stderr
    assert (tmp_cwd / "context-relay.yaml").read_text() == "existing content"


def test_init_force(tmp_cwd):
    (tmp_cwd / "context-relay.yaml").write_text("existing content")
    assert _run_cli("init", "--force").returncode == 0
    assert "compression:" in (tmp_cwd / "context-relay.yaml").read_text()


def test_config_validate(tmp_cwd):
    _run_cli("init")
    result = _run_cli("config", "validate")
    assert result.returncode == 0
    assert "Config is valid." in result.stdout


def test_config_validate_rejects_bad_backend(tmp_cwd):
    (tmp_cwd / "context-relay.yaml").write_text("storage:\n  backend: redis\n")
    result = _run_cli("config", "validate")
    assert result.returncode == 1
    assert "storage.backend" in result.stdout


def test_status_empty(tmp_cwd):
    result = _run_cli("status")
    assert result.returncode == 0
    assert "No reasoning states saved yet." in result.stdout


def test_new_and_states(tmp_cwd):
    result = _run_cli("new", "CLI task")
    assert result.returncode == 0
    state_id = result.stdout.split()[2]
    listing = _run_cli("states")
    assert state_id in listing.stdout
    assert "CLI task" in listing.stdout


def test_ingest_then_export(tmp_cwd):
    _run_cli("new", "Ingest")
    assert _run_cli("ingest", "You must validate input.", "--platform", "claude").returncode == 0
    assert _run_cli("ingest", "--role", "assistant", stdin="Decided to use pydantic.").returncode == 0

    result = _run_cli("export")
    doc = json.loads(result.stdout)
    assert doc["meta"]["title"] == "Ingest"
    assert doc["meta"]["totalTurns"] == 2
    assert doc["constraints"][0]["description"] == "must validate input."


def test_ingest_refuses_empty(tmp_cwd):
    result = _run_cli("ingest", "   ")
    assert result.returncode == 1


def test_status_json(tmp_cwd):
    _run_cli("new", "Json")
    _run_cli("decide", "Use argparse", "--rationale", "stdlib")
    _run_cli("next", "Write docs")
    status = json.loads(_run_cli("status", "--json").stdout)
    assert status["decisions"] == 1
    assert status["nextAction"] == "Write docs"


def test_export_import_file(tmp_cwd):
    _run_cli("new", "Portable")
    assert _run_cli("export", "-o", "state.json").returncode == 0
    result = _run_cli("import", "state.json")
    assert result.returncode == 0
    assert "Portable" in result.stdout


def test_import_bad_file(tmp_cwd):
    (tmp_cwd / "bad.json").write_text('{"schemaVersion":"9.9.9","id":"x","meta":{}}')
    result = _run_cli("import", "bad.json")
    assert result.returncode == 1
    assert "SchemaMismatchError" in result.stderr


def test_compile_without_state(tmp_cwd):
    result = _run_cli("compile")
    assert result.returncode == 1


def test_inject_json(tmp_cwd):
    _run_cli("new", "Inject")
    payload = json.loads(_run_cli("inject", "gemini", "--json").stdout)
    assert payload["method"] == "user_message"
    assert "Inject" in payload["text"]
