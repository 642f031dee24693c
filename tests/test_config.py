"""Tests for configuration loading and validation."""

import json
import tempfile

import pytest
import yaml

from context_relay.config import DEFAULT_CONFIG_TEMPLATE, load_config, validate_config


class TestLoadConfig:
    def test_load_defaults(self):
        config = load_config(config_dict={})
        assert config.version == "0.1"
        assert config.token_counter == "estimate"
        assert config.compression.max_recent_turns == 10
        assert config.compression.auto_compress_threshold == 15
        assert config.injection.budget_fraction == 0.25
        assert config.storage.backend == "filesystem"
        assert config.storage.root == ".contextrelay/store"
        assert config.server.port == 5858

    def test_load_from_dict(self):
        config = load_config(config_dict={
            "compression": {"max_recent_turns": 4, "preserve_tool_calls": False},
            "injection": {"default_platform": "claude"},
        })
        assert config.compression.max_recent_turns == 4
        assert config.compression.preserve_tool_calls is False
        assert config.compression.preserve_code_blocks is True
        assert config.injection.default_platform == "claude"

    def test_storage_root_shortcut(self):
        config = load_config(config_dict={"storage_root": "/tmp/relay"})
        assert config.storage.root == "/tmp/relay/store"
        assert config.storage.sqlite_path == "/tmp/relay/store.db"

    def test_load_from_yaml_file(self):
        raw = {"version": "0.1", "storage": {"backend": "sqlite"}}
        with tempfile.NamedTemporaryFile(suffix=".yaml", mode="w", delete=False) as f:
            yaml.dump(raw, f)
            f.flush()
            config = load_config(config_path=f.name)
        assert config.storage.backend == "sqlite"

    def test_load_from_json_file(self):
        with tempfile.NamedTemporaryFile(suffix=".json", mode="w", delete=False) as f:
            json.dump({"server": {"port": 9000}}, f)
            f.flush()
            config = load_config(config_path=f.name)
        assert config.server.port == 9000

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nope.yaml")

    def test_discovers_config_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "context-relay.yaml").write_text("injection:\n  budget_fraction: 0.5\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().injection.budget_fraction == 0.5

    def test_template_parses_to_defaults(self):
        raw = yaml.safe_load(DEFAULT_CONFIG_TEMPLATE)
        assert load_config(config_dict=raw) == load_config(config_dict={})


class TestValidateConfig:
    def test_defaults_valid(self):
        assert validate_config(load_config(config_dict={})) == []

    def test_bad_backend(self):
        errors = validate_config(load_config(config_dict={"storage": {"backend": "redis"}}))
        assert any("storage.backend" in e for e in errors)

    def test_bad_fraction(self):
        errors = validate_config(load_config(config_dict={"injection": {"budget_fraction": 1.5}}))
        assert any("budget_fraction" in e for e in errors)

    def test_threshold_below_recent(self):
        errors = validate_config(load_config(config_dict={
            "compression": {"max_recent_turns": 10, "auto_compress_threshold": 5},
        }))
        assert any("auto_compress_threshold" in e for e in errors)

    def test_unknown_token_counter(self):
        errors = validate_config(load_config(config_dict={"token_counter": "magic"}))
        assert errors == ["Unknown token_counter mode: 'magic'"]
