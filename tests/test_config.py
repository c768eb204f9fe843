"""
Tests for ToolguardConfig loading.
"""

import json

import pytest

from vel_toolguard.config import (
    DEFAULT_EXCLUDED_DIRS,
    DEFAULT_TOOLS,
    ConfigError,
    ExecutorConfig,
    STORAGE_DIR_ENV,
    ToolguardConfig,
)


class TestDefaults:
    def test_defaults(self):
        config = ToolguardConfig()
        assert config.summary.inline_threshold == 100
        assert config.summary.preview_lines == 50
        assert config.executor.timeout_seconds is None
        assert config.policy.require_read_before_edit is True
        assert config.tools.enabled == DEFAULT_TOOLS
        assert config.tools.excluded_dirs == DEFAULT_EXCLUDED_DIRS

    def test_default_lists_not_shared(self):
        first = ToolguardConfig()
        first.tools.enabled.append("extra")
        assert "extra" not in ToolguardConfig().tools.enabled


class TestFromDict:
    def test_sections(self):
        config = ToolguardConfig.from_dict({
            "executor": {"storage_dir": "/var/tmp/out", "timeout_seconds": 30},
            "summary": {"inline_threshold": 200, "preview_lines": 20},
            "policy": {"base_dir": "/work", "url_allowlist": ["^https://intranet/"]},
            "tools": {"enabled": ["shell"], "working_dir": "/work"},
        })
        assert config.executor.storage_dir == "/var/tmp/out"
        assert config.executor.timeout_seconds == 30
        assert config.summary.inline_threshold == 200
        assert config.summary.preview_lines == 20
        assert config.policy.base_dir == "/work"
        assert config.policy.url_allowlist == ["^https://intranet/"]
        assert config.tools.enabled == ["shell"]
        assert config.tools.working_dir == "/work"

    def test_shorthand_forms(self):
        config = ToolguardConfig.from_dict({
            "executor": "/var/tmp/out",
            "policy": False,
            "tools": ["find_files", "search_text"],
        })
        assert config.executor.storage_dir == "/var/tmp/out"
        assert config.policy.require_read_before_edit is False
        assert config.policy.allow_existing_file_creation is True
        assert config.tools.enabled == ["find_files", "search_text"]

    def test_empty(self):
        assert ToolguardConfig.from_dict({}) == ToolguardConfig()

    def test_round_trip_through_dict(self):
        config = ToolguardConfig.from_dict({"summary": {"inline_threshold": 7}})
        assert ToolguardConfig.from_dict(config.to_dict()) == config


class TestFromFile:
    def test_yaml(self, tmp_path):
        path = tmp_path / "toolguard.yaml"
        path.write_text("summary:\n  inline_threshold: 42\n")
        assert ToolguardConfig.from_file(path).summary.inline_threshold == 42

    def test_json(self, tmp_path):
        path = tmp_path / "toolguard.json"
        path.write_text(json.dumps({"executor": {"kill_grace_seconds": 5}}))
        assert ToolguardConfig.from_file(path).executor.kill_grace_seconds == 5.0

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "toolguard.yaml"
        path.write_text("")
        assert ToolguardConfig.from_file(path) == ToolguardConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ToolguardConfig.from_file(tmp_path / "nope.yaml")

    def test_malformed(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("summary: [unclosed\n")
        with pytest.raises(ConfigError):
            ToolguardConfig.from_file(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            ToolguardConfig.from_file(path)


class TestStorageDir:
    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv(STORAGE_DIR_ENV, "/from/env")
        assert ExecutorConfig().resolve_storage_dir() == "/from/env"
        assert ExecutorConfig(storage_dir="/configured").resolve_storage_dir() == "/configured"

    def test_unset(self, monkeypatch):
        monkeypatch.delenv(STORAGE_DIR_ENV, raising=False)
        assert ExecutorConfig().resolve_storage_dir() is None
