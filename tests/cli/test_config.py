"""
Tests for toolguard_cli.config
"""

from pathlib import Path

import pytest
import yaml

from toolguard_cli.config import detect_config_file, get_config, init_config
from vel_toolguard.config import ConfigError, ToolguardConfig


class TestDetectConfigFile:
    """Tests for config discovery."""

    def test_finds_in_start_dir(self, tmp_path):
        path = tmp_path / "toolguard.yaml"
        path.write_text("{}")
        assert detect_config_file(tmp_path) == path

    def test_walks_upward(self, tmp_path):
        path = tmp_path / "toolguard.json"
        path.write_text("{}")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert detect_config_file(nested) == path

    def test_prefers_yaml_over_json(self, tmp_path):
        (tmp_path / "toolguard.json").write_text("{}")
        (tmp_path / "toolguard.yaml").write_text("{}")
        assert detect_config_file(tmp_path).name == "toolguard.yaml"


class TestGetConfig:
    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("summary:\n  preview_lines: 9\n")
        assert get_config(config_path=path).summary.preview_lines == 9

    def test_discovered(self, tmp_path):
        (tmp_path / "toolguard.yaml").write_text("summary:\n  inline_threshold: 12\n")
        assert get_config(project_dir=tmp_path).summary.inline_threshold == 12

    def test_bad_file_raises(self, tmp_path):
        path = tmp_path / "toolguard.yaml"
        path.write_text("- not a mapping\n")
        with pytest.raises(ConfigError):
            get_config(config_path=path)


class TestInitConfig:
    def test_writes_defaults(self, tmp_path):
        path = init_config(tmp_path)
        assert path == tmp_path / "toolguard.yaml"
        data = yaml.safe_load(path.read_text())
        assert ToolguardConfig.from_dict(data) == ToolguardConfig()

    def test_refuses_existing(self, tmp_path):
        init_config(tmp_path)
        with pytest.raises(FileExistsError):
            init_config(tmp_path)
