"""
Tests for tool availability lookup.
"""

import os
import stat
from pathlib import Path

from vel_toolguard.backends.availability import (
    PathToolAvailability,
    StaticToolAvailability,
    ToolAvailability,
)


def make_executable(directory: Path, name: str) -> Path:
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class TestPathToolAvailability:
    def test_finds_tool_on_custom_path(self, tmp_path):
        tool = make_executable(tmp_path, "eza")
        availability = PathToolAvailability(path=str(tmp_path))
        assert availability.resolve("eza") == str(tool)
        assert availability.is_available("eza") is True

    def test_missing_tool(self, tmp_path):
        availability = PathToolAvailability(path=str(tmp_path))
        assert availability.resolve("eza") is None
        assert availability.is_available("eza") is False

    def test_fdfind_alias(self, tmp_path):
        tool = make_executable(tmp_path, "fdfind")
        assert PathToolAvailability(path=str(tmp_path)).resolve("fd") == str(tool)

    def test_answer_is_cached(self, tmp_path):
        availability = PathToolAvailability(path=str(tmp_path))
        assert availability.resolve("jq") is None
        make_executable(tmp_path, "jq")
        # looked up once for the life of the object
        assert availability.resolve("jq") is None
        assert PathToolAvailability(path=str(tmp_path)).resolve("jq") is not None

    def test_satisfies_protocol(self):
        assert isinstance(PathToolAvailability(), ToolAvailability)


class TestStaticToolAvailability:
    def test_fixed_answers(self):
        availability = StaticToolAvailability({"eza": None, "rg": "/opt/rg"})
        assert availability.resolve("eza") is None
        assert availability.resolve("rg") == "/opt/rg"
        assert availability.resolve("jq") is None

    def test_fallback_for_unlisted(self, tmp_path):
        make_executable(tmp_path, "ls")
        availability = StaticToolAvailability(
            {"eza": None},
            fallback=PathToolAvailability(path=str(tmp_path)),
        )
        assert availability.is_available("eza") is False
        assert availability.resolve("ls") == os.path.join(str(tmp_path), "ls")
