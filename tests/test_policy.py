"""
Tests for the file-operation policy

Tests the policy checks including:
- creation guard against existing files
- relative path resolution and malformed paths
- read-before-edit
- URL allow-listing and user-provided URLs
- dispatch through validate_file_operation
"""

import threading
from pathlib import Path

import pytest

from vel_toolguard.config import PolicyConfig
from vel_toolguard.policy.access import AccessRecord
from vel_toolguard.policy.enforcer import FileOperationPolicy, PolicyDecision


class TestAccessRecord:
    def test_record_and_query(self):
        record = AccessRecord()
        record.record("/a.txt")
        assert record.has_been_read("/a.txt")
        assert "/a.txt" in record
        assert "/b.txt" not in record
        assert len(record) == 1

    def test_clear(self):
        record = AccessRecord()
        record.record("/a.txt")
        record.clear()
        assert len(record) == 0

    def test_concurrent_records(self):
        record = AccessRecord()

        def worker(offset):
            for i in range(200):
                record.record(f"/file-{offset}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(record) == 1600
        assert record.snapshot() == sorted(record.snapshot())


class TestCreation:
    def test_new_file_allowed(self, policy, tmp_path):
        assert policy.validate_file_creation(str(tmp_path / "new.txt")).is_valid

    def test_existing_file_blocked(self, policy, tmp_path):
        existing = tmp_path / "exists.txt"
        existing.write_text("x")
        decision = policy.validate_file_creation(str(existing))
        assert decision.is_valid is False
        assert decision.should_block is True
        assert "already exists" in decision.message

    def test_existing_creation_can_be_allowed(self, tmp_path):
        existing = tmp_path / "exists.txt"
        existing.write_text("x")
        policy = FileOperationPolicy(PolicyConfig(allow_existing_file_creation=True))
        assert policy.validate_file_creation(str(existing)).is_valid


class TestPathResolution:
    def test_relative_resolved_against_base(self, policy, tmp_path):
        decision = policy.validate_and_resolve_path("src/app.py")
        assert decision.is_valid
        assert decision.corrected_value == str(tmp_path / "src" / "app.py")
        assert "Resolved" in decision.message

    def test_explicit_base_dir_wins(self, policy, tmp_path):
        other = tmp_path / "other"
        decision = policy.validate_and_resolve_path("x.txt", base_dir=str(other))
        assert decision.corrected_value == str(other / "x.txt")

    def test_relative_blocked_when_resolution_disabled(self):
        policy = FileOperationPolicy(PolicyConfig(auto_resolve_to_absolute=False))
        decision = policy.validate_and_resolve_path("x.txt")
        assert decision.should_block
        assert "absolute" in decision.message

    def test_absolute_passthrough(self, policy):
        assert policy.validate_and_resolve_path("/etc/hosts").corrected_value == "/etc/hosts"

    @pytest.mark.parametrize("path", ["", "   ", "/tmp//x", "/tmp\\x"])
    def test_bad_paths_blocked(self, policy, path):
        assert policy.validate_and_resolve_path(path).should_block


class TestReadBeforeEdit:
    def test_unread_file_blocked(self, policy):
        decision = policy.validate_read_before_edit("/project/a.py")
        assert decision.should_block
        assert "must be read" in decision.message

    def test_read_file_allowed(self, policy):
        policy.record_read("/project/a.py")
        assert policy.validate_read_before_edit("/project/a.py").is_valid

    def test_new_file_exempt(self, policy):
        assert policy.validate_read_before_edit("/project/a.py", is_new_file=True).is_valid

    def test_disabled(self):
        policy = FileOperationPolicy(PolicyConfig(require_read_before_edit=False))
        assert policy.validate_read_before_edit("/project/a.py").is_valid

    def test_records_are_per_policy(self):
        first = FileOperationPolicy()
        second = FileOperationPolicy()
        first.record_read("/project/a.py")
        assert not second.validate_read_before_edit("/project/a.py").is_valid


class TestUrls:
    def test_trusted_domains(self, policy):
        for url in ("https://github.com/org/repo", "https://docs.python.org/3/", "https://pypi.org/project/x"):
            assert policy.validate_url(url).is_valid, url

    def test_unlisted_blocked(self, policy):
        decision = policy.validate_url("https://evil.example.com/payload")
        assert decision.should_block
        assert "allow-list" in decision.message

    def test_user_provided_allowed_and_remembered(self, policy):
        url = "https://blog.example.com/post"
        assert policy.validate_url(url, is_user_provided=True).is_valid
        assert policy.user_provided_urls() == [url]
        # later fetches of the same URL in the turn are allowed
        assert policy.validate_url(url).is_valid

    def test_user_urls_cleared(self, policy):
        url = "https://blog.example.com/post"
        policy.register_user_provided_url(url)
        policy.clear_user_provided_urls()
        assert policy.validate_url(url).should_block

    def test_configured_allowlist(self):
        policy = FileOperationPolicy(PolicyConfig(url_allowlist=[r"^https://intranet\.corp/"]))
        assert policy.validate_url("https://intranet.corp/wiki").is_valid

    @pytest.mark.parametrize("url", ["", "ftp://github.com/x", "not a url", "https://"])
    def test_invalid_urls(self, policy, url):
        assert policy.validate_url(url).should_block

    def test_blocking_disabled(self):
        policy = FileOperationPolicy(PolicyConfig(block_unlisted_urls=False))
        assert policy.validate_url("https://anything.example").is_valid


class TestValidateFileOperation:
    """Tests for the combined dispatcher."""

    def test_read_always_allowed(self, policy, tmp_path):
        decision = policy.validate_file_operation("read", "notes.txt")
        assert decision.is_valid
        assert decision.corrected_value == str(tmp_path / "notes.txt")

    def test_edit_requires_read(self, policy, tmp_path):
        assert policy.validate_file_operation("edit", "a.py").should_block
        policy.record_read(str(tmp_path / "a.py"))
        assert policy.validate_file_operation("edit", "a.py").is_valid

    def test_write_to_new_path_allowed(self, policy):
        assert policy.validate_file_operation("write", "brand-new.txt").is_valid

    def test_write_over_existing_requires_read(self, policy, tmp_path):
        (tmp_path / "existing.txt").write_text("x")
        decision = policy.validate_file_operation("write", "existing.txt")
        assert decision.should_block

    def test_create_existing_blocked(self, policy, tmp_path):
        (tmp_path / "existing.txt").write_text("x")
        assert policy.validate_file_operation("create", "existing.txt").should_block

    def test_unknown_operation(self, policy):
        decision = policy.validate_file_operation("delete", "/x")
        assert decision.should_block
        assert "Unknown file operation" in decision.message

    def test_decision_to_dict(self):
        d = PolicyDecision.block("nope").to_dict()
        assert d == {"is_valid": False, "should_block": True, "message": "nope"}
        assert PolicyDecision.allow(corrected_value="/x").to_dict()["corrected_value"] == "/x"
