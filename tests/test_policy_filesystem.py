"""
Tests for PolicyFilesystemBackend and PolicyFilesystemMiddleware.
"""

from pathlib import Path

from vel_toolguard.backends.real import PolicyFilesystemBackend
from vel_toolguard.config import PolicyConfig, ToolguardConfig
from vel_toolguard.middleware.filesystem import PolicyFilesystemMiddleware
from vel_toolguard.session import ToolguardSession


def make_backend(tmp_path: Path) -> PolicyFilesystemBackend:
    session = ToolguardSession(ToolguardConfig(policy=PolicyConfig(base_dir=str(tmp_path))))
    return PolicyFilesystemBackend(session.policy)


def test_read_records_access(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("one\ntwo\nthree\n")
    backend = make_backend(tmp_path)

    result = backend.read_file("a.txt", offset=1, limit=1)

    assert "error" not in result
    assert "two" in result["content"]
    assert result["lines_returned"] == 1
    assert result["has_more"] is True
    assert backend.policy.access_record.has_been_read(str(tmp_path / "a.txt"))


def test_failed_read_not_recorded(tmp_path: Path) -> None:
    backend = make_backend(tmp_path)
    result = backend.read_file("missing.txt")
    assert "does not exist" in result["error"]
    assert len(backend.policy.access_record) == 0


def test_edit_requires_prior_read(tmp_path: Path) -> None:
    target = tmp_path / "a.py"
    target.write_text("x = 1\n")
    backend = make_backend(tmp_path)

    blocked = backend.edit_file("a.py", "x = 1", "x = 2")
    assert blocked["status"] == "error"
    assert "must be read" in blocked["error"]
    assert target.read_text() == "x = 1\n"

    backend.read_file("a.py")
    assert backend.edit_file("a.py", "x = 1", "x = 2")["status"] == "success"
    assert target.read_text() == "x = 2\n"


def test_edit_requires_unique_match(tmp_path: Path) -> None:
    (tmp_path / "a.py").write_text("x\nx\n")
    backend = make_backend(tmp_path)
    backend.read_file("a.py")
    result = backend.edit_file("a.py", "x", "y")
    assert "must be unique" in result["error"]


def test_overwrite_requires_read(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("old")
    backend = make_backend(tmp_path)

    assert backend.write_file("a.txt", "new")["status"] == "error"
    backend.read_file("a.txt")
    assert backend.write_file("a.txt", "new")["status"] == "success"


def test_write_new_file_then_edit(tmp_path: Path) -> None:
    backend = make_backend(tmp_path)
    assert backend.write_file("sub/new.txt", "hello")["status"] == "success"
    # written content counts as known
    assert backend.edit_file("sub/new.txt", "hello", "bye")["status"] == "success"


def test_create_refuses_existing(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("keep me")
    backend = make_backend(tmp_path)

    result = backend.create_file("a.txt", "clobbered")
    assert "already exists" in result["error"]
    assert (tmp_path / "a.txt").read_text() == "keep me"
    assert backend.create_file("b.txt", "fresh")["status"] == "success"


def test_middleware_tools(tmp_path: Path) -> None:
    session = ToolguardSession(ToolguardConfig(policy=PolicyConfig(base_dir=str(tmp_path))))
    middleware = PolicyFilesystemMiddleware(session)

    names = [t.name for t in middleware.get_tools()]
    assert names == ["read_file", "write_file", "create_file", "edit_file"]
    for tool in middleware.get_tools():
        assert tool.category == "filesystem"
    assert "read_file" in middleware.get_system_prompt_segment()


def test_middleware_shares_session_policy(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("hi")
    session = ToolguardSession(ToolguardConfig(policy=PolicyConfig(base_dir=str(tmp_path))))
    middleware = PolicyFilesystemMiddleware(session)

    middleware._read_file("a.txt")
    assert str(tmp_path / "a.txt") in session.access_record
