"""Tests for the workspace guard and the local backend."""

import os
import sys
import threading

import pytest

from backend import LocalBackend, is_within
from errors import AccessDenied


@pytest.fixture
def backend(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    return LocalBackend(str(root))


def test_is_within_accepts_root_and_children(tmp_path):
    root = str(tmp_path / "proj")
    assert is_within(root, root)
    assert is_within(os.path.join(root, "src", "main.py"), root)


def test_is_within_rejects_sibling_with_shared_prefix(tmp_path):
    root = str(tmp_path / "proj")
    assert not is_within(str(tmp_path / "proj-evil" / "x.txt"), root)
    assert not is_within(str(tmp_path), root)


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
def test_symlink_pointing_outside_is_rejected(backend, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("secret", encoding="utf-8")
    os.symlink(str(outside), os.path.join(backend.working_directory, "link"))

    with pytest.raises(AccessDenied):
        backend.read_file("link/secret.txt")
    with pytest.raises(AccessDenied):
        backend.write_file("link/new.txt", "x")
    assert not (outside / "new.txt").exists()


def test_resolve_relative_path(backend):
    resolved = backend.resolve_path("src/app.py")
    assert resolved == os.path.join(backend.working_directory, "src", "app.py")


def test_resolve_normalizes_dot_segments_inside_root(backend):
    resolved = backend.resolve_path("src/../lib/./util.py")
    assert resolved == os.path.join(backend.working_directory, "lib", "util.py")


@pytest.mark.parametrize("path", ["../outside.txt", "a/../../outside.txt", "/etc/passwd"])
def test_resolve_rejects_escapes(backend, path):
    with pytest.raises(AccessDenied) as exc_info:
        backend.resolve_path(path)
    assert "outside the project boundaries" in str(exc_info.value)
    assert path in str(exc_info.value)


def test_resolve_rejects_sibling_prefix(backend, tmp_path):
    evil = tmp_path / "proj-evil"
    evil.mkdir()
    with pytest.raises(AccessDenied):
        backend.resolve_path(str(evil / "x.txt"))


def test_absolute_path_inside_root_is_allowed(backend):
    inside = os.path.join(backend.working_directory, "a.txt")
    assert backend.resolve_path(inside) == inside


def test_escape_is_rejected_before_any_io(backend, tmp_path):
    target = tmp_path / "victim.txt"
    with pytest.raises(AccessDenied):
        backend.write_file("../victim.txt", "pwned")
    assert not target.exists()


def test_write_creates_parent_directories(backend):
    backend.write_file("deep/nested/file.txt", "content")
    assert backend.read_file("deep/nested/file.txt") == "content"
    assert backend.is_dir("deep/nested")


def test_list_dir_reports_directories(backend):
    backend.write_file("b.txt", "")
    os.mkdir(os.path.join(backend.working_directory, "a_dir"))
    assert backend.list_dir(".") == [
        {"name": "a_dir", "isDir": True},
        {"name": "b.txt", "isDir": False},
    ]


def test_relative_path(backend):
    assert backend.relative_path("./src/../x.txt") == "x.txt"


def test_run_command_stream_collects_output(backend):
    seen = []
    out, err, rc = backend.run_command_stream(
        "echo hello && echo oops 1>&2 && exit 3",
        on_output=lambda chunk, is_stderr: seen.append((chunk, is_stderr)),
    )
    assert out == "hello\n"
    assert err == "oops\n"
    assert rc == 3
    assert ("hello\n", False) in seen
    assert ("oops\n", True) in seen


def test_run_command_runs_in_project_root(backend):
    out, _, rc = backend.run_command_stream("pwd")
    assert rc == 0
    assert os.path.realpath(out.strip()) == os.path.realpath(backend.working_directory)


def test_run_command_timeout(backend):
    _, err, rc = backend.run_command_stream("sleep 5", timeout=0.2)
    assert rc == -1
    assert "timed out" in err


@pytest.mark.skipif(sys.platform == "win32", reason="process groups")
def test_cancel_running_command(backend):
    result = {}

    def _run():
        result["rc"] = backend.run_command_stream("sleep 30")[2]

    t = threading.Thread(target=_run)
    t.start()
    for _ in range(100):
        if backend._active_process is not None:
            break
        threading.Event().wait(0.02)
    assert backend.cancel_running_command() is True
    t.join(timeout=5)
    assert not t.is_alive()
    assert result["rc"] != 0
