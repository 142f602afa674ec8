"""Tests for the tool registry and dispatch."""

import os

import pytest

from backend import LocalBackend
from ledger import ChangeLedger
from tools import (
    TOOL_DEFINITIONS,
    TOOL_NAMES,
    ToolContext,
    ToolName,
    build_command_line,
    execute_tool,
    execute_tool_sync,
)


@pytest.fixture
def ctx(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    (root / "existing.txt").write_text("v1", encoding="utf-8")
    return ToolContext(backend=LocalBackend(str(root)), project_id="proj", ledger=ChangeLedger(capacity=10))


def _path(ctx, rel):
    return os.path.join(ctx.backend.working_directory, rel)


def test_definitions_cover_every_tool():
    names = [d["name"] for d in TOOL_DEFINITIONS]
    assert names == [t.value for t in ToolName]
    assert TOOL_NAMES == ", ".join(names)
    for d in TOOL_DEFINITIONS:
        assert d["input_schema"]["type"] == "object"


def test_list_files(ctx):
    result = execute_tool_sync("list_files", {"dir": "."}, ctx)
    assert result.success
    assert result.output == [{"name": "existing.txt", "isDir": False}]


def test_list_files_missing_directory(ctx):
    result = execute_tool_sync("list_files", {"dir": "nope"}, ctx)
    assert result.error == "Directory not found: nope"
    assert result.kind == "NotFound"


def test_read_file(ctx):
    result = execute_tool_sync("read_file", {"file": "existing.txt"}, ctx)
    assert result.output == "v1"


def test_read_file_missing(ctx):
    result = execute_tool_sync("read_file", {"file": "missing.txt"}, ctx)
    assert result.kind == "NotFound"
    assert result.to_content() == {"name": "read_file", "content": {"error": "File not found: missing.txt"}}


def test_read_outside_root_is_denied(ctx):
    result = execute_tool_sync("read_file", {"file": "../../etc/passwd"}, ctx)
    assert result.kind == "AccessDenied"
    assert "outside the project boundaries" in result.error


def test_write_new_file_records_creation(ctx):
    result = execute_tool_sync("write_file", {"file": "src/new.py", "content": "print(1)"}, ctx)
    assert result.output == {"status": "success", "file": "src/new.py", "previousContent": None}
    with open(_path(ctx, "src/new.py"), encoding="utf-8") as f:
        assert f.read() == "print(1)"
    [record] = ctx.ledger.entries("proj")
    assert record.file == os.path.join("src", "new.py")
    assert record.created


def test_write_existing_file_records_previous_content(ctx):
    result = execute_tool_sync("write_file", {"file": "existing.txt", "content": "v2"}, ctx)
    assert result.output["previousContent"] == "v1"
    assert ctx.ledger.entries("proj")[-1].previous_content == "v1"


def test_write_outside_root_leaves_ledger_untouched(ctx):
    result = execute_tool_sync("write_file", {"file": "../escape.txt", "content": "x"}, ctx)
    assert result.kind == "AccessDenied"
    assert ctx.ledger.entries("proj") == []


def test_undo_restores_previous_content(ctx):
    execute_tool_sync("write_file", {"file": "existing.txt", "content": "v2"}, ctx)
    result = execute_tool_sync("undo_last_write", {"projectId": "proj"}, ctx)
    assert result.output == {"status": "success", "action": "restored", "file": "existing.txt"}
    with open(_path(ctx, "existing.txt"), encoding="utf-8") as f:
        assert f.read() == "v1"


def test_undo_deletes_created_file(ctx):
    execute_tool_sync("write_file", {"file": "created.txt", "content": "x"}, ctx)
    result = execute_tool_sync("undo_last_write", {}, ctx)
    assert result.output["action"] == "deleted"
    assert not os.path.exists(_path(ctx, "created.txt"))


def test_undo_is_lifo(ctx):
    execute_tool_sync("write_file", {"file": "existing.txt", "content": "v2"}, ctx)
    execute_tool_sync("write_file", {"file": "existing.txt", "content": "v3"}, ctx)
    execute_tool_sync("undo_last_write", {}, ctx)
    with open(_path(ctx, "existing.txt"), encoding="utf-8") as f:
        assert f.read() == "v2"
    execute_tool_sync("undo_last_write", {}, ctx)
    with open(_path(ctx, "existing.txt"), encoding="utf-8") as f:
        assert f.read() == "v1"


def test_undo_with_empty_ledger(ctx):
    result = execute_tool_sync("undo_last_write", {"projectId": "proj"}, ctx)
    assert result.kind == "NoHistory"
    assert result.error == "No change history found to undo."


def test_undo_of_creation_when_file_already_gone(ctx):
    execute_tool_sync("write_file", {"file": "created.txt", "content": "x"}, ctx)
    os.remove(_path(ctx, "created.txt"))
    result = execute_tool_sync("undo_last_write", {}, ctx)
    assert result.success
    assert result.output["status"] == "fail"
    assert ctx.ledger.entries("proj") == []


def test_undo_when_file_was_removed(ctx):
    execute_tool_sync("write_file", {"file": "existing.txt", "content": "v2"}, ctx)
    os.remove(_path(ctx, "existing.txt"))
    result = execute_tool_sync("undo_last_write", {}, ctx)
    assert result.kind == "FileMissing"
    assert ctx.ledger.entries("proj") == []


def test_undo_after_ledger_eviction(tmp_path):
    root = tmp_path / "p"
    root.mkdir()
    ctx = ToolContext(backend=LocalBackend(str(root)), project_id="p", ledger=ChangeLedger(capacity=2))
    for i in range(3):
        execute_tool_sync("write_file", {"file": "f.txt", "content": f"v{i}"}, ctx)
    assert execute_tool_sync("undo_last_write", {}, ctx).success
    assert execute_tool_sync("undo_last_write", {}, ctx).success
    # the record of the first write was evicted
    assert execute_tool_sync("undo_last_write", {}, ctx).kind == "NoHistory"
    assert (root / "f.txt").read_text(encoding="utf-8") == "v0"


def test_run_command(ctx):
    streamed = []
    ctx.on_output = lambda chunk, is_stderr: streamed.append((chunk, is_stderr))
    result = execute_tool_sync("run_command", {"cmd": "cat", "args": ["existing.txt"]}, ctx)
    assert result.output == {"output": "v1", "exitCode": 0}
    assert streamed == [("v1", False)]


def test_run_command_nonzero_exit_is_not_a_tool_error(ctx):
    result = execute_tool_sync("run_command", {"cmd": "exit 2"}, ctx)
    assert result.success
    assert result.output["exitCode"] == 2


def test_run_command_reports_backend(ctx):
    started = []
    ctx.on_command_start = started.append
    execute_tool_sync("run_command", {"cmd": "true"}, ctx)
    assert started == [ctx.backend]


def test_build_command_line_quotes_args():
    assert build_command_line("ls", ["-la", "my dir"]) == "ls -la 'my dir'"
    assert build_command_line("npm test") == "npm test"


def test_unknown_tool(ctx):
    result = execute_tool_sync("delete_everything", {}, ctx)
    assert result.error == "Unknown tool: delete_everything"


def test_bad_arguments(ctx):
    result = execute_tool_sync("read_file", {"path": "existing.txt"}, ctx)
    assert result.kind == "TypeError"
    assert "Invalid arguments" in result.error


@pytest.mark.asyncio
async def test_execute_tool_async(ctx):
    result = await execute_tool("read_file", {"file": "existing.txt"}, ctx)
    assert result.output == "v1"
