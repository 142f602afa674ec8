"""Tool names and their schema definitions (Bedrock/Anthropic Messages API)."""

from enum import Enum
from typing import Any, Dict, List


class ToolName(str, Enum):
    """The closed set of tools the agent may call."""
    LIST_FILES = "list_files"
    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    UNDO_LAST_WRITE = "undo_last_write"
    RUN_COMMAND = "run_command"


# Tools that change files on disk and so touch the change ledger
FILE_MUTATING_TOOLS = frozenset({ToolName.WRITE_FILE, ToolName.UNDO_LAST_WRITE})


TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": ToolName.LIST_FILES.value,
        "description": "List files in a directory of the project. Returns name and isDir for each entry.",
        "input_schema": {
            "type": "object",
            "properties": {
                "dir": {"type": "string", "description": "Directory path, relative to the project root ('.' for the root)"},
            },
            "required": ["dir"],
        },
    },
    {
        "name": ToolName.READ_FILE.value,
        "description": "Read a file from the project and return its text content.",
        "input_schema": {
            "type": "object",
            "properties": {
                "file": {"type": "string", "description": "File path, relative to the project root"},
            },
            "required": ["file"],
        },
    },
    {
        "name": ToolName.WRITE_FILE.value,
        "description": "Create or overwrite a file. Parent directories are created as needed. The previous content is kept so the write can be undone.",
        "input_schema": {
            "type": "object",
            "properties": {
                "file": {"type": "string", "description": "File path, relative to the project root"},
                "content": {"type": "string", "description": "Full new content of the file"},
            },
            "required": ["file", "content"],
        },
    },
    {
        "name": ToolName.UNDO_LAST_WRITE.value,
        "description": "Revert the most recent file change made by write_file. A created file is deleted; a modified file gets its previous content back.",
        "input_schema": {
            "type": "object",
            "properties": {
                "projectId": {"type": "string", "description": "Id of the current project"},
            },
            "required": ["projectId"],
        },
    },
    {
        "name": ToolName.RUN_COMMAND.value,
        "description": "Run a shell command in the project root. Output is streamed to the user and returned with the exit code when the command finishes.",
        "input_schema": {
            "type": "object",
            "properties": {
                "cmd": {"type": "string", "description": "Command to run"},
                "args": {"type": "array", "items": {"type": "string"}, "description": "Arguments, each passed as one shell word"},
            },
            "required": ["cmd"],
        },
    },
]

TOOL_NAMES = ", ".join(t["name"] for t in TOOL_DEFINITIONS)
