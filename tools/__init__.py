"""
Tool definitions and implementations for the remote agent.
Each tool has an Anthropic-compatible schema and an implementation function.
Tools use a Backend abstraction confined to one project root.
"""

from tools._common import ToolResult, ToolContext  # noqa: F401
from tools.file_ops import (  # noqa: F401
    list_files,
    read_file,
    write_file,
    undo_last_write,
)
from tools.command_ops import run_command, build_command_line  # noqa: F401
from tools.schemas import (  # noqa: F401
    ToolName,
    TOOL_DEFINITIONS,
    TOOL_NAMES,
    FILE_MUTATING_TOOLS,
)
from tools.dispatch import execute_tool, execute_tool_sync  # noqa: F401
