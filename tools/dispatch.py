"""Tool execution dispatch."""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict

from errors import ToolError
from tools._common import ToolContext, ToolResult
from tools.schemas import ToolName
from tools.file_ops import list_files, read_file, write_file, undo_last_write
from tools.command_ops import run_command

logger = logging.getLogger(__name__)


def _implementation(tool: ToolName) -> Callable[..., Any]:
    """Map each ToolName to its implementation. Every member must be handled."""
    if tool is ToolName.LIST_FILES:
        return list_files
    elif tool is ToolName.READ_FILE:
        return read_file
    elif tool is ToolName.WRITE_FILE:
        return write_file
    elif tool is ToolName.UNDO_LAST_WRITE:
        return undo_last_write
    elif tool is ToolName.RUN_COMMAND:
        return run_command
    raise AssertionError(f"Unhandled tool: {tool}")


def execute_tool_sync(name: str, inputs: Dict[str, Any], ctx: ToolContext) -> ToolResult:
    """Execute a tool by name. Failures come back as error results, never as exceptions."""
    try:
        tool = ToolName(name)
    except ValueError:
        return ToolResult(name=name, error=f"Unknown tool: {name}", kind="UnknownTool")
    if not isinstance(inputs, dict):
        return ToolResult(name=name, error=f"Invalid arguments for {name}: expected an object", kind="TypeError")

    impl = _implementation(tool)
    try:
        return ToolResult(name=name, output=impl(ctx, **inputs))
    except ToolError as e:
        return ToolResult(name=name, error=str(e), kind=e.kind)
    except TypeError as e:
        return ToolResult(name=name, error=f"Invalid arguments for {name}: {e}", kind="TypeError")
    except Exception as e:
        logger.exception(f"Tool execution error: {name}")
        return ToolResult(name=name, error=f"Tool error: {e}", kind=type(e).__name__)


async def execute_tool(name: str, inputs: Dict[str, Any], ctx: ToolContext) -> ToolResult:
    """Run a tool in a worker thread so file and process I/O don't block the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(execute_tool_sync, name, inputs, ctx))
