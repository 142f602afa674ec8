"""Shell command tool."""

import logging
import shlex
from typing import Any, Dict, List, Optional

from errors import ToolError
from tools._common import ToolContext

logger = logging.getLogger(__name__)

_MAX_OUTPUT_CHARS = 20000


def _truncate(output: str) -> str:
    if len(output) <= _MAX_OUTPUT_CHARS:
        return output
    lines_out = output.split("\n")
    if len(lines_out) > 200:
        return "\n".join(lines_out[:100]) + f"\n\n... [{len(lines_out) - 150} lines truncated] ...\n\n" + "\n".join(lines_out[-50:])
    return output[:10000] + "\n\n... [truncated] ...\n\n" + output[-5000:]


def build_command_line(cmd: str, args: Optional[List[str]] = None) -> str:
    """Join cmd with shell-quoted args. cmd itself is passed to the shell as written."""
    parts = [cmd.strip()]
    parts.extend(shlex.quote(str(a)) for a in (args or []))
    return " ".join(parts)


def run_command(ctx: ToolContext, cmd: str, args: Optional[List[str]] = None, **kw: Any) -> Dict[str, Any]:
    """Run a command in the project root, streaming output through ctx.on_output.

    Output chunks keep the order they arrived in across stdout and stderr.
    """
    if not (cmd or "").strip():
        raise ToolError("cmd is required")
    if args is not None and not isinstance(args, list):
        raise ToolError("args must be a list of strings")

    command_line = build_command_line(cmd, args)
    chunks: List[str] = []

    def _on_output(chunk: str, is_stderr: bool) -> None:
        chunks.append(chunk)
        if ctx.on_output:
            ctx.on_output(chunk, is_stderr)

    if ctx.on_command_start:
        ctx.on_command_start(ctx.backend)
    logger.info(f"Running command in {ctx.project_id}: {command_line}")
    _, _, rc = ctx.backend.run_command_stream(
        command_line,
        timeout=ctx.command_timeout,
        on_output=_on_output,
    )
    return {"output": _truncate("".join(chunks)), "exitCode": rc}
