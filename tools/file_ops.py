"""File operation tools: list, read, write, undo."""

import logging
from typing import Any, Dict, List

from errors import NotFound, NoHistory, FileMissing
from ledger import ChangeRecord
from tools._common import ToolContext

logger = logging.getLogger(__name__)


def list_files(ctx: ToolContext, dir: str = ".", **kw: Any) -> List[Dict[str, Any]]:
    """List a directory as [{name, isDir}]."""
    b = ctx.backend
    target = dir or "."
    if not b.is_dir(target):
        raise NotFound(f"Directory not found: {target}")
    return b.list_dir(target)


def read_file(ctx: ToolContext, file: str, **kw: Any) -> str:
    """Return the text content of a file."""
    b = ctx.backend
    if not b.is_file(file):
        raise NotFound(f"File not found: {file}")
    return b.read_file(file)


def write_file(ctx: ToolContext, file: str, content: str, **kw: Any) -> Dict[str, Any]:
    """Create or overwrite a file, recording the prior content in the ledger."""
    b = ctx.backend
    rel_path = b.relative_path(file)
    previous_content = b.read_file(file) if b.is_file(file) else None
    b.write_file(file, content)
    ctx.ledger.record(ctx.project_id, ChangeRecord(file=rel_path, previous_content=previous_content))
    logger.info(f"{'Created' if previous_content is None else 'Wrote'} {rel_path} in {ctx.project_id}")
    return {"status": "success", "file": file, "previousContent": previous_content}


def undo_last_write(ctx: ToolContext, **kw: Any) -> Dict[str, Any]:
    """Revert the newest ledger record of the current project.

    A projectId argument from the model is accepted but the ledger is always
    the one for the project this loop runs against.
    """
    change = ctx.ledger.pop_last(ctx.project_id)
    if change is None:
        raise NoHistory("No change history found to undo.")

    b = ctx.backend
    if change.created:
        if not b.file_exists(change.file):
            logger.info(f"Undo: {change.file} in {ctx.project_id} was already gone")
            return {"status": "fail", "message": "File already in target state or missing.", "file": change.file}
        b.remove_file(change.file)
        logger.info(f"Undo: deleted {change.file} in {ctx.project_id}")
        return {"status": "success", "action": "deleted", "file": change.file}

    if not b.file_exists(change.file):
        raise FileMissing(f"Cannot undo change to {change.file}: the file no longer exists.")
    b.write_file(change.file, change.previous_content)
    logger.info(f"Undo: restored {change.file} in {ctx.project_id}")
    return {"status": "success", "action": "restored", "file": change.file}
