"""
System prompt composition.
The prompt is fixed when a session is created: it embeds the project root and
a compact view of the change ledger at that moment.
"""

import json
from typing import Dict, List

from tools import TOOL_NAMES


_MOD_IDENTITY = """You are Bedrock Remote Agent. You are helping a developer work on a project at path: {root_path}
The current projectId is: {project_id}
You can use tools to read and write files and run commands inside that project. Paths are relative to the project root; anything outside it is refused.
Available tools: {tool_names}"""

_MOD_CHANGE_HISTORY = """HISTORY OF FILE CHANGES (for context, oldest first):
{changes}"""

_MOD_GUIDELINES = """Think step by step. Use the tools provided to explore and implement the user request.
If the user asks to UNDO or REVERT, immediately call 'undo_last_write' with the current projectId.
If a tool returns an error, read it and try again with corrected arguments when that makes sense.
Always explain what you are doing."""


def compose_system_prompt(project_id: str, root_path: str, change_summary: List[Dict[str, str]]) -> str:
    """Assemble the system instruction for a new session."""
    return "\n\n".join([
        _MOD_IDENTITY.format(root_path=root_path, project_id=project_id, tool_names=TOOL_NAMES),
        _MOD_CHANGE_HISTORY.format(changes=json.dumps(change_summary)),
        _MOD_GUIDELINES,
    ])
