"""Shared types for the tools package."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Callable

from backend import Backend, OutputCallback
from ledger import ChangeLedger


@dataclass
class ToolContext:
    """Ambient state a tool runs against: one project root and its ledger."""
    backend: Backend
    project_id: str
    ledger: ChangeLedger
    # Called from worker threads with (chunk, is_stderr) while run_command runs
    on_output: Optional[OutputCallback] = None
    command_timeout: Optional[float] = None
    # Lets the caller track the backend so a stop can kill its command
    on_command_start: Optional[Callable[[Backend], None]] = field(default=None, repr=False)


@dataclass
class ToolResult:
    """Result from executing a tool: exactly one of output / error is meaningful."""
    name: str
    output: Any = None
    error: Optional[str] = None
    kind: Optional[str] = None  # error class name, e.g. "AccessDenied"

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> Dict[str, Any]:
        """Payload fed back to the model."""
        if self.success:
            return {"name": self.name, "content": self.output}
        return {"name": self.name, "content": {"error": self.error}}
