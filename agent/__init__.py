"""
Agent package - remote agent controller implementation.

This package contains the agent loop and its shared state split into logical modules:
- events: AgentEvent data type and wire format
- broadcast: fan-out of events to connected observers
- cancellation: request ids and cooperative stop flags
- attachments: inline image / PDF attachments
- prompts: system prompt composition
- session: live Bedrock sessions per project
- execution: the tool-calling loop
- core: AgentController facade used by the web layer
"""

# Core classes and data types
from .core import AgentController
from .events import AgentEvent, EventType

# Mixins
from .execution import ExecutionMixin, AgentRequest, LoopOutcome, Transcript, STOP_MARKER

# Shared state
from .broadcast import EventBroadcaster
from .cancellation import CancellationRegistry, RequestIdGenerator
from .session import Session, SessionRegistry
from .attachments import Attachment

# Prompt system
from .prompts import compose_system_prompt

__all__ = [
    # Main controller class
    "AgentController",

    # Data types
    "AgentEvent",
    "EventType",
    "AgentRequest",
    "LoopOutcome",
    "Transcript",
    "Attachment",
    "STOP_MARKER",

    # Mixins
    "ExecutionMixin",

    # Shared state
    "EventBroadcaster",
    "CancellationRegistry",
    "RequestIdGenerator",
    "Session",
    "SessionRegistry",

    # Prompt system
    "compose_system_prompt",
]
