"""
Agent event data types and their wire format.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class EventType(str, Enum):
    TOKEN = "chat:token"                  # incremental text
    ACTION = "chat:action"                # tool invocation started
    DONE = "chat:done"                    # loop finished, any exit path
    STOP = "chat:stop"                    # stop requested
    CONVERSATIONS_CHANGED = "chats:refresh"
    PROJECTS_CHANGED = "projects:sync"
    LOG_LINE = "dev:log"                  # output of a spawned process
    DEV_STARTED = "dev:started"
    DEV_STOPPED = "dev:stopped"


@dataclass
class AgentEvent:
    """Event pushed to every connected observer"""
    type: EventType
    request_id: Optional[str] = None
    project_id: Optional[str] = None
    content: str = ""
    data: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        """JSON message as sent over the WebSocket."""
        msg: Dict[str, Any] = {"type": self.type.value}
        if self.request_id is not None:
            msg["id"] = self.request_id
        if self.project_id is not None:
            msg["projectId"] = self.project_id
        if self.type is EventType.TOKEN:
            msg["token"] = self.content
        elif self.type is EventType.ACTION:
            msg["action"] = self.content
        elif self.type is EventType.LOG_LINE:
            msg["line"] = self.content
        elif self.content:
            msg["message"] = self.content
        if self.data:
            msg.update(self.data)
        return msg
