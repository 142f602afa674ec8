"""
Live LLM sessions: one stateful Bedrock conversation per project.
Sessions live in memory only; a restart loses them but not the stored
conversations.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from bedrock_service import GenerationConfig, GenerationResult
from config import resolve_model_id, supports_vision, model_config

from .prompts import compose_system_prompt

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[str, str, List[Dict[str, str]]], str]


def _tool_use_ids(message: Dict[str, Any]) -> List[str]:
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [b.get("id", "") for b in content if isinstance(b, dict) and b.get("type") == "tool_use"]


def _has_tool_results(content: Any) -> bool:
    return isinstance(content, list) and any(
        isinstance(b, dict) and b.get("type") == "tool_result" for b in content
    )


@dataclass
class Session:
    """A live conversation with the model for one project."""
    project_id: str
    model_id: str
    system_prompt: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

    def _repair(self, content: Any) -> Any:
        """Answer tool calls a cancelled loop left open, so the history stays valid."""
        if not self.messages or self.messages[-1].get("role") != "assistant":
            return content
        dangling = _tool_use_ids(self.messages[-1])
        if not dangling or _has_tool_results(content):
            return content
        blocks: List[Dict[str, Any]] = [
            {"type": "tool_result", "tool_use_id": tid, "content": "Cancelled by user.", "is_error": True}
            for tid in dangling
        ]
        if isinstance(content, str):
            blocks.append({"type": "text", "text": content})
        else:
            blocks.extend(content)
        return blocks

    async def send(
        self,
        service: Any,
        content: Any,
        tools: Optional[List[Dict[str, Any]]] = None,
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResult:
        """Append a user message, call the model in a worker thread and record its reply.

        On failure the user message is rolled back and the error propagates.
        """
        self.messages.append({"role": "user", "content": self._repair(content)})
        snapshot = list(self.messages)
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                lambda: service.generate_response(
                    messages=snapshot,
                    system_prompt=self.system_prompt,
                    model_id=self.model_id,
                    config=config,
                    tools=tools,
                ),
            )
        except BaseException:
            self.messages.pop()
            raise
        assistant_content = result.content_blocks or [{"type": "text", "text": result.content or "(no content)"}]
        self.messages.append({"role": "assistant", "content": assistant_content})
        return result


class SessionRegistry:
    """
    In-memory map of project id to live Session, plus one asyncio.Lock per
    project id so agent loops for the same project run one at a time.
    """

    def __init__(self, prompt_builder: PromptBuilder = compose_system_prompt):
        self._prompt_builder = prompt_builder
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, project_id: str) -> Optional[Session]:
        return self._sessions.get(project_id)

    def get_or_create(
        self,
        project_id: str,
        requested_model: Optional[str],
        root_path: str,
        change_summary: List[Dict[str, str]],
        has_attachment: bool = False,
    ) -> Tuple[Session, bool]:
        """Return (session, created). The model policy applies only on creation."""
        session = self._sessions.get(project_id)
        if session is not None:
            if has_attachment and not supports_vision(session.model_id):
                logger.info(f"Session {project_id}: switching to {model_config.vision_model} for attachment")
                session.model_id = model_config.vision_model
            return session, False

        model_id = resolve_model_id(requested_model, has_attachment)
        logger.info(f"Initializing session: project: {project_id}, model: {model_id}")
        session = Session(
            project_id=project_id,
            model_id=model_id,
            system_prompt=self._prompt_builder(project_id, root_path, change_summary),
        )
        self._sessions[project_id] = session
        return session, True

    def clear(self, project_id: Optional[str] = None) -> None:
        """Drop one project's session, or all sessions when project_id is None."""
        if project_id is None:
            self._sessions.clear()
        else:
            self._sessions.pop(project_id, None)

    def lock(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
