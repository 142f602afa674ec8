"""
Main AgentController class: the entry point the web layer talks to.
Owns the shared registries and runs each request as a background task.
"""

import asyncio
import logging
from typing import List, Dict, Any, Optional

from backend import Backend
from config import app_config
from conversations import ConversationRecord, ConversationStore
from ledger import ChangeLedger
from projects import Project, WORKSPACE_PROJECT_ID, load_projects, resolve_project

from .attachments import Attachment
from .broadcast import EventBroadcaster
from .cancellation import CancellationRegistry, RequestIdGenerator
from .events import AgentEvent, EventType
from .execution import ExecutionMixin, AgentRequest, LoopOutcome
from .session import SessionRegistry

logger = logging.getLogger(__name__)


class AgentController(ExecutionMixin):
    """
    Remote agent controller.

    Flow:
    1. A client sends a message for a project; it gets a request id back at once
    2. The loop calls Bedrock with the project's session and the tool definitions
    3. Tool calls run one at a time against the project root; results go back to the model
    4. Text, tool actions and command output are broadcast to every observer
    5. When the loop exits (done, stopped or failed) the transcript is persisted
    """

    def __init__(
        self,
        service: Any,
        workspace_path: Optional[str] = None,
        conversations: Optional[ConversationStore] = None,
        sessions: Optional[SessionRegistry] = None,
        ledger: Optional[ChangeLedger] = None,
        cancellation: Optional[CancellationRegistry] = None,
        broadcaster: Optional[EventBroadcaster] = None,
        max_iterations: Optional[int] = None,
        command_timeout: Optional[float] = None,
        projects_file: Optional[str] = None,
    ):
        self.service = service
        self._workspace_path = workspace_path
        self.conversations = conversations or ConversationStore()
        self.sessions = sessions or SessionRegistry()
        self.ledger = ledger or ChangeLedger()
        self.cancellation = cancellation or CancellationRegistry()
        self.broadcaster = broadcaster or EventBroadcaster()
        self.max_iterations = max_iterations or app_config.max_tool_iterations
        self.command_timeout = command_timeout if command_timeout is not None else (app_config.command_timeout or None)
        self.projects_file = projects_file or app_config.projects_file

        self._ids = RequestIdGenerator()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running_backends: Dict[str, Backend] = {}

    @property
    def workspace_path(self) -> str:
        """Explicit path if one was given, else the live setting (it can change at runtime)."""
        return self._workspace_path or app_config.workspace_path or "."

    @workspace_path.setter
    def workspace_path(self, value: str) -> None:
        self._workspace_path = value

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> List[Project]:
        return load_projects(self.workspace_path, self.projects_file)

    def _resolve_project(self, project_id: Optional[str]) -> Project:
        return resolve_project(project_id, self.workspace_path, self.projects_file)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def send_message(
        self,
        message: str,
        project_id: Optional[str] = None,
        model_id: Optional[str] = None,
        attachment: Optional[Attachment] = None,
    ) -> str:
        """Start a loop in the background and return its request id immediately.

        Must be called from inside a running event loop.
        """
        request = AgentRequest(
            request_id=self._ids.next_id(),
            message=message or "",
            project_id=project_id or WORKSPACE_PROJECT_ID,
            model_id=model_id,
            attachment=attachment,
        )
        self.cancellation.register(request.request_id, request.project_id)
        logger.info(f"Request {request.request_id} for project {request.project_id}")

        task = asyncio.get_running_loop().create_task(self._run_request(request))
        self._tasks[request.request_id] = task
        task.add_done_callback(lambda _t, rid=request.request_id: self._tasks.pop(rid, None))
        return request.request_id

    async def _run_request(self, request: AgentRequest) -> LoopOutcome:
        try:
            return await self._agent_loop(request)
        except Exception:
            logger.exception(f"Agent loop crashed for request {request.request_id}")
            return LoopOutcome.FAILED

    async def wait(self, request_id: str) -> Optional[LoopOutcome]:
        """Wait for a request's loop to exit. None if the id is unknown or already finished."""
        task = self._tasks.get(request_id)
        if task is None:
            return None
        return await task

    @property
    def active_request_count(self) -> int:
        return len(self._tasks)

    async def stop(self, project_id: Optional[str] = None) -> List[str]:
        """Ask every in-flight loop of a project (all projects if None) to stop.

        Running commands are killed, the project's live session is dropped and a
        stop event is broadcast. Returns the request ids that were marked.
        """
        ids = self.cancellation.stop_project(project_id)
        for request_id in ids:
            backend = self._running_backends.get(request_id)
            if backend is not None and backend.cancel_running_command():
                logger.info(f"Killed running command of request {request_id}")
        self.sessions.clear(project_id)
        logger.info(f"Stop requested for {project_id or 'all projects'}: {len(ids)} active request(s)")
        await self.broadcaster.publish(AgentEvent(type=EventType.STOP, project_id=project_id))
        return ids

    def clear_session(self, project_id: Optional[str] = None) -> None:
        """Forget the live session and change ledger of a project, or of all projects."""
        self.sessions.clear(project_id)
        self.ledger.clear(project_id)

    async def shutdown(self) -> None:
        """Stop everything and wait for the loops to finalize."""
        tasks = list(self._tasks.values())
        if tasks:
            await self.stop(None)
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Stored conversations
    # ------------------------------------------------------------------

    def list_conversations(self) -> List[ConversationRecord]:
        return self.conversations.list_conversations()

    def load_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        return self.conversations.load(conversation_id)

    async def delete_conversation(self, conversation_id: str) -> bool:
        deleted = self.conversations.delete(conversation_id)
        if deleted:
            await self.broadcaster.publish(AgentEvent(type=EventType.CONVERSATIONS_CHANGED))
        return deleted
