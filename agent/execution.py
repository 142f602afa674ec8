"""
Execution engine for the remote agent.
Contains the tool-calling loop: model turn, tool batch, repeat until the
model answers without tool calls, the user stops it, or the provider fails.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional

from backend import Backend, LocalBackend
from bedrock_service import GenerationConfig, BedrockError
from conversations import Turn
from errors import PersistenceError
from tools import TOOL_DEFINITIONS, ToolContext, ToolResult, execute_tool
from config import app_config, model_config

from .attachments import Attachment
from .events import AgentEvent, EventType

logger = logging.getLogger(__name__)

STOP_MARKER = "\n\n[Agent Stopped]"
MODEL_TEXT_SEPARATOR = "\n\n"
DEFAULT_ATTACHMENT_PROMPT = "Describe or analyze the attached context/image."

CONFIG_MISSING_MESSAGE = (
    "Error: Bedrock credentials are not configured. Set AWS_PROFILE, or "
    "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY, in .env and restart."
)

ACCESS_RESTRICTED_MESSAGE = (
    "\n**Error: Access Restriction Detected**\n"
    "Bedrock rejected the request for these credentials ({code}). The keys are valid "
    "but are not allowed to invoke this model from this server.\n\n"
    "**Fix:**\n"
    "1. Open the AWS console > Amazon Bedrock > Model access and enable the model.\n"
    "2. Check that the IAM policy allows bedrock:InvokeModel on the model or inference profile.\n"
    "3. Remove any source IP or referrer restriction that excludes this host.\n"
    "4. Save and try again."
)


class LoopOutcome(str, Enum):
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class AgentRequest:
    """One call to send_message."""
    request_id: str
    message: str
    project_id: str
    model_id: Optional[str] = None
    attachment: Optional[Attachment] = None


@dataclass
class Transcript:
    """Turns produced by one loop, in the shape they are persisted.

    Consecutive model text is merged into one turn; the token that must be
    streamed for each addition is returned so observers see the same text.
    """
    turns: List[Turn] = field(default_factory=list)

    def add_user(self, text: str) -> None:
        self.turns.append(Turn(role="user", content=text))

    def add_model_text(self, text: str) -> str:
        last = self.turns[-1] if self.turns else None
        if last is not None and last.role == "model":
            token = MODEL_TEXT_SEPARATOR + text
            last.content += token
            return token
        self.turns.append(Turn(role="model", content=text))
        return text

    def mark_stopped(self) -> Optional[str]:
        """Append the stop marker once. Returns the token to stream, or None if already marked."""
        last = self.turns[-1] if self.turns else None
        if last is not None and last.role == "model":
            if last.content.endswith(STOP_MARKER.strip()):
                return None
            last.content += STOP_MARKER
        else:
            self.turns.append(Turn(role="model", content=STOP_MARKER.strip()))
        return STOP_MARKER


def build_user_content(message: str, attachment: Optional[Attachment] = None) -> List[Dict[str, Any]]:
    """First user message of a request: text block plus the optional attachment block."""
    text = message
    if not text and attachment is not None:
        text = DEFAULT_ATTACHMENT_PROMPT
    blocks: List[Dict[str, Any]] = []
    if text:
        blocks.append({"type": "text", "text": text})
    if attachment is not None:
        blocks.append(attachment.to_block())
    if not blocks:
        blocks.append({"type": "text", "text": "(empty message)"})
    return blocks


def tool_result_block(tool_use_id: str, result: ToolResult) -> Dict[str, Any]:
    return {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": json.dumps(result.to_content(), ensure_ascii=False, default=str),
        "is_error": not result.success,
    }


def make_title(message: str) -> str:
    title = (message or "").strip()[:app_config.title_max_chars]
    return title or f"Chat {datetime.now().strftime('%Y-%m-%d %H:%M')}"


def provider_error_message(error: Exception) -> str:
    if isinstance(error, BedrockError) and error.access_restricted:
        return ACCESS_RESTRICTED_MESSAGE.format(code=error.code or "AccessDenied")
    return f"\nError: {error}"


class ExecutionMixin:
    """Mixin providing the agent loop.

    Expects the host class to provide:
    - self.service (BedrockService or compatible)
    - self.sessions (SessionRegistry)
    - self.ledger (ChangeLedger)
    - self.cancellation (CancellationRegistry)
    - self.broadcaster (EventBroadcaster)
    - self.conversations (ConversationStore)
    - self.max_iterations (int)
    - self.command_timeout (Optional[float])
    - self._running_backends (dict request_id -> Backend)
    - self._resolve_project(project_id)
    """

    def _default_config(self) -> GenerationConfig:
        return GenerationConfig(
            max_tokens=model_config.max_tokens,
            temperature=model_config.temperature,
        )

    def _service_configured(self) -> bool:
        # BedrockService resolves its credentials once when built
        return self.service is not None and self.service.is_configured()

    def _stop_requested(self, request: AgentRequest) -> bool:
        return self.cancellation.is_stop_requested(request.request_id)

    async def _emit(self, event_type: EventType, request: AgentRequest, content: str = "",
                    data: Optional[Dict[str, Any]] = None) -> None:
        await self.broadcaster.publish(AgentEvent(
            type=event_type,
            request_id=request.request_id,
            project_id=request.project_id,
            content=content,
            data=data,
        ))

    async def _emit_text(self, request: AgentRequest, transcript: Transcript, text: str) -> None:
        token = transcript.add_model_text(text)
        await self._emit(EventType.TOKEN, request, token)

    async def _abort(self, request: AgentRequest, transcript: Transcript) -> LoopOutcome:
        logger.info(f"Request {request.request_id} stopped by user")
        token = transcript.mark_stopped()
        if token:
            await self._emit(EventType.TOKEN, request, token)
        return LoopOutcome.ABORTED

    def _output_forwarder(self, request: AgentRequest, loop: asyncio.AbstractEventLoop):
        """Callback run in reader threads: each output chunk becomes a log-line event."""
        def _on_output(chunk: str, is_stderr: bool) -> None:
            event = AgentEvent(
                type=EventType.LOG_LINE,
                request_id=request.request_id,
                project_id=request.project_id,
                content=chunk,
                data={"source": "agent", "isError": is_stderr},
            )
            asyncio.run_coroutine_threadsafe(self.broadcaster.publish(event), loop)
        return _on_output

    def _track_backend(self, request: AgentRequest):
        def _on_command_start(backend: Backend) -> None:
            self._running_backends[request.request_id] = backend
        return _on_command_start

    async def _agent_loop(self, request: AgentRequest) -> LoopOutcome:
        """Run one request to completion. Always ends with a done event."""
        if not self._service_configured():
            logger.warning("Model provider is not configured; rejecting request")
            try:
                await self._emit(EventType.TOKEN, request, CONFIG_MISSING_MESSAGE)
            finally:
                self.cancellation.clear(request.request_id)
                await self._emit(EventType.DONE, request)
            return LoopOutcome.FAILED

        async with self.sessions.lock(request.project_id):
            transcript = Transcript()
            state = {"created": False}
            try:
                return await self._run_turns(request, transcript, state)
            finally:
                await self._finalize(request, transcript, append=not state["created"])

    async def _run_turns(self, request: AgentRequest, transcript: Transcript,
                         state: Dict[str, Any]) -> LoopOutcome:
        # Stopped while queued behind the lock: leave no session and no record
        if self._stop_requested(request):
            logger.info(f"Request {request.request_id} stopped before it started")
            return LoopOutcome.ABORTED

        project = self._resolve_project(request.project_id)
        self.ledger.ensure(request.project_id)
        session, created = self.sessions.get_or_create(
            request.project_id,
            request.model_id,
            project.root_path,
            self.ledger.summary(request.project_id),
            has_attachment=request.attachment is not None,
        )
        state["created"] = created

        ctx = ToolContext(
            backend=LocalBackend(project.root_path),
            project_id=request.project_id,
            ledger=self.ledger,
            on_output=self._output_forwarder(request, asyncio.get_running_loop()),
            command_timeout=self.command_timeout,
            on_command_start=self._track_backend(request),
        )
        gen_config = self._default_config()

        content: Any = build_user_content(request.message, request.attachment)
        transcript.add_user(request.message or (DEFAULT_ATTACHMENT_PROMPT if request.attachment else ""))

        iteration = 0
        while True:
            if self._stop_requested(request):
                return await self._abort(request, transcript)
            if iteration >= self.max_iterations:
                logger.warning(f"Request {request.request_id} hit the tool iteration limit ({self.max_iterations})")
                await self._emit_text(
                    request, transcript,
                    f"Stopped after {self.max_iterations} tool rounds without a final answer.",
                )
                return LoopOutcome.DONE
            iteration += 1

            try:
                result = await session.send(self.service, content, tools=TOOL_DEFINITIONS, config=gen_config)
            except Exception as e:
                logger.error(f"Model call failed for request {request.request_id}: {e}")
                await self._emit_text(request, transcript, provider_error_message(e))
                return LoopOutcome.FAILED

            if self._stop_requested(request):
                return await self._abort(request, transcript)

            if result.content:
                await self._emit_text(request, transcript, result.content)

            if not result.tool_uses:
                return LoopOutcome.DONE

            # Strictly sequential: a tool may depend on the previous one's effect
            tool_results: List[Dict[str, Any]] = []
            for tu in result.tool_uses:
                if self._stop_requested(request):
                    break
                await self._emit(EventType.ACTION, request, tu.name)
                tool_result = await execute_tool(tu.name, tu.input, ctx)
                if not tool_result.success:
                    logger.info(f"Tool {tu.name} failed: {tool_result.error}")
                tool_results.append(tool_result_block(tu.id, tool_result))

            if self._stop_requested(request):
                return await self._abort(request, transcript)

            content = tool_results

    async def _finalize(self, request: AgentRequest, transcript: Transcript, append: bool) -> None:
        self.cancellation.clear(request.request_id)
        self._running_backends.pop(request.request_id, None)
        await self._emit(EventType.DONE, request)

        if not transcript.turns:
            return
        try:
            self.conversations.save(
                request.project_id,
                make_title(request.message),
                transcript.turns,
                append=append,
            )
        except PersistenceError as e:
            logger.error(f"Failed to save conversation {request.project_id}: {e}")
            return
        await self.broadcaster.publish(AgentEvent(type=EventType.CONVERSATIONS_CHANGED))
