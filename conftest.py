"""Shared test fixtures for Bedrock Remote."""

import threading
from typing import Any, Callable, Dict, List, Optional

import pytest

from agent import AgentController
from bedrock_service import GenerationResult, ToolUseBlock
from conversations import ConversationStore
from ledger import ChangeLedger


class FakeBedrockService:
    """Stands in for BedrockService: replies come from a script, calls are recorded."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.script: List[Any] = []
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self._tool_ids = 0

    def is_configured(self) -> bool:
        return self.configured

    # -- scripting ---------------------------------------------------------

    def reply_text(self, text: str) -> "FakeBedrockService":
        self.script.append(GenerationResult(
            content=text,
            content_blocks=[{"type": "text", "text": text}],
            stop_reason="end_turn",
        ))
        return self

    def reply_tools(self, *calls, text: str = "") -> "FakeBedrockService":
        """Each call is (name, input)."""
        blocks: List[Dict[str, Any]] = []
        if text:
            blocks.append({"type": "text", "text": text})
        tool_uses = []
        for name, inputs in calls:
            self._tool_ids += 1
            tu = ToolUseBlock(id=f"toolu_{self._tool_ids:03d}", name=name, input=inputs)
            tool_uses.append(tu)
            blocks.append({"type": "tool_use", "id": tu.id, "name": name, "input": inputs})
        self.script.append(GenerationResult(
            content=text,
            tool_uses=tool_uses,
            content_blocks=blocks,
            stop_reason="tool_use",
        ))
        return self

    def reply_error(self, error: Exception) -> "FakeBedrockService":
        self.script.append(error)
        return self

    def reply_with(self, fn: Callable[[List[Dict[str, Any]]], GenerationResult]) -> "FakeBedrockService":
        """Reply computed from the messages at call time (runs in the worker thread)."""
        self.script.append(fn)
        return self

    # -- BedrockService API -----------------------------------------------

    def generate_response(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: str = "",
        model_id: Optional[str] = None,
        config: Any = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> GenerationResult:
        with self._lock:
            self.calls.append({
                "messages": list(messages),
                "system_prompt": system_prompt,
                "model_id": model_id,
                "tools": tools,
            })
            item = self.script.pop(0) if self.script else None
        if item is None:
            return GenerationResult(content="", content_blocks=[], stop_reason="end_turn")
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(messages)
        return item


class EventRecorder:
    """Broadcaster sink that keeps every wire message."""

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    async def __call__(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m["type"] == event_type]

    def types(self, request_id: Optional[str] = None) -> List[str]:
        return [m["type"] for m in self.messages if request_id is None or m.get("id") == request_id]

    def tokens(self, request_id: str) -> List[str]:
        return [m["token"] for m in self.messages if m["type"] == "chat:token" and m.get("id") == request_id]


@pytest.fixture
def workspace(tmp_path):
    """Workspace with two projects; alpha holds a README."""
    ws = tmp_path / "workspace"
    (ws / "alpha").mkdir(parents=True)
    (ws / "beta").mkdir()
    (ws / ".hidden").mkdir()
    (ws / "alpha" / "README.md").write_text("hello\n", encoding="utf-8")
    return ws


@pytest.fixture
def store(tmp_path):
    return ConversationStore(base_dir=str(tmp_path / "data"))


@pytest.fixture
def fake_service():
    return FakeBedrockService()


@pytest.fixture
def controller(fake_service, workspace, store):
    return AgentController(
        service=fake_service,
        workspace_path=str(workspace),
        conversations=store,
        ledger=ChangeLedger(capacity=10),
        max_iterations=10,
    )


@pytest.fixture
def recorder(controller):
    rec = EventRecorder()
    controller.broadcaster.subscribe(rec)
    return rec
