"""Tests for events, broadcasting, cancellation and attachments."""

import base64

import pytest

from agent import (
    AgentEvent,
    Attachment,
    CancellationRegistry,
    EventBroadcaster,
    EventType,
    RequestIdGenerator,
    STOP_MARKER,
    Transcript,
)
from conftest import EventRecorder


def test_wire_format():
    assert AgentEvent(EventType.TOKEN, request_id="1", project_id="p", content="hi").to_wire() == {
        "type": "chat:token", "id": "1", "projectId": "p", "token": "hi",
    }
    assert AgentEvent(EventType.ACTION, request_id="1", content="read_file").to_wire() == {
        "type": "chat:action", "id": "1", "action": "read_file",
    }
    assert AgentEvent(EventType.LOG_LINE, project_id="p", content="x\n", data={"isError": True}).to_wire() == {
        "type": "dev:log", "projectId": "p", "line": "x\n", "isError": True,
    }
    assert AgentEvent(EventType.CONVERSATIONS_CHANGED).to_wire() == {"type": "chats:refresh"}


@pytest.mark.asyncio
async def test_broadcast_reaches_every_sink_in_order():
    broadcaster = EventBroadcaster()
    a, b = EventRecorder(), EventRecorder()
    broadcaster.subscribe(a)
    broadcaster.subscribe(b)
    for i in range(3):
        await broadcaster.publish(AgentEvent(EventType.TOKEN, request_id="1", content=str(i)))
    assert [m["token"] for m in a.messages] == ["0", "1", "2"]
    assert b.messages == a.messages


@pytest.mark.asyncio
async def test_failed_sink_is_dropped():
    broadcaster = EventBroadcaster()
    good = EventRecorder()

    async def broken(message):
        raise ConnectionError("gone")

    broadcaster.subscribe(broken)
    broadcaster.subscribe(good)
    await broadcaster.publish(AgentEvent(EventType.DONE, request_id="1"))
    assert broadcaster.subscriber_count == 1
    assert len(good.messages) == 1


@pytest.mark.asyncio
async def test_publish_without_observers():
    await EventBroadcaster().publish(AgentEvent(EventType.DONE, request_id="1"))


def test_request_ids_strictly_increase():
    gen = RequestIdGenerator()
    ids = [int(gen.next_id()) for _ in range(1000)]
    assert ids == sorted(set(ids))


def test_cancellation_by_project():
    reg = CancellationRegistry()
    reg.register("1", "alpha")
    reg.register("2", "beta")
    assert reg.stop_project("alpha") == ["1"]
    assert reg.is_stop_requested("1")
    assert not reg.is_stop_requested("2")
    reg.clear("1")
    assert not reg.is_stop_requested("1")
    assert reg.active_requests() == ["2"]
    assert reg.stop_project(None) == ["2"]


def test_transcript_merges_model_text():
    t = Transcript()
    t.add_user("hi")
    assert t.add_model_text("a") == "a"
    assert t.add_model_text("b") == "\n\nb"
    assert [(x.role, x.content) for x in t.turns] == [("user", "hi"), ("model", "a\n\nb")]


def test_stop_marker_is_added_once():
    t = Transcript()
    t.add_user("hi")
    assert t.mark_stopped() == STOP_MARKER
    assert t.mark_stopped() is None
    assert [(x.role, x.content) for x in t.turns] == [("user", "hi"), ("model", "[Agent Stopped]")]


def test_attachment_from_data_url():
    raw = b"%PDF-1.4 fake"
    payload = {"base64": "data:application/pdf;base64," + base64.b64encode(raw).decode(), "mimeType": "application/pdf"}
    att = Attachment.from_payload(payload)
    assert att.size == len(raw)
    assert att.to_block()["type"] == "document"


def test_attachment_normalizes_jpg():
    att = Attachment.from_payload({"base64": base64.b64encode(b"jpeg").decode(), "mimeType": "image/jpg"})
    assert att.mime_type == "image/jpeg"
    assert att.to_block()["type"] == "image"


@pytest.mark.parametrize("payload", [
    {"base64": "", "mimeType": "image/png"},
    {"base64": "@@@", "mimeType": "image/png"},
    {"base64": "aGk=", "mimeType": "text/html"},
    None,
])
def test_attachment_rejects_bad_payloads(payload):
    with pytest.raises(ValueError):
        Attachment.from_payload(payload)
