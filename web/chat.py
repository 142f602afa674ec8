"""
Chat endpoints: start / stop / clear agent requests, and the WebSocket
every observer connects to for streamed events.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect

from agent import Attachment
from web.state import _WSSink, get_controller, read_json_body, require_auth, token_matches

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/chat/send", dependencies=[Depends(require_auth)])
async def chat_send(request: Request):
    """Start an agent loop. Returns the request id immediately; output arrives over /ws."""
    body = await read_json_body(request)
    message = body.get("message") or ""
    if not isinstance(message, str):
        raise HTTPException(status_code=400, detail="message must be a string")

    attachment: Optional[Attachment] = None
    if body.get("fileData"):
        try:
            attachment = Attachment.from_payload(body["fileData"])
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        logger.info(f"File attached: {attachment.mime_type}, size: {attachment.size} bytes")

    request_id = get_controller().send_message(
        message,
        project_id=body.get("projectId") or None,
        model_id=body.get("modelId") or None,
        attachment=attachment,
    )
    return {"id": request_id}


@router.post("/api/chat/stop", dependencies=[Depends(require_auth)])
async def chat_stop(request: Request):
    body = await read_json_body(request)
    stopped = await get_controller().stop(body.get("projectId") or None)
    return {"status": "stopped", "requests": stopped}


@router.post("/api/chat/clear", dependencies=[Depends(require_auth)])
async def chat_clear(request: Request):
    """Drop live session(s) and change ledger(s); stored conversations are kept."""
    body = await read_json_body(request)
    get_controller().clear_session(body.get("projectId") or None)
    return {"status": "cleared"}


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket, token: Optional[str] = None):
    await ws.accept()
    if not token_matches(token):
        await ws.send_json({"type": "error", "message": "Unauthorized"})
        await ws.close(code=1008)
        return

    broadcaster = get_controller().broadcaster
    sink = _WSSink(ws)
    broadcaster.subscribe(sink)
    logger.info(f"Observer connected ({broadcaster.subscriber_count} total)")
    try:
        # Inbound messages are ignored; reading keeps the disconnect visible
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unsubscribe(sink)
        logger.info(f"Observer disconnected ({broadcaster.subscriber_count} left)")
