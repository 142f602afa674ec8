"""
Project and stored-conversation REST API endpoints.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from errors import PersistenceError
from web.state import get_controller, read_json_body, require_auth

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_auth)])


@router.get("/api/health")
async def health():
    return {"status": "ok"}


@router.get("/api/projects")
async def list_projects():
    """Projects under the workspace path, read fresh from disk."""
    return [p.to_dict() for p in get_controller().list_projects()]


@router.get("/api/chats")
async def list_chats():
    """Stored conversations, most recently updated first."""
    return [c.to_dict() for c in get_controller().list_conversations()]


@router.post("/api/chats/load")
async def load_chat(request: Request):
    body = await read_json_body(request)
    chat_id = str(body.get("chatId") or "")
    record = get_controller().load_conversation(chat_id) if chat_id else None
    if record is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return record.to_dict()


@router.delete("/api/chats/{chat_id}")
async def delete_chat(chat_id: str):
    try:
        deleted = await get_controller().delete_conversation(chat_id)
    except PersistenceError as e:
        logger.error(f"Failed to delete conversation {chat_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "deleted" if deleted else "not_found"}
