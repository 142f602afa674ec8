"""
Settings endpoints. Changes are written to .env.local and applied to the
running server without a restart.
"""

import logging

from fastapi import APIRouter, Depends, Request

from agent import AgentEvent, EventType
from config import ENV_LOCAL_PATH, get_credentials_info, get_settings, update_settings
from web.state import get_controller, read_json_body, require_auth, reset_service

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_auth)])

# Keys that require a new Bedrock client when changed
_SERVICE_KEYS = {"awsRegion", "awsAccessKeyId", "awsSecretAccessKey"}

# Returned blank; clients only send it to replace it
_SECRET_KEYS = {"awsSecretAccessKey"}


@router.get("/api/config")
async def get_config():
    settings = get_settings()
    for key in _SECRET_KEYS:
        settings[key] = ""
    settings["credentials"] = get_credentials_info()
    return settings


@router.post("/api/config")
async def post_config(request: Request):
    body = await read_json_body(request)
    changed = update_settings(body, env_path=ENV_LOCAL_PATH)
    if _SERVICE_KEYS.intersection(changed):
        reset_service()
    if "workspacePath" in changed:
        await get_controller().broadcaster.publish(AgentEvent(type=EventType.PROJECTS_CHANGED))
    return {"status": "success", "updated": changed}
