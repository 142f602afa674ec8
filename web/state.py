"""
Shared mutable state for the web server.

All globals accessed across route modules live here. Import web.state and
use the accessors so tests can swap the controller.
"""

import hmac
import logging
from typing import Optional, Dict, Any

from fastapi import Header, HTTPException, Request, WebSocket

from agent import AgentController
from config import app_config, aws_config, model_config

logger = logging.getLogger(__name__)

# ============================================================
# Globals
# ============================================================

_controller: Optional[AgentController] = None
_dev_manager: Optional[Any] = None  # web.dev.DevProcessManager, built lazily


def _build_service():
    """Bedrock client for the configured region, or None when boto3 cannot build one."""
    from bedrock_service import BedrockService, BedrockError
    try:
        return BedrockService(model_id=model_config.model_id, region=aws_config.region)
    except BedrockError as e:
        logger.warning(f"Bedrock service unavailable: {e}")
        return None


def get_controller() -> AgentController:
    global _controller
    if _controller is None:
        _controller = AgentController(service=_build_service())
        logger.info(f"Controller ready, workspace: {_controller.workspace_path}")
    return _controller


def set_controller(controller: Optional[AgentController]) -> None:
    global _controller
    _controller = controller


def get_dev_manager():
    global _dev_manager
    if _dev_manager is None:
        from web.dev import DevProcessManager
        _dev_manager = DevProcessManager(get_controller().broadcaster)
    return _dev_manager


def set_dev_manager(manager) -> None:
    global _dev_manager
    _dev_manager = manager


def reset_service() -> None:
    """Rebuild the Bedrock client after credentials or region changed."""
    if _controller is not None:
        _controller.service = _build_service()


# ============================================================
# Auth
# ============================================================

def token_matches(token: Optional[str]) -> bool:
    """True if token equals the configured one, or no token is configured."""
    expected = app_config.auth_token
    if not expected:
        return True
    return bool(token) and hmac.compare_digest(token, expected)


async def require_auth(authorization: Optional[str] = Header(default=None)) -> None:
    """Route dependency: `Authorization: Bearer <token>`."""
    if not app_config.auth_token:
        return
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):]
    if not token_matches(token):
        raise HTTPException(status_code=401, detail="Unauthorized")


# ============================================================
# Request helpers
# ============================================================

async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parsed JSON object body; an empty body reads as {}."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid request: {e!s}")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be an object")
    return body


# ============================================================
# WebSocket sink wrapper
# ============================================================

class _WSSink:
    """Broadcaster sink around one WebSocket.

    A failed send marks the socket dead and re-raises, so the broadcaster
    drops this sink.
    """
    __slots__ = ("ws",)

    def __init__(self, ws: Optional[WebSocket]):
        self.ws: Optional[WebSocket] = ws

    async def __call__(self, data: Dict[str, Any]) -> None:
        _ws = self.ws
        if _ws is None:
            raise ConnectionError("WebSocket closed")
        try:
            await _ws.send_json(data)
        except Exception:
            self.ws = None          # mark disconnected on first failure
            raise
