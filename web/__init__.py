"""
Bedrock Remote control server.
FastAPI + WebSocket bridge to the AgentController.

Run:  python -m web [--port 8787] [--workspace /path/to/workspace]
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import web.state as _state
from web import api_config, api_sessions, chat, dev

logger = logging.getLogger(__name__)

# ============================================================
# FastAPI application
# ============================================================

app = FastAPI(title="Bedrock Remote")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.on_event("shutdown")
async def _on_shutdown():
    """Stop running loops and dev processes so transcripts are saved and no children are orphaned."""
    if _state._dev_manager is not None:
        await _state._dev_manager.stop_all()
    if _state._controller is not None:
        await _state._controller.shutdown()
        logger.info("Shutdown: agent loops finalized")


# ============================================================
# Include routers from submodules
# ============================================================

app.include_router(api_sessions.router)
app.include_router(api_config.router)
app.include_router(chat.router)
app.include_router(dev.router)
