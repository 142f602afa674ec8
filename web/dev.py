"""
Dev process endpoints: one long-running command per project (a dev server,
a watcher) whose output is streamed to observers as log lines.
"""

import asyncio
import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import Optional, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from agent import AgentEvent, EventBroadcaster, EventType
from web.state import get_controller, get_dev_manager, read_json_body, require_auth

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_auth)])


@dataclass
class DevProcess:
    project_id: str
    command: str
    process: Optional[subprocess.Popen] = None
    status: str = "running"


class DevProcessManager:
    """Tracks dev processes by project id. Output is read in threads and published on the loop."""

    def __init__(self, broadcaster: EventBroadcaster):
        self.broadcaster = broadcaster
        self._processes: Dict[str, DevProcess] = {}

    def status(self) -> List[Dict[str, str]]:
        return [{"id": pid, "status": p.status} for pid, p in self._processes.items()]

    def is_running(self, project_id: str) -> bool:
        info = self._processes.get(project_id)
        return bool(info and info.process and info.process.poll() is None)

    def _publish_threadsafe(self, loop: asyncio.AbstractEventLoop, event: AgentEvent) -> None:
        asyncio.run_coroutine_threadsafe(self.broadcaster.publish(event), loop)

    async def start(self, project_id: str, command: str, cwd: str) -> None:
        if self.is_running(project_id):
            raise RuntimeError(f"Dev process already running for {project_id}")
        loop = asyncio.get_running_loop()
        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
            start_new_session=True,  # own process group so stop kills children
        )
        info = DevProcess(project_id=project_id, command=command, process=proc)
        self._processes[project_id] = info
        logger.info(f"Dev process started for {project_id}: {command} (pid {proc.pid})")
        await self.broadcaster.publish(AgentEvent(type=EventType.DEV_STARTED, project_id=project_id))

        def _reader(pipe, is_stderr: bool):
            try:
                for line in iter(pipe.readline, ""):
                    self._publish_threadsafe(loop, AgentEvent(
                        type=EventType.LOG_LINE,
                        project_id=project_id,
                        content=line,
                        data={"isError": True} if is_stderr else None,
                    ))
            except (ValueError, OSError):
                pass  # pipe closed by stop()

        readers = [
            threading.Thread(target=_reader, args=(proc.stdout, False), daemon=True),
            threading.Thread(target=_reader, args=(proc.stderr, True), daemon=True),
        ]
        for t in readers:
            t.start()

        def _watch():
            proc.wait()
            for t in readers:
                t.join(timeout=1.0)
            if info.status == "running":
                info.status = "stopped"
                logger.info(f"Dev process for {project_id} exited with {proc.returncode}")
                self._publish_threadsafe(loop, AgentEvent(type=EventType.DEV_STOPPED, project_id=project_id))

        threading.Thread(target=_watch, daemon=True).start()

    async def stop(self, project_id: str) -> bool:
        """Kill the project's dev process group. Returns False if nothing was running."""
        info = self._processes.get(project_id)
        if info is None or info.process is None or info.status != "running":
            return False
        info.status = "stopped"
        try:
            os.killpg(os.getpgid(info.process.pid), signal.SIGKILL)
        except (ProcessLookupError, OSError):
            pass
        logger.info(f"Dev process for {project_id} stopped")
        await self.broadcaster.publish(AgentEvent(type=EventType.DEV_STOPPED, project_id=project_id))
        return True

    async def stop_all(self) -> None:
        for project_id in list(self._processes):
            await self.stop(project_id)


@router.get("/api/dev/status")
async def dev_status():
    return get_dev_manager().status()


@router.post("/api/dev/start")
async def dev_start(request: Request):
    body = await read_json_body(request)
    project_id = body.get("id")
    project = next((p for p in get_controller().list_projects() if p.id == project_id), None)
    if project is None:
        raise HTTPException(status_code=404, detail="Not found")
    command = (body.get("cmd") or project.command or "").strip()
    if not command:
        raise HTTPException(status_code=400, detail=f"No dev command configured for {project_id}")
    try:
        await get_dev_manager().start(project.id, command, project.root_path)
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to start: {e}")
    return {"status": "started"}


@router.post("/api/dev/stop")
async def dev_stop(request: Request):
    body = await read_json_body(request)
    await get_dev_manager().stop(str(body.get("id") or ""))
    return {"status": "stopping"}
