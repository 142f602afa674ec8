"""
Cooperative cancellation of in-flight agent requests.

The loop polls is_stop_requested() at fixed checkpoints; nothing here
interrupts a running coroutine.
"""

import threading
import time
from typing import Dict, List, Optional, Set


class RequestIdGenerator:
    """Millisecond wall-clock ids, bumped so they stay strictly increasing."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now = time.time_ns() // 1_000_000
            self._last = max(now, self._last + 1)
            return str(self._last)


class CancellationRegistry:
    """Set of request ids marked for abort, plus which project each in-flight id belongs to."""

    def __init__(self):
        self._stop_requested: Set[str] = set()
        self._active: Dict[str, str] = {}  # request_id -> project_id

    def register(self, request_id: str, project_id: str) -> None:
        self._active[request_id] = project_id

    def request_stop(self, request_id: str) -> None:
        self._stop_requested.add(request_id)

    def stop_project(self, project_id: Optional[str] = None) -> List[str]:
        """Mark every in-flight request of project_id (all projects if None). Returns the ids."""
        ids = [rid for rid, pid in self._active.items() if project_id is None or pid == project_id]
        self._stop_requested.update(ids)
        return ids

    def is_stop_requested(self, request_id: str) -> bool:
        return request_id in self._stop_requested

    def clear(self, request_id: str) -> None:
        """Forget a request once its loop has exited."""
        self._stop_requested.discard(request_id)
        self._active.pop(request_id, None)

    def active_requests(self, project_id: Optional[str] = None) -> List[str]:
        return [rid for rid, pid in self._active.items() if project_id is None or pid == project_id]
