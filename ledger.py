"""
Per-project change ledger: a bounded history of file contents prior to each
agent write, used by undo_last_write.
"""

import logging
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Any

from config import app_config

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ChangeRecord:
    """One file write. previous_content None means the write created the file."""
    file: str
    previous_content: Optional[str] = None
    timestamp: str = field(default_factory=_now_iso)

    @property
    def created(self) -> bool:
        return self.previous_content is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ChangeLedger:
    """
    Bounded per-project deques of ChangeRecords.

    Once a project holds `capacity` records the oldest is evicted (FIFO);
    only the newest is ever popped.
    """

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity or app_config.ledger_capacity
        self._histories: Dict[str, Deque[ChangeRecord]] = {}

    def ensure(self, project_id: str) -> Deque[ChangeRecord]:
        history = self._histories.get(project_id)
        if history is None:
            history = deque(maxlen=self.capacity)
            self._histories[project_id] = history
        return history

    def record(self, project_id: str, change: ChangeRecord) -> None:
        history = self.ensure(project_id)
        if len(history) == self.capacity:
            logger.debug(f"Ledger full for {project_id}; evicting {history[0].file}")
        history.append(change)

    def pop_last(self, project_id: str) -> Optional[ChangeRecord]:
        history = self._histories.get(project_id)
        if not history:
            return None
        return history.pop()

    def entries(self, project_id: str) -> List[ChangeRecord]:
        return list(self._histories.get(project_id, ()))

    def summary(self, project_id: str) -> List[Dict[str, str]]:
        """File and timestamp of each record, oldest first. Contents are omitted."""
        return [{"file": c.file, "timestamp": c.timestamp} for c in self.entries(project_id)]

    def clear(self, project_id: Optional[str] = None) -> None:
        """Drop one project's history, or every history when project_id is None."""
        if project_id is None:
            self._histories.clear()
        else:
            self._histories.pop(project_id, None)

    def __len__(self) -> int:
        return len(self._histories)
