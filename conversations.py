"""
Conversation persistence for Bedrock Remote.
Stores one titled message history per project in a single JSON file so the
client can reload past chats after reconnecting or after a server restart.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from config import app_config
from errors import PersistenceError

logger = logging.getLogger(__name__)

CHATS_FILENAME = "chats.json"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Turn:
    """One message of a conversation. role is 'user' or 'model'."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationRecord:
    """A persisted conversation, keyed by project id."""
    id: str
    title: str = ""
    history: List[Turn] = field(default_factory=list)
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "history": [t.to_dict() for t in self.history],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationRecord":
        history = []
        for item in data.get("history", []):
            if isinstance(item, dict) and "role" in item:
                history.append(Turn(role=item["role"], content=str(item.get("content", ""))))
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            history=history,
            updated_at=data.get("updatedAt", ""),
        )


class ConversationStore:
    """
    Manages the conversation file on disk.

    File layout:  {base_dir}/chats.json  ->  {project_id: record}
    Reads and writes always cover the whole map; the last writer wins.
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir or app_config.data_dir
        os.makedirs(self.base_dir, exist_ok=True)
        self.path = os.path.join(self.base_dir, CHATS_FILENAME)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def save(self, project_id: str, title: str, turns: List[Turn], append: bool = False) -> ConversationRecord:
        """Write a conversation for project_id.

        With append=True the turns extend the stored history and the stored
        title is kept; otherwise the record is replaced.
        """
        records = self._read_all()
        existing = records.get(project_id)
        if append and existing is not None:
            record = ConversationRecord(
                id=project_id,
                title=existing.title or title,
                history=existing.history + list(turns),
            )
        else:
            record = ConversationRecord(id=project_id, title=title, history=list(turns))
        record.updated_at = _now_iso()
        records[project_id] = record
        self._write_all(records)
        logger.info(f"Conversation saved: {project_id} ({len(record.history)} turns)")
        return record

    def load(self, conversation_id: str) -> Optional[ConversationRecord]:
        """Load a conversation by ID."""
        return self._read_all().get(conversation_id)

    def delete(self, conversation_id: str) -> bool:
        """Delete a conversation. Returns True if it existed."""
        records = self._read_all()
        if conversation_id not in records:
            return False
        del records[conversation_id]
        self._write_all(records)
        logger.info(f"Conversation deleted: {conversation_id}")
        return True

    def list_conversations(self) -> List[ConversationRecord]:
        """All conversations, most recently updated first."""
        records = list(self._read_all().values())
        records.sort(key=lambda r: r.updated_at or "", reverse=True)
        return records

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _read_all(self) -> Dict[str, ConversationRecord]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read conversations {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {
            key: ConversationRecord.from_dict(value)
            for key, value in data.items()
            if isinstance(value, dict)
        }

    def _write_all(self, records: Dict[str, ConversationRecord]) -> None:
        data = {key: record.to_dict() for key, record in records.items()}
        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e
