"""
Inline attachments sent with a chat message (one per message).
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict

MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024  # 5 MB raw

_IMAGE_MEDIA_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}
_DOCUMENT_MEDIA_TYPES = {"application/pdf"}


@dataclass
class Attachment:
    """Base64 payload plus its MIME type, validated on construction via from_payload."""
    base64: str
    mime_type: str

    @property
    def is_image(self) -> bool:
        return self.mime_type in _IMAGE_MEDIA_TYPES

    @property
    def size(self) -> int:
        return len(base64.b64decode(self.base64))

    @classmethod
    def from_payload(cls, payload: Any) -> "Attachment":
        """Accepts {base64, mimeType}; the data may also be a data: URL."""
        if not isinstance(payload, dict):
            raise ValueError("attachment must be an object")
        mime_type = str(payload.get("mimeType") or payload.get("mime_type") or "").strip().lower()
        if mime_type == "image/jpg":
            mime_type = "image/jpeg"
        if mime_type not in _IMAGE_MEDIA_TYPES | _DOCUMENT_MEDIA_TYPES:
            raise ValueError(f"Unsupported attachment type: {mime_type or 'unknown'}")

        data_b64 = str(payload.get("base64") or payload.get("data") or "").strip()
        if data_b64.startswith("data:"):
            comma = data_b64.find(",")
            if comma == -1:
                raise ValueError("Invalid data URL for attachment")
            data_b64 = data_b64[comma + 1:].strip()
        if not data_b64:
            raise ValueError("Missing attachment data")

        try:
            raw = base64.b64decode(data_b64, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Invalid base64 payload for attachment")
        if not raw:
            raise ValueError("Empty attachment payload")
        if len(raw) > MAX_ATTACHMENT_BYTES:
            raise ValueError(f"Attachment exceeds {MAX_ATTACHMENT_BYTES // (1024 * 1024)}MB limit")

        return cls(base64=base64.b64encode(raw).decode("ascii"), mime_type=mime_type)

    def to_block(self) -> Dict[str, Any]:
        """Anthropic content block for this attachment."""
        block_type = "image" if self.is_image else "document"
        return {
            "type": block_type,
            "source": {
                "type": "base64",
                "media_type": self.mime_type,
                "data": self.base64,
            },
        }
