"""
Schema models for data crossing the bridge boundary.

Pydantic models for attachments received from the host and for the
entries written to session transcripts.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Attachment(BaseModel):
    """A multi-modal attachment as sent by the host."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_name: str | None = Field(default=None, alias="fileName")
    media_type: str | None = Field(default=None, alias="mediaType")
    data: str = ""

    @property
    def is_image(self) -> bool:
        return bool(self.media_type) and self.media_type.startswith("image/")


class TranscriptMessage(BaseModel):
    """The `message` payload of a transcript entry."""

    model_config = ConfigDict(extra="allow")

    role: str | None = None
    content: Any = None


class TranscriptEntry(BaseModel):
    """
    One line of a session transcript.

    Unknown fields are preserved so entries written by the agent runtime
    itself round-trip unchanged.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    message: TranscriptMessage | None = None
    uuid: str = Field(default_factory=lambda: str(uuid4()))
    sessionId: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)

    @classmethod
    def enrich(cls, session_id: str, entry: dict[str, Any]) -> "TranscriptEntry":
        """Stamp an entry with a fresh id, the owning session and the current time."""
        data = {k: v for k, v in entry.items() if k not in ("uuid", "sessionId", "timestamp")}
        return cls(**data, sessionId=session_id)

    def to_line(self) -> str:
        return self.model_dump_json(exclude_none=True)


__all__ = ["Attachment", "TranscriptEntry", "TranscriptMessage", "utc_timestamp"]
