"""
Line protocol written to stdout for the host.

    [MESSAGE_START]
    [RESUMING] <id>
    [MESSAGE] <json>
    [CONTENT] <text>
    [SESSION_ID] <id>
    [MESSAGE_END]
    {"success": ..., ...}      terminal record, always last
"""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

MESSAGE_START = "[MESSAGE_START]"
MESSAGE = "[MESSAGE]"
CONTENT = "[CONTENT]"
SESSION_ID = "[SESSION_ID]"
RESUMING = "[RESUMING]"
MESSAGE_END = "[MESSAGE_END]"


def to_json(value: Any) -> str:
    """Compact JSON, non-ASCII kept as-is."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


class ProtocolWriter:
    """Writes tagged lines, flushing after each so the host sees them immediately."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream
        self.finished = False

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def _write(self, line: str) -> None:
        self.stream.write(line + "\n")
        self.stream.flush()

    def tagged(self, tag: str, payload: str | None = None) -> None:
        self._write(tag if payload is None else f"{tag} {payload}")

    def start(self) -> None:
        self.tagged(MESSAGE_START)

    def resuming(self, session_id: str) -> None:
        self.tagged(RESUMING, session_id)

    def message(self, record: dict[str, Any]) -> None:
        self.tagged(MESSAGE, to_json(record))

    def content(self, text: str) -> None:
        self.tagged(CONTENT, text)

    def session_id(self, session_id: str) -> None:
        self.tagged(SESSION_ID, session_id)

    def end(self) -> None:
        self.tagged(MESSAGE_END)

    def result(self, record: dict[str, Any]) -> None:
        """Terminal record. Only the first call writes."""
        if self.finished:
            return
        self.finished = True
        self._write(to_json(record))

    def success(self, **fields: Any) -> None:
        self.result({"success": True, **fields})

    def failure(self, error: str) -> None:
        self.result({"success": False, "error": error})


__all__ = ["ProtocolWriter", "to_json"]
