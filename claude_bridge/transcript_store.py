"""
Session transcript store.

Reads and appends the JSONL transcript files the agent runtime keeps at:
~/.claude/projects/{sanitized_project_path}/{session_id}.jsonl

Files are append-only: one JSON entry per line, file order is
chronological order. Unparsable lines are skipped on read.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from .schema import TranscriptEntry

logger = logging.getLogger(__name__)

HISTORY_ROLES = ("user", "assistant")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_project_path(project_path: str) -> str:
    """Filesystem-safe token for a project path: every non-alphanumeric becomes '-'."""
    return _UNSAFE_CHARS.sub("-", project_path)


class TranscriptStore:
    """
    Append-only per-session, per-project transcript log.

    Each (project path, session id) pair maps to one JSONL file under
    base_dir. Entries written here are stamped with a fresh uuid, the
    session id and a timestamp.
    """

    def __init__(self, base_dir: Path | None = None):
        """
        Initialize transcript store.

        Args:
            base_dir: Root of the project transcript tree (default: ~/.claude/projects)
        """
        self.base_dir = base_dir or (Path.home() / ".claude" / "projects")

    def get_project_dir(self, project_path: str) -> Path:
        return self.base_dir / sanitize_project_path(project_path)

    def get_session_file(self, session_id: str, project_path: str) -> Path:
        """
        Get the transcript path for a session.

        Raises:
            ValueError: If the session id is empty or not a plain file name
        """
        if not session_id or Path(session_id).name != session_id or session_id in (".", ".."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.get_project_dir(project_path) / f"{session_id}.jsonl"

    def session_exists(self, session_id: str, project_path: str) -> bool:
        return self.get_session_file(session_id, project_path).exists()

    def append(self, session_id: str, project_path: str, entry: dict[str, Any]) -> TranscriptEntry:
        """
        Append one enriched entry to the session's transcript.

        Parent directories are created as needed. Prior lines are never
        touched; appending the same entry twice yields two distinct lines.

        Returns:
            The entry as written
        """
        session_file = self.get_session_file(session_id, project_path)
        session_file.parent.mkdir(parents=True, exist_ok=True)

        enriched = TranscriptEntry.enrich(session_id, entry)
        with open(session_file, "a", encoding="utf-8") as f:
            f.write(enriched.to_line() + "\n")

        logger.debug(f"Message saved to: {session_file}")
        return enriched

    def _read_entries(self, session_file: Path) -> list[dict[str, Any]]:
        entries: list[dict[str, Any]] = []
        with open(session_file, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(entry, dict):
                    entries.append(entry)
        return entries

    def load_raw(self, session_id: str, project_path: str) -> list[dict[str, Any]] | None:
        """
        Load every parsable entry verbatim, in file order.

        Returns:
            List of entries, or None if the session has no transcript
        """
        session_file = self.get_session_file(session_id, project_path)
        if not session_file.exists():
            return None
        return self._read_entries(session_file)

    def load_history(self, session_id: str, project_path: str) -> list[dict[str, Any]]:
        """
        Rebuild the message history for context continuation.

        Only user/assistant entries with content are kept, mapped to
        {"role", "content"} pairs. A trailing user message is dropped: it is
        the current turn, which the caller sends separately.

        Returns:
            Messages API formatted history (possibly empty)
        """
        entries = self.load_raw(session_id, project_path)
        if not entries:
            return []

        messages: list[dict[str, Any]] = []
        for entry in entries:
            role = entry.get("type")
            message = entry.get("message")
            if role not in HISTORY_ROLES or not isinstance(message, dict):
                continue
            content = message.get("content")
            if content:
                messages.append({"role": role, "content": content})

        if messages and messages[-1]["role"] == "user":
            messages.pop()

        return messages


__all__ = ["TranscriptStore", "sanitize_project_path"]
