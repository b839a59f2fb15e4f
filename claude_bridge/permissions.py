"""
Tool-use permission handler.

In the interactive "default" permission mode the runtime asks before each
tool call. The host answers through a shared directory:

    request-<id>.json   written here: requestId, toolName, inputs, cwd, timestamp
    response-<id>.json  written by the host: {"allow": bool, "message": str?}

No answer within the timeout means deny.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from uuid import uuid4

from claude_agent_sdk import PermissionResultAllow, PermissionResultDeny

from .schema import utc_timestamp

logger = logging.getLogger(__name__)

PERMISSION_DIR_VAR = "CLAUDE_PERMISSION_DIR"
POLL_INTERVAL_SECONDS = 0.1


def default_permission_dir(environ: Mapping[str, str] | None = None) -> Path:
    if environ is None:
        environ = os.environ
    configured = environ.get(PERMISSION_DIR_VAR)
    if configured:
        return Path(configured)
    return Path(tempfile.gettempdir()) / "claude-permission"


class PermissionHandler:
    """File-based permission exchange with the host."""

    def __init__(
        self,
        permission_dir: Path | None = None,
        timeout_seconds: float = 300,
        cwd: str | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.permission_dir = permission_dir or default_permission_dir()
        self.timeout_seconds = timeout_seconds
        self.cwd = cwd
        self.poll_interval = poll_interval

    def _write_request(self, request_id: str, tool_name: str, tool_input: dict[str, Any]) -> Path:
        self.permission_dir.mkdir(parents=True, exist_ok=True)
        request_file = self.permission_dir / f"request-{request_id}.json"
        request_file.write_text(
            json.dumps({
                "requestId": request_id,
                "toolName": tool_name,
                "inputs": tool_input,
                "cwd": self.cwd,
                "timestamp": utc_timestamp(),
            }),
            encoding="utf-8",
        )
        return request_file

    async def _await_response(self, response_file: Path) -> dict[str, Any] | None:
        deadline = time.monotonic() + self.timeout_seconds
        while time.monotonic() < deadline:
            if response_file.exists():
                try:
                    data = json.loads(response_file.read_text(encoding="utf-8"))
                except json.JSONDecodeError:
                    # Host may still be writing it
                    await asyncio.sleep(self.poll_interval)
                    continue
                return data if isinstance(data, dict) else {}
            await asyncio.sleep(self.poll_interval)
        return None

    async def __call__(self, tool_name: str, tool_input: dict[str, Any], context: Any = None):
        """Ask the host whether a tool call may run."""
        request_id = str(uuid4())
        response_file = self.permission_dir / f"response-{request_id}.json"

        try:
            request_file = self._write_request(request_id, tool_name, tool_input)
        except OSError as e:
            logger.warning(f"Could not write permission request for {tool_name}: {e}")
            return PermissionResultDeny(message=f"Permission request failed: {e}")

        logger.debug(f"Permission requested: tool={tool_name}, id={request_id}")
        try:
            response = await self._await_response(response_file)
        finally:
            for path in (request_file, response_file):
                try:
                    path.unlink(missing_ok=True)
                except OSError:
                    pass

        if response is None:
            logger.warning(f"Permission request timed out: tool={tool_name}")
            return PermissionResultDeny(message="Permission request timed out")

        if response.get("allow"):
            updated_input = response.get("updatedInput")
            return PermissionResultAllow(
                updated_input=updated_input if isinstance(updated_input, dict) else tool_input
            )
        return PermissionResultDeny(message=response.get("message") or "User denied permission")


__all__ = ["PermissionHandler", "default_permission_dir"]
