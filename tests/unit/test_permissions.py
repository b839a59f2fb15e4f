"""Tests for the file-based tool permission handler."""

import asyncio
import json
from pathlib import Path

import pytest
from claude_agent_sdk import PermissionResultAllow, PermissionResultDeny

from claude_bridge.permissions import PermissionHandler, default_permission_dir


async def answer(permission_dir: Path, response: dict) -> dict:
    """Wait for a request file, answer it, and return the request."""
    while True:
        requests = list(permission_dir.glob("request-*.json"))
        if requests:
            request = json.loads(requests[0].read_text())
            (permission_dir / f"response-{request['requestId']}.json").write_text(json.dumps(response))
            return request
        await asyncio.sleep(0.01)


class TestPermissionHandler:
    """Tests for request/response exchange."""

    @pytest.mark.asyncio
    async def test_allow(self, tmp_path: Path):
        handler = PermissionHandler(permission_dir=tmp_path, timeout_seconds=5, cwd="/work", poll_interval=0.01)

        result, request = await asyncio.gather(
            handler("Bash", {"command": "ls"}),
            answer(tmp_path, {"allow": True}),
        )

        assert isinstance(result, PermissionResultAllow)
        assert result.updated_input == {"command": "ls"}
        assert request["toolName"] == "Bash"
        assert request["inputs"] == {"command": "ls"}
        assert request["cwd"] == "/work"
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_allow_with_updated_input(self, tmp_path: Path):
        handler = PermissionHandler(permission_dir=tmp_path, timeout_seconds=5, poll_interval=0.01)

        result, _ = await asyncio.gather(
            handler("Write", {"path": "a"}),
            answer(tmp_path, {"allow": True, "updatedInput": {"path": "b"}}),
        )

        assert result.updated_input == {"path": "b"}

    @pytest.mark.asyncio
    async def test_deny_with_message(self, tmp_path: Path):
        handler = PermissionHandler(permission_dir=tmp_path, timeout_seconds=5, poll_interval=0.01)

        result, _ = await asyncio.gather(
            handler("Bash", {"command": "rm -rf /"}),
            answer(tmp_path, {"allow": False, "message": "Nope"}),
        )

        assert isinstance(result, PermissionResultDeny)
        assert result.message == "Nope"

    @pytest.mark.asyncio
    async def test_timeout_denies(self, tmp_path: Path):
        handler = PermissionHandler(permission_dir=tmp_path, timeout_seconds=0.05, poll_interval=0.01)

        result = await handler("Bash", {"command": "ls"})

        assert isinstance(result, PermissionResultDeny)
        assert result.message == "Permission request timed out"
        assert list(tmp_path.iterdir()) == []


class TestDefaultPermissionDir:
    def test_env_override(self, tmp_path: Path):
        assert default_permission_dir({"CLAUDE_PERMISSION_DIR": str(tmp_path)}) == tmp_path

    def test_temp_default(self):
        assert default_permission_dir({}).name == "claude-permission"
