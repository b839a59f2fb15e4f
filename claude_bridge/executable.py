"""Locate a locally installed agent runtime executable."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

EXECUTABLE_NAME = "claude"

# (command, description) in the order they are tried
LOCATE_COMMANDS: tuple[tuple[list[str], str], ...] = (
    (["which", EXECUTABLE_NAME], "which"),
    (["where", EXECUTABLE_NAME], "where"),
)


def common_install_paths(environ: Mapping[str, str] | None = None) -> list[str]:
    """Well-known install locations, checked in order."""
    if environ is None:
        environ = os.environ
    home = environ.get("HOME") or os.path.expanduser("~")
    username = environ.get("USERNAME", "")
    return [
        "/usr/local/bin/claude",
        "/usr/bin/claude",
        f"{home}/.nvm/versions/node/v24.11.1/bin/claude",
        f"{home}/.local/bin/claude",
        f"{home}/.claude/local/claude",
        "C:\\Program Files\\Claude\\claude.exe",
        f"C:\\Users\\{username}\\AppData\\Local\\Programs\\Claude\\claude.exe",
    ]


def _run_locate(command: list[str]) -> str:
    result = subprocess.run(command, capture_output=True, text=True, timeout=5, check=True)
    return result.stdout


def locate_runtime_executable(
    run: Callable[[list[str]], str] = _run_locate,
    exists: Callable[[str], bool] = os.path.exists,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """
    Find the best available agent runtime executable.

    Search order:
    1. `which claude` output, verified on disk
    2. `where claude` (first line), verified on disk
    3. Well-known install paths

    Returns:
        Path to the executable, or None to use the runtime bundled with the SDK
    """
    for command, name in LOCATE_COMMANDS:
        try:
            output = run(command)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"{name} {EXECUTABLE_NAME} failed: {e}")
            continue
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if lines and exists(lines[0]):
            logger.debug(f"Found Claude CLI via {name}: {lines[0]}")
            return lines[0]

    for path in common_install_paths(environ):
        if exists(path):
            logger.debug(f"Found Claude CLI at common path: {path}")
            return path

    logger.debug("Claude CLI not found, using SDK default")
    return None


__all__ = ["common_install_paths", "locate_runtime_executable"]
