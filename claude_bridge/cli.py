#!/usr/bin/env python3
"""
Command-line entry point for the channel bridge.

Each invocation handles exactly one command and exits. Session state lives
with the caller (the session id) and on disk (transcripts), never here.

Usage:
    claude-bridge send <message> [sessionId] [cwd] [permissionMode] [model]
    claude-bridge sendWithAttachments <message> [sessionId] [cwd] [permissionMode] [model]
    claude-bridge getSession <sessionId> [cwd]

sendWithAttachments reads its attachments from stdin when CLAUDE_USE_STDIN=true,
otherwise from the JSON file named by CLAUDE_ATTACHMENTS_FILE.

Exit codes: 0 when the command ran (failures are reported in the final JSON
line), 1 for an unknown command or an unhandled fault.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from .attachments import load_attachments, read_side_channel
from .bridge import MessageBridge
from .config import BridgeConfig
from .context import DeliveryOptions
from .protocol import ProtocolWriter

logger = logging.getLogger(__name__)

COMMANDS = ("send", "sendWithAttachments", "getSession")


def configure_logging(level: str) -> None:
    """Route all logging to stderr; stdout carries the line protocol."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def configure_stdio() -> None:
    """Write UTF-8 on stdout and stderr whatever the locale encoding."""
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8")


def _send_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, add_help=False)
    parser.add_argument("message", nargs="?", default="")
    parser.add_argument("session_id", nargs="?")
    parser.add_argument("cwd", nargs="?")
    parser.add_argument("permission_mode", nargs="?")
    parser.add_argument("model", nargs="?")
    return parser


def _session_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, add_help=False)
    parser.add_argument("session_id", nargs="?")
    parser.add_argument("cwd", nargs="?")
    return parser


def _options(args: argparse.Namespace) -> DeliveryOptions:
    return DeliveryOptions.from_args(
        session_id=args.session_id,
        cwd=args.cwd,
        permission_mode=args.permission_mode,
        model=args.model,
    )


async def run_command(
    command: str,
    argv: list[str],
    config: BridgeConfig,
    bridge: MessageBridge,
) -> int:
    """Run one known command. Returns the process exit code."""
    if command == "send":
        args, _ = _send_parser(command).parse_known_args(["--", *argv])
        await bridge.send(args.message, _options(args))
        return 0

    if command == "sendWithAttachments":
        args, _ = _send_parser(command).parse_known_args(["--", *argv])
        payload: Any = await read_side_channel(timeout=config.stdin_timeout_seconds)
        attachments = load_attachments(payload)
        message = args.message
        if not message and isinstance(payload, dict) and isinstance(payload.get("message"), str):
            message = payload["message"]
        logger.debug(f"Loaded attachments count: {len(attachments)}")
        await bridge.send(message, _options(args), attachments)
        return 0

    if command == "getSession":
        args, _ = _session_parser(command).parse_known_args(["--", *argv])
        bridge.get_session(args.session_id, args.cwd)
        return 0

    raise ValueError(f"Unknown command: {command}")


def main(
    argv: list[str] | None = None,
    config: BridgeConfig | None = None,
    bridge: MessageBridge | None = None,
) -> int:
    """
    Dispatch one command.

    Args:
        argv: Arguments after the program name (defaults to sys.argv[1:])
        config: Configuration (defaults to BridgeConfig.load())
        bridge: Bridge instance (defaults to one writing to stdout)

    Returns:
        Process exit code
    """
    if argv is None:
        argv = sys.argv[1:]
    configure_stdio()
    config = config or BridgeConfig.load()
    configure_logging(config.log_level)

    writer = bridge.writer if bridge else ProtocolWriter()
    command = argv[0] if argv else ""

    if command not in COMMANDS:
        logger.error(f"Unknown command: {command}")
        writer.failure(f"Unknown command: {command}")
        return 1

    bridge = bridge or MessageBridge(config=config, writer=writer)
    try:
        return asyncio.run(run_command(command, argv[1:], config, bridge))
    except Exception as e:
        logger.exception(f"Unhandled error running {command}")
        writer.failure(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
