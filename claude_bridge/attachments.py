"""
Attachment loading and outgoing content construction.

Attachments arrive either on stdin (when CLAUDE_USE_STDIN=true) as a bare
JSON array or as {"attachments": [...]}, or from the legacy JSON file named
by CLAUDE_ATTACHMENTS_FILE. Anything malformed degrades to no attachments.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from .schema import Attachment

logger = logging.getLogger(__name__)

STDIN_FLAG_VAR = "CLAUDE_USE_STDIN"
LEGACY_FILE_VAR = "CLAUDE_ATTACHMENTS_FILE"
DEFAULT_STDIN_TIMEOUT = 5.0


def parse_side_channel(raw: str | None) -> Any | None:
    """Parse side-channel text as JSON, or None if blank or malformed."""
    if not raw or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse stdin JSON: {e}")
        return None
    if isinstance(parsed, dict):
        logger.debug(f"Successfully read stdin data, keys: {list(parsed.keys())}")
    return parsed


async def _open_stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


async def read_side_channel(
    environ: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_STDIN_TIMEOUT,
    reader: asyncio.StreamReader | None = None,
) -> Any | None:
    """
    Read the attachment payload the host writes to stdin.

    Only active when CLAUDE_USE_STDIN=true. Reads until EOF, bounded by
    `timeout`; a timeout or read error yields None.
    """
    if environ is None:
        environ = os.environ
    if environ.get(STDIN_FLAG_VAR) != "true":
        return None

    try:
        if reader is None:
            reader = await _open_stdin_reader()
        raw = await asyncio.wait_for(reader.read(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug("stdin read timeout, no data received")
        return None
    except (OSError, ValueError, NotImplementedError) as e:
        logger.warning(f"Error reading stdin: {e}")
        return None

    return parse_side_channel(raw.decode("utf-8", errors="replace"))


def load_attachments_from_file(environ: Mapping[str, str] | None = None) -> list[Any]:
    """Legacy path: a JSON array in the file named by CLAUDE_ATTACHMENTS_FILE."""
    if environ is None:
        environ = os.environ
    file_path = environ.get(LEGACY_FILE_VAR)
    if not file_path:
        return []
    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load attachments: {e}")
        return []
    return data if isinstance(data, list) else []


def normalize_attachments(items: Sequence[Any]) -> list[Attachment]:
    """Validate raw attachment records, dropping the malformed ones."""
    attachments: list[Attachment] = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning(f"Skipping malformed attachment: {type(item).__name__}")
            continue
        try:
            attachments.append(Attachment.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed attachment: {e}")
    return attachments


def load_attachments(payload: Any | None, environ: Mapping[str, str] | None = None) -> list[Attachment]:
    """
    Load attachments, preferring the side-channel payload.

    Supported payloads:
    1. Bare array: [{fileName, mediaType, data}, ...]
    2. Wrapped object: {"attachments": [...]}

    Falls back to the legacy file when the payload carries none.
    """
    if isinstance(payload, list) and payload:
        logger.debug(f"Using attachments from stdin (array format), count: {len(payload)}")
        return normalize_attachments(payload)
    if isinstance(payload, dict) and isinstance(payload.get("attachments"), list) and payload["attachments"]:
        logger.debug(f"Using attachments from stdin (wrapped format), count: {len(payload['attachments'])}")
        return normalize_attachments(payload["attachments"])

    logger.debug("Falling back to file-based attachments")
    return normalize_attachments(load_attachments_from_file(environ))


def attachment_block(attachment: Attachment) -> dict[str, Any]:
    """Image block for images, a text placeholder for anything else."""
    if attachment.is_image:
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": attachment.media_type or "image/png",
                "data": attachment.data,
            },
        }
    name = attachment.file_name or "attachment"
    return {"type": "text", "text": f"[Attachment: {name}]"}


def placeholder_text(blocks: Sequence[dict[str, Any]]) -> str:
    """Stand-in for an empty message so nothing empty is ever submitted."""
    image_count = sum(1 for b in blocks if b.get("type") == "image")
    if image_count:
        return f"[Uploaded {image_count} image(s)]"
    if blocks:
        return "[Uploaded attachments]"
    return "[Empty message]"


def build_content_blocks(message: str | None, attachments: Sequence[Attachment] = ()) -> list[dict[str, Any]]:
    """
    Build the outgoing user content.

    One block per attachment, in order, followed by the user's text. Empty
    text is replaced by a placeholder describing the attachments.
    """
    blocks = [attachment_block(a) for a in attachments]
    text = message if message and message.strip() else placeholder_text(blocks)
    blocks.append({"type": "text", "text": text})
    return blocks


def build_user_message(content: list[dict[str, Any]], session_id: str = "") -> dict[str, Any]:
    """Wrap content blocks in the runtime's streaming-input user message shape."""
    return {
        "type": "user",
        "session_id": session_id,
        "parent_tool_use_id": None,
        "message": {"role": "user", "content": content},
    }


__all__ = [
    "build_content_blocks",
    "build_user_message",
    "load_attachments",
    "load_attachments_from_file",
    "normalize_attachments",
    "parse_side_channel",
    "read_side_channel",
]
