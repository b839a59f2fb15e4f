"""
Convert typed runtime messages to the runtime's wire JSON shape.

The host parses `[MESSAGE]` lines expecting the same records the runtime
writes on its own stdout, so each message type is mapped back to that
shape rather than dumped field by field.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

from claude_agent_sdk import (
    AssistantMessage,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)
from claude_agent_sdk.types import StreamEvent


def serialize(obj: Any) -> Any:
    """Serialize SDK objects to JSON-compatible values."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return {k: serialize(v) for k, v in asdict(obj).items()}
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    return obj


def serialize_block(block: Any) -> Any:
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ThinkingBlock):
        return {"type": "thinking", "thinking": block.thinking, "signature": block.signature}
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": serialize(block.input)}
    if isinstance(block, ToolResultBlock):
        return {
            "type": "tool_result",
            "tool_use_id": block.tool_use_id,
            "content": serialize(block.content),
            "is_error": block.is_error,
        }
    return serialize(block)


def _serialize_content(content: Any) -> Any:
    if isinstance(content, list):
        return [serialize_block(b) for b in content]
    return content


def serialize_message(message: Any, session_id: str | None = None) -> dict[str, Any]:
    """
    Map one runtime message to its wire record.

    Args:
        message: SDK message object (or an already-serialized dict)
        session_id: Current session id, stamped on records that lack one

    Returns:
        JSON-compatible dict with a `type` field
    """
    if isinstance(message, dict):
        return message

    if isinstance(message, SystemMessage):
        data = dict(message.data or {})
        data.setdefault("type", "system")
        data.setdefault("subtype", message.subtype)
        return serialize(data)

    if isinstance(message, AssistantMessage):
        return {
            "type": "assistant",
            "message": {
                "role": "assistant",
                "model": message.model,
                "content": _serialize_content(message.content),
            },
            "parent_tool_use_id": message.parent_tool_use_id,
            "session_id": session_id,
        }

    if isinstance(message, UserMessage):
        return {
            "type": "user",
            "message": {"role": "user", "content": _serialize_content(message.content)},
            "parent_tool_use_id": message.parent_tool_use_id,
            "session_id": session_id,
        }

    if isinstance(message, ResultMessage):
        return {"type": "result", **serialize(message)}

    if isinstance(message, StreamEvent):
        return {"type": "stream_event", **serialize(message)}

    record = serialize(message)
    if not isinstance(record, dict):
        record = {"value": record}
    record.setdefault("type", type(message).__name__.lower())
    return record


def message_session_id(record: dict[str, Any]) -> str | None:
    """Session id carried by a system or result record, if any."""
    if record.get("type") in ("system", "result"):
        session_id = record.get("session_id")
        if isinstance(session_id, str) and session_id:
            return session_id
    return None


__all__ = ["message_session_id", "serialize", "serialize_block", "serialize_message"]
