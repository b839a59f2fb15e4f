"""
Non-streaming fallback delivery through the messages API.

For callers that cannot use the local runtime. There is no remote session
here, so the bridge keeps the conversation itself: each turn is appended to
the session transcript and replayed on resume. The records yielded mimic
the runtime's own (system init, assistant, result) so the host sees the
same protocol either way.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any
from uuid import uuid4

import anthropic

from ..config import BridgeConfig
from ..credentials import Credentials
from ..transcript_store import TranscriptStore
from .base import ApiErrorResponse, DeliveryRequest, DeliveryStrategy

logger = logging.getLogger(__name__)

ERROR_HINT = (
    "Possible causes:\n"
    "1. The API key is configured incorrectly\n"
    "2. The third-party proxy service is misconfigured\n"
    "3. Check the configuration in ~/.claude/settings.json"
)


def _empty_usage(usage: dict[str, Any] | None = None) -> dict[str, int]:
    usage = usage or {}
    return {
        "input_tokens": usage.get("input_tokens") or 0,
        "output_tokens": usage.get("output_tokens") or 0,
        "cache_creation_input_tokens": 0,
        "cache_read_input_tokens": 0,
    }


def response_to_dict(response: Any) -> dict[str, Any]:
    """Plain dict view of an API response object."""
    if isinstance(response, dict):
        return response
    if hasattr(response, "model_dump"):
        return response.model_dump()
    return {}


def is_error_payload(data: dict[str, Any]) -> bool:
    return bool(data.get("error")) or data.get("type") == "error"


def error_details(data: dict[str, Any]) -> tuple[str, str]:
    """(error type, error message) of an error-shaped payload."""
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message") or data.get("message") or "Unknown API error"
        error_type = error.get("type") or data.get("type") or "error"
    else:
        message = (error if isinstance(error, str) and error else None) or data.get("message") or "Unknown API error"
        error_type = data.get("type") or "error"
    return str(error_type), str(message)


def client_error_payload(error: anthropic.APIError) -> dict[str, Any]:
    """
    Error-shaped payload for a failed API call.

    HTTP rejections keep the error body the server sent; connection
    failures and timeouts are described by the exception itself.
    """
    body = error.body if isinstance(error.body, dict) else {}
    if is_error_payload(body):
        return body
    return {"type": "error", "error": {"type": type(error).__name__, "message": error.message}}


class ApiDelivery(DeliveryStrategy):
    """Single request/response delivery with locally kept history."""

    name = "api"

    def __init__(
        self,
        config: BridgeConfig | None = None,
        store: TranscriptStore | None = None,
        client_factory: Callable[[Credentials], Any] | None = None,
    ):
        self.config = config or BridgeConfig()
        self.store = store or TranscriptStore()
        self._client_factory = client_factory or self._default_client

    @staticmethod
    def _default_client(credentials: Credentials) -> anthropic.AsyncAnthropic:
        client_kwargs: dict[str, Any] = {"api_key": credentials.api_key}
        if credentials.endpoint:
            client_kwargs["base_url"] = credentials.endpoint
        return anthropic.AsyncAnthropic(**client_kwargs)

    def _persist(self, session_id: str, project_path: str, entry: dict[str, Any]) -> None:
        try:
            self.store.append(session_id, project_path, entry)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to persist {entry.get('type')} message: {e}")

    def build_messages(self, request: DeliveryRequest, session_id: str) -> list[dict[str, Any]]:
        """History (when resuming) followed by the current user turn."""
        messages = [{"role": "user", "content": request.content}]
        if request.resume_session_id:
            try:
                history = self.store.load_history(session_id, request.context.project_key_path)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load session history: {e}")
                history = []
            if history:
                logger.debug(f"Loaded {len(history)} history messages for session continuity")
                messages = [*history, *messages]
        return messages

    async def submit(self, request: DeliveryRequest) -> AsyncIterator[dict[str, Any]]:
        context = request.context
        session_id = request.resume_session_id or str(uuid4())
        model_id = request.options.model or self.config.fallback_model
        project_path = context.project_key_path

        logger.debug(f"Using messages API fallback (non-streaming), model: {model_id}")

        self._persist(session_id, project_path, {
            "type": "user",
            "message": {"role": "user", "content": request.content},
        })
        messages = self.build_messages(request, session_id)

        system_record = {
            "type": "system",
            "subtype": "init",
            "cwd": context.working_directory,
            "session_id": session_id,
            "tools": [],
            "mcp_servers": [],
            "model": model_id,
            "permissionMode": request.options.permission_mode,
            "apiKeySource": "ANTHROPIC_API_KEY",
            "uuid": str(uuid4()),
        }

        client = self._client_factory(context.credentials)
        try:
            response = await client.messages.create(
                model=model_id,
                max_tokens=self.config.fallback_max_tokens,
                messages=messages,
            )
            data = response_to_dict(response)
        except anthropic.APIStatusError as e:
            logger.error(f"API status error {e.status_code}: {e.message}")
            data = client_error_payload(e)
        except anthropic.APIError as e:
            logger.error(f"API request failed: {type(e).__name__}: {e.message}")
            data = client_error_payload(e)

        if is_error_payload(data):
            return self._error_records(system_record, data, session_id, model_id)
        return self._success_records(system_record, data, session_id, model_id, project_path)

    async def _success_records(
        self,
        system_record: dict[str, Any],
        data: dict[str, Any],
        session_id: str,
        model_id: str,
        project_path: str,
    ) -> AsyncIterator[dict[str, Any]]:
        content = data.get("content") or []
        usage = _empty_usage(data.get("usage"))

        yield system_record
        yield {
            "type": "assistant",
            "message": {
                "id": data.get("id") or str(uuid4()),
                "model": data.get("model") or model_id,
                "role": "assistant",
                "stop_reason": data.get("stop_reason") or "end_turn",
                "type": "message",
                "usage": usage,
                "content": content,
            },
            "session_id": session_id,
            "uuid": str(uuid4()),
        }

        self._persist(session_id, project_path, {
            "type": "assistant",
            "message": {"role": "assistant", "content": content},
        })

        yield {
            "type": "result",
            "subtype": "success",
            "is_error": False,
            "duration_ms": 0,
            "num_turns": 1,
            "result": "".join(b.get("text", "") for b in content if isinstance(b, dict) and b.get("type") == "text"),
            "session_id": session_id,
            "total_cost_usd": 0,
            "usage": usage,
            "uuid": str(uuid4()),
        }

    async def _error_records(
        self,
        system_record: dict[str, Any],
        data: dict[str, Any],
        session_id: str,
        model_id: str,
    ) -> AsyncIterator[dict[str, Any]]:
        error_type, error_message = error_details(data)
        logger.error(f"API error {error_type}: {error_message}")
        text = f"API error: {error_message}\n\n{ERROR_HINT}"

        yield system_record
        yield {
            "type": "assistant",
            "message": {
                "id": str(uuid4()),
                "model": model_id,
                "role": "assistant",
                "stop_reason": "error",
                "type": "message",
                "usage": _empty_usage(),
                "content": [{"type": "text", "text": text}],
            },
            "session_id": session_id,
            "uuid": str(uuid4()),
        }
        yield {
            "type": "result",
            "subtype": "error",
            "is_error": True,
            "duration_ms": 0,
            "num_turns": 1,
            "result": text,
            "session_id": session_id,
            "total_cost_usd": 0,
            "usage": _empty_usage(),
            "uuid": str(uuid4()),
        }
        raise ApiErrorResponse(error_message)


__all__ = ["ApiDelivery", "error_details", "is_error_payload", "response_to_dict"]
