"""
Native streaming delivery through the local agent runtime.

Implements the primary path: the runtime is driven with `query()` and its
typed messages are relayed as wire-shaped records.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from claude_agent_sdk import ClaudeAgentOptions, query

from ..attachments import build_user_message
from ..channel import SingleUseChannel
from ..config import BridgeConfig
from ..permissions import PermissionHandler
from .base import DeliveryRequest, DeliveryStrategy
from .serialization import message_session_id, serialize_message

logger = logging.getLogger(__name__)

PermissionCallbackFactory = Callable[[DeliveryRequest], Any]


def default_permission_callback(config: BridgeConfig) -> PermissionCallbackFactory:
    def factory(request: DeliveryRequest) -> PermissionHandler:
        return PermissionHandler(
            timeout_seconds=config.permission_timeout_seconds,
            cwd=request.context.working_directory,
        )
    return factory


class NativeDelivery(DeliveryStrategy):
    """
    Streaming delivery via the agent runtime.

    Plain text goes in as a string prompt. Multi-block content, or any
    request needing a permission callback, goes in through a
    SingleUseChannel holding one user message.
    """

    name = "native"

    def __init__(
        self,
        config: BridgeConfig | None = None,
        query_fn: Callable[..., AsyncIterator[Any]] = query,
        permission_callback: PermissionCallbackFactory | None = None,
    ):
        self.config = config or BridgeConfig()
        self._query = query_fn
        self._permission_callback = permission_callback or default_permission_callback(self.config)

    def build_options(self, request: DeliveryRequest) -> ClaudeAgentOptions:
        """Translate a request into runtime options."""
        context = request.context
        options = request.options

        options_kwargs: dict[str, Any] = {
            "cwd": context.working_directory,
            "permission_mode": options.permission_mode,
            "model": options.runtime_model,
            "max_turns": self.config.max_turns,
            "add_dirs": context.additional_directories,
            "setting_sources": list(self.config.setting_sources),
            "env": context.credentials.runtime_env(),
        }
        if options.is_interactive:
            options_kwargs["can_use_tool"] = self._permission_callback(request)
        if context.executable:
            options_kwargs["cli_path"] = context.executable
        if request.resume_session_id:
            options_kwargs["resume"] = request.resume_session_id

        logger.debug(f"Model mapping: {options.model} -> {options.runtime_model}")
        logger.debug(f"Using {'system Claude CLI: ' + context.executable if context.executable else 'SDK built-in Claude CLI'}")
        logger.debug(
            "Options: "
            + str({k: ("[Function]" if k == "can_use_tool" else v) for k, v in options_kwargs.items() if k != "env"})
        )
        return ClaudeAgentOptions(**options_kwargs)

    def build_prompt(self, request: DeliveryRequest, streaming: bool) -> str | SingleUseChannel[dict[str, Any]]:
        if not streaming:
            return request.prompt_text
        channel: SingleUseChannel[dict[str, Any]] = SingleUseChannel()
        channel.put(build_user_message(request.content))
        channel.close()
        logger.debug(f"Built user message with content blocks: {[b.get('type') for b in request.content]}")
        return channel

    async def submit(self, request: DeliveryRequest) -> AsyncIterator[dict[str, Any]]:
        options = self.build_options(request)
        # The runtime only accepts a permission callback with streaming input
        streaming = request.has_attachments or options.can_use_tool is not None
        prompt = self.build_prompt(request, streaming)

        iterator = self._query(prompt=prompt, options=options).__aiter__()
        try:
            first = await anext(iterator)
        except StopAsyncIteration:
            return _empty()
        return self._relay(first, iterator, request.resume_session_id)

    async def _relay(
        self,
        first: Any,
        iterator: AsyncIterator[Any],
        session_id: str | None,
    ) -> AsyncIterator[dict[str, Any]]:
        message_count = 0
        pending: Any = first
        while True:
            message_count += 1
            record = serialize_message(pending, session_id)
            session_id = message_session_id(record) or session_id
            logger.debug(f"Received message #{message_count}, type: {record.get('type')}")
            yield record
            try:
                pending = await anext(iterator)
            except StopAsyncIteration:
                break
        logger.debug(f"Message loop completed. Total messages: {message_count}")


async def _empty() -> AsyncIterator[dict[str, Any]]:
    return
    yield


__all__ = ["NativeDelivery"]
