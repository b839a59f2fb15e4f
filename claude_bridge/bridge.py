"""
Streaming message bridge.

Drives one exchange with the agent runtime and relays it to the host over
the line protocol:

    INIT -> CONTEXT_RESOLVED -> DISPATCHED -> STREAMING -> COMPLETED
                                    |              |
                                TIMED_OUT        FAILED

Dispatch races a fixed wall-clock budget; once the runtime starts
answering, records are relayed in the order they are produced. The
terminal JSON record is always the last line written.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .attachments import build_content_blocks
from .config import BridgeConfig
from .context import DeliveryOptions, ExecutionContext, resolve_context, transcript_project_path
from .delivery import (
    ApiErrorResponse,
    DeliveryRequest,
    DeliveryStrategy,
    DeliveryTimeout,
    select_strategy,
)
from .protocol import ProtocolWriter, to_json
from .schema import Attachment
from .transcript_store import TranscriptStore

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Session file not found"


class BridgeState(Enum):
    """Exchange lifecycle."""

    INIT = "init"
    CONTEXT_RESOLVED = "context_resolved"
    DISPATCHED = "dispatched"
    STREAMING = "streaming"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class ExchangeResult:
    """Outcome of one exchange, as reported in the terminal record."""

    success: bool
    state: BridgeState
    session_id: str | None = None
    error: str | None = None
    message_count: int = 0


StrategyFactory = Callable[[BridgeConfig, ExecutionContext, bool, TranscriptStore], DeliveryStrategy]
ContextResolver = Callable[[DeliveryOptions], ExecutionContext]


class MessageBridge:
    """
    Orchestrates one request/response exchange.

    The delivery path is chosen per request by `strategy_factory`; the
    bridge itself only sees wire-shaped records, so both paths produce the
    same output.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        writer: ProtocolWriter | None = None,
        store: TranscriptStore | None = None,
        strategy_factory: StrategyFactory | None = None,
        context_resolver: ContextResolver | None = None,
    ):
        self.config = config or BridgeConfig()
        self.writer = writer or ProtocolWriter()
        self.store = store or TranscriptStore()
        self._strategy_factory = strategy_factory or select_strategy
        self._resolve_context = context_resolver or resolve_context
        self.state = BridgeState.INIT

    def _transition(self, state: BridgeState) -> None:
        logger.debug(f"Bridge state: {self.state.value} -> {state.value}")
        self.state = state

    async def send(
        self,
        message: str | None,
        options: DeliveryOptions,
        attachments: Sequence[Attachment] | None = None,
    ) -> ExchangeResult:
        """
        Send one user turn and relay the response.

        Never raises for request-level failures: they end up in the
        terminal failure record.
        """
        self._transition(BridgeState.INIT)
        attachments = list(attachments or [])
        logger.debug(
            f"send called: resume={options.resume_session_id}, cwd={options.cwd}, "
            f"permission_mode={options.permission_mode}, model={options.model}, attachments={len(attachments)}"
        )

        try:
            context = self._resolve_context(options)
            self._transition(BridgeState.CONTEXT_RESOLVED)

            request = DeliveryRequest(
                content=build_content_blocks(message, attachments),
                options=options,
                context=context,
                has_attachments=bool(attachments),
            )
            strategy = self._strategy_factory(self.config, context, bool(attachments), self.store)
            logger.debug(f"Delivery path: {strategy.name}")

            self.writer.start()
            if options.resume_session_id:
                self.writer.resuming(options.resume_session_id)

            self._transition(BridgeState.DISPATCHED)
            try:
                events = await asyncio.wait_for(strategy.submit(request), timeout=self.config.timeout_seconds)
            except asyncio.TimeoutError:
                logger.debug(f"Query timeout after {self.config.timeout_seconds} seconds")
                raise DeliveryTimeout() from None

            self._transition(BridgeState.STREAMING)
            return await self._stream(events, options.resume_session_id)

        except DeliveryTimeout as e:
            self._transition(BridgeState.TIMED_OUT)
            return self._fail(str(e))
        except Exception as e:
            logger.error(f"Send failed: {type(e).__name__}: {e}")
            self._transition(BridgeState.FAILED)
            return self._fail(str(e))

    async def _stream(self, events: Any, session_id: str | None) -> ExchangeResult:
        message_count = 0
        try:
            async for record in events:
                message_count += 1
                session_id = self._relay(record) or session_id
        except ApiErrorResponse as e:
            self.writer.end()
            self._transition(BridgeState.FAILED)
            return self._fail(str(e), session_id, message_count)

        self.writer.end()
        self._transition(BridgeState.COMPLETED)
        self.writer.success(sessionId=session_id)
        return ExchangeResult(
            success=True,
            state=self.state,
            session_id=session_id,
            message_count=message_count,
        )

    def _relay(self, record: dict[str, Any]) -> str | None:
        """Write one record; returns the session id if the record announces one."""
        self.writer.message(record)
        record_type = record.get("type")

        if record_type == "assistant":
            content = (record.get("message") or {}).get("content")
            if isinstance(content, list):
                for block in content:
                    if not isinstance(block, dict):
                        continue
                    if block.get("type") == "text":
                        self.writer.content(block.get("text", ""))
                    elif block.get("type") == "tool_use":
                        logger.debug(f"Tool use payload: {to_json(block)}")
            elif isinstance(content, str):
                self.writer.content(content)

        if record_type == "system":
            session_id = record.get("session_id")
            if session_id:
                self.writer.session_id(session_id)
                return session_id
        return None

    def _fail(self, error: str, session_id: str | None = None, message_count: int = 0) -> ExchangeResult:
        self.writer.failure(error)
        return ExchangeResult(
            success=False,
            state=self.state,
            session_id=session_id,
            error=error,
            message_count=message_count,
        )

    def get_session(self, session_id: str | None, cwd: str | None = None) -> dict[str, Any]:
        """Emit the raw transcript of a session as one JSON record."""
        try:
            messages = self.store.load_raw(session_id or "", transcript_project_path(cwd))
        except (OSError, ValueError) as e:
            logger.error(f"Get session failed: {e}")
            record = {"success": False, "error": str(e)}
        else:
            if messages is None:
                record = {"success": False, "error": SESSION_NOT_FOUND}
            else:
                record = {"success": True, "messages": messages}
        self.writer.result(record)
        return record


__all__ = ["BridgeState", "ExchangeResult", "MessageBridge", "SESSION_NOT_FOUND"]
