"""
Delivery strategy interface.

A strategy takes one request to the agent runtime and, once the remote side
has answered, returns the stream of wire-shaped event records. The bridge
relays those records without knowing which path produced them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from ..context import DeliveryOptions, ExecutionContext

TIMEOUT_MESSAGE = "Claude Code process aborted by user"


class DeliveryError(Exception):
    """Request to the agent runtime failed."""
    pass


class DeliveryTimeout(DeliveryError):
    """The runtime did not answer within the time budget."""

    def __init__(self, message: str = TIMEOUT_MESSAGE):
        super().__init__(message)


class ApiErrorResponse(DeliveryError):
    """
    The API answered with an error-shaped payload.

    Raised after the strategy has already yielded an assistant message
    describing the error and an error result record.
    """
    pass


@dataclass(frozen=True)
class DeliveryRequest:
    """One outgoing user turn."""

    content: list[dict[str, Any]]
    options: DeliveryOptions
    context: ExecutionContext
    has_attachments: bool = False

    @property
    def prompt_text(self) -> str:
        """The trailing text block: the user's message or its placeholder."""
        for block in reversed(self.content):
            if block.get("type") == "text":
                return block.get("text", "")
        return ""

    @property
    def resume_session_id(self) -> str | None:
        return self.options.resume_session_id


class DeliveryStrategy(ABC):
    """One way of reaching the agent runtime."""

    name: str = "base"

    @abstractmethod
    async def submit(self, request: DeliveryRequest) -> AsyncIterator[dict[str, Any]]:
        """
        Dispatch the request.

        Returns once the runtime has started answering; the returned
        iterator yields wire-shaped event records in production order.
        """
        pass


__all__ = [
    "ApiErrorResponse",
    "DeliveryError",
    "DeliveryRequest",
    "DeliveryStrategy",
    "DeliveryTimeout",
    "TIMEOUT_MESSAGE",
]
