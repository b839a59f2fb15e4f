"""
Delivery paths to the agent runtime.

- native: streaming via the local agent runtime (default)
- api: non-streaming messages API with locally kept history
"""

from __future__ import annotations

import logging

from ..config import BridgeConfig
from ..context import ExecutionContext
from ..transcript_store import TranscriptStore
from .api import ApiDelivery
from .base import (
    TIMEOUT_MESSAGE,
    ApiErrorResponse,
    DeliveryError,
    DeliveryRequest,
    DeliveryStrategy,
    DeliveryTimeout,
)
from .native import NativeDelivery

logger = logging.getLogger(__name__)


def select_strategy(
    config: BridgeConfig,
    context: ExecutionContext,
    has_attachments: bool = False,
    store: TranscriptStore | None = None,
) -> DeliveryStrategy:
    """
    Pick the delivery path for one request.

    "native" and "api" force a path. "auto" uses the API fallback only for
    plain-text requests against a custom endpoint with
    fallback_on_custom_endpoint set; everything else goes native.
    """
    mode = config.delivery
    if mode == "api":
        return ApiDelivery(config, store)
    if mode == "native":
        return NativeDelivery(config)

    if context.credentials.is_custom_endpoint:
        logger.debug(f"Custom Base URL detected: {context.credentials.endpoint}")
        if config.fallback_on_custom_endpoint and not has_attachments:
            logger.debug("Degraded mode: using messages API fallback")
            return ApiDelivery(config, store)
        logger.debug("Will use system Claude CLI for custom Base URL")
    return NativeDelivery(config)


__all__ = [
    "ApiDelivery",
    "ApiErrorResponse",
    "DeliveryError",
    "DeliveryRequest",
    "DeliveryStrategy",
    "DeliveryTimeout",
    "NativeDelivery",
    "TIMEOUT_MESSAGE",
    "select_strategy",
]
