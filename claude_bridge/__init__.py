"""Channel bridge: one-shot, resumable conversations with a Claude agent runtime.

Each process invocation carries exactly one exchange between a host
(an IDE plugin) and the agent runtime:

- Context: credentials, working directory, runtime executable
- Delivery: native streaming runtime, or the messages API fallback
- Continuity: per-session JSONL transcripts replayed on resume
"""

__version__ = "0.1.0"

from .bridge import BridgeState, ExchangeResult, MessageBridge
from .channel import ChannelClosed, ChannelError, SingleUseChannel
from .config import BridgeConfig, default_config
from .context import DeliveryOptions, ExecutionContext, map_model_name, resolve_context
from .credentials import ConfigurationError, Credentials, resolve_credentials
from .delivery import (
    ApiDelivery,
    ApiErrorResponse,
    DeliveryError,
    DeliveryRequest,
    DeliveryStrategy,
    DeliveryTimeout,
    NativeDelivery,
    select_strategy,
)
from .executable import locate_runtime_executable
from .schema import Attachment, TranscriptEntry
from .transcript_store import TranscriptStore
from .workdir import select_working_directory

__all__ = [
    # Bridge
    "BridgeState",
    "ExchangeResult",
    "MessageBridge",
    # Delivery
    "ApiDelivery",
    "ApiErrorResponse",
    "DeliveryError",
    "DeliveryRequest",
    "DeliveryStrategy",
    "DeliveryTimeout",
    "NativeDelivery",
    "select_strategy",
    "ChannelClosed",
    "ChannelError",
    "SingleUseChannel",
    # Context
    "ConfigurationError",
    "Credentials",
    "DeliveryOptions",
    "ExecutionContext",
    "locate_runtime_executable",
    "map_model_name",
    "resolve_context",
    "resolve_credentials",
    "select_working_directory",
    # Persistence & Config
    "Attachment",
    "TranscriptEntry",
    "TranscriptStore",
    "BridgeConfig",
    "default_config",
]
