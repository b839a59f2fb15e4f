"""
Configuration management for the channel bridge.

Settings come from three layers, highest priority first:
1. CLAUDE_BRIDGE_* environment variables
2. ~/.claude/bridge-config.json
3. Dataclass defaults
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


CONFIG_PATH = Path.home() / ".claude" / "bridge-config.json"

DeliveryMode = Literal["auto", "native", "api"]
DELIVERY_MODES = ("auto", "native", "api")


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BridgeConfig:
    """
    Bridge configuration.

    Timeouts are wall-clock seconds. `delivery` picks the path used to reach
    the agent runtime:
    - "auto": native streaming path, unless the endpoint is custom and
      `fallback_on_custom_endpoint` is set
    - "native": always the local agent runtime
    - "api": always the non-streaming messages API
    """

    timeout_seconds: float = 60
    max_turns: int = 100
    stdin_timeout_seconds: float = 5
    delivery: DeliveryMode = "auto"
    fallback_on_custom_endpoint: bool = False
    fallback_model: str = "claude-sonnet-4-5"
    fallback_max_tokens: int = 8192
    permission_timeout_seconds: float = 300
    log_level: str = "WARNING"
    setting_sources: list[str] = field(default_factory=lambda: ["user", "project", "local"])

    @classmethod
    def load(cls, path: Path | None = None, environ: dict[str, str] | None = None) -> "BridgeConfig":
        """
        Load configuration from file, then apply environment overrides.

        Args:
            path: Optional config file path. Defaults to ~/.claude/bridge-config.json
            environ: Environment mapping (defaults to os.environ)

        Returns:
            BridgeConfig with user settings merged over defaults
        """
        if path is None:
            path = CONFIG_PATH
        if environ is None:
            environ = dict(os.environ)

        data: dict[str, Any] = {}
        if path.exists():
            try:
                loaded = json.loads(path.read_text())
                if isinstance(loaded, dict):
                    data = loaded
            except (json.JSONDecodeError, OSError):
                # Use defaults on error
                pass

        config = cls(**_filter_dataclass_fields(data, cls))
        config.apply_env(environ)
        return config

    def apply_env(self, environ: dict[str, str]) -> None:
        """Apply CLAUDE_BRIDGE_* overrides in place."""
        timeout = environ.get("CLAUDE_BRIDGE_TIMEOUT")
        if timeout:
            try:
                self.timeout_seconds = float(timeout)
            except ValueError:
                pass

        delivery = environ.get("CLAUDE_BRIDGE_DELIVERY")
        if delivery and delivery.lower() in DELIVERY_MODES:
            self.delivery = delivery.lower()  # type: ignore[assignment]

        log_level = environ.get("CLAUDE_BRIDGE_LOG_LEVEL")
        if log_level:
            self.log_level = log_level.upper()

        fallback = environ.get("CLAUDE_BRIDGE_FALLBACK_ON_CUSTOM_ENDPOINT")
        if fallback is not None:
            self.fallback_on_custom_endpoint = _env_flag(fallback)

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)


# Default configuration instance
default_config = BridgeConfig()
