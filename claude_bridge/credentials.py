"""
Credential and endpoint resolution.

Merges ~/.claude/settings.json with the process environment into the
active API key and endpoint. The settings file wins over the environment.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path.home() / ".claude" / "settings.json"
DEFAULT_HOST = "api.anthropic.com"
DEFAULT_ENDPOINT = f"https://{DEFAULT_HOST}"

SOURCE_SETTINGS = "settings.json"
SOURCE_ENVIRONMENT = "environment"
SOURCE_DEFAULT = "default"


class ConfigurationError(Exception):
    """Required configuration is missing."""
    pass


@dataclass(frozen=True)
class Credentials:
    """Active API key and endpoint with where each came from."""

    api_key: str
    endpoint: str | None = None
    api_key_source: str = SOURCE_DEFAULT
    endpoint_source: str = SOURCE_DEFAULT

    @property
    def is_custom_endpoint(self) -> bool:
        return is_custom_endpoint(self.endpoint)

    def runtime_env(self) -> dict[str, str]:
        """Environment entries handed to the agent runtime process."""
        env = {"ANTHROPIC_API_KEY": self.api_key}
        if self.endpoint:
            env["ANTHROPIC_BASE_URL"] = self.endpoint
        return env


def load_claude_settings(path: Path | None = None) -> dict[str, Any] | None:
    """Read the runtime's user settings file, or None if unreadable."""
    path = path or SETTINGS_PATH
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def resolve_credentials(
    settings: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> Credentials:
    """
    Resolve the API key and endpoint.

    Priority for the key:
    1. settings.env.ANTHROPIC_API_KEY
    2. settings.env.ANTHROPIC_AUTH_TOKEN
    3. ANTHROPIC_API_KEY environment variable

    Priority for the endpoint:
    1. settings.env.ANTHROPIC_BASE_URL
    2. ANTHROPIC_BASE_URL environment variable

    Raises:
        ConfigurationError: If no key is configured anywhere
    """
    if environ is None:
        environ = dict(os.environ)
    settings_env = (settings or {}).get("env") or {}
    if not isinstance(settings_env, dict):
        settings_env = {}

    api_key: str | None = None
    api_key_source = SOURCE_DEFAULT
    if settings_env.get("ANTHROPIC_API_KEY"):
        api_key = settings_env["ANTHROPIC_API_KEY"]
        api_key_source = SOURCE_SETTINGS
    elif settings_env.get("ANTHROPIC_AUTH_TOKEN"):
        api_key = settings_env["ANTHROPIC_AUTH_TOKEN"]
        api_key_source = SOURCE_SETTINGS
    elif environ.get("ANTHROPIC_API_KEY"):
        api_key = environ["ANTHROPIC_API_KEY"]
        api_key_source = SOURCE_ENVIRONMENT

    endpoint: str | None = None
    endpoint_source = SOURCE_DEFAULT
    if settings_env.get("ANTHROPIC_BASE_URL"):
        endpoint = settings_env["ANTHROPIC_BASE_URL"]
        endpoint_source = SOURCE_SETTINGS
    elif environ.get("ANTHROPIC_BASE_URL"):
        endpoint = environ["ANTHROPIC_BASE_URL"]
        endpoint_source = SOURCE_ENVIRONMENT

    if not api_key:
        logger.error(
            "API Key not configured. Please set ANTHROPIC_API_KEY in environment or ~/.claude/settings.json"
        )
        raise ConfigurationError("API Key not configured")

    credentials = Credentials(
        api_key=api_key,
        endpoint=endpoint,
        api_key_source=api_key_source,
        endpoint_source=endpoint_source,
    )
    logger.debug(f"API Key loaded: {mask_api_key(api_key)} (source: {api_key_source})")
    logger.debug(f"Base URL: {endpoint or DEFAULT_ENDPOINT} (source: {endpoint_source})")
    return credentials


def is_custom_endpoint(endpoint: str | None) -> bool:
    """True unless the endpoint is absent or points at the default host."""
    if not endpoint:
        return False
    return DEFAULT_HOST not in endpoint.lower()


def mask_api_key(api_key: str | None) -> str:
    if not api_key:
        return "NOT SET"
    if len(api_key) <= 15:
        return "*" * len(api_key)
    return f"{api_key[:10]}...{api_key[-5:]}"


__all__ = [
    "ConfigurationError",
    "Credentials",
    "DEFAULT_ENDPOINT",
    "is_custom_endpoint",
    "load_claude_settings",
    "mask_api_key",
    "resolve_credentials",
]
