"""Tests for credential and endpoint resolution."""

import json
from pathlib import Path

import pytest

from claude_bridge.credentials import (
    ConfigurationError,
    Credentials,
    is_custom_endpoint,
    load_claude_settings,
    mask_api_key,
    resolve_credentials,
)


class TestResolveCredentials:
    """Tests for key and endpoint precedence."""

    def test_settings_key_wins_over_environment(self):
        settings = {"env": {"ANTHROPIC_API_KEY": "settings-key"}}
        creds = resolve_credentials(settings, {"ANTHROPIC_API_KEY": "env-key"})

        assert creds.api_key == "settings-key"
        assert creds.api_key_source == "settings.json"

    def test_auth_token_used_when_no_settings_key(self):
        settings = {"env": {"ANTHROPIC_AUTH_TOKEN": "token"}}
        creds = resolve_credentials(settings, {"ANTHROPIC_API_KEY": "env-key"})

        assert creds.api_key == "token"
        assert creds.api_key_source == "settings.json"

    def test_environment_key(self):
        creds = resolve_credentials(None, {"ANTHROPIC_API_KEY": "env-key"})

        assert creds.api_key == "env-key"
        assert creds.api_key_source == "environment"

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationError, match="API Key not configured"):
            resolve_credentials({"env": {}}, {})

    def test_endpoint_precedence(self):
        settings = {"env": {"ANTHROPIC_API_KEY": "k", "ANTHROPIC_BASE_URL": "https://proxy.example.com"}}
        creds = resolve_credentials(settings, {"ANTHROPIC_BASE_URL": "https://other.example.com"})

        assert creds.endpoint == "https://proxy.example.com"
        assert creds.endpoint_source == "settings.json"

    def test_endpoint_from_environment(self):
        creds = resolve_credentials({}, {"ANTHROPIC_API_KEY": "k", "ANTHROPIC_BASE_URL": "https://x.example"})

        assert creds.endpoint == "https://x.example"
        assert creds.endpoint_source == "environment"

    def test_no_endpoint_is_default(self):
        creds = resolve_credentials({}, {"ANTHROPIC_API_KEY": "k"})

        assert creds.endpoint is None
        assert creds.endpoint_source == "default"
        assert creds.is_custom_endpoint is False

    def test_non_dict_settings_env_ignored(self):
        creds = resolve_credentials({"env": "oops"}, {"ANTHROPIC_API_KEY": "k"})
        assert creds.api_key == "k"


class TestCustomEndpoint:
    """Tests for custom endpoint detection."""

    @pytest.mark.parametrize("endpoint,expected", [
        (None, False),
        ("", False),
        ("https://api.anthropic.com", False),
        ("https://API.Anthropic.com/v1", False),
        ("https://proxy.example.com", True),
        ("http://localhost:8080", True),
    ])
    def test_is_custom_endpoint(self, endpoint, expected):
        assert is_custom_endpoint(endpoint) is expected


class TestRuntimeEnv:
    """Tests for the environment handed to the runtime."""

    def test_key_only(self):
        assert Credentials(api_key="k").runtime_env() == {"ANTHROPIC_API_KEY": "k"}

    def test_with_endpoint(self):
        env = Credentials(api_key="k", endpoint="https://proxy.example.com").runtime_env()
        assert env == {"ANTHROPIC_API_KEY": "k", "ANTHROPIC_BASE_URL": "https://proxy.example.com"}


class TestMaskApiKey:
    """Tests for key masking in logs."""

    def test_not_set(self):
        assert mask_api_key(None) == "NOT SET"
        assert mask_api_key("") == "NOT SET"

    def test_short_key_fully_masked(self):
        assert mask_api_key("short") == "*****"

    def test_long_key(self):
        assert mask_api_key("sk-ant-REDACTED") == "sk-ant-api...XYZ12"


class TestLoadClaudeSettings:
    """Tests for reading settings.json."""

    def test_missing_file(self, tmp_path: Path):
        assert load_claude_settings(tmp_path / "settings.json") is None

    def test_valid_file(self, tmp_path: Path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"env": {"ANTHROPIC_API_KEY": "k"}}))

        assert load_claude_settings(path) == {"env": {"ANTHROPIC_API_KEY": "k"}}

    def test_malformed_file(self, tmp_path: Path):
        path = tmp_path / "settings.json"
        path.write_text("{broken")

        assert load_claude_settings(path) is None
