"""Shared fixtures for bridge tests."""

import io
from pathlib import Path

import pytest

from claude_bridge.context import DeliveryOptions, ExecutionContext
from claude_bridge.credentials import Credentials
from claude_bridge.protocol import ProtocolWriter
from claude_bridge.transcript_store import TranscriptStore


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(api_key="sk-ant-test-key-0123456789", api_key_source="environment")


@pytest.fixture
def make_context(credentials, tmp_path: Path):
    """Build an ExecutionContext rooted in tmp_path."""

    def _make(**overrides) -> ExecutionContext:
        values = {
            "working_directory": str(tmp_path),
            "credentials": credentials,
            "executable": None,
            "project_paths": (),
            "project_key_path": str(tmp_path),
        }
        values.update(overrides)
        return ExecutionContext(**values)

    return _make


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def writer(output: io.StringIO) -> ProtocolWriter:
    return ProtocolWriter(stream=output)


@pytest.fixture
def store(tmp_path: Path) -> TranscriptStore:
    return TranscriptStore(base_dir=tmp_path / "projects")


@pytest.fixture
def options() -> DeliveryOptions:
    return DeliveryOptions()
