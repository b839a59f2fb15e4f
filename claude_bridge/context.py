"""
Per-invocation execution context.

Everything the delivery paths need to know about the environment is
resolved once into an immutable ExecutionContext and passed explicitly.
The process's own working directory and environment are never mutated.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .credentials import Credentials, load_claude_settings, resolve_credentials
from .executable import locate_runtime_executable
from .workdir import PROJECT_PATH_VARS, requested_path, select_working_directory

logger = logging.getLogger(__name__)

DEFAULT_PERMISSION_MODE = "default"

MODEL_TIER_OPUS = "opus"
MODEL_TIER_HAIKU = "haiku"
MODEL_TIER_SONNET = "sonnet"


def map_model_name(model_id: str | None) -> str:
    """
    Map a caller-facing model id to the runtime's short model name.

    Substring rules, first match wins: "opus" -> opus, "haiku" -> haiku,
    anything else (including None) -> sonnet.
    """
    if not model_id or not isinstance(model_id, str):
        return MODEL_TIER_SONNET

    lower_model = model_id.lower()
    if MODEL_TIER_OPUS in lower_model:
        return MODEL_TIER_OPUS
    if MODEL_TIER_HAIKU in lower_model:
        return MODEL_TIER_HAIKU
    return MODEL_TIER_SONNET


@dataclass(frozen=True)
class DeliveryOptions:
    """Caller-supplied options for one exchange."""

    cwd: str | None = None
    permission_mode: str = DEFAULT_PERMISSION_MODE
    model: str | None = None
    resume_session_id: str | None = None

    @classmethod
    def from_args(
        cls,
        session_id: str | None = None,
        cwd: str | None = None,
        permission_mode: str | None = None,
        model: str | None = None,
    ) -> "DeliveryOptions":
        """Build options from positional command arguments, treating blanks as absent."""
        return cls(
            cwd=requested_path(cwd),
            permission_mode=permission_mode or DEFAULT_PERMISSION_MODE,
            model=model or None,
            resume_session_id=requested_path(session_id),
        )

    @property
    def runtime_model(self) -> str:
        return map_model_name(self.model)

    @property
    def is_interactive(self) -> bool:
        """Tool use needs interactive approval in this mode."""
        return self.permission_mode == DEFAULT_PERMISSION_MODE


@dataclass(frozen=True)
class ExecutionContext:
    """Resolved environment for one invocation."""

    working_directory: str
    credentials: Credentials
    executable: str | None = None
    project_paths: tuple[str, ...] = ()
    project_key_path: str = ""

    @property
    def additional_directories(self) -> list[str]:
        """Working directory plus known project paths, deduplicated in order."""
        return list(dict.fromkeys(p for p in (self.working_directory, *self.project_paths) if p))


def transcript_project_path(requested_cwd: str | None, process_cwd: str | None = None) -> str:
    """The path transcripts are keyed by: the caller's cwd, else the process cwd."""
    return requested_path(requested_cwd) or process_cwd or os.getcwd()


def resolve_context(
    options: DeliveryOptions,
    environ: Mapping[str, str] | None = None,
    settings: Mapping[str, Any] | None = None,
    process_cwd: str | None = None,
    locate: Callable[[], str | None] = locate_runtime_executable,
    home: str | None = None,
    temp_prefixes: Iterable[str] | None = None,
) -> ExecutionContext:
    """
    Resolve credentials, working directory and runtime executable.

    Raises:
        ConfigurationError: If no API key is configured
    """
    if environ is None:
        environ = dict(os.environ)
    if settings is None:
        settings = load_claude_settings() or {}
    if process_cwd is None:
        process_cwd = os.getcwd()

    credentials = resolve_credentials(dict(settings), dict(environ))
    working_directory = select_working_directory(
        options.cwd,
        environ=environ,
        process_cwd=process_cwd,
        home=home,
        temp_prefixes=temp_prefixes,
    )
    executable = locate()
    project_paths = tuple(environ[name] for name in PROJECT_PATH_VARS if environ.get(name))

    logger.debug(
        f"Context resolved: cwd={working_directory}, executable={executable or 'SDK default'}, "
        f"custom_endpoint={credentials.is_custom_endpoint}"
    )

    return ExecutionContext(
        working_directory=working_directory,
        credentials=credentials,
        executable=executable,
        project_paths=project_paths,
        project_key_path=transcript_project_path(options.cwd, process_cwd),
    )


__all__ = [
    "DeliveryOptions",
    "ExecutionContext",
    "map_model_name",
    "resolve_context",
    "transcript_project_path",
]
