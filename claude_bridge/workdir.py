"""
Working directory selection.

Picks the execution root for one invocation from a prioritized candidate
list, skipping volatile temp locations when a project path is known.
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

# Values a host sends for "no directory"
SENTINEL_PATHS = frozenset({"", "undefined", "null"})

PROJECT_PATH_VARS = ("IDEA_PROJECT_PATH", "PROJECT_PATH")


def is_windows(platform: str | None = None) -> bool:
    return (platform or sys.platform).startswith("win")


def normalize_for_comparison(path_value: str | None, platform: str | None = None) -> str:
    """Forward slashes everywhere; lower-case on Windows."""
    if not path_value:
        return ""
    normalized = path_value.replace("\\", "/")
    if is_windows(platform):
        normalized = normalized.lower()
    return normalized


def temp_path_prefixes(
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
    system_temp: str | None = None,
) -> list[str]:
    """Known volatile temp prefixes for the platform, normalized and deduplicated."""
    if environ is None:
        environ = os.environ
    if system_temp is None:
        system_temp = tempfile.gettempdir()

    prefixes: list[str] = []
    if system_temp:
        prefixes.append(normalize_for_comparison(system_temp, platform))

    if is_windows(platform):
        for var_name in ("TEMP", "TMP", "LOCALAPPDATA"):
            value = environ.get(var_name)
            if value:
                prefixes.append(normalize_for_comparison(value, platform))
                # Windows temp usually lives under LOCALAPPDATA\Temp
                if var_name == "LOCALAPPDATA":
                    prefixes.append(normalize_for_comparison(value.rstrip("\\/") + "\\Temp", platform))
        prefixes.append(normalize_for_comparison("c:\\windows\\temp", platform))
        prefixes.append(normalize_for_comparison("c:\\temp", platform))
    else:
        prefixes.extend(["/tmp", "/var/tmp", "/private/tmp"])
        if environ.get("TMPDIR"):
            prefixes.append(normalize_for_comparison(environ["TMPDIR"], platform))

    return list(dict.fromkeys(p for p in prefixes if p))


def is_temp_directory(
    path_value: str | None,
    prefixes: Iterable[str],
    platform: str | None = None,
) -> bool:
    if not path_value:
        return False
    normalized = normalize_for_comparison(path_value, platform)
    return any(prefix and normalized.startswith(prefix) for prefix in prefixes)


def canonicalize(candidate: str | None) -> str | None:
    """Absolute, normalized form of a candidate, or None if unusable."""
    if not candidate or not isinstance(candidate, str) or not candidate.strip():
        return None
    try:
        return os.path.abspath(candidate.strip())
    except (OSError, ValueError):
        return None


def env_project_path(environ: Mapping[str, str] | None = None) -> str | None:
    if environ is None:
        environ = os.environ
    for var_name in PROJECT_PATH_VARS:
        if environ.get(var_name):
            return environ[var_name]
    return None


def requested_path(requested_cwd: str | None) -> str | None:
    """The caller's path, or None if it is absent or a sentinel."""
    if requested_cwd is None or requested_cwd.strip() in SENTINEL_PATHS:
        return None
    return requested_cwd


def select_working_directory(
    requested_cwd: str | None,
    environ: Mapping[str, str] | None = None,
    process_cwd: str | None = None,
    home: str | None = None,
    temp_prefixes: Iterable[str] | None = None,
    platform: str | None = None,
) -> str:
    """
    Select the effective working directory.

    Candidate order:
    1. requested_cwd (unless absent or a sentinel)
    2. IDEA_PROJECT_PATH / PROJECT_PATH
    3. The process's current directory
    4. The user's home directory

    A temp-directory candidate is skipped only when a project path is known.
    If every candidate fails, the project path or home is returned unverified.

    Returns:
        Absolute path of the chosen directory
    """
    if environ is None:
        environ = os.environ
    if home is None:
        home = os.path.expanduser("~")
    if process_cwd is None:
        process_cwd = os.getcwd()
    prefixes = list(temp_prefixes) if temp_prefixes is not None else temp_path_prefixes(environ, platform)

    project_path = env_project_path(environ)

    candidates: list[str] = []
    requested = requested_path(requested_cwd)
    if requested:
        candidates.append(requested)
    if project_path:
        candidates.append(project_path)
    candidates.append(process_cwd)
    candidates.append(home)

    logger.debug(f"selectWorkingDirectory candidates: {candidates}")

    for candidate in candidates:
        normalized = canonicalize(candidate)
        if not normalized:
            continue

        if project_path and is_temp_directory(normalized, prefixes, platform):
            logger.debug(f"Skipping temp directory candidate: {normalized}")
            continue

        if os.path.isdir(normalized):
            logger.debug(f"selectWorkingDirectory resolved: {normalized}")
            return normalized

        logger.debug(f"Candidate is invalid: {normalized}")

    logger.debug("selectWorkingDirectory fallback triggered")
    return project_path or home


__all__ = [
    "canonicalize",
    "env_project_path",
    "is_temp_directory",
    "normalize_for_comparison",
    "requested_path",
    "select_working_directory",
    "temp_path_prefixes",
]
