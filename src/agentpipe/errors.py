# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Error taxonomy for queries against the agent CLI."""

from __future__ import annotations

from typing import Any

_EXCERPT_LEN = 200


def _excerpt(record: Any) -> str:
    text = record if isinstance(record, str) else repr(record)
    if len(text) > _EXCERPT_LEN:
        return text[:_EXCERPT_LEN] + "..."
    return text


class AgentPipeError(Exception):
    """Base class for every error raised by agentpipe."""


class ConfigurationError(AgentPipeError):
    """An option value was rejected. Raised before any process is spawned."""


class StartupError(AgentPipeError):
    """The agent process could not be spawned."""

    def __init__(self, message: str, cli_path: str | None = None) -> None:
        super().__init__(message)
        self.cli_path = cli_path


class DecodeError(AgentPipeError):
    """A record could not be decoded. Terminates the stream."""

    def __init__(self, message: str, record: Any = None) -> None:
        if record is not None:
            message = f"{message}: {_excerpt(record)}"
        super().__init__(message)
        self.record = record


class UnknownMessageError(DecodeError):
    """A record carried a type tag outside the known set."""

    def __init__(self, type_tag: Any, record: Any = None) -> None:
        super().__init__(f"unknown record type {type_tag!r}", record)
        self.type_tag = type_tag


class PrematureCloseError(AgentPipeError):
    """Output ended before a result record arrived."""

    def __init__(self, returncode: int | None = None, stderr: str = "") -> None:
        message = "agent output ended without a result record"
        if returncode is not None:
            message += f" (exit code {returncode})"
        if stderr:
            message += f"\n{stderr}"
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class QueryCancelledError(AgentPipeError):
    """The caller cancelled the query."""


__all__ = [
    "AgentPipeError",
    "ConfigurationError",
    "DecodeError",
    "PrematureCloseError",
    "QueryCancelledError",
    "StartupError",
    "UnknownMessageError",
]
