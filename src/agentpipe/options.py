# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Query configuration — what the agent may do and where it runs."""

from __future__ import annotations

import enum
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from agentpipe.errors import ConfigurationError


class PermissionMode(enum.StrEnum):
    DEFAULT = "default"
    ACCEPT_EDITS = "acceptEdits"
    PLAN = "plan"
    BYPASS_PERMISSIONS = "bypassPermissions"


@dataclass(frozen=True)
class AgentOptions:
    """Options for one query. Unset fields fall back to the CLI's defaults.

    Nothing is checked here; ``validate()`` runs when the transport starts,
    so a bad value never reaches a spawned process.
    """

    system_prompt: str | None = None
    append_system_prompt: str | None = None
    max_turns: int | None = None
    allowed_tools: tuple[str, ...] = ()
    disallowed_tools: tuple[str, ...] = ()
    permission_mode: PermissionMode | None = None
    permission_prompt_tool_name: str | None = None
    model: str | None = None
    continue_conversation: bool = False
    resume: str | None = None
    cwd: str | os.PathLike[str] | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    cli_path: str | os.PathLike[str] | None = None
    # Client-side decoding policy, never passed to the CLI.
    strict_message_types: bool = True
    strict_content_blocks: bool = False

    def validate(self) -> None:
        """Raise ConfigurationError on the first invalid field."""
        if self.max_turns is not None and (
            isinstance(self.max_turns, bool)
            or not isinstance(self.max_turns, int)
            or self.max_turns < 1
        ):
            raise ConfigurationError(
                f"max_turns must be a positive integer, got {self.max_turns!r}"
            )
        if self.permission_mode is not None:
            _coerce_permission_mode(self.permission_mode)
        _check_tools("allowed_tools", self.allowed_tools)
        _check_tools("disallowed_tools", self.disallowed_tools)
        if self.cwd is not None and not os.path.isdir(self.cwd):
            raise ConfigurationError(f"cwd is not a directory: {os.fspath(self.cwd)}")
        for key, value in self.env.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ConfigurationError(f"env entries must be strings: {key!r}")

    @property
    def resolved_permission_mode(self) -> PermissionMode | None:
        if self.permission_mode is None:
            return None
        return _coerce_permission_mode(self.permission_mode)


def _coerce_permission_mode(value: object) -> PermissionMode:
    try:
        return PermissionMode(value)
    except ValueError:
        allowed = ", ".join(m.value for m in PermissionMode)
        raise ConfigurationError(
            f"unknown permission_mode {value!r} (expected one of: {allowed})"
        ) from None


def _check_tools(name: str, tools: object) -> None:
    if isinstance(tools, str) or not isinstance(tools, tuple | list):
        raise ConfigurationError(f"{name} must be a sequence of tool names")
    for tool in tools:
        if not isinstance(tool, str) or not tool:
            raise ConfigurationError(f"{name}: invalid tool name {tool!r}")
        if "," in tool or tool != tool.strip():
            raise ConfigurationError(f"{name}: invalid tool name {tool!r}")
