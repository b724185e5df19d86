# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Typed messages and content blocks decoded from the agent's output."""

from dataclasses import dataclass, field
from typing import Any

# -- Content blocks ----------------------------------------------------------


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation requested by the model."""

    name: str
    input: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass(frozen=True)
class ToolResultBlock:
    """Output of a tool call. ``is_error`` is None when the CLI omits it."""

    content: Any = None
    is_error: bool | None = None
    tool_use_id: str | None = None


ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock

# -- Messages ----------------------------------------------------------------


@dataclass(frozen=True)
class UserMessage:
    """A user turn echoed by the agent.

    ``blocks`` is filled when the CLI sends structured content (tool results
    fed back to the model); ``content`` then holds the joined text blocks.
    """

    content: str
    blocks: tuple[ContentBlock, ...] = ()


@dataclass(frozen=True)
class AssistantMessage:
    content: tuple[ContentBlock, ...]
    model: str | None = None


@dataclass(frozen=True)
class SystemMessage:
    """Out-of-band notice from the agent. ``data`` is the raw record."""

    subtype: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResultMessage:
    """Terminal summary of a query. Always the last message of a stream.

    ``is_error`` reports the agent's own verdict; it is data, not a
    protocol failure.
    """

    session_id: str
    duration_ms: int
    is_error: bool
    subtype: str | None = None
    duration_api_ms: int | None = None
    num_turns: int | None = None
    total_cost_usd: float | None = None
    usage: dict[str, Any] | None = None
    result: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


Message = UserMessage | AssistantMessage | SystemMessage | ResultMessage

__all__ = [
    "AssistantMessage",
    "ContentBlock",
    "Message",
    "ResultMessage",
    "SystemMessage",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "UserMessage",
]
