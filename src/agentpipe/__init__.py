# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Typed, cancellable message streams from a command-line coding agent."""

from agentpipe.errors import (
    AgentPipeError,
    ConfigurationError,
    DecodeError,
    PrematureCloseError,
    QueryCancelledError,
    StartupError,
    UnknownMessageError,
)
from agentpipe.logging import Transcript, read_transcript
from agentpipe.options import AgentOptions, PermissionMode
from agentpipe.query import MessageStream, query
from agentpipe.types import (
    AssistantMessage,
    ContentBlock,
    Message,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)

__all__ = [
    "AgentOptions",
    "AgentPipeError",
    "AssistantMessage",
    "ConfigurationError",
    "ContentBlock",
    "DecodeError",
    "Message",
    "MessageStream",
    "PermissionMode",
    "PrematureCloseError",
    "QueryCancelledError",
    "ResultMessage",
    "StartupError",
    "SystemMessage",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "Transcript",
    "UnknownMessageError",
    "UserMessage",
    "query",
    "read_transcript",
]
