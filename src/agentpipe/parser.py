# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Record parser — one decoded JSON record in, one typed Message out."""

from __future__ import annotations

import logging
from typing import Any

from agentpipe.errors import DecodeError, UnknownMessageError
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

_log = logging.getLogger(__name__)

MESSAGE_TYPES = frozenset({"user", "assistant", "system", "result"})


def parse_message(
    record: Any,
    *,
    strict_content_blocks: bool = False,
) -> Message:
    """Decode a record into a Message. Pure; the record is not mutated.

    Raises UnknownMessageError for a type tag outside MESSAGE_TYPES and
    DecodeError for anything structurally wrong with a known type.
    """
    if not isinstance(record, dict):
        raise DecodeError("record is not an object", record)
    tag = record.get("type")
    if not isinstance(tag, str):
        raise DecodeError("record has no type tag", record)
    if tag == "user":
        return _parse_user(record, strict_content_blocks)
    if tag == "assistant":
        return _parse_assistant(record, strict_content_blocks)
    if tag == "system":
        return SystemMessage(
            subtype=_require(record, "subtype", str, "system"),
            data=dict(record),
        )
    if tag == "result":
        return _parse_result(record)
    raise UnknownMessageError(tag, record)


def parse_content_blocks(
    raw: Any,
    *,
    strict: bool = False,
    where: str = "message",
) -> tuple[ContentBlock, ...]:
    """Decode a content list. Unknown block kinds are dropped unless strict."""
    if not isinstance(raw, list):
        raise DecodeError(f"{where}.content must be a list", raw)
    blocks: list[ContentBlock] = []
    for item in raw:
        block = _parse_block(item, strict, where)
        if block is not None:
            blocks.append(block)
    return tuple(blocks)


# -- Variants ----------------------------------------------------------------


def _parse_user(record: dict[str, Any], strict: bool) -> UserMessage:
    message = _require(record, "message", dict, "user")
    content = message.get("content")
    if isinstance(content, str):
        return UserMessage(content=content)
    if isinstance(content, list):
        blocks = parse_content_blocks(content, strict=strict, where="user.message")
        text = "".join(b.text for b in blocks if isinstance(b, TextBlock))
        return UserMessage(content=text, blocks=blocks)
    raise DecodeError("user.message.content must be a string or list", record)


def _parse_assistant(record: dict[str, Any], strict: bool) -> AssistantMessage:
    message = _require(record, "message", dict, "assistant")
    blocks = parse_content_blocks(
        message.get("content"), strict=strict, where="assistant.message"
    )
    model = message.get("model")
    return AssistantMessage(
        content=blocks,
        model=model if isinstance(model, str) else None,
    )


def _parse_result(record: dict[str, Any]) -> ResultMessage:
    cost = record.get("total_cost_usd")
    if cost is not None and (
        isinstance(cost, bool) or not isinstance(cost, int | float)
    ):
        raise DecodeError("result.total_cost_usd must be a number", record)
    usage = record.get("usage")
    result = record.get("result")
    return ResultMessage(
        session_id=_require(record, "session_id", str, "result"),
        duration_ms=_require_int(record, "duration_ms"),
        is_error=_require(record, "is_error", bool, "result"),
        subtype=_optional_str(record, "subtype", "result"),
        duration_api_ms=_optional_int(record, "duration_api_ms"),
        num_turns=_optional_int(record, "num_turns"),
        total_cost_usd=float(cost) if cost is not None else None,
        usage=dict(usage) if isinstance(usage, dict) else None,
        result=result if isinstance(result, str) else None,
        data=dict(record),
    )


def _parse_block(item: Any, strict: bool, where: str) -> ContentBlock | None:
    if not isinstance(item, dict):
        raise DecodeError(f"{where}.content entry is not an object", item)
    kind = item.get("type")
    if kind == "text":
        return TextBlock(text=_require(item, "text", str, "text block"))
    if kind == "tool_use":
        return ToolUseBlock(
            name=_require(item, "name", str, "tool_use block"),
            input=dict(_require(item, "input", dict, "tool_use block")),
            id=_optional_str(item, "id", "tool_use block"),
        )
    if kind == "tool_result":
        is_error = item.get("is_error")
        if is_error is not None and not isinstance(is_error, bool):
            raise DecodeError("tool_result block is_error must be a boolean", item)
        return ToolResultBlock(
            content=item.get("content"),
            is_error=is_error,
            tool_use_id=_optional_str(item, "tool_use_id", "tool_result block"),
        )
    if strict:
        raise UnknownMessageError(kind, item)
    _log.debug("skipping unknown content block type %r in %s", kind, where)
    return None


# -- Field helpers -----------------------------------------------------------


def _require(record: dict[str, Any], key: str, kind: type, where: str) -> Any:
    value = record.get(key)
    if not isinstance(value, kind):
        raise DecodeError(f"{where}.{key} missing or not {kind.__name__}", record)
    return value


def _require_int(record: dict[str, Any], key: str) -> int:
    value = record.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"result.{key} missing or not int", record)
    return value


def _optional_int(record: dict[str, Any], key: str) -> int | None:
    value = record.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"result.{key} must be an int", record)
    return value


def _optional_str(record: dict[str, Any], key: str, where: str) -> str | None:
    value = record.get(key)
    if value is not None and not isinstance(value, str):
        raise DecodeError(f"{where}.{key} must be a str", record)
    return value
