# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for AgentOptions and deferred validation."""

import dataclasses
from pathlib import Path
from typing import Any

import pytest

from agentpipe.errors import ConfigurationError
from agentpipe.options import AgentOptions, PermissionMode


def test_defaults_are_all_unset() -> None:
    opts = AgentOptions()
    assert opts.system_prompt is None
    assert opts.max_turns is None
    assert opts.allowed_tools == ()
    assert opts.permission_mode is None
    assert opts.cwd is None
    assert opts.strict_message_types is True
    assert opts.strict_content_blocks is False
    opts.validate()


def test_frozen() -> None:
    opts = AgentOptions()
    with pytest.raises(dataclasses.FrozenInstanceError):
        opts.max_turns = 3  # type: ignore[misc]


def test_replace_derives_variant() -> None:
    base = AgentOptions(model="sonnet")
    derived = dataclasses.replace(base, max_turns=2)
    assert derived.model == "sonnet"
    assert derived.max_turns == 2
    assert base.max_turns is None


def test_construction_never_validates() -> None:
    # Bad values are accepted here and rejected at transport startup.
    opts = AgentOptions(max_turns=-1, permission_mode="yolo")  # type: ignore[arg-type]
    with pytest.raises(ConfigurationError):
        opts.validate()


@pytest.mark.parametrize("value", [0, -3, True, 1.5, "2"])
def test_max_turns_must_be_positive_int(value: Any) -> None:
    with pytest.raises(ConfigurationError, match="max_turns"):
        AgentOptions(max_turns=value).validate()


def test_permission_mode_accepts_enum_and_string() -> None:
    AgentOptions(permission_mode=PermissionMode.ACCEPT_EDITS).validate()
    opts = AgentOptions(permission_mode="plan")  # type: ignore[arg-type]
    opts.validate()
    assert opts.resolved_permission_mode is PermissionMode.PLAN


def test_unknown_permission_mode_rejected() -> None:
    opts = AgentOptions(permission_mode="yolo")  # type: ignore[arg-type]
    with pytest.raises(ConfigurationError, match="acceptEdits"):
        opts.validate()


@pytest.mark.parametrize(
    "tools",
    [("",), ("Read,Write",), (" Read",), (3,), "Read"],
)
def test_bad_tool_names_rejected(tools: Any) -> None:
    with pytest.raises(ConfigurationError):
        AgentOptions(allowed_tools=tools).validate()
    with pytest.raises(ConfigurationError):
        AgentOptions(disallowed_tools=tools).validate()


def test_scoped_tool_names_allowed() -> None:
    AgentOptions(allowed_tools=("Read", "Bash(git log:*)")).validate()


def test_cwd_must_exist(tmp_path: Path) -> None:
    AgentOptions(cwd=tmp_path).validate()
    with pytest.raises(ConfigurationError, match="cwd"):
        AgentOptions(cwd=tmp_path / "missing").validate()
    afile = tmp_path / "afile"
    afile.write_text("x")
    with pytest.raises(ConfigurationError, match="cwd"):
        AgentOptions(cwd=afile).validate()


def test_env_values_must_be_strings() -> None:
    with pytest.raises(ConfigurationError, match="env"):
        AgentOptions(env={"DEBUG": 1}).validate()  # type: ignore[dict-item]
