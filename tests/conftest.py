# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Shared test configuration and the scriptable fake agent CLI."""

import stat
import sys
from pathlib import Path

import pytest

# Stands in for the claude CLI. Behaviour is picked by FAKE_AGENT_MODE.
FAKE_AGENT = '''\
import json
import os
import signal
import sys
import time

mode = os.environ.get("FAKE_AGENT_MODE", "echo")


def emit(record):
    sys.stdout.write(json.dumps(record) + "\\n")
    sys.stdout.flush()


def result(**extra):
    record = {
        "type": "result",
        "subtype": "success",
        "session_id": "fake-session",
        "duration_ms": 5,
        "is_error": False,
        "total_cost_usd": 0.001,
    }
    record.update(extra)
    emit(record)


prompt = sys.stdin.read()
if mode == "echo":
    emit({"type": "system", "subtype": "init", "cwd": os.getcwd()})
    emit({"type": "assistant", "message": {"content": [
        {"type": "text", "text": "you said: " + prompt},
    ]}})
    result()
elif mode == "argv":
    emit({"type": "system", "subtype": "argv", "argv": sys.argv[1:],
          "entrypoint": os.environ.get("CLAUDE_CODE_ENTRYPOINT")})
    result()
elif mode == "noresult":
    emit({"type": "assistant", "message": {"content": [
        {"type": "text", "text": "partial"},
    ]}})
    sys.stderr.write("fatal: backend unavailable\\n")
    sys.exit(3)
elif mode == "hang":
    emit({"type": "system", "subtype": "init"})
    time.sleep(600)
elif mode == "stubborn":
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    emit({"type": "system", "subtype": "init"})
    time.sleep(600)
elif mode == "flood":
    for i in range(10000):
        emit({"type": "assistant", "message": {"content": [
            {"type": "text", "text": "x" * 512},
        ]}})
    result()
'''


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run e2e tests that spawn the real claude CLI.",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--run-e2e"):
        return
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(pytest.mark.skip(reason="needs --run-e2e flag"))


@pytest.fixture()
def fake_cli(tmp_path: Path) -> Path:
    """Executable script speaking the stream-json protocol."""
    path = tmp_path / "fake-claude"
    path.write_text(f"#!{sys.executable}\n{FAKE_AGENT}")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path
