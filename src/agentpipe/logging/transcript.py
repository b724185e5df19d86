# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Append-only JSONL transcript of one or more queries."""

import json
import os
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import Any


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _full_write(fd: int, data: bytes) -> None:
    """Write all bytes, retrying on short writes."""
    while data:
        n = os.write(fd, data)
        data = data[n:]


class Transcript:
    """Per-query structured event log.

    Every raw record the agent emits and every transport lifecycle step
    lands here as one JSON line. With ``durable`` set, each entry is
    fsynced before log() returns.
    """

    def __init__(
        self,
        path: Path,
        context: dict[str, str] | None = None,
        *,
        durable: bool = True,
    ) -> None:
        self._path = path
        self._context = context or {}
        self._durable = durable
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        """Open for appending, creating parent directories as needed."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._fd = os.open(
            self._path,
            os.O_WRONLY | os.O_CREAT | os.O_APPEND,
            0o644,
        )

    def __enter__(self) -> "Transcript":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def log(self, event: str, data: dict[str, Any] | None = None) -> None:
        """Append one event."""
        if self._fd is None:
            msg = "Transcript not open"
            raise RuntimeError(msg)
        _full_write(self._fd, self._serialize(event, data))
        if self._durable:
            os.fsync(self._fd)

    def close(self) -> None:
        """Close the file descriptor. Safe to call twice."""
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def _serialize(self, event: str, data: dict[str, Any] | None) -> bytes:
        # Context first so it can never clobber ts or event.
        entry: dict[str, Any] = {
            **self._context,
            "ts": _now_iso(),
            "event": event,
        }
        if data is not None:
            entry["data"] = data
        return (json.dumps(entry, separators=(",", ":"), default=str) + "\n").encode()


def read_transcript(path: Path) -> list[dict[str, Any]]:
    """Load all entries. A torn trailing line from a crash is ignored."""
    content = path.read_bytes()
    if not content:
        return []
    if not content.endswith(b"\n"):
        # Everything after the last newline is an interrupted write.
        content = content[: content.rfind(b"\n") + 1]
    return [json.loads(line) for line in content.splitlines() if line.strip()]


__all__ = ["Transcript", "read_transcript"]
