# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Incremental NDJSON decoder for the agent's output stream."""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Callable, Iterator
from typing import NoReturn

from agentpipe.errors import DecodeError, PrematureCloseError, UnknownMessageError
from agentpipe.parser import parse_message
from agentpipe.types import Message, ResultMessage

_log = logging.getLogger(__name__)

#: Largest single record accepted (1 MiB), terminated or not.
MAX_RECORD_BYTES = 1_048_576

RecordCallback = Callable[[str], None]


class StreamDecoder:
    """Turns raw output bytes into Messages, in arrival order.

    Framing is split-invariant: any partition of the same bytes across
    feed() calls yields the same messages and the same terminal error.
    The first error, or the first ResultMessage, ends decoding; anything
    after a result is logged as extraneous and dropped.
    """

    def __init__(
        self,
        *,
        strict_message_types: bool = True,
        strict_content_blocks: bool = False,
        max_record_bytes: int = MAX_RECORD_BYTES,
        on_record: RecordCallback | None = None,
    ) -> None:
        self._strict_messages = strict_message_types
        self._strict_blocks = strict_content_blocks
        self._max_record_bytes = max_record_bytes
        self._on_record = on_record
        self._buffer = bytearray()
        self._lines: deque[bytes] = deque()
        self._done = False
        self._failed = False

    @property
    def done(self) -> bool:
        """True once a ResultMessage has been decoded."""
        return self._done

    @property
    def failed(self) -> bool:
        return self._failed

    def feed(self, data: bytes) -> Iterator[Message]:
        """Buffer a chunk and return an iterator over newly complete messages.

        Messages are decoded as the iterator is consumed. Lines left
        unconsumed are picked up by the next feed() or finish().
        """
        if self._failed:
            return iter(())
        if self._done:
            self._discard(data)
            return iter(())
        self._buffer.extend(data)
        while (idx := self._buffer.find(b"\n")) >= 0:
            self._lines.append(bytes(self._buffer[:idx]))
            del self._buffer[: idx + 1]
        return self._drain()

    def finish(
        self,
        returncode: int | None = None,
        stderr: str = "",
    ) -> Iterator[Message]:
        """Flush at end of output. Raises PrematureCloseError without a result."""
        if self._failed:
            return
        yield from self._drain()
        if self._buffer:
            tail = bytes(self._buffer)
            self._buffer.clear()
            if self._done:
                self._discard(tail)
            else:
                message = self._decode_line(tail)
                if message is not None:
                    yield message
        if not self._done:
            self._failed = True
            raise PrematureCloseError(returncode, stderr)

    def _drain(self) -> Iterator[Message]:
        while self._lines and not self._failed:
            line = self._lines.popleft()
            if self._done:
                self._discard(line)
                continue
            message = self._decode_line(line)
            if message is not None:
                yield message
        if not self._done and len(self._buffer) > self._max_record_bytes:
            self._fail(self._oversize(bytes(self._buffer)))

    def _decode_line(self, line: bytes) -> Message | None:
        """Decode one framed record. None for blank or skipped records."""
        if len(line) > self._max_record_bytes:
            self._fail(self._oversize(line))
        line = line.strip()
        if not line:
            return None
        text = line.decode(errors="replace")
        if self._on_record is not None:
            self._on_record(text)
        try:
            record = json.loads(line)
        except (ValueError, RecursionError):
            self._fail(DecodeError("malformed record", text))
        try:
            message = parse_message(record, strict_content_blocks=self._strict_blocks)
        except UnknownMessageError as exc:
            # A strict content-block failure carries the block, not the record.
            if self._strict_messages or exc.record is not record:
                self._fail(exc)
            _log.warning("skipping record of unknown type %r", exc.type_tag)
            return None
        except DecodeError as exc:
            self._fail(exc)
        if isinstance(message, ResultMessage):
            self._done = True
        return message

    def _discard(self, data: bytes) -> None:
        if data.strip():
            _log.warning(
                "discarding %d extraneous bytes after result record", len(data)
            )

    def _oversize(self, data: bytes) -> DecodeError:
        return DecodeError(
            f"record exceeds {self._max_record_bytes} bytes",
            data[:64].decode(errors="replace"),
        )

    def _fail(self, exc: DecodeError) -> NoReturn:
        # Mark terminal before raising so later feeds are no-ops.
        self._failed = True
        self._lines.clear()
        self._buffer.clear()
        raise exc
