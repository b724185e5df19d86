# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Query entry point — prompt in, cancellable message stream out."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Final, NoReturn

from agentpipe.decoder import RecordCallback, StreamDecoder
from agentpipe.errors import QueryCancelledError
from agentpipe.logging import Transcript
from agentpipe.options import AgentOptions
from agentpipe.transport import SubprocessTransport, Transport
from agentpipe.types import Message, ResultMessage

_log = logging.getLogger(__name__)

#: Messages decoded ahead of the consumer before the reader stalls.
DEFAULT_MAX_BUFFERED = 8

#: Seconds to wait for the exit status once output has ended.
_EXIT_WAIT = 5.0


@dataclass(frozen=True)
class _Failure:
    error: Exception


class _End:
    pass


_END: Final = _End()

_Item = Message | _Failure | _End


class MessageStream:
    """Single-pass async iterator over one query's messages.

    A producer task reads the transport and feeds the decoder; messages
    reach the consumer through a bounded queue in decode order. The stream
    ends after the ResultMessage, or by raising the first error. Transport
    teardown runs exactly once on every exit path.
    """

    def __init__(
        self,
        transport: Transport,
        decoder: StreamDecoder,
        *,
        cancel: asyncio.Event | None = None,
        transcript: Transcript | None = None,
        max_buffered: int = DEFAULT_MAX_BUFFERED,
    ) -> None:
        self._transport = transport
        self._decoder = decoder
        self._cancel = cancel
        self._transcript = transcript
        self._queue: asyncio.Queue[_Item] = asyncio.Queue(maxsize=max_buffered)
        self._finished = False
        self._producer = asyncio.create_task(self._produce())
        self._watcher: asyncio.Task[None] | None = None
        if cancel is not None:
            self._watcher = asyncio.create_task(self._watch_cancel(cancel))

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> Message:
        if self._finished:
            await self.aclose()
            raise StopAsyncIteration
        if self._cancel is not None and self._cancel.is_set():
            await self._raise_cancelled()
        item = await self._next_item()
        if isinstance(item, _End):
            await self.aclose()
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            await self.aclose()
            if self._transcript is not None:
                self._transcript.log("query.error", {"error": repr(item.error)})
            raise item.error
        if isinstance(item, ResultMessage):
            self._finished = True
        return item

    async def __aenter__(self) -> MessageStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop reading and tear down the transport. Idempotent."""
        self._finished = True
        pending = [
            task
            for task in (self._watcher, self._producer)
            if task is not None and not task.done()
        ]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)
        await self._transport.close()

    # -- Consumer side ----------------------------------------------------------

    async def _next_item(self) -> _Item:
        """Wait for the next queued item, or for cancellation."""
        if self._cancel is None:
            return await self._queue.get()
        getter = asyncio.ensure_future(self._queue.get())
        stopper = asyncio.ensure_future(self._cancel.wait())
        try:
            await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (getter, stopper):
                if not fut.done():
                    fut.cancel()
        if stopper.done():
            await self._raise_cancelled()
        return getter.result()

    async def _raise_cancelled(self) -> NoReturn:
        await self.aclose()
        if self._transcript is not None:
            self._transcript.log("query.cancelled")
        raise QueryCancelledError("query cancelled by caller")

    # -- Producer side ----------------------------------------------------------

    async def _produce(self) -> None:
        try:
            async with contextlib.aclosing(self._transport.receive()) as chunks:
                async for chunk in chunks:
                    for message in self._decoder.feed(chunk):
                        if self._decoder.done:
                            # The child is finished once the result is decoded.
                            await self._transport.close()
                        await self._queue.put(message)
                    if self._decoder.done:
                        break
            if not self._decoder.done:
                returncode = await self._transport.wait(_EXIT_WAIT)
                stderr = self._transport.stderr_tail
                await self._transport.close()
                for message in self._decoder.finish(returncode, stderr):
                    await self._queue.put(message)
        except Exception as exc:  # noqa: BLE001  # Forwarded to the consumer.
            await self._transport.close()
            await self._queue.put(_Failure(exc))
        else:
            await self._queue.put(_END)
        finally:
            await self._transport.close()
            if self._watcher is not None:
                self._watcher.cancel()

    async def _watch_cancel(self, cancel: asyncio.Event) -> None:
        await cancel.wait()
        _log.debug("query cancelled, stopping reader")
        self._producer.cancel()


def _record_logger(transcript: Transcript) -> RecordCallback:
    def on_record(line: str) -> None:
        transcript.log("record", {"line": line})

    return on_record


async def query(
    prompt: str,
    options: AgentOptions | None = None,
    *,
    cancel: asyncio.Event | None = None,
    transcript: Transcript | None = None,
    transport: Transport | None = None,
    max_buffered: int = DEFAULT_MAX_BUFFERED,
) -> MessageStream:
    """Start one agent run and return its message stream.

    Configuration and spawn failures raise here, before any stream exists.
    Setting ``cancel`` at any later point ends the stream with
    QueryCancelledError and stops the agent process.

    Usage::

        async with await query("What is 2 + 2?") as messages:
            async for message in messages:
                ...
    """
    if max_buffered < 1:
        raise ValueError(f"max_buffered must be at least 1, got {max_buffered}")
    if cancel is not None and cancel.is_set():
        raise QueryCancelledError("query cancelled before start")
    options = options or AgentOptions()
    if transport is None:
        transport = SubprocessTransport(options, transcript=transcript)
    await transport.start()
    try:
        await transport.send(prompt)
    except BaseException:
        await transport.close()
        raise
    decoder = StreamDecoder(
        strict_message_types=options.strict_message_types,
        strict_content_blocks=options.strict_content_blocks,
        on_record=_record_logger(transcript) if transcript is not None else None,
    )
    return MessageStream(
        transport,
        decoder,
        cancel=cancel,
        transcript=transcript,
        max_buffered=max_buffered,
    )
