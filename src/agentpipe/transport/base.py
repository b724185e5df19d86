# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Transport protocol — the interface between a query and the agent process."""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Owns exactly one agent process for the lifetime of one query.

    The query orchestrator drives it as start() → send() → receive() and
    always finishes with close(), whichever way the query ends.
    """

    async def start(self) -> int | None:
        """Validate configuration and spawn. Returns the process id if any.

        Raises ConfigurationError before spawning, StartupError on spawn
        failure.
        """
        ...

    async def send(self, prompt: str) -> None:
        """Deliver the prompt as the first unit of input, then close input."""
        ...

    def receive(self) -> AsyncIterator[bytes]:
        """Yield raw output chunks until the process closes its output."""
        ...

    async def wait(self, timeout: float | None = None) -> int | None:
        """Exit status once the process is gone; None if still running."""
        ...

    @property
    def returncode(self) -> int | None:
        """Exit status, or None while the process runs or before start."""
        ...

    @property
    def stderr_tail(self) -> str:
        """The last few kilobytes of diagnostic output."""
        ...

    async def close(self) -> None:
        """Stop the process and release resources. Idempotent."""
        ...
