# SPDX-FileCopyrightText: 2026 Agentpipe authors
#
# SPDX-License-Identifier: Apache-2.0

"""Subprocess transport — spawns the claude CLI and pipes its stream-json."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
from collections.abc import AsyncIterator
from pathlib import Path

from agentpipe.errors import StartupError
from agentpipe.logging import Transcript, log_method
from agentpipe.options import AgentOptions

_log = logging.getLogger(__name__)

#: Environment variable naming the CLI executable explicitly.
CLI_PATH_ENV = "AGENTPIPE_CLI_PATH"

#: Bytes requested per stdout read.
DEFAULT_READ_SIZE = 65_536

#: Seconds to wait after SIGTERM before SIGKILL.
DEFAULT_TERMINATE_TIMEOUT = 5.0

#: Seconds to wait after SIGKILL before giving up.
DEFAULT_KILL_TIMEOUT = 3.0

#: Diagnostic output kept for error reports.
_STDERR_TAIL_BYTES = 8_192

_FALLBACK_LOCATIONS = (
    "~/.npm-global/bin/claude",
    "~/.local/bin/claude",
    "~/.claude/local/claude",
    "/usr/local/bin/claude",
)


def find_cli(explicit: str | os.PathLike[str] | None = None) -> str:
    """Locate the agent executable.

    Order: explicit path, $AGENTPIPE_CLI_PATH, PATH lookup, then the usual
    npm install locations.
    """
    if explicit is not None:
        path = os.fspath(explicit)
        return shutil.which(path) or path
    from_env = os.environ.get(CLI_PATH_ENV)
    if from_env:
        return from_env
    found = shutil.which("claude")
    if found is not None:
        return found
    for candidate in _FALLBACK_LOCATIONS:
        expanded = Path(candidate).expanduser()
        if expanded.is_file() and os.access(expanded, os.X_OK):
            return str(expanded)
    raise StartupError(
        "claude CLI not found in PATH. Install it with "
        "`npm install -g @anthropic-ai/claude-code` or set "
        f"${CLI_PATH_ENV}."
    )


class SubprocessTransport:
    """One agent process per instance.

    The prompt goes in on stdin, which is then closed. stdout is read in
    bounded chunks; when the consumer stalls, reads stall too and the
    child blocks on its full pipe. stderr is drained continuously into a
    small tail buffer.
    """

    def __init__(
        self,
        options: AgentOptions | None = None,
        *,
        transcript: Transcript | None = None,
        read_size: int = DEFAULT_READ_SIZE,
        terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
    ) -> None:
        self._options = options or AgentOptions()
        self._transcript = transcript
        self._read_size = read_size
        self._terminate_timeout = terminate_timeout
        self._kill_timeout = kill_timeout
        self._proc: asyncio.subprocess.Process | None = None
        self._stderr = bytearray()
        self._stderr_task: asyncio.Task[None] | None = None
        self._close_task: asyncio.Future[None] | None = None

    @property
    def options(self) -> AgentOptions:
        return self._options

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    @property
    def stderr_tail(self) -> str:
        return self._stderr.decode(errors="replace").strip()

    # -- Command construction -------------------------------------------------

    def build_command(self, cli_path: str) -> list[str]:
        """Map options to argv. Deterministic for equal options."""
        opts = self._options
        cmd = [cli_path, "--output-format", "stream-json", "--verbose", "--print"]
        if opts.system_prompt is not None:
            cmd += ["--system-prompt", opts.system_prompt]
        if opts.append_system_prompt is not None:
            cmd += ["--append-system-prompt", opts.append_system_prompt]
        if opts.allowed_tools:
            cmd += ["--allowedTools", ",".join(dict.fromkeys(opts.allowed_tools))]
        if opts.disallowed_tools:
            cmd += ["--disallowedTools", ",".join(dict.fromkeys(opts.disallowed_tools))]
        if opts.max_turns is not None:
            cmd += ["--max-turns", str(opts.max_turns)]
        mode = opts.resolved_permission_mode
        if mode is not None:
            cmd += ["--permission-mode", mode.value]
        if opts.permission_prompt_tool_name is not None:
            cmd += ["--permission-prompt-tool", opts.permission_prompt_tool_name]
        if opts.model is not None:
            cmd += ["--model", opts.model]
        if opts.continue_conversation:
            cmd.append("--continue")
        if opts.resume is not None:
            cmd += ["--resume", opts.resume]
        return cmd

    def build_env(self) -> dict[str, str]:
        env = {**os.environ, "CLAUDE_CODE_ENTRYPOINT": "sdk-py"}
        env.update(self._options.env)
        return env

    # -- Lifecycle ------------------------------------------------------------

    @log_method(after=True)
    async def start(self) -> int | None:
        """Validate options and spawn the agent. Returns its pid."""
        if self._proc is not None or self._close_task is not None:
            raise StartupError("transport already started")
        self._options.validate()
        cli_path = find_cli(self._options.cli_path)
        cwd = os.fspath(self._options.cwd) if self._options.cwd is not None else None
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.build_command(cli_path),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=self.build_env(),
            )
        except OSError as exc:
            raise StartupError(f"cannot execute {cli_path}: {exc}", cli_path) from exc
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        _log.debug("spawned agent process %d (%s)", self._proc.pid, cli_path)
        return self._proc.pid

    @log_method(before=True)
    async def send(self, prompt: str) -> None:
        """Write the prompt and close stdin so the agent sees end of input."""
        proc = self._require_proc()
        assert proc.stdin is not None
        try:
            proc.stdin.write(prompt.encode())
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise StartupError(
                "agent process closed its input before reading the prompt"
            ) from exc
        finally:
            proc.stdin.close()

    async def receive(self) -> AsyncIterator[bytes]:
        """Yield stdout chunks of at most read_size bytes until EOF."""
        proc = self._require_proc()
        assert proc.stdout is not None
        while chunk := await proc.stdout.read(self._read_size):
            yield chunk

    async def wait(self, timeout: float | None = None) -> int | None:
        proc = self._require_proc()
        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout)
        except TimeoutError:
            return None
        # Let stderr reach EOF so the tail is complete for error reports.
        if self._stderr_task is not None:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(asyncio.shield(self._stderr_task), 1.0)
        return returncode

    async def close(self) -> None:
        """Terminate the process. Every call shares one teardown.

        The teardown itself is shielded so a cancelled caller cannot leave
        the process half-stopped.
        """
        if self._close_task is None:
            self._close_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._close_task)

    async def _shutdown(self) -> None:
        proc = self._proc
        if proc is None:
            return
        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), self._terminate_timeout)
            except TimeoutError:
                _log.info("agent process %d ignored SIGTERM, killing", proc.pid)
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                try:
                    await asyncio.wait_for(proc.wait(), self._kill_timeout)
                except TimeoutError:
                    _log.warning(
                        "agent process %d still running after SIGKILL", proc.pid
                    )
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._stderr_task
        if self._transcript is not None:
            self._transcript.log("close.result", {"returncode": proc.returncode})

    async def _drain_stderr(self) -> None:
        proc = self._require_proc()
        assert proc.stderr is not None
        while chunk := await proc.stderr.read(4096):
            self._stderr.extend(chunk)
            if len(self._stderr) > _STDERR_TAIL_BYTES:
                del self._stderr[:-_STDERR_TAIL_BYTES]

    def _require_proc(self) -> asyncio.subprocess.Process:
        if self._proc is None:
            raise RuntimeError("transport not started")
        return self._proc
