"""Language server subprocess ownership."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from lspservice.errors import LaunchError, LaunchFailure, WriteError

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65536


class ExitReason(Enum):
    """Why a language server stopped running."""

    EXITED = "exited"
    SIGNALED = "signaled"
    STREAM_CLOSED = "stream_closed"  # Output closed, exit status not yet observed


@dataclass(frozen=True)
class TerminationState:
    """Observable run state of a ProcessHandle.

    Attributes:
        running: True until termination is observed.
        reason: Why the process stopped, None while running.
        returncode: Exit code for EXITED, negative signal number for SIGNALED.
        signal_name: Signal name for SIGNALED (e.g., "SIGTERM").
    """

    running: bool = True
    reason: ExitReason | None = None
    returncode: int | None = None
    signal_name: str | None = None

    @property
    def terminated(self) -> bool:
        return not self.running

    @classmethod
    def from_returncode(cls, returncode: int) -> TerminationState:
        if returncode < 0:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = f"signal {-returncode}"
            return cls(
                running=False,
                reason=ExitReason.SIGNALED,
                returncode=returncode,
                signal_name=name,
            )
        return cls(running=False, reason=ExitReason.EXITED, returncode=returncode)

    def describe(self) -> str:
        """Short human-readable description."""
        if self.running:
            return "running"
        if self.reason is ExitReason.SIGNALED:
            return f"killed by {self.signal_name}"
        if self.reason is ExitReason.STREAM_CLOSED:
            return "output streams closed"
        return f"exited with code {self.returncode}"


RUNNING = TerminationState()


def expand_env_vars(env: Mapping[str, str]) -> dict[str, str]:
    """Expand ${VAR} references in environment values."""
    result = {}
    for key, value in env.items():
        if value.startswith("${") and value.endswith("}"):
            result[key] = os.environ.get(value[2:-1], "")
        else:
            result[key] = value
    return result


async def _read_chunks(stream: asyncio.StreamReader, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            return
        yield chunk


class ProcessHandle:
    """One spawned language server with its three pipes.

    Writes to stdin are serialized so bytes arrive in call order. Each
    output stream can be consumed by exactly one reader.
    """

    def __init__(self, process: asyncio.subprocess.Process, executable: str) -> None:
        self._process = process
        self.executable = executable
        self._state = RUNNING
        self._write_lock = asyncio.Lock()
        self._terminate_lock = asyncio.Lock()
        self._readers: set[str] = set()

    @classmethod
    async def start(
        cls,
        executable_path: str,
        arguments: Sequence[str] = (),
        environment: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> ProcessHandle:
        """Spawn a language server with stdin, stdout and stderr piped.

        The executable is run directly, never through a shell.

        Raises:
            LaunchError: If the OS could not spawn the process.
        """
        process_env = os.environ.copy()
        if environment:
            process_env.update(expand_env_vars(environment))

        try:
            process = await asyncio.create_subprocess_exec(
                executable_path,
                *arguments,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=process_env,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            raise LaunchError(executable_path, LaunchFailure.NOT_FOUND) from e
        except PermissionError as e:
            raise LaunchError(executable_path, LaunchFailure.PERMISSION_DENIED) from e
        except OSError as e:
            raise LaunchError(executable_path, LaunchFailure.RESOURCES, str(e)) from e

        log.debug("Spawned %s (pid %d)", executable_path, process.pid)
        return cls(process, executable_path)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def termination_state(self) -> TerminationState:
        self._refresh_state()
        return self._state

    def _refresh_state(self) -> None:
        returncode = self._process.returncode
        if returncode is None:
            return
        # An observed exit status replaces a provisional STREAM_CLOSED
        if self._state.running or self._state.reason is ExitReason.STREAM_CLOSED:
            self._state = TerminationState.from_returncode(returncode)

    async def write(self, data: bytes) -> None:
        """Write bytes to the process's stdin and wait for them to drain.

        Raises:
            WriteError: If stdin is closed or the process has exited.
        """
        stdin = self._process.stdin
        async with self._write_lock:
            if stdin is None or stdin.is_closing() or self._process.returncode is not None:
                raise WriteError(f"stdin of {self.executable} (pid {self.pid}) is closed")
            try:
                stdin.write(data)
                await stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise WriteError(
                    f"Write to {self.executable} (pid {self.pid}) failed: {e}"
                ) from e

    def stdout_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Byte chunks from stdout until EOF. Chunks are not message boundaries."""
        return self._chunks("stdout", self._process.stdout, chunk_size)

    def stderr_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Byte chunks from stderr until EOF."""
        return self._chunks("stderr", self._process.stderr, chunk_size)

    def _chunks(
        self, name: str, stream: asyncio.StreamReader | None, chunk_size: int
    ) -> AsyncIterator[bytes]:
        if stream is None:
            raise RuntimeError(f"{name} of pid {self.pid} is not piped")
        if name in self._readers:
            raise RuntimeError(f"{name} of pid {self.pid} already has a reader")
        self._readers.add(name)
        return _read_chunks(stream, chunk_size)

    async def wait_closed(self, grace: float) -> TerminationState:
        """Wait for the exit status after the output streams reached EOF.

        A process that closed its output but is still running after ``grace``
        seconds is reported as STREAM_CLOSED.
        """
        try:
            await asyncio.wait_for(self._process.wait(), grace)
        except asyncio.TimeoutError:
            if self._state.running:
                self._state = TerminationState(running=False, reason=ExitReason.STREAM_CLOSED)
        self._refresh_state()
        return self._state

    async def terminate(self, timeout: float = 5.0) -> TerminationState:
        """Stop the process and reap it. Idempotent.

        Closes stdin, sends SIGTERM, and escalates to SIGKILL if the process
        has not exited after ``timeout`` seconds.
        """
        async with self._terminate_lock:
            process = self._process
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()

            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout)
                except asyncio.TimeoutError:
                    log.warning(
                        "%s (pid %d) did not exit after %.1fs, killing",
                        self.executable,
                        self.pid,
                        timeout,
                    )
                    with contextlib.suppress(ProcessLookupError):
                        process.kill()
                    await process.wait()

            self._refresh_state()
            return self._state
