"""Concurrent drains of a language server's stdout and stderr."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from lspservice.process.handle import DEFAULT_CHUNK_SIZE, ProcessHandle, TerminationState

log = logging.getLogger(__name__)

ChunkCallback = Callable[[bytes], Awaitable[None]]
ClosedCallback = Callable[[TerminationState], Awaitable[None]]


class StreamRelay:
    """Pumps a ProcessHandle's output streams into async callbacks.

    Each chunk's callback is awaited before the next read, so a slow
    consumer stalls the pipe instead of growing a buffer. stdout and stderr
    are pumped independently. Once stdout reaches EOF the relay waits up to
    ``grace_period`` for stderr and for the exit status, then reports the
    termination state through ``on_closed`` exactly once.
    """

    def __init__(
        self,
        handle: ProcessHandle,
        on_output: ChunkCallback,
        on_error: ChunkCallback,
        on_closed: ClosedCallback,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        grace_period: float = 1.0,
    ) -> None:
        self._handle = handle
        self._on_output = on_output
        self._on_error = on_error
        self._on_closed = on_closed
        self._chunk_size = chunk_size
        self._grace_period = grace_period
        self._stdout_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._watch_task: asyncio.Task[None] | None = None

    @property
    def started(self) -> bool:
        return self._watch_task is not None

    def start(self) -> None:
        """Schedule the stdout pump, the stderr pump and the watcher."""
        if self.started:
            raise RuntimeError("relay already started")
        pid = self._handle.pid
        self._stdout_task = asyncio.create_task(
            self._pump("stdout", self._handle.stdout_chunks(self._chunk_size), self._on_output),
            name=f"lsp-stdout-{pid}",
        )
        self._stderr_task = asyncio.create_task(
            self._pump("stderr", self._handle.stderr_chunks(self._chunk_size), self._on_error),
            name=f"lsp-stderr-{pid}",
        )
        self._watch_task = asyncio.create_task(self._watch(), name=f"lsp-watch-{pid}")

    async def _pump(
        self, name: str, chunks: AsyncIterator[bytes], callback: ChunkCallback
    ) -> None:
        pid = self._handle.pid
        try:
            async for chunk in chunks:
                try:
                    await callback(chunk)
                except Exception:
                    log.exception("Dropped %d bytes of %s from pid %d", len(chunk), name, pid)
        except (ConnectionResetError, BrokenPipeError) as e:
            log.debug("%s of pid %d failed: %s", name, pid, e)
        log.debug("%s of pid %d closed", name, pid)

    async def _watch(self) -> None:
        assert self._stdout_task is not None and self._stderr_task is not None
        await asyncio.wait([self._stdout_task])

        done, _ = await asyncio.wait([self._stderr_task], timeout=self._grace_period)
        if not done:
            log.debug(
                "stderr of pid %d still open %.1fs after stdout closed",
                self._handle.pid,
                self._grace_period,
            )

        state = await self._handle.wait_closed(self._grace_period)
        try:
            await self._on_closed(state)
        except Exception:
            log.exception("Termination callback for pid %d failed", self._handle.pid)

    async def cancel(self) -> None:
        """Stop all relay tasks and wait for them. Never cancels the caller."""
        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._stdout_task, self._stderr_task, self._watch_task)
            if task is not None and task is not current and not task.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
