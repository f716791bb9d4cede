"""A language server subprocess bound to one language."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from lspservice.config.schema import BridgeSettings
from lspservice.errors import (
    BridgeError,
    SessionClosed,
    SessionNotReady,
    UnconfiguredLanguage,
)
from lspservice.languages import LanguageStore, LaunchConfig, display_name, normalize_language
from lspservice.process.handle import ProcessHandle, TerminationState
from lspservice.process.relay import StreamRelay

log = logging.getLogger(__name__)

ReceiveCallback = Callable[[bytes], Awaitable[None]]
TerminatedCallback = Callable[[TerminationState], Awaitable[None]]


class SessionState(Enum):
    """Lifecycle of a LanguageServerSession."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


def resolve_executable(path: str) -> str | None:
    """Resolve a configured executable to an existing file.

    Paths with a directory component must exist as given; bare names are
    looked up on PATH.
    """
    expanded = os.path.expanduser(path)
    if os.path.dirname(expanded):
        return os.path.abspath(expanded) if os.path.isfile(expanded) else None
    return shutil.which(expanded)


class LanguageServerSession:
    """ProcessHandle plus StreamRelay, addressed by language.

    Output is delivered through ``on_receive`` (stdout) and ``on_error``
    (stderr). ``on_terminated`` fires exactly once when the session stops,
    whether through ``stop()`` or because the process went away; after it
    has fired no further output is delivered.
    """

    def __init__(
        self,
        language: str,
        store: LanguageStore,
        *,
        settings: BridgeSettings | None = None,
        on_receive: ReceiveCallback | None = None,
        on_error: ReceiveCallback | None = None,
        on_terminated: TerminatedCallback | None = None,
    ) -> None:
        self.language = normalize_language(language)
        self.on_receive = on_receive
        self.on_error = on_error
        self.on_terminated = on_terminated
        self._store = store
        self._settings = settings or BridgeSettings()
        self._state = SessionState.STARTING
        self._handle: ProcessHandle | None = None
        self._relay: StreamRelay | None = None
        self._stop_task: asyncio.Task[None] | None = None
        self._terminated_fired = False

    @property
    def name(self) -> str:
        return display_name(self.language)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._handle.pid if self._handle else None

    @property
    def termination_state(self) -> TerminationState | None:
        return self._handle.termination_state if self._handle else None

    def _launch_config(self) -> tuple[str, LaunchConfig]:
        config = self._store.get(self.language)
        if config is None or not config.executable_path:
            raise UnconfiguredLanguage(
                self.language, "no language server executable has been set"
            )
        executable = resolve_executable(config.executable_path)
        if executable is None:
            raise UnconfiguredLanguage(
                self.language,
                f"language server executable {config.executable_path} does not exist",
            )
        return executable, config

    async def start(self) -> None:
        """Launch the language server and attach the stream relay.

        Raises:
            UnconfiguredLanguage: No usable executable is on record.
            LaunchError: The OS could not spawn the executable.
            SessionClosed: stop() was called while starting.
        """
        if self._state is not SessionState.STARTING or self._handle is not None:
            raise RuntimeError(f"{self.name} session already started")

        try:
            executable, config = self._launch_config()
            handle = await ProcessHandle.start(
                executable, config.arguments, config.environment
            )
        except BridgeError:
            self._state = SessionState.STOPPED
            raise

        self._handle = handle
        if self._state is SessionState.STOPPED:
            await handle.terminate(self._settings.stop_timeout)
            raise SessionClosed(f"{self.name} session was stopped while starting")

        self._relay = StreamRelay(
            handle,
            self._deliver_output,
            self._deliver_error,
            self._process_closed,
            chunk_size=self._settings.chunk_size,
            grace_period=self._settings.stderr_grace,
        )
        self._state = SessionState.RUNNING
        self._relay.start()
        log.info("%s language server running (pid %d)", self.name, handle.pid)

    async def send(self, data: bytes) -> None:
        """Write bytes to the language server's stdin.

        Raises:
            SessionNotReady: The session has not finished starting.
            SessionClosed: The session has stopped.
            WriteError: The process's stdin is closed.
        """
        if self._state is SessionState.STARTING:
            raise SessionNotReady(f"{self.name} language server is not ready")
        if self._state is SessionState.STOPPED or self._handle is None:
            raise SessionClosed(f"{self.name} language server session is closed")
        await self._handle.write(data)

    async def stop(self) -> None:
        """Stop the session. Idempotent; concurrent callers share one shutdown."""
        if self._handle is None:
            self._state = SessionState.STOPPED
            return
        self._begin_shutdown()
        assert self._stop_task is not None
        if self._stop_task is asyncio.current_task():
            return
        await asyncio.shield(self._stop_task)

    def _begin_shutdown(self) -> None:
        if self._stop_task is None:
            self._state = SessionState.STOPPED
            self._stop_task = asyncio.create_task(
                self._shutdown(), name=f"lsp-stop-{self.language}"
            )

    async def _shutdown(self) -> None:
        assert self._handle is not None
        if self._relay is not None:
            await self._relay.cancel()
        state = await self._handle.terminate(self._settings.stop_timeout)
        log.info("%s language server stopped (%s)", self.name, state.describe())
        await self._fire_terminated(state)

    async def _fire_terminated(self, state: TerminationState) -> None:
        if self._terminated_fired:
            return
        self._terminated_fired = True
        if self.on_terminated is None:
            return
        try:
            await self.on_terminated(state)
        except Exception:
            log.exception("%s terminated callback failed", self.name)

    async def _deliver_output(self, chunk: bytes) -> None:
        if self._state is SessionState.RUNNING and self.on_receive is not None:
            await self.on_receive(chunk)

    async def _deliver_error(self, chunk: bytes) -> None:
        if self._state is SessionState.RUNNING and self.on_error is not None:
            await self.on_error(chunk)

    async def _process_closed(self, state: TerminationState) -> None:
        if self._stop_task is None:
            log.info("%s language server went away (%s)", self.name, state.describe())
        self._begin_shutdown()

    def describe(self) -> dict[str, Any]:
        """Status snapshot for the admin API."""
        termination = self.termination_state
        return {
            "language": self.language,
            "state": self._state.value,
            "pid": self.pid,
            "termination": termination.describe() if termination else None,
        }
