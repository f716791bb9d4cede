"""Tests for LanguageServerSession."""

from __future__ import annotations

import asyncio
import os
import signal

import pytest

from lspservice.config.schema import BridgeSettings
from lspservice.errors import LaunchError, SessionClosed, SessionNotReady, UnconfiguredLanguage
from lspservice.languages import LanguageStore, LaunchConfig
from lspservice.process.handle import ExitReason, TerminationState
from lspservice.session.session import LanguageServerSession, SessionState, resolve_executable
from tests.utils import (
    PRINT_AND_EXIT,
    PRINT_AND_EXIT_OUTPUT,
    posix_only,
    python_config,
    requires_cat,
    wait_until,
)


class Events:
    """Collects session callbacks in arrival order."""

    def __init__(self) -> None:
        self.log: list[tuple[str, object]] = []

    @property
    def received(self) -> bytes:
        return b"".join(data for kind, data in self.log if kind == "receive")  # type: ignore[misc]

    @property
    def terminations(self) -> list[TerminationState]:
        return [state for kind, state in self.log if kind == "terminated"]  # type: ignore[misc]

    async def on_receive(self, chunk: bytes) -> None:
        self.log.append(("receive", chunk))

    async def on_error(self, chunk: bytes) -> None:
        self.log.append(("error", chunk))

    async def on_terminated(self, state: TerminationState) -> None:
        self.log.append(("terminated", state))


def make_session(
    language: str, store: LanguageStore, settings: BridgeSettings, events: Events
) -> LanguageServerSession:
    return LanguageServerSession(
        language,
        store,
        settings=settings,
        on_receive=events.on_receive,
        on_error=events.on_error,
        on_terminated=events.on_terminated,
    )


class TestResolveExecutable:
    def test_existing_path(self, tmp_path):
        exe = tmp_path / "server"
        exe.write_text("")
        assert resolve_executable(str(exe)) == str(exe)

    def test_missing_path(self, tmp_path):
        assert resolve_executable(str(tmp_path / "missing")) is None

    def test_bare_name_uses_path(self, tmp_path, monkeypatch: pytest.MonkeyPatch):
        exe = tmp_path / "my-lsp"
        exe.write_text("#!/bin/sh\n")
        exe.chmod(0o755)
        monkeypatch.setenv("PATH", str(tmp_path))
        assert resolve_executable("my-lsp") == str(exe)


class TestStartFailures:
    """Sessions that never reach RUNNING."""

    async def test_unconfigured_language(self, settings):
        events = Events()
        session = make_session("cobol", LanguageStore(), settings, events)

        with pytest.raises(UnconfiguredLanguage) as exc_info:
            await session.start()

        assert "not supported" in exc_info.value.readable_message
        assert exc_info.value.peer_reportable
        assert session.state is SessionState.STOPPED
        assert session.pid is None
        assert events.log == []

    async def test_entry_without_path(self, settings):
        store = LanguageStore([LaunchConfig(language="cobol")])
        session = make_session("cobol", store, settings, Events())
        with pytest.raises(UnconfiguredLanguage):
            await session.start()

    async def test_path_that_does_not_exist(self, settings, tmp_path):
        missing = str(tmp_path / "fake-lsp")
        store = LanguageStore([LaunchConfig(language="swift", executable_path=missing)])
        session = make_session("swift", store, settings, Events())

        with pytest.raises(UnconfiguredLanguage) as exc_info:
            await session.start()
        assert missing in str(exc_info.value)

    @posix_only
    async def test_launch_error(self, settings, tmp_path):
        script = tmp_path / "fake-lsp"
        script.write_text("#!/bin/sh\ncat\n")
        script.chmod(0o644)
        store = LanguageStore([LaunchConfig(language="swift", executable_path=str(script))])
        session = make_session("swift", store, settings, Events())

        with pytest.raises(LaunchError):
            await session.start()
        assert session.state is SessionState.STOPPED

    async def test_stop_after_failed_start_is_noop(self, settings):
        session = make_session("cobol", LanguageStore(), settings, Events())
        with pytest.raises(UnconfiguredLanguage):
            await session.start()
        await session.stop()
        assert session.state is SessionState.STOPPED


class TestSend:
    async def test_send_before_start_not_ready(self, store, settings):
        session = make_session("swift", store, settings, Events())
        assert session.state is SessionState.STARTING
        with pytest.raises(SessionNotReady):
            await session.send(b"early")

    @requires_cat
    async def test_echo(self, store, settings):
        events = Events()
        session = make_session("swift", store, settings, events)
        await session.start()
        assert session.state is SessionState.RUNNING
        assert session.pid is not None

        await session.send(b"ping")
        await wait_until(lambda: events.received == b"ping")

        await session.stop()

    @requires_cat
    async def test_sends_arrive_in_order(self, store, settings):
        events = Events()
        session = make_session("swift", store, settings, events)
        await session.start()

        parts = [f"Content-Length: {i}\r\n\r\n{'x' * i}".encode() for i in range(1, 60)]
        for part in parts:
            await session.send(part)
        expected = b"".join(parts)
        await wait_until(lambda: events.received == expected)

        await session.stop()

    async def test_language_is_normalized(self, store, settings):
        session = make_session("SWIFT", store, settings, Events())
        assert session.language == "swift"
        assert session.name == "Swift"


@requires_cat
class TestStop:
    async def test_stop_fires_terminated_once(self, store, settings):
        events = Events()
        session = make_session("swift", store, settings, events)
        await session.start()

        await session.stop()
        await session.stop()

        assert session.state is SessionState.STOPPED
        assert len(events.terminations) == 1
        assert events.terminations[0].terminated

    async def test_concurrent_stops_share_shutdown(self, store, settings):
        events = Events()
        session = make_session("swift", store, settings, events)
        await session.start()

        await asyncio.gather(session.stop(), session.stop(), session.stop())

        assert len(events.terminations) == 1

    async def test_send_after_stop_is_rejected(self, store, settings):
        session = make_session("swift", store, settings, Events())
        await session.start()
        await session.stop()

        with pytest.raises(SessionClosed):
            await session.send(b"late")

    async def test_no_callbacks_after_terminated(self, store, settings):
        events = Events()
        session = make_session("swift", store, settings, events)
        await session.start()
        await session.send(b"hello")
        await wait_until(lambda: events.received == b"hello")

        await session.stop()
        await asyncio.sleep(0.1)

        assert events.log[-1][0] == "terminated"

    async def test_describe(self, store, settings):
        session = make_session("swift", store, settings, Events())
        await session.start()
        status = session.describe()
        assert status["language"] == "swift"
        assert status["state"] == "running"
        assert status["pid"] == session.pid
        await session.stop()
        assert session.describe()["state"] == "stopped"


class TestProcessExit:
    async def test_exit_delivers_all_output_then_terminated(self, settings):
        store = LanguageStore([python_config("python", PRINT_AND_EXIT)])
        events = Events()
        session = make_session("python", store, settings, events)
        await session.start()

        await wait_until(lambda: len(events.terminations) == 1)

        assert events.received == PRINT_AND_EXIT_OUTPUT
        assert events.log[-1][0] == "terminated"
        state = events.terminations[0]
        assert state.reason is ExitReason.EXITED
        assert state.returncode == 3
        assert session.state is SessionState.STOPPED

        with pytest.raises(SessionClosed):
            await session.send(b"anyone?")

    @posix_only
    @requires_cat
    async def test_killed_externally(self, store, settings):
        events = Events()
        session = make_session("swift", store, settings, events)
        await session.start()

        assert session.pid is not None
        os.kill(session.pid, signal.SIGKILL)
        await wait_until(lambda: len(events.terminations) == 1)

        assert events.terminations[0].reason is ExitReason.SIGNALED
        assert events.terminations[0].signal_name == "SIGKILL"
        with pytest.raises(SessionClosed):
            await asyncio.wait_for(session.send(b"ping"), 1.0)

        # Explicit stop afterwards is a no-op
        await session.stop()
        assert len(events.terminations) == 1

    async def test_stderr_delivered(self, settings):
        code = "import sys; sys.stderr.write('oops\\n'); sys.stderr.flush(); sys.stdin.read()"
        store = LanguageStore([python_config("python", code)])
        events = Events()
        session = make_session("python", store, settings, events)
        await session.start()

        def errors() -> bytes:
            return b"".join(data for kind, data in events.log if kind == "error")  # type: ignore[misc]

        await wait_until(lambda: errors() == b"oops\n")
        assert events.received == b""
        await session.stop()


def test_new_session_is_starting():
    session = LanguageServerSession("swift", LanguageStore())
    assert session.state is SessionState.STARTING
    assert session.termination_state is None
    assert session.describe()["termination"] is None
