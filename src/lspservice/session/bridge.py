"""Routing between one network peer and one language server session."""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import Callable, Iterator
from typing import Any

from lspservice.config.schema import BridgeSettings
from lspservice.errors import (
    BridgeError,
    PeerClosed,
    PeerProtocolViolation,
    SessionClosed,
    SessionNotReady,
    WriteError,
)
from lspservice.languages import LanguageStore, display_name, normalize_language
from lspservice.process.handle import DEFAULT_CHUNK_SIZE, TerminationState
from lspservice.server.peer import Peer
from lspservice.session.session import LanguageServerSession

log = logging.getLogger(__name__)

SessionFactory = Callable[..., LanguageServerSession]


class StderrLines:
    """Reassembles stderr chunks into lines of text.

    Chunks split anywhere, including inside a UTF-8 sequence, so bytes go
    through one incremental decoder and text is held until its newline. A
    line longer than ``max_line`` characters is emitted unterminated.
    """

    def __init__(self, max_line: int = DEFAULT_CHUNK_SIZE) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._max_line = max_line

    def feed(self, chunk: bytes) -> list[str]:
        """Complete lines (without line endings) made available by ``chunk``."""
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        if len(self._pending) >= self._max_line:
            lines.append(self._pending)
            self._pending = ""
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        """Whatever is left once the stream ended."""
        rest = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [rest.rstrip("\r")] if rest else []


class SessionBridge:
    """Binds at most one active session to at most one active peer.

    A new peer always supersedes the previous binding: the old session is
    stopped (its peer notified and closed) before the new session starts.
    Connection transitions are serialized by a per-bridge lock.

    When a peer disconnects without a replacement the session keeps running
    for ``idle_timeout`` seconds and is then stopped. With no idle timeout it
    runs until the next connection replaces it.
    """

    def __init__(
        self,
        language: str,
        store: LanguageStore,
        settings: BridgeSettings | None = None,
        session_factory: SessionFactory = LanguageServerSession,
    ) -> None:
        self.language = normalize_language(language)
        self._store = store
        self._settings = settings or BridgeSettings()
        self._session_factory = session_factory
        self._lock = asyncio.Lock()
        self._session: LanguageServerSession | None = None
        self._peer: Peer | None = None
        self._replacing: LanguageServerSession | None = None
        self._idle_task: asyncio.Task[None] | None = None

    @property
    def session(self) -> LanguageServerSession | None:
        return self._session

    @property
    def peer(self) -> Peer | None:
        return self._peer

    async def on_peer_connected(self, peer: Peer, language: str | None = None) -> bool:
        """Stop any active session and start a new one wired to ``peer``.

        Returns:
            True if the language server is running; False if it could not be
            started, in which case the peer was told why and closed.
        """
        language = normalize_language(language or self.language)
        name = display_name(language)

        async with self._lock:
            self._cancel_idle_timer()
            previous, self._session, self._peer = self._session, None, None
            if previous is not None:
                log.info(
                    "New %s connection replaces language server (pid %s)", name, previous.pid
                )
                self._replacing = previous
                try:
                    await previous.stop()
                finally:
                    self._replacing = None

            session = self._session_factory(language, self._store, settings=self._settings)
            self._wire(session, peer, name)
            try:
                await session.start()
            except BridgeError as e:
                log.warning("%s language server couldn't be initialized: %s", name, e)
                await self._notify_and_close(
                    peer, f"{name} language server couldn't be initialized: {e.readable_message}"
                )
                return False

            self._session = session
            self._peer = peer
            return True

    def _wire(self, session: LanguageServerSession, peer: Peer, name: str) -> None:
        async def on_receive(chunk: bytes) -> None:
            try:
                await peer.send_bytes(chunk)
            except PeerClosed:
                log.debug("Dropped %d bytes from %s language server, peer closed", len(chunk), name)

        stderr_lines = StderrLines()

        async def report_stderr(lines: list[str]) -> None:
            # Blank lines are neither logged nor forwarded
            for line in lines:
                if not line.strip():
                    continue
                log.warning("%s language server: %s", name, line)
                if not self._settings.forward_stderr:
                    continue
                try:
                    await peer.send_text(line)
                except PeerClosed:
                    log.debug("Dropped stderr from %s language server, peer closed", name)

        async def on_error(chunk: bytes) -> None:
            await report_stderr(stderr_lines.feed(chunk))

        async def on_terminated(state: TerminationState) -> None:
            if self._session is session:
                self._session = None
                self._peer = None
                self._cancel_idle_timer()
            await report_stderr(stderr_lines.flush())
            if self._replacing is session:
                message = f"{name} language server was replaced by a new connection"
            else:
                message = f"{name} language server did terminate ({state.describe()})"
            await self._notify_and_close(peer, message)

        session.on_receive = on_receive
        session.on_error = on_error
        session.on_terminated = on_terminated

    async def _notify_and_close(self, peer: Peer, message: str) -> None:
        if peer.is_open:
            try:
                await peer.send_text(message)
            except PeerClosed:
                log.debug("Peer closed before notification: %s", message)
        await peer.close()

    async def on_peer_binary_message(self, data: bytes, peer: Peer | None = None) -> bool:
        """Forward a client message to the active session's stdin.

        Returns:
            True if the bytes were written.
        """
        session = self._session
        if session is None or (peer is not None and peer is not self._peer):
            violation = PeerProtocolViolation(
                f"Dropped {len(data)} bytes for {display_name(self.language)}: "
                "no language server session is routed to this connection"
            )
            log.warning("%s", violation)
            return False

        try:
            await session.send(data)
        except (SessionNotReady, SessionClosed, WriteError) as e:
            log.warning("%s", e)
            return False
        return True

    async def on_peer_closed(self, peer: Peer) -> None:
        """Detach a disconnected peer, arming the idle timer if configured."""
        if peer is not self._peer:
            return
        self._peer = None
        session = self._session
        if session is None:
            return

        timeout = self._settings.idle_timeout
        name = display_name(self.language)
        if timeout is None:
            log.info(
                "%s client disconnected, language server (pid %s) kept until the next connection",
                name,
                session.pid,
            )
            return

        log.info(
            "%s client disconnected, stopping language server (pid %s) in %.1fs",
            name,
            session.pid,
            timeout,
        )
        self._cancel_idle_timer()
        self._idle_task = asyncio.create_task(
            self._stop_when_idle(session, timeout), name=f"lsp-idle-{self.language}"
        )

    async def _stop_when_idle(self, session: LanguageServerSession, timeout: float) -> None:
        await asyncio.sleep(timeout)
        async with self._lock:
            if self._session is not session or self._peer is not None:
                return
            self._session = None
            self._idle_task = None
            log.info("Stopping idle %s language server (pid %s)", display_name(self.language), session.pid)
            await session.stop()

    def _cancel_idle_timer(self) -> None:
        task = self._idle_task
        self._idle_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def close(self) -> None:
        """Stop the active session, if any."""
        async with self._lock:
            self._cancel_idle_timer()
            session, self._session, self._peer = self._session, None, None
            if session is not None:
                await session.stop()

    @property
    def idle(self) -> bool:
        """No session, no peer, no timer and no transition in progress."""
        return (
            self._session is None
            and self._peer is None
            and self._idle_task is None
            and not self._lock.locked()
        )

    def status(self) -> dict[str, Any]:
        """Status snapshot for the admin API."""
        session = self._session
        return {
            "language": self.language,
            "connected": self._peer is not None and self._peer.is_open,
            "session": session.describe() if session else None,
        }


class BridgeRegistry:
    """One SessionBridge per language route, created on first use and dropped
    again when a connection leaves it with nothing running.
    """

    def __init__(
        self,
        store: LanguageStore,
        settings: BridgeSettings | None = None,
        session_factory: SessionFactory = LanguageServerSession,
    ) -> None:
        self._store = store
        self._settings = settings or BridgeSettings()
        self._session_factory = session_factory
        self._bridges: dict[str, SessionBridge] = {}

    def get(self, language: str) -> SessionBridge:
        key = normalize_language(language)
        bridge = self._bridges.get(key)
        if bridge is None:
            bridge = SessionBridge(key, self._store, self._settings, self._session_factory)
            self._bridges[key] = bridge
        return bridge

    def discard(self, bridge: SessionBridge) -> bool:
        """Forget ``bridge`` if it is idle, e.g. after its session failed to start.

        Keeps connections to unconfigured languages from accumulating bridges.
        """
        if self._bridges.get(bridge.language) is not bridge or not bridge.idle:
            return False
        del self._bridges[bridge.language]
        log.debug("Dropped idle %s bridge", display_name(bridge.language))
        return True

    def __iter__(self) -> Iterator[SessionBridge]:
        return iter(list(self._bridges.values()))

    def __len__(self) -> int:
        return len(self._bridges)

    def status(self) -> list[dict[str, Any]]:
        return [bridge.status() for bridge in self]

    async def close_all(self) -> None:
        """Stop every bridge's session (server shutdown)."""
        bridges = list(self)
        if bridges:
            await asyncio.gather(*(bridge.close() for bridge in bridges))
            log.info("Closed %d language server bridge(s)", len(bridges))
