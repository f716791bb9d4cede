"""Network peer abstraction over a WebSocket connection."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from starlette.websockets import WebSocketDisconnect, WebSocketState

from lspservice.errors import PeerClosed

if TYPE_CHECKING:
    from fastapi import WebSocket

log = logging.getLogger(__name__)


class Peer(Protocol):
    """Full-duplex message channel to one remote client."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...

    async def send_bytes(self, data: bytes) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class WebSocketPeer:
    """Peer backed by a FastAPI/Starlette WebSocket.

    Sends are serialized, since stdout and stderr relays write concurrently.
    Sending on a closed socket raises PeerClosed. close() is idempotent.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._send_lock = asyncio.Lock()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._websocket.application_state == WebSocketState.CONNECTED
            and self._websocket.client_state == WebSocketState.CONNECTED
        )

    def mark_closed(self) -> None:
        """Record that the client disconnected."""
        self._closed = True

    async def send_text(self, data: str) -> None:
        async with self._send_lock:
            self._ensure_open()
            try:
                await self._websocket.send_text(data)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                self._closed = True
                raise PeerClosed(f"WebSocket closed: {e}") from e

    async def send_bytes(self, data: bytes) -> None:
        async with self._send_lock:
            self._ensure_open()
            try:
                await self._websocket.send_bytes(data)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                self._closed = True
                raise PeerClosed(f"WebSocket closed: {e}") from e

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise PeerClosed("WebSocket is not open")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        async with self._send_lock:
            if self._closed:
                return
            self._closed = True
            if self._websocket.application_state != WebSocketState.CONNECTED:
                return
            try:
                await self._websocket.close(code=code, reason=reason or None)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                log.debug("WebSocket close failed: %s", e)
