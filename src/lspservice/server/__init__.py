"""HTTP and WebSocket surface of the language service.

The FastAPI application lives in ``lspservice.server.routes`` and the
uvicorn lifecycle in ``lspservice.server.server``.
"""

from lspservice.server.peer import Peer, WebSocketPeer

__all__ = [
    "Peer",
    "WebSocketPeer",
]
