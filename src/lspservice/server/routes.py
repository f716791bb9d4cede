"""FastAPI routes: admin API, status pages and the language WebSocket."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response, WebSocket
from fastapi.responses import PlainTextResponse

from lspservice import __version__
from lspservice.config.schema import BridgeSettings
from lspservice.languages import LanguageStore, display_name, normalize_language
from lspservice.server.peer import WebSocketPeer
from lspservice.session.bridge import BridgeRegistry

log = logging.getLogger(__name__)


def create_app(
    store: LanguageStore,
    registry: BridgeRegistry | None = None,
    settings: BridgeSettings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Language launch configuration, shared with the bridges.
        registry: Bridges per language; built from ``store`` if omitted.
        settings: Bridge settings used when building the registry.
    """
    if registry is None:
        registry = BridgeRegistry(store, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await registry.close_all()

    app = FastAPI(
        title="Language Service",
        description="Language servers over WebSockets",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.bridges = registry

    _register_routes(app, store, registry)

    return app


def route_list(app: FastAPI) -> str:
    """One line per registered route, e.g. "GET /lspservice"."""
    lines = []
    for route in app.routes:
        path = getattr(route, "path", "")
        methods = getattr(route, "methods", None)
        verb = ",".join(sorted(methods)) if methods else "WEBSOCKET"
        lines.append(f"{verb} {path}")
    return "\n".join(lines)


def _valid_file_path(path: str) -> bool:
    return bool(path) and "\x00" not in path and "\n" not in path and not path.endswith(os.sep)


def _register_routes(app: FastAPI, store: LanguageStore, registry: BridgeRegistry) -> None:
    """Register all routes."""

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return f"Hello, I'm the Language Service Host.\n\nEndpoints:\n{route_list(app)}"

    @app.get("/lspservice", response_class=PlainTextResponse)
    async def lspservice_index() -> str:
        languages = "\n".join(display_name(lang) for lang in store.languages())
        return (
            "Hello, I'm the Language Service.\n\n"
            f"Endpoints:\n{route_list(app)}\n\n"
            f"Available languages:\n{languages}"
        )

    # API routes first so "/lspservice/api/..." never matches a language name

    @app.get("/lspservice/api/languages")
    async def api_languages() -> list[str]:
        """List configured languages."""
        return store.languages()

    @app.get("/lspservice/api/processID")
    async def api_process_id() -> int:
        """Process ID of the service itself."""
        return os.getpid()

    @app.get("/lspservice/api/sessions")
    async def api_sessions() -> list[dict[str, Any]]:
        """Status of every language bridge."""
        return registry.status()

    @app.get("/lspservice/api/language/{language_name}", response_class=PlainTextResponse)
    async def api_get_language(language_name: str) -> Response:
        """Executable path for a language, 204 if none has been set."""
        config = store.get(language_name)
        if config is None or not config.executable_path:
            log.debug("No LSP server path has been set for %s", display_name(language_name))
            return Response(status_code=204)
        return PlainTextResponse(config.executable_path)

    @app.post("/lspservice/api/language/{language_name}")
    async def api_set_language(language_name: str, request: Request) -> Response:
        """Set the executable path for a language from the plain-text body."""
        executable_path = (await request.body()).decode("utf-8", errors="replace").strip()
        if not _valid_file_path(executable_path):
            return PlainTextResponse(
                "Request body contains no valid file path", status_code=400
            )
        store.set(language_name, executable_path)
        return Response(status_code=200)

    @app.websocket("/lspservice/api/language/{language_name}/websocket")
    async def language_websocket(websocket: WebSocket, language_name: str) -> None:
        """Relay LSP traffic between the client and the language server."""
        await websocket.accept()
        peer = WebSocketPeer(websocket)
        bridge = registry.get(language_name)

        if not await bridge.on_peer_connected(peer, language_name):
            registry.discard(bridge)
            return

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    log.info(
                        "%s websocket did close (code %s)",
                        display_name(language_name),
                        message.get("code"),
                    )
                    break
                data = message.get("bytes")
                if data is None:
                    text = message.get("text")
                    if text is None:
                        continue
                    data = text.encode("utf-8")
                await bridge.on_peer_binary_message(data, peer)
        finally:
            peer.mark_closed()
            await bridge.on_peer_closed(peer)
            registry.discard(bridge)

    @app.get("/lspservice/{language_name}", response_class=PlainTextResponse)
    async def language_page(language_name: str) -> str:
        if normalize_language(language_name) == "api":
            raise HTTPException(status_code=404, detail="Not Found")
        config = store.get(language_name)
        executable_path = config.executable_path if config else None
        return (
            "Hello, I'm the Language Service.\n\n"
            f"The language {display_name(language_name)} has this associated language server:\n"
            f"{executable_path or 'None'}"
        )
