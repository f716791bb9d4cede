"""Web server lifecycle management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import uvicorn

from lspservice.languages import LanguageStore
from lspservice.logging import uvicorn_log_level
from lspservice.server.routes import create_app

if TYPE_CHECKING:
    from lspservice.config.schema import Config

log = logging.getLogger(__name__)


def build_server(config: Config, store: LanguageStore | None = None) -> uvicorn.Server:
    """Build a uvicorn server for the language service.

    Args:
        config: Loaded configuration (server address, bridge settings, languages).
        store: Language store to serve; built from ``config.languages`` if omitted.
    """
    if store is None:
        store = LanguageStore.from_config(config.languages)

    app = create_app(store, settings=config.bridge)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=uvicorn_log_level(config.logging),
        access_log=False,
        ws="websockets",
    )
    return uvicorn.Server(uvicorn_config)


async def serve(config: Config, store: LanguageStore | None = None) -> None:
    """Serve until the server is asked to exit."""
    server = build_server(config, store)
    log.info(
        "Language service listening on http://%s:%d", config.server.host, config.server.port
    )
    await server.serve()
    log.info("Language service stopped")
